import io

import pytest

from uploads.csv_stream import iter_raw_rows
from uploads.errors import StreamMalformed


def _rows(data: bytes):
    return list(iter_raw_rows(io.BytesIO(data)))


class TestHeader:
    def test_columns_are_order_independent(self):
        rows = _rows(b"city,name,age\nLima,Ana,30\n")
        assert rows == [{"name": "Ana", "age": "30", "city": "Lima"}]

    def test_header_is_case_insensitive_and_bom_tolerant(self):
        rows = _rows("\ufeffName, AGE ,City\nAna,30,Lima\n".encode("utf-8"))
        assert rows == [{"name": "Ana", "age": "30", "city": "Lima"}]

    def test_extra_columns_are_ignored(self):
        rows = _rows(b"id,name,age,city,notes\n1,Ana,30,Lima,hi\n")
        assert rows == [{"name": "Ana", "age": "30", "city": "Lima"}]

    def test_missing_column_is_malformed(self):
        with pytest.raises(StreamMalformed, match="city"):
            _rows(b"name,age\nAna,30\n")

    def test_empty_file_is_malformed(self):
        with pytest.raises(StreamMalformed):
            _rows(b"")

    def test_header_only_yields_no_rows(self):
        assert _rows(b"name,age,city\n") == []


class TestRows:
    def test_short_row_yields_none_fields(self):
        rows = _rows(b"name,age,city\nAna,30\n")
        assert rows == [{"name": "Ana", "age": "30", "city": None}]

    def test_blank_lines_are_skipped(self):
        rows = _rows(b"name,age,city\r\n\r\nAna,30,Lima\r\n\r\nLeo,25,Quito\r\n")
        assert [r["name"] for r in rows] == ["Ana", "Leo"]

    def test_quoted_fields_keep_commas_and_newlines(self):
        rows = _rows(b'name,age,city\n"Ana, Jr.",30,"San\nJose"\n')
        assert rows == [{"name": "Ana, Jr.", "age": "30", "city": "San\nJose"}]

    def test_bad_quoting_is_malformed(self):
        with pytest.raises(StreamMalformed):
            _rows(b'name,age,city\n"Ana"x,30,Lima\n')

    def test_undecodable_bytes_are_malformed(self):
        with pytest.raises(StreamMalformed):
            _rows(b"name,age,city\n\xff\xfe,30,Lima\n")


class TestStreaming:
    def test_rows_are_read_lazily(self):
        body = b"name,age,city\n" + b"Ana,30,Lima\n" * 200_000
        stream = io.BytesIO(body)
        rows = iter_raw_rows(stream)

        first = next(rows)

        assert first["name"] == "Ana"
        assert stream.tell() < len(body)
        rows.close()

    def test_underlying_stream_is_left_open(self):
        stream = io.BytesIO(b"name,age,city\nAna,30,Lima\n")
        list(iter_raw_rows(stream))
        assert not stream.closed

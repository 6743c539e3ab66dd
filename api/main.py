from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware

from core import settings
from core.db import DB_ERRORS, Database
from core.dependencies import get_db
from core.logging_config import configure_logging
from people import router as people_router
from uploads import router as uploads_router

configure_logging()


@asynccontextmanager
async def lifespan(app: FastAPI):
    # One pool per process, shared by every request through app.state.
    database = Database(
        settings.database_url(),
        min_size=settings.pool_min_size(),
        max_size=settings.pool_max_size(),
        command_timeout=settings.command_timeout(),
    )
    await database.open()
    app.state.db = database
    try:
        yield
    finally:
        await database.close()
        app.state.db = None


app = FastAPI(title="Person Records API", lifespan=lifespan)

# The browser frontend is served from a different origin.
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_allow_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(uploads_router.router, tags=["uploads"])
app.include_router(people_router.router, tags=["records"])


@app.get("/health")
async def health() -> dict:
    return {"status": "ok"}


@app.get("/health/db")
async def health_db(db: Database = Depends(get_db)) -> dict:
    try:
        row = await db.fetch_one("SELECT now() AS now")
    except DB_ERRORS as exc:
        raise HTTPException(status_code=500, detail="Database is not reachable.") from exc
    return {"now": (row or {}).get("now")}

"""
Infrastructure shared by the `uploads` and `people` packages: the asyncpg
database handle, env-driven settings, logging setup and request dependencies.
Batch and record SQL stays in the feature packages.
"""

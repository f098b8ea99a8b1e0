from __future__ import annotations

import os

# Point the engine at an in-memory database before any catgov module builds it.
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("STORE_READ_RETRY_BACKOFF_MS", "1")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest

from catgov.core.config import get_settings
from catgov.domain.models import Base
from catgov.persistence.db import engine
from catgov.services.audit import reset_audit_emitter


@pytest.fixture(autouse=True)
async def fresh_schema() -> None:
    # Disposing the engine drops the in-memory database, so every test starts empty.
    async with engine.begin() as connection:
        await connection.run_sync(Base.metadata.create_all)
    yield
    await engine.dispose()


@pytest.fixture(autouse=True)
def reset_process_state() -> None:
    reset_audit_emitter()
    yield
    reset_audit_emitter()
    get_settings.cache_clear()

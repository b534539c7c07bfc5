"""Shared fixtures: a fresh SQLite database per test."""

import pytest

from snaps.db.session import create_engine, create_session_factory, init_models
from snaps.services.migration import MigrationEngine
from snaps.store.aggregate import AggregateStore
from snaps.store.pending import PendingStore


class RecordingMailer:
    """Mailer that keeps every message instead of sending it."""

    def __init__(self):
        self.messages: list[tuple[str, str, str]] = []

    async def send(self, to: str, subject: str, html: str) -> None:
        self.messages.append((to, subject, html))

    async def close(self) -> None:
        pass


@pytest.fixture
def database_url(tmp_path) -> str:
    return f"sqlite+aiosqlite:///{tmp_path / 'snaps.db'}"


@pytest.fixture
async def session_factory(database_url):
    engine = create_engine(database_url)
    await init_models(engine)
    try:
        yield create_session_factory(engine)
    finally:
        await engine.dispose()


@pytest.fixture
def pending_store(session_factory) -> PendingStore:
    return PendingStore(session_factory)


@pytest.fixture
def aggregate_store(session_factory) -> AggregateStore:
    return AggregateStore(session_factory)


@pytest.fixture
def migration_engine(pending_store, aggregate_store) -> MigrationEngine:
    return MigrationEngine(pending_store, aggregate_store)


@pytest.fixture
def mailer() -> RecordingMailer:
    return RecordingMailer()

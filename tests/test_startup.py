import asyncio

import pytest
from fastapi.testclient import TestClient

from fake_postgres import FakeDatabase, fake_pool_factory
from helpers import BrokenRepository, memory_settings
from todo_api.db import PostgresRepository
from todo_api.main import create_app
from todo_api.settings import Settings
from todo_api.repositories import InMemoryRepository, StorageError, StorageUnavailableError
from todo_api.startup import wait_for_storage


class FlakyProbe:
    def __init__(self, failures: int) -> None:
        self.failures = failures
        self.calls = 0

    async def __call__(self) -> None:
        self.calls += 1
        if self.calls <= self.failures:
            raise StorageError(f"not ready #{self.calls}")


class RecordingSleep:
    def __init__(self) -> None:
        self.delays = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


class TestWaitForStorage:
    def test_immediate_success(self):
        probe, sleep = FlakyProbe(0), RecordingSleep()
        outcome = asyncio.run(wait_for_storage(probe, attempts=5, delay=5.0, sleep=sleep))
        assert outcome.connected is True
        assert outcome.attempts == 1
        assert sleep.delays == []

    def test_succeeds_after_retries(self):
        probe, sleep = FlakyProbe(2), RecordingSleep()
        outcome = asyncio.run(wait_for_storage(probe, attempts=5, delay=5.0, sleep=sleep))
        assert outcome.connected is True
        assert outcome.attempts == 3
        assert sleep.delays == [5.0, 5.0]

    def test_exhaustion(self):
        probe, sleep = FlakyProbe(100), RecordingSleep()
        outcome = asyncio.run(wait_for_storage(probe, attempts=5, delay=2.5, sleep=sleep))
        assert outcome.connected is False
        assert outcome.attempts == 5
        assert outcome.last_error == "not ready #5"
        assert probe.calls == 5
        assert sleep.delays == [2.5] * 4

    def test_unexpected_errors_propagate(self):
        async def probe():
            raise RuntimeError("bug")

        with pytest.raises(RuntimeError):
            asyncio.run(wait_for_storage(probe, attempts=3, delay=0, sleep=RecordingSleep()))


class CountingRepository(InMemoryRepository):
    def __init__(self, failures: int = 0, schema_error: bool = False) -> None:
        super().__init__()
        self.failures = failures
        self.schema_error = schema_error
        self.pings = 0
        self.events = []

    async def open(self) -> None:
        self.events.append("open")

    async def close(self) -> None:
        self.events.append("close")

    async def ensure_schema(self) -> None:
        self.events.append("schema")
        if self.schema_error:
            raise StorageError("permission denied for schema public")

    async def ping(self) -> None:
        self.pings += 1
        if self.pings <= self.failures:
            raise StorageError("not ready")


class TestLifespan:
    def test_startup_opens_waits_and_creates_schema(self):
        repo = CountingRepository(failures=2)
        app = create_app(memory_settings(startup_retries=5), repository=repo)
        with TestClient(app) as client:
            assert client.get("/todos").status_code == 200
            assert app.state.startup.attempts == 3
            assert repo.events == ["open", "schema"]
        assert repo.events == ["open", "schema", "close"]

    def test_schema_creation_can_be_disabled(self):
        repo = CountingRepository()
        app = create_app(memory_settings(db_init_schema=False), repository=repo)
        with TestClient(app):
            pass
        assert repo.events == ["open", "close"]

    def test_exhaustion_serves_anyway_by_default(self):
        app = create_app(memory_settings(startup_retries=3), repository=BrokenRepository())
        with TestClient(app) as client:
            assert app.state.startup.connected is False
            assert app.state.startup.attempts == 3
            assert client.get("/").status_code == 200
            assert client.get("/health").status_code == 503

    def test_exhaustion_fails_fast_when_configured(self):
        repo = CountingRepository(failures=10)
        app = create_app(
            memory_settings(startup_retries=2, startup_fail_fast=True),
            repository=repo,
        )
        with pytest.raises(StorageUnavailableError):
            with TestClient(app):
                pass
        assert repo.pings == 2
        assert "schema" not in repo.events
        assert repo.events[-1] == "close"

    def test_schema_failure_aborts_and_closes(self):
        repo = CountingRepository(schema_error=True)
        app = create_app(memory_settings(), repository=repo)
        with pytest.raises(StorageError):
            with TestClient(app):
                pass
        assert repo.events == ["open", "schema", "close"]


class TestLateDatabase:
    def test_table_created_when_database_comes_up_after_startup(self):
        db = FakeDatabase()
        db.down = True
        settings = Settings(startup_retries=2, startup_retry_delay=0.0)
        repo = PostgresRepository(settings, pool_factory=fake_pool_factory(db))
        app = create_app(settings, repository=repo)

        with TestClient(app) as client:
            assert app.state.startup.connected is False
            assert client.get("/health").status_code == 503
            assert db.count("CREATE TABLE") == 0

            db.down = False
            assert client.get("/health").status_code == 200
            assert db.count("CREATE TABLE") == 1

            res = client.post("/todos", json={"task": "Buy milk"})
            assert res.status_code == 201
            assert client.get("/todos").json()[0]["task"] == "Buy milk"
            assert db.count("CREATE TABLE") == 1

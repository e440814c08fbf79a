import asyncio
from datetime import timedelta

from todo_api.repositories import (
    DEMO_TODOS,
    InMemoryRepository,
    build_repository,
    merge_patch,
    touch,
    utcnow,
)
from todo_api.schemas import TodoCreate, TodoUpdate

from helpers import memory_settings


def run(coro):
    return asyncio.run(coro)


def make_entity(**overrides):
    now = utcnow()
    entity = {
        "id": 7,
        "task": "Original",
        "description": "Desc",
        "completed": False,
        "created_at": now,
        "updated_at": now,
    }
    entity.update(overrides)
    return entity


class TestMergePatch:
    def test_empty_patch_keeps_fields_and_advances_updated_at(self):
        existing = make_entity()
        merged = merge_patch(existing, TodoUpdate())
        for key in ("id", "task", "description", "completed", "created_at"):
            assert merged[key] == existing[key]
        assert merged["updated_at"] > existing["updated_at"]

    def test_only_provided_fields_replace(self):
        existing = make_entity()
        merged = merge_patch(existing, TodoUpdate(completed=True))
        assert merged["completed"] is True
        assert merged["task"] == "Original"
        assert merged["description"] == "Desc"

    def test_false_and_empty_values_are_applied(self):
        existing = make_entity(completed=True)
        merged = merge_patch(existing, TodoUpdate(completed=False, description=""))
        assert merged["completed"] is False
        assert merged["description"] == ""

    def test_does_not_mutate_input(self):
        existing = make_entity()
        merge_patch(existing, TodoUpdate(task="Changed"))
        assert existing["task"] == "Original"


class TestTouch:
    def test_later_than_previous_in_the_future(self):
        future = utcnow() + timedelta(hours=1)
        assert touch(future) == future + timedelta(microseconds=1)

    def test_now_without_previous(self):
        before = utcnow()
        assert touch() >= before


class TestInMemoryRepository:
    def test_create_assigns_sequential_ids(self):
        repo = InMemoryRepository()
        first = run(repo.create(TodoCreate(task="A")))
        second = run(repo.create(TodoCreate(task="B")))
        assert (first["id"], second["id"]) == (1, 2)
        assert first["completed"] is False
        assert first["description"] == ""

    def test_returned_records_are_copies(self):
        repo = InMemoryRepository()
        created = run(repo.create(TodoCreate(task="A")))
        created["task"] = "mutated"
        fetched = run(repo.get(created["id"]))
        fetched["completed"] = True
        again = run(repo.get(created["id"]))
        assert again["task"] == "A"
        assert again["completed"] is False

    def test_list_is_ordered_by_id(self):
        repo = InMemoryRepository()
        for task in ("C", "A", "B"):
            run(repo.create(TodoCreate(task=task)))
        run(repo.delete(2))
        assert [t["id"] for t in run(repo.list())] == [1, 3]

    def test_update_and_delete_missing(self):
        repo = InMemoryRepository()
        assert run(repo.update(1, TodoUpdate(task="x"))) is None
        assert run(repo.delete(1)) is None
        assert run(repo.get(1)) is None

    def test_delete_returns_prior_state(self):
        repo = InMemoryRepository()
        created = run(repo.create(TodoCreate(task="A")))
        updated = run(repo.update(created["id"], TodoUpdate(completed=True)))
        deleted = run(repo.delete(created["id"]))
        assert deleted == updated
        assert run(repo.get(created["id"])) is None

    def test_ping_succeeds(self):
        assert run(InMemoryRepository().ping()) is None


class TestBuildRepository:
    def test_memory_backend(self):
        repo = build_repository(memory_settings())
        assert isinstance(repo, InMemoryRepository)
        assert run(repo.list()) == []

    def test_memory_backend_seeded(self):
        repo = build_repository(memory_settings(seed_demo_data=True))
        items = run(repo.list())
        assert [t["task"] for t in items] == [task for task, _ in DEMO_TODOS]
        assert all(t["completed"] is False for t in items)

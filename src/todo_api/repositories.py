from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from threading import RLock
from typing import Iterable, List, Optional

from .models import TodoEntity
from .schemas import TodoCreate, TodoUpdate
from .settings import Settings

logger = logging.getLogger(__name__)

DEMO_TODOS = (
    ("Learn Docker", ""),
    ("Build an image", ""),
)

_PATCHABLE_FIELDS = ("task", "description", "completed")


class StorageError(Exception):
    """Raised when the backing store cannot be reached or a statement fails."""


class StorageUnavailableError(StorageError):
    """Raised when the store never answered during startup."""


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def touch(previous: Optional[datetime] = None) -> datetime:
    """
    Return the timestamp for a modification that follows ``previous``.

    The result is always strictly later than ``previous`` even when the clock
    has not advanced between two writes.
    """
    now = utcnow()
    if previous is not None and now <= previous:
        return previous + timedelta(microseconds=1)
    return now


# PUBLIC_INTERFACE
def merge_patch(existing: TodoEntity, patch: TodoUpdate) -> TodoEntity:
    """
    Apply a partial update onto a loaded record and return the record to
    write back.

    Only fields that carry a non-null value in ``patch`` replace stored
    values. ``id`` and ``created_at`` are never touched; ``updated_at`` is
    always advanced.
    """
    merged = existing.copy()
    for name in _PATCHABLE_FIELDS:
        value = getattr(patch, name)
        if value is not None:
            merged[name] = value  # type: ignore[literal-required]
    merged["updated_at"] = touch(existing["updated_at"])
    return merged


# PUBLIC_INTERFACE
class Repository(ABC):
    """Abstract repository contract for todo storage backends."""

    name: str = "abstract"

    async def open(self) -> None:
        """Acquire backend resources. Called once before serving."""

    async def close(self) -> None:
        """Release backend resources. Called once at shutdown."""

    async def ensure_schema(self) -> None:
        """Create backend structures if they are missing."""

    @abstractmethod
    async def ping(self) -> None:
        """Perform a trivial round-trip. Raise StorageError on failure."""

    @abstractmethod
    async def list(self) -> List[TodoEntity]:
        """Return every TodoEntity ordered by ascending id."""

    @abstractmethod
    async def get(self, todo_id: int) -> Optional[TodoEntity]:
        """Return a TodoEntity by id, or None if not found."""

    @abstractmethod
    async def create(self, data: TodoCreate) -> TodoEntity:
        """Create and return a new TodoEntity with completed=False."""

    @abstractmethod
    async def update(self, todo_id: int, data: TodoUpdate) -> Optional[TodoEntity]:
        """Merge provided fields into an existing TodoEntity. Return it, or None if not found."""

    @abstractmethod
    async def delete(self, todo_id: int) -> Optional[TodoEntity]:
        """Delete a TodoEntity by id. Return its prior state, or None if not found."""


class InMemoryRepository(Repository):
    """
    Lock-guarded in-memory repository for tests and demo mode.

    Items live in a dict keyed by id; ids only grow, so insertion order is
    ascending id order.
    """

    name = "memory"

    def __init__(self, seed: Iterable[TodoCreate] = ()) -> None:
        self._lock = RLock()
        self._items: dict[int, TodoEntity] = {}
        self._next_id = 1
        for data in seed:
            self._insert(data)

    def _allocate_id(self) -> int:
        with self._lock:
            i = self._next_id
            self._next_id += 1
            return i

    def _insert(self, data: TodoCreate) -> TodoEntity:
        now = utcnow()
        entity: TodoEntity = {
            "id": self._allocate_id(),
            "task": data.task,
            "description": data.description or "",
            "completed": False,
            "created_at": now,
            "updated_at": now,
        }
        with self._lock:
            self._items[entity["id"]] = entity
        return entity.copy()

    async def ping(self) -> None:
        return None

    async def list(self) -> List[TodoEntity]:
        with self._lock:
            return [t.copy() for t in self._items.values()]

    async def get(self, todo_id: int) -> Optional[TodoEntity]:
        with self._lock:
            item = self._items.get(todo_id)
            return None if item is None else item.copy()

    async def create(self, data: TodoCreate) -> TodoEntity:
        return self._insert(data)

    async def update(self, todo_id: int, data: TodoUpdate) -> Optional[TodoEntity]:
        with self._lock:
            existing = self._items.get(todo_id)
            if existing is None:
                return None
            updated = merge_patch(existing, data)
            self._items[todo_id] = updated
            return updated.copy()

    async def delete(self, todo_id: int) -> Optional[TodoEntity]:
        with self._lock:
            return self._items.pop(todo_id, None)


# PUBLIC_INTERFACE
def build_repository(settings: Settings) -> Repository:
    """
    Return the repository selected by settings.
    - memory: InMemoryRepository, optionally seeded with demo todos
    - postgres: PostgresRepository backed by a psycopg connection pool
    """
    if settings.persistence_backend == "memory":
        seed: List[TodoCreate] = []
        if settings.seed_demo_data:
            seed = [TodoCreate(task=task, description=desc) for task, desc in DEMO_TODOS]
        logger.info("Using in-memory storage (%d seeded todos)", len(seed))
        return InMemoryRepository(seed=seed)

    from .db import PostgresRepository

    logger.info("Using PostgreSQL storage at %s/%s", settings.database_address, settings.db_name)
    return PostgresRepository(settings)

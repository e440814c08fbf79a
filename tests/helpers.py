from datetime import datetime
from typing import List, Optional

from todo_api.models import TodoEntity
from todo_api.repositories import InMemoryRepository, StorageError
from todo_api.schemas import TodoCreate, TodoUpdate
from todo_api.settings import Settings


def memory_settings(**overrides) -> Settings:
    values = dict(
        persistence_backend="memory",
        startup_retries=1,
        startup_retry_delay=0.0,
    )
    values.update(overrides)
    return Settings(**values)


def parse_ts(value: str) -> datetime:
    # fromisoformat only accepts a trailing 'Z' from Python 3.11 on
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


class BrokenRepository(InMemoryRepository):
    """Repository whose every storage call fails like an unreachable database."""

    name = "broken"

    def __init__(self, message: str = "connection refused") -> None:
        super().__init__()
        self.message = message

    async def ping(self) -> None:
        raise StorageError(self.message)

    async def list(self) -> List[TodoEntity]:
        raise StorageError(self.message)

    async def get(self, todo_id: int) -> Optional[TodoEntity]:
        raise StorageError(self.message)

    async def create(self, data: TodoCreate) -> TodoEntity:
        raise StorageError(self.message)

    async def update(self, todo_id: int, data: TodoUpdate) -> Optional[TodoEntity]:
        raise StorageError(self.message)

    async def delete(self, todo_id: int) -> Optional[TodoEntity]:
        raise StorageError(self.message)

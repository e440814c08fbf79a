from __future__ import annotations

from datetime import datetime
from typing import TypedDict


# PUBLIC_INTERFACE
class TodoEntity(TypedDict):
    """
    Storage-level representation of a Todo item, shared by every repository
    backend.

    Fields:
    - id: Unique integer identifier assigned by the store
    - task: Non-empty task text (trimmed on input via schemas)
    - description: Free-form description, '' when not given
    - completed: Boolean completion flag
    - created_at: UTC creation timestamp, never changes
    - updated_at: UTC last update timestamp
    """

    id: int
    task: str
    description: str
    completed: bool
    created_at: datetime
    updated_at: datetime

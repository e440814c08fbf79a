from __future__ import annotations

from datetime import datetime
from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

TASK_MAX_LENGTH = 255


def _clean_task(value: str) -> str:
    s = value.strip()
    if not s:
        raise ValueError("task must not be empty")
    return s


# PUBLIC_INTERFACE
class TodoCreate(BaseModel):
    """
    Schema for creating a new Todo item.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "task": "Buy milk",
                "description": "Two litres, semi-skimmed",
            }
        }
    )

    task: str = Field(..., description="What needs to be done", max_length=TASK_MAX_LENGTH)
    description: Optional[str] = Field(default="", description="Optional detailed description")

    @field_validator("task")
    @classmethod
    def validate_task(cls, v: str) -> str:
        """
        Strip whitespace and reject empty tasks.
        """
        return _clean_task(v)

    @field_validator("description")
    @classmethod
    def default_description(cls, v: Optional[str]) -> str:
        return "" if v is None else v


# PUBLIC_INTERFACE
class TodoUpdate(BaseModel):
    """
    Schema for updating an existing Todo item.
    All fields are optional; omitted or null fields keep their stored value.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "task": "Buy oat milk",
                "completed": True,
            }
        }
    )

    task: Optional[str] = Field(
        default=None, description="What needs to be done", max_length=TASK_MAX_LENGTH
    )
    description: Optional[str] = Field(default=None, description="Detailed description")
    completed: Optional[bool] = Field(default=None, description="Completion status flag")

    @field_validator("task")
    @classmethod
    def validate_task(cls, v: Optional[str]) -> Optional[str]:
        """
        If task is provided, strip whitespace and reject empty values.
        """
        if v is None:
            return v
        return _clean_task(v)


# PUBLIC_INTERFACE
class TodoOut(BaseModel):
    """
    Schema returned by the API for a Todo item.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "id": 1,
                "task": "Buy milk",
                "description": "",
                "completed": False,
                "created_at": "2025-01-25T10:15:30.123456Z",
                "updated_at": "2025-01-25T10:15:30.123456Z",
            }
        }
    )

    id: int = Field(..., description="Unique identifier of the todo item")
    task: str = Field(..., description="What needs to be done")
    description: str = Field(default="", description="Detailed description")
    completed: bool = Field(..., description="Completion status flag")
    created_at: datetime = Field(..., description="Creation timestamp")
    updated_at: datetime = Field(..., description="Last update timestamp")

    @field_validator("description", mode="before")
    @classmethod
    def coerce_description(cls, v: Optional[str]) -> str:
        # rows inserted outside the API may carry NULL
        return "" if v is None else v


class TodoDeleted(BaseModel):
    """Response body for a successful delete."""

    message: str = Field(..., description="Human readable confirmation")
    todo: TodoOut = Field(..., description="The todo as it was before deletion")


class HealthOut(BaseModel):
    status: str = Field(..., description="'healthy' or 'unhealthy'")
    timestamp: datetime = Field(..., description="Time the probe ran (UTC)")
    database: str = Field(..., description="'connected' or 'disconnected'")
    error: Optional[str] = Field(default=None, description="Probe failure detail")


class ServiceInfo(BaseModel):
    message: str
    version: str
    environment: str
    backend: str
    endpoints: Dict[str, str]

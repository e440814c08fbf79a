from __future__ import annotations

import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Request, status

from ..repositories import Repository, StorageError
from ..schemas import TodoCreate, TodoDeleted, TodoOut, TodoUpdate

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/todos",
    tags=["todos"],
)

NOT_FOUND = "Todo not found"


# PUBLIC_INTERFACE
def get_repository(request: Request) -> Repository:
    """
    Dependency returning the repository the app was built with.
    """
    return request.app.state.repository


def _storage_failure(message: str) -> HTTPException:
    # Detail stays generic; the cause is only logged.
    logger.exception(message)
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=message)


# PUBLIC_INTERFACE
@router.get(
    "",
    response_model=List[TodoOut],
    summary="List Todos",
    description="Return every Todo item ordered by ascending id.",
    responses={
        200: {"description": "List retrieved successfully"},
        500: {"description": "Storage failure"},
    },
)
async def list_todos(repo: Repository = Depends(get_repository)) -> List[TodoOut]:
    try:
        items = await repo.list()
    except StorageError:
        raise _storage_failure("Failed to fetch todos")
    return [TodoOut(**it) for it in items]  # type: ignore[arg-type]


# PUBLIC_INTERFACE
@router.get(
    "/{todo_id}",
    response_model=TodoOut,
    summary="Get Todo",
    description="Get a single Todo item by ID.",
    responses={
        200: {"description": "Todo found"},
        404: {"description": "Todo not found"},
        500: {"description": "Storage failure"},
    },
)
async def get_todo(todo_id: int, repo: Repository = Depends(get_repository)) -> TodoOut:
    """
    Retrieve a single Todo item by its ID.
    """
    try:
        item = await repo.get(todo_id)
    except StorageError:
        raise _storage_failure("Failed to fetch todo")
    if item is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=NOT_FOUND)
    return TodoOut(**item)  # type: ignore[arg-type]


# PUBLIC_INTERFACE
@router.post(
    "",
    response_model=TodoOut,
    status_code=status.HTTP_201_CREATED,
    summary="Create Todo",
    description="Create a new Todo item. New items always start with completed=false.",
    responses={
        201: {"description": "Todo created successfully"},
        400: {"description": "Task missing or empty"},
        500: {"description": "Storage failure"},
    },
)
async def create_todo(payload: TodoCreate, repo: Repository = Depends(get_repository)) -> TodoOut:
    try:
        created = await repo.create(payload)
    except StorageError:
        raise _storage_failure("Failed to create todo")
    logger.info("Created todo %d", created["id"])
    return TodoOut(**created)  # type: ignore[arg-type]


# PUBLIC_INTERFACE
@router.put(
    "/{todo_id}",
    response_model=TodoOut,
    summary="Update Todo",
    description=(
        "Update fields of an existing Todo item. Omitted or null fields keep their "
        "stored value; updated_at is always refreshed."
    ),
    responses={
        200: {"description": "Todo updated"},
        400: {"description": "Invalid field value"},
        404: {"description": "Todo not found"},
        500: {"description": "Storage failure"},
    },
)
async def update_todo(
    todo_id: int, payload: TodoUpdate, repo: Repository = Depends(get_repository)
) -> TodoOut:
    try:
        updated = await repo.update(todo_id, payload)
    except StorageError:
        raise _storage_failure("Failed to update todo")
    if updated is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=NOT_FOUND)
    return TodoOut(**updated)  # type: ignore[arg-type]


# PUBLIC_INTERFACE
@router.delete(
    "/{todo_id}",
    response_model=TodoDeleted,
    summary="Delete Todo",
    description="Delete a Todo item by ID and return it as it was before deletion.",
    responses={
        200: {"description": "Todo deleted"},
        404: {"description": "Todo not found"},
        500: {"description": "Storage failure"},
    },
)
async def delete_todo(todo_id: int, repo: Repository = Depends(get_repository)) -> TodoDeleted:
    try:
        deleted = await repo.delete(todo_id)
    except StorageError:
        raise _storage_failure("Failed to delete todo")
    if deleted is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=NOT_FOUND)
    logger.info("Deleted todo %d", todo_id)
    return TodoDeleted(message="Todo deleted successfully", todo=TodoOut(**deleted))  # type: ignore[arg-type]

from __future__ import annotations

from typing import Any, Dict, Literal, Optional

from fastapi import APIRouter, Body, Depends, Query, status

from ..deps import get_current_user, get_task_repository
from ..repositories import MAX_PAGE_SIZE, ListQuery, TaskRepository
from ..schemas import MessageResponse, TaskCreate, TaskListResponse, TaskOut, TaskResponse
from ..tokens import TokenClaims
from ..utils import pagination_envelope

router = APIRouter(
    prefix="/tasks",
    tags=["tasks"],
)


# PUBLIC_INTERFACE
@router.get(
    "",
    response_model=TaskListResponse,
    summary="List Tasks",
    description=(
        "List the current user's tasks, newest first.\n\n"
        "Query parameters:\n"
        "- page: 1-based page number\n"
        f"- limit: page size (1..{MAX_PAGE_SIZE})\n"
        "- status: todo, in-progress, done or all\n"
        "- search: case-insensitive text matched against titles only"
    ),
    responses={
        200: {"description": "List retrieved successfully"},
        400: {"description": "Invalid query parameters"},
        401: {"description": "Not authenticated"},
    },
)
def list_tasks(
    page: int = Query(1, ge=1, description="Page number (1-based)"),
    limit: int = Query(10, ge=1, le=MAX_PAGE_SIZE, description="Maximum number of tasks per page"),
    status_filter: Literal["todo", "in-progress", "done", "all"] = Query(
        "all", alias="status", description="Filter by status"
    ),
    search: Optional[str] = Query(None, description="Search text for titles"),
    claims: TokenClaims = Depends(get_current_user),
    repo: TaskRepository = Depends(get_task_repository),
) -> TaskListResponse:
    query = ListQuery(
        page=page,
        page_size=limit,
        status=None if status_filter == "all" else status_filter,
        search=search.strip() if search else None,
    )
    items, total = repo.list(claims.user_id, query)
    envelope = pagination_envelope(
        items=[TaskOut(**it) for it in items],  # type: ignore[arg-type]
        total=total,
        page=page,
        limit=limit,
    )
    return TaskListResponse(**envelope)


# PUBLIC_INTERFACE
@router.post(
    "",
    response_model=TaskResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create Task",
    description="Create a task owned by the current user. The description is encrypted at rest.",
    responses={
        201: {"description": "Task created successfully"},
        400: {"description": "Validation error"},
        401: {"description": "Not authenticated"},
    },
)
def create_task(
    payload: TaskCreate,
    claims: TokenClaims = Depends(get_current_user),
    repo: TaskRepository = Depends(get_task_repository),
) -> TaskResponse:
    created = repo.create(claims.user_id, payload)
    return TaskResponse(task=TaskOut(**created))  # type: ignore[arg-type]


# PUBLIC_INTERFACE
@router.get(
    "/{task_id}",
    response_model=TaskResponse,
    summary="Get Task",
    description="Get a single task owned by the current user.",
    responses={
        200: {"description": "Task found"},
        401: {"description": "Not authenticated"},
        403: {"description": "Task belongs to another user"},
        404: {"description": "Task not found"},
    },
)
def get_task(
    task_id: str,
    claims: TokenClaims = Depends(get_current_user),
    repo: TaskRepository = Depends(get_task_repository),
) -> TaskResponse:
    return TaskResponse(task=TaskOut(**repo.get(task_id, claims.user_id)))  # type: ignore[arg-type]


# PUBLIC_INTERFACE
@router.put(
    "/{task_id}",
    response_model=TaskResponse,
    summary="Update Task",
    description=(
        "Partially update a task. Any of title, description and status may be sent; "
        "omitted fields are left unchanged and an empty description clears it. "
        "Ownership is checked before the body is validated."
    ),
    responses={
        200: {"description": "Task updated"},
        400: {"description": "Validation error"},
        401: {"description": "Not authenticated"},
        403: {"description": "Task belongs to another user"},
        404: {"description": "Task not found"},
    },
)
def update_task(
    task_id: str,
    payload: Dict[str, Any] = Body(..., examples=[{"status": "done"}]),
    claims: TokenClaims = Depends(get_current_user),
    repo: TaskRepository = Depends(get_task_repository),
) -> TaskResponse:
    updated = repo.update(task_id, claims.user_id, payload)
    return TaskResponse(task=TaskOut(**updated))  # type: ignore[arg-type]


# PUBLIC_INTERFACE
@router.delete(
    "/{task_id}",
    response_model=MessageResponse,
    summary="Delete Task",
    description="Delete a task owned by the current user.",
    responses={
        200: {"description": "Task deleted"},
        401: {"description": "Not authenticated"},
        403: {"description": "Task belongs to another user"},
        404: {"description": "Task not found"},
    },
)
def delete_task(
    task_id: str,
    claims: TokenClaims = Depends(get_current_user),
    repo: TaskRepository = Depends(get_task_repository),
) -> MessageResponse:
    repo.delete(task_id, claims.user_id)
    return MessageResponse(message="Task deleted successfully")

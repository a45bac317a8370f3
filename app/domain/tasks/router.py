"""Task router - FastAPI endpoints for tasks and comments"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...models import User
from ...shared.schemas import CountResponse, MessageResponse
from .schemas import TaskCommentCreate, TaskCommentResponse, TaskCreate, TaskResponse, TaskUpdate
from .service import TaskService

router = APIRouter(prefix="/api", tags=["Tasks"])


def get_task_service(db: Session = Depends(get_db)) -> TaskService:
    """Dependency injection for TaskService"""
    return TaskService(db)


@router.get("/tasks", response_model=list[TaskResponse])
async def list_tasks(
    status: Optional[str] = Query(None),
    priority: Optional[str] = Query(None),
    assigned_to_id: Optional[int] = Query(None, alias="assignedToId"),
    client_id: Optional[int] = Query(None, alias="clientId"),
    include_completed: bool = Query(True, alias="includeCompleted"),
    current_user: User = Depends(get_current_user),
    service: TaskService = Depends(get_task_service),
):
    """List tasks; open tasks past their due date are marked overdue first"""
    return service.list_tasks(
        current_user,
        status=status,
        priority=priority,
        assigned_to_id=assigned_to_id,
        client_id=client_id,
        include_completed=include_completed,
    )


@router.get("/tasks/pending/count", response_model=CountResponse)
async def pending_task_count(
    current_user: User = Depends(get_current_user),
    service: TaskService = Depends(get_task_service),
):
    return service.pending_count(current_user)


@router.get("/clients/{client_id}/tasks", response_model=list[TaskResponse])
async def list_client_tasks(
    client_id: int,
    current_user: User = Depends(get_current_user),
    service: TaskService = Depends(get_task_service),
):
    return service.list_client_tasks(client_id, current_user)


@router.post("/tasks", response_model=TaskResponse, status_code=201)
async def create_task(
    data: TaskCreate,
    current_user: User = Depends(get_current_user),
    service: TaskService = Depends(get_task_service),
):
    return service.create_task(data, current_user)


@router.put("/tasks/{task_id}", response_model=TaskResponse)
async def update_task(
    task_id: int,
    data: TaskUpdate,
    current_user: User = Depends(get_current_user),
    service: TaskService = Depends(get_task_service),
):
    return service.update_task(task_id, data, current_user)


@router.delete("/tasks/{task_id}", response_model=MessageResponse)
async def delete_task(
    task_id: int,
    current_user: User = Depends(get_current_user),
    service: TaskService = Depends(get_task_service),
):
    return service.delete_task(task_id, current_user)


@router.get("/tasks/{task_id}/comments", response_model=list[TaskCommentResponse])
async def list_task_comments(
    task_id: int,
    current_user: User = Depends(get_current_user),
    service: TaskService = Depends(get_task_service),
):
    return service.list_comments(task_id, current_user)


@router.post("/tasks/{task_id}/comments", response_model=TaskCommentResponse, status_code=201)
async def add_task_comment(
    task_id: int,
    data: TaskCommentCreate,
    current_user: User = Depends(get_current_user),
    service: TaskService = Depends(get_task_service),
):
    return service.add_comment(task_id, data.content, current_user)


__all__ = [
    "router",
    "list_tasks",
    "pending_task_count",
    "list_client_tasks",
    "create_task",
    "update_task",
    "delete_task",
    "list_task_comments",
    "add_task_comment",
]

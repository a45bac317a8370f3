"""Task service - Business logic for tasks and comments"""

import logging
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...auth import is_manager
from ...models import Task, TaskComment, User
from ...practice_time import utcnow
from ...services.notification_service import NotificationService
from ...utils.sanitization import strip_control_chars
from ..clients.repository import ClientRepository
from .repository import TaskRepository
from .schemas import TaskCommentResponse, TaskCreate, TaskResponse, TaskUpdate

logger = logging.getLogger(__name__)


def task_to_response(task: Task) -> TaskResponse:
    response = TaskResponse.model_validate(task)
    response.client_name = task.client.full_name if task.client else None
    response.assigned_to_name = task.assigned_to.full_name if task.assigned_to else None
    return response


def task_event_data(task: Task) -> dict:
    return {
        "id": task.id,
        "title": task.title,
        "priority": task.priority,
        "assignedToId": task.assigned_to_id,
        "assigneeName": task.assigned_to.full_name if task.assigned_to else None,
        "clientId": task.client_id,
        "clientName": task.client.full_name if task.client else None,
    }


class TaskService:
    """Service layer for task business logic"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = TaskRepository()

    def get_task(self, task_id: int, user: User) -> Task:
        task = self.repo.get_task(self.db, task_id, user.practice_id, None if is_manager(user) else user.id)
        if not task:
            raise HTTPException(status_code=404, detail="Task not found")
        return task

    def refresh_overdue(self, practice_id: int) -> int:
        changed = self.repo.mark_overdue(self.db, practice_id, utcnow())
        if changed:
            logger.info(f"⏰ Marked {changed} task(s) overdue in practice {practice_id}")
        return changed

    def list_tasks(
        self,
        user: User,
        status: Optional[str] = None,
        priority: Optional[str] = None,
        assigned_to_id: Optional[int] = None,
        client_id: Optional[int] = None,
        include_completed: bool = True,
    ) -> list[TaskResponse]:
        self.refresh_overdue(user.practice_id)

        query = self.repo.base_query(self.db, user.practice_id, None if is_manager(user) else user.id)
        if status:
            query = query.filter(Task.status == status)
        elif not include_completed:
            query = query.filter(Task.status != "completed")
        if priority:
            query = query.filter(Task.priority == priority)
        if assigned_to_id:
            query = query.filter(Task.assigned_to_id == assigned_to_id)
        if client_id:
            query = query.filter(Task.client_id == client_id)

        tasks = query.order_by(Task.due_date.is_(None), Task.due_date.asc(), Task.created_at.desc()).all()
        return [task_to_response(t) for t in tasks]

    def list_client_tasks(self, client_id: int, user: User) -> list[TaskResponse]:
        if not ClientRepository.get_visible(self.db, client_id, user):
            raise HTTPException(status_code=404, detail="Client not found")
        self.refresh_overdue(user.practice_id)
        tasks = (
            self.repo.base_query(self.db, user.practice_id)
            .filter(Task.client_id == client_id)
            .order_by(Task.created_at.desc())
            .all()
        )
        return [task_to_response(t) for t in tasks]

    def pending_count(self, user: User) -> dict:
        self.refresh_overdue(user.practice_id)
        assigned_to = None if is_manager(user) else user.id
        return {"count": self.repo.count_pending(self.db, user.practice_id, assigned_to)}

    def create_task(self, data: TaskCreate, user: User) -> TaskResponse:
        self._check_links(data.client_id, data.assigned_to_id, user)
        task = Task(
            practice_id=user.practice_id,
            created_by_id=user.id,
            title=strip_control_chars(data.title),
            description=strip_control_chars(data.description),
            client_id=data.client_id,
            assigned_to_id=data.assigned_to_id,
            status=data.status,
            priority=data.priority,
            due_date=data.due_date,
            completed_at=utcnow() if data.status == "completed" else None,
        )
        self.db.add(task)
        self.db.commit()
        self.db.refresh(task)
        logger.info(f"✅ Created task {task.id}")

        if task.assigned_to_id:
            NotificationService(self.db).process_event(
                user.practice_id, "task_assigned", task_event_data(task), "task", actor_id=user.id
            )
        return task_to_response(task)

    def update_task(self, task_id: int, data: TaskUpdate, user: User) -> TaskResponse:
        task = self.get_task(task_id, user)
        updates = data.model_dump(exclude_unset=True)
        for key in ("title", "status", "priority"):
            if key in updates and updates[key] is None:
                updates.pop(key)
        self._check_links(updates.get("client_id"), updates.get("assigned_to_id"), user)

        previous_assignee = task.assigned_to_id
        previous_status = task.status
        for key, value in updates.items():
            setattr(task, key, strip_control_chars(value) if isinstance(value, str) else value)

        if task.status == "completed" and previous_status != "completed":
            task.completed_at = utcnow()
        elif task.status != "completed" and previous_status == "completed":
            task.completed_at = None

        self.db.commit()
        self.db.refresh(task)
        logger.info(f"✅ Updated task {task.id}")

        if task.assigned_to_id and task.assigned_to_id != previous_assignee:
            NotificationService(self.db).process_event(
                user.practice_id, "task_assigned", task_event_data(task), "task", actor_id=user.id
            )
        return task_to_response(task)

    def delete_task(self, task_id: int, user: User) -> dict:
        task = self.get_task(task_id, user)
        self.db.delete(task)
        self.db.commit()
        return {"message": "Task deleted"}

    def list_comments(self, task_id: int, user: User) -> list[TaskCommentResponse]:
        task = self.get_task(task_id, user)
        return [self._comment_to_response(c) for c in self.repo.get_comments(self.db, task.id)]

    def add_comment(self, task_id: int, content: str, user: User) -> TaskCommentResponse:
        task = self.get_task(task_id, user)
        comment = TaskComment(task_id=task.id, author_id=user.id, content=strip_control_chars(content))
        self.db.add(comment)
        self.db.commit()
        self.db.refresh(comment)
        return self._comment_to_response(comment)

    def _check_links(self, client_id: Optional[int], assigned_to_id: Optional[int], user: User) -> None:
        if client_id and not ClientRepository.get_in_practice(self.db, client_id, user.practice_id):
            raise HTTPException(status_code=400, detail="Client not found in this practice")
        if assigned_to_id and not ClientRepository.get_therapist(self.db, user.practice_id, assigned_to_id):
            raise HTTPException(status_code=400, detail="Assignee not found in this practice")

    @staticmethod
    def _comment_to_response(comment: TaskComment) -> TaskCommentResponse:
        response = TaskCommentResponse.model_validate(comment)
        response.author_name = comment.author.full_name if comment.author else None
        return response

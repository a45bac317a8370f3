"""Task repository - Database operations for tasks and task comments"""

from datetime import datetime
from typing import Optional

from sqlalchemy import or_
from sqlalchemy.orm import Query, Session, joinedload

from ...models import Task, TaskComment

OPEN_STATUSES = ("pending", "in_progress")


class TaskRepository:
    """Repository for task database operations"""

    @staticmethod
    def base_query(db: Session, practice_id: int, visible_to_user_id: Optional[int] = None) -> Query:
        query = (
            db.query(Task)
            .options(joinedload(Task.client), joinedload(Task.assigned_to))
            .filter(Task.practice_id == practice_id)
        )
        if visible_to_user_id is not None:
            query = query.filter(
                or_(Task.assigned_to_id == visible_to_user_id, Task.created_by_id == visible_to_user_id)
            )
        return query

    @staticmethod
    def get_task(
        db: Session, task_id: int, practice_id: int, visible_to_user_id: Optional[int] = None
    ) -> Optional[Task]:
        return TaskRepository.base_query(db, practice_id, visible_to_user_id).filter(Task.id == task_id).first()

    @staticmethod
    def mark_overdue(db: Session, practice_id: int, now: datetime) -> int:
        """Flip open tasks past their due date to overdue. Returns rows changed."""
        changed = (
            db.query(Task)
            .filter(
                Task.practice_id == practice_id,
                Task.status.in_(OPEN_STATUSES),
                Task.due_date.isnot(None),
                Task.due_date < now,
            )
            .update({Task.status: "overdue"}, synchronize_session=False)
        )
        db.commit()
        return changed

    @staticmethod
    def count_pending(db: Session, practice_id: int, assigned_to_id: Optional[int] = None) -> int:
        query = db.query(Task).filter(Task.practice_id == practice_id, Task.status.in_(("pending", "overdue")))
        if assigned_to_id is not None:
            query = query.filter(Task.assigned_to_id == assigned_to_id)
        return query.count()

    @staticmethod
    def get_comments(db: Session, task_id: int) -> list[TaskComment]:
        return (
            db.query(TaskComment)
            .options(joinedload(TaskComment.author))
            .filter(TaskComment.task_id == task_id)
            .order_by(TaskComment.created_at.asc(), TaskComment.id.asc())
            .all()
        )

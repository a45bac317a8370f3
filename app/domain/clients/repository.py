"""Client repository - Database operations for clients"""

from typing import Optional

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Query, Session

from ...models import Client, Task, TherapySession, User


SORT_COLUMNS = {
    "name": Client.full_name,
    "status": Client.status,
    "therapist": User.full_name,
    "lastSession": Client.last_session_date,
    "createdAt": Client.created_at,
}


class ClientRepository:
    """Repository for client database operations"""

    @staticmethod
    def base_query(db: Session, user: User) -> Query:
        """Clients the user may see: the whole practice for managers, assigned clients for therapists"""
        query = db.query(Client).filter(Client.practice_id == user.practice_id)
        if user.role == "therapist":
            query = query.filter(Client.assigned_therapist_id == user.id)
        return query

    @staticmethod
    def get_visible(db: Session, client_id: int, user: User) -> Optional[Client]:
        return ClientRepository.base_query(db, user).filter(Client.id == client_id).first()

    @staticmethod
    def restrict_to_caseload(query: Query, user: User, client_column, therapist_column=None) -> Query:
        """Limit rows hanging off a client to the therapist's caseload; managers see the practice"""
        if user.role != "therapist":
            return query
        assigned = select(Client.id).where(Client.assigned_therapist_id == user.id)
        condition = client_column.in_(assigned)
        if therapist_column is not None:
            condition = or_(condition, therapist_column == user.id)
        return query.filter(condition)

    @staticmethod
    def get_in_practice(db: Session, client_id: int, practice_id: int) -> Optional[Client]:
        return db.query(Client).filter(Client.id == client_id, Client.practice_id == practice_id).first()

    @staticmethod
    def apply_filters(
        query: Query,
        search: Optional[str] = None,
        status: Optional[str] = None,
        stage: Optional[str] = None,
        therapist_id: Optional[int] = None,
        client_type: Optional[str] = None,
        has_portal_access: Optional[bool] = None,
    ) -> Query:
        if search:
            term = f"%{search.strip().lower()}%"
            query = query.filter(
                or_(
                    func.lower(Client.full_name).like(term),
                    func.lower(Client.email).like(term),
                    func.lower(Client.phone).like(term),
                    func.lower(Client.client_id).like(term),
                )
            )
        if status:
            query = query.filter(Client.status == status)
        if stage:
            query = query.filter(Client.stage == stage)
        if therapist_id:
            query = query.filter(Client.assigned_therapist_id == therapist_id)
        if client_type:
            query = query.filter(Client.client_type == client_type)
        if has_portal_access is not None:
            query = query.filter(Client.has_portal_access.is_(has_portal_access))
        return query

    @staticmethod
    def apply_sort(query: Query, sort_by: str = "name", sort_order: str = "asc") -> Query:
        column = SORT_COLUMNS.get(sort_by, Client.full_name)
        if sort_by == "therapist":
            query = query.outerjoin(User, Client.assigned_therapist_id == User.id)
        ordering = column.desc() if sort_order == "desc" else column.asc()
        return query.order_by(ordering, Client.id.asc())

    @staticmethod
    def get_activity_counts(db: Session, client_ids: list[int]) -> tuple[dict[int, int], dict[int, int]]:
        """(session counts, open task counts) keyed by client id"""
        if not client_ids:
            return {}, {}
        session_counts = dict(
            db.query(TherapySession.client_id, func.count(TherapySession.id))
            .filter(TherapySession.client_id.in_(client_ids))
            .group_by(TherapySession.client_id)
            .all()
        )
        task_counts = dict(
            db.query(Task.client_id, func.count(Task.id))
            .filter(Task.client_id.in_(client_ids), Task.status != "completed")
            .group_by(Task.client_id)
            .all()
        )
        return session_counts, task_counts

    @staticmethod
    def count_by(query: Query, column) -> dict[str, int]:
        return dict(query.with_entities(column, func.count(Client.id)).group_by(column).all())

    @staticmethod
    def next_client_code(db: Session, practice_id: int, year: int) -> str:
        """Next CL-YYYY-NNNN code; the sequence restarts every year per practice"""
        prefix = f"CL-{year}-"
        codes = (
            db.query(Client.client_id)
            .filter(Client.practice_id == practice_id, Client.client_id.like(f"{prefix}%"))
            .all()
        )
        highest = 0
        for (code,) in codes:
            try:
                highest = max(highest, int(code[len(prefix):]))
            except ValueError:
                continue
        return f"{prefix}{highest + 1:04d}"

    @staticmethod
    def create_client(db: Session, practice_id: int, **client_data) -> Client:
        client = Client(practice_id=practice_id, **client_data)
        db.add(client)
        db.commit()
        db.refresh(client)
        return client

    @staticmethod
    def update_client(db: Session, client: Client, **updates) -> Client:
        for key, value in updates.items():
            if hasattr(client, key):
                setattr(client, key, value)
        db.commit()
        db.refresh(client)
        return client

    @staticmethod
    def get_practice_clients_by_ids(db: Session, practice_id: int, client_ids: list[int]) -> list[Client]:
        if not client_ids:
            return []
        return db.query(Client).filter(Client.practice_id == practice_id, Client.id.in_(client_ids)).all()

    @staticmethod
    def get_therapist(db: Session, practice_id: int, therapist_id: int) -> Optional[User]:
        return (
            db.query(User)
            .filter(User.id == therapist_id, User.practice_id == practice_id, User.is_active.is_(True))
            .first()
        )

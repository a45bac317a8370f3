"""Scheduling repository - Database operations for sessions and rooms"""

from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.orm import Session, joinedload

from ...models import Room, TherapySession, User
from ..clients.repository import ClientRepository

# Longest bookable session; bounds the overlap candidate window
MAX_SESSION_MINUTES = 480


class SchedulingRepository:
    """Repository for session and room database operations"""

    @staticmethod
    def get_session(
        db: Session, session_id: int, practice_id: int, viewer: Optional[User] = None
    ) -> Optional[TherapySession]:
        query = db.query(TherapySession).filter(
            TherapySession.id == session_id, TherapySession.practice_id == practice_id
        )
        if viewer is not None:
            query = ClientRepository.restrict_to_caseload(
                query, viewer, TherapySession.client_id, TherapySession.therapist_id
            )
        return query.first()

    @staticmethod
    def list_sessions(
        db: Session,
        practice_id: int,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        therapist_id: Optional[int] = None,
        client_id: Optional[int] = None,
        status: Optional[str] = None,
        viewer: Optional[User] = None,
    ) -> list[TherapySession]:
        query = (
            db.query(TherapySession)
            .options(joinedload(TherapySession.client), joinedload(TherapySession.therapist))
            .filter(TherapySession.practice_id == practice_id)
        )
        if start is not None:
            query = query.filter(TherapySession.session_date >= start)
        if end is not None:
            query = query.filter(TherapySession.session_date < end)
        if therapist_id:
            query = query.filter(TherapySession.therapist_id == therapist_id)
        if client_id:
            query = query.filter(TherapySession.client_id == client_id)
        if status:
            query = query.filter(TherapySession.status == status)
        if viewer is not None:
            query = ClientRepository.restrict_to_caseload(
                query, viewer, TherapySession.client_id, TherapySession.therapist_id
            )
        return query.order_by(TherapySession.session_date.asc()).all()

    @staticmethod
    def get_overlap_candidates(
        db: Session,
        practice_id: int,
        start: datetime,
        end: datetime,
        therapist_id: Optional[int] = None,
        room_id: Optional[int] = None,
        exclude_session_id: Optional[int] = None,
    ) -> list[TherapySession]:
        """Non-cancelled sessions for the therapist or room that start inside the overlap window"""
        query = db.query(TherapySession).filter(
            TherapySession.practice_id == practice_id,
            TherapySession.status != "cancelled",
            TherapySession.session_date < end,
            TherapySession.session_date > start - timedelta(minutes=MAX_SESSION_MINUTES),
        )
        if therapist_id is not None and room_id is not None:
            query = query.filter(
                (TherapySession.therapist_id == therapist_id) | (TherapySession.room_id == room_id)
            )
        elif therapist_id is not None:
            query = query.filter(TherapySession.therapist_id == therapist_id)
        elif room_id is not None:
            query = query.filter(TherapySession.room_id == room_id)
        if exclude_session_id:
            query = query.filter(TherapySession.id != exclude_session_id)
        return query.order_by(TherapySession.session_date.asc()).all()

    @staticmethod
    def get_next_scheduled(db: Session, client_id: int, after: datetime) -> Optional[TherapySession]:
        return (
            db.query(TherapySession)
            .filter(
                TherapySession.client_id == client_id,
                TherapySession.status == "scheduled",
                TherapySession.session_date >= after,
            )
            .order_by(TherapySession.session_date.asc())
            .first()
        )

    @staticmethod
    def get_past_scheduled(
        db: Session, practice_id: int, before: datetime, therapist_id: Optional[int] = None
    ) -> list[TherapySession]:
        query = db.query(TherapySession).filter(
            TherapySession.practice_id == practice_id,
            TherapySession.status == "scheduled",
            TherapySession.session_date < before,
        )
        if therapist_id:
            query = query.filter(TherapySession.therapist_id == therapist_id)
        return query.order_by(TherapySession.session_date.asc()).all()

    # Rooms

    @staticmethod
    def get_rooms(db: Session, practice_id: int, include_inactive: bool = False) -> list[Room]:
        query = db.query(Room).filter(Room.practice_id == practice_id)
        if not include_inactive:
            query = query.filter(Room.is_active.is_(True))
        return query.order_by(Room.room_number.asc()).all()

    @staticmethod
    def get_room(db: Session, room_id: int, practice_id: int) -> Optional[Room]:
        return db.query(Room).filter(Room.id == room_id, Room.practice_id == practice_id).first()

    @staticmethod
    def get_room_by_number(db: Session, practice_id: int, room_number: str) -> Optional[Room]:
        return db.query(Room).filter(Room.practice_id == practice_id, Room.room_number == room_number).first()

"""Scheduling service - Sessions, conflict detection and rooms"""

import logging
from datetime import datetime, timedelta
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...auth import CLINICAL_ROLES, is_manager
from ...models import Client, Room, TherapySession, User
from ...models_billing import Service
from ...practice_time import local_date_to_utc_bounds, utc_to_local, utcnow
from ...services.notification_service import NotificationService
from ..billing.service import ensure_session_billing
from ..clients.repository import ClientRepository
from .repository import SchedulingRepository
from .schemas import (
    ConflictCheckResponse,
    OverdueSessionResponse,
    RoomCreate,
    RoomUpdate,
    SessionConflict,
    SessionCreate,
    SessionResponse,
    SessionUpdate,
)

logger = logging.getLogger(__name__)

DEFAULT_SESSION_MINUTES = 50


def sessions_overlap(a_start: datetime, a_minutes: int, b_start: datetime, b_minutes: int) -> bool:
    """Half-open interval overlap: back-to-back sessions do not conflict"""
    return a_start < b_start + timedelta(minutes=b_minutes) and b_start < a_start + timedelta(minutes=a_minutes)


def session_event_data(session: TherapySession, tz: Optional[str]) -> dict:
    """Entity data passed to notification triggers"""
    return {
        "id": session.id,
        "clientId": session.client_id,
        "clientName": session.client.full_name if session.client else None,
        "therapistId": session.therapist_id,
        "sessionType": session.session_type,
        "sessionDateLocal": utc_to_local(session.session_date, tz).strftime("%b %d, %Y %I:%M %p"),
    }


def session_to_response(session: TherapySession) -> SessionResponse:
    response = SessionResponse.model_validate(session)
    response.client_name = session.client.full_name if session.client else None
    response.therapist_name = session.therapist.full_name if session.therapist else None
    response.service_name = session.service.service_name if session.service else None
    response.room_name = session.room.room_name if session.room else None
    return response


class SchedulingService:
    """Service layer for session and room business logic"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = SchedulingRepository()

    # ------------------------------------------------------------------
    # Conflicts
    # ------------------------------------------------------------------

    def find_conflicts(
        self,
        practice_id: int,
        therapist_id: Optional[int],
        start: datetime,
        duration: int,
        room_id: Optional[int] = None,
        exclude_session_id: Optional[int] = None,
    ) -> list[SessionConflict]:
        candidates = self.repo.get_overlap_candidates(
            self.db,
            practice_id,
            start,
            start + timedelta(minutes=duration),
            therapist_id=therapist_id,
            room_id=room_id,
            exclude_session_id=exclude_session_id,
        )
        conflicts = []
        for other in candidates:
            if not sessions_overlap(start, duration, other.session_date, other.duration):
                continue
            conflict_types = []
            if therapist_id is not None and other.therapist_id == therapist_id:
                conflict_types.append("therapist")
            if room_id is not None and other.room_id == room_id:
                conflict_types.append("room")
            for conflict_type in conflict_types:
                conflicts.append(
                    SessionConflict(
                        session_id=other.id,
                        conflict_type=conflict_type,
                        session_date=other.session_date,
                        duration=other.duration,
                        client_name=other.client.full_name if other.client else None,
                        therapist_name=other.therapist.full_name if other.therapist else None,
                    )
                )
        return conflicts

    def check_conflicts(
        self,
        user: User,
        therapist_id: int,
        session_date: datetime,
        duration: int,
        room_id: Optional[int] = None,
        exclude_session_id: Optional[int] = None,
    ) -> ConflictCheckResponse:
        conflicts = self.find_conflicts(
            user.practice_id, therapist_id, session_date, duration, room_id, exclude_session_id
        )
        return ConflictCheckResponse(has_conflicts=bool(conflicts), conflicts=conflicts)

    def _raise_on_conflicts(self, conflicts: list[SessionConflict]) -> None:
        if conflicts:
            logger.info(f"⚠️ Scheduling conflict with {len(conflicts)} session(s)")
            raise HTTPException(
                status_code=409,
                detail={
                    "message": "The therapist or room is already booked at this time",
                    "conflicts": [c.model_dump(mode="json", by_alias=True) for c in conflicts],
                },
            )

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    def get_session(self, session_id: int, user: User) -> TherapySession:
        session = self.repo.get_session(self.db, session_id, user.practice_id, viewer=user)
        if not session:
            raise HTTPException(status_code=404, detail="Session not found")
        return session

    def list_sessions(
        self,
        user: User,
        date: Optional[str] = None,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
        therapist_id: Optional[int] = None,
        client_id: Optional[int] = None,
        status: Optional[str] = None,
    ) -> list[SessionResponse]:
        tz = user.practice.timezone
        start = end = None
        try:
            if date:
                start, end = local_date_to_utc_bounds(date, tz)
            else:
                if start_date:
                    start = local_date_to_utc_bounds(start_date, tz)[0]
                if end_date:
                    end = local_date_to_utc_bounds(end_date, tz)[1]
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e

        sessions = self.repo.list_sessions(
            self.db,
            user.practice_id,
            start=start,
            end=end,
            therapist_id=therapist_id,
            client_id=client_id,
            status=status,
            viewer=user,
        )
        return [session_to_response(s) for s in sessions]

    def list_client_sessions(self, client_id: int, user: User) -> list[SessionResponse]:
        client = ClientRepository.get_visible(self.db, client_id, user)
        if not client:
            raise HTTPException(status_code=404, detail="Client not found")
        sessions = self.repo.list_sessions(self.db, user.practice_id, client_id=client.id)
        return [session_to_response(s) for s in reversed(sessions)]

    def create_session(self, data: SessionCreate, user: User) -> SessionResponse:
        client = ClientRepository.get_visible(self.db, data.client_id, user)
        if not client:
            raise HTTPException(status_code=400, detail="Client not found in this practice")
        self._require_therapist(user.practice_id, data.therapist_id)

        session = self.book_session(
            client,
            therapist_id=data.therapist_id,
            session_date=data.session_date,
            session_type=data.session_type,
            service_id=data.service_id,
            room_id=data.room_id,
            duration=data.duration,
            notes=data.notes,
            allow_conflicts=data.allow_conflicts,
            actor_id=user.id,
        )
        return session_to_response(session)

    def book_session(
        self,
        client: Client,
        therapist_id: int,
        session_date: datetime,
        session_type: str,
        service_id: Optional[int] = None,
        room_id: Optional[int] = None,
        duration: Optional[int] = None,
        notes: Optional[str] = None,
        allow_conflicts: bool = False,
        booked_via_portal: bool = False,
        actor_id: Optional[int] = None,
    ) -> TherapySession:
        """Create a session after validating service, room and availability; emits session_scheduled"""
        practice_id = client.practice_id
        service = self._get_active_service(practice_id, service_id) if service_id else None
        if room_id:
            self._get_active_room(practice_id, room_id)

        duration = duration or (service.duration if service else DEFAULT_SESSION_MINUTES)
        if not allow_conflicts:
            self._raise_on_conflicts(
                self.find_conflicts(practice_id, therapist_id, session_date, duration, room_id)
            )

        session = TherapySession(
            practice_id=practice_id,
            client_id=client.id,
            therapist_id=therapist_id,
            service_id=service.id if service else None,
            room_id=room_id,
            session_date=session_date,
            duration=duration,
            session_type=session_type,
            status="scheduled",
            notes=notes,
            calculated_rate=service.base_rate if service else None,
            booked_via_portal=booked_via_portal,
        )
        self.db.add(session)
        self.db.flush()
        self._refresh_next_appointment(client)
        self.db.commit()
        self.db.refresh(session)
        logger.info(f"✅ Session {session.id} scheduled for client {client.id}")

        NotificationService(self.db).process_event(
            practice_id,
            "session_scheduled",
            session_event_data(session, client.practice.timezone),
            "session",
            actor_id=actor_id,
        )
        return session

    def update_session(self, session_id: int, data: SessionUpdate, user: User) -> SessionResponse:
        session = self.get_session(session_id, user)
        updates = data.model_dump(exclude_unset=True, exclude={"allow_conflicts"})
        updates = {k: v for k, v in updates.items() if v is not None or k in ("service_id", "room_id", "notes")}

        if "therapist_id" in updates:
            self._require_therapist(user.practice_id, updates["therapist_id"])
        if updates.get("service_id"):
            service = self._get_active_service(user.practice_id, updates["service_id"])
            if service.id != session.service_id:
                updates["calculated_rate"] = service.base_rate
        if updates.get("room_id"):
            self._get_active_room(user.practice_id, updates["room_id"])

        previous_status = session.status
        new_status = updates.get("status", previous_status)
        timing_changed = any(
            key in updates and updates[key] != getattr(session, key)
            for key in ("session_date", "duration", "therapist_id", "room_id")
        )
        if timing_changed and new_status != "cancelled" and not data.allow_conflicts:
            self._raise_on_conflicts(
                self.find_conflicts(
                    user.practice_id,
                    updates.get("therapist_id", session.therapist_id),
                    updates.get("session_date", session.session_date),
                    updates.get("duration", session.duration),
                    updates.get("room_id", session.room_id),
                    exclude_session_id=session.id,
                )
            )

        for key, value in updates.items():
            setattr(session, key, value)
        self.db.flush()

        client = session.client
        if new_status != previous_status and new_status == "completed":
            if client.last_session_date is None or session.session_date > client.last_session_date:
                client.last_session_date = session.session_date
            ensure_session_billing(self.db, session)
        self._refresh_next_appointment(client)
        self.db.commit()
        self.db.refresh(session)
        logger.info(f"✅ Updated session {session.id}")

        if new_status != previous_status and new_status == "cancelled":
            NotificationService(self.db).process_event(
                user.practice_id,
                "session_cancelled",
                session_event_data(session, user.practice.timezone),
                "session",
                actor_id=user.id,
            )
        return session_to_response(session)

    def delete_session(self, session_id: int, user: User) -> dict:
        session = self.get_session(session_id, user)
        if any(note.is_finalized for note in session.session_notes):
            raise HTTPException(status_code=409, detail="Session has a finalized session note and cannot be deleted")
        client = session.client
        self.db.delete(session)
        self.db.flush()
        self._refresh_next_appointment(client)
        self.db.commit()
        logger.info(f"🗑️ Deleted session {session_id}")
        return {"message": "Session deleted"}

    def list_overdue(self, user: User) -> list[OverdueSessionResponse]:
        """Sessions whose time has passed but are still marked scheduled"""
        now = utcnow()
        sessions = self.repo.get_past_scheduled(
            self.db, user.practice_id, now, therapist_id=None if is_manager(user) else user.id
        )
        return [
            OverdueSessionResponse(
                **session_to_response(s).model_dump(),
                days_overdue=(now - s.session_date).days,
            )
            for s in sessions
            if s.session_date + timedelta(minutes=s.duration) <= now
        ]

    # ------------------------------------------------------------------
    # Rooms
    # ------------------------------------------------------------------

    def list_rooms(self, user: User) -> list[Room]:
        return self.repo.get_rooms(self.db, user.practice_id)

    def create_room(self, data: RoomCreate, user: User) -> Room:
        if self.repo.get_room_by_number(self.db, user.practice_id, data.room_number):
            raise HTTPException(status_code=409, detail=f"Room {data.room_number} already exists")
        room = Room(practice_id=user.practice_id, **data.model_dump())
        self.db.add(room)
        self.db.commit()
        self.db.refresh(room)
        logger.info(f"✅ Created room {room.room_number}")
        return room

    def update_room(self, room_id: int, data: RoomUpdate, user: User) -> Room:
        room = self.repo.get_room(self.db, room_id, user.practice_id)
        if not room:
            raise HTTPException(status_code=404, detail="Room not found")
        updates = data.model_dump(exclude_unset=True, exclude_none=True)
        new_number = updates.get("room_number")
        if new_number and new_number != room.room_number:
            if self.repo.get_room_by_number(self.db, user.practice_id, new_number):
                raise HTTPException(status_code=409, detail=f"Room {new_number} already exists")
        for key, value in updates.items():
            setattr(room, key, value)
        self.db.commit()
        self.db.refresh(room)
        return room

    def deactivate_room(self, room_id: int, user: User) -> dict:
        room = self.repo.get_room(self.db, room_id, user.practice_id)
        if not room:
            raise HTTPException(status_code=404, detail="Room not found")
        room.is_active = False
        self.db.commit()
        return {"message": "Room deactivated"}

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _require_therapist(self, practice_id: int, therapist_id: int) -> User:
        therapist = ClientRepository.get_therapist(self.db, practice_id, therapist_id)
        if not therapist or therapist.role not in CLINICAL_ROLES:
            raise HTTPException(status_code=400, detail="Therapist not found in this practice")
        return therapist

    def _get_active_service(self, practice_id: int, service_id: int) -> Service:
        service = (
            self.db.query(Service)
            .filter(Service.id == service_id, Service.practice_id == practice_id, Service.is_active.is_(True))
            .first()
        )
        if not service:
            raise HTTPException(status_code=400, detail="Service not found or inactive")
        return service

    def _get_active_room(self, practice_id: int, room_id: int) -> Room:
        room = self.repo.get_room(self.db, room_id, practice_id)
        if not room or not room.is_active:
            raise HTTPException(status_code=400, detail="Room not found or inactive")
        return room

    def _refresh_next_appointment(self, client: Client) -> None:
        upcoming = self.repo.get_next_scheduled(self.db, client.id, utcnow())
        client.next_appointment_date = upcoming.session_date if upcoming else None

import logging
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from ..auth import get_current_user, is_manager
from ..database import get_db
from ..domain.clients.repository import ClientRepository
from ..domain.scheduling.schemas import SessionResponse
from ..domain.scheduling.service import session_to_response
from ..models import Task, TherapySession, User
from ..practice_time import local_date_to_utc_bounds, local_today, utcnow
from ..shared.schemas import CamelModel

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/dashboard", tags=["Dashboard"])

RECENT_LIMIT = 5


class DashboardStats(CamelModel):
    active_clients: int
    total_clients: int
    today_sessions: int
    completed_today: int
    pending_tasks: int
    urgent_tasks: int
    today_revenue: Optional[float] = None
    recent_sessions: list[SessionResponse]
    upcoming_sessions: list[SessionResponse]


@router.get("/stats", response_model=DashboardStats)
async def dashboard_stats(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Headline numbers for the signed-in user; therapists see their own caseload"""
    manager = is_manager(current_user)
    tz = current_user.practice.timezone

    clients = ClientRepository.base_query(db, current_user)
    total_clients = clients.count()
    active_clients = clients.filter_by(status="active").count()

    sessions = db.query(TherapySession).filter(TherapySession.practice_id == current_user.practice_id)
    if not manager:
        sessions = sessions.filter(TherapySession.therapist_id == current_user.id)

    day_start, day_end = local_date_to_utc_bounds(local_today(tz), tz)
    today = sessions.filter(
        TherapySession.session_date >= day_start,
        TherapySession.session_date < day_end,
        TherapySession.status != "cancelled",
    )
    completed_today = today.filter(TherapySession.status == "completed")

    tasks = db.query(Task).filter(
        Task.practice_id == current_user.practice_id,
        Task.status.in_(["pending", "in_progress", "overdue"]),
    )
    if not manager:
        tasks = tasks.filter(or_(Task.assigned_to_id == current_user.id, Task.created_by_id == current_user.id))

    today_revenue = None
    if manager:
        today_revenue = float(
            completed_today.with_entities(func.coalesce(func.sum(TherapySession.calculated_rate), 0.0)).scalar() or 0.0
        )

    recent = (
        sessions.filter(TherapySession.status == "completed")
        .order_by(TherapySession.session_date.desc())
        .limit(RECENT_LIMIT)
        .all()
    )
    upcoming = (
        sessions.filter(TherapySession.status == "scheduled", TherapySession.session_date >= utcnow())
        .order_by(TherapySession.session_date.asc())
        .limit(RECENT_LIMIT)
        .all()
    )

    return DashboardStats(
        active_clients=active_clients,
        total_clients=total_clients,
        today_sessions=today.count(),
        completed_today=completed_today.count(),
        pending_tasks=tasks.count(),
        urgent_tasks=tasks.filter(Task.priority == "urgent").count(),
        today_revenue=today_revenue,
        recent_sessions=[session_to_response(s) for s in recent],
        upcoming_sessions=[session_to_response(s) for s in upcoming],
    )

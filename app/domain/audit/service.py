"""Audit service - search, statistics and CSV export of the practice audit trail"""

import csv
import logging
import math
from datetime import timedelta
from io import StringIO
from typing import Optional

from fastapi import HTTPException, Request
from fastapi.responses import StreamingResponse
from sqlalchemy import distinct, func
from sqlalchemy.orm import Query, Session

from ...models import Client, User
from ...models_audit import RISK_LEVELS, AuditLog, LoginAttempt
from ...practice_time import local_date_to_utc_bounds, utcnow
from ...services.audit_logger import AuditLogger
from .schemas import AuditLogListResponse, AuditLogResponse

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 200
EXPORT_COLUMNS = [
    "timestamp",
    "username",
    "action",
    "result",
    "resource_type",
    "resource_id",
    "client_id",
    "risk_level",
    "hipaa_relevant",
    "ip_address",
    "access_reason",
]


class AuditService:
    def __init__(self, db: Session):
        self.db = db

    def _filtered(
        self,
        user: User,
        user_id: Optional[int] = None,
        action: Optional[str] = None,
        resource_type: Optional[str] = None,
        risk_level: Optional[str] = None,
        client_id: Optional[int] = None,
        hipaa_only: bool = False,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
    ) -> Query:
        query = self.db.query(AuditLog).filter(AuditLog.practice_id == user.practice_id)
        if user_id is not None:
            query = query.filter(AuditLog.user_id == user_id)
        if action:
            query = query.filter(AuditLog.action == action)
        if resource_type:
            query = query.filter(AuditLog.resource_type == resource_type)
        if risk_level:
            if risk_level not in RISK_LEVELS:
                raise HTTPException(status_code=400, detail=f"Invalid risk level '{risk_level}'")
            query = query.filter(AuditLog.risk_level == risk_level)
        if client_id is not None:
            query = query.filter(AuditLog.client_id == client_id)
        if hipaa_only:
            query = query.filter(AuditLog.hipaa_relevant.is_(True))

        tz = user.practice.timezone if user.practice else None
        try:
            if start_date:
                query = query.filter(AuditLog.timestamp >= local_date_to_utc_bounds(start_date, tz)[0])
            if end_date:
                query = query.filter(AuditLog.timestamp < local_date_to_utc_bounds(end_date, tz)[1])
        except ValueError:
            raise HTTPException(status_code=400, detail="Invalid date format. Use YYYY-MM-DD")
        return query

    def list_logs(self, user: User, page: int = 1, page_size: int = 50, **filters) -> AuditLogListResponse:
        page = max(page, 1)
        page_size = max(1, min(page_size, MAX_PAGE_SIZE))
        query = self._filtered(user, **filters)
        total = query.count()
        logs = (
            query.order_by(AuditLog.timestamp.desc(), AuditLog.id.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
            .all()
        )
        return AuditLogListResponse(
            logs=[AuditLogResponse.model_validate(entry) for entry in logs],
            total=total,
            page=page,
            page_size=page_size,
            total_pages=math.ceil(total / page_size) if total else 0,
        )

    def get_stats(self, user: User) -> dict:
        base = self.db.query(AuditLog).filter(AuditLog.practice_id == user.practice_id)
        since = utcnow() - timedelta(hours=24)

        by_risk = {level: 0 for level in RISK_LEVELS}
        by_risk.update(
            dict(base.with_entities(AuditLog.risk_level, func.count(AuditLog.id)).group_by(AuditLog.risk_level).all())
        )

        # Login attempts carry no practice; match them on the practice's staff and portal logins
        staff = self.db.query(User.username, User.email).filter(User.practice_id == user.practice_id).all()
        portal = (
            self.db.query(Client.portal_email)
            .filter(Client.practice_id == user.practice_id, Client.portal_email.isnot(None))
            .all()
        )
        logins = {value.lower() for row in staff for value in row if value}
        logins.update(row[0].lower() for row in portal)
        failed_logins = 0
        if logins:
            failed_logins = (
                self.db.query(LoginAttempt)
                .filter(
                    LoginAttempt.success.is_(False),
                    LoginAttempt.attempted_at >= since,
                    func.lower(LoginAttempt.username).in_(logins),
                )
                .count()
            )

        return {
            "total_events": base.count(),
            "by_risk_level": by_risk,
            "events_last_24h": base.filter(AuditLog.timestamp >= since).count(),
            "failed_logins_last_24h": failed_logins,
            "unique_users": base.with_entities(func.count(distinct(AuditLog.user_id))).scalar() or 0,
            "hipaa_events": base.filter(AuditLog.hipaa_relevant.is_(True)).count(),
        }

    def export_csv(self, user: User, request: Optional[Request] = None, **filters) -> StreamingResponse:
        logger.info(f"📊 Audit log export requested by user {user.id}")
        logs = self._filtered(user, **filters).order_by(AuditLog.timestamp.desc(), AuditLog.id.desc()).all()

        output = StringIO()
        writer = csv.writer(output)
        writer.writerow(EXPORT_COLUMNS)
        for entry in logs:
            row = []
            for column in EXPORT_COLUMNS:
                value = getattr(entry, column)
                row.append(value.isoformat() if hasattr(value, "isoformat") else ("" if value is None else value))
            writer.writerow(row)

        AuditLogger(self.db, request).log_data_export(user, "audit_logs_csv", len(logs))

        output.seek(0)
        filename = f"audit_logs_{utcnow().strftime('%Y%m%d_%H%M%S')}.csv"
        logger.info(f"✅ Audit export successful: {filename} ({len(logs)} entries)")
        return StreamingResponse(
            iter([output.getvalue()]),
            media_type="text/csv",
            headers={
                "Content-Disposition": f"attachment; filename={filename}",
                "Cache-Control": "no-cache",
            },
        )

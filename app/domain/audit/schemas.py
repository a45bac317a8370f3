"""Audit domain schemas"""

from datetime import datetime
from typing import Any, Optional

from ...shared.schemas import CamelModel


class AuditLogResponse(CamelModel):
    id: int
    user_id: Optional[int] = None
    username: Optional[str] = None
    action: str
    result: str
    resource_type: Optional[str] = None
    resource_id: Optional[str] = None
    client_id: Optional[int] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    details: Optional[dict[str, Any]] = None
    risk_level: str
    hipaa_relevant: bool
    access_reason: Optional[str] = None
    timestamp: datetime


class AuditLogListResponse(CamelModel):
    logs: list[AuditLogResponse]
    total: int
    page: int
    page_size: int
    total_pages: int


class AuditStats(CamelModel):
    total_events: int
    by_risk_level: dict[str, int]
    events_last_24h: int
    failed_logins_last_24h: int
    unique_users: int
    hipaa_events: int

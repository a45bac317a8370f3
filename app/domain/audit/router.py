"""Audit router - admin access to the HIPAA audit trail"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from ...auth import require_roles
from ...database import get_db
from ...models import User
from .schemas import AuditLogListResponse, AuditStats
from .service import AuditService

router = APIRouter(prefix="/api/audit", tags=["Audit"])


def get_audit_service(db: Session = Depends(get_db)) -> AuditService:
    """Dependency injection for AuditService"""
    return AuditService(db)


def audit_filters(
    user_id: Optional[int] = Query(None, alias="userId"),
    action: Optional[str] = Query(None),
    resource_type: Optional[str] = Query(None, alias="resourceType"),
    risk_level: Optional[str] = Query(None, alias="riskLevel"),
    client_id: Optional[int] = Query(None, alias="clientId"),
    hipaa_only: bool = Query(False, alias="hipaaOnly"),
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
) -> dict:
    return {
        "user_id": user_id,
        "action": action,
        "resource_type": resource_type,
        "risk_level": risk_level,
        "client_id": client_id,
        "hipaa_only": hipaa_only,
        "start_date": start_date,
        "end_date": end_date,
    }


@router.get("/logs", response_model=AuditLogListResponse)
async def list_audit_logs(
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=200, alias="pageSize"),
    filters: dict = Depends(audit_filters),
    current_user: User = Depends(require_roles("admin")),
    service: AuditService = Depends(get_audit_service),
):
    return service.list_logs(current_user, page=page, page_size=page_size, **filters)


@router.get("/stats", response_model=AuditStats)
async def audit_stats(
    current_user: User = Depends(require_roles("admin")),
    service: AuditService = Depends(get_audit_service),
):
    return service.get_stats(current_user)


@router.get("/export")
async def export_audit_logs(
    request: Request,
    filters: dict = Depends(audit_filters),
    current_user: User = Depends(require_roles("admin")),
    service: AuditService = Depends(get_audit_service),
):
    """CSV of the filtered audit trail; the export itself is audited"""
    return service.export_csv(current_user, request, **filters)


__all__ = ["router", "list_audit_logs", "audit_stats", "export_audit_logs"]

"""Client router - FastAPI endpoints for client operations"""

import logging
from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from ...auth import get_current_user, require_roles
from ...database import get_db
from ...models import User
from ...shared.schemas import BulkResult, MessageResponse
from .schemas import (
    BulkClientIds,
    BulkPortalRequest,
    BulkReassignRequest,
    BulkStageRequest,
    BulkStatusRequest,
    ClientCreate,
    ClientListResponse,
    ClientResponse,
    ClientStats,
    ClientUpdate,
    DuplicateGroup,
    PortalInviteRequest,
    PortalInviteResponse,
)
from .service import ClientService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/clients", tags=["Clients"])

SortBy = Literal["name", "status", "therapist", "lastSession", "createdAt"]


def get_client_service(db: Session = Depends(get_db)) -> ClientService:
    """Dependency injection for ClientService"""
    return ClientService(db)


def client_filters(
    search: Optional[str] = Query(None),
    status: Optional[str] = Query(None),
    stage: Optional[str] = Query(None),
    therapist_id: Optional[int] = Query(None, alias="therapistId"),
    client_type: Optional[str] = Query(None, alias="clientType"),
    has_portal_access: Optional[bool] = Query(None, alias="hasPortalAccess"),
) -> dict:
    return {
        "search": search,
        "status": status,
        "stage": stage,
        "therapist_id": therapist_id,
        "client_type": client_type,
        "has_portal_access": has_portal_access,
    }


# ============================================================================
# LIST, STATS & EXPORT
# ============================================================================


@router.get("", response_model=ClientListResponse)
async def list_clients(
    page: int = Query(1, ge=1),
    page_size: int = Query(25, ge=1, le=100, alias="pageSize"),
    sort_by: SortBy = Query("name", alias="sortBy"),
    sort_order: Literal["asc", "desc"] = Query("asc", alias="sortOrder"),
    filters: dict = Depends(client_filters),
    current_user: User = Depends(get_current_user),
    service: ClientService = Depends(get_client_service),
):
    """Paged, filtered client list with session and open task counts"""
    return service.list_clients(
        current_user, page=page, page_size=page_size, sort_by=sort_by, sort_order=sort_order, **filters
    )


@router.get("/stats", response_model=ClientStats)
async def get_client_stats(
    current_user: User = Depends(get_current_user),
    service: ClientService = Depends(get_client_service),
):
    return service.get_stats(current_user)


@router.get("/export")
async def export_clients_csv(
    request: Request,
    filters: dict = Depends(client_filters),
    current_user: User = Depends(get_current_user),
    service: ClientService = Depends(get_client_service),
):
    """Export clients as CSV with the list filters"""
    return service.export_clients_csv(current_user, request, **filters)


@router.get("/duplicates", response_model=list[DuplicateGroup])
async def find_duplicate_clients(
    current_user: User = Depends(get_current_user),
    service: ClientService = Depends(get_client_service),
):
    return service.find_duplicates(current_user)


# ============================================================================
# BULK OPERATIONS
# ============================================================================


@router.post("/bulk/status", response_model=BulkResult)
async def bulk_update_status(
    data: BulkStatusRequest,
    current_user: User = Depends(get_current_user),
    service: ClientService = Depends(get_client_service),
):
    return service.bulk_update(data.client_ids, current_user, status=data.status)


@router.post("/bulk/stage", response_model=BulkResult)
async def bulk_update_stage(
    data: BulkStageRequest,
    current_user: User = Depends(get_current_user),
    service: ClientService = Depends(get_client_service),
):
    return service.bulk_update(data.client_ids, current_user, stage=data.stage)


@router.post("/bulk/reassign", response_model=BulkResult)
async def bulk_reassign(
    data: BulkReassignRequest,
    current_user: User = Depends(get_current_user),
    service: ClientService = Depends(get_client_service),
):
    return service.bulk_reassign(data.client_ids, data.therapist_id, current_user)


@router.post("/bulk/portal", response_model=BulkResult)
async def bulk_portal_access(
    data: BulkPortalRequest,
    current_user: User = Depends(get_current_user),
    service: ClientService = Depends(get_client_service),
):
    return service.bulk_update(data.client_ids, current_user, has_portal_access=data.enabled)


@router.post("/bulk/delete", response_model=BulkResult)
async def bulk_delete(
    data: BulkClientIds,
    current_user: User = Depends(require_roles("admin", "supervisor")),
    service: ClientService = Depends(get_client_service),
):
    return service.bulk_delete(data.client_ids, current_user)


# ============================================================================
# CORE CRUD OPERATIONS
# ============================================================================


@router.get("/{client_id}", response_model=ClientResponse)
async def get_client(
    client_id: int,
    request: Request,
    current_user: User = Depends(get_current_user),
    service: ClientService = Depends(get_client_service),
):
    return service.view_client(client_id, current_user, request)


@router.post("", response_model=ClientResponse, status_code=201)
async def create_client(
    data: ClientCreate,
    current_user: User = Depends(get_current_user),
    service: ClientService = Depends(get_client_service),
):
    return service.create_client(data, current_user)


@router.put("/{client_id}", response_model=ClientResponse)
async def update_client(
    client_id: int,
    data: ClientUpdate,
    current_user: User = Depends(get_current_user),
    service: ClientService = Depends(get_client_service),
):
    return service.update_client(client_id, data, current_user)


@router.delete("/{client_id}", response_model=MessageResponse)
async def delete_client(
    client_id: int,
    current_user: User = Depends(require_roles("admin", "supervisor")),
    service: ClientService = Depends(get_client_service),
):
    return service.delete_client(client_id, current_user)


@router.post("/{client_id}/portal-invite", response_model=PortalInviteResponse)
async def send_portal_invite(
    client_id: int,
    data: Optional[PortalInviteRequest] = None,
    current_user: User = Depends(get_current_user),
    service: ClientService = Depends(get_client_service),
):
    """Enable portal access and email the client an activation link"""
    return service.send_portal_invite(client_id, data.portal_email if data else None, current_user)


__all__ = [
    "router",
    "list_clients",
    "get_client_stats",
    "export_clients_csv",
    "find_duplicate_clients",
    "bulk_update_status",
    "bulk_update_stage",
    "bulk_reassign",
    "bulk_portal_access",
    "bulk_delete",
    "get_client",
    "create_client",
    "update_client",
    "delete_client",
    "send_portal_invite",
]

"""
Portal router - client-facing endpoints

Auth endpoints are public; everything else requires a portal session and
live portal access.
"""

from typing import Optional

from fastapi import APIRouter, Depends, File, Query, Request, Response, UploadFile
from sqlalchemy.orm import Session

from ...auth import clear_session_cookie, create_portal_token, get_current_portal_client, set_session_cookie
from ...config import PORTAL_COOKIE_NAME
from ...csrf import generate_csrf_token, set_csrf_cookie
from ...database import get_db
from ...models import Client
from ...rate_limiter import create_rate_limiter
from ...shared.schemas import MessageResponse
from ..assessments.schemas import AssignmentDetail, BatchResponseSave, BatchSaveResult
from ..billing.schemas import BillingRecordResponse
from ..documents.schemas import DocumentResponse
from .schemas import (
    AvailableSlot,
    BookAppointmentRequest,
    PortalActivateRequest,
    PortalAppointments,
    PortalClientResponse,
    PortalForgotPasswordRequest,
    PortalLoginRequest,
    PortalLoginResponse,
    PortalResetPasswordRequest,
    PortalServiceResponse,
    PortalSession,
    SubmitResult,
)
from .service import PortalAuthService, PortalService, portal_client_to_response

router = APIRouter(prefix="/api/portal", tags=["Client Portal"])

portal_login_rate_limit = create_rate_limiter(limit=10, window_seconds=300, key_prefix="portal_login")
portal_reset_rate_limit = create_rate_limiter(limit=5, window_seconds=3600, key_prefix="portal_reset")
portal_booking_rate_limit = create_rate_limiter(limit=20, window_seconds=3600, key_prefix="portal_booking")


def get_portal_auth_service(request: Request, db: Session = Depends(get_db)) -> PortalAuthService:
    """Dependency injection for PortalAuthService"""
    return PortalAuthService(db, request)


def get_portal_service(
    client: Client = Depends(get_current_portal_client),
    db: Session = Depends(get_db),
) -> PortalService:
    """Dependency injection for PortalService bound to the signed-in client"""
    return PortalService(db, client)


# ============================================
# Auth
# ============================================


@router.post("/activate", response_model=MessageResponse)
async def activate_portal(
    data: PortalActivateRequest,
    service: PortalAuthService = Depends(get_portal_auth_service),
):
    service.activate(data.token, data.password)
    return {"message": "Portal account activated. You can now sign in."}


@router.post("/auth/login", response_model=PortalLoginResponse)
async def portal_login(
    data: PortalLoginRequest,
    response: Response,
    _: None = Depends(portal_login_rate_limit),
    service: PortalAuthService = Depends(get_portal_auth_service),
):
    client = service.login(data.email, data.password)
    set_session_cookie(response, PORTAL_COOKIE_NAME, create_portal_token(client))
    set_csrf_cookie(response, generate_csrf_token())
    return {"client": portal_client_to_response(client)}


@router.post("/logout", response_model=MessageResponse)
async def portal_logout(response: Response):
    clear_session_cookie(response, PORTAL_COOKIE_NAME)
    return {"message": "Logged out"}


@router.get("/me", response_model=PortalClientResponse)
async def portal_me(client: Client = Depends(get_current_portal_client)):
    return portal_client_to_response(client)


@router.post("/forgot-password", response_model=MessageResponse)
async def portal_forgot_password(
    data: PortalForgotPasswordRequest,
    _: None = Depends(portal_reset_rate_limit),
    service: PortalAuthService = Depends(get_portal_auth_service),
):
    return service.forgot_password(data.email)


@router.post("/reset-password", response_model=MessageResponse)
async def portal_reset_password(
    data: PortalResetPasswordRequest,
    service: PortalAuthService = Depends(get_portal_auth_service),
):
    return service.reset_password(data.token, data.password)


# ============================================
# Appointments
# ============================================


@router.get("/appointments", response_model=PortalAppointments)
async def portal_appointments(service: PortalService = Depends(get_portal_service)):
    return service.list_appointments()


@router.get("/services", response_model=list[PortalServiceResponse])
async def portal_services(service: PortalService = Depends(get_portal_service)):
    return service.list_services()


@router.get("/available-slots", response_model=dict[str, list[AvailableSlot]])
async def portal_available_slots(
    start_date: str = Query(..., alias="startDate"),
    end_date: str = Query(..., alias="endDate"),
    session_type: Optional[str] = Query(None, alias="sessionType"),
    service_id: Optional[int] = Query(None, alias="serviceId"),
    service: PortalService = Depends(get_portal_service),
):
    return service.available_slots(start_date, end_date, session_type, service_id)


@router.post("/book-appointment", response_model=PortalSession, status_code=201)
async def portal_book_appointment(
    data: BookAppointmentRequest,
    _: None = Depends(portal_booking_rate_limit),
    service: PortalService = Depends(get_portal_service),
):
    return service.book_appointment(data)


# ============================================
# Documents and invoices
# ============================================


@router.get("/documents", response_model=list[DocumentResponse])
async def portal_documents(service: PortalService = Depends(get_portal_service)):
    return service.list_documents()


@router.get("/documents/{document_id}/download")
async def portal_download_document(
    document_id: int,
    request: Request,
    service: PortalService = Depends(get_portal_service),
):
    document, data = service.download_document(document_id, request)
    return Response(
        content=data,
        media_type=document.mime_type,
        headers={"Content-Disposition": f'attachment; filename="{document.original_name}"'},
    )


@router.post("/upload-document", response_model=DocumentResponse, status_code=201)
async def portal_upload_document(
    file: UploadFile = File(...),
    service: PortalService = Depends(get_portal_service),
):
    contents = await file.read()
    return service.upload_document(file.filename, file.content_type, contents)


@router.get("/invoices", response_model=list[BillingRecordResponse])
async def portal_invoices(service: PortalService = Depends(get_portal_service)):
    return service.list_invoices()


# ============================================
# Forms
# ============================================


@router.get("/forms/assignments", response_model=list[AssignmentDetail])
async def portal_form_assignments(service: PortalService = Depends(get_portal_service)):
    return service.list_assignments()


@router.get("/forms/assignments/{assignment_id}", response_model=AssignmentDetail)
async def portal_form_assignment(
    assignment_id: int,
    service: PortalService = Depends(get_portal_service),
):
    return service.get_assignment(assignment_id)


@router.post("/forms/responses", response_model=BatchSaveResult)
async def portal_save_form_responses(
    data: BatchResponseSave,
    service: PortalService = Depends(get_portal_service),
):
    return service.save_responses(data.assignment_id, data.responses)


@router.post("/forms/submit/{assignment_id}", response_model=SubmitResult)
async def portal_submit_form(
    assignment_id: int,
    service: PortalService = Depends(get_portal_service),
):
    return service.submit_assignment(assignment_id)


__all__ = ["router", "get_portal_service"]

"""
Document router - FastAPI endpoints for client documents
"""

from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Query, Request, Response, UploadFile
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...models import User
from ...shared.schemas import MessageResponse
from .schemas import DocumentPreview, DocumentResponse, DocumentUpdate
from .service import DocumentService

router = APIRouter(prefix="/api/clients/{client_id}/documents", tags=["Documents"])


def get_document_service(db: Session = Depends(get_db)) -> DocumentService:
    """Dependency injection for DocumentService"""
    return DocumentService(db)


@router.get("", response_model=list[DocumentResponse])
async def list_documents(
    client_id: int,
    category: Optional[str] = Query(None),
    current_user: User = Depends(get_current_user),
    service: DocumentService = Depends(get_document_service),
):
    return service.list_documents(client_id, current_user, category)


@router.post("", response_model=DocumentResponse, status_code=201)
async def upload_document(
    client_id: int,
    request: Request,
    file: UploadFile = File(...),
    category: str = Form("general"),
    is_shared_in_portal: bool = Form(False, alias="isSharedInPortal"),
    current_user: User = Depends(get_current_user),
    service: DocumentService = Depends(get_document_service),
):
    """Upload a file for a client (PDF, images, TXT, DOC, DOCX)"""
    contents = await file.read()
    return service.upload_document(
        client_id,
        file.filename,
        file.content_type,
        contents,
        current_user,
        category=category,
        is_shared_in_portal=is_shared_in_portal,
        request=request,
    )


@router.get("/{document_id}/preview", response_model=DocumentPreview)
async def preview_document(
    client_id: int,
    document_id: int,
    current_user: User = Depends(get_current_user),
    service: DocumentService = Depends(get_document_service),
):
    return service.preview_document(client_id, document_id, current_user)


@router.get("/{document_id}/file")
async def view_document_file(
    client_id: int,
    document_id: int,
    request: Request,
    current_user: User = Depends(get_current_user),
    service: DocumentService = Depends(get_document_service),
):
    document, data = service.read_document(client_id, document_id, current_user, request=request)
    return Response(
        content=data,
        media_type=document.mime_type,
        headers={"Content-Disposition": f'inline; filename="{document.original_name}"'},
    )


@router.get("/{document_id}/download")
async def download_document(
    client_id: int,
    document_id: int,
    request: Request,
    current_user: User = Depends(get_current_user),
    service: DocumentService = Depends(get_document_service),
):
    document, data = service.read_document(client_id, document_id, current_user, download=True, request=request)
    return Response(
        content=data,
        media_type=document.mime_type,
        headers={"Content-Disposition": f'attachment; filename="{document.original_name}"'},
    )


@router.put("/{document_id}", response_model=DocumentResponse)
async def update_document(
    client_id: int,
    document_id: int,
    data: DocumentUpdate,
    current_user: User = Depends(get_current_user),
    service: DocumentService = Depends(get_document_service),
):
    return service.update_document(client_id, document_id, data, current_user)


@router.delete("/{document_id}", response_model=MessageResponse)
async def delete_document(
    client_id: int,
    document_id: int,
    request: Request,
    current_user: User = Depends(get_current_user),
    service: DocumentService = Depends(get_document_service),
):
    return service.delete_document(client_id, document_id, current_user, request)


__all__ = [
    "router",
    "list_documents",
    "upload_document",
    "preview_document",
    "view_document_file",
    "download_document",
    "update_document",
    "delete_document",
]

"""
Document service - client files kept in the configured storage backend

Rows hold metadata; file_name is the storage key
(practices/{practice}/clients/{client}/{uuid}_{name}).
"""

import logging
import mimetypes
import uuid
from typing import Optional

from fastapi import HTTPException, Request
from sqlalchemy.orm import Session

from ...config import MAX_UPLOAD_SIZE_MB
from ...models import Client, Document, User
from ...security_utils import sanitize_filename
from ...services.audit_logger import AuditLogger
from ...services.storage_service import StorageError, StorageFileNotFound, get_storage
from ..clients.repository import ClientRepository
from .schemas import DocumentPreview, DocumentResponse, DocumentUpdate

logger = logging.getLogger(__name__)

ALLOWED_MIME_TYPES = {
    "application/pdf",
    "image/png",
    "image/jpeg",
    "image/jpg",
    "image/gif",
    "image/webp",
    "text/plain",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
}
MAX_PREVIEW_BYTES = 100 * 1024


def document_to_response(document: Document) -> DocumentResponse:
    response = DocumentResponse.model_validate(document)
    response.uploaded_by_name = document.uploaded_by.full_name if document.uploaded_by else None
    return response


def resolve_mime_type(filename: str, content_type: Optional[str]) -> str:
    if content_type and content_type != "application/octet-stream":
        return content_type.split(";")[0].strip().lower()
    guessed, _ = mimetypes.guess_type(filename)
    return guessed or "application/octet-stream"


def store_client_document(
    db: Session,
    client: Client,
    filename: str,
    content_type: Optional[str],
    contents: bytes,
    category: str = "general",
    is_shared_in_portal: bool = False,
    uploaded_by_id: Optional[int] = None,
    uploaded_by_client: bool = False,
) -> Document:
    """
    Validate and store an uploaded file, then record it.

    Raises:
        HTTPException: 400 for a disallowed type or empty file, 413 when too large
    """
    mime_type = resolve_mime_type(filename or "", content_type)
    if mime_type not in ALLOWED_MIME_TYPES:
        raise HTTPException(
            status_code=400,
            detail="Invalid file type. Allowed: PDF, PNG, JPEG, GIF, WebP, TXT, DOC and DOCX.",
        )
    if not contents:
        raise HTTPException(status_code=400, detail="Uploaded file is empty")

    max_bytes = MAX_UPLOAD_SIZE_MB * 1024 * 1024
    if len(contents) > max_bytes:
        raise HTTPException(
            status_code=413,
            detail=f"File size exceeds {MAX_UPLOAD_SIZE_MB}MB limit. Your file is {len(contents) / (1024 * 1024):.2f}MB.",
        )

    safe_name = sanitize_filename(filename or "document")
    key = f"practices/{client.practice_id}/clients/{client.id}/{uuid.uuid4().hex}_{safe_name}"
    try:
        get_storage().save(key, contents, mime_type)
    except StorageError as e:
        logger.error(f"❌ Failed to store document for client {client.id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to store file") from e

    document = Document(
        practice_id=client.practice_id,
        client_id=client.id,
        uploaded_by_id=uploaded_by_id,
        uploaded_by_client=uploaded_by_client,
        file_name=key,
        original_name=safe_name,
        file_size=len(contents),
        mime_type=mime_type,
        category=category or "general",
        is_shared_in_portal=is_shared_in_portal,
    )
    db.add(document)
    db.commit()
    db.refresh(document)
    logger.info(f"📄 Stored document {document.id} ({mime_type}, {len(contents)} bytes) for client {client.id}")
    return document


def load_document_bytes(document: Document) -> bytes:
    try:
        return get_storage().load(document.file_name)
    except StorageFileNotFound:
        logger.warning(f"⚠️ Blob missing for document {document.id}")
        raise HTTPException(status_code=404, detail="File not found")
    except StorageError as e:
        logger.error(f"❌ Failed to read document {document.id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to read file") from e


class DocumentService:
    def __init__(self, db: Session):
        self.db = db

    def list_documents(self, client_id: int, user: User, category: Optional[str] = None) -> list[DocumentResponse]:
        client = self._get_client(client_id, user)
        query = self.db.query(Document).filter(Document.client_id == client.id)
        if category:
            query = query.filter(Document.category == category)
        documents = query.order_by(Document.created_at.desc(), Document.id.desc()).all()
        return [document_to_response(d) for d in documents]

    def upload_document(
        self,
        client_id: int,
        filename: str,
        content_type: Optional[str],
        contents: bytes,
        user: User,
        category: str = "general",
        is_shared_in_portal: bool = False,
        request: Optional[Request] = None,
    ) -> DocumentResponse:
        client = self._get_client(client_id, user)
        document = store_client_document(
            self.db,
            client,
            filename,
            content_type,
            contents,
            category=category,
            is_shared_in_portal=is_shared_in_portal,
            uploaded_by_id=user.id,
        )
        AuditLogger(self.db, request).log_document_access(
            user, document.id, client.id, "upload_document", details={"fileSize": document.file_size}
        )
        return document_to_response(document)

    def get_document(self, client_id: int, document_id: int, user: User) -> Document:
        client = self._get_client(client_id, user)
        document = (
            self.db.query(Document).filter(Document.id == document_id, Document.client_id == client.id).first()
        )
        if not document:
            raise HTTPException(status_code=404, detail="Document not found")
        return document

    def preview_document(self, client_id: int, document_id: int, user: User) -> DocumentPreview:
        """Preview metadata; text files carry up to 100 KB of their decoded content"""
        document = self.get_document(client_id, document_id, user)
        mime_type = document.mime_type or ""
        url = get_storage().get_url(document.file_name) or f"/api/clients/{client_id}/documents/{document.id}/file"

        content = None
        if mime_type.startswith("image/"):
            preview_type = "image"
        elif mime_type == "application/pdf":
            preview_type = "pdf"
        elif mime_type.startswith("text/"):
            preview_type = "text"
            content = load_document_bytes(document)[:MAX_PREVIEW_BYTES].decode("utf-8", errors="replace")
        else:
            preview_type = "unsupported"

        return DocumentPreview(
            preview_type=preview_type,
            url=url,
            content=content,
            mime_type=document.mime_type,
            original_name=document.original_name,
        )

    def read_document(
        self, client_id: int, document_id: int, user: User, download: bool = False, request: Optional[Request] = None
    ) -> tuple[Document, bytes]:
        document = self.get_document(client_id, document_id, user)
        data = load_document_bytes(document)
        if download:
            document.download_count = (document.download_count or 0) + 1
            self.db.commit()
        AuditLogger(self.db, request).log_document_access(
            user, document.id, document.client_id, "download_document" if download else "view_document"
        )
        return document, data

    def update_document(self, client_id: int, document_id: int, data: DocumentUpdate, user: User) -> DocumentResponse:
        document = self.get_document(client_id, document_id, user)
        for key, value in data.model_dump(exclude_unset=True, exclude_none=True).items():
            if key == "original_name":
                value = sanitize_filename(value)
            setattr(document, key, value)
        self.db.commit()
        self.db.refresh(document)
        return document_to_response(document)

    def delete_document(self, client_id: int, document_id: int, user: User, request: Optional[Request] = None) -> dict:
        document = self.get_document(client_id, document_id, user)
        try:
            get_storage().delete(document.file_name)
        except StorageFileNotFound:
            logger.warning(f"⚠️ Blob already missing for document {document.id} - deleting record anyway")
        except StorageError as e:
            logger.error(f"❌ Failed to delete blob for document {document.id}: {e}")
            raise HTTPException(status_code=500, detail="Failed to delete file") from e

        AuditLogger(self.db, request).log_document_access(user, document.id, document.client_id, "delete_document")
        self.db.delete(document)
        self.db.commit()
        logger.info(f"🗑️ Deleted document {document_id}")
        return {"message": "Document deleted"}

    def _get_client(self, client_id: int, user: User) -> Client:
        client = ClientRepository.get_visible(self.db, client_id, user)
        if not client:
            raise HTTPException(status_code=404, detail="Client not found")
        return client

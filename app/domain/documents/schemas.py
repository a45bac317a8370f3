"""Document domain schemas"""

from datetime import datetime
from typing import Literal, Optional

from pydantic import Field

from ...shared.schemas import CamelModel


class DocumentUpdate(CamelModel):
    category: Optional[str] = Field(None, min_length=1, max_length=50)
    is_shared_in_portal: Optional[bool] = None
    original_name: Optional[str] = Field(None, min_length=1, max_length=255)


class DocumentResponse(CamelModel):
    id: int
    client_id: int
    uploaded_by_id: Optional[int] = None
    uploaded_by_name: Optional[str] = None
    uploaded_by_client: bool
    original_name: str
    file_size: int
    mime_type: str
    category: str
    is_shared_in_portal: bool
    download_count: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class DocumentPreview(CamelModel):
    preview_type: Literal["image", "pdf", "text", "unsupported"]
    url: Optional[str] = None
    content: Optional[str] = None
    mime_type: str
    original_name: str

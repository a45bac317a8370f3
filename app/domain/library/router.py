"""Library router - clinical phrase categories, entries and connections"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...models import User
from ...shared.schemas import MessageResponse
from .schemas import (
    CategoryCreate,
    CategoryResponse,
    CategoryTreeNode,
    CategoryUpdate,
    ConnectedEntry,
    ConnectionCreate,
    ConnectionResponse,
    ConnectionUpdate,
    EntryCreate,
    EntryResponse,
    EntryUpdate,
)
from .service import LibraryService

router = APIRouter(prefix="/api/library", tags=["Library"])


def get_library_service(db: Session = Depends(get_db)) -> LibraryService:
    """Dependency injection for LibraryService"""
    return LibraryService(db)


# ============================================
# Categories
# ============================================


@router.get("/categories", response_model=list[CategoryTreeNode])
async def get_category_tree(
    current_user: User = Depends(get_current_user),
    service: LibraryService = Depends(get_library_service),
):
    return service.get_category_tree(current_user)


@router.get("/categories/{category_id}", response_model=CategoryResponse)
async def get_category(
    category_id: int,
    current_user: User = Depends(get_current_user),
    service: LibraryService = Depends(get_library_service),
):
    return service.get_category(category_id, current_user)


@router.post("/categories", response_model=CategoryResponse, status_code=201)
async def create_category(
    data: CategoryCreate,
    current_user: User = Depends(get_current_user),
    service: LibraryService = Depends(get_library_service),
):
    return service.create_category(data, current_user)


@router.put("/categories/{category_id}", response_model=CategoryResponse)
async def update_category(
    category_id: int,
    data: CategoryUpdate,
    current_user: User = Depends(get_current_user),
    service: LibraryService = Depends(get_library_service),
):
    return service.update_category(category_id, data, current_user)


@router.delete("/categories/{category_id}", response_model=MessageResponse)
async def delete_category(
    category_id: int,
    current_user: User = Depends(get_current_user),
    service: LibraryService = Depends(get_library_service),
):
    return service.delete_category(category_id, current_user)


# ============================================
# Entries
# ============================================


@router.get("/entries", response_model=list[EntryResponse])
async def list_entries(
    category_id: Optional[int] = Query(None, alias="categoryId"),
    current_user: User = Depends(get_current_user),
    service: LibraryService = Depends(get_library_service),
):
    return service.list_entries(current_user, category_id)


@router.get("/search", response_model=list[EntryResponse])
async def search_entries(
    q: str = Query(..., min_length=1),
    category_id: Optional[int] = Query(None, alias="categoryId"),
    current_user: User = Depends(get_current_user),
    service: LibraryService = Depends(get_library_service),
):
    return service.search_entries(current_user, q, category_id)


@router.get("/entries/{entry_id}", response_model=EntryResponse)
async def get_entry(
    entry_id: int,
    current_user: User = Depends(get_current_user),
    service: LibraryService = Depends(get_library_service),
):
    return service.get_entry(entry_id, current_user)


@router.get("/entries/{entry_id}/connected", response_model=list[ConnectedEntry])
async def get_connected_entries(
    entry_id: int,
    current_user: User = Depends(get_current_user),
    service: LibraryService = Depends(get_library_service),
):
    return service.get_connected_entries(entry_id, current_user)


@router.post("/entries", response_model=EntryResponse, status_code=201)
async def create_entry(
    data: EntryCreate,
    current_user: User = Depends(get_current_user),
    service: LibraryService = Depends(get_library_service),
):
    return service.create_entry(data, current_user)


@router.put("/entries/{entry_id}", response_model=EntryResponse)
async def update_entry(
    entry_id: int,
    data: EntryUpdate,
    current_user: User = Depends(get_current_user),
    service: LibraryService = Depends(get_library_service),
):
    return service.update_entry(entry_id, data, current_user)


@router.delete("/entries/{entry_id}", response_model=MessageResponse)
async def delete_entry(
    entry_id: int,
    current_user: User = Depends(get_current_user),
    service: LibraryService = Depends(get_library_service),
):
    return service.delete_entry(entry_id, current_user)


@router.post("/entries/{entry_id}/increment-usage", response_model=EntryResponse)
async def increment_entry_usage(
    entry_id: int,
    current_user: User = Depends(get_current_user),
    service: LibraryService = Depends(get_library_service),
):
    return service.increment_usage(entry_id, current_user)


# ============================================
# Connections
# ============================================


@router.get("/connections", response_model=list[ConnectionResponse])
async def list_connections(
    entry_id: Optional[int] = Query(None, alias="entryId"),
    current_user: User = Depends(get_current_user),
    service: LibraryService = Depends(get_library_service),
):
    return service.list_connections(current_user, entry_id)


@router.post("/connections", response_model=ConnectionResponse, status_code=201)
async def create_connection(
    data: ConnectionCreate,
    current_user: User = Depends(get_current_user),
    service: LibraryService = Depends(get_library_service),
):
    return service.create_connection(data, current_user)


@router.put("/connections/{connection_id}", response_model=ConnectionResponse)
async def update_connection(
    connection_id: int,
    data: ConnectionUpdate,
    current_user: User = Depends(get_current_user),
    service: LibraryService = Depends(get_library_service),
):
    return service.update_connection(connection_id, data, current_user)


@router.delete("/connections/{connection_id}", response_model=MessageResponse)
async def delete_connection(
    connection_id: int,
    current_user: User = Depends(get_current_user),
    service: LibraryService = Depends(get_library_service),
):
    return service.delete_connection(connection_id, current_user)


__all__ = ["router", "get_library_service"]

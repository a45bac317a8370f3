"""Help guide router - help center endpoints"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import get_current_user, require_roles
from ...database import get_db
from ...models import User
from ...shared.schemas import MessageResponse
from .schemas import AskRequest, AskResponse, HelpGuideCreate, HelpGuideResponse, HelpGuideUpdate
from .service import HelpGuideService

router = APIRouter(prefix="/api/help-guides", tags=["Help Center"])


def get_help_guide_service(db: Session = Depends(get_db)) -> HelpGuideService:
    """Dependency injection for HelpGuideService"""
    return HelpGuideService(db)


@router.get("", response_model=list[HelpGuideResponse])
async def list_help_guides(
    category: Optional[str] = Query(None),
    current_user: User = Depends(get_current_user),
    service: HelpGuideService = Depends(get_help_guide_service),
):
    return service.list_guides(current_user, category)


@router.get("/search", response_model=list[HelpGuideResponse])
async def search_help_guides(
    q: str = Query(..., min_length=1),
    current_user: User = Depends(get_current_user),
    service: HelpGuideService = Depends(get_help_guide_service),
):
    """Title matches rank first, then keyword matches, then content matches"""
    return service.search(current_user, q)


@router.get("/suggestions", response_model=list[str])
async def help_suggestions(
    page: Optional[str] = Query(None),
    current_user: User = Depends(get_current_user),
):
    return HelpGuideService.suggestions(page)


@router.get("/slug/{slug}", response_model=HelpGuideResponse)
async def get_help_guide_by_slug(
    slug: str,
    current_user: User = Depends(get_current_user),
    service: HelpGuideService = Depends(get_help_guide_service),
):
    return service.get_by_slug(slug, current_user)


@router.post("/ask", response_model=AskResponse)
async def ask_help_assistant(
    data: AskRequest,
    current_user: User = Depends(get_current_user),
    service: HelpGuideService = Depends(get_help_guide_service),
):
    return service.ask(data.question, current_user)


@router.post("/{guide_id}/helpful", response_model=HelpGuideResponse)
async def mark_help_guide_helpful(
    guide_id: int,
    current_user: User = Depends(get_current_user),
    service: HelpGuideService = Depends(get_help_guide_service),
):
    return service.mark_helpful(guide_id, current_user)


@router.post("", response_model=HelpGuideResponse, status_code=201)
async def create_help_guide(
    data: HelpGuideCreate,
    current_user: User = Depends(require_roles("admin")),
    service: HelpGuideService = Depends(get_help_guide_service),
):
    return service.create_guide(data, current_user)


@router.put("/{guide_id}", response_model=HelpGuideResponse)
async def update_help_guide(
    guide_id: int,
    data: HelpGuideUpdate,
    current_user: User = Depends(require_roles("admin")),
    service: HelpGuideService = Depends(get_help_guide_service),
):
    return service.update_guide(guide_id, data, current_user)


@router.delete("/{guide_id}", response_model=MessageResponse)
async def delete_help_guide(
    guide_id: int,
    current_user: User = Depends(require_roles("admin")),
    service: HelpGuideService = Depends(get_help_guide_service),
):
    return service.delete_guide(guide_id, current_user)


__all__ = [
    "router",
    "list_help_guides",
    "search_help_guides",
    "help_suggestions",
    "get_help_guide_by_slug",
    "ask_help_assistant",
    "mark_help_guide_helpful",
    "create_help_guide",
    "update_help_guide",
    "delete_help_guide",
]

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import Field, field_validator
from sqlalchemy.orm import Session

from ..auth import get_current_user, require_roles
from ..database import get_db
from ..models import Practice, User
from ..practice_time import is_valid_timezone
from ..shared.schemas import CamelModel
from ..shared.validators import validate_email, validate_phone

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/practice", tags=["Practice"])


class PracticeResponse(CamelModel):
    id: int
    public_id: Optional[str] = None
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    timezone: str
    business_hours_start: int
    business_hours_end: int
    slot_minutes: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class PracticeUpdate(CamelModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    timezone: Optional[str] = None
    business_hours_start: Optional[int] = Field(None, ge=0, le=23)
    business_hours_end: Optional[int] = Field(None, ge=1, le=24)
    slot_minutes: Optional[int] = Field(None, ge=5, le=240)

    @field_validator("email")
    @classmethod
    def check_email(cls, v):
        return validate_email(v)

    @field_validator("phone")
    @classmethod
    def check_phone(cls, v):
        return validate_phone(v)


def _get_practice(db: Session, user: User) -> Practice:
    practice = db.query(Practice).filter(Practice.id == user.practice_id).first()
    if not practice:
        raise HTTPException(status_code=404, detail="Practice not found")
    return practice


@router.get("", response_model=PracticeResponse)
async def get_practice(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return _get_practice(db, current_user)


@router.put("", response_model=PracticeResponse)
async def update_practice(
    data: PracticeUpdate,
    current_user: User = Depends(require_roles("admin")),
    db: Session = Depends(get_db),
):
    practice = _get_practice(db, current_user)
    updates = data.model_dump(exclude_unset=True, exclude_none=True)

    if "timezone" in updates and not is_valid_timezone(updates["timezone"]):
        raise HTTPException(status_code=400, detail=f"Invalid timezone '{updates['timezone']}'")

    start = updates.get("business_hours_start", practice.business_hours_start)
    end = updates.get("business_hours_end", practice.business_hours_end)
    if start >= end:
        raise HTTPException(status_code=400, detail="Business hours must end after they start")

    for key, value in updates.items():
        setattr(practice, key, value)
    db.commit()
    db.refresh(practice)
    logger.info(f"✅ Practice {practice.id} settings updated by user {current_user.id}")
    return practice

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import Field, field_validator
from sqlalchemy import or_
from sqlalchemy.orm import Session

from ..auth import CLINICAL_ROLES, get_current_user, require_roles
from ..database import get_db
from ..models import User
from ..security_utils import check_password_strength, hash_password
from ..shared.schemas import CamelModel, MessageResponse
from ..shared.validators import USER_ROLES, validate_choice, validate_email

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Users"])


class UserResponse(CamelModel):
    id: int
    practice_id: int
    username: str
    full_name: str
    email: str
    role: str
    title: Optional[str] = None
    phone: Optional[str] = None
    supervisor_id: Optional[int] = None
    is_active: bool
    last_login: Optional[datetime] = None
    created_at: Optional[datetime] = None


class TherapistResponse(CamelModel):
    id: int
    full_name: str
    role: str
    title: Optional[str] = None
    email: str


class UserCreate(CamelModel):
    username: str = Field(..., min_length=3, max_length=100)
    password: str
    full_name: str = Field(..., min_length=1, max_length=255)
    email: str
    role: str = "therapist"
    title: Optional[str] = None
    phone: Optional[str] = None
    supervisor_id: Optional[int] = None

    @field_validator("email")
    @classmethod
    def check_email(cls, v):
        return validate_email(v)

    @field_validator("role")
    @classmethod
    def check_role(cls, v):
        return validate_choice(v, USER_ROLES, "role")


class UserUpdate(CamelModel):
    full_name: Optional[str] = Field(None, min_length=1, max_length=255)
    email: Optional[str] = None
    role: Optional[str] = None
    title: Optional[str] = None
    phone: Optional[str] = None
    supervisor_id: Optional[int] = None
    is_active: Optional[bool] = None
    password: Optional[str] = None

    @field_validator("email")
    @classmethod
    def check_email(cls, v):
        return validate_email(v)

    @field_validator("role")
    @classmethod
    def check_role(cls, v):
        return validate_choice(v, USER_ROLES, "role")


def ensure_strong_password(password: str) -> None:
    strength = check_password_strength(password)
    if not strength["is_valid"]:
        raise HTTPException(
            status_code=400,
            detail={"message": "Password is too weak", "feedback": strength["feedback"]},
        )


def ensure_unique_login(db: Session, username: Optional[str], email: Optional[str], exclude_id: Optional[int] = None):
    """Usernames and emails are unique across all practices"""
    filters = []
    if username:
        filters.append(User.username == username)
    if email:
        filters.append(User.email == email)
    if not filters:
        return
    query = db.query(User.id).filter(or_(*filters))
    if exclude_id is not None:
        query = query.filter(User.id != exclude_id)
    if query.first():
        raise HTTPException(status_code=409, detail="A user with this username or email already exists")


def _get_practice_user(db: Session, user_id: int, practice_id: int) -> User:
    user = db.query(User).filter(User.id == user_id, User.practice_id == practice_id).first()
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user


def _check_supervisor(db: Session, supervisor_id: Optional[int], practice_id: int, user_id: Optional[int] = None):
    if supervisor_id is None:
        return
    if user_id is not None and supervisor_id == user_id:
        raise HTTPException(status_code=400, detail="A user cannot supervise themselves")
    supervisor = _get_practice_user(db, supervisor_id, practice_id)
    if supervisor.role not in ("admin", "supervisor"):
        raise HTTPException(status_code=400, detail="Supervisor must be an admin or supervisor")


@router.get("/therapists", response_model=list[TherapistResponse])
async def list_therapists(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Active clinical staff of the practice"""
    return (
        db.query(User)
        .filter(
            User.practice_id == current_user.practice_id,
            User.is_active.is_(True),
            User.role.in_(CLINICAL_ROLES),
        )
        .order_by(User.full_name.asc())
        .all()
    )


@router.get("/users", response_model=list[UserResponse])
async def list_users(
    current_user: User = Depends(require_roles("admin", "supervisor")),
    db: Session = Depends(get_db),
):
    return (
        db.query(User)
        .filter(User.practice_id == current_user.practice_id)
        .order_by(User.full_name.asc())
        .all()
    )


@router.post("/users", response_model=UserResponse, status_code=201)
async def create_user(
    data: UserCreate,
    current_user: User = Depends(require_roles("admin")),
    db: Session = Depends(get_db),
):
    username = data.username.strip().lower()
    ensure_unique_login(db, username, data.email)
    ensure_strong_password(data.password)
    _check_supervisor(db, data.supervisor_id, current_user.practice_id)

    user = User(
        practice_id=current_user.practice_id,
        username=username,
        password_hash=hash_password(data.password),
        full_name=data.full_name.strip(),
        email=data.email,
        role=data.role,
        title=data.title,
        phone=data.phone,
        supervisor_id=data.supervisor_id,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info(f"✅ User {user.id} ({user.role}) created by {current_user.id}")
    return user


@router.put("/users/{user_id}", response_model=UserResponse)
async def update_user(
    user_id: int,
    data: UserUpdate,
    current_user: User = Depends(require_roles("admin")),
    db: Session = Depends(get_db),
):
    user = _get_practice_user(db, user_id, current_user.practice_id)
    updates = data.model_dump(exclude_unset=True)

    if updates.get("email"):
        ensure_unique_login(db, None, updates["email"], exclude_id=user.id)
    if "supervisor_id" in updates:
        _check_supervisor(db, updates["supervisor_id"], current_user.practice_id, user.id)
    if updates.get("is_active") is False and user.id == current_user.id:
        raise HTTPException(status_code=400, detail="You cannot deactivate your own account")

    password = updates.pop("password", None)
    if password:
        ensure_strong_password(password)
        user.password_hash = hash_password(password)
        logger.info(f"🔒 Password changed for user {user.id} by admin {current_user.id}")

    for key, value in updates.items():
        if value is None and key in ("full_name", "email", "role", "is_active"):
            continue
        setattr(user, key, value)
    db.commit()
    db.refresh(user)
    return user


@router.delete("/users/{user_id}", response_model=MessageResponse)
async def deactivate_user(
    user_id: int,
    current_user: User = Depends(require_roles("admin")),
    db: Session = Depends(get_db),
):
    user = _get_practice_user(db, user_id, current_user.practice_id)
    if user.id == current_user.id:
        raise HTTPException(status_code=400, detail="You cannot deactivate your own account")
    user.is_active = False
    db.commit()
    logger.info(f"🗑️ User {user.id} deactivated by {current_user.id}")
    return {"message": "User deactivated"}

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from pydantic import Field, field_validator
from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from ..auth import clear_session_cookie, create_staff_token, get_current_user, set_session_cookie
from ..config import PASSWORD_RESET_MAX_AGE, PRACTICE_TIMEZONE, SESSION_COOKIE_NAME
from ..csrf import generate_csrf_token, set_csrf_cookie
from ..database import get_db
from ..models import Practice, User
from ..practice_time import utcnow
from ..rate_limiter import create_rate_limiter
from ..security_utils import (
    PASSWORD_RESET_SALT,
    generate_timed_token,
    hash_password,
    verify_password,
    verify_timed_token,
)
from ..services.audit_logger import AuditLogger
from ..services.notification_service import ensure_default_triggers
from ..shared.schemas import CamelModel, MessageResponse
from ..shared.validators import validate_email
from .users import UserResponse, ensure_strong_password, ensure_unique_login

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["Authentication"])

# Rate limiters
rate_limit_login = create_rate_limiter(limit=10, window_seconds=300, key_prefix="login", use_ip=True)
rate_limit_password_reset = create_rate_limiter(
    limit=10,
    window_seconds=3600,
    key_prefix="password_reset",
    use_ip=True,
)


class RegisterPracticeRequest(CamelModel):
    practice_name: str = Field(..., min_length=1, max_length=255)
    username: str = Field(..., min_length=3, max_length=100)
    email: str
    password: str
    full_name: str = Field(..., min_length=1, max_length=255)

    @field_validator("email")
    @classmethod
    def check_email(cls, v):
        return validate_email(v)


class LoginRequest(CamelModel):
    username: str = Field(..., min_length=1, max_length=255)
    password: str = Field(..., min_length=1)


class LoginResponse(CamelModel):
    user: UserResponse
    csrf_token: str
    message: str = "Login successful"


class ForgotPasswordRequest(CamelModel):
    email: str


class ResetPasswordRequest(CamelModel):
    token: str
    new_password: str


class ChangePasswordRequest(CamelModel):
    current_password: str
    new_password: str


def _start_session(response: Response, user: User) -> str:
    set_session_cookie(response, SESSION_COOKIE_NAME, create_staff_token(user))
    csrf_token = generate_csrf_token()
    set_csrf_cookie(response, csrf_token)
    return csrf_token


@router.post("/register-practice", response_model=LoginResponse, status_code=201)
async def register_practice(
    data: RegisterPracticeRequest,
    request: Request,
    response: Response,
    db: Session = Depends(get_db),
):
    """Create a practice with its first admin and sign them in"""
    username = data.username.strip().lower()
    ensure_unique_login(db, username, data.email)
    ensure_strong_password(data.password)

    practice = Practice(name=data.practice_name.strip(), email=data.email, timezone=PRACTICE_TIMEZONE)
    db.add(practice)
    db.flush()
    user = User(
        practice_id=practice.id,
        username=username,
        password_hash=hash_password(data.password),
        full_name=data.full_name.strip(),
        email=data.email,
        role="admin",
        last_login=utcnow(),
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info(f"✅ Practice {practice.id} registered with admin user {user.id}")

    ensure_default_triggers(db, practice.id)
    AuditLogger(db, request).log_auth_event("register_practice", True, user=user)

    csrf_token = _start_session(response, user)
    return {"user": user, "csrf_token": csrf_token, "message": "Practice registered"}


@router.post("/login", response_model=LoginResponse)
async def login(
    data: LoginRequest,
    request: Request,
    response: Response,
    db: Session = Depends(get_db),
    _: None = Depends(rate_limit_login),
):
    """Username (or email) and password login; sets the session cookie"""
    login_name = data.username.strip().lower()
    audit = AuditLogger(db, request)
    user = (
        db.query(User)
        .filter(or_(func.lower(User.username) == login_name, func.lower(User.email) == login_name))
        .first()
    )

    if not user or not verify_password(data.password, user.password_hash):
        audit.record_login_attempt(login_name, False, "invalid_credentials")
        audit.log_auth_event(
            "login_failed", False, user=user, username=login_name, details={"reason": "invalid_credentials"}
        )
        logger.warning(f"⚠️ Failed login for '{login_name}'")
        raise HTTPException(status_code=401, detail="Invalid username or password")

    if not user.is_active:
        audit.record_login_attempt(login_name, False, "account_inactive")
        audit.log_auth_event("login_failed", False, user=user, details={"reason": "account_inactive"})
        raise HTTPException(status_code=403, detail="Account is deactivated")

    user.last_login = utcnow()
    db.commit()
    db.refresh(user)
    audit.record_login_attempt(login_name, True)
    audit.log_auth_event("login", True, user=user)
    logger.info(f"🔓 User {user.id} logged in")

    csrf_token = _start_session(response, user)
    return {"user": user, "csrf_token": csrf_token}


@router.post("/logout", response_model=MessageResponse)
async def logout(request: Request, response: Response, db: Session = Depends(get_db)):
    user: Optional[User] = getattr(request.state, "user", None)
    if user:
        AuditLogger(db, request).log_auth_event("logout", True, user=user)
    clear_session_cookie(response, SESSION_COOKIE_NAME)
    return {"message": "Logged out"}


@router.get("/me", response_model=UserResponse)
async def me(current_user: User = Depends(get_current_user)):
    return current_user


@router.post("/forgot-password", response_model=MessageResponse)
async def forgot_password(
    data: ForgotPasswordRequest,
    db: Session = Depends(get_db),
    _: None = Depends(rate_limit_password_reset),
):
    """Always succeeds so the response does not reveal which emails exist"""
    email = data.email.strip().lower()
    user = db.query(User).filter(func.lower(User.email) == email, User.is_active.is_(True)).first()
    if user:
        token = generate_timed_token({"user_id": user.id}, PASSWORD_RESET_SALT)
        from ..email_service import send_password_reset_email

        try:
            send_password_reset_email(user.email, token)
            logger.info(f"✅ Password reset email sent for user {user.id}")
        except Exception as e:
            logger.error(f"❌ Password reset email failed for user {user.id}: {e}")
    return {"message": "If an account exists with this email, you will receive a reset link."}


@router.post("/reset-password", response_model=MessageResponse)
async def reset_password(
    data: ResetPasswordRequest,
    request: Request,
    db: Session = Depends(get_db),
    _: None = Depends(rate_limit_password_reset),
):
    payload = verify_timed_token(data.token, PASSWORD_RESET_SALT, max_age=PASSWORD_RESET_MAX_AGE)
    if not payload:
        raise HTTPException(status_code=400, detail="Invalid or expired reset link")
    user = db.query(User).filter(User.id == payload.get("user_id")).first()
    if not user:
        raise HTTPException(status_code=400, detail="Invalid or expired reset link")

    ensure_strong_password(data.new_password)
    user.password_hash = hash_password(data.new_password)
    db.commit()
    AuditLogger(db, request).log_auth_event("password_reset", True, user=user)
    logger.info(f"🔒 Password reset for user {user.id}")
    return {"message": "Password has been reset"}


@router.post("/change-password", response_model=MessageResponse)
async def change_password(
    data: ChangePasswordRequest,
    request: Request,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    if not verify_password(data.current_password, current_user.password_hash):
        raise HTTPException(status_code=400, detail="Current password is incorrect")
    ensure_strong_password(data.new_password)
    current_user.password_hash = hash_password(data.new_password)
    db.commit()
    AuditLogger(db, request).log_auth_event("password_change", True, user=current_user)
    return {"message": "Password changed"}

import logging
from datetime import timedelta
from typing import Optional

from fastapi import Depends, HTTPException, Request, Response
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from .config import COOKIE_SECURE, PORTAL_COOKIE_NAME, SESSION_COOKIE_NAME, SESSION_TOKEN_HOURS
from .database import get_db
from .models import Client, User
from .security_utils import create_jwt_token, verify_jwt_token

logger = logging.getLogger(__name__)

# auto_error=False so the session cookie can be used instead of a header
security = HTTPBearer(auto_error=False)

STAFF_SCOPE = "staff"
PORTAL_SCOPE = "portal"
CLINICAL_ROLES = ["admin", "supervisor", "therapist"]


def create_staff_token(user: User) -> str:
    return create_jwt_token(
        {"sub": str(user.id), "practice_id": user.practice_id, "role": user.role, "scope": STAFF_SCOPE},
        expires_delta=timedelta(hours=SESSION_TOKEN_HOURS),
    )


def create_portal_token(client: Client) -> str:
    return create_jwt_token(
        {"sub": str(client.id), "practice_id": client.practice_id, "scope": PORTAL_SCOPE},
        expires_delta=timedelta(hours=SESSION_TOKEN_HOURS),
    )


def _extract_token(
    request: Request, credentials: Optional[HTTPAuthorizationCredentials], cookie_name: str
) -> Optional[str]:
    if credentials and credentials.credentials:
        return credentials.credentials
    return request.cookies.get(cookie_name)


def _decode_scoped_token(token: Optional[str], scope: str) -> dict:
    if not token:
        raise HTTPException(status_code=401, detail="Not authenticated")

    payload = verify_jwt_token(token)
    if not payload:
        raise HTTPException(
            status_code=401,
            detail="Session expired or invalid. Please sign in again.",
            headers={"X-Token-Expired": "true"},
        )

    if payload.get("scope") != scope:
        logger.warning(f"⚠️ Token with scope '{payload.get('scope')}' used where '{scope}' required")
        raise HTTPException(status_code=401, detail="Invalid session for this area")

    return payload


async def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db),
) -> User:
    """Get the signed-in staff member from the session cookie or a Bearer token"""
    token = _extract_token(request, credentials, SESSION_COOKIE_NAME)
    payload = _decode_scoped_token(token, STAFF_SCOPE)

    try:
        user_id = int(payload.get("sub"))
    except (TypeError, ValueError) as e:
        raise HTTPException(status_code=401, detail="Invalid token claims") from e

    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise HTTPException(status_code=401, detail="User not found")

    if not user.is_active:
        logger.warning(f"⚠️ Inactive user {user.id} attempted access")
        raise HTTPException(status_code=403, detail="Account is deactivated")

    request.state.user = user
    return user


def require_roles(*roles: str):
    """
    Dependency factory restricting an endpoint to the given roles

    Example:
        @router.post("", dependencies=[Depends(require_roles("admin"))])
    """

    async def role_checker(
        request: Request,
        user: User = Depends(get_current_user),
        db: Session = Depends(get_db),
    ) -> User:
        if user.role not in roles:
            from .services.audit_logger import AuditLogger

            logger.warning(f"🚫 User {user.id} ({user.role}) denied access to {request.url.path}")
            AuditLogger(db, request).log_unauthorized_access(user, request.url.path)
            raise HTTPException(status_code=403, detail="You do not have permission to perform this action")
        return user

    return role_checker


async def get_current_portal_client(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db),
) -> Client:
    """Get the signed-in portal client; revoked portal access is rejected immediately"""
    token = _extract_token(request, credentials, PORTAL_COOKIE_NAME)
    payload = _decode_scoped_token(token, PORTAL_SCOPE)

    try:
        client_id = int(payload.get("sub"))
    except (TypeError, ValueError) as e:
        raise HTTPException(status_code=401, detail="Invalid token claims") from e

    client = db.query(Client).filter(Client.id == client_id).first()
    if not client:
        raise HTTPException(status_code=401, detail="Client not found")

    if not client.has_portal_access:
        logger.warning(f"⚠️ Client {client.id} used a portal session after access was revoked")
        raise HTTPException(status_code=403, detail="Portal access is not enabled for this account")

    return client


def is_manager(user: User) -> bool:
    """Admins and supervisors see the whole practice"""
    return user.role in ("admin", "supervisor")


def set_session_cookie(response: Response, cookie_name: str, token: str) -> None:
    response.set_cookie(
        key=cookie_name,
        value=token,
        httponly=True,
        secure=COOKIE_SECURE,
        samesite="lax",
        max_age=SESSION_TOKEN_HOURS * 3600,
        path="/",
    )


def clear_session_cookie(response: Response, cookie_name: str) -> None:
    response.delete_cookie(key=cookie_name, path="/")

"""
Security Utilities
Password hashing, signed tokens and filename hygiene using industry-standard libraries
"""

import logging
import os
import re
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from fastapi import Request

# Token generation and validation
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer
from jose import JWTError
from jose import jwt as jose_jwt

# Password hashing
from passlib.context import CryptContext

from .config import SECRET_KEY

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"

# Salts keep one kind of emailed link from being replayed as another
PASSWORD_RESET_SALT = "password-reset"
PORTAL_RESET_SALT = "portal-password-reset"
PORTAL_ACTIVATION_SALT = "portal-activation"

# Password hashing context
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


# ============================================================================
# PASSWORD SECURITY
# ============================================================================


def hash_password(password: str) -> str:
    """Hash password using bcrypt"""
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: Optional[str]) -> bool:
    """Verify password against bcrypt hash"""
    if not hashed_password:
        return False
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except Exception as e:
        logger.error(f"Password verification error: {e}")
        return False


def check_password_strength(password: str) -> dict[str, Any]:
    """
    Check password strength and return detailed feedback

    Returns:
        dict with 'score' (0-4), 'strength' (weak/fair/good/strong),
        'feedback' (list of suggestions), and 'is_valid' (bool)
    """
    score = 0
    feedback = []

    if len(password) < 8:
        feedback.append("Password must be at least 8 characters long")
    elif len(password) >= 12:
        score += 2
    else:
        score += 1

    if re.search(r"[a-z]", password):
        score += 1
    else:
        feedback.append("Add lowercase letters")

    if re.search(r"[A-Z]", password):
        score += 1
    else:
        feedback.append("Add uppercase letters")

    if re.search(r"\d", password):
        score += 1
    else:
        feedback.append("Add numbers")

    if re.search(r'[!@#$%^&*(),.?":{}|<>_\-]', password):
        score += 1
    else:
        feedback.append("Add special characters")

    common_passwords = ["password", "123456", "qwerty", "admin", "letmein", "therapy"]
    if password.lower() in common_passwords:
        score = 0
        feedback.append("This is a commonly used password - choose something unique")

    if score <= 1:
        strength = "weak"
    elif score == 2:
        strength = "fair"
    elif score == 3:
        strength = "good"
    else:
        strength = "strong"

    return {
        "score": min(score, 4),
        "strength": strength,
        "feedback": feedback,
        "is_valid": len(password) >= 8 and score >= 3,
    }


# ============================================================================
# TOKEN GENERATION & VALIDATION
# ============================================================================


def generate_secure_token(length: int = 32) -> str:
    """Generate a cryptographically secure random token"""
    return secrets.token_urlsafe(length)


def generate_timed_token(data: dict[str, Any], salt: str) -> str:
    """
    Generate a time-limited token using itsdangerous
    Used for password reset and portal activation links
    """
    serializer = URLSafeTimedSerializer(SECRET_KEY)
    return serializer.dumps(data, salt=salt)


def verify_timed_token(token: str, salt: str, max_age: int = 3600) -> Optional[dict[str, Any]]:
    """
    Verify and decode a timed token

    Returns:
        Decoded data if valid, None if invalid or expired
    """
    serializer = URLSafeTimedSerializer(SECRET_KEY)
    try:
        return serializer.loads(token, salt=salt, max_age=max_age)
    except SignatureExpired:
        logger.warning("Token expired")
        return None
    except BadSignature:
        logger.warning("Invalid token signature")
        return None


def create_jwt_token(data: dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
    """
    Create a JWT token

    Args:
        data: Data to encode in the token
        expires_delta: Token expiration time (default 15 minutes)
    """
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=15))
    to_encode.update({"exp": expire})
    return jose_jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def verify_jwt_token(token: str) -> Optional[dict[str, Any]]:
    """
    Verify and decode a JWT token

    Returns:
        Decoded payload if valid, None if invalid or expired
    """
    try:
        return jose_jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError as e:
        logger.warning(f"JWT verification failed: {e}")
        return None


# ============================================================================
# REQUEST & FILE HELPERS
# ============================================================================


def get_client_ip(request: Optional[Request]) -> Optional[str]:
    """Client IP, honouring the first X-Forwarded-For hop"""
    if request is None:
        return None
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None


def sanitize_filename(filename: str) -> str:
    """
    Sanitize filename to prevent directory traversal and other attacks

    Args:
        filename: Original filename

    Returns:
        Safe filename
    """
    # Remove path components (both separators, whatever the host OS)
    filename = os.path.basename(filename.replace("\\", "/"))

    # Remove or replace dangerous characters
    filename = re.sub(r"[^\w\s\-\.]", "", filename)

    # Remove leading/trailing dots and spaces
    filename = filename.strip(". ")

    if len(filename) > 200:
        name, ext = os.path.splitext(filename)
        filename = name[: 200 - len(ext)] + ext

    if not filename:
        filename = f"file_{generate_secure_token(8)}"

    return filename

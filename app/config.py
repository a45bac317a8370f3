import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./therapyflow.db")

APP_NAME = os.getenv("APP_NAME", "TherapyFlow")

# Security - CRITICAL: No default secret key in production
SECRET_KEY = os.getenv("SECRET_KEY")
if not SECRET_KEY:
    import warnings

    warnings.warn(
        "SECRET_KEY not set! Using insecure default - DO NOT USE IN PRODUCTION", RuntimeWarning, stacklevel=2
    )
    SECRET_KEY = "INSECURE-DEV-KEY-CHANGE-IN-PRODUCTION"  # noqa: S105 - Dev fallback only

# Staff and portal sessions
SESSION_TOKEN_HOURS = int(os.getenv("SESSION_TOKEN_HOURS", "24"))
SESSION_COOKIE_NAME = "session_token"
PORTAL_COOKIE_NAME = "portal_token"
COOKIE_SECURE = os.getenv("COOKIE_SECURE", "true").lower() == "true"
PASSWORD_RESET_MAX_AGE = 3600
PORTAL_ACTIVATION_MAX_AGE = 7 * 24 * 3600

# Frontend base URL for links in emails
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:5173")

# Practice defaults (each practice may override its timezone)
PRACTICE_TIMEZONE = os.getenv("PRACTICE_TIMEZONE", "America/New_York")

# Resend Email Configuration
RESEND_API_KEY = os.getenv("RESEND_API_KEY")
EMAIL_FROM_ADDRESS = os.getenv("EMAIL_FROM_ADDRESS", "TherapyFlow <noreply@therapyflow.app>")

# OpenAI Configuration
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY")
OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-4o-mini")
OPENAI_TIMEOUT = float(os.getenv("OPENAI_TIMEOUT", "60"))

# Document storage: "local" (filesystem) or "r2" (Cloudflare R2 / S3 compatible)
STORAGE_BACKEND = os.getenv("STORAGE_BACKEND", "local").lower()
UPLOAD_DIR = os.getenv("UPLOAD_DIR", str(Path(__file__).resolve().parent.parent / "uploads"))
MAX_UPLOAD_SIZE_MB = int(os.getenv("MAX_UPLOAD_SIZE_MB", "25"))

# Cloudflare R2 Configuration
R2_ACCOUNT_ID = os.getenv("R2_ACCOUNT_ID")
R2_ACCESS_KEY_ID = os.getenv("R2_ACCESS_KEY_ID")
R2_SECRET_ACCESS_KEY = os.getenv("R2_SECRET_ACCESS_KEY")
R2_BUCKET_NAME = os.getenv("R2_BUCKET_NAME", "therapyflow-documents")

# Encryption at rest for uploaded documents (generate with: python -c "from cryptography.fernet import Fernet; print(Fernet.generate_key().decode())")
DOCUMENT_ENCRYPTION_KEY = os.getenv("DOCUMENT_ENCRYPTION_KEY")

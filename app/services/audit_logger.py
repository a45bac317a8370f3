"""
HIPAA Audit Logger
Records who touched which protected record, from where, and how risky the access was.
Audit failures are logged and swallowed so they never break the request being audited.
"""

import logging
from typing import Any, Optional

from fastapi import Request
from sqlalchemy.orm import Session

from ..models import User
from ..models_audit import AuditLog, LoginAttempt
from ..security_utils import get_client_ip

logger = logging.getLogger(__name__)


class AuditLogger:
    """Writes audit_logs rows; call after the audited change has been committed"""

    def __init__(self, db: Session, request: Optional[Request] = None):
        self.db = db
        self.request = request

    def log_action(
        self,
        action: str,
        user: Optional[User] = None,
        result: str = "success",
        resource_type: Optional[str] = None,
        resource_id: Optional[Any] = None,
        client_id: Optional[int] = None,
        details: Optional[dict] = None,
        risk_level: str = "low",
        hipaa_relevant: bool = False,
        access_reason: Optional[str] = None,
        username: Optional[str] = None,
        practice_id: Optional[int] = None,
    ) -> Optional[AuditLog]:
        try:
            entry = AuditLog(
                practice_id=practice_id if practice_id is not None else (user.practice_id if user else None),
                user_id=user.id if user else None,
                username=username or (user.username if user else None),
                action=action,
                result=result,
                resource_type=resource_type,
                resource_id=str(resource_id) if resource_id is not None else None,
                client_id=client_id,
                ip_address=get_client_ip(self.request),
                user_agent=self.request.headers.get("user-agent") if self.request else None,
                details=details,
                risk_level=risk_level,
                hipaa_relevant=hipaa_relevant,
                access_reason=access_reason,
            )
            self.db.add(entry)
            self.db.commit()
            return entry
        except Exception as e:
            self.db.rollback()
            logger.error(f"❌ Failed to write audit log for action '{action}': {e}")
            return None

    def log_client_access(self, user: User, client_id: int, action: str = "view_client", **kwargs):
        return self.log_action(
            action,
            user=user,
            resource_type="client",
            resource_id=client_id,
            client_id=client_id,
            risk_level="medium",
            hipaa_relevant=True,
            **kwargs,
        )

    def log_session_access(
        self, user: User, session_note_id: int, client_id: int, action: str = "view_session_note", **kwargs
    ):
        return self.log_action(
            action,
            user=user,
            resource_type="session_note",
            resource_id=session_note_id,
            client_id=client_id,
            risk_level="medium",
            hipaa_relevant=True,
            **kwargs,
        )

    def log_document_access(self, user: Optional[User], document_id: int, client_id: int, action: str, **kwargs):
        return self.log_action(
            action,
            user=user,
            resource_type="document",
            resource_id=document_id,
            client_id=client_id,
            risk_level="high",
            hipaa_relevant=True,
            **kwargs,
        )

    def log_auth_event(
        self,
        action: str,
        success: bool,
        user: Optional[User] = None,
        username: Optional[str] = None,
        details: Optional[dict] = None,
    ):
        return self.log_action(
            action,
            user=user,
            username=username,
            result="success" if success else "failure",
            resource_type="auth",
            risk_level="low" if success else "high",
            details=details,
        )

    def log_unauthorized_access(self, user: Optional[User], resource: str, details: Optional[dict] = None):
        return self.log_action(
            "unauthorized_access",
            user=user,
            result="blocked",
            resource_type="endpoint",
            resource_id=resource[:50],
            risk_level="critical",
            hipaa_relevant=True,
            details=details,
        )

    def log_data_export(self, user: User, export_type: str, record_count: int, client_id: Optional[int] = None):
        return self.log_action(
            "data_export",
            user=user,
            resource_type=export_type,
            client_id=client_id,
            risk_level="critical",
            hipaa_relevant=True,
            details={"recordCount": record_count},
        )

    def record_login_attempt(
        self, username: str, success: bool, failure_reason: Optional[str] = None, portal: bool = False
    ) -> None:
        try:
            self.db.add(
                LoginAttempt(
                    username=username,
                    ip_address=get_client_ip(self.request),
                    user_agent=self.request.headers.get("user-agent") if self.request else None,
                    success=success,
                    failure_reason=failure_reason,
                    portal=portal,
                )
            )
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.error(f"❌ Failed to record login attempt: {e}")

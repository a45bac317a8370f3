"""Client service - Business logic for client operations"""

import csv
import logging
import math
import re
from io import StringIO
from typing import Optional

from fastapi import HTTPException, Request
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from ...auth import CLINICAL_ROLES
from ...config import FRONTEND_URL, PORTAL_ACTIVATION_MAX_AGE
from ...models import Client, User
from ...practice_time import utcnow
from ...security_utils import PORTAL_ACTIVATION_SALT, generate_timed_token
from ...services.audit_logger import AuditLogger
from ...services.notification_service import NotificationService
from ...services.storage_service import StorageError, StorageFileNotFound, get_storage
from .repository import ClientRepository
from .schemas import (
    ClientCreate,
    ClientListResponse,
    ClientResponse,
    ClientStats,
    ClientUpdate,
    DuplicateClient,
    DuplicateGroup,
)

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 100

# Columns that cannot be cleared by sending null
NON_NULLABLE_FIELDS = {"full_name", "status", "stage", "client_type"}

EXPORT_COLUMNS = [
    ("Client ID", "client_id"),
    ("Full Name", "full_name"),
    ("Date of Birth", "date_of_birth"),
    ("Email", "email"),
    ("Phone", "phone"),
    ("Status", "status"),
    ("Stage", "stage"),
    ("Client Type", "client_type"),
    ("Therapist", None),
    ("Insurance Provider", "insurance_provider"),
    ("Start Date", "start_date"),
    ("Last Session", "last_session_date"),
    ("Created At", "created_at"),
]


def client_event_data(client: Client) -> dict:
    """Entity data passed to notification triggers"""
    return {
        "id": client.id,
        "clientName": client.full_name,
        "clientCode": client.client_id,
        "therapistId": client.assigned_therapist_id,
    }


def delete_client_blobs(client: Client) -> None:
    """Remove stored files for a client's documents; missing blobs are ignored"""
    if not client.documents:
        return
    storage = get_storage()
    for document in client.documents:
        try:
            storage.delete(document.file_name)
        except StorageFileNotFound:
            logger.warning(f"⚠️ Blob already missing for document {document.id}")
        except StorageError as e:
            logger.error(f"❌ Failed to delete blob for document {document.id}: {e}")


class ClientService:
    """Service layer for client business logic"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = ClientRepository()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_client(self, client_id: int, user: User) -> Client:
        client = self.repo.get_visible(self.db, client_id, user)
        if not client:
            raise HTTPException(status_code=404, detail="Client not found")
        return client

    def view_client(self, client_id: int, user: User, request: Optional[Request] = None) -> ClientResponse:
        client = self.get_client(client_id, user)
        AuditLogger(self.db, request).log_client_access(user, client.id)
        session_counts, task_counts = self.repo.get_activity_counts(self.db, [client.id])
        return self._to_response(client, session_counts, task_counts)

    def list_clients(
        self,
        user: User,
        page: int = 1,
        page_size: int = 25,
        search: Optional[str] = None,
        status: Optional[str] = None,
        stage: Optional[str] = None,
        therapist_id: Optional[int] = None,
        client_type: Optional[str] = None,
        has_portal_access: Optional[bool] = None,
        sort_by: str = "name",
        sort_order: str = "asc",
    ) -> ClientListResponse:
        page = max(page, 1)
        page_size = min(max(page_size, 1), MAX_PAGE_SIZE)

        query = self.repo.apply_filters(
            self.repo.base_query(self.db, user),
            search=search,
            status=status,
            stage=stage,
            therapist_id=therapist_id,
            client_type=client_type,
            has_portal_access=has_portal_access,
        )
        total = query.count()
        clients = (
            self.repo.apply_sort(query, sort_by, sort_order).offset((page - 1) * page_size).limit(page_size).all()
        )

        session_counts, task_counts = self.repo.get_activity_counts(self.db, [c.id for c in clients])
        return ClientListResponse(
            clients=[self._to_response(c, session_counts, task_counts) for c in clients],
            total=total,
            total_pages=math.ceil(total / page_size) if total else 0,
            page=page,
            page_size=page_size,
        )

    def get_stats(self, user: User) -> ClientStats:
        query = self.repo.base_query(self.db, user)
        by_status = self.repo.count_by(query, Client.status)
        by_stage = self.repo.count_by(query, Client.stage)
        return ClientStats(
            total_clients=sum(by_status.values()),
            active_clients=by_status.get("active", 0),
            inactive_clients=by_status.get("inactive", 0),
            pending_clients=by_status.get("pending", 0),
            new_intakes=by_stage.get("intake", 0),
            assessment_phase=by_stage.get("assessment", 0),
            psychotherapy=by_stage.get("psychotherapy", 0),
        )

    def find_duplicates(self, user: User) -> list[DuplicateGroup]:
        """Clients sharing an email, a phone number, or a name plus date of birth"""
        clients = self.repo.base_query(self.db, user).order_by(Client.id).all()

        buckets: dict[tuple[str, str], list[Client]] = {}
        for client in clients:
            keys = []
            if client.email:
                keys.append(("email", client.email.strip().lower()))
            if client.phone:
                digits = re.sub(r"\D", "", client.phone)[-10:]
                if digits:
                    keys.append(("phone", digits))
            if client.date_of_birth:
                name = " ".join(client.full_name.lower().split())
                keys.append(("name_dob", f"{name}|{client.date_of_birth.isoformat()}"))
            for key in keys:
                buckets.setdefault(key, []).append(client)

        return [
            DuplicateGroup(
                match_type=match_type,
                value=value,
                clients=[DuplicateClient.model_validate(c) for c in members],
            )
            for (match_type, value), members in buckets.items()
            if len(members) > 1
        ]

    def export_clients_csv(self, user: User, request: Optional[Request] = None, **filters) -> StreamingResponse:
        """Export the filtered client list as CSV"""
        logger.info(f"📊 CSV export requested by user {user.id}")
        clients = self.repo.apply_sort(
            self.repo.apply_filters(self.repo.base_query(self.db, user), **filters)
        ).all()

        output = StringIO()
        writer = csv.writer(output)
        writer.writerow([header for header, _ in EXPORT_COLUMNS])
        for client in clients:
            row = []
            for _, attr in EXPORT_COLUMNS:
                if attr is None:
                    row.append(client.assigned_therapist.full_name if client.assigned_therapist else "")
                    continue
                value = getattr(client, attr)
                row.append(value.isoformat() if hasattr(value, "isoformat") else (value or ""))
            writer.writerow(row)

        AuditLogger(self.db, request).log_data_export(user, "clients_csv", len(clients))

        output.seek(0)
        filename = f"clients_export_{utcnow().strftime('%Y%m%d_%H%M%S')}.csv"
        logger.info(f"✅ CSV export successful: {filename} ({len(clients)} clients)")
        return StreamingResponse(
            iter([output.getvalue()]),
            media_type="text/csv",
            headers={
                "Content-Disposition": f"attachment; filename={filename}",
                "Cache-Control": "no-cache",
            },
        )

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create_client(self, data: ClientCreate, user: User) -> ClientResponse:
        logger.info(f"📥 Creating client for practice {user.practice_id}")
        client_data = data.model_dump()
        if client_data.get("assigned_therapist_id"):
            self._require_therapist(user.practice_id, client_data["assigned_therapist_id"])

        client_data["client_id"] = self.repo.next_client_code(self.db, user.practice_id, utcnow().year)
        client = self.repo.create_client(self.db, user.practice_id, **client_data)
        logger.info(f"✅ Created client {client.id} ({client.client_id})")

        notifications = NotificationService(self.db)
        notifications.process_event(
            user.practice_id, "client_created", client_event_data(client), "client", actor_id=user.id
        )
        if client.assigned_therapist_id:
            notifications.process_event(
                user.practice_id, "client_assigned", client_event_data(client), "client", actor_id=user.id
            )
        return self._to_response(client)

    def update_client(self, client_id: int, data: ClientUpdate, user: User) -> ClientResponse:
        client = self.get_client(client_id, user)
        updates = {
            key: value
            for key, value in data.model_dump(exclude_unset=True).items()
            if not (value is None and key in NON_NULLABLE_FIELDS)
        }

        previous_therapist = client.assigned_therapist_id
        new_therapist = updates.get("assigned_therapist_id")
        if new_therapist:
            self._require_therapist(user.practice_id, new_therapist)

        client = self.repo.update_client(self.db, client, **updates)
        logger.info(f"✅ Updated client {client.id}")

        if new_therapist and new_therapist != previous_therapist:
            NotificationService(self.db).process_event(
                user.practice_id, "client_assigned", client_event_data(client), "client", actor_id=user.id
            )
        return self._to_response(client)

    def delete_client(self, client_id: int, user: User) -> dict:
        """Hard delete: the client and every clinical and billing record attached to it"""
        client = self.get_client(client_id, user)
        delete_client_blobs(client)
        self.db.delete(client)
        self.db.commit()
        logger.info(f"🗑️ Deleted client {client_id} and related records")
        return {"message": "Client deleted"}

    # ------------------------------------------------------------------
    # Bulk operations
    # ------------------------------------------------------------------

    def _bulk_targets(self, client_ids: list[int], user: User) -> list[Client]:
        return self.repo.get_practice_clients_by_ids(self.db, user.practice_id, client_ids)

    def bulk_update(self, client_ids: list[int], user: User, **updates) -> dict:
        clients = self._bulk_targets(client_ids, user)
        for client in clients:
            for key, value in updates.items():
                setattr(client, key, value)
        self.db.commit()
        logger.info(f"✅ Bulk update {list(updates)} applied to {len(clients)} clients")
        return {"updated": len(clients)}

    def bulk_reassign(self, client_ids: list[int], therapist_id: int, user: User) -> dict:
        self._require_therapist(user.practice_id, therapist_id)
        clients = self._bulk_targets(client_ids, user)
        changed = [c for c in clients if c.assigned_therapist_id != therapist_id]
        for client in clients:
            client.assigned_therapist_id = therapist_id
        self.db.commit()

        notifications = NotificationService(self.db)
        for client in changed:
            notifications.process_event(
                user.practice_id, "client_assigned", client_event_data(client), "client", actor_id=user.id
            )
        return {"updated": len(clients)}

    def bulk_delete(self, client_ids: list[int], user: User) -> dict:
        clients = self._bulk_targets(client_ids, user)
        for client in clients:
            delete_client_blobs(client)
            self.db.delete(client)
        self.db.commit()
        logger.info(f"🗑️ Bulk deleted {len(clients)} clients")
        return {"updated": len(clients)}

    # ------------------------------------------------------------------
    # Portal
    # ------------------------------------------------------------------

    def send_portal_invite(self, client_id: int, portal_email: Optional[str], user: User) -> dict:
        """Enable portal access and email an activation link valid for 7 days"""
        client = self.get_client(client_id, user)
        email = portal_email or client.portal_email or client.email
        if not email:
            raise HTTPException(status_code=400, detail="Client has no email address for portal access")

        client.has_portal_access = True
        client.portal_email = email
        self.db.commit()

        token = generate_timed_token({"client_id": client.id, "email": email}, PORTAL_ACTIVATION_SALT)
        activation_url = f"{FRONTEND_URL}/portal/activate?token={token}"

        from ...email_service import send_portal_invitation_email

        email_sent = False
        try:
            send_portal_invitation_email(email, client.full_name, client.practice.name, activation_url)
            email_sent = True
            logger.info(f"✅ Portal invitation sent for client {client.id}")
        except Exception as e:
            logger.error(f"❌ Portal invitation email failed for client {client.id}: {e}")

        logger.info(f"🔑 Portal activation link issued for client {client.id} (valid {PORTAL_ACTIVATION_MAX_AGE}s)")
        return {"activation_url": activation_url, "email_sent": email_sent}

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _require_therapist(self, practice_id: int, therapist_id: int) -> User:
        therapist = self.repo.get_therapist(self.db, practice_id, therapist_id)
        if not therapist or therapist.role not in CLINICAL_ROLES:
            raise HTTPException(status_code=400, detail="Therapist not found in this practice")
        return therapist

    @staticmethod
    def _to_response(
        client: Client,
        session_counts: Optional[dict[int, int]] = None,
        task_counts: Optional[dict[int, int]] = None,
    ) -> ClientResponse:
        response = ClientResponse.model_validate(client)
        response.therapist_name = client.assigned_therapist.full_name if client.assigned_therapist else None
        if session_counts is not None:
            response.session_count = session_counts.get(client.id, 0)
        if task_counts is not None:
            response.task_count = task_counts.get(client.id, 0)
        return response

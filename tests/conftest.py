import os
import tempfile

# Test settings must be in place before the app (and its config) is imported
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["CSRF_ENABLED"] = "false"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["SECURITY_HEADERS_ENABLED"] = "true"
os.environ["COOKIE_SECURE"] = "false"
os.environ["STORAGE_BACKEND"] = "local"
os.environ["UPLOAD_DIR"] = tempfile.mkdtemp(prefix="therapyflow-uploads-")
os.environ["DB_LOG_SLOW_QUERIES"] = "false"
os.environ.pop("OPENAI_API_KEY", None)
os.environ.pop("RESEND_API_KEY", None)
os.environ.pop("DOCUMENT_ENCRYPTION_KEY", None)
os.environ.pop("REDIS_URL", None)
os.environ.pop("REDIS_HOST", None)

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from app.auth import create_portal_token, create_staff_token  # noqa: E402
from app.database import Base, get_db  # noqa: E402
from app.main import app  # noqa: E402
from app.models import Client, Practice, User  # noqa: E402
from app.security_utils import hash_password  # noqa: E402
from app.services import ai_service  # noqa: E402

STAFF_PASSWORD = "Calm-Waters-2026!"
PORTAL_PASSWORD = "Portal-Access-2026!"


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db(engine):
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def api(db):
    """TestClient sharing the test's database session"""

    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def make_practice(db, name="Calm Waters Counseling") -> Practice:
    practice = Practice(name=name, email="office@calmwaters.example", timezone="America/New_York")
    db.add(practice)
    db.commit()
    db.refresh(practice)
    return practice


def make_user(db, practice, username, role="therapist", **kwargs) -> User:
    user = User(
        practice_id=practice.id,
        username=username,
        email=kwargs.pop("email", f"{username}@calmwaters.example"),
        password_hash=hash_password(kwargs.pop("password", STAFF_PASSWORD)),
        full_name=kwargs.pop("full_name", username.title()),
        role=role,
        **kwargs,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def make_client(db, practice, therapist=None, seq=1, **kwargs) -> Client:
    client = Client(
        practice_id=practice.id,
        client_id=kwargs.pop("client_id", f"CL-2026-{seq:04d}"),
        full_name=kwargs.pop("full_name", "Jamie Rivera"),
        status=kwargs.pop("status", "active"),
        assigned_therapist_id=therapist.id if therapist else None,
        **kwargs,
    )
    db.add(client)
    db.commit()
    db.refresh(client)
    return client


def auth_headers(user: User) -> dict:
    return {"Authorization": f"Bearer {create_staff_token(user)}"}


def portal_headers(client: Client) -> dict:
    return {"Authorization": f"Bearer {create_portal_token(client)}"}


@pytest.fixture
def practice(db):
    return make_practice(db)


@pytest.fixture
def admin(db, practice):
    return make_user(db, practice, "ada", role="admin", full_name="Ada Admin")


@pytest.fixture
def supervisor(db, practice):
    return make_user(db, practice, "sam", role="supervisor", full_name="Sam Supervisor")


@pytest.fixture
def therapist(db, practice):
    return make_user(db, practice, "terry", role="therapist", full_name="Terry Therapist")


@pytest.fixture
def other_therapist(db, practice):
    return make_user(db, practice, "olive", role="therapist", full_name="Olive Other")


@pytest.fixture
def admin_headers(admin):
    return auth_headers(admin)


@pytest.fixture
def therapist_headers(therapist):
    return auth_headers(therapist)


@pytest.fixture
def client_record(db, practice, therapist):
    return make_client(db, practice, therapist)


@pytest.fixture
def portal_client(db, practice, therapist):
    """Client with an activated portal account"""
    return make_client(
        db,
        practice,
        therapist,
        seq=50,
        full_name="Pat Portal",
        email="pat@clients.example",
        has_portal_access=True,
        portal_email="pat@clients.example",
        portal_password_hash=hash_password(PORTAL_PASSWORD),
    )


@pytest.fixture
def other_practice_admin(db):
    other = make_practice(db, name="Elsewhere Therapy")
    return make_user(db, other, "eve", role="admin", full_name="Eve Elsewhere")


@pytest.fixture
def fake_ai(monkeypatch):
    """Configured AI whose completions are canned; records every prompt"""
    calls = []

    def fake_complete(self, system_prompt, user_prompt, temperature=0.6, max_tokens=1500):
        calls.append({"system": system_prompt, "user": user_prompt})
        return "Generated clinical draft."

    monkeypatch.setattr(ai_service, "OPENAI_API_KEY", "test-key")
    monkeypatch.setattr(ai_service.AIService, "_complete", fake_complete)
    return calls

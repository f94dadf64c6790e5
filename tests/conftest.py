"""Pytest configuration for SecureCloud tests."""
import io
import os
import tempfile
from datetime import datetime, timedelta

# Settings are read at import time; point them at throwaway locations first
_TMP_ROOT = tempfile.mkdtemp(prefix="securecloud-tests-")
os.environ.setdefault("SQLALCHEMY_DATABASE_URI", f"sqlite:///{os.path.join(_TMP_ROOT, 'app.db')}")
os.environ.setdefault("UPLOAD_DIR", os.path.join(_TMP_ROOT, "uploads"))
os.environ.setdefault("SECRET_KEY", "test-secret-key-0123456789abcdef0123456789abcdef")
os.environ.setdefault("FRONTEND_URL", "https://cloud.example.com")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from app import crud, schemas
from app.api import deps
from app.db.base import Base
from app.db.session import create_db_engine
from app.main import app
from app.services.delivery import StreamDelivery
from app.services.share_service import ShareLifecycleService
from app.services.storage import LocalObjectStore, new_object_key

BASE_URL = "https://cloud.example.com"


class FakeClock:
    """Naive-UTC clock that only moves when told to."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def engine(tmp_path):
    # File-backed so several threads can hold their own connections
    engine = create_db_engine(f"sqlite:///{tmp_path / 'shares.db'}")
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def clock():
    return FakeClock(datetime(2026, 1, 1, 12, 0, 0))


@pytest.fixture
def object_store(tmp_path):
    return LocalObjectStore(str(tmp_path / "objects"))


@pytest.fixture
def delivery(object_store):
    return StreamDelivery(object_store)


@pytest.fixture
def make_service(db, delivery, clock):
    def _make(**overrides) -> ShareLifecycleService:
        options = {"delivery": delivery, "base_url": BASE_URL, "clock": clock}
        options.update(overrides)
        return ShareLifecycleService(db, **options)

    return _make


@pytest.fixture
def service(make_service):
    return make_service()


@pytest.fixture
def make_user(db):
    def _make(username: str, email: str, password: str = "correct-horse-1"):
        return crud.user.create(
            db, obj_in=schemas.UserCreate(username=username, email=email, password=password)
        )

    return _make


@pytest.fixture
def owner(make_user):
    return make_user("owner", "owner@example.com")


@pytest.fixture
def recipient(make_user):
    return make_user("recipient", "recipient@example.com")


@pytest.fixture
def stranger(make_user):
    return make_user("stranger", "stranger@example.com")


@pytest.fixture
def make_file(db, object_store):
    def _make(user, name="report.pdf", content=b"%PDF-1.4 quarterly numbers", mime_type="application/pdf"):
        key = new_object_key(name)
        size = object_store.put(key, io.BytesIO(content), content_type=mime_type)
        return crud.file.create_with_user(
            db,
            user_id=user.id,
            file_name=name,
            mime_type=mime_type,
            file_size=size,
            storage_path=key,
        )

    return _make


@pytest.fixture
def owned_file(owner, make_file):
    return make_file(owner)


# -- HTTP fixtures --------------------------------------------------------

API = "/api/v1"


@pytest.fixture
def client(session_factory, object_store):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[deps.get_db] = override_get_db
    app.dependency_overrides[deps.get_object_store] = lambda: object_store
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def _register(client, username, email, password="correct-horse-1"):
    response = client.post(
        f"{API}/login/register",
        json={"username": username, "email": email, "password": password},
    )
    assert response.status_code == 201, response.text
    return response.json()


def _login(client, email, password="correct-horse-1"):
    response = client.post(f"{API}/login/access-token", json={"email": email, "password": password})
    assert response.status_code == 200, response.text
    return {"Authorization": f"Bearer {response.json()['access_token']}"}


@pytest.fixture
def alice(client):
    _register(client, "alice", "alice@example.com")
    return _login(client, "alice@example.com")


@pytest.fixture
def bob(client):
    _register(client, "bob", "bob@example.com")
    return _login(client, "bob@example.com")


@pytest.fixture
def uploaded(client, alice):
    response = client.post(
        f"{API}/files",
        headers=alice,
        files={"file": ("notes.txt", b"hello share", "text/plain")},
    )
    assert response.status_code == 201, response.text
    return response.json()



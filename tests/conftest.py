"""
Clean Madurai - test configuration and fixtures
"""
import os
import tempfile

import pytest

# Configure the app before anything imports clean_madurai.config.
os.environ["APP_ENV"] = "test"
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["JWT_SECRET"] = "test-jwt-secret-for-testing-only"
os.environ["SEED_ADMIN_ON_STARTUP"] = "false"
os.environ["COMPLAINT_CLASSIFIER"] = "keyword"
os.environ["BLOB_DIR"] = tempfile.mkdtemp(prefix="clean-madurai-blobs-")
os.environ.pop("GEMINI_API_KEY", None)

from fastapi.testclient import TestClient

from clean_madurai.auth import LocalAuthProvider, get_auth_provider
from clean_madurai.database import get_store
from clean_madurai.domain import AccessType, Role
from clean_madurai.main import app
from clean_madurai.services.account_service import AccountService
from clean_madurai.services.admission_service import AdmissionService
from clean_madurai.services.blob_store import LocalBlobStore, get_blob_store
from clean_madurai.services.complaint_service import ComplaintService
from clean_madurai.services.document_store import InMemoryDocumentStore
from clean_madurai.services.session_service import (
    Credential,
    DocumentSessionStore,
    MemorySessionStore,
    SessionGuard,
    TieredSessionStore,
)

PASSWORD = "secret-pass"
ADMIN_EMAIL = "admin@cleanmadurai.test"


@pytest.fixture
def store() -> InMemoryDocumentStore:
    return InMemoryDocumentStore()


@pytest.fixture
def blobs(tmp_path) -> LocalBlobStore:
    return LocalBlobStore(tmp_path / "blobs", "/api/blobs", max_bytes=1024 * 1024)


@pytest.fixture
def auth(store) -> LocalAuthProvider:
    return LocalAuthProvider(store, secret="unit-test-secret", max_failed_attempts=3, lockout_minutes=5)


@pytest.fixture
def guard(store, auth) -> SessionGuard:
    return SessionGuard(auth, store, TieredSessionStore(DocumentSessionStore(store), MemorySessionStore()))


@pytest.fixture
def accounts(store, auth, blobs) -> AccountService:
    return AccountService(store, auth, blobs)


@pytest.fixture
def admissions(store) -> AdmissionService:
    return AdmissionService(store)


@pytest.fixture
def complaints(store, blobs) -> ComplaintService:
    return ComplaintService(store, blobs)


@pytest.fixture
def admin_session(accounts, guard):
    accounts.ensure_admin(ADMIN_EMAIL, PASSWORD, "Test Admin")
    return guard.login(Credential(ADMIN_EMAIL, PASSWORD, AccessType.STAFF))


@pytest.fixture
def make_citizen(accounts, guard):
    def _make(email: str, ward: str = "Ward 5", zone_id: str = "zone-1", name: str = "Meena"):
        accounts.register(email=email, password=PASSWORD, role=Role.CITIZEN, name=name, zone_id=zone_id, ward=ward)
        return guard.login(Credential(email, PASSWORD, AccessType.CITIZEN, zone_id=zone_id, ward=ward))

    return _make


@pytest.fixture
def make_officer(accounts, admissions, guard, admin_session):
    """Registers an officer; approved officers come back signed in, others as their account."""

    def _make(email: str, ward: str = "Ward 5", zone_id: str = "zone-1", name: str = "Officer Raj", approve: bool = True):
        account = accounts.register(
            email=email, password=PASSWORD, role=Role.OFFICER, name=name, phone="9876543210", zone_id=zone_id, ward=ward
        )
        if not approve:
            return account
        admissions.approve(admin_session, account.id)
        return guard.login(Credential(email, PASSWORD, AccessType.STAFF))

    return _make


@pytest.fixture
def client(store, blobs, auth):
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_blob_store] = lambda: blobs
    app.dependency_overrides[get_auth_provider] = lambda: auth
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()

"""
Shared pytest fixtures for the SiteTrack test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup + recreate (autouse)
    - drive: In-memory Drive gateway installed on the app (autouse)
    - client: Flask test client (function-scoped)
    - admin / engineer / authority / viewer: one account per role
    - auth_headers: builds a Bearer header for an account
"""

import io

import pytest

from sitetrack import create_app
from sitetrack.core.exceptions import StorageError
from sitetrack.integrations.drive_gateway import EXTENSION_KEY
from sitetrack.models import db as _db
from sitetrack.models.auth import (
    ROLE_ADMIN,
    ROLE_PAYING_AUTHORITY,
    ROLE_SITE_ENGINEER,
    ROLE_VIEWER,
    User,
)
from sitetrack.services.jwt_service import generate_access_token


# ── Fake storage ─────────────────────────────────────────────────────────


class FakeStream:
    """Stands in for a streaming requests.Response."""

    def __init__(self, data, mime_type):
        self.data = data
        self.headers = {"Content-Type": mime_type, "Content-Length": str(len(data))}
        self.closed = False

    def iter_content(self, chunk_size=1):
        for i in range(0, len(self.data), chunk_size):
            yield self.data[i:i + chunk_size]

    def close(self):
        self.closed = True


class FakeDriveGateway:
    """Keeps uploaded files in a dict; mirrors DriveGateway's public methods."""

    def __init__(self):
        self.files = {}
        self.uploads = []
        self.deleted = []
        self.fail_with = None

    def upload_file(self, local_path, remote_name, mime_type, folder_id=None):
        if self.fail_with is not None:
            raise self.fail_with
        with open(local_path, "rb") as fh:
            data = fh.read()
        file_id = f"drive-{len(self.uploads) + 1}"
        self.files[file_id] = {
            "name": remote_name,
            "data": data,
            "mime_type": mime_type,
            "folder_id": folder_id,
        }
        self.uploads.append({"id": file_id, "path": local_path, "name": remote_name,
                             "folder_id": folder_id})
        return {"id": file_id, "webViewLink": f"https://drive.example/{file_id}/view"}

    def open_stream(self, file_id):
        if file_id not in self.files:
            raise StorageError("Drive download failed: HTTP 404", status_code=404)
        entry = self.files[file_id]
        return FakeStream(entry["data"], entry["mime_type"])

    def delete_file(self, file_id):
        if file_id not in self.files:
            raise StorageError("Drive delete failed: HTTP 404", status_code=404)
        del self.files[file_id]
        self.deleted.append(file_id)


# ── App & DB fixtures ────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app():
    """Create the Flask application once per test session."""
    return create_app("testing")


@pytest.fixture(scope="session")
def _setup_db(app):
    """Create all tables at session start, drop at end."""
    with app.app_context():
        _db.create_all()
    yield
    with app.app_context():
        _db.drop_all()


@pytest.fixture(autouse=True)
def session(app, _setup_db):
    """Per-test: open app context, rollback after test, recreate tables."""
    with app.app_context():
        yield
        _db.session.rollback()
        _db.drop_all()
        _db.create_all()


@pytest.fixture(autouse=True)
def drive(app):
    """Replace the real Drive gateway with an in-memory fake for each test."""
    original = app.extensions[EXTENSION_KEY]
    fake = FakeDriveGateway()
    app.extensions[EXTENSION_KEY] = fake
    yield fake
    app.extensions[EXTENSION_KEY] = original


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


# ── Accounts ─────────────────────────────────────────────────────────────


def make_user(username, role, password="secret-pass", is_active=True):
    user = User(
        username=username,
        email=f"{username}@example.com",
        password=password,
        role=role,
        is_active=is_active,
    )
    _db.session.add(user)
    _db.session.commit()
    return user


@pytest.fixture()
def admin():
    return make_user("admin", ROLE_ADMIN)


@pytest.fixture()
def engineer():
    return make_user("engineer", ROLE_SITE_ENGINEER)


@pytest.fixture()
def authority():
    return make_user("authority", ROLE_PAYING_AUTHORITY)


@pytest.fixture()
def viewer():
    return make_user("viewer", ROLE_VIEWER)


@pytest.fixture()
def auth_headers():
    """Return a function building an Authorization header for an account."""

    def _headers(user):
        return {"Authorization": f"Bearer {generate_access_token(user.id, user.role)}"}

    return _headers


# ── Request helpers ──────────────────────────────────────────────────────


def photo(name="photo.jpg", size=256):
    return (io.BytesIO(bytes(range(256)) * (size // 256 + 1)), name)


def submit_progress(client, headers, date="2024-01-01", description="Slab cast", photos=0,
                    videos=0):
    data = {"date": date, "description": description}
    if photos:
        data["photos"] = [photo(f"photo{i}.jpg") for i in range(1, photos + 1)]
    if videos:
        data["video"] = [photo(f"clip{i}.mp4") for i in range(1, videos + 1)]
    return client.post(
        "/api/progress", data=data, headers=headers, content_type="multipart/form-data"
    )


def submit_payment(client, headers, payment_id="PAY-1", date="2024-02-01", amount="1500.50",
                   **extra):
    body = {"paymentID": payment_id, "date": date, "amount": amount, **extra}
    return client.post("/api/payments", json=body, headers=headers)

"""
Pytest fixtures for the SWM portal test suite.

Provides:
- A Flask app on in-memory SQLite with the default staff accounts seeded
- Bearer headers for a citizen, a supervisor and an admin
- An in-memory backend for exercising the core without HTTP
- A requests-compatible adapter so the HTTP client can talk to the test app
"""

import itertools
import json
import threading
from dataclasses import replace
from datetime import datetime
from urllib.parse import urlsplit

import pytest

from app import create_app
from core.backend import AuthBackend, RecordBackend, VehicleLocation
from core.errors import (
    AuthBackendError,
    BackendError,
    InvalidCodeError,
    InvalidCredentialsError,
    RecordNotFoundError,
    SessionExpiredError,
)
from core.identity import Identity, MemorySessionStore, Role, SessionManager
from core.workflow import RecordKind, WorkflowEngine, record_from_payload
from extensions import db

CITIZEN_PHONE = "9876543210"
TEST_OTP = "123456"


# ---------------------------------------------------------------------------
# Server fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def app(monkeypatch):
    monkeypatch.setattr("routes.auth.generate_otp", lambda length=6: TEST_OTP)
    app = create_app("testing")
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


def login_citizen(client, phone: str = CITIZEN_PHONE) -> str:
    response = client.post("/auth/citizen-login", json={"phone": phone})
    assert response.status_code == 200
    response = client.post("/auth/verify-otp", json={"phone": phone, "otp": TEST_OTP})
    assert response.status_code == 200
    return response.get_json()["token"]


def login_staff(client, username: str, password: str, role: str) -> str:
    response = client.post("/auth/login", json={"username": username, "password": password, "role": role})
    assert response.status_code == 200
    return response.get_json()["token"]


@pytest.fixture
def citizen_headers(client):
    return bearer(login_citizen(client))


@pytest.fixture
def supervisor_headers(client):
    return bearer(login_staff(client, "supervisor1", "supervisor123", "supervisor"))


@pytest.fixture
def admin_headers(client):
    return bearer(login_staff(client, "admin1", "admin123", "admin"))


class _AdapterResponse:
    def __init__(self, response):
        self.status_code = response.status_code
        self.text = response.get_data(as_text=True)

    def json(self):
        return json.loads(self.text)


class FlaskRequestsAdapter:
    """Just enough of ``requests.Session`` to drive the Flask test client."""

    def __init__(self, client):
        self.client = client
        self.calls = []
        self._lock = threading.Lock()

    def request(self, method, url, json=None, headers=None, timeout=None):
        path = urlsplit(url).path or "/"
        with self._lock:
            self.calls.append((method, path))
            response = self.client.open(path, method=method, json=json, headers=headers or {})
        return _AdapterResponse(response)


@pytest.fixture
def http_adapter(client):
    return FlaskRequestsAdapter(client)


# ---------------------------------------------------------------------------
# Core fixtures
# ---------------------------------------------------------------------------


class FakeBackend(AuthBackend, RecordBackend):
    """In-memory backend mirroring the server's role scoping."""

    def __init__(self, otp: str = TEST_OTP):
        self.otp = otp
        self.staff = {
            "supervisor1": ("supervisor123", Role.SUPERVISOR),
            "admin1": ("admin123", Role.ADMIN),
        }
        self.challenged = set()
        self.revoked = []
        self.calls = []
        self.records = {kind: [] for kind in RecordKind}
        self.fail_kinds = set()
        self.fail_revoke = False
        self.fail_vehicle = False
        self.expire_tokens = False
        self.location = None
        self._ids = itertools.count(1)
        self._lock = threading.Lock()

    # auth

    def request_otp(self, phone):
        self.calls.append(("request_otp", phone))
        self.challenged.add(phone)

    def verify_otp(self, phone, code):
        self.calls.append(("verify_otp", phone))
        if phone not in self.challenged or code != self.otp:
            raise InvalidCodeError("Invalid or expired OTP.")
        return Identity(role=Role.CITIZEN, subject_id=phone, credential_token=f"tok-{phone}")

    def login(self, username, password, role):
        self.calls.append(("login", username))
        entry = self.staff.get(username)
        if entry is None or entry[0] != password:
            raise InvalidCredentialsError("Invalid credentials provided.")
        return Identity(role=entry[1], subject_id=username, credential_token=f"tok-{username}")

    def revoke(self, identity):
        self.calls.append(("revoke", identity.subject_id))
        if self.fail_revoke:
            raise AuthBackendError("Logout failed.")
        self.revoked.append(identity.credential_token)

    # records

    def _check(self, kind=None):
        if self.expire_tokens:
            raise SessionExpiredError("Token expired.", 401)
        if kind in self.fail_kinds:
            raise BackendError(f"{kind.collection} unavailable", 503)

    def list_records(self, identity, kind):
        self.calls.append(("list", kind))
        self._check(kind)
        with self._lock:
            rows = list(reversed(self.records[kind]))
        if kind is RecordKind.COMPLAINT and identity.role is Role.CITIZEN:
            rows = [r for r in rows if r.created_by == identity.subject_id]
        return rows

    def create_record(self, identity, kind, fields):
        self.calls.append(("create", kind))
        self._check(kind)
        payload = dict(fields)
        payload.update(
            {
                "id": str(next(self._ids)),
                "status": "started",
                "createdAt": datetime.utcnow().isoformat(),
                "createdBy": identity.subject_id,
            }
        )
        record = record_from_payload(kind, payload)
        with self._lock:
            self.records[kind].append(record)
        return record

    def update_status(self, identity, kind, record_id, status):
        self.calls.append(("update_status", kind, record_id, status))
        self._check(kind)
        with self._lock:
            rows = self.records[kind]
            for index, record in enumerate(rows):
                if record.id == record_id:
                    rows[index] = replace(record, status=status)
                    return
        raise RecordNotFoundError(f"No {kind.value} with id {record_id}.", 404)

    def fetch_vehicle_location(self, identity):
        self.calls.append(("vehicle",))
        if self.fail_vehicle:
            raise BackendError("Tracker offline.", 503)
        return self.location


def make_location(name: str = "Truck 7", latitude: float = 19.26, longitude: float = 84.91) -> VehicleLocation:
    return VehicleLocation(
        id="v-1",
        name=name,
        latitude=latitude,
        longitude=longitude,
        last_updated=datetime(2024, 1, 1, 10, 0, 0),
        status="active",
    )


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def store():
    return MemorySessionStore()


@pytest.fixture
def session(backend, store):
    return SessionManager(backend, store)


@pytest.fixture
def engine(session, backend):
    return WorkflowEngine(session, backend)


def sign_in_citizen(session, phone: str = CITIZEN_PHONE):
    session.begin_citizen_challenge(phone)
    return session.complete_citizen_challenge(phone, TEST_OTP)


def sign_in_staff(session, role: str):
    username, password = {
        "supervisor": ("supervisor1", "supervisor123"),
        "admin": ("admin1", "admin123"),
    }[role]
    return session.login_with_credentials(username, password, role)


def complaint_fields(**overrides) -> dict:
    fields = {
        "citizenName": "Asha Patnaik",
        "phone": CITIZEN_PHONE,
        "wardNumber": 5,
        "area": "Market Road",
        "category": "Garbage Dump",
        "description": "Overflowing bin near the market.",
        "photo": "data:image/jpeg;base64,AAAA",
    }
    fields.update(overrides)
    return fields


def defect_fields(**overrides) -> dict:
    fields = {
        "supervisorName": "R. Sahu",
        "contactNumber": "9000000001",
        "machineName": "Compactor 2",
        "description": "Hydraulic leak.",
    }
    fields.update(overrides)
    return fields


def qube_fields(**overrides) -> dict:
    fields = {
        "supervisorName": "R. Sahu",
        "contactNumber": "9000000001",
        "category": "MCC",
        "cubeNumber": 3,
        "photo": "data:image/jpeg;base64,BBBB",
    }
    fields.update(overrides)
    return fields


def khata_fields(**overrides) -> dict:
    fields = {
        "supervisorName": "R. Sahu",
        "contactNumber": "9000000001",
        "generation": "120 kg",
        "stock": "80 kg",
    }
    fields.update(overrides)
    return fields

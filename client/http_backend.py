"""REST backend for the portal core, spoken over ``requests``."""
import logging
from typing import Any, Dict, List, Optional

import requests

from core.backend import AuthBackend, RecordBackend, VehicleLocation
from core.errors import (
    AuthBackendError,
    BackendError,
    InvalidCodeError,
    InvalidCredentialsError,
    RecordNotFoundError,
    SessionExpiredError,
    ValidationError,
)
from core.identity import Identity
from core.workflow import Record, RecordKind, Status, record_from_payload

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30


def _message(response, fallback: str) -> str:
    try:
        body = response.json()
    except ValueError:
        return fallback
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    return fallback


def _field_errors(response) -> Dict[str, List[str]]:
    try:
        body = response.json()
    except ValueError:
        return {}
    errors = body.get("errors") if isinstance(body, dict) else None
    return errors if isinstance(errors, dict) else {}


class HttpBackend(AuthBackend, RecordBackend):
    """Maps the session and workflow operations onto the portal's REST API."""

    def __init__(self, base_url: str, session=None, timeout: float = DEFAULT_TIMEOUT) -> None:
        self.base_url = base_url.rstrip("/")
        self.http = session or requests.Session()
        self.timeout = timeout

    def _request(self, method: str, path: str, payload: Optional[Dict[str, Any]] = None, identity: Optional[Identity] = None):
        headers = {"Accept": "application/json"}
        if identity is not None:
            headers["Authorization"] = f"Bearer {identity.credential_token}"
        url = f"{self.base_url}{path}"
        logger.debug("Backend request", extra={"method": method, "path": path})
        return self.http.request(method, url, json=payload, headers=headers, timeout=self.timeout)

    # ── Authentication ──

    def _auth_call(self, path: str, payload: Dict[str, Any], rejected: type):
        try:
            response = self._request("POST", path, payload)
        except requests.RequestException as exc:
            raise AuthBackendError(f"Authentication service unreachable: {exc}") from exc
        if response.status_code == 400:
            raise ValidationError(_message(response, "Invalid request."), _field_errors(response))
        if response.status_code == 401:
            raise rejected(_message(response, "Rejected by the authentication service."))
        if response.status_code >= 400:
            raise AuthBackendError(_message(response, f"Authentication failed ({response.status_code})."))
        return response

    def _identity_from(self, response) -> Identity:
        try:
            return Identity.from_payload(response.json())
        except (ValueError, TypeError, AttributeError) as exc:
            raise AuthBackendError("Authentication service returned a malformed identity.") from exc

    def request_otp(self, phone: str) -> None:
        self._auth_call("/auth/citizen-login", {"phone": phone}, AuthBackendError)

    def verify_otp(self, phone: str, code: str) -> Identity:
        response = self._auth_call("/auth/verify-otp", {"phone": phone, "otp": code}, InvalidCodeError)
        return self._identity_from(response)

    def login(self, username: str, password: str, role: str) -> Identity:
        response = self._auth_call(
            "/auth/login",
            {"username": username, "password": password, "role": role},
            InvalidCredentialsError,
        )
        return self._identity_from(response)

    def revoke(self, identity: Identity) -> None:
        try:
            response = self._request("POST", "/auth/logout", identity=identity)
        except requests.RequestException as exc:
            raise AuthBackendError(f"Logout request failed: {exc}") from exc
        # An already rejected token is as good as revoked.
        if response.status_code >= 400 and response.status_code != 401:
            raise AuthBackendError(_message(response, f"Logout failed ({response.status_code})."))

    # ── Records ──

    def _data_call(self, method: str, path: str, identity: Identity, payload: Optional[Dict[str, Any]] = None):
        try:
            response = self._request(method, path, payload, identity=identity)
        except requests.RequestException as exc:
            raise BackendError(f"Backend unreachable: {exc}") from exc
        status = response.status_code
        if status < 400:
            return response
        message = _message(response, f"Backend request failed ({status}).")
        if status == 400:
            raise ValidationError(message, _field_errors(response))
        if status == 401:
            raise SessionExpiredError(message, status)
        if status == 404:
            raise RecordNotFoundError(message, status)
        raise BackendError(message, status)

    def list_records(self, identity: Identity, kind: RecordKind) -> List[Record]:
        response = self._data_call("GET", f"/{kind.collection}", identity)
        try:
            return [record_from_payload(kind, item) for item in response.json()]
        except (ValueError, KeyError, TypeError) as exc:
            raise BackendError(f"Malformed {kind.collection} listing.") from exc

    def create_record(self, identity: Identity, kind: RecordKind, fields: Dict[str, Any]) -> Record:
        response = self._data_call("POST", f"/{kind.collection}", identity, fields)
        try:
            return record_from_payload(kind, response.json())
        except (ValueError, KeyError, TypeError) as exc:
            raise BackendError(f"Malformed {kind.value} returned on create.") from exc

    def update_status(self, identity: Identity, kind: RecordKind, record_id: str, status: Status) -> None:
        self._data_call("PATCH", f"/{kind.collection}/{record_id}/status", identity, {"status": status.value})

    def fetch_vehicle_location(self, identity: Identity) -> Optional[VehicleLocation]:
        response = self._data_call("GET", "/vehicle/location", identity)
        try:
            body = response.json()
            return VehicleLocation.from_payload(body) if body else None
        except (ValueError, KeyError, TypeError) as exc:
            raise BackendError("Malformed vehicle location.") from exc

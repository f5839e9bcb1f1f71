"""Authenticated identity and the session manager that owns its lifecycle."""
from __future__ import annotations

import json
import logging
import os
import re
import tempfile
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

from core.backend import AuthBackend
from core.errors import AuthBackendError, InvalidCredentialsError, PortalError, ValidationError

logger = logging.getLogger(__name__)

PHONE_PATTERN = re.compile(r"[0-9]{10}")
OTP_PATTERN = re.compile(r"[0-9]{4,8}")

# Persisted session keys; fixed so state survives reloads.
TOKEN_KEY = "token"
ROLE_KEY = "role"
SUBJECT_KEY = "userId"
SESSION_KEYS = (TOKEN_KEY, ROLE_KEY, SUBJECT_KEY)


class Role(str, Enum):
    CITIZEN = "citizen"
    SUPERVISOR = "supervisor"
    ADMIN = "admin"

    @classmethod
    def parse(cls, value: Any) -> Optional["Role"]:
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return None


STAFF_ROLES = frozenset({Role.SUPERVISOR, Role.ADMIN})


def is_valid_phone(phone: Any) -> bool:
    return isinstance(phone, str) and PHONE_PATTERN.fullmatch(phone) is not None


@dataclass(frozen=True)
class Identity:
    role: Role
    subject_id: str
    credential_token: str = field(repr=False)

    def __post_init__(self) -> None:
        if not isinstance(self.role, Role):
            raise ValueError(f"Unknown role: {self.role!r}")
        if not self.subject_id:
            raise ValueError("Identity requires a subject id")
        if not self.credential_token:
            raise ValueError("Identity requires a credential token")

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "Identity":
        """Build an identity from the backend's ``{token, role, userId}`` shape."""
        role = Role.parse(payload.get(ROLE_KEY))
        if role is None:
            raise ValueError(f"Unknown role: {payload.get(ROLE_KEY)!r}")
        return cls(
            role=role,
            subject_id=str(payload.get(SUBJECT_KEY) or ""),
            credential_token=str(payload.get(TOKEN_KEY) or ""),
        )

    def to_payload(self) -> Dict[str, str]:
        return {TOKEN_KEY: self.credential_token, ROLE_KEY: self.role.value, SUBJECT_KEY: self.subject_id}


class SessionStore(ABC):
    """Client-side key/value persistence for the session keys."""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        ...

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        ...

    @abstractmethod
    def delete(self, key: str) -> None:
        ...


class MemorySessionStore(SessionStore):
    def __init__(self, initial: Optional[Dict[str, str]] = None) -> None:
        self._values: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._values.get(key)

    def set(self, key: str, value: str) -> None:
        self._values[key] = value

    def delete(self, key: str) -> None:
        self._values.pop(key, None)


class FileSessionStore(SessionStore):
    """JSON file store so a session survives process restarts."""

    def __init__(self, path: str) -> None:
        self.path = path

    def _read(self) -> Dict[str, str]:
        if not os.path.isfile(self.path):
            return {}
        with open(self.path, "r", encoding="utf-8") as handle:
            try:
                data = json.load(handle)
            except json.JSONDecodeError:
                logger.warning("Ignoring unreadable session file", extra={"path": self.path})
                return {}
        return data if isinstance(data, dict) else {}

    def _write(self, data: Dict[str, str]) -> None:
        directory = os.path.dirname(os.path.abspath(self.path))
        os.makedirs(directory, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=".session-")
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            json.dump(data, handle)
        os.replace(tmp_path, self.path)

    def get(self, key: str) -> Optional[str]:
        value = self._read().get(key)
        return value if isinstance(value, str) else None

    def set(self, key: str, value: str) -> None:
        data = self._read()
        data[key] = value
        self._write(data)

    def delete(self, key: str) -> None:
        data = self._read()
        if key in data:
            del data[key]
            self._write(data)


class SessionState(str, Enum):
    ANONYMOUS = "anonymous"
    CHALLENGED = "challenged"
    AUTHENTICATED = "authenticated"


class SessionManager:
    """Establishes, persists and tears down the current identity.

    One instance is created per client process and handed to every service
    that needs to know who is signed in.
    """

    def __init__(self, backend: AuthBackend, store: Optional[SessionStore] = None) -> None:
        self.backend = backend
        self.store = store or MemorySessionStore()
        self._identity: Optional[Identity] = None
        self._pending_phone: Optional[str] = None
        self._state = SessionState.ANONYMOUS

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def pending_phone(self) -> Optional[str]:
        return self._pending_phone

    def current_identity(self) -> Optional[Identity]:
        return self._identity

    def begin_citizen_challenge(self, phone: str) -> bool:
        if self._state is SessionState.AUTHENTICATED:
            raise ValidationError("Sign out before starting a citizen login.", {"phone": ["Already signed in."]})
        phone = (phone or "").strip()
        if not is_valid_phone(phone):
            raise ValidationError("Phone number must be exactly 10 digits.", {"phone": ["Invalid phone number."]})
        self.backend.request_otp(phone)
        self._pending_phone = phone
        self._state = SessionState.CHALLENGED
        logger.info("Citizen challenge issued")
        return True

    def complete_citizen_challenge(self, phone: str, code: str) -> Identity:
        phone = (phone or "").strip()
        code = (code or "").strip()
        if self._state is not SessionState.CHALLENGED or phone != self._pending_phone:
            raise ValidationError("No one-time code was requested for this phone number.", {"phone": ["Request a code first."]})
        if not OTP_PATTERN.fullmatch(code):
            raise ValidationError("One-time code must be numeric.", {"otp": ["Invalid code format."]})

        identity = self.backend.verify_otp(phone, code)
        if identity.role is not Role.CITIZEN:
            raise AuthBackendError("Backend returned a non-citizen identity for an OTP login.")
        self._establish(identity)
        return identity

    def abandon_challenge(self) -> None:
        if self._state is SessionState.CHALLENGED:
            self._pending_phone = None
            self._state = SessionState.ANONYMOUS

    def login_with_credentials(self, username: str, password: str, claimed_role: Any) -> Identity:
        role = Role.parse(claimed_role)
        if role not in STAFF_ROLES:
            raise ValidationError("Credential login is only available to staff roles.", {"role": ["Invalid role."]})
        username = (username or "").strip()
        if not username or not password:
            raise ValidationError("Username and password are required.", {"username": ["Required."], "password": ["Required."]})

        identity = self.backend.login(username, password, role.value)
        if identity.role is not role:
            raise InvalidCredentialsError("Account does not hold the requested role.")
        self._establish(identity)
        return identity

    def restore_session(self) -> Optional[Identity]:
        values = {key: self.store.get(key) for key in SESSION_KEYS}
        if not all(values.values()):
            return None
        try:
            identity = Identity.from_payload(values)
        except ValueError:
            logger.warning("Discarding malformed persisted session")
            return None
        self._identity = identity
        self._pending_phone = None
        self._state = SessionState.AUTHENTICATED
        return identity

    def logout(self) -> None:
        identity = self._identity
        if identity is not None:
            try:
                self.backend.revoke(identity)
            except PortalError:
                logger.warning("Token revocation failed during logout", exc_info=True)
        self._clear()
        logger.info("Session closed")

    def invalidate(self) -> None:
        """Drop the session after the backend rejected its token."""
        if self._identity is not None:
            logger.info("Session invalidated by backend")
        self._clear()

    def _establish(self, identity: Identity) -> None:
        for key, value in identity.to_payload().items():
            self.store.set(key, value)
        self._identity = identity
        self._pending_phone = None
        self._state = SessionState.AUTHENTICATED
        logger.info("Session established", extra={"role": identity.role.value})

    def _clear(self) -> None:
        for key in SESSION_KEYS:
            self.store.delete(key)
        self._identity = None
        self._pending_phone = None
        self._state = SessionState.ANONYMOUS

"""Interface the core consumes from the REST backend."""
from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Any, Dict, List, Optional

if TYPE_CHECKING:
    from core.identity import Identity
    from core.workflow import Record, RecordKind, Status


@dataclass(frozen=True)
class VehicleLocation:
    id: str
    name: str
    latitude: float
    longitude: float
    last_updated: datetime
    status: str

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "VehicleLocation":
        return cls(
            id=str(payload["id"]),
            name=payload["name"],
            latitude=float(payload["latitude"]),
            longitude=float(payload["longitude"]),
            last_updated=datetime.fromisoformat(payload["lastUpdated"]),
            status=payload["status"],
        )


class AuthBackend(ABC):
    @abstractmethod
    def request_otp(self, phone: str) -> None:
        """Ask the backend to deliver a one-time code to ``phone``."""

    @abstractmethod
    def verify_otp(self, phone: str, code: str) -> "Identity":
        """Exchange a one-time code for a citizen identity."""

    @abstractmethod
    def login(self, username: str, password: str, role: str) -> "Identity":
        """Exchange staff credentials for an identity."""

    @abstractmethod
    def revoke(self, identity: "Identity") -> None:
        """Invalidate the identity's token on the backend."""


class RecordBackend(ABC):
    @abstractmethod
    def list_records(self, identity: "Identity", kind: "RecordKind") -> List["Record"]:
        ...

    @abstractmethod
    def create_record(self, identity: "Identity", kind: "RecordKind", fields: Dict[str, Any]) -> "Record":
        ...

    @abstractmethod
    def update_status(self, identity: "Identity", kind: "RecordKind", record_id: str, status: "Status") -> None:
        ...

    @abstractmethod
    def fetch_vehicle_location(self, identity: "Identity") -> Optional[VehicleLocation]:
        ...

"""Record kinds, the shared status machine, and who may do what to each kind."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, ClassVar, Dict, FrozenSet, List, Optional, Tuple, Type, TypeVar

from core.backend import RecordBackend, VehicleLocation
from core.errors import AccessDeniedError, SessionExpiredError, ValidationError
from core.identity import Identity, Role, SessionManager, is_valid_phone

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Status(str, Enum):
    STARTED = "started"
    IN_PROGRESS = "in-progress"
    APPROVED = "approved"
    REJECTED = "rejected"

    @classmethod
    def parse(cls, value: Any) -> Optional["Status"]:
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return None


STATUS_VALUES: Tuple[str, ...] = tuple(s.value for s in Status)
INITIAL_STATUS = Status.STARTED
TERMINAL_STATUSES = frozenset({Status.APPROVED, Status.REJECTED})


def transition_allowed(current: Status, target: Status) -> bool:
    # Open graph: every enumerated status may follow every other, terminal ones included.
    return isinstance(current, Status) and isinstance(target, Status)


def allowed_transitions(current: Status) -> Tuple[Status, ...]:
    return tuple(s for s in Status if transition_allowed(current, s))


class RecordKind(str, Enum):
    COMPLAINT = "complaint"
    DEFECT = "defect"
    QUBE = "qube"
    KHATA = "khata"

    @property
    def collection(self) -> str:
        return COLLECTIONS[self]

    @classmethod
    def from_collection(cls, name: str) -> Optional["RecordKind"]:
        for kind, collection in COLLECTIONS.items():
            if collection == name:
                return kind
        return None


COLLECTIONS: Dict[RecordKind, str] = {
    RecordKind.COMPLAINT: "complaints",
    RecordKind.DEFECT: "defects",
    RecordKind.QUBE: "qubes",
    RecordKind.KHATA: "khata",
}

COMPLAINT_CATEGORIES: Tuple[str, ...] = (
    "Illegal Dumping of C & D Waste",
    "Dead Animals",
    "Practice of Manual Scavenging",
    "Open Defecation",
    "Urination in Public",
    "No Electricity in Public Toilet Stagnant Water on the Road",
    "Sewerage or Storm Water Overflow",
    "Open Manholes or Drains",
    "Improper Disposal of Faccal Waste or Septage",
    "Cleaning of Sewer",
    "Public Toilet Blockage",
    "Public Toilet Cleaning",
    "Cleaning of Drain",
    "No Water Supply in Public Toilet",
    "Garbage Dump",
    "Dustbins Not Cleaned",
    "Sweeping Not Done",
    "Burning of Garbage in Open Space",
    "Garbage Vehicle Not Arrived",
    "Cleaning of Garbage from Public Spaces",
    "Cleaning of Street Roads",
    "Door-To-Door Collection Not Done",
)

QUBE_CUBE_RANGES: Dict[str, Tuple[int, int]] = {
    "MCC": (1, 14),
    "MRF": (1, 6),
}
QUBE_CATEGORIES: Tuple[str, ...] = tuple(QUBE_CUBE_RANGES)
QUBE_DEFAULT_WARD = "Gopalpur NAC"


@dataclass(frozen=True)
class KindPolicy:
    creators: FrozenSet[Role]
    readers: FrozenSet[Role]
    transitioners: FrozenSet[Role]
    owner_scoped: FrozenSet[Role] = frozenset()

    @property
    def viewers(self) -> FrozenSet[Role]:
        return self.readers | self.transitioners


_SUPERVISOR_LOG = KindPolicy(
    creators=frozenset({Role.SUPERVISOR}),
    readers=frozenset(),
    transitioners=frozenset({Role.SUPERVISOR, Role.ADMIN}),
)

POLICIES: Dict[RecordKind, KindPolicy] = {
    RecordKind.COMPLAINT: KindPolicy(
        creators=frozenset({Role.CITIZEN}),
        readers=frozenset({Role.CITIZEN, Role.SUPERVISOR}),
        transitioners=frozenset({Role.ADMIN}),
        owner_scoped=frozenset({Role.CITIZEN}),
    ),
    RecordKind.DEFECT: _SUPERVISOR_LOG,
    RecordKind.QUBE: _SUPERVISOR_LOG,
    RecordKind.KHATA: _SUPERVISOR_LOG,
}


def can_create(role: Role, kind: RecordKind) -> bool:
    return role in POLICIES[kind].creators


def can_view(role: Role, kind: RecordKind) -> bool:
    return role in POLICIES[kind].viewers


def can_transition(role: Role, kind: RecordKind) -> bool:
    return role in POLICIES[kind].transitioners


def is_owner_scoped(role: Role, kind: RecordKind) -> bool:
    """True when ``role`` may only see records it created."""
    return role in POLICIES[kind].owner_scoped


def visible_kinds(role: Role) -> Tuple[RecordKind, ...]:
    return tuple(kind for kind in RecordKind if can_view(role, kind))


# ── Record variants ──


@dataclass(frozen=True)
class Record:
    """Envelope shared by every record kind."""

    kind: ClassVar[RecordKind]
    wire_names: ClassVar[Dict[str, str]] = {}

    id: str
    status: Status
    created_at: datetime
    created_by: str

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @classmethod
    def from_payload(cls: Type["Record"], payload: Dict[str, Any]) -> "Record":
        status = Status.parse(payload.get("status"))
        if status is None:
            raise ValueError(f"Unknown status: {payload.get('status')!r}")
        values: Dict[str, Any] = {
            "id": str(payload["id"]),
            "status": status,
            "created_at": datetime.fromisoformat(payload["createdAt"]),
            "created_by": str(payload.get("createdBy") or ""),
        }
        for attr, wire in cls.wire_names.items():
            if wire in payload:
                values[attr] = payload[wire]
        return cls(**values)

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "id": self.id,
            "status": self.status.value,
            "createdAt": self.created_at.isoformat(),
            "createdBy": self.created_by,
        }
        for attr, wire in self.wire_names.items():
            payload[wire] = getattr(self, attr)
        return payload


@dataclass(frozen=True)
class Complaint(Record):
    kind: ClassVar[RecordKind] = RecordKind.COMPLAINT
    wire_names: ClassVar[Dict[str, str]] = {
        "citizen_name": "citizenName",
        "phone": "phone",
        "ward_number": "wardNumber",
        "area": "area",
        "category": "category",
        "description": "description",
        "photo": "photo",
    }

    citizen_name: str = ""
    phone: str = ""
    ward_number: int = 0
    area: str = ""
    category: str = ""
    description: str = ""
    # Opaque text payload, typically a data URI.
    photo: str = field(default="", repr=False)


@dataclass(frozen=True)
class Defect(Record):
    kind: ClassVar[RecordKind] = RecordKind.DEFECT
    wire_names: ClassVar[Dict[str, str]] = {
        "supervisor_name": "supervisorName",
        "contact_number": "contactNumber",
        "machine_name": "machineName",
        "description": "description",
    }

    supervisor_name: str = ""
    contact_number: str = ""
    machine_name: str = ""
    description: str = ""


@dataclass(frozen=True)
class QubeReport(Record):
    kind: ClassVar[RecordKind] = RecordKind.QUBE
    wire_names: ClassVar[Dict[str, str]] = {
        "ward_name": "wardName",
        "supervisor_name": "supervisorName",
        "contact_number": "contactNumber",
        "category": "category",
        "cube_number": "cubeNumber",
        "photo": "photo",
    }

    ward_name: str = QUBE_DEFAULT_WARD
    supervisor_name: str = ""
    contact_number: str = ""
    category: str = ""
    cube_number: int = 0
    # Opaque text payload, typically a data URI.
    photo: str = field(default="", repr=False)


@dataclass(frozen=True)
class KhataEntry(Record):
    kind: ClassVar[RecordKind] = RecordKind.KHATA
    wire_names: ClassVar[Dict[str, str]] = {
        "supervisor_name": "supervisorName",
        "contact_number": "contactNumber",
        "generation": "generation",
        "stock": "stock",
    }

    supervisor_name: str = ""
    contact_number: str = ""
    generation: str = ""
    stock: str = ""


RECORD_TYPES: Dict[RecordKind, Type[Record]] = {
    RecordKind.COMPLAINT: Complaint,
    RecordKind.DEFECT: Defect,
    RecordKind.QUBE: QubeReport,
    RecordKind.KHATA: KhataEntry,
}


def record_from_payload(kind: RecordKind, payload: Dict[str, Any]) -> Record:
    return RECORD_TYPES[kind].from_payload(payload)


# ── Creation validation ──


def cube_range(category: Optional[str]) -> Optional[Tuple[int, int]]:
    return QUBE_CUBE_RANGES.get(category or "")


def cube_number_in_range(category: Optional[str], cube_number: Any) -> bool:
    bounds = cube_range(category)
    if bounds is None or isinstance(cube_number, bool) or not isinstance(cube_number, int):
        return False
    low, high = bounds
    return low <= cube_number <= high


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().lstrip("-").isdigit():
        return int(value.strip())
    return None


def _text(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


REQUIRED_TEXT: Dict[RecordKind, Tuple[str, ...]] = {
    RecordKind.COMPLAINT: ("citizenName", "phone", "area", "category", "description", "photo"),
    RecordKind.DEFECT: ("supervisorName", "contactNumber", "machineName", "description"),
    RecordKind.QUBE: ("supervisorName", "contactNumber", "category", "photo"),
    RecordKind.KHATA: ("supervisorName", "contactNumber", "generation", "stock"),
}


def validate_fields(kind: RecordKind, fields: Dict[str, Any]) -> Dict[str, Any]:
    """Return the normalized wire payload for a new record or raise ``ValidationError``."""
    errors: Dict[str, List[str]] = {}
    cleaned: Dict[str, Any] = {}

    for name in REQUIRED_TEXT[kind]:
        value = _text(fields.get(name))
        if not value:
            raw = fields.get(name)
            if raw and not isinstance(raw, str):
                errors.setdefault(name, []).append("Must be text; send photos as a data URI.")
            else:
                errors.setdefault(name, []).append("This field is required.")
        cleaned[name] = value

    if kind is RecordKind.COMPLAINT:
        if cleaned["phone"] and not is_valid_phone(cleaned["phone"]):
            errors.setdefault("phone", []).append("Phone number must be exactly 10 digits.")
        if cleaned["category"] and cleaned["category"] not in COMPLAINT_CATEGORIES:
            errors.setdefault("category", []).append("Not a valid complaint category.")
        ward = _as_int(fields.get("wardNumber"))
        if ward is None or ward < 1:
            errors.setdefault("wardNumber", []).append("Ward number must be a positive whole number.")
        cleaned["wardNumber"] = ward

    elif kind is RecordKind.QUBE:
        if cleaned["contactNumber"] and not is_valid_phone(cleaned["contactNumber"]):
            errors.setdefault("contactNumber", []).append("Contact number must be exactly 10 digits.")
        category = cleaned["category"]
        cube = _as_int(fields.get("cubeNumber"))
        if category and category not in QUBE_CATEGORIES:
            errors.setdefault("category", []).append("Category must be MCC or MRF.")
        elif category and not cube_number_in_range(category, cube):
            low, high = QUBE_CUBE_RANGES[category]
            errors.setdefault("cubeNumber", []).append(f"{category} cube number must be between {low} and {high}.")
        cleaned["cubeNumber"] = cube
        cleaned["wardName"] = _text(fields.get("wardName")) or QUBE_DEFAULT_WARD

    if errors:
        raise ValidationError(f"Invalid {kind.value} submission.", errors)
    return cleaned


class QubeReportDraft:
    """Form state for a qube report; picking a category clears the cube number."""

    def __init__(self, supervisor_name: str = "", contact_number: str = "", ward_name: str = QUBE_DEFAULT_WARD) -> None:
        self.supervisor_name = supervisor_name
        self.contact_number = contact_number
        self.ward_name = ward_name
        self.category: Optional[str] = None
        self.cube_number: Optional[int] = None
        self.photo: Optional[str] = None

    def select_category(self, category: str) -> None:
        self.category = category
        self.cube_number = None

    @property
    def cube_range(self) -> Optional[Tuple[int, int]]:
        return cube_range(self.category)

    def to_fields(self) -> Dict[str, Any]:
        return {
            "wardName": self.ward_name,
            "supervisorName": self.supervisor_name,
            "contactNumber": self.contact_number,
            "category": self.category,
            "cubeNumber": self.cube_number,
            "photo": self.photo,
        }


# ── Engine ──


class WorkflowEngine:
    """Applies the role matrix and status machine on top of a record backend."""

    def __init__(self, session: SessionManager, backend: RecordBackend) -> None:
        self.session = session
        self.backend = backend

    def _identity(self) -> Identity:
        identity = self.session.current_identity()
        if identity is None:
            raise AccessDeniedError("Sign in required.")
        return identity

    def _call(self, operation: Callable[..., T], *args: Any) -> T:
        try:
            return operation(*args)
        except SessionExpiredError:
            self.session.invalidate()
            raise

    def visible_kinds(self) -> Tuple[RecordKind, ...]:
        identity = self.session.current_identity()
        return visible_kinds(identity.role) if identity else ()

    def list_records(self, kind: RecordKind) -> List[Record]:
        identity = self._identity()
        if not can_view(identity.role, kind):
            raise AccessDeniedError(f"{identity.role.value} may not view {kind.collection}.")
        return self._call(self.backend.list_records, identity, kind)

    def create_record(self, kind: RecordKind, fields: Dict[str, Any]) -> Record:
        identity = self._identity()
        if not can_create(identity.role, kind):
            raise AccessDeniedError(f"{identity.role.value} may not create {kind.collection}.")
        cleaned = validate_fields(kind, fields)
        record = self._call(self.backend.create_record, identity, kind, cleaned)
        logger.info("Record created", extra={"kind": kind.value, "record_id": record.id})
        return record

    def transition(self, kind: RecordKind, record_id: str, new_status: Any) -> Status:
        identity = self._identity()
        if not can_transition(identity.role, kind):
            raise AccessDeniedError(f"{identity.role.value} may not change the status of {kind.collection}.")
        status = Status.parse(new_status)
        if status is None:
            raise ValidationError("Unknown status.", {"status": [f"Must be one of: {', '.join(STATUS_VALUES)}."]})
        self._call(self.backend.update_status, identity, kind, record_id, status)
        logger.info(
            "Record status updated",
            extra={"kind": kind.value, "record_id": record_id, "status": status.value},
        )
        return status

    def vehicle_location(self) -> Optional[VehicleLocation]:
        identity = self._identity()
        return self._call(self.backend.fetch_vehicle_location, identity)

"""Data models for staff and citizen accounts, tokens, audit trails and submitted records."""
import uuid
from datetime import datetime, timedelta
from typing import Any, ClassVar, Dict

from flask_login import UserMixin
from sqlalchemy.orm import declared_attr
from werkzeug.security import check_password_hash, generate_password_hash

from core.identity import Role
from core.workflow import INITIAL_STATUS, STATUS_VALUES, RecordKind
from extensions import db
from utils.security import generate_token, hash_value


def generate_uuid() -> str:
	return str(uuid.uuid4())


ROLE_VALUES: tuple[str, ...] = tuple(r.value for r in Role)

_STATUS_SQL = ",".join(f"'{s}'" for s in STATUS_VALUES)
_ROLE_SQL = ",".join(f"'{r}'" for r in ROLE_VALUES)


class User(UserMixin, db.Model):
	"""An account; ``subject_id`` is the phone for citizens and the username for staff."""

	__tablename__ = "users"

	id = db.Column(db.String(36), primary_key=True, default=generate_uuid)
	subject_id = db.Column(db.String(150), unique=True, nullable=False, index=True)
	full_name = db.Column(db.String(150), nullable=True)
	password_hash = db.Column(db.String(255), nullable=True)
	role = db.Column(db.String(20), nullable=False, index=True)
	is_active = db.Column(db.Boolean, default=True, nullable=False)
	created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
	last_login_at = db.Column(db.DateTime, nullable=True)

	__table_args__ = (
		db.CheckConstraint(f"role IN ({_ROLE_SQL})", name="ck_user_role_valid"),
	)

	audit_logs = db.relationship("AuditLog", back_populates="user", lazy="dynamic")
	tokens = db.relationship("AccessToken", back_populates="user", lazy="dynamic")

	def set_password(self, password: str) -> None:
		self.password_hash = generate_password_hash(password, method="pbkdf2:sha256", salt_length=16)

	def check_password(self, password: str) -> bool:
		if not self.password_hash:
			return False
		return check_password_hash(self.password_hash, password)

	@property
	def role_enum(self) -> Role:
		return Role(self.role)

	@property
	def active(self) -> bool:  # Flask-Login compatibility alias
		return self.is_active

	@staticmethod
	def get_or_create_citizen(phone: str) -> "User":
		user = User.query.filter_by(subject_id=phone).first()
		if user:
			return user
		user = User(subject_id=phone, role=Role.CITIZEN.value, is_active=True)
		db.session.add(user)
		return user


class AccessToken(db.Model):
	"""Bearer credential handed to clients; only its hash is stored."""

	__tablename__ = "access_tokens"

	id = db.Column(db.Integer, primary_key=True)
	user_id = db.Column(db.String(36), db.ForeignKey("users.id"), nullable=False, index=True)
	token_hash = db.Column(db.String(128), nullable=False, unique=True, index=True)
	expires_at = db.Column(db.DateTime, nullable=False)
	revoked_at = db.Column(db.DateTime, nullable=True)
	created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

	user = db.relationship("User", back_populates="tokens")

	@staticmethod
	def issue_for(user: User, ttl: timedelta) -> str:
		raw = generate_token(32)
		db.session.add(
			AccessToken(
				user=user,
				token_hash=hash_value(raw),
				expires_at=datetime.utcnow() + ttl,
			)
		)
		return raw

	@staticmethod
	def resolve(raw: str) -> "AccessToken | None":
		if not raw:
			return None
		return AccessToken.query.filter_by(token_hash=hash_value(raw)).first()

	@property
	def is_expired(self) -> bool:
		return datetime.utcnow() > self.expires_at

	@property
	def is_usable(self) -> bool:
		return self.revoked_at is None and not self.is_expired


class CitizenOTP(db.Model):
	__tablename__ = "citizen_otps"

	id = db.Column(db.Integer, primary_key=True)
	phone = db.Column(db.String(10), nullable=False, index=True)
	otp_hash = db.Column(db.String(255), nullable=False)
	expires_at = db.Column(db.DateTime, nullable=False)
	consumed_at = db.Column(db.DateTime, nullable=True)
	created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
	ip_address = db.Column(db.String(64), nullable=True)

	@staticmethod
	def create_for(phone: str, otp_value: str, ttl_seconds: int = 300, ip_address: str | None = None):
		# Only the newest code for a phone stays valid.
		CitizenOTP.query.filter_by(phone=phone, consumed_at=None).delete()
		record = CitizenOTP(
			phone=phone,
			otp_hash=generate_password_hash(otp_value, method="pbkdf2:sha256", salt_length=12),
			expires_at=datetime.utcnow() + timedelta(seconds=ttl_seconds),
			ip_address=ip_address,
		)
		db.session.add(record)
		return record

	@staticmethod
	def latest_for(phone: str) -> "CitizenOTP | None":
		return (
			CitizenOTP.query.filter_by(phone=phone, consumed_at=None)
			.order_by(CitizenOTP.created_at.desc(), CitizenOTP.id.desc())
			.first()
		)

	def verify(self, candidate: str) -> bool:
		if self.consumed_at or datetime.utcnow() > self.expires_at:
			return False
		return check_password_hash(self.otp_hash, candidate)


class AuditLog(db.Model):
	__tablename__ = "audit_logs"

	id = db.Column(db.Integer, primary_key=True)
	user_id = db.Column(db.String(36), db.ForeignKey("users.id"), nullable=True)
	action_type = db.Column(db.String(50), nullable=False)
	ip_address = db.Column(db.String(64), nullable=True)
	user_agent = db.Column(db.String(255), nullable=True)
	context_entity = db.Column(db.String(120), nullable=True)
	timestamp = db.Column(db.DateTime, default=datetime.utcnow, nullable=False, index=True)

	user = db.relationship("User", back_populates="audit_logs")


class RecordMixin:
	"""Envelope columns shared by every record table."""

	kind: ClassVar[RecordKind]
	wire_fields: ClassVar[Dict[str, str]] = {}

	id = db.Column(db.String(36), primary_key=True, default=generate_uuid)
	status = db.Column(db.String(20), nullable=False, default=INITIAL_STATUS.value, index=True)
	created_by = db.Column(db.String(150), nullable=False, index=True)
	created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False, index=True)

	@declared_attr
	def __table_args__(cls):
		return (
			db.CheckConstraint(f"status IN ({_STATUS_SQL})", name=f"ck_{cls.__tablename__}_status_valid"),
		)

	@classmethod
	def newest_first(cls):
		return cls.query.order_by(cls.created_at.desc())

	def to_payload(self) -> Dict[str, Any]:
		payload: Dict[str, Any] = {
			"id": str(self.id),
			"status": self.status,
			"createdAt": self.created_at.isoformat(),
			"createdBy": self.created_by,
		}
		for attr, wire in self.wire_fields.items():
			payload[wire] = getattr(self, attr)
		return payload


class Complaint(RecordMixin, db.Model):
	__tablename__ = "complaints"
	kind = RecordKind.COMPLAINT
	wire_fields = {
		"citizen_name": "citizenName",
		"phone": "phone",
		"ward_number": "wardNumber",
		"area": "area",
		"category": "category",
		"description": "description",
		"photo": "photo",
	}

	citizen_name = db.Column(db.String(150), nullable=False)
	phone = db.Column(db.String(10), nullable=False)
	ward_number = db.Column(db.Integer, nullable=False, index=True)
	area = db.Column(db.String(255), nullable=False)
	category = db.Column(db.String(100), nullable=False, index=True)
	description = db.Column(db.Text, nullable=False)
	photo = db.Column(db.Text, nullable=False)


class Defect(RecordMixin, db.Model):
	__tablename__ = "defects"
	kind = RecordKind.DEFECT
	wire_fields = {
		"supervisor_name": "supervisorName",
		"contact_number": "contactNumber",
		"machine_name": "machineName",
		"description": "description",
	}

	supervisor_name = db.Column(db.String(150), nullable=False)
	contact_number = db.Column(db.String(20), nullable=False)
	machine_name = db.Column(db.String(150), nullable=False)
	description = db.Column(db.Text, nullable=False)


class QubeReport(RecordMixin, db.Model):
	__tablename__ = "qube_reports"
	kind = RecordKind.QUBE
	wire_fields = {
		"ward_name": "wardName",
		"supervisor_name": "supervisorName",
		"contact_number": "contactNumber",
		"category": "category",
		"cube_number": "cubeNumber",
		"photo": "photo",
	}

	ward_name = db.Column(db.String(150), nullable=False)
	supervisor_name = db.Column(db.String(150), nullable=False)
	contact_number = db.Column(db.String(20), nullable=False)
	category = db.Column(db.String(3), nullable=False, index=True)
	cube_number = db.Column(db.Integer, nullable=False)
	photo = db.Column(db.Text, nullable=False)


class KhataEntry(RecordMixin, db.Model):
	__tablename__ = "khata_entries"
	kind = RecordKind.KHATA
	wire_fields = {
		"supervisor_name": "supervisorName",
		"contact_number": "contactNumber",
		"generation": "generation",
		"stock": "stock",
	}

	supervisor_name = db.Column(db.String(150), nullable=False)
	contact_number = db.Column(db.String(20), nullable=False)
	generation = db.Column(db.String(100), nullable=False)
	stock = db.Column(db.String(100), nullable=False)


RECORD_MODELS: Dict[RecordKind, type] = {
	RecordKind.COMPLAINT: Complaint,
	RecordKind.DEFECT: Defect,
	RecordKind.QUBE: QubeReport,
	RecordKind.KHATA: KhataEntry,
}


class RecordStatusHistory(db.Model):
	__tablename__ = "record_status_history"

	id = db.Column(db.Integer, primary_key=True)
	record_kind = db.Column(db.String(20), nullable=False, index=True)
	record_id = db.Column(db.String(36), nullable=False, index=True)
	previous_status = db.Column(db.String(20), nullable=True)
	new_status = db.Column(db.String(20), nullable=False, index=True)
	changed_by = db.Column(db.String(36), db.ForeignKey("users.id"), nullable=True)
	changed_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False, index=True)

	__table_args__ = (
		db.CheckConstraint(f"new_status IN ({_STATUS_SQL})", name="ck_record_status_history_valid"),
	)

	actor = db.relationship("User")


class VehicleLocation(db.Model):
	__tablename__ = "vehicle_locations"

	id = db.Column(db.String(36), primary_key=True, default=generate_uuid)
	name = db.Column(db.String(150), nullable=False)
	latitude = db.Column(db.Float, nullable=False)
	longitude = db.Column(db.Float, nullable=False)
	status = db.Column(db.String(20), nullable=False, default="active")
	last_updated = db.Column(db.DateTime, default=datetime.utcnow, nullable=False, index=True)

	@staticmethod
	def latest() -> "VehicleLocation | None":
		return VehicleLocation.query.order_by(VehicleLocation.last_updated.desc()).first()

	def to_payload(self) -> Dict[str, Any]:
		return {
			"id": str(self.id),
			"name": self.name,
			"latitude": self.latitude,
			"longitude": self.longitude,
			"lastUpdated": self.last_updated.isoformat(),
			"status": self.status,
		}

"""Citizen OTP and staff credential authentication blueprint."""
from datetime import datetime

from flask import Blueprint, current_app, g, jsonify, request
from flask_login import current_user, login_required
from sqlalchemy.exc import SQLAlchemyError
from wtforms import PasswordField, SelectField, StringField
from wtforms.validators import DataRequired, Length, Regexp

from core.identity import STAFF_ROLES, Identity, Role
from extensions import db
from models import AccessToken, CitizenOTP, User
from utils.audit import log_action
from utils.forms import JSONForm
from utils.security import generate_otp
from utils.sms_service import SMSDeliveryError, send_otp_sms

auth_bp = Blueprint("auth", __name__)

PHONE_VALIDATORS = [DataRequired(), Regexp(r"^[0-9]{10}$", message="Phone number must be exactly 10 digits.")]

STAFF_ROLE_CHOICES: list[tuple[str, str]] = [
    (Role.SUPERVISOR.value, "Supervisor"),
    (Role.ADMIN.value, "Admin"),
]


class CitizenLoginForm(JSONForm):
    phone = StringField("Phone Number", validators=PHONE_VALIDATORS)


class VerifyOTPForm(JSONForm):
    phone = StringField("Phone Number", validators=PHONE_VALIDATORS)
    otp = StringField("OTP", validators=[DataRequired(), Length(min=4, max=8), Regexp(r"^[0-9]+$", message="OTP must be numeric.")])


class StaffLoginForm(JSONForm):
    username = StringField("Username", validators=[DataRequired(), Length(max=150)])
    password = PasswordField("Password", validators=[DataRequired()])
    role = SelectField("Role", choices=STAFF_ROLE_CHOICES, validators=[DataRequired()])


def _error(message: str, status_code: int, **extra):
    response = jsonify({"message": message, **extra})
    response.status_code = status_code
    return response


def _issue_identity(user: User) -> Identity:
    ttl = current_app.config["ACCESS_TOKEN_TTL"]
    raw_token = AccessToken.issue_for(user, ttl)
    user.last_login_at = datetime.utcnow()
    return Identity(role=user.role_enum, subject_id=user.subject_id, credential_token=raw_token)


@auth_bp.route("/citizen-login", methods=["POST"])
def citizen_login():
    form = CitizenLoginForm.from_request()
    if not form.validate():
        return jsonify(form.error_payload("Enter a valid 10-digit phone number.")), 400

    phone = form.phone.data
    otp = generate_otp(int(current_app.config.get("OTP_LENGTH", 6)))
    try:
        CitizenOTP.create_for(
            phone,
            otp,
            ttl_seconds=int(current_app.config.get("OTP_TTL_SECONDS", 300)),
            ip_address=request.remote_addr,
        )
        db.session.flush()
        send_otp_sms(phone, otp)
        db.session.commit()
    except SMSDeliveryError as exc:
        db.session.rollback()
        current_app.logger.warning("OTP delivery failed", extra={"error": str(exc)})
        return _error("Could not send the OTP right now. Please retry.", 502)
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("Database error while issuing OTP")
        return _error("Could not issue an OTP right now. Please retry.", 500)

    return jsonify({"message": "OTP sent to your phone."})


@auth_bp.route("/verify-otp", methods=["POST"])
def verify_otp():
    form = VerifyOTPForm.from_request()
    if not form.validate():
        return jsonify(form.error_payload()), 400

    phone = form.phone.data
    record = CitizenOTP.latest_for(phone)
    if not record or not record.verify(form.otp.data):
        log_action("OTP_FAILED", None, context=f"phone:{phone[-4:]}")
        db.session.commit()
        return _error("Invalid or expired OTP.", 401)

    record.consumed_at = datetime.utcnow()
    user = User.get_or_create_citizen(phone)
    if not user.is_active:
        db.session.commit()
        return _error("Your account is inactive. Please contact the municipal office.", 403)

    identity = _issue_identity(user)
    db.session.flush()
    log_action("LOGIN", user, context="citizen")
    db.session.commit()
    return jsonify(identity.to_payload())


@auth_bp.route("/login", methods=["POST"])
def staff_login():
    form = StaffLoginForm.from_request()
    if not form.validate():
        return jsonify(form.error_payload()), 400

    user = User.query.filter_by(subject_id=form.username.data.strip()).first()
    claimed = Role.parse(form.role.data)
    if not user or user.role_enum not in STAFF_ROLES or not user.check_password(form.password.data) or user.role_enum is not claimed:
        log_action("LOGIN_FAILED", user)
        db.session.commit()
        return _error("Invalid credentials provided.", 401)

    if not user.is_active:
        return _error("Your account is inactive. Please contact support.", 403)

    identity = _issue_identity(user)
    log_action("LOGIN", user, context=user.role)
    db.session.commit()
    return jsonify(identity.to_payload())


@auth_bp.route("/logout", methods=["POST"])
@login_required
def logout():
    user = current_user._get_current_object()
    token = g.get("access_token")
    if token is not None and token.revoked_at is None:
        token.revoked_at = datetime.utcnow()
    log_action("LOGOUT", user)
    db.session.commit()
    return jsonify({"message": "You have been logged out."})


@auth_bp.route("/create-defaults", methods=["POST"])
def create_defaults():
    if not current_app.config.get("ALLOW_DEFAULT_USERS"):
        return _error("Not found.", 404)
    created = ensure_default_staff(current_app)
    return jsonify(
        {
            "message": "Default users are ready.",
            "created": created,
            "supervisor": current_app.config["DEFAULT_SUPERVISOR_USERNAME"],
            "admin": current_app.config["DEFAULT_ADMIN_USERNAME"],
        }
    )


def ensure_default_staff(app) -> list[str]:
    """Make sure the default supervisor and admin can log in; returns usernames created."""
    defaults = [
        (Role.SUPERVISOR, app.config.get("DEFAULT_SUPERVISOR_USERNAME"), app.config.get("DEFAULT_SUPERVISOR_PASSWORD"), "Default Supervisor"),
        (Role.ADMIN, app.config.get("DEFAULT_ADMIN_USERNAME"), app.config.get("DEFAULT_ADMIN_PASSWORD"), "System Administrator"),
    ]
    created: list[str] = []
    for role, username, password, full_name in defaults:
        if not username or not password:
            continue
        user = User.query.filter_by(subject_id=username).first()
        if user:
            if user.role != role.value or not user.is_active:
                user.role = role.value
                user.is_active = True
            continue
        user = User(subject_id=username, full_name=full_name, role=role.value, is_active=True)
        user.set_password(password)
        db.session.add(user)
        created.append(username)
    db.session.commit()
    if created:
        app.logger.info("Default staff accounts created", extra={"usernames": created})
    return created

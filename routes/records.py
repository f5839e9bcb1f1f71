"""Record intake, listing and status workflow blueprint."""
from flask import Blueprint, abort, current_app, jsonify
from flask_login import current_user, login_required
from sqlalchemy.exc import SQLAlchemyError
from wtforms import IntegerField, SelectField, StringField, TextAreaField
from wtforms.validators import DataRequired, Length, NumberRange, Optional, Regexp, ValidationError

from core.identity import Identity
from core.workflow import (
    COMPLAINT_CATEGORIES,
    QUBE_CATEGORIES,
    QUBE_CUBE_RANGES,
    STATUS_VALUES,
    RecordKind,
    can_create,
    can_transition,
    can_view,
    cube_number_in_range,
    is_owner_scoped,
)
from extensions import db
from models import RECORD_MODELS, RecordStatusHistory
from utils.audit import log_action
from utils.decorators import deny_response, request_identity
from utils.forms import JSONForm

records_bp = Blueprint("records", __name__)

TEN_DIGITS = Regexp(r"^[0-9]{10}$", message="Must be exactly 10 digits.")


class ComplaintForm(JSONForm):
    citizen_name = StringField("Citizen Name", name="citizenName", validators=[DataRequired(), Length(max=150)])
    phone = StringField("Phone Number", validators=[DataRequired(), TEN_DIGITS])
    ward_number = IntegerField("Ward Number", name="wardNumber", validators=[DataRequired(), NumberRange(min=1)])
    area = StringField("Area", validators=[DataRequired(), Length(max=255)])
    category = SelectField("Complaint Category", choices=[(c, c) for c in COMPLAINT_CATEGORIES], validators=[DataRequired()])
    description = TextAreaField("Description", validators=[DataRequired(), Length(max=3000)])
    photo = StringField("Photo", validators=[DataRequired(message="Photo evidence is required.")])


class DefectForm(JSONForm):
    supervisor_name = StringField("Supervisor Name", name="supervisorName", validators=[DataRequired(), Length(max=150)])
    contact_number = StringField("Contact Number", name="contactNumber", validators=[DataRequired(), Length(max=20)])
    machine_name = StringField("Machine Name", name="machineName", validators=[DataRequired(), Length(max=150)])
    description = TextAreaField("Description", validators=[DataRequired(), Length(max=3000)])


class QubeForm(JSONForm):
    ward_name = StringField("Ward Name", name="wardName", validators=[Optional(), Length(max=150)])
    supervisor_name = StringField("Supervisor Name", name="supervisorName", validators=[DataRequired(), Length(max=150)])
    contact_number = StringField("Contact Number", name="contactNumber", validators=[DataRequired(), TEN_DIGITS])
    category = SelectField("Category", choices=[(c, c) for c in QUBE_CATEGORIES], validators=[DataRequired()])
    cube_number = IntegerField("Cube Number", name="cubeNumber", validators=[DataRequired()])
    photo = StringField("Photo", validators=[DataRequired(message="Photo evidence is required.")])

    def validate_cube_number(self, field):
        category = self.category.data
        if category in QUBE_CUBE_RANGES and not cube_number_in_range(category, field.data):
            low, high = QUBE_CUBE_RANGES[category]
            raise ValidationError(f"{category} cube number must be between {low} and {high}.")


class KhataForm(JSONForm):
    supervisor_name = StringField("Supervisor Name", name="supervisorName", validators=[DataRequired(), Length(max=150)])
    contact_number = StringField("Contact Number", name="contactNumber", validators=[DataRequired(), Length(max=20)])
    generation = StringField("Mo Khata Generation", validators=[DataRequired(), Length(max=100)])
    stock = StringField("Mo Khata Stock", validators=[DataRequired(), Length(max=100)])


class StatusForm(JSONForm):
    status = SelectField("Status", choices=[(s, s) for s in STATUS_VALUES], validators=[DataRequired()])


INTAKE_FORMS = {
    RecordKind.COMPLAINT: ComplaintForm,
    RecordKind.DEFECT: DefectForm,
    RecordKind.QUBE: QubeForm,
    RecordKind.KHATA: KhataForm,
}


def _kind_or_404(collection: str) -> RecordKind:
    kind = RecordKind.from_collection(collection)
    if kind is None:
        abort(404)
    return kind


def visible_query(identity: Identity, kind: RecordKind):
    """Rows of ``kind`` that ``identity`` may see, newest first."""
    model = RECORD_MODELS[kind]
    query = model.newest_first()
    if is_owner_scoped(identity.role, kind):
        query = query.filter(model.created_by == identity.subject_id)
    return query


def _forbidden(identity: Identity, action: str, kind: RecordKind):
    current_app.logger.warning(
        "Record action denied",
        extra={"role": identity.role.value, "action": action, "kind": kind.value},
    )
    log_action("UNAUTHORIZED_ACCESS", current_user, context=f"{action}:{kind.collection}")
    db.session.commit()
    return deny_response(403, f"You may not {action} {kind.collection}.", None)


@records_bp.route("/<string:collection>", methods=["GET"])
@login_required
def list_records(collection):
    kind = _kind_or_404(collection)
    identity = request_identity()
    if not can_view(identity.role, kind):
        return _forbidden(identity, "view", kind)

    records = visible_query(identity, kind).all()
    return jsonify([r.to_payload() for r in records])


@records_bp.route("/<string:collection>", methods=["POST"])
@login_required
def create_record(collection):
    kind = _kind_or_404(collection)
    identity = request_identity()
    if not can_create(identity.role, kind):
        return _forbidden(identity, "create", kind)

    form = INTAKE_FORMS[kind].from_request()
    if not form.validate():
        return jsonify(form.error_payload()), 400

    model = RECORD_MODELS[kind]
    record = model(created_by=identity.subject_id)
    for attr in model.wire_fields:
        value = getattr(form, attr).data
        setattr(record, attr, value.strip() if isinstance(value, str) else value)
    if kind is RecordKind.QUBE and not record.ward_name:
        record.ward_name = current_app.config.get("QUBE_DEFAULT_WARD", "Gopalpur NAC")

    try:
        db.session.add(record)
        db.session.flush()
        log_action("RECORD_CREATED", current_user, context=f"{kind.value}:{record.id}")
        db.session.commit()
    except SQLAlchemyError:
        current_app.logger.exception("Database error while saving record", extra={"kind": kind.value})
        db.session.rollback()
        return jsonify({"message": "Unable to save the record. Please retry."}), 500

    current_app.logger.info("Record created", extra={"kind": kind.value, "record_id": record.id})
    return jsonify(record.to_payload()), 201


@records_bp.route("/<string:collection>/<string:record_id>/status", methods=["PATCH"])
@login_required
def update_status(collection, record_id):
    kind = _kind_or_404(collection)
    identity = request_identity()
    if not can_transition(identity.role, kind):
        return _forbidden(identity, "update the status of", kind)

    form = StatusForm.from_request()
    if not form.validate():
        return jsonify(form.error_payload("Unknown status.")), 400

    record = db.session.get(RECORD_MODELS[kind], record_id)
    if record is None:
        return jsonify({"message": f"No {kind.value} with id {record_id}."}), 404

    new_status = form.status.data
    try:
        db.session.add(
            RecordStatusHistory(
                record_kind=kind.value,
                record_id=record.id,
                previous_status=record.status,
                new_status=new_status,
                changed_by=current_user.id,
            )
        )
        record.status = new_status
        log_action("RECORD_STATUS_CHANGED", current_user, context=f"{kind.value}:{record.id}")
        db.session.commit()
    except SQLAlchemyError:
        current_app.logger.exception("Database error while updating status", extra={"kind": kind.value})
        db.session.rollback()
        return jsonify({"message": "Unable to update the status. Please retry."}), 500

    current_app.logger.info(
        "Record status changed",
        extra={"kind": kind.value, "record_id": record.id, "status": new_status},
    )
    return jsonify({"id": record.id, "status": record.status})

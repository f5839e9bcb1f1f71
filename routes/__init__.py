"""Blueprint registration, entry point, dashboards and vehicle tracking."""
from flask import Blueprint, jsonify
from flask_login import login_required

from core.access import ANONYMOUS_ENTRY_POINT
from core.identity import Role
from core.workflow import visible_kinds
from models import VehicleLocation
from utils.decorators import request_identity, roles_required
from .auth import auth_bp
from .records import records_bp, visible_query

main_bp = Blueprint("main", __name__)


def _dashboard_payload(identity) -> dict:
    collections: dict[str, list] = {}
    counts: dict[str, dict] = {}
    for kind in visible_kinds(identity.role):
        records = visible_query(identity, kind).all()
        collections[kind.collection] = [r.to_payload() for r in records]
        per_status: dict[str, int] = {"total": len(records)}
        for record in records:
            per_status[record.status] = per_status.get(record.status, 0) + 1
        counts[kind.collection] = per_status
    return {
        "role": identity.role.value,
        "userId": identity.subject_id,
        "collections": collections,
        "counts": counts,
    }


@main_bp.route("/")
def index():
    identity = request_identity()
    return jsonify(
        {
            "service": "swm-portal",
            "entryPoint": ANONYMOUS_ENTRY_POINT,
            "authenticated": identity is not None,
            "dashboard": f"/{identity.role.value}" if identity else None,
        }
    )


@main_bp.route("/citizen")
@roles_required(Role.CITIZEN)
def citizen_dashboard():
    return jsonify(_dashboard_payload(request_identity()))


@main_bp.route("/supervisor")
@roles_required(Role.SUPERVISOR)
def supervisor_dashboard():
    return jsonify(_dashboard_payload(request_identity()))


@main_bp.route("/admin")
@roles_required(Role.ADMIN)
def admin_dashboard():
    return jsonify(_dashboard_payload(request_identity()))


@main_bp.route("/vehicle/location", methods=["GET"])
@login_required
def vehicle_location():
    location = VehicleLocation.latest()
    return jsonify(location.to_payload() if location else None)


__all__ = ["main_bp", "auth_bp", "records_bp"]

"""Authorization decorators for role-based access control."""
from functools import wraps

from flask import current_app, g, jsonify
from flask_login import current_user

from core.access import authorize
from core.identity import Identity, Role
from extensions import db
from utils.audit import log_action


def request_identity() -> Identity | None:
    """Identity resolved from the bearer token of the current request, if any."""
    return g.get("identity")


def deny_response(status_code: int, message: str, redirect_to: str | None):
    response = jsonify({"message": message, "redirect": redirect_to})
    response.status_code = status_code
    return response


def roles_required(role: Role):
    """Admit only requests whose identity holds exactly ``role``."""
    required = Role.parse(role)

    def decorator(view_func):
        @wraps(view_func)
        def wrapped(*args, **kwargs):
            identity = request_identity()
            decision = authorize(identity, required)
            if decision.allowed:
                return view_func(*args, **kwargs)

            if identity is None:
                return deny_response(401, "Authentication required.", decision.redirect_to)

            current_app.logger.warning(
                "Unauthorized role access attempt",
                extra={"user_id": current_user.id, "role": identity.role.value, "required": required.value},
            )
            log_action("UNAUTHORIZED_ACCESS", current_user, context=f"required:{required.value}")
            db.session.commit()
            return deny_response(403, "You do not have access to this view.", decision.redirect_to)

        return wrapped

    return decorator

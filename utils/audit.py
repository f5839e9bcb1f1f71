"""Audit trail helper for authentication and record actions."""
from flask import request

from extensions import db
from models import AuditLog


def log_action(action: str, user=None, context: str | None = None) -> AuditLog:
    """Stage an audit entry on the current session; the caller commits."""
    entry = AuditLog(
        user_id=user.id if user is not None else None,
        action_type=action,
        ip_address=request.remote_addr,
        user_agent=request.headers.get("User-Agent", "unknown")[:255],
        context_entity=context,
    )
    db.session.add(entry)
    return entry

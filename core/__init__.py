"""Session, access and record workflow core shared by the server and the client."""
from core.access import AccessDecision, authorize
from core.identity import Identity, Role, SessionManager, SessionState
from core.workflow import RecordKind, Status, WorkflowEngine

__all__ = [
    "AccessDecision",
    "authorize",
    "Identity",
    "Role",
    "SessionManager",
    "SessionState",
    "RecordKind",
    "Status",
    "WorkflowEngine",
]

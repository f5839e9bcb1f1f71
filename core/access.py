"""Role gate for views."""
from dataclasses import dataclass
from typing import Optional

from core.identity import Identity, Role

ANONYMOUS_ENTRY_POINT = "/"


@dataclass(frozen=True)
class AccessDecision:
    allowed: bool
    redirect_to: Optional[str] = None

    def __bool__(self) -> bool:
        return self.allowed


ALLOW = AccessDecision(allowed=True)
DENY = AccessDecision(allowed=False, redirect_to=ANONYMOUS_ENTRY_POINT)


def authorize(identity: Optional[Identity], required_role: Role) -> AccessDecision:
    """Allow iff an identity is present and holds exactly ``required_role``.

    Roles are not hierarchical: an admin is denied a supervisor view.
    """
    if identity is not None and identity.role is Role.parse(required_role):
        return ALLOW
    return DENY

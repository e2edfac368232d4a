# app/services/authorization.py
"""
Boundary to the external Authorization Gate.

The gate (login / session issuance lives elsewhere) forwards the caller as
X-User-Id and X-User-Role headers. Each route declares the one capability it
needs; the role → capability table below is the only place roles are read.
"""

from dataclasses import dataclass
from typing import Optional

from fastapi import Header

from app.exceptions import ForbiddenError, UnauthorizedError
from app.utils.logger import get_logger

logger = get_logger(__name__)

ROLES = ("admin", "dispatcher", "focal")

CAPABILITIES = {
    "dispatcher": {
        "alerts:read", "alerts:update",
        "rescue_forms:create", "rescue_forms:read", "rescue_forms:update",
        "post_rescue:create", "post_rescue:manage",
        "reports:read",
    },
    "admin": {
        "alerts:read", "alerts:update",
        "rescue_forms:read", "rescue_forms:update",
        "post_rescue:create", "post_rescue:manage",
        "reports:read", "reports:maintain",
    },
    "focal": {
        "alerts:read",
    },
}

DENIAL_MESSAGES = {
    "rescue_forms:create": "Access denied: Only dispatchers can create rescue forms.",
    "reports:maintain": "Access denied: Only admins can run report maintenance.",
}


@dataclass(frozen=True)
class Identity:
    user_id: str
    role: str

    def can(self, capability: str) -> bool:
        return capability in CAPABILITIES.get(self.role, set())


def resolve_identity(user_id: Optional[str], role: Optional[str]) -> Optional[Identity]:
    if not user_id or not role:
        return None
    return Identity(user_id=user_id, role=role.strip().lower())


def check_capability(identity: Optional[Identity], capability: str) -> Identity:
    if identity is None:
        raise UnauthorizedError("Unauthorized: User Not Found")
    if not identity.can(capability):
        logger.warning(f"[Auth] {identity.role} {identity.user_id} denied {capability}")
        raise ForbiddenError(DENIAL_MESSAGES.get(
            capability, f"Access denied: role '{identity.role}' cannot perform {capability}."))
    return identity


def require_capability(capability: str):
    """FastAPI dependency factory: Depends(require_capability("reports:read"))."""
    def dependency(
        x_user_id: Optional[str] = Header(default=None),
        x_user_role: Optional[str] = Header(default=None),
    ) -> Identity:
        return check_capability(resolve_identity(x_user_id, x_user_role), capability)
    return dependency

"""Capability gate: allow/deny decisions per (actor, action, resource type).

The record engine never calls this module. The service layer consults a gate
before every engine call, so a denied request has no side effects.
"""

from __future__ import annotations

import logging
from typing import Dict, Iterable, Optional, Protocol

from pydantic import BaseModel, ConfigDict

logger = logging.getLogger(__name__)

ACTION_CREATE = "create"
ACTION_READ = "read"
ACTION_UPDATE = "update"
ACTION_MANAGE = "manage"


class Actor(BaseModel):
    model_config = ConfigDict(frozen=True)

    user_name: str
    role: Optional[str] = None


class CapabilityGate(Protocol):
    def authorize(self, actor: Actor, action: str, resource_type: str) -> bool:
        ...


class RolePermissionGate:
    """Grants `action` on `resource_type` when the actor's role lists "action:Resource"."""

    def __init__(self, role_permissions: Dict[str, Iterable[str]]) -> None:
        self._permissions = {role: frozenset(perms) for role, perms in role_permissions.items()}

    def authorize(self, actor: Actor, action: str, resource_type: str) -> bool:
        granted = f"{action}:{resource_type}" in self._permissions.get(actor.role or "", frozenset())
        logger.info(
            "capability_check user=%s role=%s action=%s resource=%s allowed=%s",
            actor.user_name,
            actor.role,
            action,
            resource_type,
            granted,
        )
        return granted


__all__ = [
    "ACTION_CREATE",
    "ACTION_READ",
    "ACTION_UPDATE",
    "ACTION_MANAGE",
    "Actor",
    "CapabilityGate",
    "RolePermissionGate",
]

"""
Organization registry.

One organization per registering identity. The registrant becomes both the
organization id and its admin; records are never updated or deleted.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import asdict, dataclass
from typing import Any

from tokenvest.core.vesting_exceptions import (
    AlreadyRegisteredError,
    NotAuthorizedError,
    VestingValidationError,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Organization:
    org_id: str
    name: str
    token_reference: str
    admin: str
    registered_at: int = 0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Organization":
        return cls(
            org_id=data["org_id"],
            name=data["name"],
            token_reference=data["token_reference"],
            admin=data["admin"],
            registered_at=data.get("registered_at", 0),
        )


class OrganizationRegistry:
    def __init__(self) -> None:
        self._organizations: dict[str, Organization] = {}
        self._registered: set[str] = set()
        self._lock = threading.RLock()

    def register(self, caller: str, name: str, token_reference: str, registered_at: int = 0) -> Organization:
        """
        Register ``caller`` as a new organization and its admin.

        Raises:
            VestingValidationError: empty name or token reference
            AlreadyRegisteredError: ``caller`` has already registered
        """
        if not isinstance(name, str) or not name.strip():
            raise VestingValidationError("Organization name cannot be empty.", details={"field": "name"})
        if not isinstance(token_reference, str) or not token_reference.strip():
            raise VestingValidationError("Token reference cannot be empty.", details={"field": "token_reference"})

        with self._lock:
            if caller in self._registered:
                raise AlreadyRegisteredError(
                    f"Organization {caller} is already registered.",
                    details={"org_id": caller},
                )
            organization = Organization(
                org_id=caller,
                name=name.strip(),
                token_reference=token_reference.strip(),
                admin=caller,
                registered_at=registered_at,
            )
            self._organizations[caller] = organization
            self._registered.add(caller)
        return organization

    def get(self, org_id: str) -> Organization | None:
        with self._lock:
            return self._organizations.get(org_id)

    def is_registered(self, org_id: str) -> bool:
        with self._lock:
            return org_id in self._registered

    def require_admin(self, org_id: str, caller: str) -> Organization:
        """Return the organization if ``caller`` is its admin."""
        organization = self.get(org_id)
        if organization is None or organization.admin != caller:
            logger.warning(
                "Access denied: caller is not organization admin",
                extra={
                    "event": "registry.not_admin",
                    "org_id": org_id,
                    "caller": caller,
                    "registered": organization is not None,
                },
            )
            raise NotAuthorizedError(
                f"{caller} is not the admin of organization {org_id}.",
                details={"org_id": org_id, "caller": caller},
            )
        return organization

    def organizations(self) -> list[Organization]:
        with self._lock:
            return list(self._organizations.values())

    def __len__(self) -> int:
        with self._lock:
            return len(self._organizations)

    # ==================== Serialization ====================

    def to_dict(self) -> dict[str, Any]:
        with self._lock:
            return {org_id: org.to_dict() for org_id, org in self._organizations.items()}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "OrganizationRegistry":
        registry = cls()
        for org_id, raw in data.items():
            organization = Organization.from_dict(raw)
            if organization.org_id != org_id or organization.admin != org_id:
                raise VestingValidationError(
                    "Organization id and admin must match the registration key.",
                    details={"org_id": org_id},
                )
            registry._organizations[org_id] = organization
            registry._registered.add(org_id)
        return registry

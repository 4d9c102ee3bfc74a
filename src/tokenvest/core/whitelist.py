"""Per-organization whitelist of stakeholders allowed to claim."""

from __future__ import annotations

import threading
from typing import Any


class WhitelistTable:
    """
    (organization, stakeholder) -> bool claim gate.

    An entry with ``False`` means the stakeholder was removed; the flag is
    independent of the stakeholder's schedule.
    """

    def __init__(self) -> None:
        self._entries: dict[tuple[str, str], bool] = {}
        self._lock = threading.RLock()

    def is_whitelisted(self, org_id: str, stakeholder: str) -> bool:
        with self._lock:
            return self._entries.get((org_id, stakeholder), False)

    def set(self, org_id: str, stakeholder: str, allowed: bool) -> None:
        with self._lock:
            self._entries[(org_id, stakeholder)] = bool(allowed)

    def whitelisted(self, org_id: str) -> list[str]:
        with self._lock:
            return sorted(
                stakeholder
                for (org, stakeholder), allowed in self._entries.items()
                if org == org_id and allowed
            )

    def to_dict(self) -> dict[str, dict[str, bool]]:
        with self._lock:
            result: dict[str, dict[str, bool]] = {}
            for (org_id, stakeholder), allowed in self._entries.items():
                result.setdefault(org_id, {})[stakeholder] = allowed
            return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "WhitelistTable":
        table = cls()
        for org_id, entries in data.items():
            for stakeholder, allowed in entries.items():
                table._entries[(org_id, stakeholder)] = bool(allowed)
        return table

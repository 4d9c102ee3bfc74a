"""
JSON snapshots of vesting state.

The service keeps its state in memory; this module writes
``OrganizationVestingService.snapshot()`` to disk on shutdown (or on demand)
and rebuilds the service from it at start-up.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any

from tokenvest.core.token_ledger import LedgerDirectory
from tokenvest.core.vesting_exceptions import VestingStateError
from tokenvest.core.vesting_service import OrganizationVestingService

logger = logging.getLogger(__name__)


class VestingStatePersistence:
    def __init__(self, path: str | os.PathLike[str]):
        if not path:
            raise ValueError("State path cannot be empty.")
        self.path = Path(path)

    def save(self, service: OrganizationVestingService) -> None:
        """Write the service snapshot atomically (temp file + replace)."""
        state = service.snapshot()
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(prefix=".vesting_state.", dir=self.path.parent)
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(state, f, indent=2, sort_keys=True)
                os.replace(tmp_path, self.path)
            except BaseException:
                if os.path.exists(tmp_path):
                    os.unlink(tmp_path)
                raise
        except OSError as e:
            logger.error(
                "Failed to save vesting state: %s",
                e,
                extra={"event": "persistence.save_failed", "path": str(self.path)},
            )
            raise VestingStateError(f"Failed to save vesting state to {self.path}: {e}") from e

        logger.info(
            "Saved vesting state (%d organizations)",
            len(state["organizations"]),
            extra={"event": "persistence.saved", "path": str(self.path)},
        )

    def load_state(self) -> dict[str, Any] | None:
        """Return the raw snapshot, or None when no snapshot exists yet."""
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                return json.load(f)
        except FileNotFoundError:
            return None
        except json.JSONDecodeError as e:
            raise VestingStateError(f"Corrupt vesting state file {self.path}: {e}") from e
        except OSError as e:
            raise VestingStateError(f"Failed to read vesting state from {self.path}: {e}") from e

    def load(self, ledgers: LedgerDirectory, **kwargs: Any) -> OrganizationVestingService:
        """Build a service from the snapshot, or an empty one if none exists."""
        state = self.load_state()
        if state is None:
            logger.info(
                "No vesting state at %s, starting empty",
                self.path,
                extra={"event": "persistence.empty_start"},
            )
            return OrganizationVestingService(ledgers, **kwargs)
        return OrganizationVestingService.from_snapshot(state, ledgers, **kwargs)

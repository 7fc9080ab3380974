"""Balance state cache implementations.

The JSON file store keeps every ``"{tenant_id}|{month_key}"`` entry in one
flat JSON object. Writes go to a temporary file that is then renamed over
the old one, so a crash mid-write leaves either the old or the new cache on
disk. A file that cannot be read back is treated as an empty cache.
"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Optional

from budgetwatch.database.base import BalanceStateStore
from budgetwatch.domain.entities import BalanceState
from budgetwatch.domain.errors import StateStoreError

logger = logging.getLogger(__name__)


class InMemoryBalanceStateStore(BalanceStateStore):
    """Dict-backed store, for tests and short-lived processes."""

    def __init__(self):
        self._states: dict[str, BalanceState] = {}

    def get(self, key: str) -> Optional[BalanceState]:
        return self._states.get(key)

    def set(self, key: str, state: BalanceState) -> None:
        self._states[key] = BalanceState(state)

    def clear(self, key: str) -> None:
        self._states.pop(key, None)

    def clear_all(self) -> None:
        self._states.clear()


class JSONFileBalanceStateStore(BalanceStateStore):
    """Store persisted as a single JSON object on the local filesystem."""

    def __init__(self, path: str | Path):
        """Initialize file store.

        Args:
            path: Location of the JSON cache file (created on first write)
        """
        self.path = Path(path)

    def _load(self) -> dict[str, BalanceState]:
        if not self.path.exists():
            return {}
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.warning("Ignoring unreadable balance state cache %s: %s", self.path, exc)
            return {}
        if not isinstance(raw, dict):
            logger.warning("Ignoring balance state cache %s: not a JSON object", self.path)
            return {}

        states = {}
        for key, value in raw.items():
            try:
                states[key] = BalanceState(value)
            except ValueError:
                logger.warning("Ignoring unknown balance state %r for key %s", value, key)
        return states

    def _save(self, states: dict[str, BalanceState]) -> None:
        payload = {key: state.value for key, state in states.items()}
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(
                prefix=f".{self.path.name}.", suffix=".tmp", dir=self.path.parent
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as handle:
                    json.dump(payload, handle, sort_keys=True)
                os.replace(tmp_path, self.path)
            except BaseException:
                if os.path.exists(tmp_path):
                    os.unlink(tmp_path)
                raise
        except OSError as exc:
            raise StateStoreError(f"Could not write balance state cache {self.path}: {exc}") from exc

    def get(self, key: str) -> Optional[BalanceState]:
        return self._load().get(key)

    def set(self, key: str, state: BalanceState) -> None:
        states = self._load()
        states[key] = BalanceState(state)
        self._save(states)

    def clear(self, key: str) -> None:
        states = self._load()
        if key in states:
            del states[key]
            self._save(states)

    def clear_all(self) -> None:
        try:
            self.path.unlink(missing_ok=True)
        except OSError as exc:
            raise StateStoreError(f"Could not remove balance state cache {self.path}: {exc}") from exc

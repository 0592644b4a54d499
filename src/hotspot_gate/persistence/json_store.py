"""
JSON File Ledger Store
======================

Keeps the ledger as one flat JSON object keyed by token.  Every save
rewrites the whole file through a temporary sibling and ``os.replace``, so a
crash loses at most the mutation being written and never leaves a
half-written file behind: the last successful write wins.
"""

import copy
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any

from .repositories import LedgerStore

logger = logging.getLogger(__name__)


class JsonFileStore(LedgerStore):
    """Ledger persisted to a single JSON file."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def load(self) -> dict[str, dict[str, Any]]:
        if not self.path.exists():
            logger.info("Ledger file %s not found, starting empty", self.path)
            return {}
        try:
            raw = self.path.read_text(encoding="utf-8")
            data = json.loads(raw or "{}")
        except (OSError, json.JSONDecodeError) as e:
            logger.error("Failed to load ledger from %s: %s", self.path, e)
            return {}
        if not isinstance(data, dict):
            logger.error("Ledger file %s does not hold an object, ignoring it", self.path)
            return {}
        logger.info("Loaded %d ledger records from %s", len(data), self.path)
        return data

    def save(self, records: dict[str, dict[str, Any]]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{self.path.name}.", dir=self.path.parent)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(records, f, indent=2)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise


class InMemoryStore(LedgerStore):
    """Keeps the last saved snapshot in memory."""

    def __init__(self, initial: dict[str, dict[str, Any]] | None = None) -> None:
        self._data = copy.deepcopy(initial or {})
        self.saves = 0

    def load(self) -> dict[str, dict[str, Any]]:
        return copy.deepcopy(self._data)

    def save(self, records: dict[str, dict[str, Any]]) -> None:
        self._data = copy.deepcopy(records)
        self.saves += 1

"""File-backed store for the per-site generation summary."""

from __future__ import annotations

import os
from pathlib import Path
from threading import Lock

from pydantic import ValidationError

from pagecss.core.errors import StorageError
from pagecss.core.logging import get_logger
from pagecss.models.summary import RequestState

logger = get_logger(__name__)


class SummaryStore:
    """Holds the live ``RequestState`` and writes it through on every change.

    One writer per site is assumed; the lock only serializes threads inside
    this process.
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        self._lock = Lock()
        self.state = self.load()

    def load(self) -> RequestState:
        if not self.path.exists():
            return RequestState()
        try:
            return RequestState.model_validate_json(self.path.read_text(encoding="utf-8"))
        except (OSError, ValidationError, ValueError) as exc:
            logger.warning("summary_load_failed", path=str(self.path), error=str(exc))
            return RequestState()

    def persist(self) -> None:
        """Write the current state atomically."""

        with self._lock:
            payload = self.state.model_dump_json(indent=2)
            tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
            try:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                tmp_path.write_text(payload, encoding="utf-8")
                os.replace(tmp_path, self.path)
            except OSError as exc:
                raise StorageError(f"Unable to save summary {self.path}: {exc}") from exc

    def reload(self) -> RequestState:
        """Discard in-memory changes and re-read the last durable snapshot."""

        with self._lock:
            self.state = self.load()
        return self.state

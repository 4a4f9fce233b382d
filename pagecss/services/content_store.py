"""Content-addressed storage for generated CSS.

Artifacts are written once under ``<static_dir>/<type>/[<tenant>/]<md5>.css``;
a separate url index maps ``(page_key, fingerprint, type)`` to the digest, so
many page variants with identical CSS share one file.
"""

from __future__ import annotations

import hashlib
import json
import os
import shutil
from pathlib import Path
from threading import Lock
from typing import Dict, Optional

from pydantic import BaseModel, ValidationError

from pagecss.core.errors import StorageError
from pagecss.core.logging import get_logger
from pagecss.models.job import ArtifactType
from pagecss.services.summary_store import SummaryStore

logger = get_logger(__name__)


def content_digest(css: str) -> str:
    """Address of an artifact. Not a security boundary."""

    return hashlib.md5(css.encode("utf-8"), usedforsecurity=False).hexdigest()


def index_key(page_key: str, fingerprint: str, artifact_type: ArtifactType) -> str:
    return f"{artifact_type.value}|{page_key}|{fingerprint}"


class IndexEntry(BaseModel):
    digest: str
    directory: str


class UrlIndex:
    """JSON-file index from logical keys to artifact digests."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        self._lock = Lock()
        self._mtime: Optional[int] = None
        self._entries: Dict[str, IndexEntry] = {}
        self._refresh()

    def _refresh(self) -> None:
        """Re-read the index when another process has rewritten it."""

        try:
            mtime = self.path.stat().st_mtime_ns
        except FileNotFoundError:
            self._entries, self._mtime = {}, None
            return
        if mtime == self._mtime:
            return

        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
            self._entries = {key: IndexEntry.model_validate(value) for key, value in raw.items()}
        except (OSError, ValueError, ValidationError) as exc:
            logger.warning("url_index_load_failed", path=str(self.path), error=str(exc))
            self._entries = {}
        self._mtime = mtime

    def load(self, page_key: str, fingerprint: str, artifact_type: ArtifactType) -> Optional[IndexEntry]:
        with self._lock:
            self._refresh()
            return self._entries.get(index_key(page_key, fingerprint, artifact_type))

    def save(
        self,
        page_key: str,
        fingerprint: str,
        artifact_type: ArtifactType,
        digest: str,
        directory: Path,
    ) -> None:
        with self._lock:
            self._refresh()
            self._entries[index_key(page_key, fingerprint, artifact_type)] = IndexEntry(
                digest=digest, directory=str(directory)
            )
            payload = json.dumps({key: entry.model_dump() for key, entry in self._entries.items()})
            _atomic_write(self.path, payload)
            self._mtime = self.path.stat().st_mtime_ns

    def __len__(self) -> int:
        with self._lock:
            self._refresh()
            return len(self._entries)


def _atomic_write(path: Path, content: str) -> None:
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path.write_text(content, encoding="utf-8")
        os.replace(tmp_path, path)
    except OSError as exc:
        raise StorageError(f"Unable to write {path}: {exc}") from exc


class ContentStore:
    """Write-once CSS files plus the url index that points at them."""

    def __init__(
        self,
        root: Path,
        index: UrlIndex,
        summary: SummaryStore,
        tenant: Optional[str] = None,
    ) -> None:
        self.root = Path(root)
        self.index = index
        self._summary = summary
        self.tenant = tenant

    def directory(self, artifact_type: ArtifactType, tenant: Optional[str] = None) -> Path:
        path = self.root / artifact_type.value
        tenant = tenant if tenant is not None else self.tenant
        if tenant:
            path = path / str(tenant)
        return path

    def put(self, artifact_type: ArtifactType, page_key: str, fingerprint: str, css: str) -> str:
        """Store ``css`` and point the logical key at it. Returns the digest."""

        digest = content_digest(css)
        directory = self.directory(artifact_type)
        static_file = directory / f"{digest}.css"

        if not static_file.exists():
            _atomic_write(static_file, css)
            logger.debug("artifact_written", path=str(static_file))

        self.index.save(page_key, fingerprint, artifact_type, digest, directory)
        logger.debug(
            "artifact_indexed",
            artifact_type=artifact_type.value,
            page_key=page_key,
            fingerprint=fingerprint,
            digest=digest,
        )
        return digest

    def _existing_file(self, page_key: str, fingerprint: str, artifact_type: ArtifactType) -> Optional[Path]:
        entry = self.index.load(page_key, fingerprint, artifact_type)
        if entry is None:
            return None

        static_file = self.directory(artifact_type) / f"{entry.digest}.css"
        if not static_file.exists():
            return None
        return static_file

    def get(self, page_key: str, fingerprint: str, artifact_type: ArtifactType) -> Optional[str]:
        static_file = self._existing_file(page_key, fingerprint, artifact_type)
        if static_file is None:
            return None
        try:
            return static_file.read_text(encoding="utf-8")
        except OSError as exc:
            logger.warning("artifact_read_failed", path=str(static_file), error=str(exc))
            return None

    def path_for(self, page_key: str, fingerprint: str, artifact_type: ArtifactType) -> Optional[str]:
        """Public path of an artifact relative to the static root."""

        static_file = self._existing_file(page_key, fingerprint, artifact_type)
        if static_file is None:
            return None
        return "/" + static_file.relative_to(self.root).as_posix()

    def has_folder(self, tenant: Optional[str] = None) -> bool:
        return any(self.directory(kind, tenant).exists() for kind in (ArtifactType.critical, ArtifactType.unused))

    def clear(self, artifact_type: ArtifactType, tenant: Optional[str] = None) -> None:
        """Delete stored artifacts of a type and reset its queue.

        Without ``tenant`` the whole type folder goes, every tenant included.
        """

        directory = self.root / artifact_type.value
        if tenant:
            directory = directory / str(tenant)
        if directory.exists():
            shutil.rmtree(directory)

        self._summary.state.reset(artifact_type)
        self._summary.persist()
        logger.info("artifact_folder_cleared", artifact_type=artifact_type.value, path=str(directory))

"""Invalidation tags for cached pages that embed generated CSS."""

from __future__ import annotations

import hashlib
from threading import Lock
from typing import List, Protocol

from pagecss.core.logging import get_logger
from pagecss.models.job import ArtifactType

logger = get_logger(__name__)


def invalidation_tag(artifact_type: ArtifactType, queue_key: str) -> str:
    """``CCSS.<md5>`` / ``UCSS.<md5>`` for a queue key."""

    digest = hashlib.md5(queue_key.encode("utf-8"), usedforsecurity=False).hexdigest()
    return f"{artifact_type.tag_prefix}.{digest}"


class TagSink(Protocol):
    def emit(self, tag: str) -> None: ...


class LoggingTagSink:
    """Default sink: logs purge tags and keeps them for inspection."""

    def __init__(self) -> None:
        self._lock = Lock()
        self._emitted: List[str] = []

    def emit(self, tag: str) -> None:
        with self._lock:
            self._emitted.append(tag)
        logger.info("purge_tag_emitted", tag=tag)

    @property
    def emitted(self) -> List[str]:
        with self._lock:
            return list(self._emitted)

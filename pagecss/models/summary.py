"""Persisted per-site summary of queues and generation timings."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Dict, List

from pydantic import BaseModel, Field

from .job import ArtifactType, GenerationJob

HISTORY_LIMIT = 10


class NoticeLevel(str, Enum):
    success = "success"
    error = "error"


class Notice(BaseModel):
    level: NoticeLevel
    message: str
    created_at: datetime = Field(default_factory=datetime.utcnow)


class RequestState(BaseModel):
    """Queues, history and in-flight markers for both generated artifact types.

    Timestamps are unix seconds; zero means unset.
    """

    queue_ccss: Dict[str, GenerationJob] = Field(default_factory=dict)
    queue_ucss: Dict[str, GenerationJob] = Field(default_factory=dict)
    history_ccss: Dict[str, str] = Field(default_factory=dict)
    history_ucss: Dict[str, str] = Field(default_factory=dict)
    in_flight_since_ccss: int = 0
    in_flight_since_ucss: int = 0
    last_duration_ccss: int = 0
    last_duration_ucss: int = 0
    last_completed_at_ccss: int = 0
    last_completed_at_ucss: int = 0

    quota_day: str = ""
    quota_used: int = 0
    # Pending operator notices, drained by the admin UI.
    notices: List[Notice] = Field(default_factory=list)

    def queue(self, artifact_type: ArtifactType) -> Dict[str, GenerationJob]:
        return getattr(self, f"queue_{artifact_type.value}")

    def history(self, artifact_type: ArtifactType) -> Dict[str, str]:
        return getattr(self, f"history_{artifact_type.value}")

    def in_flight_since(self, artifact_type: ArtifactType) -> int:
        return getattr(self, f"in_flight_since_{artifact_type.value}")

    def set_in_flight_since(self, artifact_type: ArtifactType, value: int) -> None:
        setattr(self, f"in_flight_since_{artifact_type.value}", value)

    def record_completion(self, artifact_type: ArtifactType, now: int) -> None:
        """Clear the in-flight marker and remember how long the request took."""

        started = self.in_flight_since(artifact_type)
        setattr(self, f"last_duration_{artifact_type.value}", now - started if started else 0)
        setattr(self, f"last_completed_at_{artifact_type.value}", now)
        self.set_in_flight_since(artifact_type, 0)

    def reset(self, artifact_type: ArtifactType) -> None:
        self.queue(artifact_type).clear()
        self.history(artifact_type).clear()
        self.set_in_flight_since(artifact_type, 0)

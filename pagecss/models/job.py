"""Shared job models."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field, field_validator

CLIENT_IDENTITY_MAX = 200


class ArtifactType(str, Enum):
    """Kinds of stored CSS artifacts."""

    critical = "ccss"
    unused = "ucss"
    # Combined page stylesheet, produced by the host and only read here.
    combined = "css"

    @property
    def tag_prefix(self) -> str:
        return self.value.upper()


GENERATED_TYPES = (ArtifactType.critical, ArtifactType.unused)


class GenerationJob(BaseModel):
    """A pending CSS generation request for one page variant."""

    queue_key: str
    page_key: str = ""
    request_url: str = ""
    session_identity: int = 0
    client_identity: str = ""
    is_mobile: bool = False
    fingerprint: str = ""
    artifact_type: ArtifactType = ArtifactType.critical

    @field_validator("client_identity", mode="before")
    @classmethod
    def truncate_client_identity(cls, value: str | None) -> str:
        """Keep only the first 200 characters of the user agent."""

        return (value or "")[:CLIENT_IDENTITY_MAX]

    def is_complete(self) -> bool:
        """Whether the job carries enough data to be generated."""

        return bool(self.page_key and self.request_url)


class DrainResult(BaseModel):
    """Outcome of one drain pass."""

    artifact_type: ArtifactType
    attempted: int = 0
    generated: int = 0
    skipped_reason: str | None = None
    continued: bool = False
    tags: list[str] = Field(default_factory=list)

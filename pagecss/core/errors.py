"""Exception hierarchy for CSS generation and storage.

Clients and stores raise these; the generation worker turns every one of them
into "leave the job pending and serve uncached content this time".
"""

from __future__ import annotations

__all__ = [
    "PageCSSError",
    "StorageError",
    "QuotaExhaustedError",
    "GenerationServiceError",
]


class PageCSSError(RuntimeError):
    """Base exception for CSS optimization failures."""


class StorageError(PageCSSError):
    """Raised when an artifact, index or summary write fails."""


class QuotaExhaustedError(PageCSSError):
    """Raised when the generation allowance has been used up."""


class GenerationServiceError(PageCSSError):
    """Raised when the generation service cannot be reached or answers badly."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code

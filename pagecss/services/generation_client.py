"""Client for the external CSS generation service."""

from __future__ import annotations

import time
from datetime import date
from typing import Any, Callable, Dict, Optional

import httpx

from pagecss.core.config import Settings, settings as default_settings
from pagecss.core.errors import GenerationServiceError, QuotaExhaustedError
from pagecss.core.logging import get_logger
from pagecss.models.critical_css import GenerationRequest
from pagecss.services.summary_store import SummaryStore

logger = get_logger(__name__)

QUOTA_STATUS_CODES = {402, 429}


class GenerationClient:
    """Posts generation payloads and tracks the local daily allowance."""

    def __init__(
        self,
        store: SummaryStore,
        client: httpx.Client | None = None,
        config: Settings | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.config = config or default_settings
        self._store = store
        self._client = client or httpx.Client(base_url=self.config.generation_service_url)
        self._clock = clock

    def _today(self) -> str:
        return date.fromtimestamp(self._clock()).isoformat()

    def allowance(self) -> bool:
        """Whether another generation request may be sent today."""

        quota = self.config.generation_daily_quota
        if not quota:
            return True

        state = self._store.state
        if state.quota_day != self._today():
            return True
        return state.quota_used < quota

    def _record_usage(self) -> None:
        state = self._store.state
        today = self._today()
        if state.quota_day != today:
            state.quota_day = today
            state.quota_used = 0
        state.quota_used += 1
        self._store.persist()

    def generate(self, request: GenerationRequest, timeout: Optional[float] = None) -> Dict[str, Any]:
        """Send a generation request and return the decoded JSON body."""

        headers = {}
        if self.config.generation_api_key:
            headers["Authorization"] = f"Bearer {self.config.generation_api_key}"

        try:
            response = self._client.post(
                "/ccss",
                json=request.model_dump(exclude_none=True),
                headers=headers,
                timeout=timeout or self.config.generation_timeout_seconds,
            )
        except httpx.HTTPError as exc:
            raise GenerationServiceError(f"Generation request failed: {exc}") from exc

        if response.status_code in QUOTA_STATUS_CODES:
            raise QuotaExhaustedError(f"Generation service refused request ({response.status_code})")
        if response.is_error:
            raise GenerationServiceError(
                f"Generation service returned {response.status_code}",
                status_code=response.status_code,
            )

        self._record_usage()

        try:
            payload = response.json()
        except ValueError as exc:
            raise GenerationServiceError("Generation service returned invalid JSON") from exc

        if not isinstance(payload, dict):
            raise GenerationServiceError("Generation service returned a malformed payload")

        logger.debug("generation_response_received", correlation_id=request.correlation_id)
        return payload

"""Drains generation queues through the external generation service."""

from __future__ import annotations

import time
from typing import Any, Callable, Dict, List, Optional, Sequence

from pagecss.core.config import Settings, settings as default_settings
from pagecss.core.errors import GenerationServiceError, PageCSSError, QuotaExhaustedError, StorageError
from pagecss.core.logging import bind_job_context, get_logger
from pagecss.models.critical_css import GenerationRequest
from pagecss.models.job import ArtifactType, DrainResult, GenerationJob
from pagecss.services.content_store import ContentStore
from pagecss.services.continuation import ContinuationScheduler
from pagecss.services.extraction import ExtractionPipeline
from pagecss.services.fetcher import HttpContentFetcher
from pagecss.services.generation_client import GenerationClient
from pagecss.services.notices import LACK_OF_QUOTA, SummaryNotices
from pagecss.services.queue import GenerationQueue
from pagecss.services.summary_store import SummaryStore
from pagecss.services.tags import TagSink, invalidation_tag

logger = get_logger(__name__)

WhitelistProvider = Callable[[List[str]], List[str]]
PostProcessor = Callable[[ArtifactType, str, str], str]


def _no_postprocess(artifact_type: ArtifactType, css: str, queue_key: str) -> str:
    return css


def is_comment_only(css: str) -> bool:
    """The service answers ``/* ... */`` when it had nothing to generate."""

    trimmed = css.strip()
    return trimmed.startswith("/*") and trimmed.endswith("*/")


class GenerationWorker:
    """Pops queued jobs, generates CSS for them and commits the results."""

    def __init__(
        self,
        queue: GenerationQueue,
        summary: SummaryStore,
        store: ContentStore,
        extraction: ExtractionPipeline,
        fetcher: HttpContentFetcher,
        client: GenerationClient,
        tags: TagSink,
        scheduler: ContinuationScheduler,
        notices: SummaryNotices,
        config: Settings | None = None,
        whitelist_providers: Sequence[WhitelistProvider] = (),
        postprocess: PostProcessor = _no_postprocess,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.config = config or default_settings
        self._queue = queue
        self._summary = summary
        self._store = store
        self._extraction = extraction
        self._fetcher = fetcher
        self._client = client
        self._tags = tags
        self._scheduler = scheduler
        self._notices = notices
        self._whitelist_providers = list(whitelist_providers)
        self._postprocess = postprocess
        self._clock = clock
        self._whitelist: Optional[List[str]] = None

    def _now(self) -> int:
        return int(self._clock())

    def cooling_down(self, artifact_type: ArtifactType) -> bool:
        """Whether a previous request for this type may still be outstanding."""

        if self.config.debug:
            return False
        started = self._summary.state.in_flight_since(artifact_type)
        return bool(started) and self._now() - started < self.config.cooldown_seconds

    def drain(self, artifact_type: ArtifactType, allow_continue: bool = False) -> DrainResult:
        """Process queued jobs of one type.

        One-shot mode handles only the first job and honours the cooldown;
        continuing mode handles up to ``batch_cap`` jobs and then hands off.
        """

        result = DrainResult(artifact_type=artifact_type)
        jobs = self._queue.peek_all(artifact_type)
        if not jobs:
            result.skipped_reason = "empty"
            return result

        if not allow_continue and self.cooling_down(artifact_type):
            logger.debug("drain_skipped_last_request_pending", artifact_type=artifact_type.value)
            result.skipped_reason = "in_flight"
            return result

        for job in jobs:
            with bind_job_context(artifact_type=artifact_type.value, queue_key=job.queue_key):
                if not self._run_job(job, artifact_type, result):
                    continue

            if not allow_continue:
                break
            if result.attempted >= self._scheduler.batch_cap:
                break

        if allow_continue and self._queue.size(artifact_type):
            result.continued = self._scheduler.maybe_continue(result.attempted, artifact_type)

        return result

    def _run_job(self, job: GenerationJob, artifact_type: ArtifactType, result: DrainResult) -> bool:
        """Dequeue and generate one job. Returns False for malformed jobs."""

        try:
            self._queue.dequeue(artifact_type, job.queue_key)
            logger.info(
                "drain_job_started",
                url=job.request_url,
                mobile=job.is_mobile,
                user_agent=job.client_identity,
            )

            if not job.is_complete():
                logger.warning("drain_job_malformed")
                return False

            result.attempted += 1
            if self.generate(job, artifact_type):
                tag = invalidation_tag(artifact_type, job.queue_key)
                self._tags.emit(tag)
                result.tags.append(tag)
                result.generated += 1
        except PageCSSError as exc:
            logger.exception("drain_job_failed", error=str(exc))
        return True

    def whitelist(self) -> List[str]:
        """Selectors the unused-CSS service must keep. Comment lines are dropped."""

        if self._whitelist is None:
            entries = list(self.config.ucss_whitelist)
            for provider in self._whitelist_providers:
                entries = provider(list(entries))
            self._whitelist = [entry for entry in entries if not entry.startswith("//")]
        return self._whitelist

    def _prepare_input(self, job: GenerationJob, artifact_type: ArtifactType) -> Optional[tuple[str, str]]:
        """Fetch the guest copy and pick the CSS to send. ``None`` aborts the job."""

        html = self._fetcher.fetch_rendered_copy(job.request_url, job.client_identity, job.session_identity)
        if not html:
            return None
        html = self._extraction.prepare_html(html)

        if artifact_type is ArtifactType.critical:
            css, html = self._extraction.extract(html, base_url=job.request_url)
        else:
            # Unused CSS trims the host's combined stylesheet rather than re-collecting it.
            _, html = self._extraction.extract(html, dry_run=True)
            css = self._store.get(job.page_key, job.fingerprint, ArtifactType.combined)

        if not css:
            logger.info("generation_missing_css", artifact_type=artifact_type.value, page_key=job.page_key)
            return None
        return html, css

    def generate(self, job: GenerationJob, artifact_type: ArtifactType) -> bool:
        """Generate and commit CSS for one job. Returns True when an artifact was stored."""

        if not self._client.allowance():
            logger.warning("generation_quota_exhausted", artifact_type=artifact_type.value)
            self._notices.error(LACK_OF_QUOTA)
            return False

        self._summary.state.set_in_flight_since(artifact_type, self._now())
        self._summary.persist()

        prepared = self._prepare_input(job, artifact_type)
        if prepared is None:
            return False
        html, css = prepared

        request = GenerationRequest(
            type=artifact_type.tag_prefix,
            url=job.request_url,
            correlation_id=job.queue_key,
            client_identity=job.client_identity,
            is_mobile=1 if job.is_mobile else 0,
            markup=html,
            css=css,
            whitelist=self.whitelist() if artifact_type is ArtifactType.unused else None,
        )
        logger.debug("generation_request", url=request.url, correlation_id=request.correlation_id)

        try:
            payload = self._client.generate(request)
        except QuotaExhaustedError as exc:
            logger.warning("generation_quota_refused", error=str(exc))
            self._notices.error(LACK_OF_QUOTA)
            return False
        except GenerationServiceError as exc:
            logger.warning("generation_request_failed", url=job.request_url, error=str(exc))
            return False

        return self._commit(job, artifact_type, payload)

    def _commit(self, job: GenerationJob, artifact_type: ArtifactType, payload: Dict[str, Any]) -> bool:
        generated = payload.get(artifact_type.value)
        if not generated or not isinstance(generated, str):
            logger.info("generation_empty_result", artifact_type=artifact_type.value)
            return False

        css = self._postprocess(artifact_type, generated, job.queue_key)
        if is_comment_only(css):
            logger.info("generation_comment_only_result", artifact_type=artifact_type.value, content=css)
            return False

        try:
            self._store.put(artifact_type, job.page_key, job.fingerprint, css)
        except StorageError as exc:
            logger.exception("generation_store_failed", queue_key=job.queue_key, error=str(exc))
            return False

        self._summary.state.record_completion(artifact_type, self._now())
        self._summary.persist()
        return True

    def probe(self, url: str, user_agent: str) -> Dict[str, Any]:
        """Run one uncached critical CSS request for diagnostics."""

        html = self._fetcher.fetch_rendered_copy(url, user_agent)
        if not html:
            raise GenerationServiceError(f"Unable to fetch {url}")

        css, html = self._extraction.extract(self._extraction.prepare_html(html), base_url=url)
        request = GenerationRequest(
            type=ArtifactType.critical.tag_prefix,
            url=url,
            correlation_id="probe",
            client_identity=user_agent,
            markup=html,
            css=css,
        )
        return self._client.generate(request, timeout=self.config.probe_timeout_seconds)

"""Page-view side of CSS optimization: serve cached CSS or queue generation."""

from __future__ import annotations

import hashlib
from enum import Enum
from typing import TYPE_CHECKING, Optional

from pagecss.core.config import Settings, settings as default_settings
from pagecss.core.logging import get_logger
from pagecss.models.job import GENERATED_TYPES, ArtifactType, GenerationJob
from pagecss.models.request import RequestContext
from pagecss.services.content_store import ContentStore
from pagecss.services.notices import QUEUE_CLEARED, SummaryNotices
from pagecss.services.queue import GenerationQueue
from pagecss.services.tags import invalidation_tag
from pagecss.services.vary import VaryResolver

if TYPE_CHECKING:
    from pagecss.services.worker import GenerationWorker

logger = get_logger(__name__)

NOT_FOUND_PAGE_KEY = "404"
DEFAULT_PAGE_TYPE = "page"
QUEUE_KEY_VARY_MAX = 32


class CSSAction(str, Enum):
    """Operator actions on the generation queues."""

    gen_ccss = "gen_ccss"
    gen_ucss = "gen_ucss"
    clear_q_ccss = "clear_q_ccss"
    clear_q_ucss = "clear_q_ucss"


def queue_key(vary: str, page_key: str) -> str:
    """Queue de-duplication key; long varies are shortened to their md5."""

    if len(vary) > QUEUE_KEY_VARY_MAX:
        vary = hashlib.md5(vary.encode("utf-8"), usedforsecurity=False).hexdigest()
    return f"{vary} {page_key}"


class PageCSS:
    """Looks up generated CSS for a page view and queues misses."""

    def __init__(
        self,
        resolver: VaryResolver,
        queue: GenerationQueue,
        store: ContentStore,
        notices: SummaryNotices,
        config: Settings | None = None,
    ) -> None:
        self.config = config or default_settings
        self.resolver = resolver
        self._queue = queue
        self._store = store
        self._notices = notices

    def page_key(self, ctx: RequestContext, artifact_type: ArtifactType) -> str:
        if ctx.is_404:
            return NOT_FOUND_PAGE_KEY
        if artifact_type is ArtifactType.critical and not self.config.ccss_per_url:
            return ctx.page_type or DEFAULT_PAGE_TYPE
        return ctx.url

    def separate_mobile(self, ctx: RequestContext) -> bool:
        return ctx.is_mobile and self.config.cache_mobile

    def _enqueue(self, ctx: RequestContext, artifact_type: ArtifactType, vary: str, page_key: str) -> None:
        key = queue_key(vary, page_key)
        job = GenerationJob(
            queue_key=key,
            page_key=page_key,
            request_url=ctx.url,
            session_identity=ctx.session.user_id,
            client_identity=ctx.user_agent,
            is_mobile=self.separate_mobile(ctx),
            fingerprint=vary,
            artifact_type=artifact_type,
        )
        self._queue.enqueue(artifact_type, job)

        # The page is purged by this tag once its CSS is generated.
        ctx.control.add_tag(invalidation_tag(artifact_type, key))

    def ccss(self, ctx: RequestContext) -> Optional[str]:
        """Critical CSS rules for the page, or None after queueing them."""

        page_key = self.page_key(ctx, ArtifactType.critical)
        vary = self.resolver.resolve_full(ctx)

        rules = self._store.get(page_key, vary, ArtifactType.critical)
        if rules is not None:
            logger.debug("ccss_cache_hit", page_key=page_key)
            return rules

        self._enqueue(ctx, ArtifactType.critical, vary, page_key)
        return None

    def prepare_ccss(self, ctx: RequestContext) -> Optional[str]:
        """The ``<style>`` block to inline, default rules appended."""

        rules = self.ccss(ctx)
        if not rules:
            return None
        rules += self.config.ccss_default_css
        return f'<style id="pagecss-optm-css-rules">{rules}</style>'

    def load_ucss(self, ctx: RequestContext) -> Optional[str]:
        """Path of the trimmed stylesheet, or None after queueing it."""

        page_key = self.page_key(ctx, ArtifactType.unused)
        vary = self.resolver.resolve_full(ctx)

        path = self._store.path_for(page_key, vary, ArtifactType.unused)
        if path is not None:
            logger.debug("ucss_cache_hit", page_key=page_key, path=path)
            return path

        self._enqueue(ctx, ArtifactType.unused, vary, page_key)
        return None

    def store_combined(self, ctx: RequestContext, css: str) -> Optional[str]:
        """Keep the host's combined stylesheet as input for unused CSS generation.

        Stored under the same page key and vary the unused CSS job will carry.
        Returns the digest, or None when ``css`` is blank.
        """

        if not css.strip():
            return None
        page_key = self.page_key(ctx, ArtifactType.unused)
        vary = self.resolver.resolve_full(ctx)
        digest = self._store.put(ArtifactType.combined, page_key, vary, css)
        logger.debug("combined_css_stored", page_key=page_key, digest=digest)
        return digest

    def prepare_html_lazy(self) -> Optional[str]:
        selectors = self.config.html_lazy_selectors
        if not selectors:
            return None
        return (
            "<style>"
            + ",".join(selectors)
            + "{content-visibility:auto;contain-intrinsic-size:1px 1000px;}</style>"
        )

    def has_ccss_folder(self, tenant: Optional[str] = None) -> bool:
        return self._store.has_folder(tenant)

    def remove_cache_folder(self, tenant: Optional[str] = None) -> None:
        """Remove all generated CSS and pending jobs of both types."""

        for artifact_type in GENERATED_TYPES:
            self._store.clear(artifact_type, tenant)

    def clear_queue(self, artifact_type: ArtifactType) -> bool:
        if not self._queue.clear(artifact_type):
            return False
        self._notices.succeed(QUEUE_CLEARED)
        return True

    def handle_action(self, action: CSSAction, worker: "GenerationWorker") -> None:
        if action is CSSAction.gen_ccss:
            worker.drain(ArtifactType.critical, allow_continue=True)
        elif action is CSSAction.gen_ucss:
            worker.drain(ArtifactType.unused, allow_continue=True)
        elif action is CSSAction.clear_q_ccss:
            self.clear_queue(ArtifactType.critical)
        elif action is CSSAction.clear_q_ucss:
            self.clear_queue(ArtifactType.unused)

"""Wires the CSS services together from settings."""

from __future__ import annotations

import time
from dataclasses import dataclass
from functools import lru_cache
from typing import Callable

from pagecss.core.config import Settings, settings as default_settings
from pagecss.services.content_store import ContentStore, UrlIndex
from pagecss.services.continuation import CeleryContinuationScheduler, ContinuationScheduler
from pagecss.services.critical_css import PageCSS
from pagecss.services.extraction import ExtractionPipeline
from pagecss.services.fetcher import HttpContentFetcher
from pagecss.services.generation_client import GenerationClient
from pagecss.services.notices import SummaryNotices
from pagecss.services.queue import GenerationQueue
from pagecss.services.summary_store import SummaryStore
from pagecss.services.tags import LoggingTagSink, TagSink
from pagecss.services.vary import VaryResolver
from pagecss.services.worker import GenerationWorker


@dataclass
class Services:
    """Everything a request handler or task needs."""

    config: Settings
    summary: SummaryStore
    queue: GenerationQueue
    store: ContentStore
    resolver: VaryResolver
    notices: SummaryNotices
    tags: TagSink
    scheduler: ContinuationScheduler
    page_css: PageCSS
    worker: GenerationWorker


def build_services(
    config: Settings | None = None,
    fetcher: HttpContentFetcher | None = None,
    client: GenerationClient | None = None,
    scheduler: ContinuationScheduler | None = None,
    tags: TagSink | None = None,
    clock: Callable[[], float] = time.time,
) -> Services:
    """Build the service graph; collaborators may be swapped for tests."""

    config = config or default_settings
    summary = SummaryStore(config.state_path)
    queue = GenerationQueue(summary)
    store = ContentStore(config.static_dir, UrlIndex(config.index_path), summary, tenant=config.tenant_id)
    resolver = VaryResolver(config)
    notices = SummaryNotices(summary)
    tags = tags or LoggingTagSink()
    fetcher = fetcher or HttpContentFetcher(config=config)

    if scheduler is None:
        from pagecss.worker.celery_app import celery_app

        scheduler = CeleryContinuationScheduler(celery_app, batch_cap=config.batch_cap)

    worker = GenerationWorker(
        queue=queue,
        summary=summary,
        store=store,
        extraction=ExtractionPipeline(fetcher, disallowed_font_hosts=config.disallowed_font_hosts),
        fetcher=fetcher,
        client=client or GenerationClient(summary, config=config, clock=clock),
        tags=tags,
        scheduler=scheduler,
        notices=notices,
        config=config,
        clock=clock,
    )
    page_css = PageCSS(resolver, queue, store, notices, config=config)

    return Services(
        config=config,
        summary=summary,
        queue=queue,
        store=store,
        resolver=resolver,
        notices=notices,
        tags=tags,
        scheduler=scheduler,
        page_css=page_css,
        worker=worker,
    )


@lru_cache
def get_services() -> Services:
    """Return the process-wide service graph."""

    return build_services()

"""Shared pytest fixtures for the pagecss test suite."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest

from pagecss.core.config import Settings
from pagecss.models.critical_css import GenerationRequest
from pagecss.services.continuation import LocalContinuationScheduler
from pagecss.services.registry import Services, build_services
from pagecss.services.tags import LoggingTagSink

START_TIME = 1_700_000_000


class FrozenClock:
    """Deterministic stand-in for ``time.time``."""

    def __init__(self, now: float = START_TIME) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeFetcher:
    """Serves canned pages and stylesheets."""

    def __init__(self) -> None:
        self.pages: Dict[str, str] = {}
        self.stylesheets: Dict[str, str] = {}
        self.page_calls: List[str] = []
        self.stylesheet_calls: List[str] = []
        self.stylesheet_bases: List[Optional[str]] = []

    def fetch_rendered_copy(self, url: str, client_identity: str, session_identity: int = 0) -> Optional[str]:
        self.page_calls.append(url)
        return self.pages.get(url)

    def load_stylesheet(self, href: str, base_url: Optional[str] = None) -> Optional[str]:
        self.stylesheet_calls.append(href)
        self.stylesheet_bases.append(base_url)
        return self.stylesheets.get(href)


class FakeGenerationClient:
    """Records generation requests and replays canned responses."""

    def __init__(self) -> None:
        self.requests: List[GenerationRequest] = []
        self.responses: Dict[str, Any] = {}
        self.default: Any = None
        self.allowed = True

    def allowance(self) -> bool:
        return self.allowed

    def generate(self, request: GenerationRequest, timeout: Optional[float] = None) -> Dict[str, Any]:
        self.requests.append(request)
        response = self.responses.get(request.url, self.default)
        if isinstance(response, Exception):
            raise response
        return response


# ============================================================================
# Configuration
# ============================================================================


@pytest.fixture
def config(tmp_path: Path) -> Settings:
    """Settings rooted in a temporary directory."""

    return Settings(
        _env_file=None,
        static_dir=tmp_path / "static",
        state_path=tmp_path / "summary.json",
        index_path=tmp_path / "url_index.json",
        hash_secret="test-secret",
        site_url="https://example.test",
        debug=False,
    )


# ============================================================================
# Collaborators
# ============================================================================


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def fetcher() -> FakeFetcher:
    return FakeFetcher()


@pytest.fixture
def client() -> FakeGenerationClient:
    return FakeGenerationClient()


@pytest.fixture
def scheduler(config: Settings) -> LocalContinuationScheduler:
    return LocalContinuationScheduler(batch_cap=config.batch_cap)


@pytest.fixture
def tag_sink() -> LoggingTagSink:
    return LoggingTagSink()


@pytest.fixture
def services(
    config: Settings,
    fetcher: FakeFetcher,
    client: FakeGenerationClient,
    scheduler: LocalContinuationScheduler,
    tag_sink: LoggingTagSink,
    clock: FrozenClock,
) -> Services:
    """Fully wired services with fake network collaborators."""

    return build_services(
        config=config,
        fetcher=fetcher,
        client=client,
        scheduler=scheduler,
        tags=tag_sink,
        clock=clock,
    )

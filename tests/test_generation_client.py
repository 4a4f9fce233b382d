"""Tests for the generation service client and the page fetcher."""

from __future__ import annotations

import json

import httpx
import pytest

from pagecss.core.config import Settings
from pagecss.core.errors import GenerationServiceError, QuotaExhaustedError
from pagecss.models.critical_css import GenerationRequest
from pagecss.services.fetcher import HttpContentFetcher
from pagecss.services.generation_client import GenerationClient
from pagecss.services.summary_store import SummaryStore


def _request() -> GenerationRequest:
    return GenerationRequest(
        type="CCSS",
        url="https://example.test/a",
        correlation_id=" page",
        client_identity="Mozilla/5.0",
        markup="<p></p>",
        css=".a{}",
    )


def _client(handler, config: Settings, tmp_path, clock) -> GenerationClient:
    http = httpx.Client(transport=httpx.MockTransport(handler), base_url="https://generator.test")
    return GenerationClient(SummaryStore(tmp_path / "summary.json"), client=http, config=config, clock=clock)


class TestGenerationClient:
    def test_posts_payload_with_api_key(self, config: Settings, tmp_path, clock):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"ccss": ".a{}"})

        config = config.model_copy(update={"generation_api_key": "secret"})
        client = _client(handler, config, tmp_path, clock)

        assert client.generate(_request()) == {"ccss": ".a{}"}

        request = seen[0]
        assert request.url.path == "/ccss"
        assert request.headers["Authorization"] == "Bearer secret"
        body = json.loads(request.content)
        assert body["correlation_id"] == " page"
        assert body["is_mobile"] == 0
        assert "whitelist" not in body

    @pytest.mark.parametrize("status_code", [402, 429])
    def test_quota_refusal(self, config: Settings, tmp_path, clock, status_code):
        client = _client(lambda request: httpx.Response(status_code), config, tmp_path, clock)

        with pytest.raises(QuotaExhaustedError):
            client.generate(_request())

    def test_server_error(self, config: Settings, tmp_path, clock):
        client = _client(lambda request: httpx.Response(503), config, tmp_path, clock)

        with pytest.raises(GenerationServiceError) as excinfo:
            client.generate(_request())
        assert excinfo.value.status_code == 503

    @pytest.mark.parametrize("content", [b"not json", b"[1, 2]"])
    def test_malformed_body(self, config: Settings, tmp_path, clock, content):
        client = _client(lambda request: httpx.Response(200, content=content), config, tmp_path, clock)

        with pytest.raises(GenerationServiceError):
            client.generate(_request())

    def test_transport_error(self, config: Settings, tmp_path, clock):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        client = _client(handler, config, tmp_path, clock)

        with pytest.raises(GenerationServiceError):
            client.generate(_request())

    def test_daily_quota(self, config: Settings, tmp_path, clock):
        config = config.model_copy(update={"generation_daily_quota": 2})
        client = _client(lambda request: httpx.Response(200, json={"ccss": ".a{}"}), config, tmp_path, clock)

        assert client.allowance()
        client.generate(_request())
        client.generate(_request())
        assert not client.allowance()

        clock.advance(24 * 60 * 60)
        assert client.allowance()

    def test_unlimited_quota(self, config: Settings, tmp_path, clock):
        client = _client(lambda request: httpx.Response(200, json={}), config, tmp_path, clock)

        for _ in range(3):
            client.generate(_request())

        assert client.allowance()


class TestHttpContentFetcher:
    def _fetcher(self, handler, config: Settings) -> HttpContentFetcher:
        return HttpContentFetcher(httpx.Client(transport=httpx.MockTransport(handler)), config=config)

    def test_fetches_unoptimized_copy(self, config: Settings):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, text="<html></html>")

        fetcher = self._fetcher(handler, config)

        assert fetcher.fetch_rendered_copy("https://example.test/a", "Mozilla/5.0", 42) == "<html></html>"

        request = seen[0]
        assert request.url.params["pagecss_ctrl"] == "before_optm"
        assert request.headers["User-Agent"] == "Mozilla/5.0"
        assert request.headers["X-PageCSS-Uid"] == "42"

    def test_guest_copy_has_no_session_header(self, config: Settings):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, text="ok")

        self._fetcher(handler, config).fetch_rendered_copy("https://example.test/a", "UA")

        assert "X-PageCSS-Uid" not in seen[0].headers

    def test_failed_page_fetch(self, config: Settings):
        fetcher = self._fetcher(lambda request: httpx.Response(500), config)

        assert fetcher.fetch_rendered_copy("https://example.test/a", "UA") is None

    def test_relative_stylesheet_is_resolved_against_site(self, config: Settings):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(str(request.url))
            return httpx.Response(200, text="a{}")

        fetcher = self._fetcher(handler, config)

        assert fetcher.load_stylesheet("/wp/style.css") == "a{}"
        assert seen == ["https://example.test/wp/style.css"]

    def test_relative_stylesheet_is_resolved_against_linking_page(self, config: Settings):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(str(request.url))
            return httpx.Response(200, text="a{}")

        fetcher = self._fetcher(handler, config)

        assert fetcher.load_stylesheet("a.css", "https://example.test/blog/post/") == "a{}"
        assert fetcher.load_stylesheet("../b.css", "/blog/post/") == "a{}"
        assert seen == ["https://example.test/blog/post/a.css", "https://example.test/blog/b.css"]

    def test_foreign_stylesheet_is_not_loaded(self, config: Settings):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, text="a{}")

        fetcher = self._fetcher(handler, config)

        assert fetcher.load_stylesheet("https://elsewhere.test/x.css") is None
        assert seen == []

    def test_allowed_cdn_host(self, config: Settings):
        config = config.model_copy(update={"css_allowed_hosts": ["cdn.example.test"]})
        fetcher = self._fetcher(lambda request: httpx.Response(200, text="b{}"), config)

        assert fetcher.load_stylesheet("https://cdn.example.test/x.css") == "b{}"

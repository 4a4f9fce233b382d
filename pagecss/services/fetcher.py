"""HTTP access to the optimized site: guest page copies and stylesheets."""

from __future__ import annotations

from typing import Optional
from urllib.parse import urljoin, urlparse

import httpx

from pagecss.core.config import Settings, settings as default_settings
from pagecss.core.logging import get_logger
from pagecss.services.vary import ACTION_PARAM

logger = get_logger(__name__)

BEFORE_OPTIMIZATION = "before_optm"


class HttpContentFetcher:
    """Fetches pages and same-site stylesheets with httpx."""

    def __init__(self, client: httpx.Client | None = None, config: Settings | None = None) -> None:
        self.config = config or default_settings
        self._client = client or httpx.Client(
            timeout=self.config.fetch_timeout_seconds,
            follow_redirects=True,
        )
        allowed = {urlparse(self.config.site_url).hostname, *self.config.css_allowed_hosts}
        self._allowed_hosts = {host for host in allowed if host}

    def fetch_rendered_copy(
        self,
        url: str,
        client_identity: str,
        session_identity: int = 0,
    ) -> Optional[str]:
        """Fetch the page as it renders before any CSS optimization."""

        headers = {"User-Agent": client_identity}
        if session_identity:
            headers[self.config.session_header] = str(session_identity)

        try:
            response = self._client.get(url, params={ACTION_PARAM: BEFORE_OPTIMIZATION}, headers=headers)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            logger.warning("rendered_copy_fetch_failed", url=url, error=str(exc))
            return None

        logger.debug("rendered_copy_fetched", url=url, size=len(response.text))
        return response.text or None

    def load_stylesheet(self, href: str, base_url: Optional[str] = None) -> Optional[str]:
        """Load a stylesheet served by the site or an allowed host.

        Relative hrefs resolve against ``base_url``, the page that links them,
        and fall back to the site root.
        """

        base = urljoin(self.config.site_url.rstrip("/") + "/", base_url or "")
        url = urljoin(base, href)
        host = urlparse(url).hostname
        if host not in self._allowed_hosts:
            logger.debug("stylesheet_host_not_allowed", href=href, host=host)
            return None

        try:
            response = self._client.get(url)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            logger.warning("stylesheet_fetch_failed", href=href, error=str(exc))
            return None

        return response.text or None

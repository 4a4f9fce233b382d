"""Collect page stylesheets for generation and strip them from the markup."""

from __future__ import annotations

import re
from typing import Callable, Dict, Iterable, Optional, Protocol, Tuple

import csscompressor

from pagecss.core.config import settings
from pagecss.core.logging import get_logger

logger = get_logger(__name__)

INLINE_MARKER = "__INLINE__"

_STYLE_TAGS = re.compile(
    r"<link ([^>]+?)/?>|<style([^>]*?)>([^<]+?)</style>",
    re.IGNORECASE | re.DOTALL,
)
_ATTRIBUTE = re.compile(
    r"""([\w:-]+)\s*=\s*(?:"([^"]*)"|'([^']*)'|([^\s"'>]+))""",
    re.DOTALL,
)
_NOSCRIPT = re.compile(r"<noscript>.*?</noscript>", re.IGNORECASE | re.DOTALL)


class StylesheetLoader(Protocol):
    def load_stylesheet(self, href: str, base_url: Optional[str] = None) -> Optional[str]: ...


def parse_attributes(raw: str) -> Dict[str, str]:
    """Parse ``name="value"`` pairs out of a tag's attribute text."""

    attrs: Dict[str, str] = {}
    for match in _ATTRIBUTE.finditer(raw):
        name = match.group(1).lower()
        value = next((group for group in match.groups()[1:] if group is not None), "")
        attrs.setdefault(name, value.strip())
    return attrs


def _identity(text: str) -> str:
    return text


class ExtractionPipeline:
    """Gather eligible CSS from rendered markup in document order."""

    def __init__(
        self,
        loader: StylesheetLoader,
        minify_css: Callable[[str], str] = csscompressor.compress,
        minify_html: Callable[[str], str] = _identity,
        transform_images: Callable[[str], str] = _identity,
        disallowed_font_hosts: Iterable[str] | None = None,
    ) -> None:
        self._loader = loader
        self._minify_css = minify_css
        self._minify_html = minify_html
        self._transform_images = transform_images
        hosts = settings.disallowed_font_hosts if disallowed_font_hosts is None else disallowed_font_hosts
        self._disallowed_font_hosts = tuple(hosts)

    def prepare_html(self, markup: str) -> str:
        """Minify fetched markup and drop ``<noscript>`` blocks."""

        return _NOSCRIPT.sub("", self._minify_html(markup))

    def extract(self, markup: str, dry_run: bool = False, base_url: Optional[str] = None) -> Tuple[str, str]:
        """Return ``(css_text, stripped_markup)``.

        Relative ``<link>`` hrefs are loaded relative to ``base_url``, the URL
        the markup was fetched from.

        In dry-run mode no stylesheet is loaded, but every eligible element is
        still removed so the stripped markup is the same for both artifact
        types.
        """

        css = ""
        for match in _STYLE_TAGS.finditer(markup):
            element = match.group(0)

            if element[:5].lower() == "<link":
                attrs = parse_attributes(match.group(1))
                rel = attrs.get("rel", "").lower()
                if not rel:
                    continue
                if rel != "stylesheet" and (rel != "preload" or attrs.get("as", "").lower() != "style"):
                    continue

                if "print" in attrs.get("media", ""):
                    markup = markup.replace(element, "")
                    continue

                href = attrs.get("href")
                if not href:
                    continue

                if any(host in href for host in self._disallowed_font_hosts):
                    markup = markup.replace(element, "")
                    continue

                source = href
                if dry_run:
                    content = ""
                else:
                    content = self._loader.load_stylesheet(href, base_url)
                    if not content:
                        logger.debug("stylesheet_load_skipped", href=href)
                        continue
            else:
                attrs = parse_attributes(match.group(2))
                if "print" in attrs.get("media", ""):
                    markup = markup.replace(element, "")
                    continue

                source = INLINE_MARKER
                content = match.group(3)
                logger.debug("inline_css_loaded", preview=content[:100])

            css += self._render(content, attrs.get("media"), source)
            markup = markup.replace(element, "")

        return css, markup

    def _render(self, content: str, media: Optional[str], source: str) -> str:
        content = self._transform_images(self._minify_css(content))

        if media and media != "all":
            content = f"@media {media}{{{content}}}\n"
        else:
            content = content + "\n"

        return f"/* {source} */{content}"

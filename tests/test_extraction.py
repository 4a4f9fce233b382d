"""Tests for stylesheet extraction from rendered markup."""

from __future__ import annotations

import pytest

from pagecss.services.extraction import ExtractionPipeline, parse_attributes

from .conftest import FakeFetcher


@pytest.fixture
def pipeline(fetcher: FakeFetcher) -> ExtractionPipeline:
    return ExtractionPipeline(fetcher, minify_css=str.strip, disallowed_font_hosts=["fonts.googleapis.com"])


def test_parse_attributes_handles_quoting_styles():
    attrs = parse_attributes("""rel='stylesheet' HREF="a.css" media=screen data-x""")

    assert attrs == {"rel": "stylesheet", "href": "a.css", "media": "screen"}


def test_collects_stylesheet_and_strips_it(pipeline: ExtractionPipeline, fetcher: FakeFetcher):
    fetcher.stylesheets["a.css"] = " body{margin:0} "
    markup = '<head><link rel="stylesheet" href="a.css"></head><body></body>'

    css, stripped = pipeline.extract(markup)

    assert css == "/* a.css */body{margin:0}\n"
    assert stripped == "<head></head><body></body>"


def test_stylesheets_load_relative_to_page(pipeline: ExtractionPipeline, fetcher: FakeFetcher):
    fetcher.stylesheets["a.css"] = "p{}"
    markup = '<link rel="stylesheet" href="a.css"><p>x</p>'

    css, _ = pipeline.extract(markup, base_url="https://example.test/blog/post/")

    assert css == "/* a.css */p{}\n"
    assert fetcher.stylesheet_bases == ["https://example.test/blog/post/"]


def test_print_stylesheet_is_dropped_without_collecting(pipeline: ExtractionPipeline, fetcher: FakeFetcher):
    fetcher.stylesheets["a.css"] = "body{color:black}"
    markup = '<link rel="stylesheet" href="a.css" media="print"><p>x</p>'

    css, stripped = pipeline.extract(markup)

    assert css == ""
    assert stripped == "<p>x</p>"
    assert fetcher.stylesheet_calls == []


def test_preload_as_style_is_collected(pipeline: ExtractionPipeline, fetcher: FakeFetcher):
    fetcher.stylesheets["b.css"] = ".b{color:blue}"

    css, stripped = pipeline.extract('<link rel="preload" as="style" href="b.css">')

    assert css == "/* b.css */.b{color:blue}\n"
    assert stripped == ""


def test_other_links_are_left_alone(pipeline: ExtractionPipeline):
    markup = '<link rel="icon" href="favicon.ico"><link rel="preload" as="font" href="f.woff2"><link href="x.css">'

    css, stripped = pipeline.extract(markup)

    assert css == ""
    assert stripped == markup


def test_disallowed_font_host_is_removed(pipeline: ExtractionPipeline, fetcher: FakeFetcher):
    markup = '<link rel="stylesheet" href="https://fonts.googleapis.com/css?family=Roboto"><p></p>'

    css, stripped = pipeline.extract(markup)

    assert css == ""
    assert stripped == "<p></p>"
    assert fetcher.stylesheet_calls == []


def test_failed_load_is_skipped(pipeline: ExtractionPipeline):
    markup = '<link rel="stylesheet" href="missing.css">'

    css, stripped = pipeline.extract(markup)

    assert css == ""
    assert stripped == markup


def test_media_wrapping_and_inline_blocks(pipeline: ExtractionPipeline, fetcher: FakeFetcher):
    fetcher.stylesheets["wide.css"] = ".w{width:100%}"
    markup = (
        '<link rel="stylesheet" href="wide.css" media="(min-width:800px)">'
        "<style>.i{color:red}</style>"
        '<style media="all">.j{color:green}</style>'
        '<style media="print">.p{display:none}</style>'
    )

    css, stripped = pipeline.extract(markup)

    assert css == (
        "/* wide.css */@media (min-width:800px){.w{width:100%}}\n"
        "/* __INLINE__ */.i{color:red}\n"
        "/* __INLINE__ */.j{color:green}\n"
    )
    assert stripped == ""


def test_dry_run_strips_without_loading(pipeline: ExtractionPipeline, fetcher: FakeFetcher):
    fetcher.stylesheets["a.css"] = "body{margin:0}"
    markup = '<link rel="stylesheet" href="a.css"/><style>.i{}</style><main></main>'

    css, stripped = pipeline.extract(markup, dry_run=True)

    assert stripped == "<main></main>"
    assert fetcher.stylesheet_calls == []
    assert css == "/* a.css */\n/* __INLINE__ */.i{}\n"


def test_extraction_is_idempotent(pipeline: ExtractionPipeline, fetcher: FakeFetcher):
    fetcher.stylesheets["a.css"] = "a{b:c}"
    markup = '<link rel="stylesheet" href="a.css"><style>.x{y:z}</style>'

    assert pipeline.extract(markup) == pipeline.extract(markup)


def test_image_transform_is_applied(fetcher: FakeFetcher):
    pipeline = ExtractionPipeline(
        fetcher,
        minify_css=str.strip,
        transform_images=lambda css: css.replace(".png", ".webp"),
    )

    css, _ = pipeline.extract("<style>.h{background:url(h.png)}</style>")

    assert css == "/* __INLINE__ */.h{background:url(h.webp)}\n"


def test_default_minifier(fetcher: FakeFetcher):
    pipeline = ExtractionPipeline(fetcher)

    css, _ = pipeline.extract("<style>body { color: red; }</style>")

    assert css == "/* __INLINE__ */body{color:red}\n"


def test_prepare_html_drops_noscript(pipeline: ExtractionPipeline):
    html = "<body><noscript><img src=x></noscript><p>a</p><NOSCRIPT>b</NOSCRIPT></body>"

    assert pipeline.prepare_html(html) == "<body><p>a</p></body>"

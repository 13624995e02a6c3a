# File: tests/test_extractor.py
import pytest

from docs_archiver.crawler.extractor import AssetExtractor, guess_category
from docs_archiver.crawler.models import ResourceCategory
from docs_archiver.crawler.renderer import build_result


PAGE_URL = "https://docs.example.com/guide/intro"

PAGE = """
<html>
<head>
  <title> Intro </title>
  <link rel="stylesheet" href="/styles/main.css">
  <link rel="preload" as="font" href="/fonts/inter.woff2" crossorigin>
  <link rel="modulepreload" href="/_next/static/chunks/a.js">
  <link rel="icon" href="/favicon.ico">
  <link rel="canonical" href="https://docs.example.com/guide/intro">
  <script src="https://cdn.example.com/lib/app.js"></script>
  <style>.hero { background: url("../img/hero.png"); }</style>
</head>
<body>
  <a href="../setup#install">Setup</a>
  <a href="mailto:team@example.com">Mail</a>
  <a href="#top">Top</a>
  <img src="diagram.svg" srcset="small.png 1x, large.png 2x">
  <picture><source srcset="/img/wide.webp 1200w"></picture>
  <div style="background-image: url('/img/bg')"></div>
  <svg><use href="/sprite.svg#check"></use><use href="#local"></use></svg>
  <video poster="/img/poster.jpg"><source src="/media/clip.mp4"></video>
  <script>self.__next_f.push(["https://cdn.example.com/icons/check.svg"])</script>
</body>
</html>
"""


@pytest.fixture()
def extracted():
    return AssetExtractor().extract(PAGE, PAGE_URL)


@pytest.mark.parametrize(
    "url, expected",
    [
        ("https://x.com/a.CSS", ResourceCategory.STYLESHEET),
        ("https://x.com/a.mjs?v=1", ResourceCategory.SCRIPT),
        ("https://x.com/a.webp", ResourceCategory.IMAGE),
        ("https://x.com/a.woff2", ResourceCategory.FONT),
        ("https://x.com/feed", ResourceCategory.OTHER),
    ],
)
def test_guess_category(url, expected):
    assert guess_category(url) is expected


def test_title(extracted):
    assert extracted.title == "Intro"


def test_links_are_resolved_and_filtered(extracted):
    assert extracted.links == ["https://docs.example.com/setup"]


@pytest.mark.parametrize(
    "url, category",
    [
        ("https://docs.example.com/styles/main.css", ResourceCategory.STYLESHEET),
        ("https://docs.example.com/fonts/inter.woff2", ResourceCategory.FONT),
        ("https://docs.example.com/_next/static/chunks/a.js", ResourceCategory.SCRIPT),
        ("https://docs.example.com/favicon.ico", ResourceCategory.IMAGE),
        ("https://cdn.example.com/lib/app.js", ResourceCategory.SCRIPT),
        ("https://docs.example.com/img/hero.png", ResourceCategory.IMAGE),
        ("https://docs.example.com/guide/diagram.svg", ResourceCategory.IMAGE),
        ("https://docs.example.com/guide/small.png", ResourceCategory.IMAGE),
        ("https://docs.example.com/guide/large.png", ResourceCategory.IMAGE),
        ("https://docs.example.com/img/wide.webp", ResourceCategory.IMAGE),
        ("https://docs.example.com/img/bg", ResourceCategory.IMAGE),
        ("https://docs.example.com/sprite.svg", ResourceCategory.IMAGE),
        ("https://docs.example.com/img/poster.jpg", ResourceCategory.IMAGE),
        ("https://docs.example.com/media/clip.mp4", ResourceCategory.OTHER),
        ("https://cdn.example.com/icons/check.svg", ResourceCategory.IMAGE),
    ],
)
def test_resources(extracted, url, category):
    assert extracted.resources[url] is category


def test_non_files_are_not_resources(extracted):
    assert "https://docs.example.com/guide/intro" not in extracted.resources
    assert not any(url.startswith("data:") for url in extracted.resources)


def test_base_href_changes_resolution():
    html = '<html><head><base href="https://docs.example.com/v2/"></head>' \
           '<body><a href="start">x</a><img src="a.png"></body></html>'
    assets = AssetExtractor().extract(html, PAGE_URL)

    assert assets.links == ["https://docs.example.com/v2/start"]
    assert "https://docs.example.com/v2/a.png" in assets.resources


def test_specific_category_wins_over_other():
    html = '<html><body><object data="/files/logo"></object>' \
           '<img src="/files/logo"></body></html>'
    assets = AssetExtractor().extract(html, PAGE_URL)

    assert assets.resources["https://docs.example.com/files/logo"] is ResourceCategory.IMAGE


def test_extract_css_assets():
    css = """
    @import "base.css";
    @import url(theme/dark.css);
    @font-face { src: url('../fonts/a.woff2') format('woff2'); }
    .icon { background: url(data:image/png;base64,AAAA); }
    .mask { mask: url(#clip); }
    .bg { background: url("/img/pattern"); }
    """
    found = AssetExtractor().extract_css_assets(css, "https://docs.example.com/styles/main.css")

    assert found == {
        "https://docs.example.com/styles/base.css": ResourceCategory.STYLESHEET,
        "https://docs.example.com/styles/theme/dark.css": ResourceCategory.STYLESHEET,
        "https://docs.example.com/fonts/a.woff2": ResourceCategory.FONT,
        "https://docs.example.com/img/pattern": ResourceCategory.IMAGE,
    }


def test_build_result_merges_network_resources():
    network = {
        "https://docs.example.com/_next/static/chunks/late.js": ResourceCategory.SCRIPT,
        "https://docs.example.com/styles/main.css": ResourceCategory.OTHER,
    }
    result = build_result(AssetExtractor(), PAGE_URL, PAGE, PAGE_URL, network)

    assert result.ok
    assert result.title == "Intro"
    assert result.resource_urls["https://docs.example.com/_next/static/chunks/late.js"] is ResourceCategory.SCRIPT
    assert result.resource_urls["https://docs.example.com/styles/main.css"] is ResourceCategory.STYLESHEET
    assert [(link.url, link.path) for link in result.navigation_links] == [
        ("https://docs.example.com/setup", "/setup"),
    ]

# File: tests/test_paths.py
import hashlib
import re
from urllib.parse import quote

import pytest

from docs_archiver.crawler.models import ResourceCategory
from docs_archiver.utils.errors import MappingError, OutputRootError, WriteError
from docs_archiver.utils.paths import (
    PathMapper,
    PathMapping,
    create_output_structure,
    normalize_url,
    relative_reference,
    resolve_local_reference,
    safe_segment,
    write_file,
)


# --------------------------------------------------------------------------- #
#                               normalize_url                                 #
# --------------------------------------------------------------------------- #


@pytest.mark.parametrize(
    "url, expected",
    [
        ("https://Docs.Example.com/guide/#setup", "https://docs.example.com/guide"),
        ("https://docs.example.com", "https://docs.example.com/"),
        ("HTTPS://docs.example.com/", "https://docs.example.com/"),
        ("https://docs.example.com/a?x=1#frag", "https://docs.example.com/a?x=1"),
        ("mailto:team@example.com", ""),
        ("javascript:void(0)", ""),
        ("#top", ""),
        ("", ""),
    ],
)
def test_normalize_url(url, expected):
    assert normalize_url(url) == expected


def test_normalize_url_resolves_relative():
    assert normalize_url("../b", "https://docs.example.com/a/c") == "https://docs.example.com/b"
    assert normalize_url("//cdn.example.com/x.js", "http://docs.example.com/") == "http://cdn.example.com/x.js"


# --------------------------------------------------------------------------- #
#                                PathMapper                                   #
# --------------------------------------------------------------------------- #


@pytest.mark.parametrize(
    "url, expected",
    [
        ("https://docs.example.com/", "index.html"),
        ("https://docs.example.com/guide", "guide/index.html"),
        ("https://docs.example.com/guide/", "guide/index.html"),
        ("https://docs.example.com/guide?tab=2", "guide/index.html"),
        ("https://docs.example.com/page.html", "page.html"),
        ("https://docs.example.com/docs/[slug]", "docs/_lbracket_slug_rbracket_/index.html"),
        ("https://docs.example.com/docs/%5Bslug%5D", "docs/_lbracket_slug_rbracket_/index.html"),
    ],
)
def test_map_page(mapper, url, expected):
    assert mapper.map_page(url) == expected


@pytest.mark.parametrize(
    "url, category, expected",
    [
        ("https://docs.example.com/styles/main.css", "stylesheet", "styles/main.css"),
        ("https://docs.example.com/css/", "stylesheet", "css/%index.css"),
        ("https://cdn.example.com/npm/pkg", "script", "assets/cdn.example.com/npm/pkg/%index.js"),
        ("https://docs.example.com/feed", "other", "feed/%index"),
        ("https://cdn.example.com/lib/x.png", "image", "assets/cdn.example.com/lib/x.png"),
        ("https://docs.example.com/assets/logo.png", "image", "assets/docs.example.com/assets/logo.png"),
        ("https://docs.example.com/a:b.png", "image", "a%3Ab.png"),
        ("https://docs.example.com/100%25.png", "image", "100%25.png"),
        ("https://docs.example.com/a/../../b.css", "stylesheet", "b.css"),
    ],
)
def test_map_resource(mapper, url, category, expected):
    assert mapper.map_resource(url, category) == expected


def test_map_accepts_category_enum(mapper):
    assert mapper.map_resource("https://docs.example.com/css/", ResourceCategory.STYLESHEET) == "css/%index.css"


def test_map_folds_query_into_resource_name(mapper):
    v1 = mapper.map_resource("https://docs.example.com/app.js?v=1", "script")
    v2 = mapper.map_resource("https://docs.example.com/app.js?v=2", "script")

    assert re.fullmatch(r"app%q[0-9a-f]{10}\.js", v1)
    assert re.fullmatch(r"app%q[0-9a-f]{10}\.js", v2)
    assert v1 != v2
    assert v1 != mapper.map_resource("https://docs.example.com/app.js", "script")


def test_map_is_deterministic(mapper):
    url = "https://cdn.example.com/fonts/Inter[wght].woff2?v=3"
    assert mapper.map_resource(url, "font") == mapper.map_resource(url, "font")
    assert PathMapper("docs.example.com", ["cdn.example.com"]).map_resource(url, "font") == \
        mapper.map_resource(url, "font")


def test_map_never_escapes_root(mapper):
    for url in (
        "https://docs.example.com/../../etc/passwd",
        "https://docs.example.com/%2e%2e/%2e%2e/x.css",
        "https://docs.example.com/a/..%2f..%2fb.css",
    ):
        local = mapper.map_resource(url, "stylesheet")
        assert ".." not in local.split("/")
        assert not local.startswith("/")


def test_map_distinct_urls_to_distinct_paths(mapper):
    urls = [
        "https://docs.example.com/a[1].png",
        "https://docs.example.com/a%5B1%5D_x.png",
        "https://docs.example.com/a_lbracket_1_rbracket_.png",
        "https://docs.example.com/a%3A1.png",
        "https://docs.example.com/a%253A1.png",
        "https://docs.example.com/assets/cdn.example.com/x.png",
        "https://cdn.example.com/x.png",
    ]
    paths = [mapper.map_resource(url, "image") for url in urls]
    assert len(set(paths)) == len(paths)


def test_folded_and_implicit_names_never_match_literal_urls(mapper):
    folded = mapper.map_resource("https://docs.example.com/a.css?v=1", "stylesheet")
    digest = hashlib.sha256(b"v=1").hexdigest()[:10]
    # Literal URLs spelling out every plausible form of the folded name
    literals = [
        f"https://docs.example.com/a_{digest}.css",
        f"https://docs.example.com/{quote(folded)}",
        f"https://docs.example.com/a%3F{digest}.css",
    ]
    assert folded not in [mapper.map_resource(url, "stylesheet") for url in literals]

    implicit = mapper.map_resource("https://docs.example.com/theme", "stylesheet")
    assert implicit != mapper.map_resource("https://docs.example.com/theme/index.css", "stylesheet")
    assert implicit != mapper.map_resource(f"https://docs.example.com/theme/{quote(implicit.split('/')[-1])}", "stylesheet")


@pytest.mark.parametrize(
    "url",
    [
        "https://evil.example.org/x.png",
        "/relative/path.png",
        "ftp://docs.example.com/x.png",
        "mailto:someone@example.com",
        "",
    ],
)
def test_map_rejects_unmappable(mapper, url):
    with pytest.raises(MappingError):
        mapper.map_resource(url, "image")


def test_map_with_base_url(mapper):
    assert mapper.map("../img/a.png", "image", base_url="https://docs.example.com/guide/intro") == "img/a.png"


def test_map_directory(mapper):
    assert mapper.map_directory("https://cdn.example.com/icons/") == "assets/cdn.example.com/icons"
    assert mapper.map_directory("https://docs.example.com/") == ""


def test_allow_list(mapper):
    assert mapper.is_allowed("https://cdn.example.com/a.js")
    assert not mapper.is_allowed("https://other.example.com/a.js")
    assert mapper.is_same_origin("https://docs.example.com/guide")
    assert not mapper.is_same_origin("https://cdn.example.com/guide")


def test_safe_segment():
    assert safe_segment('a<b>:c"d|e?f*g\\h') == "a%3Cb%3E%3Ac%22d%7Ce%3Ff%2Ag%5Ch"
    assert safe_segment("[id]") == "_lbracket_id_rbracket_"
    # Literal placeholder text cannot be confused with a real bracket
    assert safe_segment("_lbracket_id") == "_%6Cbracket_id"
    assert safe_segment("[rbracket_") == "_lbracket_%72bracket_"


# --------------------------------------------------------------------------- #
#                               PathMapping                                   #
# --------------------------------------------------------------------------- #


def test_mapping_is_injective():
    table = PathMapping()
    assert table.add("https://docs.example.com/a.css", "a.css")
    assert table.add("https://docs.example.com/a.css#x", "a.css")
    assert not table.add("https://docs.example.com/b.css", "a.css")
    assert table.url_for("a.css") == "https://docs.example.com/a.css"
    assert len(table) == 1


def test_mapping_lookups():
    table = PathMapping()
    table.add("https://docs.example.com/guide", "guide/index.html", page=True)
    table.add("https://docs.example.com/app.js?v=1", "app_1234567890.js")
    table.add_redirect("https://docs.example.com/old", "https://docs.example.com/guide")

    assert table.get("https://docs.example.com/guide/") == "guide/index.html"
    assert table.get("https://docs.example.com/guide?tab=2#top") == "guide/index.html"
    assert table.get("https://docs.example.com/old") == "guide/index.html"
    assert table.get("https://docs.example.com/app.js?v=1") == "app_1234567890.js"
    assert table.get("https://docs.example.com/app.js") is None
    assert "https://docs.example.com/guide" in table
    assert table.has_prefix("https://docs.example.com/gui")
    assert table.is_local_path("guide/index.html")


# --------------------------------------------------------------------------- #
#                           References and files                              #
# --------------------------------------------------------------------------- #


@pytest.mark.parametrize(
    "from_file, to_file, expected",
    [
        ("index.html", "styles/main.css", "styles/main.css"),
        ("guide/intro/index.html", "styles/main.css", "../../styles/main.css"),
        ("styles/main.css", "fonts/a.woff2", "../fonts/a.woff2"),
        ("index.html", "a%3Ab.png", "a%253Ab.png"),
        ("index.html", "img/a b.png", "img/a%20b.png"),
    ],
)
def test_relative_reference(from_file, to_file, expected):
    assert relative_reference(from_file, to_file) == expected


def test_resolve_local_reference():
    assert resolve_local_reference("guide/intro/index.html", "../../styles/main.css") == "styles/main.css"
    assert resolve_local_reference("index.html", "a%253Ab.png") == "a%3Ab.png"
    assert resolve_local_reference("index.html", "../outside.css") is None


def test_write_file_creates_missing_directories(tmp_path):
    target = tmp_path / "deep" / "er" / "file.txt"
    write_file(str(target), "hello")
    assert target.read_text(encoding="utf-8") == "hello"

    write_file(str(tmp_path / "bin" / "x.bin"), b"\x00\x01")
    assert (tmp_path / "bin" / "x.bin").read_bytes() == b"\x00\x01"


def test_write_file_raises_write_error(tmp_path):
    (tmp_path / "taken").mkdir()
    with pytest.raises(WriteError):
        write_file(str(tmp_path / "taken"), "data")


def test_create_output_structure(tmp_path):
    dirs = create_output_structure(str(tmp_path / "out"))
    assert (tmp_path / "out" / "json_data").is_dir()
    assert dirs["root"] == str(tmp_path / "out")


def test_create_output_structure_fails_on_file(tmp_path):
    blocker = tmp_path / "blocker"
    blocker.write_text("x")
    with pytest.raises(OutputRootError):
        create_output_structure(str(blocker))

"""Tests for the stateless transport helpers."""

import httpx

from utils.encoding import (
    build_url,
    decode_content,
    encode_content,
    encode_path,
    has_next_page,
    page_size,
    percent_encode,
)


def test_percent_encode_escapes_slashes_and_spaces():
    assert percent_encode("group/sub project") == "group%2Fsub%20project"
    assert percent_encode("a-b_c.d~e") == "a-b_c.d~e"


def test_encode_path_keeps_separators():
    assert encode_path("/docs/read me.md") == "docs/read%20me.md"


def test_build_url_joins_and_drops_none_params():
    url = build_url("https://api.test/", "/repos/x", {"state": "open", "milestone": None})
    assert url == "https://api.test/repos/x?state=open"


def test_build_url_without_params():
    assert build_url("https://api.test", "user") == "https://api.test/user"


def test_build_url_encodes_query_values():
    url = build_url("https://api.test", "/search", {"q": "a b&c"})
    assert url == "https://api.test/search?q=a%20b%26c"


def test_decode_content_ignores_line_wrapping():
    encoded = encode_content("héllo wörld\n" * 10)
    wrapped = "\n".join(encoded[i:i + 60] for i in range(0, len(encoded), 60))
    assert decode_content(wrapped) == "héllo wörld\n" * 10


def test_decode_content_rejects_garbage():
    assert decode_content("not base64!!") is None
    # Valid base64, invalid UTF-8
    assert decode_content("/w==") is None


def test_has_next_page_link_header():
    request = httpx.Request("GET", "https://api.test/user/repos")
    response = httpx.Response(
        200, request=request,
        headers={"Link": '<https://api.test/user/repos?page=2>; rel="next"'},
    )
    assert has_next_page(response)


def test_has_next_page_gitlab_header():
    request = httpx.Request("GET", "https://api.test/projects")
    assert has_next_page(httpx.Response(200, request=request, headers={"X-Next-Page": "2"}))
    assert not has_next_page(httpx.Response(200, request=request, headers={"X-Next-Page": ""}))


def test_page_size_bounds():
    assert page_size(10) == 11
    assert page_size(100) == 100
    assert page_size(0) == 1

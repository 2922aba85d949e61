"""Stateless transport helpers shared by every provider

URL construction, percent-encoding, base64 transcoding of file bodies and
next-page detection. Nothing in here keeps state between calls.
"""

import base64
import binascii
import logging
from typing import Any, Dict, Optional
from urllib.parse import quote, urlencode

import httpx

logger = logging.getLogger(__name__)

# RFC 3986 unreserved characters are the only ones left untouched
_UNRESERVED = "-_.~"


def percent_encode(value: Any) -> str:
    """Percent-encode a value for use as a single URL path segment or query value

    Slashes are encoded too, so "group/project" becomes "group%2Fproject".

    Args:
        value: Value to encode (converted with str())

    Returns:
        Encoded string
    """
    return quote(str(value), safe=_UNRESERVED)


def encode_path(path: str) -> str:
    """Percent-encode a repository file path, keeping its "/" separators"""
    return "/".join(percent_encode(part) for part in path.strip("/").split("/"))


def build_url(base: str, endpoint: str, params: Optional[Dict[str, Any]] = None) -> str:
    """Join an API base URL and an endpoint, appending query parameters

    Args:
        base: API base, with or without a trailing slash
        endpoint: Endpoint path, with or without a leading slash
        params: Optional query parameters; None values are dropped

    Returns:
        Absolute URL
    """
    url = f"{base.rstrip('/')}/{endpoint.lstrip('/')}"
    if params:
        query = {key: value for key, value in params.items() if value is not None}
        if query:
            url = f"{url}?{urlencode(query, quote_via=quote, safe=_UNRESERVED)}"
    return url


def encode_content(text: str) -> str:
    """Base64-encode a UTF-8 file body for a content API"""
    return base64.b64encode(text.encode("utf-8")).decode("ascii")


def decode_content(encoded: str) -> Optional[str]:
    """Decode a base64 file body returned by a content API

    Content APIs wrap base64 at 60 or 76 columns, so embedded newlines are
    stripped first.

    Args:
        encoded: Base64 payload

    Returns:
        Decoded text, or None if the payload is not valid base64/UTF-8
    """
    compact = "".join(encoded.split())
    try:
        return base64.b64decode(compact, validate=True).decode("utf-8")
    except (binascii.Error, ValueError) as e:
        logger.debug(f"Could not decode file content: {e}")
        return None


def has_next_page(response: httpx.Response) -> bool:
    """Check whether a list response advertises a further page

    GitHub and Gitee send an RFC 5988 Link header, GitLab sends X-Next-Page.
    """
    if "next" in response.links:
        return True
    return bool(response.headers.get("x-next-page", "").strip())


def page_size(limit: int, maximum: int = 100) -> int:
    """Request one more item than wanted so truncation can be detected"""
    return max(1, min(limit + 1, maximum))

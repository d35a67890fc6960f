from __future__ import annotations

"""
resp_read.py - turn a requests.Response into page text.

No HTTP here. Only decoding of an already received body.

requests falls back to ISO-8859-1 for any text/* response without a
charset parameter (RFC 2616), which turns UTF-8 pages into mojibake. That
guess is never used; the order is:

1) charset= from the Content-Type header
2) <meta charset> / <meta http-equiv content="...charset=..."> in the first bytes
3) strict UTF-8
4) resp.apparent_encoding (charset detection on the body)
5) UTF-8 with replacement characters
"""

import codecs
import re
from typing import Optional

import requests


_CHARSET_RE = re.compile(r"charset=([^\s;]+)", flags=re.IGNORECASE)
_META_CHARSET_RE = re.compile(rb"""<meta[^>]+charset\s*=\s*["']?\s*([A-Za-z0-9_.:-]+)""", flags=re.IGNORECASE)

META_SNIFF_BYTES = 4096


def _extract_charset(content_type: str) -> Optional[str]:
    m = _CHARSET_RE.search(content_type or "")
    return m.group(1).strip("\"'") if m else None


def _meta_charset(raw: bytes) -> Optional[str]:
    m = _META_CHARSET_RE.search(raw[:META_SNIFF_BYTES])
    return m.group(1).decode("ascii", errors="ignore") if m else None


def _known(enc: Optional[str]) -> Optional[str]:
    if not enc:
        return None
    try:
        return codecs.lookup(enc).name
    except LookupError:
        return None


def is_binary_content_type(content_type: str) -> bool:
    ct = (content_type or "").lower()
    return (
        ct.startswith("image/")
        or ct.startswith("audio/")
        or ct.startswith("video/")
        or "pdf" in ct
        or "zip" in ct
        or "octet-stream" in ct
        or "application/gzip" in ct
    )


def read_text_safely(resp: requests.Response, *, errors: str = "replace") -> Optional[str]:
    """Decoded body, or None for binary content types."""
    content_type = resp.headers.get("Content-Type", "")
    if is_binary_content_type(content_type):
        return None

    raw = resp.content or b""

    declared = _known(_extract_charset(content_type)) or _known(_meta_charset(raw))
    if declared:
        return raw.decode(declared, errors=errors)

    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError:
        pass

    detected = _known(getattr(resp, "apparent_encoding", None))
    if detected:
        return raw.decode(detected, errors=errors)
    return raw.decode("utf-8", errors="replace")

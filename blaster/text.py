"""Text helpers shared by the scrapers."""

from __future__ import annotations

import html
import re
from urllib.parse import parse_qs, urlparse

from bs4 import BeautifulSoup

_WHITESPACE = re.compile(r"\s+")
_CDATA = re.compile(r"<!\[CDATA\[|\]\]>")


def cleanup_text(text: str | None) -> str:
    if not text:
        return ""
    return _WHITESPACE.sub(" ", text.replace("\x00", " ")).strip()


def decode_entities(text: str) -> str:
    return html.unescape(text)


def strip_cdata(text: str) -> str:
    return _CDATA.sub("", text)


def strip_tags(fragment: str | None) -> str:
    """Visible text of a small HTML fragment, entities decoded."""

    if not fragment:
        return ""
    soup = BeautifulSoup(fragment, "html.parser")
    return cleanup_text(soup.get_text(separator=" "))


def strip_html(document: str) -> str:
    """Visible text of a full page, without scripts and styles."""

    soup = BeautifulSoup(document, "html.parser")
    for tag in soup(["script", "style", "noscript", "svg"]):
        tag.decompose()
    return cleanup_text(soup.get_text(separator=" ", strip=True))


def absolutize(url: str) -> str:
    return f"https:{url}" if url.startswith("//") else url


def resolve_duckduckgo_url(raw_url: str) -> str:
    """Unwrap DuckDuckGo's /l/?uddg= redirect links."""

    url = absolutize(raw_url)
    if "duckduckgo.com/l/" not in url:
        return url
    try:
        target = parse_qs(urlparse(url).query).get("uddg")
    except ValueError:
        return url
    if target and target[0]:
        return target[0]
    return url


def extract_domain(url: str) -> str:
    try:
        hostname = urlparse(url).hostname
    except ValueError:
        return "Unknown"
    if not hostname:
        return "Unknown"
    return hostname.replace("www.", "", 1)


def hash_string(value: str) -> int:
    """31-multiplier 32-bit string hash, folded to a non-negative int."""

    acc = 0
    for char in value:
        acc = (acc * 31 + ord(char)) & 0xFFFFFFFF
    if acc >= 0x80000000:
        acc -= 0x100000000
    return abs(acc)

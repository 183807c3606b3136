from __future__ import annotations

from dataclasses import dataclass, field, fields
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


def to_payload(obj: Any) -> Any:
    """Convert dataclasses (recursively) to camelCase dicts, dropping unset optionals."""

    if isinstance(obj, list):
        return [to_payload(item) for item in obj]
    if hasattr(obj, "__dataclass_fields__"):
        payload: Dict[str, Any] = {}
        for f in fields(obj):
            value = getattr(obj, f.name)
            if value is None:
                continue
            payload[_camel(f.name)] = to_payload(value)
        return payload
    return obj


@dataclass
class WebResult:
    title: str
    url: str
    snippet: Optional[str] = None


@dataclass
class CrawledPage:
    title: str
    url: str
    content: str
    snippet: Optional[str] = None


@dataclass
class ImageResult:
    title: str
    url: str
    image: str
    thumbnail: Optional[str] = None
    source: Optional[str] = None
    width: Optional[int] = None
    height: Optional[int] = None


@dataclass
class VideoResult:
    title: str
    url: str
    thumbnail: Optional[str] = None
    source: Optional[str] = None
    duration: Optional[str] = None
    description: Optional[str] = None


@dataclass
class NewsResult:
    title: str
    url: str
    snippet: Optional[str] = None
    source: Optional[str] = None
    date: Optional[str] = None
    image: Optional[str] = None


@dataclass
class EngineResult:
    id: str
    title: str
    url: str
    description: str
    content: str
    source: str
    published_at: str
    relevance_score: float
    category: Optional[str] = None
    language: Optional[str] = None
    word_count: Optional[int] = None
    author: Optional[str] = None


@dataclass
class SearchResponse:
    query: str
    results: List[EngineResult]
    summary: str
    searched_at: str = field(default_factory=utc_now)


@dataclass
class TweetAuthor:
    username: str
    name: str
    profile_image_url: Optional[str] = None


@dataclass
class TweetMedia:
    type: str
    url: str


@dataclass
class Tweet:
    id: str
    text: str
    author: TweetAuthor
    created_at: str
    url: str
    retweet_count: int = 0
    like_count: int = 0
    reply_count: int = 0
    quote_count: int = 0
    media: List[TweetMedia] = field(default_factory=list)
    referenced_tweets: List[Dict[str, str]] = field(default_factory=list)


@dataclass
class CrawlResponse:
    query: str
    tweets: List[Tweet]
    summary: str
    crawled_at: str = field(default_factory=utc_now)

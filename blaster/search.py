from __future__ import annotations

import asyncio
import json
import logging
import re
from typing import Any, Dict, Iterator, List, Optional, Sequence
from urllib.parse import quote, unquote
from xml.etree import ElementTree

import httpx
from bs4 import BeautifulSoup

from .config import Settings, is_configured
from .errors import SearchProviderError
from .models import ImageResult, NewsResult, VideoResult, WebResult
from .research import dedupe_by_url, parse_duckduckgo_html
from .text import (
    absolutize,
    cleanup_text,
    decode_entities,
    hash_string,
    resolve_duckduckgo_url,
    strip_cdata,
    strip_tags,
)


logger = logging.getLogger(__name__)

SEARCH_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    ),
    "Accept": "text/html,application/json,application/javascript",
    "Accept-Language": "en-US,en;q=0.9",
    "DNT": "1",
    "Upgrade-Insecure-Requests": "1",
    "Sec-Fetch-Dest": "document",
    "Sec-Fetch-Mode": "navigate",
    "Sec-Fetch-Site": "none",
    "Sec-Fetch-User": "?1",
}

MAX_WEB_RESULTS = 8
MAX_IMAGE_RESULTS = 12
MAX_VIDEO_RESULTS = 8
MAX_NEWS_RESULTS = 10
NEWS_SNIPPET_CHARS = 200

CATEGORIES = ("web", "images", "videos", "news")

_YT_INITIAL_DATA = re.compile(r"ytInitialData\s*=\s*(\{.*?\});\s*</script>", re.S)
_YT_VIDEO_ID = re.compile(r'"videoId":"([^"]+)"')
_YT_TITLE = re.compile(r'"title":\{"runs":\[\{"text":"([^"]+)"\}\]')
_GOOGLE_IMAGE_URL = re.compile(r'"ou":"([^"]+)"')
_GOOGLE_IMAGE_TITLE = re.compile(r'"pt":"([^"]+)"')


class CategorySearch:
    """Web, image, video and news search with provider fallbacks."""

    def __init__(self, settings: Settings, transport: httpx.AsyncBaseTransport | None = None):
        self.settings = settings
        self.transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.settings.request_timeout,
            headers=SEARCH_HEADERS,
            follow_redirects=True,
            transport=self.transport,
        )

    async def _get_text(self, url: str, accept: str = "text/html", **kwargs: Any) -> str:
        async with self._client() as client:
            resp = await client.get(url, headers={"Accept": accept, **kwargs.pop("headers", {})}, **kwargs)
            resp.raise_for_status()
            return resp.text

    async def _get_json(self, url: str, **kwargs: Any) -> Any:
        async with self._client() as client:
            resp = await client.get(url, headers={"Accept": "application/json", **kwargs.pop("headers", {})}, **kwargs)
            resp.raise_for_status()
            return resp.json()

    # web -----------------------------------------------------------------

    async def search_web(self, query: str) -> List[WebResult]:
        try:
            html = await self._get_text("https://duckduckgo.com/html/", params={"q": query})
        except httpx.HTTPError as exc:
            raise SearchProviderError("Search provider error") from exc
        return dedupe_by_url(parse_duckduckgo_html(html))[:MAX_WEB_RESULTS]

    # images --------------------------------------------------------------

    async def search_images(self, query: str) -> List[ImageResult]:
        providers = [("DuckDuckGo images", self._images_duckduckgo)]
        if is_configured(self.settings.unsplash_access_key):
            providers.append(("Unsplash", self._images_unsplash))
        if is_configured(self.settings.pexels_api_key):
            providers.append(("Pexels", self._images_pexels))
        providers.append(("Google images", self._images_google))

        for name, provider in providers:
            try:
                images = await provider(query)
            except Exception as exc:
                logger.warning("%s search failed for %r: %s", name, query, exc)
                continue
            if images:
                logger.info("Found %d images from %s for query: %s", len(images), name, query)
                return images[:MAX_IMAGE_RESULTS]
            logger.info("%s returned no images for %r", name, query)
        logger.info("Using placeholder images for query: %s", query)
        return placeholder_images(query)

    async def _images_duckduckgo(self, query: str) -> List[ImageResult]:
        html = await self._get_text("https://duckduckgo.com/", params={"q": query, "iax": "images", "ia": "images"})
        return parse_duckduckgo_images(html, query)

    async def _images_unsplash(self, query: str) -> List[ImageResult]:
        data = await self._get_json(
            "https://api.unsplash.com/search/photos",
            params={"query": query, "per_page": MAX_IMAGE_RESULTS},
            headers={"Authorization": f"Client-ID {self.settings.unsplash_access_key}"},
        )
        return map_unsplash_results(data.get("results") or [], query)

    async def _images_pexels(self, query: str) -> List[ImageResult]:
        data = await self._get_json(
            "https://api.pexels.com/v1/search",
            params={"query": query, "per_page": MAX_IMAGE_RESULTS},
            headers={"Authorization": self.settings.pexels_api_key or ""},
        )
        return map_pexels_results(data.get("photos") or [], query)

    async def _images_google(self, query: str) -> List[ImageResult]:
        html = await self._get_text("https://www.google.com/search", params={"q": query, "tbm": "isch"})
        return parse_google_images(html, query)

    # videos --------------------------------------------------------------

    async def search_videos(self, query: str) -> List[VideoResult]:
        try:
            html = await self._get_text("https://www.youtube.com/results", params={"search_query": query})
            videos = parse_youtube_results(html)
            if videos:
                return videos
            logger.info("YouTube returned no videos for %r", query)
        except httpx.HTTPError as exc:
            logger.warning("YouTube search failed for %r: %s", query, exc)

        try:
            html = await self._get_text("https://duckduckgo.com/", params={"q": query, "iax": "videos", "ia": "videos"})
        except httpx.HTTPError as exc:
            logger.warning("DuckDuckGo videos failed for %r: %s", query, exc)
            return []
        videos = parse_duckduckgo_videos(html)
        logger.info("Found %d videos from DuckDuckGo for query: %s", len(videos), query)
        return videos

    # news ----------------------------------------------------------------

    async def search_news(self, query: str) -> List[NewsResult]:
        try:
            xml = await self._get_text(
                f"https://news.google.com/rss/search?q={quote(query, safe='')}&hl=en-US&gl=US&ceid=US:en",
                accept="application/rss+xml,application/xml,text/xml",
            )
            news = parse_news_rss(xml)
            logger.info("Found %d news articles for query: %s", len(news), query)
            return news
        except (httpx.HTTPError, ElementTree.ParseError) as exc:
            logger.warning("News RSS failed for %r: %s", query, exc)

        try:
            html = await self._get_text(
                "https://duckduckgo.com/",
                params={"q": query, "iar": "news", "ia": "news", "kl": "us-en"},
            )
        except httpx.HTTPError as exc:
            logger.warning("News fallback failed for %r: %s", query, exc)
            return []
        return parse_duckduckgo_news(html)

    # fan-out -------------------------------------------------------------

    async def search_all(self, query: str, categories: Sequence[str] = CATEGORIES) -> Dict[str, List[Any]]:
        wanted = [category for category in CATEGORIES if category in set(categories)]
        handlers = {
            "web": self.search_web,
            "images": self.search_images,
            "videos": self.search_videos,
            "news": self.search_news,
        }
        outcomes = await asyncio.gather(*(handlers[name](query) for name in wanted), return_exceptions=True)
        merged: Dict[str, List[Any]] = {}
        for name, outcome in zip(wanted, outcomes):
            if isinstance(outcome, Exception):
                logger.warning("%s search failed for %r: %s", name, query, outcome)
                merged[name] = []
            else:
                merged[name] = outcome
        return merged


def parse_duckduckgo_images(html: str, query: str) -> List[ImageResult]:
    soup = BeautifulSoup(html, "html.parser")
    images = [tag for tag in soup.select(".tile--img__img") if tag.get("src")]
    tiles = [tag for tag in soup.select(".tile--img") if tag.get("data-id")]
    results: List[ImageResult] = []
    for image_tag, tile in zip(images, tiles):
        if len(results) >= MAX_IMAGE_RESULTS:
            break
        image_url = absolutize(image_tag["src"])
        results.append(
            ImageResult(
                title=image_tag.get("alt") or f"Image of {query}",
                url=f"https://duckduckgo.com/i.js?q={quote(query)}&vqd={tile['data-id']}",
                image=image_url,
                thumbnail=image_url,
                source="DuckDuckGo",
            )
        )
    return results


def map_unsplash_results(items: Sequence[Dict[str, Any]], query: str) -> List[ImageResult]:
    results: List[ImageResult] = []
    for item in items:
        urls = item.get("urls") or {}
        links = item.get("links") or {}
        if not urls.get("regular") or not links.get("html"):
            continue
        results.append(
            ImageResult(
                title=item.get("description") or item.get("alt_description") or f"Image of {query}",
                url=links["html"],
                image=urls["regular"],
                thumbnail=urls.get("small") or urls.get("thumb"),
                source=(item.get("user") or {}).get("name") or "Unsplash",
                width=item.get("width"),
                height=item.get("height"),
            )
        )
        if len(results) >= MAX_IMAGE_RESULTS:
            break
    return results


def map_pexels_results(photos: Sequence[Dict[str, Any]], query: str) -> List[ImageResult]:
    results: List[ImageResult] = []
    for photo in photos:
        src = photo.get("src") or {}
        if not src.get("large") or not photo.get("url"):
            continue
        results.append(
            ImageResult(
                title=photo.get("alt") or f"Photo of {query}",
                url=photo["url"],
                image=src["large"],
                thumbnail=src.get("medium"),
                source=photo.get("photographer") or "Pexels",
                width=photo.get("width"),
                height=photo.get("height"),
            )
        )
        if len(results) >= MAX_IMAGE_RESULTS:
            break
    return results


def parse_google_images(html: str, query: str) -> List[ImageResult]:
    image_urls = _GOOGLE_IMAGE_URL.findall(html)
    titles = _GOOGLE_IMAGE_TITLE.findall(html)
    page_url = f"https://www.google.com/search?q={quote(query)}&tbm=isch"
    results: List[ImageResult] = []
    for raw_url, raw_title in list(zip(image_urls, titles))[:MAX_IMAGE_RESULTS]:
        image_url = unquote(raw_url)
        results.append(
            ImageResult(
                title=unquote(raw_title) or f"Image of {query}",
                url=page_url,
                image=image_url,
                thumbnail=image_url,
                source="Google Images",
            )
        )
    return results


def placeholder_images(query: str) -> List[ImageResult]:
    """Deterministic Lorem Picsum images seeded from the query."""

    seed = hash_string(query)
    results = []
    for offset in range(MAX_IMAGE_RESULTS):
        image_id = (seed + offset) % 1000
        results.append(
            ImageResult(
                title=f"Image of {query}",
                url=f"https://picsum.photos/id/{image_id}/info",
                image=f"https://picsum.photos/800/600?image={image_id}",
                thumbnail=f"https://picsum.photos/200/150?image={image_id}",
                source="Lorem Picsum",
                width=800,
                height=600,
            )
        )
    return results


def _iter_video_renderers(node: Any) -> Iterator[Dict[str, Any]]:
    if isinstance(node, dict):
        renderer = node.get("videoRenderer")
        if isinstance(renderer, dict):
            yield renderer
        for value in node.values():
            yield from _iter_video_renderers(value)
    elif isinstance(node, list):
        for value in node:
            yield from _iter_video_renderers(value)


def _first_run(field: Any) -> Optional[str]:
    if not isinstance(field, dict):
        return None
    runs = field.get("runs") or []
    if runs and isinstance(runs[0], dict):
        return runs[0].get("text")
    return field.get("simpleText")


def _youtube_video(video_id: str, title: str, **extra: Any) -> VideoResult:
    return VideoResult(
        title=title,
        url=f"https://www.youtube.com/watch?v={video_id}",
        thumbnail=f"https://img.youtube.com/vi/{video_id}/hqdefault.jpg",
        source="YouTube",
        **extra,
    )


def parse_youtube_results(html: str) -> List[VideoResult]:
    """Videos from a YouTube results page: ytInitialData first, then loose regex pairs."""

    results: List[VideoResult] = []
    seen: set[str] = set()

    match = _YT_INITIAL_DATA.search(html)
    if match:
        try:
            data = json.loads(match.group(1))
        except ValueError:
            data = None
        for renderer in _iter_video_renderers(data):
            if len(results) >= MAX_VIDEO_RESULTS:
                break
            video_id = renderer.get("videoId")
            title = _first_run(renderer.get("title"))
            if not video_id or not title or video_id in seen:
                continue
            seen.add(video_id)
            channel = cleanup_text(_first_run(renderer.get("ownerText"))) or "YouTube"
            duration = (
                ((renderer.get("lengthText") or {}).get("accessibility") or {}).get("accessibilityData") or {}
            ).get("label")
            views = (renderer.get("viewCountText") or {}).get("simpleText")
            results.append(
                _youtube_video(
                    video_id,
                    cleanup_text(decode_entities(title)),
                    duration=duration,
                    description=f"{channel} • {views}" if views else channel,
                )
            )

    if len(results) < MAX_VIDEO_RESULTS:
        pairs = zip(_YT_VIDEO_ID.findall(html), _YT_TITLE.findall(html))
        for video_id, title in pairs:
            if len(results) >= MAX_VIDEO_RESULTS:
                break
            if video_id in seen:
                continue
            seen.add(video_id)
            results.append(_youtube_video(video_id, cleanup_text(title)))
    return results


def parse_duckduckgo_videos(html: str) -> List[VideoResult]:
    soup = BeautifulSoup(html, "html.parser")
    results: List[VideoResult] = []
    for tile in soup.select(".tile--vid"):
        if len(results) >= MAX_VIDEO_RESULTS:
            break
        title_tag = tile.select_one(".tile__title")
        link = tile.find("a", href=True)
        if not title_tag or not link:
            continue
        thumb = tile.find("img", src=True)
        source_tag = tile.select_one(".tile__domain")
        duration_tag = tile.select_one(".tile__duration")
        results.append(
            VideoResult(
                title=strip_tags(title_tag.decode_contents()),
                url=resolve_duckduckgo_url(link["href"]),
                thumbnail=absolutize(thumb["src"]) if thumb else None,
                source=strip_tags(source_tag.decode_contents()) if source_tag else "Video",
                duration=strip_tags(duration_tag.decode_contents()) if duration_tag else None,
            )
        )
    return results


def _child_text(item: ElementTree.Element, tag: str) -> str:
    child = item.find(tag)
    if child is None or child.text is None:
        return ""
    return child.text


def parse_news_rss(xml: str) -> List[NewsResult]:
    root = ElementTree.fromstring(xml)
    results: List[NewsResult] = []
    for item in root.iter("item"):
        title = cleanup_text(strip_cdata(_child_text(item, "title")))
        url = cleanup_text(_child_text(item, "link"))
        if not title or not url:
            continue
        description = strip_tags(strip_cdata(_child_text(item, "description")))
        source = cleanup_text(_child_text(item, "source"))
        pub_date = cleanup_text(_child_text(item, "pubDate"))
        results.append(
            NewsResult(
                title=title,
                url=url,
                snippet=description[:NEWS_SNIPPET_CHARS] or None,
                source=source or "Google News",
                date=pub_date or None,
            )
        )
        if len(results) >= MAX_NEWS_RESULTS:
            break
    return results


def parse_duckduckgo_news(html: str) -> List[NewsResult]:
    soup = BeautifulSoup(html, "html.parser")
    results: List[NewsResult] = []
    for block in soup.select(".result--news"):
        title_tag = block.select_one(".result__title")
        link = block.find("a", href=True)
        title = strip_tags(title_tag.decode_contents()) if title_tag else ""
        url = resolve_duckduckgo_url(link["href"]) if link else ""
        if not title or not url:
            continue
        snippet_tag = block.select_one(".result__snippet")
        source_tag = block.select_one(".result__source")
        results.append(
            NewsResult(
                title=title,
                url=url,
                snippet=strip_tags(snippet_tag.decode_contents()) if snippet_tag else None,
                source=strip_tags(source_tag.decode_contents()) if source_tag else None,
            )
        )
        if len(results) >= MAX_NEWS_RESULTS:
            break
    return results

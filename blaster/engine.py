from __future__ import annotations

import asyncio
import logging
import random
import time
from collections import Counter
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Sequence

import httpx

from .config import Settings, is_configured
from .errors import SearchAPIError, describe_query_failure, describe_status
from .models import EngineResult, SearchResponse, utc_now
from .text import extract_domain


logger = logging.getLogger(__name__)

MAX_RESULTS_PER_SEARCH = 20
MAX_CONCURRENT_SEARCHES = 5

MOCK_CATEGORIES = ["Technology", "Science", "Business", "Health", "Education", "Entertainment"]
MOCK_SOURCES = [
    "Wikipedia",
    "TechCrunch",
    "Medium",
    "GitHub",
    "Stack Overflow",
    "MDN Web Docs",
    "W3Schools",
    "CSS-Tricks",
]

CATEGORY_KEYWORDS = {
    "technology": ["tech", "software", "programming", "computer", "ai", "artificial intelligence", "machine learning"],
    "science": ["science", "research", "study", "experiment", "discovery"],
    "business": ["business", "finance", "market", "economy", "company", "startup"],
    "health": ["health", "medical", "medicine", "hospital", "doctor", "patient"],
    "entertainment": ["entertainment", "movie", "music", "tv", "celebrity", "game"],
    "sports": ["sports", "game", "team", "player", "tournament"],
    "politics": ["politics", "government", "election", "president", "congress"],
}


def detect_category(text: str) -> str:
    lower = text.lower()
    for category, keywords in CATEGORY_KEYWORDS.items():
        if any(keyword in lower for keyword in keywords):
            return category.title()
    return "General"


def select_provider(settings: Settings) -> str:
    if is_configured(settings.search_api_key) and settings.search_engine_id:
        return "google"
    if is_configured(settings.serpapi_key):
        return "serpapi"
    if is_configured(settings.bing_api_key):
        return "bing"
    if is_configured(settings.news_api_key):
        return "newsapi"
    return "mock"


def generate_mock_results(query: str, max_results: int = MAX_RESULTS_PER_SEARCH, rng: random.Random | None = None) -> List[EngineResult]:
    rng = rng or random.Random()
    slug_id = "_".join(query.split())
    slug_url = "-".join(query.split())
    stamp = int(time.time() * 1000)
    now = datetime.now(timezone.utc)
    results = []
    for index in range(1, max_results + 1):
        category = rng.choice(MOCK_CATEGORIES)
        published = now - timedelta(days=rng.randrange(30))
        results.append(
            EngineResult(
                id=f"mock_{slug_id}_{index}_{stamp}",
                title=f"{query} - {category} Article {index}",
                url=f"https://example.com/{slug_url}-article-{index}",
                description=(
                    f"This article discusses {query} in the context of {category.lower()}. "
                    f"Learn more about how {query} impacts modern {category.lower()} practices."
                ),
                content=(
                    f"Full content about {query} and its applications in {category.lower()}. "
                    f"This comprehensive guide covers everything you need to know about {query} "
                    "including best practices, examples, and real-world applications."
                ),
                source=rng.choice(MOCK_SOURCES),
                published_at=published.isoformat().replace("+00:00", "Z"),
                relevance_score=rng.random() * 0.5 + 0.5,
                category=category,
                language="en",
                word_count=rng.randrange(500, 1000),
                author=f"Author {index}",
            )
        )
    return sorted(results, key=lambda result: result.relevance_score, reverse=True)


def top_sources(results: Sequence[EngineResult], limit: int = 3) -> List[str]:
    counts = Counter(result.source for result in results)
    return [source for source, _count in counts.most_common(limit)]


def result_categories(results: Sequence[EngineResult]) -> List[str]:
    seen: Dict[str, None] = {}
    for result in results:
        if result.category:
            seen.setdefault(result.category, None)
    return list(seen)


def average_relevance(results: Sequence[EngineResult]) -> float:
    if not results:
        return 0.0
    return sum(result.relevance_score for result in results) / len(results)


class WebSearchEngine:
    """Keyed web search with a mock fallback, bounded multi-query fan-out."""

    def __init__(self, settings: Settings, transport: httpx.AsyncBaseTransport | None = None):
        self.settings = settings
        self.transport = transport
        self.provider = select_provider(settings)
        if self.provider == "mock":
            logger.info("No valid search API credentials found. Running in mock mode.")
        else:
            logger.info("Web search engine using %s provider", self.provider)

    async def search_web(self, query: str, max_results: int = MAX_RESULTS_PER_SEARCH) -> List[EngineResult]:
        handlers = {
            "google": self._search_google,
            "serpapi": self._search_serpapi,
            "bing": self._search_bing,
            "newsapi": self._search_newsapi,
        }
        handler = handlers.get(self.provider)
        if handler is None:
            return generate_mock_results(query, max_results)
        try:
            return await handler(query, max_results)
        except httpx.HTTPStatusError as exc:
            message = describe_status("Search API", exc.response.status_code)
            if message:
                raise SearchAPIError(message, exc.response.status_code) from exc
            logger.warning("Search API error for %r, falling back to mock data: %s", query, exc)
        except Exception as exc:
            logger.warning("Search request failed for %r, falling back to mock data: %s", query, exc)
        return generate_mock_results(query, max_results)

    async def search_multiple_queries(self, queries: Sequence[str]) -> List[SearchResponse]:
        limited = list(queries)[:MAX_CONCURRENT_SEARCHES]
        return list(await asyncio.gather(*(self._search_one(query) for query in limited)))

    async def _search_one(self, query: str) -> SearchResponse:
        try:
            results = await self.search_web(query)
        except Exception as exc:
            logger.error("Error searching query %r: %s", query, exc)
            return SearchResponse(query=query, results=[], summary=describe_query_failure(query, exc, "search"))
        return SearchResponse(query=query, results=results, summary=self.generate_summary(results, query))

    def generate_summary(self, results: Sequence[EngineResult], query: str) -> str:
        if not results:
            return f'No results found for query: "{query}"'
        provider_info = f"(using {self.provider} API)" if self.provider != "mock" else "(using mock data)"
        return (
            f'Found {len(results)} results for "{query}" {provider_info}. '
            f"Top sources: {', '.join(top_sources(results))}. "
            f"Categories: {', '.join(result_categories(results))}. "
            f"Average relevance: {average_relevance(results) * 100:.1f}%."
        )

    async def _get(self, url: str, params: Dict[str, Any], headers: Dict[str, str] | None = None) -> Dict[str, Any]:
        async with httpx.AsyncClient(timeout=self.settings.request_timeout, transport=self.transport) as client:
            resp = await client.get(url, params=params, headers=headers)
            resp.raise_for_status()
            return resp.json()

    def _build(
        self,
        prefix: str,
        index: int,
        title: str,
        url: str,
        snippet: str | None,
        result_id: str | None = None,
        **extra: Any,
    ) -> EngineResult:
        snippet = snippet or ""
        fields: Dict[str, Any] = {
            "source": extract_domain(url),
            "published_at": utc_now(),
            "word_count": len(snippet),
        }
        fields.update(extra)
        return EngineResult(
            id=result_id or f"{prefix}_{index}_{int(time.time() * 1000)}",
            title=title,
            url=url,
            description=snippet,
            content=snippet,
            relevance_score=0.8 + random.random() * 0.2,
            category=detect_category(f"{title} {snippet}"),
            language="en",
            **fields,
        )

    async def _search_google(self, query: str, max_results: int) -> List[EngineResult]:
        data = await self._get(
            "https://www.googleapis.com/customsearch/v1",
            params={
                "key": self.settings.search_api_key,
                "cx": self.settings.search_engine_id,
                "q": query,
                "num": min(max_results, 10),
            },
        )
        return [
            self._build("google", index, item["title"], item["link"], item.get("snippet"), item.get("cacheId"))
            for index, item in enumerate(data.get("items") or [])
        ]

    async def _search_bing(self, query: str, max_results: int) -> List[EngineResult]:
        data = await self._get(
            "https://api.bing.microsoft.com/v7.0/search",
            params={"q": query, "count": min(max_results, 50), "mkt": "en-US"},
            headers={"Ocp-Apim-Subscription-Key": self.settings.bing_api_key or ""},
        )
        values = (data.get("webPages") or {}).get("value") or []
        return [
            self._build("bing", index, item["name"], item["url"], item.get("snippet"))
            for index, item in enumerate(values)
        ]

    async def _search_serpapi(self, query: str, max_results: int) -> List[EngineResult]:
        data = await self._get(
            "https://serpapi.com/search",
            params={"api_key": self.settings.serpapi_key, "q": query, "num": max_results, "engine": "google"},
        )
        organic = (data.get("organic_results") or [])[:max_results]
        return [
            self._build("serpapi", index, item["title"], item["link"], item.get("snippet"))
            for index, item in enumerate(organic)
        ]

    async def _search_newsapi(self, query: str, max_results: int) -> List[EngineResult]:
        data = await self._get(
            "https://newsapi.org/v2/everything",
            params={
                "apiKey": self.settings.news_api_key,
                "q": query,
                "pageSize": max_results,
                "language": "en",
                "sortBy": "relevancy",
            },
        )
        results = []
        for index, article in enumerate(data.get("articles") or []):
            description = article.get("description") or ""
            content = article.get("content") or description
            result = self._build(
                "newsapi",
                index,
                article.get("title") or "Untitled",
                article["url"],
                description,
                source=(article.get("source") or {}).get("name") or extract_domain(article["url"]),
                published_at=article.get("publishedAt") or utc_now(),
                word_count=len(content),
                author=article.get("author"),
            )
            result.content = content
            results.append(result)
        return results


def search_response(query: str, results: List[EngineResult]) -> SearchResponse:
    """Single-query response with the short summary line used by GET /api/crawl."""

    return SearchResponse(query=query, results=results, summary=f"Found {len(results)} results for: {query}", searched_at=utc_now())

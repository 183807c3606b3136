from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Optional, Sequence

import httpx
from bs4 import BeautifulSoup
from openai import AsyncOpenAI

from .config import Settings
from .errors import LLMError, SearchProviderError
from .models import CrawledPage, WebResult, utc_now
from .text import cleanup_text, resolve_duckduckgo_url, strip_html, strip_tags


logger = logging.getLogger(__name__)

INSTANT_ANSWER_ENDPOINT = "https://api.duckduckgo.com/"
HTML_ENDPOINT = "https://duckduckgo.com/html/"
READER_PREFIX = "https://r.jina.ai/http://"

MAX_RESULTS = 6
MAX_PAGES = 3
MAX_CONTENT_CHARS = 6000
SNIPPET_FALLBACK_CHARS = 160

SYSTEM_PROMPT = "You are a web research assistant. Answer based only on the provided sources."

PROMPT_RULES = (
    "Be neutral and generalized; avoid over-relying on any single source.",
    "Prefer primary/official sources when possible and note uncertainty.",
    "Use the sources to answer with the most recent information available.",
    "If you find dates, mention them explicitly.",
    "If sources disagree or no recent date is found, say so clearly.",
    "Cite sources inline using [1], [2], etc.",
    "End the answer with a 'Sources:' section listing each source as:",
    "[1] Title — URL",
    "Keep it concise and easy to scan.",
)

NO_RESULTS_ANSWER = "No results found. Try a different search."
NO_PAGES_ANSWER = "Results were found, but the crawler could not read any pages."


def normalize_result(title: Optional[str], url: Optional[str], snippet: Optional[str] = None) -> Optional[WebResult]:
    if not title or not url:
        return None
    cleaned_snippet = cleanup_text(snippet) if snippet else None
    return WebResult(title=cleanup_text(title), url=url, snippet=cleaned_snippet or None)


def flatten_topics(topics: Sequence[Dict[str, Any]], results: List[WebResult]) -> None:
    """Append RelatedTopics entries, descending into grouped Topics."""

    for item in topics:
        if not isinstance(item, dict):
            continue
        if item.get("Topics"):
            flatten_topics(item["Topics"], results)
            continue
        entry = normalize_result(item.get("Text"), item.get("FirstURL"))
        if entry:
            results.append(entry)


def parse_instant_answer(payload: Dict[str, Any]) -> List[WebResult]:
    results: List[WebResult] = []
    if payload.get("AbstractURL") and payload.get("Heading"):
        entry = normalize_result(payload["Heading"], payload["AbstractURL"], payload.get("AbstractText"))
        if entry:
            results.append(entry)
    for item in payload.get("Results") or []:
        entry = normalize_result(item.get("Text"), item.get("FirstURL"))
        if entry:
            results.append(entry)
    related = payload.get("RelatedTopics")
    if isinstance(related, list):
        flatten_topics(related, results)
    return results


def parse_duckduckgo_html(html: str) -> List[WebResult]:
    """Pull result links and snippets out of the duckduckgo.com/html page."""

    soup = BeautifulSoup(html, "html.parser")
    results: List[WebResult] = []
    for anchor in soup.select("a.result__a"):
        href = anchor.get("href")
        if not href:
            continue
        container = anchor.find_parent(class_="result")
        snippet_tag = container.select_one(".result__snippet") if container else None
        snippet = strip_tags(snippet_tag.decode_contents()) if snippet_tag else None
        entry = normalize_result(strip_tags(anchor.decode_contents()), resolve_duckduckgo_url(href), snippet)
        if entry:
            results.append(entry)
    return results


def dedupe_by_url(items: Sequence[Any]) -> List[Any]:
    seen: Dict[str, Any] = {}
    for item in items:
        if item.url not in seen:
            seen[item.url] = item
    return list(seen.values())


def to_reader_url(target_url: str) -> str:
    normalized = target_url if target_url.startswith("http") else f"https://{target_url}"
    for scheme in ("https://", "http://"):
        if normalized.startswith(scheme):
            normalized = normalized[len(scheme):]
            break
    return f"{READER_PREFIX}{normalized}"


def build_prompt(query: str, pages: Sequence[CrawledPage]) -> str:
    source_blocks = "\n\n".join(
        "\n".join(
            [
                f"Source {index}:",
                f"Title: {page.title}",
                f"URL: {page.url}",
                f"Content: {page.content}",
            ]
        )
        for index, page in enumerate(pages, start=1)
    )
    return "\n".join([f"Question: {query}", *PROMPT_RULES, "", source_blocks])


def summarize_without_llm(query: str, pages: Sequence[CrawledPage]) -> str:
    lines = []
    for index, page in enumerate(pages, start=1):
        text = page.snippet or page.content[:SNIPPET_FALLBACK_CHARS]
        lines.append(f"{index}. {page.title} — {text}")
    snippets = "\n".join(lines)
    return f'No LLM key configured. Here are raw snippets for "{query}":\n{snippets}'


class WebSearchClient:
    def __init__(self, settings: Settings, transport: httpx.AsyncBaseTransport | None = None):
        self.settings = settings
        self.transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.settings.request_timeout,
            headers={"User-Agent": self.settings.user_agent},
            follow_redirects=True,
            transport=self.transport,
        )

    async def search(self, query: str) -> List[WebResult]:
        results: List[WebResult] = []
        async with self._client() as client:
            try:
                results.extend(await self._search_instant_answer(client, query))
            except Exception as exc:
                logger.warning("DuckDuckGo instant answer failed for %r: %s", query, exc)
            if not results:
                results.extend(await self._search_html(client, query))
        return dedupe_by_url(results)[:MAX_RESULTS]

    async def _search_instant_answer(self, client: httpx.AsyncClient, query: str) -> List[WebResult]:
        params = {"q": query, "format": "json", "no_redirect": "1", "no_html": "1", "t": "blaster"}
        resp = await client.get(INSTANT_ANSWER_ENDPOINT, params=params)
        resp.raise_for_status()
        payload = resp.json()
        if not isinstance(payload, dict):
            return []
        return parse_instant_answer(payload)

    async def _search_html(self, client: httpx.AsyncClient, query: str) -> List[WebResult]:
        try:
            resp = await client.get(HTML_ENDPOINT, params={"q": query})
            resp.raise_for_status()
        except httpx.HTTPError as exc:
            raise SearchProviderError("Search provider error") from exc
        return parse_duckduckgo_html(resp.text)


class PageCrawler:
    def __init__(self, settings: Settings, transport: httpx.AsyncBaseTransport | None = None):
        self.settings = settings
        self.transport = transport

    async def crawl(self, results: Sequence[WebResult]) -> List[CrawledPage]:
        targets = list(results)[:MAX_PAGES]
        async with httpx.AsyncClient(
            timeout=self.settings.request_timeout,
            headers={"User-Agent": self.settings.user_agent},
            follow_redirects=True,
            transport=self.transport,
        ) as client:
            tasks = [self._crawl_single(client, result) for result in targets]
            pages = await asyncio.gather(*tasks, return_exceptions=True)
        crawled: List[CrawledPage] = []
        for result, page in zip(targets, pages):
            if isinstance(page, Exception):
                logger.debug("Skipping %s due to error: %s", result.url, page)
                continue
            if page.content:
                crawled.append(page)
        return crawled

    async def _crawl_single(self, client: httpx.AsyncClient, result: WebResult) -> CrawledPage:
        text = await self.fetch_readable_text(client, result.url)
        return CrawledPage(
            title=result.title,
            url=result.url,
            snippet=result.snippet,
            content=text[:MAX_CONTENT_CHARS],
        )

    async def fetch_readable_text(self, client: httpx.AsyncClient, url: str) -> str:
        try:
            resp = await client.get(to_reader_url(url))
            resp.raise_for_status()
            return cleanup_text(resp.text)
        except httpx.HTTPError as exc:
            logger.debug("Reader failed for %s, fetching directly: %s", url, exc)
        resp = await client.get(url)
        resp.raise_for_status()
        return strip_html(resp.text)


class ResearchPipeline:
    def __init__(self, settings: Settings, transport: httpx.AsyncBaseTransport | None = None):
        self.settings = settings
        self.search_client = WebSearchClient(settings, transport)
        self.crawler = PageCrawler(settings, transport)
        if not self.settings.llm_enabled:
            logger.warning("DEEPSEEK_API_KEY is not configured. Answers will list raw snippets.")
        self.llm = (
            AsyncOpenAI(api_key=self.settings.deepseek_api_key, base_url=self.settings.deepseek_base_url)
            if self.settings.llm_enabled
            else None
        )

    async def run(self, query: str) -> Dict[str, Any]:
        results = await self.search_client.search(query)
        if not results:
            return self._response(query, NO_RESULTS_ANSWER, [])

        pages = await self.crawler.crawl(results)
        if not pages:
            return self._response(query, NO_PAGES_ANSWER, [])

        answer = await self.synthesize(query, pages)
        return self._response(query, answer, pages)

    async def synthesize(self, query: str, pages: Sequence[CrawledPage]) -> str:
        if not self.llm:
            return summarize_without_llm(query, pages)
        try:
            response = await self.llm.chat.completions.create(
                model=self.settings.deepseek_model,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": build_prompt(query, pages)},
                ],
                temperature=0.2,
                max_tokens=500,
            )
        except Exception as exc:
            raise LLMError("LLM request failed") from exc
        answer = ""
        if response.choices:
            answer = (response.choices[0].message.content or "").strip()
        if not answer:
            raise LLMError("LLM response empty")
        logger.info("LLM answered %r with %d chars", query, len(answer))
        return answer

    @staticmethod
    def _response(query: str, answer: str, pages: Sequence[CrawledPage]) -> Dict[str, Any]:
        sources = []
        for page in pages:
            source = {"title": page.title, "url": page.url}
            if page.snippet:
                source["snippet"] = page.snippet
            sources.append(source)
        return {"query": query, "answer": answer, "sources": sources, "fetchedAt": utc_now()}

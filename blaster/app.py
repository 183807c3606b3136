from __future__ import annotations

import logging
import time
from typing import Any, List, Literal, Optional

from fastapi import FastAPI, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel

from . import __version__
from .config import get_settings
from .engine import WebSearchEngine, search_response
from .export import EXPORT_FORMATS, export_filename, render_export
from .models import to_payload, utc_now
from .research import ResearchPipeline
from .search import CATEGORIES, CategorySearch
from .twitter import get_crawler


logger = logging.getLogger(__name__)
logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(message)s")

settings = get_settings()
research = ResearchPipeline(settings)
category_search = CategorySearch(settings)
engine = WebSearchEngine(settings)
crawler = get_crawler(settings)

app = FastAPI(title="Blaster Search API", version=__version__)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


class AskRequest(BaseModel):
    query: Optional[Any] = None


class QueriesRequest(BaseModel):
    query: Optional[Any] = None
    queries: Optional[List[Any]] = None

    def normalized(self) -> tuple[str, List[str]]:
        query = self.query.strip() if isinstance(self.query, str) else ""
        queries = [str(item).strip() for item in self.queries or []]
        return query, [item for item in queries if item]


class ExportRequest(QueriesRequest):
    format: Literal["csv", "json", "summary-csv", "analytics-json"] = "csv"


def _error(message: str, status_code: int, **extra: Any) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={**extra, "error": message})


@app.get("/healthz")
async def healthcheck():
    return {
        "status": "ok",
        "llm": settings.llm_enabled,
        "twitter": settings.twitter_enabled,
        "provider": engine.provider,
    }


@app.post("/api/search")
async def ask(payload: AskRequest):
    query = payload.query.strip() if isinstance(payload.query, str) else ""
    if not query:
        return _error("Query is required.", 400)
    try:
        return await research.run(query)
    except Exception as exc:
        logger.exception("Search failed: %s", exc)
        return _error(str(exc) or "Search failed.", 500)


@app.get("/api/search")
async def search_categories(
    q: str = Query("", description="Search terms"),
    category: Literal["all", "web", "images", "videos", "news"] = "all",
):
    query = q.strip()
    if not query:
        return _error("Query is required.", 400)
    wanted = CATEGORIES if category == "all" else (category,)
    results = await category_search.search_all(query, wanted)
    categories = {name: to_payload(items) for name, items in results.items()}
    return {"query": query, **categories, "searchedAt": utc_now()}


@app.post("/api/crawl")
async def crawl(payload: QueriesRequest):
    query, queries = payload.normalized()
    if not query and not queries:
        return _error("Search query is required.", 400)
    try:
        if queries:
            responses = await engine.search_multiple_queries(queries)
        else:
            responses = [search_response(query, await engine.search_web(query))]
    except Exception as exc:
        logger.error("Web search error: %s", exc)
        return _error(str(exc) or "Search failed.", 500, success=False, results=[])
    return {
        "success": True,
        "results": to_payload(responses),
        "totalSearches": len(responses),
        "searchedAt": utc_now(),
    }


@app.get("/api/crawl")
async def crawl_one(query: Optional[str] = None):
    if not query:
        return _error("Search query parameter is required.", 400)
    try:
        results = await engine.search_web(query)
    except Exception as exc:
        logger.error("Web search error: %s", exc)
        return _error(str(exc) or "Search failed.", 500, success=False, results=[])
    return {
        "success": True,
        "results": to_payload([search_response(query, results)]),
        "totalSearches": 1,
        "searchedAt": utc_now(),
    }


async def _crawl_tweets(query: str, queries: List[str]):
    return await crawler.crawl_multiple_queries(queries or [query])


@app.post("/api/tweets")
async def crawl_tweets(payload: QueriesRequest):
    query, queries = payload.normalized()
    if not query and not queries:
        return _error("Search query is required.", 400)
    try:
        responses = await _crawl_tweets(query, queries)
    except Exception as exc:
        logger.exception("Tweet crawl failed: %s", exc)
        return _error(str(exc) or "Crawl failed.", 500, success=False, results=[])
    return {
        "success": True,
        "results": to_payload(responses),
        "totalCrawls": len(responses),
        "crawledAt": utc_now(),
    }


@app.post("/api/tweets/export")
async def export_tweets(payload: ExportRequest):
    query, queries = payload.normalized()
    if not query and not queries:
        return _error("Search query is required.", 400)
    responses = await _crawl_tweets(query, queries)
    media_type, _extension = EXPORT_FORMATS[payload.format]
    content = render_export(payload.format, responses)
    filename = export_filename(payload.format, query or queries[0], int(time.time() * 1000))
    return Response(
        content=content,
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )

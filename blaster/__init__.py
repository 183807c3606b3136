"""
Blaster search service.

Contains the FastAPI application plus the provider adapters behind it:
web/image/video/news search, page crawling with LLM answer synthesis,
and the Twitter crawler with its CSV/JSON exports.
"""

__version__ = "0.1.0"

from __future__ import annotations

import os
from functools import lru_cache

from dotenv import load_dotenv
from pydantic import BaseModel, Field


def _env(name: str) -> str | None:
    value = os.getenv(name)
    if value is None:
        return None
    value = value.strip()
    return value or None


def is_configured(value: str | None) -> bool:
    """True when a credential is set and is not a template placeholder."""

    return bool(value) and "your_" not in value.lower()


class Settings(BaseModel):
    """Runtime configuration loaded from environment variables."""

    deepseek_api_key: str | None = Field(default=None, repr=False)
    deepseek_base_url: str = "https://api.deepseek.com"
    deepseek_model: str = "deepseek-chat"

    # engine providers, checked in this order
    search_api_key: str | None = Field(default=None, repr=False)
    search_engine_id: str | None = None
    serpapi_key: str | None = Field(default=None, repr=False)
    bing_api_key: str | None = Field(default=None, repr=False)
    news_api_key: str | None = Field(default=None, repr=False)

    pexels_api_key: str | None = Field(default=None, repr=False)
    unsplash_access_key: str | None = Field(default=None, repr=False)
    twitter_bearer_token: str | None = Field(default=None, repr=False)

    request_timeout: float = 8.0
    user_agent: str = "blaster/1.0"

    class Config:
        extra = "ignore"

    @property
    def llm_enabled(self) -> bool:
        return is_configured(self.deepseek_api_key)

    @property
    def twitter_enabled(self) -> bool:
        return is_configured(self.twitter_bearer_token)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load .env + environment variables and return Settings singleton."""

    load_dotenv()
    values = {
        "deepseek_api_key": _env("DEEPSEEK_API_KEY"),
        "deepseek_base_url": _env("DEEPSEEK_BASE_URL"),
        "deepseek_model": _env("DEEPSEEK_MODEL"),
        "search_api_key": _env("SEARCH_API_KEY"),
        "search_engine_id": _env("SEARCH_ENGINE_ID"),
        "serpapi_key": _env("SERPAPI_KEY"),
        "bing_api_key": _env("BING_API_KEY"),
        "news_api_key": _env("NEWS_API_KEY"),
        "pexels_api_key": _env("PEXELS_API_KEY"),
        "unsplash_access_key": _env("UNSPLASH_ACCESS_KEY"),
        "twitter_bearer_token": _env("TWITTER_BEARER_TOKEN"),
        "request_timeout": _env("REQUEST_TIMEOUT"),
    }
    return Settings(**{key: value for key, value in values.items() if value is not None})

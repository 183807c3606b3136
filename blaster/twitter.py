from __future__ import annotations

import asyncio
import logging
import re
from collections import Counter
from typing import Any, Dict, List, Sequence

import httpx

from .config import Settings, is_configured
from .errors import ConfigurationError, TwitterAPIError, describe_query_failure, describe_status
from .models import CrawlResponse, Tweet, TweetAuthor, TweetMedia, utc_now


logger = logging.getLogger(__name__)

API_BASE = "https://api.twitter.com/2"
MAX_TWEETS_PER_CRAWL = 20
MAX_CONCURRENT_CRAWLS = 5

TWEET_FIELDS = "created_at,public_metrics,author_id,referenced_tweets,entities,attachments"
USER_FIELDS = "name,username,profile_image_url"
MEDIA_FIELDS = "type,url,preview_image_url"

POSITIVE_WORDS = (
    "good",
    "great",
    "excellent",
    "amazing",
    "love",
    "happy",
    "positive",
    "excited",
    "incredible",
    "brighter",
    "game-changer",
    "fascinating",
)
NEGATIVE_WORDS = ("bad", "terrible", "awful", "hate", "sad", "negative", "worst", "break")
STOP_WORDS = frozenset(
    ["the", "and", "for", "you", "this", "that", "with", "have", "are", "was",
     "just", "new", "our", "how", "makes", "much", "like"]
)
_NON_WORD = re.compile(r"[^\w\s]")


def top_authors(tweets: Sequence[Tweet], limit: int = 3) -> List[str]:
    counts = Counter(tweet.author.username for tweet in tweets)
    return [f"@{username}" for username, _count in counts.most_common(limit)]


def analyze_sentiment(tweets: Sequence[Tweet]) -> str:
    """Word-list sentiment: each listed word present in a tweet counts once."""

    positive = 0
    negative = 0
    for tweet in tweets:
        text = tweet.text.lower()
        positive += sum(1 for word in POSITIVE_WORDS if word in text)
        negative += sum(1 for word in NEGATIVE_WORDS if word in text)

    if positive > negative * 2:
        return "Positive"
    if negative > positive * 2:
        return "Negative"
    if positive > negative:
        return "Mostly Positive"
    if negative > positive:
        return "Mostly Negative"
    return "Neutral"


def extract_key_topics(tweets: Sequence[Tweet], limit: int = 5) -> List[str]:
    counts: Counter[str] = Counter()
    for tweet in tweets:
        words = _NON_WORD.sub(" ", tweet.text.lower()).split()
        counts.update(word for word in words if len(word) > 3 and word not in STOP_WORDS)
    return [word[:1].upper() + word[1:] for word, _count in counts.most_common(limit)]


def generate_summary(tweets: Sequence[Tweet], query: str) -> str:
    if not tweets:
        return f'No tweets found for query: "{query}"'
    return (
        f'Found {len(tweets)} tweets for "{query}". '
        f"Top contributors: {', '.join(top_authors(tweets))}. "
        f"Overall sentiment: {analyze_sentiment(tweets)}. "
        f"Key topics discussed: {', '.join(extract_key_topics(tweets))}."
    )


class BaseCrawler:
    """Shared multi-query fan-out; subclasses provide search_tweets."""

    async def search_tweets(self, query: str, max_results: int = MAX_TWEETS_PER_CRAWL) -> List[Tweet]:
        raise NotImplementedError

    async def get_user_tweets(self, username: str, max_results: int = 10) -> List[Tweet]:
        raise NotImplementedError

    async def crawl_multiple_queries(self, queries: Sequence[str]) -> List[CrawlResponse]:
        limited = list(queries)[:MAX_CONCURRENT_CRAWLS]
        return list(await asyncio.gather(*(self._crawl_one(query) for query in limited)))

    async def _crawl_one(self, query: str) -> CrawlResponse:
        try:
            tweets = await self.search_tweets(query)
        except Exception as exc:
            logger.error("Error crawling query %r: %s", query, exc)
            return CrawlResponse(query=query, tweets=[], summary=describe_query_failure(query, exc, "crawl tweets"))
        return CrawlResponse(query=query, tweets=tweets, summary=generate_summary(tweets, query))


class TwitterCrawler(BaseCrawler):
    """Recent-search crawler backed by the Twitter API v2."""

    def __init__(self, bearer_token: str | None, timeout: float = 8.0, transport: httpx.AsyncBaseTransport | None = None):
        if not is_configured(bearer_token):
            raise ConfigurationError("TWITTER_BEARER_TOKEN is not properly configured")
        self.bearer_token = bearer_token
        self.timeout = timeout
        self.transport = transport

    async def _get(self, path: str, params: Dict[str, Any]) -> Dict[str, Any]:
        async with httpx.AsyncClient(
            base_url=API_BASE,
            timeout=self.timeout,
            headers={"Authorization": f"Bearer {self.bearer_token}"},
            transport=self.transport,
        ) as client:
            try:
                resp = await client.get(path, params=params)
                resp.raise_for_status()
            except httpx.HTTPStatusError as exc:
                status = exc.response.status_code
                message = describe_status("Twitter API", status) or f"Twitter API returned HTTP {status}"
                raise TwitterAPIError(message, status) from exc
            except httpx.HTTPError as exc:
                raise TwitterAPIError(f"Failed to reach Twitter API: {exc}") from exc
            return resp.json()

    async def search_tweets(self, query: str, max_results: int = MAX_TWEETS_PER_CRAWL) -> List[Tweet]:
        payload = await self._get(
            "/tweets/search/recent",
            {
                "query": query,
                "max_results": max(10, min(max_results, 100)),
                "tweet.fields": TWEET_FIELDS,
                "user.fields": USER_FIELDS,
                "media.fields": MEDIA_FIELDS,
                "expansions": "author_id,attachments.media_keys",
            },
        )
        includes = payload.get("includes") or {}
        users = {
            user["id"]: TweetAuthor(
                username=user.get("username", "unknown"),
                name=user.get("name", "Unknown User"),
                profile_image_url=user.get("profile_image_url"),
            )
            for user in includes.get("users") or []
        }
        media = {
            item["media_key"]: TweetMedia(type=item.get("type", "photo"), url=item.get("url") or item.get("preview_image_url") or "")
            for item in includes.get("media") or []
        }
        tweets = []
        for raw in (payload.get("data") or [])[:max_results]:
            author = users.get(raw.get("author_id")) or TweetAuthor(username="unknown", name="Unknown User")
            keys = (raw.get("attachments") or {}).get("media_keys") or []
            tweets.append(self._map_tweet(raw, author, [media[key] for key in keys if key in media]))
        return tweets

    async def get_user_tweets(self, username: str, max_results: int = 10) -> List[Tweet]:
        user_payload = await self._get(f"/users/by/username/{username}", {"user.fields": USER_FIELDS})
        user = user_payload.get("data")
        if not user:
            raise TwitterAPIError(f"Failed to fetch user tweets: unknown user {username}")
        author = TweetAuthor(
            username=user["username"],
            name=user.get("name", user["username"]),
            profile_image_url=user.get("profile_image_url"),
        )
        timeline = await self._get(
            f"/users/{user['id']}/tweets",
            {
                "max_results": max(5, min(max_results, 100)),
                "tweet.fields": TWEET_FIELDS,
                "media.fields": MEDIA_FIELDS,
                "expansions": "attachments.media_keys",
            },
        )
        return [self._map_tweet(raw, author, []) for raw in (timeline.get("data") or [])[:max_results]]

    @staticmethod
    def _map_tweet(raw: Dict[str, Any], author: TweetAuthor, media: List[TweetMedia]) -> Tweet:
        metrics = raw.get("public_metrics") or {}
        username = author.username if author.username != "unknown" else "twitter"
        return Tweet(
            id=raw["id"],
            text=raw.get("text", ""),
            author=author,
            created_at=raw.get("created_at") or utc_now(),
            url=f"https://twitter.com/{username}/status/{raw['id']}",
            retweet_count=metrics.get("retweet_count", 0),
            like_count=metrics.get("like_count", 0),
            reply_count=metrics.get("reply_count", 0),
            quote_count=metrics.get("quote_count", 0),
            media=media,
            referenced_tweets=list(raw.get("referenced_tweets") or []),
        )


def _mock(tweet_id: str, text: str, username: str, name: str, created_at: str, metrics: Sequence[int]) -> Tweet:
    retweets, likes, replies, quotes = metrics
    return Tweet(
        id=tweet_id,
        text=text,
        author=TweetAuthor(
            username=username,
            name=name,
            profile_image_url=f"https://pbs.twimg.com/profile_images/12345678{int(tweet_id) + 89}/avatar_normal.jpg",
        ),
        created_at=created_at,
        url=f"https://twitter.com/{username}/status/{tweet_id}",
        retweet_count=retweets,
        like_count=likes,
        reply_count=replies,
        quote_count=quotes,
    )


MOCK_TWEETS = [
    _mock("1", "Just launched our new AI-powered analytics dashboard! Super excited to see how this helps teams make data-driven decisions.",
          "techlead", "Sarah Chen", "2024-01-15T10:30:00Z", (245, 1200, 89, 12)),
    _mock("2", "The future of web development is looking brighter than ever with these new frameworks and tools emerging.",
          "webdev", "Alex Johnson", "2024-01-15T09:15:00Z", (189, 890, 45, 8)),
    _mock("3", "Just completed a major refactor of our authentication system. The performance improvements are incredible!",
          "backendguru", "Mike Rodriguez", "2024-01-15T08:45:00Z", (156, 720, 32, 5)),
    _mock("4", "TypeScript continues to be a game-changer for large-scale applications. The type safety alone is worth the investment.",
          "tsfan", "Emma Wilson", "2024-01-15T11:20:00Z", (210, 950, 67, 15)),
    _mock("5", "Working on a new open-source project for real-time data visualization. Looking for contributors!",
          "opensource", "David Kim", "2024-01-15T12:05:00Z", (178, 810, 41, 9)),
    _mock("6", "The importance of clean code cannot be overstated. It saves hours of debugging and makes onboarding new team members so much easier.",
          "cleanCoder", "Lisa Thompson", "2024-01-15T13:30:00Z", (195, 920, 53, 11)),
    _mock("7", "Just deployed our microservices architecture to production. The scalability improvements are already noticeable.",
          "devops", "Robert Chen", "2024-01-15T14:15:00Z", (167, 780, 38, 7)),
    _mock("8", "Learning a new programming language every year keeps your skills sharp and opens up new opportunities.",
          "polyglot", "Maria Garcia", "2024-01-15T15:40:00Z", (145, 690, 29, 4)),
    _mock("9", "The rise of AI in software development is fascinating. Tools like GitHub Copilot are changing how we write code.",
          "aiDev", "James Wilson", "2024-01-15T16:25:00Z", (230, 1100, 78, 18)),
    _mock("10", "Documentation is not optional. Good documentation can make or break a project adoption.",
          "docMaster", "Sophia Lee", "2024-01-15T17:10:00Z", (125, 610, 24, 3)),
]


class TwitterCrawlerMock(BaseCrawler):
    """Offline crawler over a fixed tweet corpus."""

    def __init__(self, tweets: Sequence[Tweet] | None = None):
        self.tweets = list(MOCK_TWEETS if tweets is None else tweets)

    async def search_tweets(self, query: str, max_results: int = MAX_TWEETS_PER_CRAWL) -> List[Tweet]:
        needle = query.lower()
        matches = [
            tweet
            for tweet in self.tweets
            if needle in tweet.text.lower()
            or needle in tweet.author.username.lower()
            or needle in tweet.author.name.lower()
        ]
        return matches[:max_results]

    async def get_user_tweets(self, username: str, max_results: int = 10) -> List[Tweet]:
        wanted = username.lower()
        return [tweet for tweet in self.tweets if tweet.author.username.lower() == wanted][:max_results]


def get_crawler(settings: Settings, transport: httpx.AsyncBaseTransport | None = None) -> BaseCrawler:
    if not settings.twitter_enabled:
        logger.info("Using TwitterCrawlerMock (no bearer token found)")
        return TwitterCrawlerMock()
    try:
        return TwitterCrawler(settings.twitter_bearer_token, settings.request_timeout, transport)
    except ConfigurationError as exc:
        logger.warning("Failed to create TwitterCrawler, falling back to mock: %s", exc)
        return TwitterCrawlerMock()

from __future__ import annotations

import asyncio

import httpx
import pytest

from blaster.config import Settings
from blaster.errors import ConfigurationError, TwitterAPIError
from blaster.models import Tweet, TweetAuthor
from blaster.twitter import (
    MAX_CONCURRENT_CRAWLS,
    MOCK_TWEETS,
    TwitterCrawler,
    TwitterCrawlerMock,
    analyze_sentiment,
    extract_key_topics,
    generate_summary,
    get_crawler,
    top_authors,
)


def make_tweet(text: str, username: str = "user", tweet_id: str = "1") -> Tweet:
    return Tweet(
        id=tweet_id,
        text=text,
        author=TweetAuthor(username=username, name=username.title()),
        created_at="2024-01-01T00:00:00Z",
        url=f"https://twitter.com/{username}/status/{tweet_id}",
    )


def test_top_authors_orders_by_count():
    tweets = [make_tweet("a", "ann"), make_tweet("b", "bob"), make_tweet("c", "bob"), make_tweet("d", "cat")]

    assert top_authors(tweets) == ["@bob", "@ann", "@cat"]
    assert top_authors(tweets, 1) == ["@bob"]


@pytest.mark.parametrize(
    "texts, expected",
    [
        (["great and amazing"], "Positive"),
        (["awful, the worst"], "Negative"),
        (["good great", "bad"], "Mostly Positive"),
        (["bad sad", "good"], "Mostly Negative"),
        (["nothing to see"], "Neutral"),
    ],
)
def test_analyze_sentiment(texts, expected):
    assert analyze_sentiment([make_tweet(text) for text in texts]) == expected


def test_extract_key_topics_skips_short_and_stop_words():
    tweets = [make_tweet("Python rocks, python rules!"), make_tweet("This python thing rocks")]

    assert extract_key_topics(tweets, 2) == ["Python", "Rocks"]


def test_generate_summary():
    tweets = [make_tweet("I love python tooling", "ann")]

    assert generate_summary([], "q") == 'No tweets found for query: "q"'
    assert generate_summary(tweets, "q") == (
        'Found 1 tweets for "q". Top contributors: @ann. Overall sentiment: Positive. '
        "Key topics discussed: Love, Python, Tooling."
    )


def test_mock_search_matches_text_username_and_name():
    crawler = TwitterCrawlerMock()

    assert [t.id for t in asyncio.run(crawler.search_tweets("documentation"))] == ["10"]
    assert [t.id for t in asyncio.run(crawler.search_tweets("DEVOPS"))] == ["7"]
    assert [t.id for t in asyncio.run(crawler.search_tweets("emma"))] == ["4"]
    assert len(asyncio.run(crawler.search_tweets("e", max_results=3))) == 3


def test_mock_user_tweets():
    crawler = TwitterCrawlerMock()

    assert [t.id for t in asyncio.run(crawler.get_user_tweets("TechLead"))] == ["1"]


def test_crawl_multiple_queries_caps_fanout():
    crawler = TwitterCrawlerMock()
    queries = ["code", "nothing-matches", "ai", "data", "team", "extra", "more"]

    responses = asyncio.run(crawler.crawl_multiple_queries(queries))

    assert [r.query for r in responses] == queries[:MAX_CONCURRENT_CRAWLS]
    assert responses[1].summary == 'No tweets found for query: "nothing-matches"'
    assert responses[0].summary.startswith("Found ")


def test_crawler_rejects_placeholder_token():
    with pytest.raises(ConfigurationError):
        TwitterCrawler("your_twitter_bearer_token")
    with pytest.raises(ConfigurationError):
        TwitterCrawler(None)


def test_get_crawler_falls_back_to_mock():
    assert isinstance(get_crawler(Settings()), TwitterCrawlerMock)
    assert isinstance(get_crawler(Settings(twitter_bearer_token="token")), TwitterCrawler)


SEARCH_PAYLOAD = {
    "data": [
        {
            "id": "100",
            "text": "Hello world",
            "author_id": "u1",
            "created_at": "2024-02-01T12:00:00.000Z",
            "public_metrics": {"retweet_count": 2, "like_count": 5, "reply_count": 1, "quote_count": 0},
            "attachments": {"media_keys": ["m1", "missing"]},
            "referenced_tweets": [{"type": "quoted", "id": "99"}],
        },
        {"id": "101", "text": "Orphan", "author_id": "u9"},
    ],
    "includes": {
        "users": [{"id": "u1", "username": "ann", "name": "Ann", "profile_image_url": "https://img/ann.jpg"}],
        "media": [{"media_key": "m1", "type": "video", "preview_image_url": "https://img/preview.jpg"}],
    },
}


def test_search_tweets_maps_includes():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["params"] = dict(request.url.params)
        seen["auth"] = request.headers["Authorization"]
        return httpx.Response(200, json=SEARCH_PAYLOAD)

    crawler = TwitterCrawler("token", transport=httpx.MockTransport(handler))
    tweets = asyncio.run(crawler.search_tweets("hello", max_results=20))

    assert seen["path"] == "/2/tweets/search/recent"
    assert seen["params"]["max_results"] == "20"
    assert seen["auth"] == "Bearer token"
    first, orphan = tweets
    assert first.author.username == "ann"
    assert first.url == "https://twitter.com/ann/status/100"
    assert (first.retweet_count, first.like_count, first.reply_count) == (2, 5, 1)
    assert [(m.type, m.url) for m in first.media] == [("video", "https://img/preview.jpg")]
    assert first.referenced_tweets == [{"type": "quoted", "id": "99"}]
    assert orphan.author.name == "Unknown User"
    assert orphan.url == "https://twitter.com/twitter/status/101"
    assert orphan.like_count == 0


def test_search_tweets_translates_status_codes():
    crawler = TwitterCrawler("token", transport=httpx.MockTransport(lambda request: httpx.Response(429)))

    with pytest.raises(TwitterAPIError) as excinfo:
        asyncio.run(crawler.search_tweets("q"))
    assert str(excinfo.value) == "Twitter API rate limit exceeded. Please try again later."


def test_rate_limited_query_becomes_empty_response():
    crawler = TwitterCrawler("token", transport=httpx.MockTransport(lambda request: httpx.Response(429)))

    [response] = asyncio.run(crawler.crawl_multiple_queries(["q"]))

    assert response.tweets == []
    assert response.summary == "Rate limit exceeded for query: q. Please wait before trying again."


def test_get_user_tweets_looks_up_user_then_timeline():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/2/users/by/username/ann":
            return httpx.Response(200, json={"data": {"id": "u1", "username": "ann", "name": "Ann"}})
        if request.url.path == "/2/users/u1/tweets":
            return httpx.Response(200, json={"data": [{"id": "5", "text": "hi"}]})
        return httpx.Response(404)

    crawler = TwitterCrawler("token", transport=httpx.MockTransport(handler))
    [tweet] = asyncio.run(crawler.get_user_tweets("ann"))

    assert tweet.author.name == "Ann"
    assert tweet.url == "https://twitter.com/ann/status/5"


def test_mock_corpus_shape():
    assert len(MOCK_TWEETS) == 10
    assert MOCK_TWEETS[0].author.profile_image_url.endswith("1234567890/avatar_normal.jpg")
    assert MOCK_TWEETS[9].author.profile_image_url.endswith("1234567899/avatar_normal.jpg")

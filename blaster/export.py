"""CSV and JSON exports for crawled tweets."""

from __future__ import annotations

import csv
import io
import json
import re
from typing import Any, Dict, List, Sequence

from .models import CrawlResponse, Tweet, to_payload
from .twitter import top_authors

TWEET_HEADERS = [
    "ID",
    "Text",
    "Author Username",
    "Author Name",
    "Created At",
    "URL",
    "Retweet Count",
    "Like Count",
    "Reply Count",
    "Quote Count",
    "Media Count",
]

SUMMARY_HEADERS = [
    "Query",
    "Tweet Count",
    "Summary",
    "Crawled At",
    "Top Authors",
    "Total Retweets",
    "Total Likes",
    "Total Replies",
]

EXPORT_FORMATS = {
    "csv": ("text/csv", "csv"),
    "json": ("application/json", "json"),
    "summary-csv": ("text/csv", "csv"),
    "analytics-json": ("application/json", "json"),
}


def _write_csv(headers: List[str], rows: List[List[Any]]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(headers)
    writer.writerows(rows)
    return buffer.getvalue().rstrip("\n")


def _totals(tweets: Sequence[Tweet]) -> Dict[str, int]:
    return {
        "totalRetweets": sum(tweet.retweet_count for tweet in tweets),
        "totalLikes": sum(tweet.like_count for tweet in tweets),
        "totalReplies": sum(tweet.reply_count for tweet in tweets),
    }


def to_csv(tweets: Sequence[Tweet]) -> str:
    if not tweets:
        return ""
    rows = [
        [
            tweet.id,
            tweet.text,
            tweet.author.username,
            tweet.author.name,
            tweet.created_at,
            tweet.url,
            tweet.retweet_count,
            tweet.like_count,
            tweet.reply_count,
            tweet.quote_count or 0,
            len(tweet.media),
        ]
        for tweet in tweets
    ]
    return _write_csv(TWEET_HEADERS, rows)


def to_json(tweets: Sequence[Tweet]) -> str:
    return json.dumps(to_payload(list(tweets)), indent=2, ensure_ascii=False)


def to_summary_csv(responses: Sequence[CrawlResponse]) -> str:
    if not responses:
        return ""
    rows = []
    for response in responses:
        totals = _totals(response.tweets)
        rows.append(
            [
                response.query,
                len(response.tweets),
                response.summary,
                response.crawled_at,
                "; ".join(top_authors(response.tweets, 3)),
                totals["totalRetweets"],
                totals["totalLikes"],
                totals["totalReplies"],
            ]
        )
    return _write_csv(SUMMARY_HEADERS, rows)


def build_analytics(response: CrawlResponse) -> Dict[str, Any]:
    tweets = response.tweets
    totals = _totals(tweets)
    count = len(tweets)

    def average(total: int) -> str:
        return f"{(total / count if count else 0):.2f}"

    engagement = sum(totals.values()) / count if count else 0
    return {
        "query": response.query,
        "tweetCount": count,
        "summary": response.summary,
        "crawledAt": response.crawled_at,
        "metrics": {
            **totals,
            "averageRetweets": average(totals["totalRetweets"]),
            "averageLikes": average(totals["totalLikes"]),
            "averageReplies": average(totals["totalReplies"]),
            "engagementRate": f"{engagement:.2f}",
        },
        "topAuthors": top_authors(tweets, 5),
        "timeline": [
            {
                "id": tweet.id,
                "createdAt": tweet.created_at,
                "author": tweet.author.username,
                "retweetCount": tweet.retweet_count,
                "likeCount": tweet.like_count,
                "replyCount": tweet.reply_count,
            }
            for tweet in tweets
        ],
    }


def to_analytics_json(responses: Sequence[CrawlResponse]) -> str:
    return json.dumps([build_analytics(response) for response in responses], indent=2, ensure_ascii=False)


def render_export(export_format: str, responses: Sequence[CrawlResponse]) -> str:
    """Render responses in one of EXPORT_FORMATS; per-tweet formats flatten all queries."""

    if export_format == "summary-csv":
        return to_summary_csv(responses)
    if export_format == "analytics-json":
        return to_analytics_json(responses)
    tweets = [tweet for response in responses for tweet in response.tweets]
    if export_format == "csv":
        return to_csv(tweets)
    if export_format == "json":
        return to_json(tweets)
    raise ValueError(f"Unsupported export format: {export_format}")


def export_filename(export_format: str, query: str, stamp: int) -> str:
    _media_type, extension = EXPORT_FORMATS[export_format]
    slug = re.sub(r"[^\w-]+", "_", query).strip("_") or "query"
    prefix = "tweets" if export_format in ("csv", "json") else export_format.replace("-", "_")
    return f"{prefix}_{slug}_{stamp}.{extension}"

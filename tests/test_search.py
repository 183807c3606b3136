from __future__ import annotations

import asyncio
import json

import httpx

from blaster.config import Settings
from blaster.search import (
    MAX_IMAGE_RESULTS,
    MAX_NEWS_RESULTS,
    MAX_VIDEO_RESULTS,
    CategorySearch,
    map_pexels_results,
    map_unsplash_results,
    parse_duckduckgo_images,
    parse_duckduckgo_news,
    parse_duckduckgo_videos,
    parse_google_images,
    parse_news_rss,
    parse_youtube_results,
    placeholder_images,
)


def _video_renderer(video_id: str, title: str, channel: str = "Chan", views: str | None = "1K views"):
    renderer = {
        "videoId": video_id,
        "title": {"runs": [{"text": title}]},
        "ownerText": {"runs": [{"text": channel}]},
        "lengthText": {"accessibility": {"accessibilityData": {"label": "4 minutes, 2 seconds"}}},
    }
    if views:
        renderer["viewCountText"] = {"simpleText": views}
    return {"videoRenderer": renderer}


def _youtube_page(renderers) -> str:
    data = {"contents": {"sectionListRenderer": {"contents": [{"itemSectionRenderer": {"contents": renderers}}]}}}
    return f"<html><script>var ytInitialData = {json.dumps(data)};</script></html>"


RSS = """<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0"><channel><title>Google News</title>
  <item>
    <title><![CDATA[Rocket launch succeeds]]></title>
    <link>https://news.example/rocket</link>
    <description><![CDATA[<a href="https://news.example/rocket">Rocket</a> <font>Space Daily</font>]]></description>
    <pubDate>Mon, 01 Jan 2024 10:00:00 GMT</pubDate>
    <source url="https://spacedaily.example">Space Daily</source>
  </item>
  <item>
    <title>No link here</title>
  </item>
  <item>
    <title>Second story</title>
    <link>https://news.example/second</link>
  </item>
</channel></rss>
"""


def test_parse_duckduckgo_images_pairs_tiles_with_images():
    html = """
    <div class="tile--img" data-id="abc"><img class="tile--img__img" src="//img.example/1.jpg" alt="Cat"></div>
    <div class="tile--img" data-id="def"><img class="tile--img__img" src="https://img.example/2.jpg"></div>
    """
    images = parse_duckduckgo_images(html, "cats and dogs")

    assert images[0].image == "https://img.example/1.jpg"
    assert images[0].title == "Cat"
    assert images[0].url == "https://duckduckgo.com/i.js?q=cats%20and%20dogs&vqd=abc"
    assert images[1].title == "Image of cats and dogs"
    assert images[1].source == "DuckDuckGo"


def test_map_unsplash_and_pexels_skip_incomplete_items():
    unsplash = map_unsplash_results(
        [
            {"urls": {"regular": "r.jpg", "thumb": "t.jpg"}, "links": {"html": "https://unsplash.com/p/1"},
             "alt_description": "a cat", "user": {"name": "Ann"}, "width": 10, "height": 20},
            {"urls": {}, "links": {"html": "https://unsplash.com/p/2"}},
        ],
        "cat",
    )
    pexels = map_pexels_results(
        [{"src": {"large": "l.jpg", "medium": "m.jpg"}, "url": "https://pexels.com/1"}, {"src": {"large": "x"}}],
        "cat",
    )

    assert len(unsplash) == 1
    assert unsplash[0].title == "a cat"
    assert unsplash[0].thumbnail == "t.jpg"
    assert unsplash[0].source == "Ann"
    assert len(pexels) == 1
    assert pexels[0].title == "Photo of cat"
    assert pexels[0].source == "Pexels"


def test_parse_google_images_decodes_pairs():
    html = '{"ou":"https%3A%2F%2Fimg.example%2Fa.png","pt":"A%20picture"} {"ou":"https://img.example/b.png"}'
    images = parse_google_images(html, "pics")

    assert len(images) == 1
    assert images[0].image == "https://img.example/a.png"
    assert images[0].title == "A picture"
    assert images[0].source == "Google Images"


def test_placeholder_images_are_deterministic():
    first = placeholder_images("sunset")
    second = placeholder_images("sunset")

    assert first == second
    assert len(first) == MAX_IMAGE_RESULTS
    assert first[0].source == "Lorem Picsum"
    assert first[0].width == 800 and first[0].height == 600
    assert first[0].thumbnail.startswith("https://picsum.photos/200/150?image=")


def test_search_images_falls_through_to_placeholders(settings, make_transport):
    transport = make_transport(
        {
            "duckduckgo.com": lambda request: httpx.Response(200, text="<html></html>"),
            "www.google.com": lambda request: httpx.Response(503),
        }
    )
    images = asyncio.run(CategorySearch(settings, transport).search_images("sunset"))

    assert images == placeholder_images("sunset")


def test_search_images_uses_pexels_when_configured(make_transport):
    seen = {}

    def pexels(request: httpx.Request) -> httpx.Response:
        seen["auth"] = request.headers.get("Authorization")
        return httpx.Response(200, json={"photos": [{"src": {"large": "l.jpg"}, "url": "https://pexels.com/1"}]})

    transport = make_transport(
        {
            "duckduckgo.com": lambda request: httpx.Response(500),
            "api.pexels.com": pexels,
        }
    )
    searcher = CategorySearch(Settings(pexels_api_key="pexels-key"), transport)
    images = asyncio.run(searcher.search_images("cat"))

    assert seen["auth"] == "pexels-key"
    assert [image.image for image in images] == ["l.jpg"]


def test_search_images_tries_unsplash_before_pexels(make_transport):
    calls = []
    transport = make_transport(
        {
            "duckduckgo.com": lambda request: httpx.Response(200, text="<html></html>"),
            "api.unsplash.com": lambda request: httpx.Response(
                200,
                json={"results": [{"urls": {"regular": "u.jpg"}, "links": {"html": "https://unsplash.com/p/1"}}]},
            ),
            "api.pexels.com": lambda request: httpx.Response(200, json={"photos": []}),
        },
        calls,
    )
    searcher = CategorySearch(Settings(unsplash_access_key="u-key", pexels_api_key="p-key"), transport)
    images = asyncio.run(searcher.search_images("cat"))

    assert [image.image for image in images] == ["u.jpg"]
    assert [call.url.host for call in calls] == ["duckduckgo.com", "api.unsplash.com"]
    assert calls[1].headers["Authorization"] == "Client-ID u-key"


def test_search_images_skips_malformed_unsplash_payload(make_transport):
    transport = make_transport(
        {
            "duckduckgo.com": lambda request: httpx.Response(200, text="<html></html>"),
            "api.unsplash.com": lambda request: httpx.Response(200, json=[]),
            "www.google.com": lambda request: httpx.Response(503),
        }
    )
    searcher = CategorySearch(Settings(unsplash_access_key="u-key"), transport)

    assert asyncio.run(searcher.search_images("cat")) == placeholder_images("cat")


def test_parse_youtube_results_from_initial_data():
    page = _youtube_page(
        [
            _video_renderer("vid1", "First &amp; best"),
            _video_renderer("vid1", "Duplicate"),
            _video_renderer("vid2", "Second", views=None),
        ]
    )
    videos = parse_youtube_results(page)

    assert [video.url for video in videos] == [
        "https://www.youtube.com/watch?v=vid1",
        "https://www.youtube.com/watch?v=vid2",
    ]
    assert videos[0].title == "First & best"
    assert videos[0].description == "Chan • 1K views"
    assert videos[0].duration == "4 minutes, 2 seconds"
    assert videos[0].thumbnail == "https://img.youtube.com/vi/vid1/hqdefault.jpg"
    assert videos[1].description == "Chan"


def test_parse_youtube_results_regex_fallback_and_limit():
    chunks = "".join(f'"videoId":"v{i}","title":{{"runs":[{{"text":"Video {i}"}}]}},' for i in range(12))
    videos = parse_youtube_results(f"<script>{chunks}</script>")

    assert len(videos) == MAX_VIDEO_RESULTS
    assert videos[0].title == "Video 0"
    assert videos[0].source == "YouTube"


def test_parse_duckduckgo_videos():
    html = """
    <div class="tile--vid">
      <a href="//duckduckgo.com/l/?uddg=https%3A%2F%2Fvimeo.com%2F1">
        <img src="//thumbs.example/1.jpg">
        <div class="tile__title">A <b>clip</b></div>
        <span class="tile__duration">3:10</span>
        <span class="tile__domain">vimeo.com</span>
      </a>
    </div>
    <div class="tile--vid"><div class="tile__title">No link</div></div>
    """
    videos = parse_duckduckgo_videos(html)

    assert len(videos) == 1
    assert videos[0].url == "https://vimeo.com/1"
    assert videos[0].thumbnail == "https://thumbs.example/1.jpg"
    assert videos[0].title == "A clip"
    assert videos[0].duration == "3:10"
    assert videos[0].source == "vimeo.com"


def test_search_videos_falls_back_to_duckduckgo_then_empty(settings, make_transport):
    transport = make_transport(
        {
            "www.youtube.com": lambda request: httpx.Response(200, text="<html>no videos</html>"),
            "duckduckgo.com": lambda request: httpx.Response(500),
        }
    )
    assert asyncio.run(CategorySearch(settings, transport).search_videos("q")) == []


def test_parse_news_rss():
    news = parse_news_rss(RSS)

    assert [item.title for item in news] == ["Rocket launch succeeds", "Second story"]
    assert news[0].snippet == "Rocket Space Daily"
    assert news[0].source == "Space Daily"
    assert news[0].date == "Mon, 01 Jan 2024 10:00:00 GMT"
    assert news[1].source == "Google News"
    assert news[1].snippet is None


def test_parse_news_rss_limits_results():
    items = "".join(f"<item><title>T{i}</title><link>https://n.example/{i}</link></item>" for i in range(15))
    news = parse_news_rss(f"<rss><channel>{items}</channel></rss>")

    assert len(news) == MAX_NEWS_RESULTS


def test_parse_duckduckgo_news():
    html = """
    <article class="result result--news">
      <h2 class="result__title"><a href="https://paper.example/story">Big <b>story</b></a></h2>
      <div class="result__snippet">What happened</div>
      <span class="result__source">Paper</span>
    </article>
    """
    news = parse_duckduckgo_news(html)

    assert news[0].title == "Big story"
    assert news[0].url == "https://paper.example/story"
    assert news[0].snippet == "What happened"
    assert news[0].source == "Paper"


def test_search_news_encodes_whole_query(settings, make_transport):
    calls = []
    transport = make_transport({"news.google.com": lambda request: httpx.Response(200, text=RSS)}, calls)

    asyncio.run(CategorySearch(settings, transport).search_news("AC/DC & friends"))

    assert calls[0].url.params["q"] == "AC/DC & friends"
    assert "q=AC%2FDC%20%26%20friends&" in str(calls[0].url)


def test_search_news_falls_back_when_rss_fails(settings, make_transport):
    transport = make_transport(
        {
            "news.google.com": lambda request: httpx.Response(200, text="<rss><channel><item>"),
            "duckduckgo.com": lambda request: httpx.Response(
                200,
                text='<div class="result--news"><a class="result__title" href="https://x.example">X</a></div>',
            ),
        }
    )
    news = asyncio.run(CategorySearch(settings, transport).search_news("x"))

    assert [item.url for item in news] == ["https://x.example"]


def test_search_all_isolates_failing_categories(settings, make_transport):
    transport = make_transport(
        {
            "news.google.com": lambda request: httpx.Response(200, text=RSS),
            "duckduckgo.com/html/": lambda request: httpx.Response(503),
        }
    )
    results = asyncio.run(CategorySearch(settings, transport).search_all("rocket", ["news", "web"]))

    assert list(results) == ["web", "news"]
    assert results["web"] == []
    assert len(results["news"]) == 2

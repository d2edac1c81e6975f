import asyncio

import httpx
import pytest

from conftest import make_catalog, search_payload
from jukebox.catalog import parse_duration
from jukebox.errors import CatalogError


class TestParseDuration:
    """ISO-8601 durations from the videos endpoint."""

    @pytest.mark.parametrize("raw, expected", [
        ("PT3M30S", 210.0),
        ("PT1H2M3S", 3723.0),
        ("PT45S", 45.0),
        ("PT2H", 7200.0),
    ])
    def test_valid(self, raw, expected):
        assert parse_duration(raw) == expected

    @pytest.mark.parametrize("raw", ["", "PT", "P1D", "3:30", None])
    def test_invalid(self, raw):
        assert parse_duration(raw) is None


class TestSearch:
    """CatalogClient.search against a mocked API."""

    def test_parses_videos_and_token(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen["params"] = dict(request.url.params)
            return httpx.Response(200, json=search_payload("a1", "b2", next_page="NEXT"))

        songs, token = asyncio.run(make_catalog(handler).search("lofi"))
        assert [s.id for s in songs] == ["a1", "b2"]
        assert songs[0].title == "Song a1"
        assert songs[0].channel == "Channel a1"
        assert token == "NEXT"
        assert seen["path"] == "/youtube/v3/search"
        assert seen["params"]["q"] == "lofi"
        assert seen["params"]["type"] == "video"
        assert seen["params"]["key"] == "test-key"
        assert "pageToken" not in seen["params"]

    def test_page_token_is_forwarded(self):
        seen = {}

        def handler(request):
            seen.update(request.url.params)
            return httpx.Response(200, json=search_payload("c3"))

        songs, token = asyncio.run(make_catalog(handler).search("lofi", "NEXT"))
        assert seen["pageToken"] == "NEXT"
        assert token is None
        assert [s.id for s in songs] == ["c3"]

    def test_skips_non_video_items(self):
        payload = search_payload("a1")
        payload["items"].append({"id": {"kind": "youtube#channel", "channelId": "UC1"}, "snippet": {"title": "A channel"}})
        payload["items"].append({"id": {"videoId": "nosnippet"}})
        payload["items"].append("garbage")

        songs, _ = asyncio.run(make_catalog(lambda r: httpx.Response(200, json=payload)).search("x"))
        assert [s.id for s in songs] == ["a1"]

    def test_skips_items_with_wrong_shapes(self):
        payload = search_payload("a1")
        payload["items"] += [
            {"id": "flat-id", "snippet": {"title": "String id"}},
            {"id": {"videoId": "v2"}, "snippet": ["not", "a", "dict"]},
            {"id": {"videoId": 42}, "snippet": {"title": "Numeric id"}},
            {"id": None, "snippet": None},
        ]
        payload["items"].append({"id": {"videoId": "v3"}, "snippet": {"title": 7, "channelTitle": ["x"]}})

        songs, _ = asyncio.run(make_catalog(lambda r: httpx.Response(200, json=payload)).search("x"))
        assert [s.id for s in songs] == ["a1", "v3"]
        assert songs[1].title == "v3"
        assert songs[1].channel is None

    def test_blank_title_falls_back_to_id(self):
        payload = {"items": [{"id": {"videoId": "v1"}, "snippet": {"title": "  "}}]}
        songs, _ = asyncio.run(make_catalog(lambda r: httpx.Response(200, json=payload)).search("x"))
        assert songs[0].title == "v1"
        assert songs[0].channel is None

    @pytest.mark.parametrize("response", [
        httpx.Response(403, json={"error": {"message": "quotaExceeded"}}),
        httpx.Response(200, text="<html>"),
        httpx.Response(200, json=["not", "an", "object"]),
        httpx.Response(200, json={"kind": "youtube#searchListResponse"}),
    ])
    def test_bad_responses_raise(self, response):
        with pytest.raises(CatalogError):
            asyncio.run(make_catalog(lambda r: response).search("x"))

    def test_network_errors_raise(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(CatalogError):
            asyncio.run(make_catalog(handler).search("x"))

    def test_timeout_raises(self):
        def handler(request):
            raise httpx.ReadTimeout("slow", request=request)

        with pytest.raises(CatalogError, match="timed out"):
            asyncio.run(make_catalog(handler).search("x"))

    def test_missing_key_raises_without_request(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(200, json=search_payload())

        with pytest.raises(CatalogError):
            asyncio.run(make_catalog(handler, api_key="").search("x"))
        assert calls == []


class TestDuration:
    """CatalogClient.get_duration."""

    def test_reads_content_details(self):
        def handler(request):
            assert request.url.path.endswith("/videos")
            assert request.url.params["id"] == "a1"
            return httpx.Response(200, json={"items": [{"contentDetails": {"duration": "PT4M5S"}}]})

        assert asyncio.run(make_catalog(handler).get_duration("a1")) == 245.0

    def test_unknown_video_raises(self):
        catalog = make_catalog(lambda r: httpx.Response(200, json={"items": []}))
        with pytest.raises(CatalogError):
            asyncio.run(catalog.get_duration("gone"))

"""YouTube catalog — song search and duration lookup (YouTube Data API v3)."""
import logging
import re
from typing import Optional

import httpx

from .config import CATALOG_TIMEOUT, SEARCH_PAGE_SIZE, YOUTUBE_API_HOST, YOUTUBE_API_KEY
from .errors import CatalogError
from .models import SongEntry

logger = logging.getLogger(__name__)

_DURATION_RE = re.compile(r"^PT(?:(\d+)H)?(?:(\d+)M)?(?:(\d+)S)?$")


def parse_duration(value: str) -> Optional[float]:
    """ISO-8601 video duration ("PT1H2M3S") to seconds. None if unreadable."""
    match = _DURATION_RE.match(value or "")
    if not match or not any(match.groups()):
        return None
    hrs, mins, secs = (int(g) if g else 0 for g in match.groups())
    return float(hrs * 3600 + mins * 60 + secs)


def _parse_items(items: list) -> list[SongEntry]:
    songs = []
    for item in items:
        if not isinstance(item, dict):
            continue
        ident = item.get("id")
        snippet = item.get("snippet")
        if not isinstance(ident, dict) or not isinstance(snippet, dict):
            continue
        video_id = ident.get("videoId")
        # channels and playlists come back without a videoId
        if not video_id or not isinstance(video_id, str):
            continue
        title = snippet.get("title")
        channel = snippet.get("channelTitle")
        songs.append(SongEntry(
            id=video_id,
            title=(title.strip() if isinstance(title, str) else "") or video_id,
            channel=channel if isinstance(channel, str) and channel else None,
        ))
    return songs


class CatalogClient:
    def __init__(
        self,
        api_key: str = YOUTUBE_API_KEY,
        host: str = YOUTUBE_API_HOST,
        timeout: float = CATALOG_TIMEOUT,
        page_size: int = SEARCH_PAGE_SIZE,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.host = host.rstrip("/")
        self.timeout = timeout
        self.page_size = page_size
        self._transport = transport

    async def _get(self, path: str, params: dict) -> dict:
        if not self.api_key:
            raise CatalogError("YOUTUBE_API_KEY is not set")
        params = {**params, "key": self.api_key}
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                r = await client.get(f"{self.host}/{path}", params=params)
                if r.status_code != 200:
                    raise CatalogError(f"YouTube HTTP {r.status_code}: {r.text[:200]}")
                data = r.json()
        except httpx.TimeoutException as e:
            raise CatalogError(f"YouTube request timed out after {self.timeout}s") from e
        except httpx.HTTPError as e:
            raise CatalogError(f"YouTube HTTP error: {e}") from e
        except ValueError as e:
            raise CatalogError(f"YouTube returned invalid JSON: {e}") from e
        if not isinstance(data, dict):
            raise CatalogError("YouTube returned an unexpected response shape")
        return data

    async def search(self, query: str, page: Optional[str] = None) -> tuple[list[SongEntry], Optional[str]]:
        """
        GET /search for videos matching `query`.
        Returns (songs, next_page_token). Raises CatalogError on any failure.
        """
        params = {
            "part": "snippet",
            "order": "relevance",
            "type": "video",
            "q": query,
            "maxResults": self.page_size,
        }
        if page:
            params["pageToken"] = page
        data = await self._get("search", params)
        items = data.get("items")
        if not isinstance(items, list):
            raise CatalogError("YouTube search response has no items list")
        songs = _parse_items(items)
        logger.info("Search %r page=%s -> %d songs", query, page, len(songs))
        return songs, data.get("nextPageToken") or None

    async def get_duration(self, song_id: str) -> Optional[float]:
        """GET /videos contentDetails — song length in seconds, None if unknown."""
        data = await self._get("videos", {"part": "contentDetails", "id": song_id})
        try:
            raw = data["items"][0]["contentDetails"]["duration"]
        except (KeyError, IndexError, TypeError) as e:
            raise CatalogError(f"no duration for {song_id}: {e}") from e
        return parse_duration(raw)

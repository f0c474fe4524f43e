"""
YouTube Data API v3 operations.

Search, related-video lookup, playlist expansion, and URL parsing. Requests
rotate over the configured API keys through a CredentialPool.
"""

import re
from typing import Any, Dict, List, Optional
from urllib.parse import parse_qs, urlparse

import requests
from loguru import logger
from yt_dlp.extractor.youtube import YoutubeIE

from chocomenta.domain.radio.models import PlayableItem

from .credentials import CredentialPool
from .exceptions import (
    AuthenticationError,
    InvalidReferenceError,
    QuotaExceededError,
    ResolverError,
    ResolverUnavailableError,
)

API_BASE = "https://www.googleapis.com/youtube/v3"

_VIDEO_ID_RE = re.compile(r"^[A-Za-z0-9_-]{11}$")

# Error reasons reported by the API in error.errors[].reason
_QUOTA_REASONS = {"quotaExceeded", "rateLimitExceeded", "dailyLimitExceeded", "userRateLimitExceeded"}
_AUTH_REASONS = {"keyInvalid", "keyExpired", "accessNotConfigured", "forbidden", "ipRefererBlocked"}


def is_playlist_url(url: str) -> bool:
    """True when the URL carries a ``list=`` playlist parameter."""
    return "list=" in url


def extract_playlist_id(url: str) -> str:
    """Extract the playlist ID from a YouTube URL.

    Raises:
        InvalidReferenceError: If the URL has no ``list`` parameter
    """
    try:
        query = parse_qs(urlparse(url).query)
    except ValueError as e:
        raise InvalidReferenceError(f"Invalid YouTube URL: {url}") from e
    playlist_ids = query.get("list")
    if not playlist_ids or not playlist_ids[0]:
        raise InvalidReferenceError(f"No playlist in YouTube URL: {url}")
    return playlist_ids[0]


def extract_video_id(url: str) -> Optional[str]:
    """Extract an 11-character video ID from a YouTube URL using yt-dlp.

    Uses yt-dlp's URL matcher, without any network request, to handle:
    - Standard: youtube.com/watch?v=ID
    - Short: youtu.be/ID
    - Embed: youtube.com/embed/ID
    - Shorts: youtube.com/shorts/ID
    - Mobile: m.youtube.com/watch?v=ID
    - Live: youtube.com/live/ID

    A bare 11-character ID is accepted as is. Returns None when the text
    is not a recognisable YouTube video reference.
    """
    text = url.strip()
    if _VIDEO_ID_RE.match(text):
        return text

    if "://" not in text:
        text = f"https://{text}"
    video_id = YoutubeIE.get_temp_id(text)
    if video_id and _VIDEO_ID_RE.match(video_id):
        return video_id
    return None


def _error_reasons(response: requests.Response) -> set[str]:
    try:
        errors = response.json().get("error", {}).get("errors", [])
    except ValueError:
        return set()
    return {e.get("reason", "") for e in errors if isinstance(e, dict)}


def _raise_for_status(response: requests.Response) -> None:
    """Translate an HTTP error response into a ResolverError subclass."""
    if response.ok:
        return

    status = response.status_code
    reasons = _error_reasons(response)

    if status == 429 or reasons & _QUOTA_REASONS:
        raise QuotaExceededError(f"YouTube quota exceeded ({status}: {sorted(reasons)})")
    if status == 401 or reasons & _AUTH_REASONS:
        raise AuthenticationError(f"YouTube rejected the API key ({status}: {sorted(reasons)})")
    if status == 404:
        raise InvalidReferenceError(f"YouTube resource not found ({sorted(reasons)})")
    if status >= 500:
        raise ResolverUnavailableError(f"YouTube server error: {status}")
    raise ResolverError(f"YouTube request failed ({status}: {sorted(reasons)})")


def _normalize_search_item(item: Dict[str, Any]) -> Optional[PlayableItem]:
    """Convert a search result into a PlayableItem (None for non-videos)."""
    video_id = (item.get("id") or {}).get("videoId")
    if not video_id:
        return None
    title = (item.get("snippet") or {}).get("title", "")
    return PlayableItem(external_id=video_id, title=title)


def _normalize_playlist_item(item: Dict[str, Any]) -> Optional[PlayableItem]:
    """Convert a playlistItems entry into a PlayableItem."""
    snippet = item.get("snippet") or {}
    video_id = (snippet.get("resourceId") or {}).get("videoId")
    if not video_id:
        return None
    return PlayableItem(external_id=video_id, title=snippet.get("title", ""))


class YouTubeClient:
    """Blocking YouTube Data API client."""

    def __init__(
        self,
        credentials: CredentialPool,
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
    ):
        self.credentials = credentials
        self.timeout = timeout
        self._session = session or requests.Session()

    def _get(self, endpoint: str, params: Dict[str, Any]) -> Dict[str, Any]:
        """GET an API endpoint with key rotation and a single retry."""

        def request(api_key: str) -> Dict[str, Any]:
            try:
                response = self._session.get(
                    f"{API_BASE}/{endpoint}",
                    params={**params, "key": api_key},
                    timeout=self.timeout,
                )
            except requests.RequestException as e:
                raise ResolverUnavailableError(f"YouTube request failed: {e}") from e
            _raise_for_status(response)
            try:
                return response.json()
            except ValueError as e:
                raise ResolverUnavailableError("YouTube returned invalid JSON") from e

        return self.credentials.call(request)

    def search(self, query: str, limit: int = 5) -> List[PlayableItem]:
        """Search videos by free text.

        Returns:
            Up to ``limit`` items, empty list when nothing matched
        """
        data = self._get(
            "search",
            {"part": "snippet", "q": query, "type": "video", "maxResults": limit},
        )
        items = [_normalize_search_item(item) for item in data.get("items", [])]
        results = [item for item in items if item is not None][:limit]
        logger.debug(f"YouTube search {query!r}: {len(results)} results")
        return results

    def search_related(self, video_id: str, limit: int = 5) -> List[PlayableItem]:
        """Videos related to ``video_id``."""
        data = self._get(
            "search",
            {
                "part": "snippet",
                "relatedToVideoId": video_id,
                "type": "video",
                "maxResults": limit,
            },
        )
        items = [_normalize_search_item(item) for item in data.get("items", [])]
        results = [item for item in items if item is not None][:limit]
        logger.debug(f"YouTube related to {video_id}: {len(results)} results")
        return results

    def playlist_items(self, playlist_id: str, limit: int = 50) -> List[PlayableItem]:
        """First ``limit`` videos of a playlist, in playlist order."""
        data = self._get(
            "playlistItems",
            {"part": "snippet", "playlistId": playlist_id, "maxResults": limit},
        )
        items = [_normalize_playlist_item(item) for item in data.get("items", [])]
        results = [item for item in items if item is not None][:limit]
        logger.info(f"Loaded {len(results)} videos from YouTube playlist {playlist_id}")
        return results

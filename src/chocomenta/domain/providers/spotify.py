"""
Spotify Web API operations.

Client-credentials access only: track search for query normalisation and
playlist expansion into TrackDescriptors. No user authorization.
"""

import base64
import time
from typing import Any, Callable, Dict, List, Optional

import requests
from loguru import logger

from chocomenta.domain.radio.models import TrackDescriptor

from .exceptions import (
    AuthenticationError,
    InvalidReferenceError,
    QuotaExceededError,
    ResolverError,
    ResolverUnavailableError,
)

API_BASE = "https://api.spotify.com/v1"
TOKEN_URL = "https://accounts.spotify.com/api/token"

# Refresh this many seconds before the token actually expires
TOKEN_EXPIRY_BUFFER = 60


def is_playlist_url(url: str) -> bool:
    return "open.spotify.com/playlist/" in url or url.startswith("spotify:playlist:")


def extract_playlist_id(url: str) -> str:
    """Extract the playlist ID from a Spotify playlist URL or URI.

    Raises:
        InvalidReferenceError: If no playlist ID can be found
    """
    if url.startswith("spotify:playlist:"):
        playlist_id = url.split(":")[-1]
    elif "/playlist/" in url:
        playlist_id = url.split("/playlist/", 1)[1].split("?")[0].split("/")[0]
    else:
        playlist_id = ""
    if not playlist_id:
        raise InvalidReferenceError(f"Not a Spotify playlist reference: {url}")
    return playlist_id


def _normalize_spotify_track(track: Dict[str, Any]) -> Optional[TrackDescriptor]:
    """Convert a Spotify API track object to a TrackDescriptor."""
    name = (track.get("name") or "").strip()
    if not name:
        return None
    artists = tuple(
        a["name"] for a in track.get("artists", []) if a.get("name") is not None
    )
    return TrackDescriptor(name=name, artist_names=artists)


def is_token_expired(token_data: Optional[Dict[str, Any]], now: Optional[float] = None) -> bool:
    """Check if the cached token is missing or about to expire."""
    if not token_data or "expires_at" not in token_data:
        return True
    now = time.time() if now is None else now
    return now >= token_data["expires_at"] - TOKEN_EXPIRY_BUFFER


def _raise_for_status(response: requests.Response) -> None:
    if response.ok:
        return
    status = response.status_code
    if status == 429:
        raise QuotaExceededError("Spotify rate limit reached")
    if status in (401, 403):
        raise AuthenticationError(f"Spotify request unauthorized ({status})")
    if status == 404:
        raise InvalidReferenceError("Spotify resource not found")
    if status >= 500:
        raise ResolverUnavailableError(f"Spotify server error: {status}")
    raise ResolverError(f"Spotify request failed ({status})")


class SpotifyClient:
    """Blocking Spotify Web API client with a cached access token."""

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.client_id = client_id
        self.client_secret = client_secret
        self.timeout = timeout
        self._session = session or requests.Session()
        self._clock = clock
        self._token_data: Optional[Dict[str, Any]] = None

    @property
    def configured(self) -> bool:
        return bool(self.client_id and self.client_secret)

    def _ensure_valid_token(self) -> str:
        """Return a valid access token, fetching a new one when expired.

        Raises:
            AuthenticationError: If credentials are missing or rejected
        """
        if not is_token_expired(self._token_data, now=self._clock()):
            return self._token_data["access_token"]

        if not self.configured:
            raise AuthenticationError("Spotify credentials not configured")

        basic = base64.b64encode(
            f"{self.client_id}:{self.client_secret}".encode()
        ).decode()
        try:
            response = self._session.post(
                TOKEN_URL,
                headers={
                    "Authorization": f"Basic {basic}",
                    "Content-Type": "application/x-www-form-urlencoded",
                },
                data={"grant_type": "client_credentials"},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise ResolverUnavailableError(f"Spotify token request failed: {e}") from e

        if not response.ok:
            raise AuthenticationError(
                f"Spotify token request rejected ({response.status_code})"
            )

        try:
            data = response.json()
            access_token = data["access_token"]
        except (ValueError, KeyError, TypeError) as e:
            raise ResolverUnavailableError("Spotify returned an invalid token response") from e

        self._token_data = {
            "access_token": access_token,
            "expires_at": self._clock() + data.get("expires_in", 3600),
        }
        logger.debug("Spotify access token refreshed")
        return self._token_data["access_token"]

    def _get(self, url: str, params: Dict[str, Any]) -> Dict[str, Any]:
        token = self._ensure_valid_token()
        try:
            response = self._session.get(
                url,
                params=params,
                headers={"Authorization": f"Bearer {token}"},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise ResolverUnavailableError(f"Spotify request failed: {e}") from e
        if response.status_code == 401:
            # Token revoked early; drop it so the next call fetches a new one
            self._token_data = None
        _raise_for_status(response)
        try:
            return response.json()
        except ValueError as e:
            raise ResolverUnavailableError("Spotify returned invalid JSON") from e

    def search_track(self, query: str) -> Optional[TrackDescriptor]:
        """Best matching track for a free-text query, or None."""
        data = self._get(
            f"{API_BASE}/search", {"q": query, "type": "track", "limit": 1}
        )
        for track in data.get("tracks", {}).get("items", []):
            descriptor = _normalize_spotify_track(track)
            if descriptor:
                return descriptor
        return None

    def get_playlist_tracks(self, playlist_id: str, limit: int = 30) -> List[TrackDescriptor]:
        """First ``limit`` tracks of a playlist, skipping local and removed ones."""
        data = self._get(
            f"{API_BASE}/playlists/{playlist_id}/tracks", {"limit": limit}
        )
        tracks = []
        for item in data.get("items", []):
            track = item.get("track")
            if not track or track.get("is_local"):  # Skip local files and removed tracks
                continue
            descriptor = _normalize_spotify_track(track)
            if descriptor:
                tracks.append(descriptor)
        logger.debug(f"Fetched {len(tracks)} tracks for Spotify playlist {playlist_id}")
        return tracks[:limit]

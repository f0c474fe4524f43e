"""
Content resolution for the radio core.

Maps free-text queries, related-item keys and playlist references to
PlayableItems. The blocking API clients run in the threadpool so the event
loop keeps serving other sessions while a lookup is in flight.
"""

from enum import Enum
from typing import List, Optional, Protocol, Sequence, Union

from fastapi.concurrency import run_in_threadpool
from loguru import logger

from chocomenta.domain.radio.models import PlayableItem, TrackDescriptor

from . import spotify, youtube
from .exceptions import CredentialsExhaustedError, InvalidReferenceError, ResolverError
from .spotify import SpotifyClient
from .youtube import YouTubeClient

ResolvedEntry = Union[PlayableItem, TrackDescriptor]


class ReferenceKind(str, Enum):
    """What a submitted URL or text refers to."""

    YOUTUBE_PLAYLIST = "youtube_playlist"
    SPOTIFY_PLAYLIST = "spotify_playlist"
    VIDEO = "video"
    QUERY = "query"


def classify_reference(reference: str) -> ReferenceKind:
    """Classify submitted text as a playlist, a single video, or a search query."""
    text = reference.strip()
    if spotify.is_playlist_url(text):
        return ReferenceKind.SPOTIFY_PLAYLIST
    if youtube.is_playlist_url(text):
        return ReferenceKind.YOUTUBE_PLAYLIST
    if youtube.extract_video_id(text):
        return ReferenceKind.VIDEO
    return ReferenceKind.QUERY


class ContentResolver(Protocol):
    """Interface the radio core uses to find content.

    Every method raises ResolverError (or a subclass) when the lookup
    failed, and returns an empty result when it simply found nothing.
    """

    async def search(self, query: str, limit: int = 5) -> List[PlayableItem]: ...

    async def search_by_query(self, query: str) -> Optional[PlayableItem]: ...

    async def search_related(self, external_id: str, limit: int = 5) -> List[PlayableItem]: ...

    async def normalize_query(self, query: str) -> Optional[str]: ...

    async def resolve_playlist(self, reference: str) -> List[ResolvedEntry]: ...

    async def resolve_tracks(self, tracks: Sequence[TrackDescriptor]) -> List[PlayableItem]: ...


class ApiContentResolver:
    """ContentResolver backed by the YouTube and Spotify web APIs."""

    def __init__(
        self,
        youtube_client: YouTubeClient,
        spotify_client: Optional[SpotifyClient] = None,
        youtube_playlist_limit: int = 50,
        spotify_playlist_limit: int = 30,
    ):
        self.youtube = youtube_client
        self.spotify = spotify_client
        self.youtube_playlist_limit = youtube_playlist_limit
        self.spotify_playlist_limit = spotify_playlist_limit

    async def search(self, query: str, limit: int = 5) -> List[PlayableItem]:
        return await run_in_threadpool(self.youtube.search, query, limit)

    async def search_by_query(self, query: str) -> Optional[PlayableItem]:
        results = await self.search(query, limit=1)
        return results[0] if results else None

    async def search_related(self, external_id: str, limit: int = 5) -> List[PlayableItem]:
        return await run_in_threadpool(self.youtube.search_related, external_id, limit)

    async def normalize_query(self, query: str) -> Optional[str]:
        """Rewrite a query as "<track> <first artist>" using Spotify search.

        Returns the query unchanged when Spotify is not configured, and
        None when Spotify found no matching track.
        """
        if not self.spotify or not self.spotify.configured:
            return query
        track = await run_in_threadpool(self.spotify.search_track, query)
        if track is None:
            return None
        if track.artist_names:
            return f"{track.name} {track.artist_names[0]}"
        return track.name

    async def resolve_playlist(self, reference: str) -> List[ResolvedEntry]:
        """Expand a playlist reference into its entries, in playlist order.

        YouTube playlists yield PlayableItems directly; Spotify playlists
        yield TrackDescriptors that still need a search.

        Raises:
            InvalidReferenceError: If the reference is not a supported playlist
        """
        kind = classify_reference(reference)
        if kind == ReferenceKind.YOUTUBE_PLAYLIST:
            playlist_id = youtube.extract_playlist_id(reference)
            return await run_in_threadpool(
                self.youtube.playlist_items, playlist_id, self.youtube_playlist_limit
            )
        if kind == ReferenceKind.SPOTIFY_PLAYLIST:
            if not self.spotify or not self.spotify.configured:
                raise InvalidReferenceError("Spotify playlists are not enabled")
            playlist_id = spotify.extract_playlist_id(reference)
            return await run_in_threadpool(
                self.spotify.get_playlist_tracks, playlist_id, self.spotify_playlist_limit
            )
        raise InvalidReferenceError(f"Not a playlist reference: {reference}")

    async def resolve_tracks(self, tracks: Sequence[TrackDescriptor]) -> List[PlayableItem]:
        """Search each descriptor and keep the top hit, preserving order.

        A failed lookup skips that track. Running out of credentials stops
        the loop; whatever was found so far is returned.
        """
        results: List[PlayableItem] = []
        for track in tracks:
            try:
                item = await self.search_by_query(track.query)
            except CredentialsExhaustedError:
                if not results:
                    raise
                logger.warning(
                    f"Credentials exhausted after {len(results)}/{len(tracks)} tracks"
                )
                break
            except ResolverError as e:
                logger.warning(f"Skipping track {track.query!r}: {e}")
                continue
            if item:
                results.append(item)
        return results

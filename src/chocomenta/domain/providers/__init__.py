"""
Content providers: YouTube and Spotify API clients behind the ContentResolver.
"""

from typing import Optional

from chocomenta.core.config import Config

from .credentials import CredentialPool
from .exceptions import (
    AuthenticationError,
    CredentialsExhaustedError,
    InvalidReferenceError,
    QuotaExceededError,
    ResolverError,
    ResolverUnavailableError,
)
from .resolver import (
    ApiContentResolver,
    ContentResolver,
    ReferenceKind,
    classify_reference,
)
from .spotify import SpotifyClient
from .youtube import YouTubeClient


def build_resolver(config: Config) -> ApiContentResolver:
    """Create the API-backed resolver from configuration."""
    pool = CredentialPool(
        config.youtube.api_keys,
        cooldown_seconds=config.youtube.quota_cooldown_seconds,
    )
    youtube_client = YouTubeClient(pool, timeout=config.youtube.timeout)

    spotify_client: Optional[SpotifyClient] = None
    if config.spotify.enabled:
        spotify_client = SpotifyClient(
            config.spotify.client_id,
            config.spotify.client_secret,
            timeout=config.spotify.timeout,
        )

    return ApiContentResolver(
        youtube_client,
        spotify_client,
        youtube_playlist_limit=config.youtube.playlist_limit,
        spotify_playlist_limit=config.spotify.playlist_limit,
    )


__all__ = [
    "ApiContentResolver",
    "AuthenticationError",
    "ContentResolver",
    "CredentialPool",
    "CredentialsExhaustedError",
    "InvalidReferenceError",
    "QuotaExceededError",
    "ReferenceKind",
    "ResolverError",
    "ResolverUnavailableError",
    "SpotifyClient",
    "YouTubeClient",
    "build_resolver",
    "classify_reference",
]

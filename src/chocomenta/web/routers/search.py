"""Search, playlist import and daily announcement endpoints."""

from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException
from loguru import logger

from chocomenta.core.config import Config
from chocomenta.domain.providers.exceptions import InvalidReferenceError, ResolverError
from chocomenta.domain.providers.resolver import (
    ContentResolver,
    ReferenceKind,
    classify_reference,
)
from chocomenta.domain.radio.announcements import AnnouncementBook
from chocomenta.domain.radio.controller import RadioController

from ..deps import get_announcements, get_config, get_controller, get_resolver
from ..schemas import PlaylistImportResponse, SearchResponse, SearchResult

router = APIRouter()


@router.get("/search", response_model=SearchResponse)
async def search(
    q: Optional[str] = None,
    resolver: ContentResolver = Depends(get_resolver),
    config: Config = Depends(get_config),
) -> SearchResponse:
    """Search for playable videos.

    The query is first normalised to "<track> <artist>" through Spotify
    (when configured), then searched on YouTube.
    """
    if not q or not q.strip():
        raise HTTPException(status_code=400, detail="Query parameter 'q' is required")

    try:
        query = await resolver.normalize_query(q.strip())
        if query is None:
            return SearchResponse(results=[])
        items = await resolver.search(query, limit=config.youtube.search_limit)
    except ResolverError as e:
        logger.warning(f"Search failed for {q!r}: {e}")
        raise HTTPException(status_code=502, detail="Search failed, please try again later")

    return SearchResponse(
        results=[SearchResult(video_id=item.external_id, title=item.title) for item in items]
    )


@router.get("/spotify-playlist", response_model=PlaylistImportResponse)
async def import_spotify_playlist(
    url: Optional[str] = None,
    controller: RadioController = Depends(get_controller),
) -> PlaylistImportResponse:
    """Queue the tracks of a Spotify playlist at the front of the queue."""
    if not url or not url.strip():
        raise HTTPException(status_code=400, detail="Query parameter 'url' is required")
    if classify_reference(url) != ReferenceKind.SPOTIFY_PLAYLIST:
        raise HTTPException(status_code=400, detail="Not a Spotify playlist link")

    try:
        items = await controller.import_playlist(url.strip())
    except InvalidReferenceError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except ResolverError as e:
        logger.warning(f"Spotify playlist import failed for {url}: {e}")
        raise HTTPException(status_code=502, detail="Could not process the playlist")

    return PlaylistImportResponse(
        added=len(items),
        results=[SearchResult(video_id=item.external_id, title=item.title) for item in items],
    )


@router.get("/surprise")
def get_surprise(
    announcements: AnnouncementBook = Depends(get_announcements),
) -> Optional[dict[str, Any]]:
    """Today's announcement (UTC date), or null."""
    return announcements.for_date()

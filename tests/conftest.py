"""Shared fixtures: a recording broadcaster and a scriptable content resolver."""

import random
from typing import Any, Optional

import pytest

from chocomenta.domain.radio.autoplay import AutoplayEngine
from chocomenta.domain.radio.controller import RadioController
from chocomenta.domain.radio.models import PlayableItem, TrackDescriptor
from chocomenta.domain.radio.sessions import SessionRegistry


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


class RecordingBroadcaster:
    """Broadcaster double that keeps every outbound event."""

    def __init__(self):
        self.sent: list[dict[str, Any]] = []

    async def send_to(self, session_id: str, event: str, data: Any) -> None:
        self.sent.append({"to": session_id, "event": event, "data": data, "exclude": None})

    async def broadcast(self, event: str, data: Any, exclude: Optional[str] = None) -> None:
        self.sent.append({"to": "*", "event": event, "data": data, "exclude": exclude})

    def events(self, event: str) -> list[dict[str, Any]]:
        return [m for m in self.sent if m["event"] == event]

    def last(self, event: str) -> Optional[dict[str, Any]]:
        matching = self.events(event)
        return matching[-1] if matching else None

    def clear(self) -> None:
        self.sent.clear()


class StubResolver:
    """ContentResolver double with canned results and injectable failures."""

    def __init__(self):
        self.search_results: dict[str, list[PlayableItem]] = {}
        self.related_results: dict[str, list[PlayableItem]] = {}
        self.playlists: dict[str, list[Any]] = {}
        self.normalized: dict[str, Optional[str]] = {}
        self.search_error: Optional[Exception] = None
        self.related_error: Optional[Exception] = None
        self.playlist_error: Optional[Exception] = None
        self.calls: list[tuple] = []

    async def search(self, query: str, limit: int = 5) -> list[PlayableItem]:
        self.calls.append(("search", query, limit))
        if self.search_error:
            raise self.search_error
        return list(self.search_results.get(query, []))[:limit]

    async def search_by_query(self, query: str) -> Optional[PlayableItem]:
        results = await self.search(query, limit=1)
        return results[0] if results else None

    async def search_related(self, external_id: str, limit: int = 5) -> list[PlayableItem]:
        self.calls.append(("related", external_id, limit))
        if self.related_error:
            raise self.related_error
        return list(self.related_results.get(external_id, []))[:limit]

    async def normalize_query(self, query: str) -> Optional[str]:
        self.calls.append(("normalize", query))
        return self.normalized.get(query, query)

    async def resolve_playlist(self, reference: str) -> list[Any]:
        self.calls.append(("playlist", reference))
        if self.playlist_error:
            raise self.playlist_error
        return list(self.playlists.get(reference, []))

    async def resolve_tracks(self, tracks: list[TrackDescriptor]) -> list[PlayableItem]:
        results = []
        for track in tracks:
            item = await self.search_by_query(track.query)
            if item:
                results.append(item)
        return results


def make_item(external_id: str, title: Optional[str] = None) -> PlayableItem:
    return PlayableItem(external_id=external_id, title=title or f"Song {external_id}")


@pytest.fixture
def broadcaster() -> RecordingBroadcaster:
    return RecordingBroadcaster()


@pytest.fixture
def resolver() -> StubResolver:
    return StubResolver()


@pytest.fixture
def rng() -> random.Random:
    return random.Random(1234)


@pytest.fixture
def controller(broadcaster, resolver, rng) -> RadioController:
    """Controller wired to the doubles, with autoplay enabled."""
    return RadioController(
        broadcaster,
        resolver,
        autoplay=AutoplayEngine(resolver, candidate_count=5, rng=rng),
        sessions=SessionRegistry(rng=rng),
    )


@pytest.fixture
def item():
    """Factory for PlayableItems: item("a") -> PlayableItem(videoId="a", title="Song a")."""
    return make_item

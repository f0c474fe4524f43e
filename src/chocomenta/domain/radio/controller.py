"""
Shared playback state machine.

Owns the single RadioState and applies participant actions to it: queue
edits, transport updates, end-of-track advance, and master election.

Master authority is a cooperative convention, not a security boundary. The
first session to connect while nobody holds it becomes master, and any
session that sends a transport update (``state_change``) claims it
(last writer wins). Master-only actions from other sessions are ignored
without an error.

Handlers run on a single event loop and never run in parallel, but they
interleave at every resolver call. There is no transactional isolation: a
clear issued while a submission is resolving can be followed by the late
append of that submission, and an autoplay pick that resolves after the
master changed the state is still applied.
"""

from typing import Any, Optional, Protocol, Sequence

from loguru import logger

from chocomenta.domain.providers import youtube
from chocomenta.domain.providers.exceptions import (
    InvalidReferenceError,
    ResolverError,
)
from chocomenta.domain.providers.resolver import (
    ContentResolver,
    ReferenceKind,
    classify_reference,
)

from .autoplay import AutoplayEngine
from .models import (
    ChatMessage,
    PlayableItem,
    RadioState,
    Session,
    SessionId,
    StatePatch,
    TrackDescriptor,
)
from .sessions import SessionRegistry

# Outbound event names
SYNC_STATE = "sync-state"
STATE_UPDATE = "state-update"
QUEUE_UPDATE = "queue-update"
USER_COUNT_UPDATE = "user-count-update"
NEW_MESSAGE = "new-message"


class Broadcaster(Protocol):
    """Fire-and-forget delivery of events to connected sessions."""

    async def send_to(self, session_id: SessionId, event: str, data: Any) -> None: ...

    async def broadcast(
        self, event: str, data: Any, exclude: Optional[SessionId] = None
    ) -> None: ...


class RadioController:
    """The playback state machine for the one shared room."""

    def __init__(
        self,
        broadcaster: Broadcaster,
        resolver: ContentResolver,
        autoplay: Optional[AutoplayEngine] = None,
        sessions: Optional[SessionRegistry] = None,
        system_sender: str = "Radio",
        system_color: Optional[str] = None,
    ):
        self.broadcaster = broadcaster
        self.resolver = resolver
        self.autoplay = autoplay
        self.sessions = sessions or SessionRegistry()
        self.system_sender = system_sender
        self.system_color = system_color
        self.state = RadioState()

    # === Broadcast helpers ===

    async def _broadcast_state(self, exclude: Optional[SessionId] = None) -> None:
        await self.broadcaster.broadcast(STATE_UPDATE, self.state.to_wire(), exclude=exclude)

    async def _broadcast_queue(self) -> None:
        await self.broadcaster.broadcast(QUEUE_UPDATE, self.state.queue_to_wire())

    async def _broadcast_user_count(self) -> None:
        await self.broadcaster.broadcast(USER_COUNT_UPDATE, self.sessions.count)

    async def send_snapshot(self, session_id: SessionId) -> None:
        """Send the full state to one session."""
        await self.broadcaster.send_to(session_id, SYNC_STATE, self.state.to_wire())

    async def send_system_message(
        self, text: str, session_id: Optional[SessionId] = None
    ) -> None:
        """Send a system chat message to one session, or to everyone."""
        message = ChatMessage(
            sender=self.system_sender, text=text, color=self.system_color
        ).model_dump()
        if session_id is None:
            await self.broadcaster.broadcast(NEW_MESSAGE, message)
        else:
            await self.broadcaster.send_to(session_id, NEW_MESSAGE, message)

    # === Sessions and master election ===

    def is_master(self, session_id: SessionId) -> bool:
        return (
            self.state.master_session_id is not None
            and self.state.master_session_id == session_id
        )

    async def on_connect(self, session_id: Optional[SessionId] = None) -> Session:
        """Register a session, hand it master if vacant, and sync it."""
        session = self.sessions.register(session_id)
        if self.state.master_session_id is None:
            self.state.master_session_id = session.id
            logger.info(f"Master claimed on connect: {session.id}")
        logger.info(f"Session connected: {session.id} ({self.sessions.count} online)")

        await self.send_snapshot(session.id)
        await self._broadcast_user_count()
        return session

    async def on_disconnect(self, session_id: SessionId) -> None:
        """Forget a session; a departing master leaves the seat empty."""
        self.sessions.unregister(session_id)
        if self.state.master_session_id == session_id:
            self.state.master_session_id = None
            logger.info(f"Master disconnected, seat vacant: {session_id}")
        logger.info(f"Session disconnected: {session_id} ({self.sessions.count} online)")
        await self._broadcast_user_count()

    # === Playback transitions ===

    def _stop(self) -> None:
        self.state.current_item = None
        self.state.is_playing = False

    def _play(self, item: PlayableItem) -> None:
        self.state.current_item = item
        self.state.is_playing = True
        self.state.position_seconds = 0

    async def advance(self) -> None:
        """Promote the next item to current.

        Front of the queue if there is one; otherwise an autoplay pick
        following the current item; otherwise stop.
        """
        if self.state.queue:
            self._play(self.state.queue.pop(0))
            logger.info(f"Now playing: {self.state.current_item.title!r}")
            await self._broadcast_state()
            return

        current = self.state.current_item
        if current is not None and self.autoplay is not None:
            await self._continue_with_autoplay(current)
            return

        self._stop()
        await self._broadcast_state()

    async def _continue_with_autoplay(self, current: PlayableItem) -> None:
        pick = await self.autoplay.continue_from(current)
        if pick is None:
            logger.info("Autoplay exhausted, playback stopped")
            self._stop()
            await self._broadcast_state()
            return

        self._play(pick.item)
        await self._broadcast_state()
        await self.send_system_message(f"Autoplay: now playing {pick.item.title}")

    # === Queue operations ===

    async def enqueue(self, item: PlayableItem, front: bool = True) -> None:
        """Add one item; playback starts when the room was idle."""
        await self.enqueue_many([item], front=front)

    async def enqueue_many(self, items: Sequence[PlayableItem], front: bool = True) -> int:
        """Insert items as one contiguous block, preserving their order.

        Advance runs only on the transition from an idle room (no current
        item, empty queue) to a non-empty queue; every other insert just
        publishes the queue.

        Returns:
            Number of items inserted
        """
        items = list(items)
        if not items:
            return 0

        was_idle = self.state.current_item is None and not self.state.queue
        if front:
            self.state.queue[0:0] = items
        else:
            self.state.queue.extend(items)
        logger.debug(f"Enqueued {len(items)} item(s), queue length {len(self.state.queue)}")

        if was_idle:
            await self.advance()
        else:
            await self._broadcast_queue()
        return len(items)

    async def song_ended(self, session_id: SessionId) -> None:
        """End-of-track report; only the master's report advances."""
        if not self.is_master(session_id):
            logger.debug(f"Ignoring song-ended from non-master {session_id}")
            return
        await self.advance()

    async def skip_to(self, index: int, session_id: SessionId) -> None:
        """Drop everything before ``index`` and play the item at ``index``."""
        if not self.is_master(session_id):
            logger.debug(f"Ignoring skip-to-song from non-master {session_id}")
            return
        if not 0 <= index < len(self.state.queue):
            logger.debug(f"Ignoring skip-to-song with out-of-range index {index}")
            return
        self.state.queue = self.state.queue[index:]
        await self.advance()

    async def reorder(self, items: Sequence[PlayableItem], session_id: SessionId) -> None:
        """Replace the queue wholesale with the master's ordering."""
        if not self.is_master(session_id):
            logger.debug(f"Ignoring reorder-queue from non-master {session_id}")
            return
        self.state.queue = list(items)
        await self._broadcast_queue()

    async def clear(self, session_id: SessionId) -> None:
        """Empty the queue; the current item keeps playing."""
        if not self.is_master(session_id):
            logger.debug(f"Ignoring clear-queue from non-master {session_id}")
            return
        self.state.queue = []
        await self._broadcast_queue()

    async def state_change(self, patch: StatePatch, session_id: SessionId) -> None:
        """Merge a transport update and make its sender master.

        Echoed to everyone except the sender, who already shows this state.
        """
        for name, value in patch.changes().items():
            setattr(self.state, name, list(value) if name == "queue" else value)

        if self.state.master_session_id != session_id:
            logger.info(f"Master claimed by state-change: {session_id}")
        self.state.master_session_id = session_id
        await self._broadcast_state(exclude=session_id)

    # === Submissions ===

    async def _materialize(self, entries: Sequence[Any]) -> list[PlayableItem]:
        """Turn resolved playlist entries into playable items, keeping order."""
        items: list[PlayableItem] = []
        pending: list[TrackDescriptor] = []
        for entry in entries:
            if isinstance(entry, TrackDescriptor):
                pending.append(entry)
                continue
            if pending:
                items.extend(await self.resolver.resolve_tracks(pending))
                pending = []
            items.append(entry)
        if pending:
            items.extend(await self.resolver.resolve_tracks(pending))
        return items

    async def resolve_playlist(self, reference: str) -> list[PlayableItem]:
        """Expand a YouTube or Spotify playlist into playable items.

        Raises:
            ResolverError: If the playlist could not be loaded
        """
        entries = await self.resolver.resolve_playlist(reference)
        return await self._materialize(entries)

    async def import_playlist(self, reference: str) -> list[PlayableItem]:
        """Resolve a playlist and put it at the front of the queue.

        Raises:
            ResolverError: If the playlist could not be loaded
        """
        items = await self.resolve_playlist(reference)
        await self.enqueue_many(items, front=True)
        logger.info(f"Imported {len(items)} items from {reference}")
        return items

    async def _resolve_submission(
        self, url: Optional[str], video_id: Optional[str], title: Optional[str]
    ) -> list[PlayableItem]:
        if url:
            kind = classify_reference(url)
            if kind in (ReferenceKind.YOUTUBE_PLAYLIST, ReferenceKind.SPOTIFY_PLAYLIST):
                return await self.resolve_playlist(url)
            if not video_id and kind == ReferenceKind.VIDEO:
                video_id = youtube.extract_video_id(url)
            elif not video_id:
                item = await self.resolver.search_by_query(url)
                return [item] if item else []

        if video_id:
            return [PlayableItem(external_id=video_id, title=title or "")]
        return []

    async def submit_reference(
        self,
        session_id: SessionId,
        url: Optional[str] = None,
        video_id: Optional[str] = None,
        title: Optional[str] = None,
    ) -> int:
        """Resolve a submitted link, id or query and queue the result at the front.

        Resolver failures are reported to the submitter only, as a system
        chat message; the shared state is never touched on failure.

        Returns:
            Number of items queued
        """
        try:
            items = await self._resolve_submission(url, video_id, title)
        except InvalidReferenceError as e:
            logger.warning(f"Invalid submission from {session_id}: {e}")
            await self.send_system_message(
                "That link could not be read as a video or playlist.", session_id
            )
            return 0
        except ResolverError as e:
            logger.warning(f"Resolving submission from {session_id} failed: {e}")
            await self.send_system_message(
                "The music search is unavailable right now, please try again later.",
                session_id,
            )
            return 0

        if not items:
            await self.send_system_message("No playable results found.", session_id)
            return 0
        return await self.enqueue_many(items, front=True)

    # === Chat ===

    async def chat_message(
        self, session_id: SessionId, text: str, name: Optional[str] = None
    ) -> None:
        """Relay a chat message to everyone, in the sender's color."""
        text = (text or "").strip()
        if not text:
            return
        session = self.sessions.get(session_id)
        sender = (name or "").strip() or (
            session.label if session else f"User {session_id[:4]}"
        )
        message = ChatMessage(
            sender=sender, text=text, color=session.color if session else None
        )
        await self.broadcaster.broadcast(NEW_MESSAGE, message.model_dump())

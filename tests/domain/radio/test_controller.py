"""Tests for the shared playback state machine."""

import anyio
import pytest

from chocomenta.domain.providers.exceptions import (
    InvalidReferenceError,
    QuotaExceededError,
    ResolverUnavailableError,
)
from chocomenta.domain.radio.controller import (
    NEW_MESSAGE,
    QUEUE_UPDATE,
    STATE_UPDATE,
    SYNC_STATE,
    USER_COUNT_UPDATE,
    RadioController,
)
from chocomenta.domain.radio.models import StatePatch, TrackDescriptor

pytestmark = pytest.mark.anyio


def queue_ids(controller: RadioController) -> list[str]:
    return [i.external_id for i in controller.state.queue]


def current_id(controller: RadioController):
    current = controller.state.current_item
    return current.external_id if current else None


class TestAdvance:
    """Tests for Advance()."""

    async def test_empty_advance_is_idempotent(self, controller, broadcaster) -> None:
        """Advancing an idle room stops cleanly, however often it is called."""
        await controller.advance()
        await controller.advance()

        assert controller.state.current_item is None
        assert controller.state.is_playing is False
        assert controller.state.queue == []
        assert len(broadcaster.events(STATE_UPDATE)) == 2

    async def test_advance_pops_front_and_resets_position(self, controller, item) -> None:
        controller.state.queue = [item("a"), item("b")]
        controller.state.position_seconds = 93.5

        await controller.advance()

        assert current_id(controller) == "a"
        assert queue_ids(controller) == ["b"]
        assert controller.state.is_playing is True
        assert controller.state.position_seconds == 0

    async def test_advance_broadcasts_full_state(self, controller, broadcaster, item) -> None:
        controller.state.queue = [item("a")]

        await controller.advance()

        message = broadcaster.last(STATE_UPDATE)
        assert message["to"] == "*"
        assert message["exclude"] is None
        assert message["data"]["currentVideo"] == {"videoId": "a", "title": "Song a"}
        assert message["data"]["isPlaying"] is True
        assert message["data"]["queue"] == []


class TestEnqueue:
    """Tests for Enqueue and the idle-to-playing transition."""

    async def test_front_enqueue_order(self, controller, item) -> None:
        """Enqueue(A, front) then Enqueue(B, front) yields [B, A]."""
        controller.state.current_item = item("playing")

        await controller.enqueue(item("a"), front=True)
        await controller.enqueue(item("b"), front=True)
        assert queue_ids(controller) == ["b", "a"]

        await controller.advance()
        assert current_id(controller) == "b"
        assert queue_ids(controller) == ["a"]

    async def test_back_enqueue_appends(self, controller, item) -> None:
        controller.state.current_item = item("playing")

        await controller.enqueue(item("a"), front=False)
        await controller.enqueue(item("b"), front=False)

        assert queue_ids(controller) == ["a", "b"]

    async def test_only_first_enqueue_on_idle_room_advances(
        self, controller, broadcaster, item
    ) -> None:
        """A, B, C prepended to an idle room: A plays, queue ends as [C, B]."""
        await controller.enqueue(item("a"), front=True)
        await controller.enqueue(item("b"), front=True)
        await controller.enqueue(item("c"), front=True)

        assert current_id(controller) == "a"
        assert queue_ids(controller) == ["c", "b"]
        assert controller.state.is_playing is True
        assert len(broadcaster.events(STATE_UPDATE)) == 1
        assert len(broadcaster.events(QUEUE_UPDATE)) == 2

    async def test_enqueue_with_current_item_broadcasts_queue_only(
        self, controller, broadcaster, item
    ) -> None:
        controller.state.current_item = item("playing")

        await controller.enqueue(item("a"))

        assert broadcaster.events(STATE_UPDATE) == []
        assert broadcaster.last(QUEUE_UPDATE)["data"] == [{"videoId": "a", "title": "Song a"}]

    async def test_enqueue_many_keeps_block_order_at_front(self, controller, item) -> None:
        controller.state.current_item = item("playing")
        controller.state.queue = [item("old")]

        added = await controller.enqueue_many([item("p1"), item("p2"), item("p3")])

        assert added == 3
        assert queue_ids(controller) == ["p1", "p2", "p3", "old"]

    async def test_enqueue_many_on_idle_room_plays_first_of_block(self, controller, item) -> None:
        await controller.enqueue_many([item("p1"), item("p2")])

        assert current_id(controller) == "p1"
        assert queue_ids(controller) == ["p2"]

    async def test_enqueue_many_empty_is_noop(self, controller, broadcaster) -> None:
        assert await controller.enqueue_many([]) == 0
        assert broadcaster.sent == []


class TestMasterElection:
    """Tests for master assignment on connect, state-change and disconnect."""

    async def test_first_connect_claims_master(self, controller) -> None:
        await controller.on_connect("s1")
        await controller.on_connect("s2")

        assert controller.state.master_session_id == "s1"
        assert controller.is_master("s1")
        assert not controller.is_master("s2")

    async def test_connect_sends_snapshot_to_new_session_only(
        self, controller, broadcaster, item
    ) -> None:
        controller.state.current_item = item("a")

        await controller.on_connect("s1")

        snapshot = broadcaster.last(SYNC_STATE)
        assert snapshot["to"] == "s1"
        assert snapshot["data"]["currentVideo"]["videoId"] == "a"
        assert snapshot["data"]["master"] == "s1"
        assert broadcaster.last(USER_COUNT_UPDATE)["data"] == 1

    async def test_connect_generates_session_id(self, controller) -> None:
        session = await controller.on_connect()

        assert session.id
        assert session.color in controller.sessions.colors
        assert controller.state.master_session_id == session.id

    async def test_master_disconnect_clears_master(self, controller, broadcaster) -> None:
        await controller.on_connect("m")
        await controller.on_connect("n")

        await controller.on_disconnect("m")

        assert controller.state.master_session_id is None
        assert broadcaster.last(USER_COUNT_UPDATE)["data"] == 1

    async def test_non_master_disconnect_keeps_master(self, controller) -> None:
        await controller.on_connect("m")
        await controller.on_connect("n")

        await controller.on_disconnect("n")

        assert controller.state.master_session_id == "m"

    async def test_no_automatic_successor_until_next_connect(self, controller) -> None:
        await controller.on_connect("m")
        await controller.on_connect("n")
        await controller.on_disconnect("m")

        assert controller.state.master_session_id is None

        await controller.on_connect("late")
        assert controller.state.master_session_id == "late"

    async def test_state_change_reassigns_master(self, controller, item) -> None:
        await controller.on_connect("s1")
        await controller.on_connect("s2")
        controller.state.current_item = item("a")
        controller.state.queue = [item("b")]

        await controller.state_change(StatePatch.model_validate({"isPlaying": False}), "s2")
        assert controller.state.master_session_id == "s2"

        # The previous master's end-of-track report is now ignored
        await controller.song_ended("s1")
        assert current_id(controller) == "a"
        assert queue_ids(controller) == ["b"]

    async def test_state_change_merges_and_skips_sender(self, controller, broadcaster, item) -> None:
        await controller.on_connect("s1")
        controller.state.current_item = item("a")
        controller.state.is_playing = True

        await controller.state_change(
            StatePatch.model_validate({"isPlaying": False, "currentTime": 42.5}), "s1"
        )

        assert controller.state.is_playing is False
        assert controller.state.position_seconds == 42.5
        assert current_id(controller) == "a"
        message = broadcaster.last(STATE_UPDATE)
        assert message["exclude"] == "s1"
        assert message["data"]["currentTime"] == 42.5

    async def test_state_change_ignores_master_field_in_payload(self, controller) -> None:
        await controller.state_change(StatePatch.model_validate({"master": "someone-else"}), "s3")

        assert controller.state.master_session_id == "s3"

    async def test_state_change_can_clear_current_item(self, controller, item) -> None:
        controller.state.current_item = item("a")

        await controller.state_change(StatePatch.model_validate({"currentVideo": None}), "s1")

        assert controller.state.current_item is None


class TestMasterOnlyActions:
    """Tests for song-ended, skip-to-song, reorder and clear authority."""

    @pytest.fixture
    async def room(self, controller, item):
        await controller.on_connect("s1")
        await controller.on_connect("s2")
        controller.state.current_item = item("now")
        controller.state.is_playing = True
        controller.state.queue = [item("a"), item("b"), item("c")]
        return controller

    async def test_skip_to_by_non_master_is_noop(self, room) -> None:
        await room.skip_to(1, "s2")

        assert current_id(room) == "now"
        assert queue_ids(room) == ["a", "b", "c"]

    async def test_skip_to_by_master_drops_earlier_entries(self, room) -> None:
        await room.skip_to(1, "s1")

        assert current_id(room) == "b"
        assert queue_ids(room) == ["c"]

    @pytest.mark.parametrize("index", [3, 10, -1])
    async def test_skip_to_out_of_range_is_noop(self, room, index) -> None:
        await room.skip_to(index, "s1")

        assert current_id(room) == "now"
        assert queue_ids(room) == ["a", "b", "c"]

    async def test_song_ended_by_master_advances(self, room) -> None:
        await room.song_ended("s1")

        assert current_id(room) == "a"
        assert queue_ids(room) == ["b", "c"]

    async def test_song_ended_by_non_master_is_ignored(self, room, broadcaster) -> None:
        broadcaster.clear()

        await room.song_ended("s2")

        assert current_id(room) == "now"
        assert broadcaster.sent == []

    async def test_reorder_by_master_replaces_queue(self, room, broadcaster, item) -> None:
        await room.reorder([item("c"), item("x")], "s1")

        assert queue_ids(room) == ["c", "x"]
        assert broadcaster.last(QUEUE_UPDATE)["data"][0]["videoId"] == "c"

    async def test_reorder_by_non_master_is_ignored(self, room, item) -> None:
        await room.reorder([], "s2")

        assert queue_ids(room) == ["a", "b", "c"]

    async def test_clear_by_master_keeps_current_item(self, room, broadcaster) -> None:
        await room.clear("s1")

        assert room.state.queue == []
        assert current_id(room) == "now"
        assert broadcaster.last(QUEUE_UPDATE)["data"] == []

    async def test_clear_by_non_master_is_ignored(self, room) -> None:
        await room.clear("s2")

        assert queue_ids(room) == ["a", "b", "c"]


class TestAutoplay:
    """Tests for continuation when the queue runs dry."""

    @pytest.fixture
    async def ending(self, controller, item):
        """Master is playing the last item of an empty queue."""
        await controller.on_connect("m")
        controller.state.current_item = item("x", "Song X - Artist")
        controller.state.is_playing = True
        return controller

    async def test_falls_back_to_title_search(self, ending, resolver, item) -> None:
        candidate = item("fallback", "Song X (live)")
        resolver.search_results["Song X - Artist"] = [candidate]

        await ending.song_ended("m")

        assert ending.state.current_item == candidate
        assert ending.state.is_playing is True
        assert ("related", "x", 5) in resolver.calls
        assert ("search", "Song X - Artist", 5) in resolver.calls

    async def test_stops_when_both_tiers_are_empty(self, ending, broadcaster) -> None:
        await ending.song_ended("m")

        assert ending.state.current_item is None
        assert ending.state.is_playing is False
        assert broadcaster.last(STATE_UPDATE)["data"]["currentVideo"] is None

    async def test_related_failure_uses_fallback(self, ending, resolver, item) -> None:
        resolver.related_error = QuotaExceededError("quota")
        resolver.search_results["Song X - Artist"] = [item("fb")]

        await ending.song_ended("m")

        assert current_id(ending) == "fb"

    async def test_both_tiers_failing_stops_cleanly(self, ending, resolver) -> None:
        resolver.related_error = ResolverUnavailableError("down")
        resolver.search_error = ResolverUnavailableError("down")

        await ending.song_ended("m")

        assert ending.state.current_item is None
        assert ending.state.is_playing is False

    async def test_picks_among_related_candidates(self, ending, resolver, item) -> None:
        candidates = [item(f"r{i}") for i in range(5)]
        resolver.related_results["x"] = candidates

        await ending.song_ended("m")

        assert ending.state.current_item in candidates
        assert ending.state.position_seconds == 0
        assert not any(call[0] == "search" for call in resolver.calls)

    async def test_announces_pick_to_everyone(self, ending, resolver, broadcaster, item) -> None:
        resolver.related_results["x"] = [item("r1", "Related One")]

        await ending.song_ended("m")

        message = broadcaster.last(NEW_MESSAGE)
        assert message["to"] == "*"
        assert "Related One" in message["data"]["text"]
        assert message["data"]["sender"] == "Radio"

    async def test_state_change_during_lookup_does_not_cancel_pick(
        self, ending, resolver, item
    ) -> None:
        """A pick that resolves after the master changed state is still applied."""
        gate = anyio.Event()
        pick = item("related", "Related One")

        async def slow_related(external_id, limit=5):
            await gate.wait()
            return [pick]

        resolver.search_related = slow_related

        async with anyio.create_task_group() as tg:
            tg.start_soon(ending.song_ended, "m")
            await anyio.sleep(0.01)
            await ending.state_change(
                StatePatch.model_validate({"currentVideo": None, "isPlaying": False}), "m"
            )
            await ending.clear("m")
            assert ending.state.current_item is None
            gate.set()

        assert ending.state.current_item == pick
        assert ending.state.is_playing is True

    async def test_disabled_autoplay_stops(self, broadcaster, resolver, item) -> None:
        controller = RadioController(broadcaster, resolver, autoplay=None)
        await controller.on_connect("m")
        controller.state.current_item = item("x")
        resolver.related_results["x"] = [item("r1")]

        await controller.song_ended("m")

        assert controller.state.current_item is None
        assert resolver.calls == []


class TestSubmitReference:
    """Tests for url-submitted resolution."""

    async def test_video_id_with_title(self, controller) -> None:
        await controller.on_connect("s1")

        added = await controller.submit_reference("s1", video_id="abcdefghijk", title="Picked")

        assert added == 1
        assert current_id(controller) == "abcdefghijk"
        assert controller.state.current_item.title == "Picked"

    async def test_video_url_is_parsed(self, controller, item) -> None:
        controller.state.current_item = item("playing")

        await controller.submit_reference("s1", url="https://youtu.be/dQw4w9WgXcQ", title="Rick")

        assert queue_ids(controller) == ["dQw4w9WgXcQ"]

    async def test_youtube_playlist_goes_to_front_in_order(self, controller, resolver, item) -> None:
        url = "https://www.youtube.com/watch?v=aaaaaaaaaaa&list=PL123"
        resolver.playlists[url] = [item("p1"), item("p2"), item("p3")]
        controller.state.current_item = item("playing")
        controller.state.queue = [item("old")]

        added = await controller.submit_reference("s1", url=url)

        assert added == 3
        assert queue_ids(controller) == ["p1", "p2", "p3", "old"]

    async def test_spotify_playlist_tracks_are_searched(self, controller, resolver, item) -> None:
        url = "https://open.spotify.com/playlist/37i9dQZF1DXcBWIGoYBM5M?si=x"
        resolver.playlists[url] = [
            TrackDescriptor(name="One", artist_names=("Band",)),
            TrackDescriptor(name="Missing", artist_names=()),
            TrackDescriptor(name="Two", artist_names=("A", "B")),
        ]
        resolver.search_results["One Band"] = [item("y1")]
        resolver.search_results["Two A, B"] = [item("y2")]

        await controller.submit_reference("s1", url=url)

        assert current_id(controller) == "y1"
        assert queue_ids(controller) == ["y2"]

    async def test_free_text_is_searched(self, controller, resolver, item) -> None:
        resolver.search_results["never gonna give you up"] = [item("rick")]

        await controller.submit_reference("s1", url="never gonna give you up")

        assert current_id(controller) == "rick"

    async def test_resolver_failure_reported_to_submitter_only(
        self, controller, resolver, broadcaster, item
    ) -> None:
        url = "https://www.youtube.com/playlist?list=PLbroken"
        resolver.playlist_error = QuotaExceededError("quota")
        controller.state.current_item = item("playing")
        controller.state.queue = [item("a")]
        broadcaster.clear()

        added = await controller.submit_reference("s2", url=url)

        assert added == 0
        assert queue_ids(controller) == ["a"]
        assert current_id(controller) == "playing"
        assert [m["event"] for m in broadcaster.sent] == [NEW_MESSAGE]
        assert broadcaster.sent[0]["to"] == "s2"

    async def test_invalid_reference_reported(self, controller, resolver, broadcaster) -> None:
        resolver.playlist_error = InvalidReferenceError("bad")

        await controller.submit_reference("s2", url="https://open.spotify.com/playlist/")

        message = broadcaster.last(NEW_MESSAGE)
        assert message["to"] == "s2"
        assert controller.state.current_item is None

    async def test_no_results_reported(self, controller, broadcaster) -> None:
        added = await controller.submit_reference("s2", url="nothing matches this")

        assert added == 0
        message = broadcaster.last(NEW_MESSAGE)
        assert message["to"] == "s2"
        assert "No playable results" in message["data"]["text"]

    async def test_clear_during_resolution_does_not_cancel_late_append(
        self, controller, resolver, item
    ) -> None:
        """A clear issued mid-resolution is followed by the late append."""
        url = "https://www.youtube.com/playlist?list=PLslow"
        gate = anyio.Event()

        async def slow_playlist(reference):
            await gate.wait()
            return [item("late")]

        resolver.resolve_playlist = slow_playlist
        await controller.on_connect("m")
        controller.state.current_item = item("playing")
        controller.state.queue = [item("a")]

        async with anyio.create_task_group() as tg:
            tg.start_soon(controller.submit_reference, "s2", url)
            await anyio.sleep(0.01)
            await controller.clear("m")
            assert controller.state.queue == []
            gate.set()

        assert queue_ids(controller) == ["late"]


class TestChat:
    """Tests for chat relay."""

    async def test_default_sender_label_and_color(self, controller, broadcaster) -> None:
        session = await controller.on_connect("abcdef123")

        await controller.chat_message("abcdef123", "hello")

        message = broadcaster.last(NEW_MESSAGE)
        assert message["to"] == "*"
        assert message["data"] == {"sender": "User abcd", "text": "hello", "color": session.color}

    async def test_named_sender(self, controller, broadcaster) -> None:
        await controller.on_connect("s1")

        await controller.chat_message("s1", "hi", name="Ana")

        assert broadcaster.last(NEW_MESSAGE)["data"]["sender"] == "Ana"

    async def test_blank_message_is_ignored(self, controller, broadcaster) -> None:
        await controller.on_connect("s1")
        broadcaster.clear()

        await controller.chat_message("s1", "   ")

        assert broadcaster.sent == []

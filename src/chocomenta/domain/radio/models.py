"""
Radio domain models.

Contains data structures for the shared playback state, connected sessions,
and the transient descriptors produced by playlist import.

Wire names follow the browser client contract: a PlayableItem serialises as
``{videoId, title}`` and RadioState as
``{queue, currentVideo, isPlaying, currentTime, master}``.
"""

from dataclasses import dataclass
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

SessionId = str


class PlayableItem(BaseModel):
    """A piece of content the playback client can resolve and render."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    external_id: str = Field(alias="videoId", min_length=1)
    title: str = ""

    @field_validator("title", mode="before")
    @classmethod
    def _title_or_empty(cls, value: Any) -> Any:
        return "" if value is None else value


class RadioState(BaseModel):
    """The single shared playback aggregate.

    In-memory only, lives for the process lifetime.
    """

    model_config = ConfigDict(populate_by_name=True)

    queue: list[PlayableItem] = Field(default_factory=list)
    current_item: Optional[PlayableItem] = Field(default=None, alias="currentVideo")
    is_playing: bool = Field(default=False, alias="isPlaying")
    position_seconds: float = Field(default=0.0, alias="currentTime")
    master_session_id: Optional[SessionId] = Field(default=None, alias="master")

    def to_wire(self) -> dict[str, Any]:
        """Serialise with client-facing field names."""
        return self.model_dump(by_alias=True, mode="json")

    def queue_to_wire(self) -> list[dict[str, Any]]:
        return [item.model_dump(by_alias=True, mode="json") for item in self.queue]


class StatePatch(BaseModel):
    """Partial transport update submitted by a session via ``state-change``.

    Every field is optional; only the fields the client actually sent are
    merged. ``master`` is never taken from the payload.
    """

    model_config = ConfigDict(populate_by_name=True)

    queue: Optional[list[PlayableItem]] = None
    current_item: Optional[PlayableItem] = Field(default=None, alias="currentVideo")
    is_playing: Optional[bool] = Field(default=None, alias="isPlaying")
    position_seconds: Optional[float] = Field(default=None, alias="currentTime")

    @field_validator("position_seconds")
    @classmethod
    def _clamp_position(cls, value: Optional[float]) -> Optional[float]:
        return None if value is None else max(0.0, value)

    def changes(self) -> dict[str, Any]:
        """Fields explicitly present in the payload, keyed by attribute name."""
        changes = {name: getattr(self, name) for name in self.model_fields_set}
        # A bare null is only meaningful for the current item
        return {
            name: value
            for name, value in changes.items()
            if value is not None or name == "current_item"
        }


class ChatMessage(BaseModel):
    """A chat or system message as delivered to clients."""

    sender: str
    text: str
    color: Optional[str] = None


@dataclass(frozen=True)
class Session:
    """One connected participant."""

    id: SessionId
    color: str

    @property
    def label(self) -> str:
        """Default chat name derived from the session id."""
        return f"User {self.id[:4]}"


@dataclass(frozen=True)
class TrackDescriptor:
    """Track metadata from an external playlist, consumed to build a search query."""

    name: str
    artist_names: tuple[str, ...] = ()

    @property
    def query(self) -> str:
        artists = ", ".join(self.artist_names)
        return f"{self.name} {artists}".strip()

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from chocomenta.domain.radio.models import PlayableItem


class InboundMessage(BaseModel):
    """Envelope of every message a client sends over the socket."""

    type: str
    data: Any = None


class UrlSubmittedRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    url: Optional[str] = None
    video_id: Optional[str] = Field(default=None, alias="videoId")
    title: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return not (self.url and self.url.strip()) and not self.video_id


class SkipToSongRequest(BaseModel):
    index: int


class ChatMessageRequest(BaseModel):
    text: str = ""
    name: Optional[str] = None


PlayableItemList = TypeAdapter(list[PlayableItem])


def parse_queue_payload(data: Any) -> list[PlayableItem]:
    """Accept either a bare list of items or ``{"items": [...]}``."""
    if isinstance(data, dict):
        data = data.get("items")
    return PlayableItemList.validate_python(data)


class SearchResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    video_id: str = Field(serialization_alias="videoId")
    title: str


class SearchResponse(BaseModel):
    results: list[SearchResult] = []


class PlaylistImportResponse(BaseModel):
    added: int
    results: list[SearchResult] = []

"""
Radio domain module.

Provides the shared listen-together playback state, session registry,
autoplay continuation, and daily announcements. The state machine itself
lives in ``controller`` and is imported from there.
"""

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

__all__ = [
    "ChatMessage",
    "PlayableItem",
    "RadioState",
    "Session",
    "SessionId",
    "SessionRegistry",
    "StatePatch",
    "TrackDescriptor",
]

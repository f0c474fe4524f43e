import json
from typing import Any, Awaitable, Callable

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from loguru import logger
from pydantic import ValidationError

from chocomenta.domain.radio.controller import RadioController
from chocomenta.domain.radio.models import PlayableItem, SessionId, StatePatch

from ..schemas import (
    ChatMessageRequest,
    InboundMessage,
    SkipToSongRequest,
    UrlSubmittedRequest,
    parse_queue_payload,
)

router = APIRouter()

Handler = Callable[[RadioController, SessionId, Any], Awaitable[None]]


async def _url_submitted(controller: RadioController, session_id: SessionId, data: Any) -> None:
    request = UrlSubmittedRequest.model_validate(data or {})
    if request.is_empty:
        return
    await controller.submit_reference(
        session_id,
        url=request.url.strip() if request.url else None,
        video_id=request.video_id,
        title=request.title,
    )


async def _add_to_queue(controller: RadioController, session_id: SessionId, data: Any) -> None:
    await controller.enqueue(PlayableItem.model_validate(data), front=True)


async def _song_ended(controller: RadioController, session_id: SessionId, data: Any) -> None:
    await controller.song_ended(session_id)


async def _skip_to_song(controller: RadioController, session_id: SessionId, data: Any) -> None:
    request = SkipToSongRequest.model_validate(data)
    await controller.skip_to(request.index, session_id)


async def _reorder_queue(controller: RadioController, session_id: SessionId, data: Any) -> None:
    await controller.reorder(parse_queue_payload(data), session_id)


async def _clear_queue(controller: RadioController, session_id: SessionId, data: Any) -> None:
    await controller.clear(session_id)


async def _state_change(controller: RadioController, session_id: SessionId, data: Any) -> None:
    await controller.state_change(StatePatch.model_validate(data or {}), session_id)


async def _chat_message(controller: RadioController, session_id: SessionId, data: Any) -> None:
    request = ChatMessageRequest.model_validate(data or {})
    await controller.chat_message(session_id, request.text, name=request.name)


async def _request_sync(controller: RadioController, session_id: SessionId, data: Any) -> None:
    await controller.send_snapshot(session_id)


HANDLERS: dict[str, Handler] = {
    "url-submitted": _url_submitted,
    "add-to-queue": _add_to_queue,
    "song-ended": _song_ended,
    "skip-to-song": _skip_to_song,
    "reorder-queue": _reorder_queue,
    "clear-queue": _clear_queue,
    "state-change": _state_change,
    "chat-message": _chat_message,
    "request-sync": _request_sync,
}


async def dispatch(controller: RadioController, session_id: SessionId, message: str) -> None:
    """Apply one inbound message. Malformed input is logged and ignored."""
    try:
        envelope = InboundMessage.model_validate(json.loads(message))
    except (json.JSONDecodeError, ValidationError):
        logger.warning(f"Invalid message from {session_id}: {message[:200]}")
        return

    handler = HANDLERS.get(envelope.type)
    if handler is None:
        logger.warning(f"Unknown message type from {session_id}: {envelope.type}")
        return

    try:
        await handler(controller, session_id, envelope.data)
    except ValidationError as e:
        logger.warning(f"Malformed {envelope.type} payload from {session_id}: {e.error_count()} error(s)")
    except Exception:
        logger.exception(f"Error handling {envelope.type} from {session_id}")


@router.websocket("/ws")
async def radio_websocket(websocket: WebSocket):
    """WebSocket endpoint for the shared radio session."""
    gateway = websocket.app.state.gateway
    controller: RadioController = websocket.app.state.controller

    session_id = controller.sessions.new_session_id()
    await gateway.connect(session_id, websocket)
    await controller.on_connect(session_id)

    try:
        while True:
            message = await websocket.receive_text()
            await dispatch(controller, session_id, message)
    except WebSocketDisconnect:
        pass
    finally:
        gateway.disconnect(session_id)
        await controller.on_disconnect(session_id)

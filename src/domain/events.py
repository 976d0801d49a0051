import json
import logging
from dataclasses import dataclass, field
from time import time
from typing import Any

logger = logging.getLogger(__name__)

INPUT_TRANSCRIPTION_COMPLETED = "conversation.item.input_audio_transcription.completed"
INPUT_TRANSCRIPTION_PREFIX = "input_audio_transcription."
RESPONSE_PREFIX = "response."
ITEM_CREATED = "conversation.item.created"

SESSION_UPDATE = "session.update"
RESPONSE_CREATE = "response.create"


@dataclass(frozen=True)
class RealtimeEvent:
    type: str = ""
    timestamp: float = field(default_factory=time)


@dataclass(frozen=True)
class UserTranscriptionCompleted(RealtimeEvent):
    text: str = ""


@dataclass(frozen=True)
class ResponseDelta(RealtimeEvent):
    delta: str = ""


@dataclass(frozen=True)
class ResponseDone(RealtimeEvent):
    pass


@dataclass(frozen=True)
class ResponseOther(RealtimeEvent):
    pass


@dataclass(frozen=True)
class ItemCreated(RealtimeEvent):
    role: str = ""
    text: str = ""


@dataclass(frozen=True)
class UnknownEvent(RealtimeEvent):
    pass


@dataclass(frozen=True)
class TurnDetection:
    threshold: float = 0.5
    prefix_padding_ms: int = 300
    silence_duration_ms: int = 800

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": "server_vad",
            "threshold": self.threshold,
            "prefix_padding_ms": self.prefix_padding_ms,
            "silence_duration_ms": self.silence_duration_ms,
        }


def decode_event(raw: str | bytes) -> RealtimeEvent | None:
    if isinstance(raw, (bytes, bytearray)):
        raw = raw.decode(errors="replace")
    try:
        message = json.loads(raw)
    except (json.JSONDecodeError, TypeError):
        logger.debug("Dropping non-JSON data channel payload: %.80s", raw)
        return None

    if not isinstance(message, dict):
        return None
    event_type = message.get("type")
    if not isinstance(event_type, str) or not event_type:
        return None

    if event_type == INPUT_TRANSCRIPTION_COMPLETED or event_type.startswith(
        INPUT_TRANSCRIPTION_PREFIX
    ):
        return UserTranscriptionCompleted(
            type=event_type,
            text=_first_text(message, ("text", "delta", "transcript", "content")),
        )

    if event_type.startswith(RESPONSE_PREFIX):
        if event_type.endswith(".delta"):
            delta = message.get("delta")
            return ResponseDelta(
                type=event_type, delta=delta if isinstance(delta, str) else ""
            )
        if event_type.endswith(".done") or event_type.endswith("completed"):
            return ResponseDone(type=event_type)
        return ResponseOther(type=event_type)

    if event_type == ITEM_CREATED:
        item = message.get("item")
        if not isinstance(item, dict):
            item = {}
        return ItemCreated(
            type=event_type,
            role=_item_role(item),
            text=_item_text(item),
        )

    return UnknownEvent(type=event_type)


def session_update_message(
    instructions: str, turn_detection: TurnDetection
) -> dict[str, Any]:
    return {
        "type": SESSION_UPDATE,
        "session": {
            "instructions": instructions,
            "turn_detection": turn_detection.to_dict(),
        },
    }


def response_create_message(instructions: str) -> dict[str, Any]:
    return {
        "type": RESPONSE_CREATE,
        "response": {
            "modalities": ["text", "audio"],
            "instructions": instructions,
        },
    }


def _first_text(message: dict[str, Any], keys: tuple[str, ...]) -> str:
    for key in keys:
        value = message.get(key)
        if isinstance(value, str) and value:
            return value
    return ""


def _content_parts(item: dict[str, Any]) -> list[dict[str, Any]]:
    content = item.get("content")
    if not isinstance(content, list):
        return []
    return [part for part in content if isinstance(part, dict)]


def _item_role(item: dict[str, Any]) -> str:
    role = item.get("role")
    if isinstance(role, str) and role:
        return role
    parts = _content_parts(item)
    if parts and isinstance(parts[0].get("role"), str):
        return parts[0]["role"]
    return ""


def _item_text(item: dict[str, Any]) -> str:
    fragments = []
    for part in _content_parts(item):
        for key in ("text", "transcript"):
            value = part.get(key)
            if isinstance(value, str) and value:
                fragments.append(value)
    return " ".join(fragments)

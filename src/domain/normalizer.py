import logging

from domain.events import (
    ItemCreated,
    RealtimeEvent,
    ResponseDelta,
    ResponseDone,
    ResponseOther,
    UnknownEvent,
    UserTranscriptionCompleted,
    decode_event,
)
from domain.transcript import CANDIDATE, INTERVIEWER, TranscriptItem

logger = logging.getLogger(__name__)


class StreamingBuffer:
    def __init__(self) -> None:
        self._fragments: list[str] = []
        self._active = False

    @property
    def active(self) -> bool:
        return self._active

    def append(self, delta: str) -> None:
        if not delta:
            return
        self._fragments.append(delta)
        self._active = True

    def flush(self) -> str:
        text = "".join(self._fragments).strip()
        self.clear()
        return text

    def clear(self) -> None:
        self._fragments.clear()
        self._active = False


class TranscriptNormalizer:
    def __init__(self) -> None:
        self._buffer = StreamingBuffer()

    @property
    def streaming(self) -> bool:
        return self._buffer.active

    def handle_raw(self, raw: str | bytes) -> TranscriptItem | None:
        event = decode_event(raw)
        if event is None:
            return None
        return self.handle(event)

    def handle(self, event: RealtimeEvent) -> TranscriptItem | None:
        if isinstance(event, UserTranscriptionCompleted):
            return _line(CANDIDATE, event.text)

        if isinstance(event, ResponseDelta):
            self._buffer.append(event.delta)
            return None

        if isinstance(event, ResponseDone):
            return _line(INTERVIEWER, self._buffer.flush())

        if isinstance(event, ResponseOther):
            return None

        if isinstance(event, ItemCreated):
            # assistant items already arrive through the response stream
            if event.role != "user":
                return None
            return _line(CANDIDATE, event.text)

        if isinstance(event, UnknownEvent):
            logger.debug("Ignoring realtime event: %s", event.type)
        return None

    def reset(self) -> None:
        self._buffer.clear()


def _line(speaker: str, text: str) -> TranscriptItem | None:
    if not text or not text.strip():
        return None
    return TranscriptItem(speaker=speaker, text=text)

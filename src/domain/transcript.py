import logging
import math
from collections.abc import Callable, Iterable
from dataclasses import asdict, dataclass, field
from time import time
from typing import Any

logger = logging.getLogger(__name__)

INTERVIEWER = "Interviewer"
CANDIDATE = "Candidate"

INTERVIEWER_SPEAKERS = frozenset({INTERVIEWER, "assistant", "ai", "system"})
CANDIDATE_SPEAKERS = frozenset({CANDIDATE, "user", "human"})


@dataclass(frozen=True)
class TranscriptItem:
    speaker: str
    text: str
    timestamp: float = field(default_factory=time)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TranscriptItem":
        return cls(
            speaker=str(data.get("speaker", "")),
            text=str(data.get("text", "")),
            timestamp=parse_timestamp(data.get("timestamp", data.get("ts")), time()),
        )


@dataclass
class GroupedLine:
    speaker: str
    text: str
    timestamp: float

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class QAPair:
    question: str
    answer: str

    def to_dict(self) -> dict[str, str]:
        return asdict(self)


def parse_timestamp(value: Any, default: float) -> float:
    if isinstance(value, bool):
        return default
    try:
        parsed = float(value)
    except (TypeError, ValueError):
        return default
    return parsed if math.isfinite(parsed) else default


TranscriptListener = Callable[[TranscriptItem], None]


class Transcript:
    def __init__(self, items: Iterable[TranscriptItem] = ()) -> None:
        self._items: list[TranscriptItem] = list(items)
        self._grouped: list[GroupedLine] | None = None
        self._listeners: list[TranscriptListener] = []

    @property
    def items(self) -> list[TranscriptItem]:
        return list(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def on_line(self, listener: TranscriptListener) -> None:
        self._listeners.append(listener)

    def append(self, speaker: str, text: str) -> TranscriptItem | None:
        if not text or not text.strip():
            return None
        item = TranscriptItem(speaker=speaker, text=text)
        self.add(item)
        return item

    def add(self, item: TranscriptItem) -> None:
        if not item.text.strip():
            return
        self._items.append(item)
        self._grouped = None
        logger.info("%s: %s", item.speaker, item.text)
        for listener in list(self._listeners):
            try:
                listener(item)
            except Exception:
                logger.exception("Transcript listener failed")

    def grouped(self) -> list[GroupedLine]:
        if self._grouped is None:
            self._grouped = group_lines(self._items)
        return [GroupedLine(g.speaker, g.text, g.timestamp) for g in self._grouped]

    def clear(self) -> None:
        self._items.clear()
        self._grouped = None

    def to_dicts(self) -> list[dict[str, Any]]:
        return [item.to_dict() for item in self._items]


def group_lines(items: Iterable[TranscriptItem]) -> list[GroupedLine]:
    grouped: list[GroupedLine] = []
    for item in items:
        last = grouped[-1] if grouped else None
        if last is not None and last.speaker == item.speaker:
            separator = "" if last.text.endswith("\n") else " "
            last.text += separator + item.text
            last.timestamp = item.timestamp
        else:
            grouped.append(GroupedLine(item.speaker, item.text, item.timestamp))
    return grouped


def pair_questions_and_answers(lines: Iterable[GroupedLine]) -> list[QAPair]:
    pairs: list[QAPair] = []
    pending_question: str | None = None

    for line in lines:
        text = line.text.strip()
        if not text:
            continue
        if line.speaker in INTERVIEWER_SPEAKERS:
            if pending_question is not None:
                pairs.append(QAPair(question=pending_question, answer=""))
            pending_question = text
        elif line.speaker in CANDIDATE_SPEAKERS:
            pairs.append(QAPair(question=pending_question or "", answer=text))
            pending_question = None

    if pending_question is not None:
        pairs.append(QAPair(question=pending_question, answer=""))
    return pairs

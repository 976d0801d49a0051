from dataclasses import dataclass, field
from time import time
from typing import Any

from domain.transcript import (
    GroupedLine,
    Transcript,
    TranscriptItem,
    QAPair,
    group_lines,
    pair_questions_and_answers,
    parse_timestamp,
)


@dataclass
class InterviewResult:
    interview_id: str
    transcript: list[TranscriptItem]
    grouped: list[GroupedLine] = field(default_factory=list)
    analysis: dict[str, Any] | None = None
    saved_at: float = field(default_factory=time)

    def __post_init__(self) -> None:
        self.transcript = [item for item in self.transcript if item.text.strip()]
        if not self.grouped:
            self.grouped = group_lines(
                TranscriptItem(item.speaker, item.text.strip(), item.timestamp)
                for item in self.transcript
            )

    @classmethod
    def from_transcript(
        cls,
        interview_id: str,
        transcript: Transcript,
        analysis: dict[str, Any] | None = None,
    ) -> "InterviewResult":
        return cls(
            interview_id=interview_id,
            transcript=transcript.items,
            grouped=transcript.grouped(),
            analysis=analysis,
        )

    @classmethod
    def from_dict(cls, interview_id: str, data: dict[str, Any]) -> "InterviewResult":
        items = [
            TranscriptItem.from_dict(raw)
            for raw in data.get("transcript") or []
            if isinstance(raw, dict) and isinstance(raw.get("text"), str)
        ]
        grouped = [
            GroupedLine(
                speaker=str(raw.get("speaker", "")),
                text=str(raw.get("text", "")),
                timestamp=parse_timestamp(raw.get("timestamp", raw.get("ts")), 0.0),
            )
            for raw in data.get("grouped") or []
            if isinstance(raw, dict)
        ]
        return cls(
            interview_id=interview_id,
            transcript=items,
            grouped=grouped,
            analysis=data.get("analysis"),
            saved_at=parse_timestamp(data.get("saved_at"), time()),
        )

    def qa_pairs(self) -> list[QAPair]:
        return pair_questions_and_answers(self.grouped)

    def to_dict(self) -> dict[str, Any]:
        return {
            "interview_id": self.interview_id,
            "transcript": [item.to_dict() for item in self.transcript],
            "grouped": [line.to_dict() for line in self.grouped],
            "analysis": self.analysis,
            "saved_at": self.saved_at,
        }

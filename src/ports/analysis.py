from dataclasses import dataclass, field
from typing import Any, Protocol


@dataclass
class AnalysisResult:
    data: dict[str, Any]
    usage: dict[str, Any] | None = None


@dataclass
class ChatReply:
    reply: str
    usage: dict[str, Any] | None = None


@dataclass
class PdfText:
    text: str
    pages: int
    info: dict[str, Any] = field(default_factory=dict)


class AnalysisPort(Protocol):
    async def chat(self, question: str, guidelines: str = "") -> ChatReply: ...
    async def summarize_interview(
        self, transcript: list[dict[str, Any]], role: str = "Candidate"
    ) -> AnalysisResult: ...
    async def analyze_resume(self, text: str) -> AnalysisResult: ...

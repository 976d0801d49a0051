from typing import Protocol

from domain.results import InterviewResult


class ResultStorePort(Protocol):
    def save(self, result: InterviewResult) -> None: ...
    def load(self, interview_id: str) -> InterviewResult | None: ...
    def load_guidelines(self) -> str: ...
    def save_guidelines(self, text: str) -> None: ...

import json
import logging
import os
import threading
from pathlib import Path
from typing import Any

from domain.results import InterviewResult

logger = logging.getLogger(__name__)

LATEST_ID = "latest"

LEGACY_CONVERSATION_KEY = "latest_interview_conversation_v1"
LEGACY_TRANSCRIPT_KEY = "latest_interview_transcript_v1"
LEGACY_GUIDELINES_KEY = "onboarding_guidelines_v1"


class JsonFileResultStore:
    def __init__(self, path: str | Path | None = None) -> None:
        self._path = Path(path) if path else None
        self._lock = threading.Lock()
        self._interviews: dict[str, dict[str, Any]] = {}
        self._latest_id: str | None = None
        self._guidelines = ""
        self._load_file()

    def save(self, result: InterviewResult) -> None:
        with self._lock:
            self._interviews[result.interview_id] = result.to_dict()
            self._latest_id = result.interview_id
            self._write_file()
        logger.info(
            "Saved interview %s (%d lines)", result.interview_id, len(result.transcript)
        )

    def load(self, interview_id: str) -> InterviewResult | None:
        with self._lock:
            key = self._latest_id if interview_id == LATEST_ID else interview_id
            data = self._interviews.get(key) if key else None
        if data is None:
            return None
        return InterviewResult.from_dict(key, data)

    def load_guidelines(self) -> str:
        with self._lock:
            return self._guidelines

    def save_guidelines(self, text: str) -> None:
        with self._lock:
            self._guidelines = text
            self._write_file()

    def _load_file(self) -> None:
        if not self._path or not self._path.exists():
            return
        try:
            raw = json.loads(self._path.read_text())
        except (OSError, json.JSONDecodeError):
            logger.warning("Result store at %s is unreadable, starting empty", self._path)
            return
        if not isinstance(raw, dict):
            return

        interviews = raw.get("interviews")
        if isinstance(interviews, dict):
            self._interviews = {
                str(k): v for k, v in interviews.items() if isinstance(v, dict)
            }
        latest = raw.get("latest")
        self._latest_id = latest if isinstance(latest, str) else None
        guidelines = raw.get("guidelines")
        self._guidelines = guidelines if isinstance(guidelines, str) else ""
        self._migrate_legacy_keys(raw)

    def _migrate_legacy_keys(self, raw: dict[str, Any]) -> None:
        grouped = _legacy_list(raw.get(LEGACY_CONVERSATION_KEY))
        transcript = _legacy_list(raw.get(LEGACY_TRANSCRIPT_KEY))
        if (grouped or transcript) and self._latest_id is None:
            result = InterviewResult.from_dict(
                LATEST_ID, {"grouped": grouped, "transcript": transcript}
            )
            self._interviews[LATEST_ID] = result.to_dict()
            self._latest_id = LATEST_ID
            logger.info("Migrated legacy interview handoff keys")

        legacy_guidelines = raw.get(LEGACY_GUIDELINES_KEY)
        if isinstance(legacy_guidelines, str) and not self._guidelines:
            self._guidelines = legacy_guidelines

    def _write_file(self) -> None:
        if not self._path:
            return
        payload = {
            "interviews": self._interviews,
            "latest": self._latest_id,
            "guidelines": self._guidelines,
        }
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.with_suffix(self._path.suffix + ".tmp")
        tmp_path.write_text(json.dumps(payload, indent=2))
        os.replace(tmp_path, self._path)


def _legacy_list(value: Any) -> list[dict[str, Any]]:
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except json.JSONDecodeError:
            return []
    if not isinstance(value, list):
        return []
    return [v for v in value if isinstance(v, dict)]

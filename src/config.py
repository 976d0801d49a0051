import os

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class InterviewerConfig(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="AI_INTERVIEWER_", populate_by_name=True)

    host: str = "127.0.0.1"
    port: int = 8000
    server_url: str = "http://127.0.0.1:8000"
    cors_origins: list[str] = ["*"]

    openai_api_key_file: str = ""
    openai_api_key: str = Field(default="", validation_alias="OPENAI_API_KEY")
    openai_api_base: str = "https://api.openai.com/v1"

    realtime_model: str = Field(
        default="gpt-4o-realtime-preview-2024-12-17", validation_alias="REALTIME_MODEL"
    )
    realtime_voice: str = "verse"
    ice_servers: list[str] = ["stun:stun.l.google.com:19302"]

    vad_threshold: float = 0.5
    vad_prefix_padding_ms: int = 300
    vad_silence_duration_ms: int = 800

    session_instructions: str = (
        "You are an AI interviewer. Always ask exactly ONE concise question, then stop "
        "speaking and wait in silence for the candidate to answer. Do not chain multiple "
        "questions together. Only speak again after the candidate has spoken. If there is "
        "no candidate speech for ~20 seconds, give a short gentle nudge like \"Whenever you "
        "are ready, please share your answer,\" then wait again. Keep a calm pace and "
        "natural pauses."
    )
    greeting_instructions: str = (
        "Start with a brief greeting, then ask the first concise question about how the "
        "candidate solved a tough technical problem. After asking, pause and wait for "
        "their response."
    )

    analysis_model: str = "gpt-4o-mini"
    max_pdf_bytes: int = 10 * 1024 * 1024

    recognition_fallback: bool = True
    deepgram_api_key_file: str = ""
    recognition_language: str = "en-US"
    recognition_restart_delay: float = 0.5

    capture_device: str = ""
    capture_gain: float = 1.0
    sample_rate: int = 16000
    frame_duration_ms: int = 20

    result_store_path: str = os.path.expanduser("~/.local/share/ai-interviewer/results.json")
    log_file: str = ""

    def read_secret(self, path: str) -> str:
        if not path:
            return ""
        try:
            with open(path) as f:
                return f.read().strip()
        except FileNotFoundError:
            return ""

    def resolve_openai_api_key(self) -> str:
        return self.read_secret(self.openai_api_key_file) or self.openai_api_key.strip()

import logging
from typing import Any
from urllib.parse import quote

import httpx

from domain.errors import SessionCreationError, SignalingError
from ports.realtime import RealtimeCredential

logger = logging.getLogger(__name__)

OPENAI_API_BASE = "https://api.openai.com/v1"
DEFAULT_REALTIME_MODEL = "gpt-4o-realtime-preview-2024-12-17"
DEFAULT_REALTIME_VOICE = "verse"

INTERVIEWER_SESSION_INSTRUCTIONS = (
    "You are a professional technical interviewer. Conduct a structured interview "
    "with concise, natural speech.\n"
    "Ask one question at a time and wait for the candidate to finish before "
    "proceeding. Probe for depth, reasoning, and examples.\n"
    "Track key points, skills, concerns, and notable quotes during the conversation "
    "for later summarization."
)


class OpenAIRealtimeTokenService:
    def __init__(
        self,
        api_key: str,
        model: str = DEFAULT_REALTIME_MODEL,
        voice: str = DEFAULT_REALTIME_VOICE,
        instructions: str = INTERVIEWER_SESSION_INSTRUCTIONS,
        api_base: str = OPENAI_API_BASE,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self._voice = voice
        self._instructions = instructions
        self._api_base = api_base.rstrip("/")
        self._transport = transport

    @property
    def configured(self) -> bool:
        return bool(self._api_key)

    async def create_session_payload(self) -> dict[str, Any]:
        if not self._api_key:
            raise SessionCreationError("OPENAI_API_KEY is not configured.")

        headers = {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }
        payload = {
            "model": self._model,
            "voice": self._voice,
            "modalities": ["audio", "text"],
            "instructions": self._instructions,
        }
        async with httpx.AsyncClient(timeout=None, transport=self._transport) as client:
            response = await client.post(
                f"{self._api_base}/realtime/sessions", json=payload, headers=headers
            )

        if response.is_error:
            logger.error("Realtime session request failed: %s", response.status_code)
            raise SessionCreationError(
                "Failed to create realtime session",
                status_code=response.status_code,
                details=response.text,
            )
        return response.json()

    async def create_session(self) -> RealtimeCredential:
        payload = await self.create_session_payload()
        return _credential_from(payload, self._model)


class HttpTokenService:
    def __init__(
        self,
        server_url: str,
        default_model: str = DEFAULT_REALTIME_MODEL,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._server_url = server_url.rstrip("/")
        self._default_model = default_model
        self._transport = transport

    async def create_session(self) -> RealtimeCredential:
        try:
            async with httpx.AsyncClient(timeout=None, transport=self._transport) as client:
                response = await client.post(f"{self._server_url}/api/realtime-session")
        except httpx.HTTPError as exc:
            raise SessionCreationError(f"Token service unreachable: {exc}") from exc

        try:
            payload = response.json()
        except ValueError:
            payload = {}
        if response.is_error:
            message = payload.get("error") if isinstance(payload, dict) else None
            raise SessionCreationError(
                message or "Failed to create session",
                status_code=response.status_code,
                details=response.text,
            )
        return _credential_from(payload, self._default_model)


class OpenAIRealtimeSignaling:
    def __init__(
        self,
        api_base: str = OPENAI_API_BASE,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_base = api_base.rstrip("/")
        self._transport = transport

    async def exchange(self, offer_sdp: str, model: str, token: str) -> str:
        url = f"{self._api_base}/realtime?model={quote(model, safe='')}"
        headers = {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/sdp",
        }
        try:
            async with httpx.AsyncClient(timeout=None, transport=self._transport) as client:
                response = await client.post(url, content=offer_sdp, headers=headers)
        except httpx.HTTPError as exc:
            raise SignalingError(f"SDP exchange failed: {exc}") from exc

        if response.is_error:
            logger.error("SDP exchange rejected: %s", response.status_code)
            raise SignalingError(
                f"SDP exchange rejected with status {response.status_code}",
                status_code=response.status_code,
            )
        answer = response.text
        if not answer.strip().startswith("v="):
            raise SignalingError("SDP exchange returned a malformed answer")
        return answer


def _credential_from(payload: Any, default_model: str) -> RealtimeCredential:
    if not isinstance(payload, dict):
        raise SessionCreationError("Session payload is not a JSON object")
    try:
        return RealtimeCredential.from_payload(payload, default_model)
    except ValueError as exc:
        raise SessionCreationError(str(exc)) from exc

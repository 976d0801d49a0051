from dataclasses import dataclass, field
from typing import Any, Callable, Protocol


@dataclass(frozen=True)
class RealtimeCredential:
    value: str
    model: str
    expires_at: int | None = None
    raw: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_payload(cls, payload: dict[str, Any], default_model: str) -> "RealtimeCredential":
        secret = payload.get("client_secret") or {}
        value = secret.get("value") if isinstance(secret, dict) else None
        if not isinstance(value, str) or not value:
            raise ValueError("session payload has no client_secret.value")
        return cls(
            value=value,
            model=payload.get("model") or default_model,
            expires_at=secret.get("expires_at"),
            raw=payload,
        )


class TokenServicePort(Protocol):
    async def create_session(self) -> RealtimeCredential: ...


class SignalingPort(Protocol):
    async def exchange(self, offer_sdp: str, model: str, token: str) -> str: ...


class DataChannelPort(Protocol):
    def on(self, event: str, handler: Callable[..., Any]) -> Any: ...
    def send(self, data: str) -> None: ...


class PeerConnectionPort(Protocol):
    @property
    def connection_state(self) -> str: ...

    def on(self, event: str, handler: Callable[..., Any]) -> Any: ...
    def add_track(self, track: Any) -> None: ...
    def create_data_channel(self, label: str) -> DataChannelPort: ...
    async def create_offer(self) -> str: ...
    async def set_remote_answer(self, sdp: str) -> None: ...
    async def close(self) -> None: ...


PeerConnectionFactory = Callable[[], PeerConnectionPort]

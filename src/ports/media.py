from typing import Any, Protocol, AsyncIterator


class MicrophonePort(Protocol):
    async def open(self) -> Any: ...
    def frames(self) -> AsyncIterator[bytes]: ...
    async def close(self) -> None: ...


class RemoteAudioPort(Protocol):
    async def attach(self, track: Any) -> None: ...
    async def stop(self) -> None: ...

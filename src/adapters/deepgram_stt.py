import asyncio
import logging
from collections.abc import AsyncIterator

from deepgram import AsyncDeepgramClient
from deepgram.extensions.types.sockets.listen_v1_results_event import ListenV1ResultsEvent
from deepgram.listen.v1.socket_client import EventType

from ports.transcriber import TranscriptEvent

logger = logging.getLogger(__name__)


class DeepgramSpeechRecognizer:
    def __init__(
        self, api_key: str, sample_rate: int = 16000, language: str = "en-US"
    ) -> None:
        self._api_key = api_key
        self._sample_rate = sample_rate
        self._language = language
        self._socket = None
        self._context_manager = None
        self._transcript_queue: asyncio.Queue[TranscriptEvent | None] = asyncio.Queue()
        self._session_active = False
        self._listener_task: asyncio.Task | None = None

    async def start_session(self) -> None:
        if self._session_active:
            await self.close_session()

        self._transcript_queue = asyncio.Queue()
        client = AsyncDeepgramClient(api_key=self._api_key)
        self._context_manager = client.listen.v1.connect(
            model="nova-2",
            language=self._language,
            encoding="linear16",
            sample_rate=str(self._sample_rate),
            channels="1",
            interim_results="true",
            endpointing="300",
            smart_format="true",
        )
        self._socket = await self._context_manager.__aenter__()
        self._socket.on(EventType.MESSAGE, self._on_message)
        self._socket.on(EventType.ERROR, self._on_error)
        self._socket.on(EventType.CLOSE, self._on_close)
        self._listener_task = asyncio.create_task(self._socket.start_listening())
        self._session_active = True
        logger.info("Deepgram recognizer started")

    async def send_audio(self, frame: bytes) -> None:
        if self._socket and self._session_active:
            try:
                await self._socket._send(frame)
            except Exception:
                logger.warning("Failed to send audio to Deepgram")

    async def get_transcripts(self) -> AsyncIterator[TranscriptEvent]:
        queue = self._transcript_queue
        while True:
            event = await queue.get()
            if event is None:
                return
            yield event

    async def close_session(self) -> None:
        if self._listener_task and not self._listener_task.done():
            self._listener_task.cancel()
            try:
                await self._listener_task
            except (asyncio.CancelledError, Exception):
                pass
        self._listener_task = None

        if self._context_manager:
            try:
                await self._context_manager.__aexit__(None, None, None)
            except Exception:
                logger.debug("Deepgram socket close failed", exc_info=True)
        self._context_manager = None
        self._socket = None
        if self._session_active:
            self._transcript_queue.put_nowait(None)
        self._session_active = False
        logger.info("Deepgram recognizer closed")

    async def _on_message(self, message) -> None:
        if not isinstance(message, ListenV1ResultsEvent):
            return
        try:
            transcript = message.channel.alternatives[0].transcript
        except (IndexError, AttributeError):
            return
        if not transcript:
            return
        await self._transcript_queue.put(
            TranscriptEvent(
                text=transcript,
                is_final=bool(message.is_final or message.speech_final),
            )
        )

    async def _on_close(self, *_) -> None:
        await self._transcript_queue.put(None)

    async def _on_error(self, error) -> None:
        logger.error("Deepgram error: %s", error)

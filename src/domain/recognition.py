import asyncio
import logging
from collections.abc import AsyncIterator, Callable

from ports.transcriber import TranscriberPort

logger = logging.getLogger(__name__)

DEFAULT_RESTART_DELAY_SECONDS = 0.5


class RecognitionFallback:
    def __init__(
        self,
        transcriber: TranscriberPort,
        frames: Callable[[], AsyncIterator[bytes]],
        on_final: Callable[[str], None],
        is_active: Callable[[], bool],
        restart_delay: float = DEFAULT_RESTART_DELAY_SECONDS,
    ) -> None:
        self._transcriber = transcriber
        self._frames = frames
        self._on_final = on_final
        self._is_active = is_active
        self._restart_delay = restart_delay
        self._run_task: asyncio.Task | None = None
        self._feed_task: asyncio.Task | None = None
        self._stopped = False
        self._restarts = 0

    @property
    def running(self) -> bool:
        return self._run_task is not None and not self._run_task.done()

    @property
    def restarts(self) -> int:
        return self._restarts

    def start(self) -> None:
        if self.running:
            return
        self._stopped = False
        self._run_task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        self._stopped = True
        for task in (self._feed_task, self._run_task):
            if task and not task.done() and task is not asyncio.current_task():
                task.cancel()
                try:
                    await task
                except (asyncio.CancelledError, Exception):
                    pass
        self._feed_task = None
        self._run_task = None
        try:
            await self._transcriber.close_session()
        except Exception:
            logger.debug("Recognizer close failed", exc_info=True)

    def _should_run(self) -> bool:
        return not self._stopped and self._is_active()

    async def _run(self) -> None:
        while self._should_run():
            try:
                await self._transcriber.start_session()
                self._feed_task = asyncio.create_task(self._feed_audio())
                async for event in self._transcriber.get_transcripts():
                    if not self._should_run():
                        break
                    if event.is_final and event.text.strip():
                        self._on_final(event.text.strip())
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.warning("Local recognizer error", exc_info=True)
            finally:
                if self._feed_task and not self._feed_task.done():
                    self._feed_task.cancel()
                self._feed_task = None
                try:
                    await self._transcriber.close_session()
                except Exception:
                    logger.debug("Recognizer close failed", exc_info=True)

            if not self._should_run():
                break
            self._restarts += 1
            logger.info("Local recognizer stopped, restarting (%d)", self._restarts)
            await asyncio.sleep(self._restart_delay)

    async def _feed_audio(self) -> None:
        try:
            async for frame in self._frames():
                await self._transcriber.send_audio(frame)
        except asyncio.CancelledError:
            pass
        except Exception:
            logger.warning("Feeding audio to local recognizer failed", exc_info=True)

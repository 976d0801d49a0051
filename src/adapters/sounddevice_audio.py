import asyncio
import fractions
import logging
from collections.abc import AsyncIterator

import av
import janus
import numpy as np
import sounddevice as sd
from aiortc import MediaStreamTrack
from aiortc.mediastreams import MediaStreamError

from domain.errors import MediaAccessError

logger = logging.getLogger(__name__)

PLAYBACK_SAMPLE_RATE = 48000


class MicrophoneTrack(MediaStreamTrack):
    kind = "audio"

    def __init__(self, queue: janus.Queue[bytes], sample_rate: int) -> None:
        super().__init__()
        self._queue = queue
        self._sample_rate = sample_rate
        self._pts = 0

    async def recv(self) -> av.AudioFrame:
        if self.readyState != "live":
            raise MediaStreamError
        try:
            pcm = await self._queue.async_q.get()
        except janus.AsyncQueueShutDown:
            self.stop()
            raise MediaStreamError

        samples = np.frombuffer(pcm, dtype=np.int16).reshape(1, -1)
        frame = av.AudioFrame.from_ndarray(samples, format="s16", layout="mono")
        frame.sample_rate = self._sample_rate
        frame.pts = self._pts
        frame.time_base = fractions.Fraction(1, self._sample_rate)
        self._pts += samples.shape[1]
        return frame


class SounddeviceMicrophone:
    def __init__(
        self,
        device: str | int | None = None,
        sample_rate: int = 16000,
        frame_duration_ms: int = 20,
        gain: float = 1.0,
    ) -> None:
        self._device = device
        self._sample_rate = sample_rate
        self._frame_duration_ms = frame_duration_ms
        self._frame_size = int(sample_rate * frame_duration_ms / 1000)
        self._gain = gain
        self._stream: sd.InputStream | None = None
        self._track_queue: janus.Queue[bytes] | None = None
        self._tap_queue: janus.Queue[bytes] | None = None
        self._track: MicrophoneTrack | None = None

    @property
    def sample_rate(self) -> int:
        return self._sample_rate

    async def open(self) -> MicrophoneTrack:
        self._track_queue = janus.Queue(maxsize=100)
        self._tap_queue = janus.Queue(maxsize=100)

        def audio_callback(indata: np.ndarray, frames: int, time_info, status) -> None:
            if status:
                logger.warning("Audio capture status: %s", status)
            scaled = np.clip(indata[:, 0] * self._gain, -1.0, 1.0)
            pcm_bytes = (scaled * 32767).astype(np.int16).tobytes()
            for queue in (self._track_queue, self._tap_queue):
                if queue is None:
                    continue
                try:
                    queue.sync_q.put_nowait(pcm_bytes)
                except (janus.SyncQueueFull, janus.SyncQueueShutDown):
                    pass

        device = self._resolve_device()
        try:
            self._stream = sd.InputStream(
                device=device,
                samplerate=self._sample_rate,
                channels=1,
                dtype="float32",
                blocksize=self._frame_size,
                callback=audio_callback,
            )
            self._stream.start()
        except (sd.PortAudioError, ValueError) as exc:
            await self.close()
            raise MediaAccessError(f"Microphone unavailable: {exc}") from exc

        logger.info(
            "Microphone opened (device=%s, rate=%d, frame=%dms)",
            device, self._sample_rate, self._frame_duration_ms,
        )
        self._track = MicrophoneTrack(self._track_queue, self._sample_rate)
        return self._track

    async def frames(self) -> AsyncIterator[bytes]:
        queue = self._tap_queue
        if not queue:
            return
        while True:
            try:
                frame = await asyncio.wait_for(queue.async_q.get(), timeout=1.0)
                yield frame
            except asyncio.TimeoutError:
                continue
            except janus.AsyncQueueShutDown:
                break

    async def close(self) -> None:
        if self._stream:
            self._stream.stop()
            self._stream.close()
            self._stream = None
        if self._track:
            self._track.stop()
            self._track = None
        for queue in (self._track_queue, self._tap_queue):
            if queue:
                queue.close()
        self._track_queue = None
        self._tap_queue = None

    def _resolve_device(self) -> str | int | None:
        if self._device is None or self._device == "":
            return None
        if isinstance(self._device, int):
            return self._device
        try:
            return int(self._device)
        except ValueError:
            pass
        for i, dev in enumerate(sd.query_devices()):
            if self._device.lower() in dev["name"].lower() and dev["max_input_channels"] > 0:
                logger.info("Resolved device '%s' -> %d (%s)", self._device, i, dev["name"])
                return i
        logger.warning("Device '%s' not found, using default input", self._device)
        return None


class SounddeviceRemoteAudio:
    def __init__(self, sample_rate: int = PLAYBACK_SAMPLE_RATE) -> None:
        self._sample_rate = sample_rate
        self._stream: sd.OutputStream | None = None
        self._play_task: asyncio.Task | None = None

    async def attach(self, track: MediaStreamTrack) -> None:
        await self.stop()
        self._stream = sd.OutputStream(
            samplerate=self._sample_rate,
            channels=1,
            dtype="int16",
        )
        self._stream.start()
        self._play_task = asyncio.create_task(self._playback_loop(track))
        logger.info("Remote audio attached (rate=%d)", self._sample_rate)

    async def stop(self) -> None:
        if self._play_task and not self._play_task.done():
            self._play_task.cancel()
            try:
                await self._play_task
            except asyncio.CancelledError:
                pass
        self._play_task = None
        if self._stream:
            self._stream.stop()
            self._stream.close()
            self._stream = None

    async def _playback_loop(self, track: MediaStreamTrack) -> None:
        resampler = av.AudioResampler(format="s16", layout="mono", rate=self._sample_rate)
        while True:
            try:
                frame = await track.recv()
            except MediaStreamError:
                logger.info("Remote audio track ended")
                break
            for resampled in resampler.resample(frame):
                audio_array = resampled.to_ndarray().reshape(-1, 1)
                if not self._stream:
                    return
                try:
                    await asyncio.to_thread(self._stream.write, audio_array)
                except sd.PortAudioError:
                    logger.warning("Playback write error")

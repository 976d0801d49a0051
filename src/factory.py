import logging

from config import InterviewerConfig
from adapters.aiortc_peer import create_peer_connection_factory
from adapters.openai_realtime import HttpTokenService, OpenAIRealtimeSignaling
from adapters.sounddevice_audio import SounddeviceMicrophone, SounddeviceRemoteAudio
from domain.events import TurnDetection
from domain.session import RealtimeInterviewSession
from domain.transcript import Transcript
from ports.transcriber import TranscriberPort

logger = logging.getLogger(__name__)


def create_microphone(config: InterviewerConfig) -> SounddeviceMicrophone:
    return SounddeviceMicrophone(
        device=config.capture_device or None,
        sample_rate=config.sample_rate,
        frame_duration_ms=config.frame_duration_ms,
        gain=config.capture_gain,
    )


def create_transcriber(config: InterviewerConfig) -> TranscriberPort | None:
    if not config.recognition_fallback:
        return None
    deepgram_api_key = config.read_secret(config.deepgram_api_key_file)
    if not deepgram_api_key:
        logger.info("No Deepgram key, local recognition fallback disabled")
        return None

    from adapters.deepgram_stt import DeepgramSpeechRecognizer

    return DeepgramSpeechRecognizer(
        api_key=deepgram_api_key,
        sample_rate=config.sample_rate,
        language=config.recognition_language,
    )


def create_turn_detection(config: InterviewerConfig) -> TurnDetection:
    return TurnDetection(
        threshold=config.vad_threshold,
        prefix_padding_ms=config.vad_prefix_padding_ms,
        silence_duration_ms=config.vad_silence_duration_ms,
    )


def create_session(
    config: InterviewerConfig, transcript: Transcript | None = None
) -> RealtimeInterviewSession:
    return RealtimeInterviewSession(
        microphone=create_microphone(config),
        token_service=HttpTokenService(
            server_url=config.server_url, default_model=config.realtime_model
        ),
        signaling=OpenAIRealtimeSignaling(api_base=config.openai_api_base),
        peer_connection_factory=create_peer_connection_factory(config.ice_servers),
        remote_audio=SounddeviceRemoteAudio(),
        transcriber=create_transcriber(config),
        transcript=transcript,
        session_instructions=config.session_instructions,
        greeting_instructions=config.greeting_instructions,
        turn_detection=create_turn_detection(config),
        recognition_restart_delay=config.recognition_restart_delay,
    )

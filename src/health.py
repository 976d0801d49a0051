import logging
from dataclasses import dataclass

import httpx
import sounddevice as sd

from config import InterviewerConfig

logger = logging.getLogger(__name__)

CRITICAL_CHECKS = {"audio_device", "api_keys", "server_reachable"}


@dataclass
class HealthCheckResult:
    name: str
    passed: bool
    detail: str


def run_server_checks(config: InterviewerConfig) -> list[HealthCheckResult]:
    return _report([_check_api_keys(config)])


def run_interview_checks(config: InterviewerConfig) -> list[HealthCheckResult]:
    return _report([
        _check_audio_device(config),
        _check_server_reachable(config),
        _check_recognition_fallback(config),
    ])


def has_critical_failures(results: list[HealthCheckResult]) -> bool:
    return any(not r.passed and r.name in CRITICAL_CHECKS for r in results)


def _report(results: list[HealthCheckResult]) -> list[HealthCheckResult]:
    passed = sum(1 for r in results if r.passed)
    logger.info("Health check: %d/%d passed", passed, len(results))
    for result in results:
        level = logging.INFO if result.passed else logging.WARNING
        symbol = "OK" if result.passed else "FAIL"
        logger.log(level, "  [%s] %s: %s", symbol, result.name, result.detail)
    return results


def _check_audio_device(config: InterviewerConfig) -> HealthCheckResult:
    name = "audio_device"
    try:
        if config.capture_device:
            for dev in sd.query_devices():
                if (
                    config.capture_device.lower() in dev["name"].lower()
                    and dev["max_input_channels"] > 0
                ):
                    return HealthCheckResult(
                        name=name, passed=True, detail=f"Device '{config.capture_device}' found"
                    )
        default = sd.query_devices(kind="input")
        return HealthCheckResult(name=name, passed=True, detail=f"Default input: {default['name']}")
    except sd.PortAudioError:
        return HealthCheckResult(name=name, passed=False, detail="No input devices available")
    except Exception as exc:
        return HealthCheckResult(name=name, passed=False, detail=str(exc))


def _check_api_keys(config: InterviewerConfig) -> HealthCheckResult:
    name = "api_keys"
    if config.resolve_openai_api_key():
        return HealthCheckResult(name=name, passed=True, detail="OpenAI key present")
    return HealthCheckResult(
        name=name, passed=False, detail="Set OPENAI_API_KEY or AI_INTERVIEWER_OPENAI_API_KEY_FILE"
    )


def _check_server_reachable(config: InterviewerConfig) -> HealthCheckResult:
    name = "server_reachable"
    url = f"{config.server_url.rstrip('/')}/api/realtime-session"
    try:
        response = httpx.get(url, timeout=3.0)
    except httpx.HTTPError as exc:
        return HealthCheckResult(name=name, passed=False, detail=f"{url}: {exc}")
    return HealthCheckResult(
        name=name, passed=response.status_code < 500, detail=f"{url} -> {response.status_code}"
    )


def _check_recognition_fallback(config: InterviewerConfig) -> HealthCheckResult:
    name = "recognition_fallback"
    if not config.recognition_fallback:
        return HealthCheckResult(name=name, passed=True, detail="disabled")
    if config.read_secret(config.deepgram_api_key_file):
        return HealthCheckResult(name=name, passed=True, detail="Deepgram key present")
    return HealthCheckResult(name=name, passed=False, detail="No Deepgram key, fallback off")

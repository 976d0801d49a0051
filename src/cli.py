import argparse
import asyncio
import json
import logging
import os
import signal
import sys
from pathlib import Path
from typing import Any

import httpx

from config import InterviewerConfig
from log_format import configure_logging

ENV_FILE_PATH = Path.home() / ".config" / "ai-interviewer" / "env"


def _load_env_file() -> None:
    if not ENV_FILE_PATH.exists():
        return
    with open(ENV_FILE_PATH) as f:
        for line in f:
            line = line.strip()
            if not line or line.startswith("#"):
                continue
            if "=" not in line:
                continue
            key, _, value = line.partition("=")
            value = value.strip("'\"")
            if key not in os.environ:
                os.environ[key] = value


def main() -> None:
    _load_env_file()
    parser = argparse.ArgumentParser(description="AI interviewer: realtime voice session and recruiting API")
    parser.add_argument("--verbose", "-v", action="store_true", help="Verbose logging")

    subparsers = parser.add_subparsers(dest="command")

    serve_parser = subparsers.add_parser("serve", help="Run the HTTP API")
    serve_parser.add_argument("--host", help="Bind address")
    serve_parser.add_argument("--port", type=int, help="Bind port")

    interview_parser = subparsers.add_parser("interview", help="Run a live voice interview")
    interview_parser.add_argument("--server", help="API server URL")
    interview_parser.add_argument("--save", metavar="ID", help="Store the result under this id")
    interview_parser.add_argument("--summarize", action="store_true", help="Summarize after the call")
    interview_parser.add_argument("--role", default="Candidate", help="How the summary refers to the candidate")

    args = parser.parse_args()

    config = InterviewerConfig()
    configure_logging(verbose=args.verbose, log_file=config.log_file)

    if args.command == "serve":
        _run_server(args, config)
    elif args.command == "interview":
        if args.server:
            config.server_url = args.server
        exit_code = asyncio.run(_run_interview(args, config))
        sys.exit(exit_code)
    else:
        parser.print_help()
        sys.exit(1)


def _run_server(args: argparse.Namespace, config: InterviewerConfig) -> None:
    import uvicorn

    from api.app import create_app
    from health import run_server_checks

    run_server_checks(config)
    app = create_app(config)
    uvicorn.run(
        app,
        host=args.host or config.host,
        port=args.port or config.port,
        log_level="info",
    )


async def _run_interview(args: argparse.Namespace, config: InterviewerConfig) -> int:
    from factory import create_session
    from health import has_critical_failures, run_interview_checks

    results = run_interview_checks(config)
    if has_critical_failures(results):
        logging.error("Critical health check failures, aborting startup")
        return 1

    session = create_session(config)
    return await _conduct_interview(session, args, config)


async def _conduct_interview(session, args: argparse.Namespace, config: InterviewerConfig) -> int:
    from domain.errors import RealtimeSessionError
    from domain.state import SessionState

    shutdown_event = asyncio.Event()
    shutdown_triggered = False

    def handle_signal() -> None:
        nonlocal shutdown_triggered
        if shutdown_triggered:
            logging.warning("Forced exit")
            sys.exit(1)
        shutdown_triggered = True
        logging.info("Ending interview...")
        shutdown_event.set()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, handle_signal)

    try:
        await session.start()
    except RealtimeSessionError as exc:
        logging.error("Failed to start the interview: %s", exc)
        return 1

    def handle_state(state: SessionState) -> None:
        if state == SessionState.DISCONNECTED and not shutdown_event.is_set():
            logging.warning("Connection to the interviewer dropped, ending interview")
            shutdown_event.set()

    session.on_state_change(handle_state)
    if not session.state.is_active:
        shutdown_event.set()

    try:
        await shutdown_event.wait()
    finally:
        await session.stop()

    transcript = session.transcript
    if not len(transcript):
        logging.info("Interview ended with an empty transcript")
        return 0

    analysis = None
    async with httpx.AsyncClient(base_url=config.server_url, timeout=120.0) as client:
        if args.summarize:
            analysis = await _summarize(client, transcript.to_dicts(), args.role)
            if analysis is not None:
                print(json.dumps(analysis, indent=2))
        if args.save:
            await _save(client, args.save, transcript, analysis)
    return 0


async def _summarize(
    client: httpx.AsyncClient, transcript: list[dict[str, Any]], role: str
) -> dict[str, Any] | None:
    try:
        response = await client.post(
            "/api/summarize-interview", json={"transcript": transcript, "role": role}
        )
        response.raise_for_status()
    except httpx.HTTPError:
        logging.exception("Failed to summarize interview")
        return None
    data = response.json()
    return data.get("analysis") or data


async def _save(
    client: httpx.AsyncClient, interview_id: str, transcript, analysis: dict[str, Any] | None
) -> None:
    payload = {
        "transcript": transcript.to_dicts(),
        "grouped": [line.to_dict() for line in transcript.grouped()],
        "analysis": analysis,
    }
    try:
        response = await client.put(f"/api/interviews/{interview_id}", json=payload)
        response.raise_for_status()
    except httpx.HTTPError:
        logging.exception("Failed to save interview %s", interview_id)
        return
    logging.info("Interview saved as %s", interview_id)


if __name__ == "__main__":
    main()

import asyncio
import logging
from typing import Any

import openai
from fastapi import FastAPI, File, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from adapters.openai_analysis import OpenAIAnalysisService
from adapters.openai_realtime import OpenAIRealtimeTokenService
from adapters.pdf_text import PdfExtractionError, extract_pdf_text
from adapters.result_store import JsonFileResultStore
from config import InterviewerConfig
from domain.errors import SessionCreationError
from domain.results import InterviewResult
from ports.analysis import AnalysisPort
from ports.store import ResultStorePort

logger = logging.getLogger(__name__)

PDF_CONTENT_TYPE = "application/pdf"


class GuidelinesBody(BaseModel):
    text: str = ""


def _error(message: str, status_code: int, **extra: Any) -> JSONResponse:
    return JSONResponse({"error": message, **extra}, status_code=status_code)


def _method_hint(message: str, status_code: int = 405) -> JSONResponse:
    return JSONResponse({"message": message}, status_code=status_code)


async def _json_body(request: Request) -> dict[str, Any]:
    try:
        body = await request.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


def _is_invalid_key(exc: Exception) -> bool:
    if isinstance(exc, openai.AuthenticationError):
        return True
    return getattr(exc, "code", None) == "invalid_api_key" or getattr(exc, "status_code", None) == 401


def create_app(
    config: InterviewerConfig | None = None,
    analysis: AnalysisPort | None = None,
    token_service: OpenAIRealtimeTokenService | None = None,
    store: ResultStorePort | None = None,
) -> FastAPI:
    config = config or InterviewerConfig()
    api_key = config.resolve_openai_api_key()

    if analysis is None and api_key:
        analysis = OpenAIAnalysisService(api_key=api_key, model=config.analysis_model)
    if token_service is None:
        token_service = OpenAIRealtimeTokenService(
            api_key=api_key,
            model=config.realtime_model,
            voice=config.realtime_voice,
            api_base=config.openai_api_base,
        )
    if store is None:
        store = JsonFileResultStore(config.result_store_path or None)

    app = FastAPI(title="AI Interviewer API")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.post("/api/realtime-session")
    async def create_realtime_session() -> JSONResponse:
        if not token_service.configured:
            return _error("OPENAI_API_KEY is not configured.", 500)
        try:
            payload = await token_service.create_session_payload()
        except SessionCreationError as exc:
            return _error("Failed to create realtime session", 500, details=exc.details)
        except Exception:
            logger.exception("Error creating realtime session")
            return _error("Unable to create realtime session", 500)
        return JSONResponse(payload)

    @app.get("/api/realtime-session")
    async def realtime_session_hint() -> JSONResponse:
        return _method_hint("Use POST to create an ephemeral session")

    @app.post("/api/chat")
    async def chat(request: Request) -> JSONResponse:
        if analysis is None:
            return _error("OPENAI_API_KEY is not configured.", 500)
        body = await _json_body(request)
        question = body.get("question")
        if not question or not isinstance(question, str):
            return _error("Missing question", 400)
        guidelines = body.get("guidelines")
        if not isinstance(guidelines, str):
            guidelines = store.load_guidelines()
        try:
            reply = await analysis.chat(question, guidelines)
        except Exception:
            logger.exception("Chat request failed")
            return _error("Failed to get response", 500)
        return JSONResponse({"reply": reply.reply, "usage": reply.usage})

    @app.get("/api/chat")
    async def chat_hint() -> JSONResponse:
        return _method_hint("Use POST { question } to chat.", status_code=200)

    @app.post("/api/summarize-interview")
    async def summarize_interview(request: Request) -> JSONResponse:
        if analysis is None:
            return _error("OPENAI_API_KEY is not configured.", 500)
        body = await _json_body(request)
        transcript = body.get("transcript")
        role = body.get("role") or "Candidate"
        if not isinstance(transcript, list) or not transcript:
            return _error("Transcript is required", 400)
        try:
            result = await analysis.summarize_interview(transcript, role)
        except Exception:
            logger.exception("Interview summary failed")
            return _error("Failed to summarize interview", 500)
        return JSONResponse({"analysis": result.data, "usage": result.usage})

    @app.get("/api/summarize-interview")
    async def summarize_hint() -> JSONResponse:
        return _method_hint("Use POST with a transcript to summarize.")

    @app.post("/api/analyze-resume")
    async def analyze_resume(request: Request) -> JSONResponse:
        if analysis is None:
            return _error(
                "OpenAI API key is not configured. Set OPENAI_API_KEY and restart the server.",
                500,
            )
        body = await _json_body(request)
        text = body.get("text")
        if not text:
            return _error("No text provided for analysis", 400)
        try:
            result = await analysis.analyze_resume(str(text))
        except Exception as exc:
            logger.exception("Resume analysis failed")
            if _is_invalid_key(exc):
                return _error(
                    "Invalid OpenAI API key. Update OPENAI_API_KEY and restart the server.", 500
                )
            return _error("Failed to analyze resume with AI", 500)
        return JSONResponse({"analysis": result.data, "usage": result.usage})

    @app.get("/api/analyze-resume")
    async def analyze_resume_hint() -> JSONResponse:
        return _method_hint("Use POST method to analyze resume text")

    @app.post("/api/extract-text")
    async def extract_text(resume: UploadFile | None = File(default=None)) -> JSONResponse:
        if resume is None:
            return _error("No file uploaded", 400)
        if resume.content_type != PDF_CONTENT_TYPE:
            return _error("Please upload a PDF file", 400)
        data = await resume.read()
        if len(data) > config.max_pdf_bytes:
            return _error("File size must be less than 10MB", 400)
        try:
            extracted = extract_pdf_text(data)
        except PdfExtractionError:
            logger.exception("Error extracting text")
            return _error(
                "Failed to extract text from PDF. Please ensure the PDF contains readable text.",
                500,
            )
        return JSONResponse(
            {"text": extracted.text, "pages": extracted.pages, "info": extracted.info}
        )

    @app.get("/api/extract-text")
    async def extract_text_hint() -> JSONResponse:
        return _method_hint("Use POST method to upload a resume")

    @app.put("/api/interviews/{interview_id}")
    async def save_interview(interview_id: str, request: Request) -> JSONResponse:
        body = await _json_body(request)
        if not isinstance(body.get("transcript"), list) and not isinstance(body.get("grouped"), list):
            return _error("Transcript is required", 400)
        result = InterviewResult.from_dict(interview_id, body)
        await asyncio.to_thread(store.save, result)
        return JSONResponse(result.to_dict())

    @app.get("/api/interviews/{interview_id}")
    async def load_interview(interview_id: str) -> JSONResponse:
        result = store.load(interview_id)
        if result is None:
            return _error("Interview not found", 404)
        return JSONResponse(result.to_dict())

    @app.get("/api/interviews/{interview_id}/qa")
    async def interview_qa(interview_id: str) -> JSONResponse:
        result = store.load(interview_id)
        if result is None:
            return _error("Interview not found", 404)
        return JSONResponse({"pairs": [pair.to_dict() for pair in result.qa_pairs()]})

    @app.get("/api/onboarding/guidelines")
    async def load_guidelines() -> JSONResponse:
        return JSONResponse({"text": store.load_guidelines()})

    @app.put("/api/onboarding/guidelines")
    async def save_guidelines(body: GuidelinesBody) -> JSONResponse:
        await asyncio.to_thread(store.save_guidelines, body.text)
        return JSONResponse({"text": body.text})

    return app

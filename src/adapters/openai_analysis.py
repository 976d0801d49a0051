import json
import logging
from typing import Any

from openai import AsyncOpenAI

from ports.analysis import AnalysisResult, ChatReply

logger = logging.getLogger(__name__)

DEFAULT_ANALYSIS_MODEL = "gpt-4o-mini"

CHAT_SYSTEM_TEMPLATE = """You are the Onboarding Assistant. Answer questions clearly and concisely.
If provided, use the following organization-specific onboarding guidelines as primary context. When relevant, quote or paraphrase them faithfully. If guidelines do not cover the question, answer from general best practices and note that the policy may vary.

Guidelines (may be empty):
{guidelines}"""

SUMMARY_SYSTEM_TEMPLATE = """You are an expert interviewer assistant.
You will receive a full interview transcript as JSON array of messages.
Produce a strict JSON object with fields:
{{
  "summary": string,                     // concise narrative summary (120-200 words)
  "key_strengths": string[],             // 3-7 items
  "concerns": string[],                  // 2-6 items, constructive
  "skills_mentioned": string[],          // deduplicated
  "notable_quotes": string[],            // 2-5 short quotes
  "overall_recommendation": "Strong Hire" | "Hire" | "Leaning Hire" | "Neutral" | "Leaning No" | "No Hire"
}}
Guidelines: be specific and grounded in the transcript. Refer to the candidate as {role}. Output valid JSON only."""

RESUME_SYSTEM_PROMPT = (
    "You are an expert in helping the employer to analyze the resume of the candidate. "
    "Analyze resumes thoroughly and provide constructive feedback."
)

RESUME_PROMPT_TEMPLATE = """
Analyze the following resume text and return ONLY a strict JSON object with exactly these fields and no others:

{{
  "summary": "Brief professional summary of the candidate",
  "skills": ["top", "skills", "from", "the", "resume"],
  "strengths": ["clear, specific strengths grounded in the resume"],
  "weaknesses": ["constructive weaknesses or gaps grounded in the resume"]
}}

Rules:
- Output valid JSON only (no markdown fences or extra prose).
- Each array should contain 3-8 concise items.
- If information is insufficient, return an empty array for that field.

Resume Text:
{text}"""


class EmptyCompletionError(Exception):
    pass


class OpenAIAnalysisService:
    def __init__(
        self,
        api_key: str,
        model: str = DEFAULT_ANALYSIS_MODEL,
        client: AsyncOpenAI | None = None,
    ) -> None:
        self._client = client or AsyncOpenAI(api_key=api_key)
        self._model = model

    async def chat(self, question: str, guidelines: str = "") -> ChatReply:
        completion = await self._client.chat.completions.create(
            model=self._model,
            temperature=0.2,
            max_tokens=800,
            messages=[
                {"role": "system", "content": CHAT_SYSTEM_TEMPLATE.format(guidelines=guidelines)},
                {"role": "user", "content": question},
            ],
        )
        content = _message_content(completion) or ""
        return ChatReply(reply=content.strip(), usage=_usage(completion))

    async def summarize_interview(
        self, transcript: list[dict[str, Any]], role: str = "Candidate"
    ) -> AnalysisResult:
        completion = await self._client.chat.completions.create(
            model=self._model,
            temperature=0.3,
            max_tokens=1200,
            messages=[
                {"role": "system", "content": SUMMARY_SYSTEM_TEMPLATE.format(role=role)},
                {"role": "user", "content": json.dumps(transcript)},
            ],
        )
        content = _message_content(completion) or "{}"
        data = parse_json_reply(content)
        if data is None:
            logger.warning("Interview summary was not valid JSON")
            data = {"summary": content, "error": "Parser failed: non-JSON output"}
        return AnalysisResult(data=data, usage=_usage(completion))

    async def analyze_resume(self, text: str) -> AnalysisResult:
        completion = await self._client.chat.completions.create(
            model=self._model,
            temperature=0.3,
            max_tokens=2000,
            messages=[
                {"role": "system", "content": RESUME_SYSTEM_PROMPT},
                {"role": "user", "content": RESUME_PROMPT_TEMPLATE.format(text=text)},
            ],
        )
        content = _message_content(completion)
        if not content:
            raise EmptyCompletionError("No response from OpenAI")
        data = parse_json_reply(content)
        if data is None:
            logger.warning("Resume analysis was not valid JSON")
            data = {
                "summary": "Analysis completed",
                "raw_analysis": content,
                "error": "Failed to parse structured response",
            }
        return AnalysisResult(data=data, usage=_usage(completion))


def parse_json_reply(content: str) -> dict[str, Any] | None:
    text = content.strip()
    if text.startswith("```"):
        text = text.split("\n", 1)[1] if "\n" in text else ""
        if text.rstrip().endswith("```"):
            text = text.rstrip()[:-3]
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        return None
    return data if isinstance(data, dict) else None


def _message_content(completion: Any) -> str | None:
    try:
        return completion.choices[0].message.content
    except (AttributeError, IndexError):
        return None


def _usage(completion: Any) -> dict[str, Any] | None:
    usage = getattr(completion, "usage", None)
    if usage is None:
        return None
    if hasattr(usage, "model_dump"):
        return usage.model_dump()
    return dict(usage)

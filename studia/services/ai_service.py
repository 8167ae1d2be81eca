"""
AI providers for generating study material.

Gemini is the primary provider and reads the document itself (inline base64).
Claude is the text-only secondary provider used after text extraction.
"""
import base64
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Awaitable, Callable

import anthropic
import httpx

from studia.core.errors import AllProvidersFailedError, ProviderError
from studia.core.logging_config import get_logger

logger = get_logger(__name__)

GEMINI_API_BASE = "https://generativelanguage.googleapis.com/v1beta/models"

ANALYSIS_PROMPT = """You are Studia, an AI study assistant. Analyze the provided study material and return a JSON object with exactly this structure:

{
  "summary": "A clear 3-5 sentence overview of the entire document",
  "keyConceptsList": [
    { "term": "Concept name", "definition": "Clear explanation of the concept" }
  ],
  "flashcards": [
    { "question": "Question about an important topic", "answer": "Concise answer" }
  ],
  "quiz": [
    {
      "question": "Multiple choice question",
      "options": ["Option A", "Option B", "Option C", "Option D"],
      "correctIndex": 0,
      "explanation": "Why this answer is correct"
    }
  ],
  "hardQuiz": [
    {
      "question": "Harder, analytical multiple choice question",
      "options": ["Option A", "Option B", "Option C", "Option D"],
      "correctIndex": 0,
      "explanation": "Why this answer is correct"
    }
  ]
}

Rules:
- Generate at least 5 key concepts
- Generate at least 8 flashcards
- Generate at least 5 quiz questions and at least 5 hard quiz questions
- Every quiz question has exactly 4 options and correctIndex between 0 and 3
- Be concise and student-friendly
- Return ONLY valid JSON, no markdown, no extra text"""

EXAM_PROMPT_TEMPLATE = """You are a strict university professor. Analyze the attached document and generate exactly {count} objective, multiple-choice questions.
The difficulty MUST be university-level (high critical thinking, scenario-based, and analytical).
Return the data as a pure JSON array. Every object MUST follow this structure exactly:
[
  {{
    "question": "The question text here?",
    "options": ["Option A", "Option B", "Option C", "Option D"],
    "correctIndex": 0,
    "explanation": "A detailed explanation of why this is correct."
  }}
]"""

SECONDARY_SYSTEM_PROMPT = (
    "You are an expert study assistant. You turn study material into summaries, "
    "flashcards and quizzes. Always return a single valid JSON object and nothing else."
)

MIME_TYPES = {
    ".pdf": "application/pdf",
    ".docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    ".txt": "text/plain",
    ".md": "text/plain",
}

# Formats the primary provider accepts as inline document data
PRIMARY_SUPPORTED_MIME_TYPES = {"application/pdf", "text/plain"}


def mime_type_for(file_name: str) -> str:
    return MIME_TYPES.get(Path(file_name or "").suffix.lower(), "application/octet-stream")


def is_primary_supported(file_name: str) -> bool:
    return mime_type_for(file_name) in PRIMARY_SUPPORTED_MIME_TYPES


def build_exam_prompt(count: int) -> str:
    return EXAM_PROMPT_TEMPLATE.format(count=count)


@dataclass(frozen=True)
class ProviderDescriptor:
    """One entry of an ordered fallback list."""
    identifier: str
    invoke: Callable[[bytes], Awaitable[str]]


async def run_provider_chain(
    descriptors: list[ProviderDescriptor], data: bytes
) -> tuple[str, str]:
    """
    Try each provider in order and return (identifier, text) of the first
    non-empty success.

    Raises:
        AllProvidersFailedError: every provider failed or returned nothing
    """
    failures = []
    for descriptor in descriptors:
        logger.info(f"Trying provider: {descriptor.identifier}")
        try:
            text = await descriptor.invoke(data)
        except ProviderError as e:
            logger.warning(f"Provider {descriptor.identifier} failed: {e}")
            failures.append(descriptor.identifier)
            continue
        if text and text.strip():
            logger.info(f"Success with provider: {descriptor.identifier}")
            return descriptor.identifier, text
        logger.warning(f"Provider {descriptor.identifier} returned empty text")
        failures.append(descriptor.identifier)

    raise AllProvidersFailedError(
        f"All providers failed ({', '.join(failures) or 'none configured'})"
    )


def _collect_gemini_text(payload: dict) -> str:
    candidates = payload.get("candidates") or []
    if not candidates:
        return ""
    parts = (candidates[0].get("content") or {}).get("parts") or []
    texts = [p.get("text", "") for p in parts if isinstance(p, dict)]
    return "".join(t for t in texts if isinstance(t, str)).strip()


def _error_excerpt(resp: httpx.Response) -> str:
    try:
        body = resp.json()
        message = (body.get("error") or {}).get("message")
        if message:
            return str(message)[:200]
    except (ValueError, AttributeError):
        pass
    return resp.text[:200]


class GeminiClient:
    """Thin client for the Gemini generateContent REST endpoint."""

    def __init__(self, http_client: httpx.AsyncClient, api_key: str, api_base: str = GEMINI_API_BASE):
        self.http_client = http_client
        self.api_key = api_key
        self.api_base = api_base.rstrip("/")

    async def generate_from_document(
        self,
        model: str,
        data: bytes,
        mime_type: str,
        prompt: str,
        temperature: float = 0.3,
        max_output_tokens: int = 8192,
        json_mode: bool = False,
    ) -> str:
        """
        Submit a document inline together with an instruction prompt.

        Returns:
            Generated text

        Raises:
            ProviderError: non-2xx status, transport failure or empty output
        """
        generation_config = {"temperature": temperature, "maxOutputTokens": max_output_tokens}
        if json_mode:
            generation_config["responseMimeType"] = "application/json"

        body = {
            "contents": [{
                "parts": [
                    {"inline_data": {"mime_type": mime_type, "data": base64.b64encode(data).decode("ascii")}},
                    {"text": prompt},
                ],
            }],
            "generationConfig": generation_config,
        }

        start_time = time.time()
        try:
            resp = await self.http_client.post(
                f"{self.api_base}/{model}:generateContent",
                params={"key": self.api_key},
                json=body,
            )
        except httpx.HTTPError as e:
            raise ProviderError(f"{model} request failed: {e}")

        duration_ms = (time.time() - start_time) * 1000
        if resp.status_code != 200:
            raise ProviderError(f"{model} failed {resp.status_code}: {_error_excerpt(resp)}")

        try:
            text = _collect_gemini_text(resp.json())
        except ValueError:
            raise ProviderError(f"{model} returned a non-JSON body")
        if not text:
            raise ProviderError(f"{model} returned empty text")

        logger.info(f"Gemini generation completed | model={model} | duration={duration_ms:.2f}ms")
        return text


def build_primary_chain(
    gemini: GeminiClient,
    models: list[str],
    mime_type: str,
    prompt: str,
) -> list[ProviderDescriptor]:
    """One descriptor per model, in the configured order."""
    def make_invoke(model: str):
        async def invoke(data: bytes) -> str:
            return await gemini.generate_from_document(model, data, mime_type, prompt)
        return invoke

    return [ProviderDescriptor(identifier=model, invoke=make_invoke(model)) for model in models]


class ClaudeTextGenerator:
    """Secondary, text-only generation using Anthropic Claude."""

    def __init__(self, api_key: str, model: str, client: anthropic.Anthropic | None = None):
        self.api_key = api_key
        self.model = model
        self._client = client

    @property
    def configured(self) -> bool:
        return bool(self.api_key) or self._client is not None

    def get_client(self) -> anthropic.Anthropic:
        if self._client is None:
            if not self.api_key:
                logger.error("Anthropic API key not configured")
                raise ProviderError("ANTHROPIC_API_KEY not configured")
            self._client = anthropic.Anthropic(api_key=self.api_key)
        return self._client

    async def generate(
        self,
        prompt: str,
        max_tokens: int = 8192,
        temperature: float = 0.3,
    ) -> str:
        """
        Generate a JSON answer for ``prompt``.

        Raises:
            ProviderError: API failure or empty output
        """
        start_time = time.time()
        logger.info(f"Starting secondary generation | model={self.model} | prompt_chars={len(prompt)}")
        client = self.get_client()
        try:
            message = client.messages.create(
                model=self.model,
                max_tokens=max_tokens,
                system=SECONDARY_SYSTEM_PROMPT,
                messages=[{"role": "user", "content": prompt}],
                temperature=temperature,
            )
        except anthropic.APIError as e:
            duration_ms = (time.time() - start_time) * 1000
            logger.error(f"Secondary generation failed | duration={duration_ms:.2f}ms | error={e}")
            raise ProviderError(f"{self.model} failed: {e}")

        duration_ms = (time.time() - start_time) * 1000
        text = "".join(
            block.text for block in message.content if getattr(block, "type", "") == "text"
        ).strip()
        if not text:
            raise ProviderError(f"{self.model} returned empty text")

        logger.info(
            f"Secondary generation completed | duration={duration_ms:.2f}ms | "
            f"input_tokens={message.usage.input_tokens} | output_tokens={message.usage.output_tokens}"
        )
        return text

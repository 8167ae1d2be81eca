"""
Document analysis pipeline.

One request runs to completion in order:

    download -> primary (Gemini, document inline, ordered model list)
             -> on failure: extract text -> secondary (Claude, text only)
             -> parse -> persist (best effort) -> result

Every step awaits sequentially. Fatal steps raise a StudiaError subclass; the
route turns it into the failure envelope.
"""
from dataclasses import dataclass
from typing import Callable

from studia.core.config import Settings
from studia.core.errors import (
    AllProvidersFailedError,
    ExtractionError,
    ParseError,
    ProviderError,
)
from studia.core.logging_config import get_logger
from studia.core.security import VerifiedIdentity
from studia.schemas.study import AnalysisResult, QuizItem
from studia.services.ai_service import (
    ANALYSIS_PROMPT,
    build_exam_prompt,
    build_primary_chain,
    is_primary_supported,
    mime_type_for,
    run_provider_chain,
)
from studia.services.result_parser import parse_analysis, parse_exam

logger = get_logger(__name__)

# (user_id, file_name, storage_path, result) -> stored row id
ResultSink = Callable[[str, str, str, AnalysisResult], int]


@dataclass(frozen=True)
class PipelineConfig:
    analysis_prompt: str = ANALYSIS_PROMPT
    primary_models: tuple[str, ...] = ("gemini-2.0-flash",)
    exam_model: str = "gemini-2.5-flash"
    exam_question_count: int = 50
    exam_max_output_tokens: int = 32768
    min_extracted_chars: int = 50
    max_prompt_chars: int = 14000

    @classmethod
    def from_settings(cls, settings: Settings) -> "PipelineConfig":
        return cls(
            primary_models=tuple(settings.gemini_model_list),
            exam_model=settings.gemini_exam_model,
            exam_question_count=settings.exam_question_count,
            min_extracted_chars=settings.min_extracted_chars,
            max_prompt_chars=settings.max_prompt_chars,
        )


@dataclass(frozen=True)
class AnalysisOutcome:
    result: AnalysisResult
    provider: str
    record_id: int | None = None


class AnalysisPipeline:
    """
    Orchestrates one analysis or exam request.

    Collaborators are duck-typed:
        storage:   ``async download(path) -> bytes``
        gemini:    ``async generate_from_document(model, data, mime_type, prompt, ...)``,
                   or None when no primary credential is configured
        extractor: ``async extract(data, file_name) -> str``
        secondary: ``async generate(prompt) -> str``, or None
        sink:      ResultSink, or None to skip persistence
    """

    def __init__(
        self,
        config: PipelineConfig,
        storage,
        gemini=None,
        extractor=None,
        secondary=None,
        sink: ResultSink | None = None,
    ):
        self.config = config
        self.storage = storage
        self.gemini = gemini
        self.extractor = extractor
        self.secondary = secondary
        self.sink = sink

    async def analyze(
        self, identity: VerifiedIdentity, storage_path: str, file_name: str
    ) -> AnalysisOutcome:
        data = await self.storage.download(storage_path)

        result, provider = await self._try_primary(data, file_name)
        if result is None:
            result, provider = await self._run_fallback(data, file_name)

        logger.info(
            f"Analysis done | provider={provider} | concepts={len(result.key_concepts)} | "
            f"flashcards={len(result.flashcards)} | quiz={len(result.quiz)} | "
            f"hard_quiz={len(result.hard_quiz)}"
        )
        record_id = self._persist(identity, file_name, storage_path, result)
        return AnalysisOutcome(result=result, provider=provider, record_id=record_id)

    async def _try_primary(self, data: bytes, file_name: str) -> tuple[AnalysisResult | None, str]:
        if self.gemini is None:
            logger.info("Primary provider not configured, using fallback path")
            return None, ""
        if not is_primary_supported(file_name):
            logger.info(f"Primary provider does not accept {file_name}, using fallback path")
            return None, ""

        chain = build_primary_chain(
            self.gemini,
            list(self.config.primary_models),
            mime_type_for(file_name),
            self.config.analysis_prompt,
        )
        try:
            provider, raw = await run_provider_chain(chain, data)
        except AllProvidersFailedError as e:
            logger.warning(f"Primary attempt exhausted: {e.message}")
            return None, ""

        try:
            return parse_analysis(raw), provider
        except ParseError as e:
            logger.warning(f"Primary response from {provider} unusable: {e.message[:200]}")
            return None, ""

    async def _run_fallback(self, data: bytes, file_name: str) -> tuple[AnalysisResult, str]:
        text = await self.extract_text(data, file_name)

        if self.secondary is None:
            raise AllProvidersFailedError("All providers failed: no fallback provider configured")

        prompt = (
            f"Study material:\n{text[:self.config.max_prompt_chars]}\n\n"
            f"{self.config.analysis_prompt}"
        )
        try:
            raw = await self.secondary.generate(prompt)
        except ProviderError as e:
            raise AllProvidersFailedError(f"All providers failed: {e}")
        return parse_analysis(raw), getattr(self.secondary, "model", "secondary")

    async def extract_text(self, data: bytes, file_name: str) -> str:
        """Extract text; anything shorter than the configured minimum is a failure."""
        if self.extractor is None:
            raise ExtractionError("No readable text: no extractor configured")
        text = (await self.extractor.extract(data, file_name) or "").strip()
        if len(text) < self.config.min_extracted_chars:
            logger.warning(f"Extracted only {len(text)} chars from {file_name}")
            raise ExtractionError("No readable text found in document")
        logger.info(f"Extracted {len(text)} chars from {file_name}")
        return text

    def _persist(
        self, identity: VerifiedIdentity, file_name: str, storage_path: str, result: AnalysisResult
    ) -> int | None:
        if self.sink is None:
            return None
        try:
            return self.sink(identity.user_id, file_name, storage_path, result)
        except Exception:
            logger.exception("DB error (non-fatal) while saving study result")
            return None

    async def generate_exam(
        self, identity: VerifiedIdentity, storage_path: str, file_name: str
    ) -> list[QuizItem]:
        """Single multimodal call, JSON mode, no fallback and no persistence."""
        data = await self.storage.download(storage_path)
        if self.gemini is None:
            raise AllProvidersFailedError("All providers failed: primary provider not configured")

        count = self.config.exam_question_count
        try:
            raw = await self.gemini.generate_from_document(
                self.config.exam_model,
                data,
                mime_type_for(file_name),
                build_exam_prompt(count),
                temperature=0.2,
                max_output_tokens=self.config.exam_max_output_tokens,
                json_mode=True,
            )
        except ProviderError as e:
            raise AllProvidersFailedError(f"All providers failed: {e}")

        items = parse_exam(raw)
        if len(items) != count:
            logger.warning(f"Exam for user {identity.user_id} has {len(items)} items, asked for {count}")
        return items

"""Turn raw model output into validated study material."""
import json
import re

from pydantic import TypeAdapter, ValidationError

from studia.core.errors import ParseError
from studia.core.logging_config import get_logger
from studia.schemas.study import AnalysisResult, QuizItem

logger = get_logger(__name__)

RAW_SAMPLE_CHARS = 400

_quiz_list = TypeAdapter(list[QuizItem])


def strip_json_fences(text: str) -> str:
    """Strip markdown code fences (```json ... ```) from AI responses."""
    stripped = re.sub(r"```(?:json)?", "", text.strip(), flags=re.IGNORECASE)
    return stripped.strip()


def _outermost(text: str, opener: str, closer: str) -> str | None:
    start = text.find(opener)
    end = text.rfind(closer)
    if start == -1 or end <= start:
        return None
    return text[start:end + 1]


def _fail(reason: str, cleaned: str) -> ParseError:
    logger.error(f"Could not parse AI response: {reason}")
    return ParseError(f"JSON parse failed ({reason}). Raw: {cleaned[:RAW_SAMPLE_CHARS]}")


def parse_analysis(raw: str) -> AnalysisResult:
    """Parse the outermost ``{...}`` of ``raw`` into an AnalysisResult."""
    cleaned = strip_json_fences(raw or "")
    span = _outermost(cleaned, "{", "}")
    if span is None:
        raise _fail("no JSON object found", cleaned)
    try:
        payload = json.loads(span)
    except json.JSONDecodeError as e:
        raise _fail(str(e), cleaned)
    try:
        return AnalysisResult.model_validate(payload)
    except ValidationError as e:
        raise _fail(f"{e.error_count()} validation errors", cleaned)


def parse_exam(raw: str) -> list[QuizItem]:
    """Parse an exam: a JSON array, or an object wrapping one under ``exam``/``questions``."""
    cleaned = strip_json_fences(raw or "")
    array_start = cleaned.find("[")
    object_start = cleaned.find("{")

    if array_start != -1 and (object_start == -1 or array_start < object_start):
        span = _outermost(cleaned, "[", "]")
    else:
        span = _outermost(cleaned, "{", "}")
    if span is None:
        raise _fail("no JSON found", cleaned)

    try:
        payload = json.loads(span)
    except json.JSONDecodeError as e:
        raise _fail(str(e), cleaned)

    if isinstance(payload, dict):
        payload = payload.get("exam", payload.get("questions"))
    if not isinstance(payload, list):
        raise _fail("expected a list of questions", cleaned)

    try:
        return _quiz_list.validate_python(payload)
    except ValidationError as e:
        raise _fail(f"{e.error_count()} validation errors", cleaned)

"""
Text extraction for the fallback path.

Two extractors share one interface, ``async extract(data, file_name) -> str``:
the hosted parsing service (asynchronous upload / poll / fetch job) and a
local extractor for PDF and Word documents used when no parsing service key
is configured.
"""

import asyncio
import io
from pathlib import Path
from typing import Awaitable, Callable

import httpx
import PyPDF2
from docx import Document as WordDocument

from studia.core.errors import ExtractionError
from studia.core.logging_config import get_logger
from studia.services.ai_service import mime_type_for

logger = get_logger(__name__)

MAX_FILE_SIZE = 25 * 1024 * 1024  # 25 MB
SUPPORTED_EXTENSIONS = {'.pdf', '.docx', '.txt', '.md'}

JOB_SUCCESS = "SUCCESS"
JOB_FAILED_STATUSES = {"ERROR", "CANCELED", "CANCELLED"}


def _json_body(resp: httpx.Response, stage: str) -> dict:
    try:
        body = resp.json()
    except ValueError:
        logger.error(f"Parse service sent a non-JSON body | stage={stage} | body={resp.text[:200]}")
        raise ExtractionError(f"Extraction {stage} failed: unreadable response")
    if not isinstance(body, dict):
        raise ExtractionError(f"Extraction {stage} failed: unexpected response")
    return body


class LlamaParseExtractor:
    """Extract text through the hosted parsing service's job API."""

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        api_key: str,
        api_url: str,
        poll_interval: float = 2.0,
        max_attempts: int = 30,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.http_client = http_client
        self.api_key = api_key
        self.api_url = api_url.rstrip("/")
        self.poll_interval = poll_interval
        self.max_attempts = max_attempts
        self.sleep = sleep

    @property
    def headers(self) -> dict:
        return {"Authorization": f"Bearer {self.api_key}", "Accept": "application/json"}

    async def extract(self, data: bytes, file_name: str) -> str:
        job_id = await self._upload(data, file_name)
        await self._wait_for_job(job_id)
        return await self._fetch_text(job_id)

    async def _upload(self, data: bytes, file_name: str) -> str:
        files = {"file": (file_name, data, mime_type_for(file_name))}
        try:
            resp = await self.http_client.post(f"{self.api_url}/upload", headers=self.headers, files=files)
        except httpx.HTTPError as e:
            raise ExtractionError(f"Extraction upload failed: {e}")
        if resp.status_code not in (200, 201):
            logger.error(f"Parse upload rejected | status={resp.status_code} | body={resp.text[:200]}")
            raise ExtractionError(f"Extraction upload failed: HTTP {resp.status_code}")

        job_id = _json_body(resp, "upload").get("id")
        if not job_id:
            raise ExtractionError("Extraction upload failed: no job id returned")
        logger.info(f"Parse job submitted | job={job_id} | file={file_name}")
        return job_id

    async def _wait_for_job(self, job_id: str) -> None:
        for attempt in range(1, self.max_attempts + 1):
            await self.sleep(self.poll_interval)
            try:
                resp = await self.http_client.get(f"{self.api_url}/job/{job_id}", headers=self.headers)
            except httpx.HTTPError as e:
                raise ExtractionError(f"Extraction status check failed: {e}")
            if resp.status_code != 200:
                raise ExtractionError(f"Extraction status check failed: HTTP {resp.status_code}")

            status = str(_json_body(resp, "status check").get("status", "")).upper()
            logger.debug(f"Parse job {job_id} status={status} (attempt {attempt}/{self.max_attempts})")
            if status == JOB_SUCCESS:
                return
            if status in JOB_FAILED_STATUSES:
                raise ExtractionError(f"Extraction job {status.lower()}")

        logger.warning(f"Parse job {job_id} did not finish after {self.max_attempts} polls")
        raise ExtractionError("Extraction timed out")

    async def _fetch_text(self, job_id: str) -> str:
        try:
            resp = await self.http_client.get(
                f"{self.api_url}/job/{job_id}/result/text", headers=self.headers
            )
        except httpx.HTTPError as e:
            raise ExtractionError(f"Extraction result fetch failed: {e}")
        if resp.status_code != 200:
            raise ExtractionError(f"Extraction result fetch failed: HTTP {resp.status_code}")
        return _json_body(resp, "result fetch").get("text") or ""


def extract_text_from_pdf(file_content: bytes) -> str:
    """Extract text from PDF file."""
    try:
        pdf_reader = PyPDF2.PdfReader(io.BytesIO(file_content))
        text_parts = []
        logger.debug(f"Processing PDF with {len(pdf_reader.pages)} pages")
        for page in pdf_reader.pages:
            text = page.extract_text()
            if text:
                text_parts.append(text)
        return "\n\n".join(text_parts)
    except Exception as e:
        logger.error(f"PDF extraction failed: {str(e)}")
        raise ExtractionError(f"Failed to extract text from PDF: {str(e)}")


def extract_text_from_docx(file_content: bytes) -> str:
    """Extract text from Word document (.docx), including table rows."""
    try:
        doc = WordDocument(io.BytesIO(file_content))
        text_parts = [p.text for p in doc.paragraphs if p.text.strip()]
        for table in doc.tables:
            for row in table.rows:
                row_text = [cell.text.strip() for cell in row.cells if cell.text.strip()]
                if row_text:
                    text_parts.append(" | ".join(row_text))
        return "\n\n".join(text_parts)
    except Exception as e:
        raise ExtractionError(f"Failed to extract text from Word document: {str(e)}")


def extract_text_from_text_file(file_content: bytes) -> str:
    for encoding in ['utf-8', 'utf-16', 'latin-1']:
        try:
            return file_content.decode(encoding)
        except UnicodeDecodeError:
            continue
    raise ExtractionError("Unable to decode text file with any supported encoding")


class LocalTextExtractor:
    """In-process extraction for PDF, Word and plain text files."""

    async def extract(self, data: bytes, file_name: str) -> str:
        return process_file(data, file_name)


def process_file(file_content: bytes, filename: str) -> str:
    """
    Extract the text content of a document.

    Raises:
        ExtractionError: too large, unsupported type or unreadable file
    """
    logger.info(f"Extracting text locally: {filename}")
    if len(file_content) > MAX_FILE_SIZE:
        raise ExtractionError(
            f"File size exceeds maximum allowed size of {MAX_FILE_SIZE // (1024 * 1024)} MB"
        )

    ext = Path(filename or "").suffix.lower()
    if ext == '.doc':
        raise ExtractionError("Legacy .doc format is not supported. Please convert to .docx")
    if ext not in SUPPORTED_EXTENSIONS:
        raise ExtractionError(
            f"Unsupported file type: {ext or 'unknown'}. Supported: {', '.join(sorted(SUPPORTED_EXTENSIONS))}"
        )

    if ext == '.pdf':
        return extract_text_from_pdf(file_content)
    if ext == '.docx':
        return extract_text_from_docx(file_content)
    return extract_text_from_text_file(file_content)

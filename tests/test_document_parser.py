import asyncio
import io

import httpx
import pytest
from docx import Document as WordDocument

from studia.core.errors import ExtractionError
from studia.services.document_parser import (
    LlamaParseExtractor,
    LocalTextExtractor,
    process_file,
)

API = "https://parse.test/api/parsing"


def _extractor(handler, max_attempts=30, sleeps=None) -> LlamaParseExtractor:
    async def sleep(seconds):
        if sleeps is not None:
            sleeps.append(seconds)

    return LlamaParseExtractor(
        httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        api_key="llx-test",
        api_url=API,
        poll_interval=2.0,
        max_attempts=max_attempts,
        sleep=sleep,
    )


class TestLlamaParseExtractor:
    def test_upload_poll_fetch(self):
        statuses = iter(["PENDING", "PENDING", "SUCCESS"])
        paths = []
        sleeps = []

        def handler(request: httpx.Request) -> httpx.Response:
            paths.append((request.method, request.url.path))
            assert request.headers["Authorization"] == "Bearer llx-test"
            if request.url.path.endswith("/upload"):
                return httpx.Response(200, json={"id": "job-1", "status": "PENDING"})
            if request.url.path.endswith("/result/text"):
                return httpx.Response(200, json={"text": "Extracted lecture notes"})
            return httpx.Response(200, json={"status": next(statuses)})

        text = asyncio.run(_extractor(handler, sleeps=sleeps).extract(b"%PDF", "notes.pdf"))

        assert text == "Extracted lecture notes"
        assert paths == [
            ("POST", "/api/parsing/upload"),
            ("GET", "/api/parsing/job/job-1"),
            ("GET", "/api/parsing/job/job-1"),
            ("GET", "/api/parsing/job/job-1"),
            ("GET", "/api/parsing/job/job-1/result/text"),
        ]
        assert sleeps == [2.0, 2.0, 2.0]

    def test_gives_up_after_attempt_budget(self):
        polls = []

        def handler(request):
            if request.url.path.endswith("/upload"):
                return httpx.Response(200, json={"id": "job-2"})
            if request.url.path.endswith("/result/text"):
                raise AssertionError("result must not be fetched")
            polls.append(request)
            return httpx.Response(200, json={"status": "PENDING"})

        with pytest.raises(ExtractionError, match="timed out"):
            asyncio.run(_extractor(handler, max_attempts=4).extract(b"%PDF", "notes.pdf"))
        assert len(polls) == 4

    def test_failed_job(self):
        def handler(request):
            if request.url.path.endswith("/upload"):
                return httpx.Response(200, json={"id": "job-3"})
            return httpx.Response(200, json={"status": "ERROR"})

        with pytest.raises(ExtractionError, match="error"):
            asyncio.run(_extractor(handler).extract(b"%PDF", "notes.pdf"))

    def test_rejected_upload(self):
        with pytest.raises(ExtractionError, match="HTTP 401"):
            asyncio.run(_extractor(lambda r: httpx.Response(401, text="bad key")).extract(b"%PDF", "a.pdf"))

    def test_non_json_upload_response(self):
        handler = lambda r: httpx.Response(200, text="<html>gateway</html>")
        with pytest.raises(ExtractionError, match="unreadable response"):
            asyncio.run(_extractor(handler).extract(b"%PDF", "a.pdf"))

    def test_non_object_status_response(self):
        def handler(request):
            if request.url.path.endswith("/upload"):
                return httpx.Response(200, json={"id": "job-4"})
            return httpx.Response(200, json=["SUCCESS"])

        with pytest.raises(ExtractionError, match="unexpected response"):
            asyncio.run(_extractor(handler).extract(b"%PDF", "a.pdf"))


class TestLocalExtraction:
    def test_docx_paragraphs_and_tables(self):
        doc = WordDocument()
        doc.add_paragraph("Cell biology basics")
        table = doc.add_table(rows=1, cols=2)
        table.rows[0].cells[0].text = "Mitochondria"
        table.rows[0].cells[1].text = "Powerhouse"
        buffer = io.BytesIO()
        doc.save(buffer)

        text = asyncio.run(LocalTextExtractor().extract(buffer.getvalue(), "bio.docx"))
        assert "Cell biology basics" in text
        assert "Mitochondria | Powerhouse" in text

    def test_plain_text(self):
        assert process_file("Grüße".encode("utf-8"), "notes.txt") == "Grüße"

    def test_legacy_doc_rejected(self):
        with pytest.raises(ExtractionError, match="Legacy .doc"):
            process_file(b"data", "old.doc")

    def test_unsupported_extension(self):
        with pytest.raises(ExtractionError, match="Unsupported file type"):
            process_file(b"data", "slides.pptx")

    def test_garbage_pdf(self):
        with pytest.raises(ExtractionError):
            process_file(b"not really a pdf", "broken.pdf")

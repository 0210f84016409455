#!/usr/bin/env python3
"""
test script for studyguide
tests every component without calling the real chat completions api
"""

import io
import os
import sys
import tempfile
from pathlib import Path
from unittest import mock

# add src to python path so we can import the studyguide package
sys.path.insert(0, str(Path(__file__).parent / "src"))

FLASHCARD_REPLY = (
    "Here are your flashcards:\n\n"
    "Question: What is photosynthesis?\nAnswer: How plants turn light into chemical energy.\n\n"
    "Question: Where does it happen?\nAnswer: In the chloroplasts.\n\n"
    "I hope this helps!"
)


class FakeLLM:
    """stands in for LLMService, records what it was asked"""

    def __init__(self, reply=FLASHCARD_REPLY, error=None):
        self.reply = reply
        self.error = error
        self.calls = []
        self.closed = False

    def generate(self, kind, content):
        from studyguide.llm_service import GenerationResult
        from studyguide.models import UsageInfo

        self.calls.append((kind, content))
        if self.error:
            raise self.error
        return GenerationResult(content=self.reply, model="gpt-4o-mini", usage=UsageInfo(total_tokens=42))

    def close(self):
        self.closed = True


class FakeClient:
    """stands in for ChatCompletionsClient, replies per model"""

    def __init__(self, outcomes):
        self.outcomes = outcomes
        self.models_tried = []

    def create(self, model, messages, max_tokens, temperature):
        self.models_tried.append(model)
        outcome = self.outcomes[model]
        if isinstance(outcome, Exception):
            raise outcome
        return {
            "choices": [{"message": {"role": "assistant", "content": outcome}}],
            "usage": {"prompt_tokens": 10, "completion_tokens": 5, "total_tokens": 15},
        }


def test_imports():
    """test if all modules can be imported"""
    from studyguide import api, cli, config, document_parser, errors, exporters
    from studyguide import llm_service, models, processing_service, prompts, session
    from studyguide import structurer, text_cleaner

    assert api.app.title == "Study Guide API"
    assert {k.value for k in models.OutputKind} == {"summary", "points", "flashcards", "quiz", "outline"}


def test_validate_upload():
    """test the type allow-list and size ceiling"""
    from studyguide.document_parser import validate_upload
    from studyguide.errors import ValidationError, PayloadTooLargeError

    validate_upload("notes.md", "text/markdown", 10)
    validate_upload("scan.PNG", "application/octet-stream", 10)
    validate_upload("no-extension", "application/pdf", 10)

    try:
        validate_upload("virus.exe", "application/octet-stream", 10)
        assert False, "exe accepted"
    except ValidationError as e:
        assert e.status_code == 400
        assert "Invalid file type" in e.message

    try:
        validate_upload("big.pdf", "application/pdf", 50 * 1024 * 1024 + 1)
        assert False, "oversized file accepted"
    except PayloadTooLargeError as e:
        assert e.status_code == 413
        assert isinstance(e, ValidationError)


def test_document_parser_text_and_cleanup():
    """test markdown parsing and that the temp file is always removed"""
    from studyguide.document_parser import DocumentParser
    from studyguide.errors import ValidationError

    with tempfile.TemporaryDirectory() as tmp:
        parser = DocumentParser(upload_dir=tmp)

        text = parser.parse_upload("# Cells\n- membrane\n".encode("utf-8"), "notes.md")
        assert text == "# Cells\n- membrane\n"
        assert os.listdir(tmp) == []

        try:
            parser.parse_upload(b"MZ\x90\x00", "virus.exe")
            assert False, "exe parsed"
        except ValidationError:
            pass
        assert os.listdir(tmp) == []


def test_document_parser_pdf():
    """test pdf text extraction and the placeholder fallbacks"""
    import fitz
    from studyguide.document_parser import DocumentParser

    doc = fitz.open()
    page = doc.new_page()
    page.insert_text((72, 72), "Mitochondria produce ATP")
    pdf_bytes = doc.tobytes()
    doc.close()

    blank = fitz.open()
    blank.new_page()
    blank_bytes = blank.tobytes()
    blank.close()

    with tempfile.TemporaryDirectory() as tmp:
        parser = DocumentParser(upload_dir=tmp)

        assert "Mitochondria produce ATP" in parser.parse_upload(pdf_bytes, "bio.pdf")
        assert "No readable text content found" in parser.parse_upload(blank_bytes, "blank.pdf")
        assert "Text extraction failed" in parser.parse_upload(b"definitely not a pdf", "broken.pdf")
        assert os.listdir(tmp) == []


def test_document_parser_png():
    """test png uploads go through ocr and the temp file is removed"""
    from PIL import Image
    from studyguide.document_parser import DocumentParser

    buffer = io.BytesIO()
    Image.new("RGB", (40, 20), "white").save(buffer, format="PNG")
    png_bytes = buffer.getvalue()

    with tempfile.TemporaryDirectory() as tmp:
        parser = DocumentParser(upload_dir=tmp)

        with mock.patch("pytesseract.image_to_string", return_value="Cell membranes are lipid bilayers") as ocr:
            text = parser.parse_upload(png_bytes, "scan.png")

        assert text == "Cell membranes are lipid bilayers"
        assert ocr.call_args[1]["lang"] == "eng"
        assert os.listdir(tmp) == []


def test_document_parser_failed_write_leaves_no_file():
    """test a write that fails partway still removes the temp file"""
    from studyguide.document_parser import DocumentParser

    real_open = open

    def failing_open(path, mode="r", *args, **kwargs):
        handle = real_open(path, mode, *args, **kwargs)
        handle.write(b"partial")
        handle.close()
        raise OSError("No space left on device")

    with tempfile.TemporaryDirectory() as tmp:
        parser = DocumentParser(upload_dir=tmp)

        with mock.patch("studyguide.document_parser.open", failing_open, create=True):
            try:
                parser.parse_upload(b"# Notes", "notes.md")
                assert False, "failed write not reported"
            except OSError:
                pass

        assert os.listdir(tmp) == []


def test_prompts():
    """test truncation and per-kind prompt text"""
    from studyguide.prompts import truncate_content, build_prompt, build_messages
    from studyguide.config import MAX_CONTENT_CHARS, TRUNCATION_MARKER

    short = "a" * 100
    assert truncate_content(short) == short

    long_text = "b" * (MAX_CONTENT_CHARS + 500)
    truncated = truncate_content(long_text)
    assert truncated == "b" * MAX_CONTENT_CHARS + TRUNCATION_MARKER

    prompt = build_prompt("flashcards", "Cells have membranes.")
    assert prompt.startswith("Based on the following content, generate a well-structured flashcards:")
    assert "Cells have membranes." in prompt
    assert "Question: [Question here]" in prompt

    assert "I. Major topics" in build_prompt("outline", "x")
    assert "clear, educational format" in build_prompt("timeline", "x")

    messages = build_messages("summary", "x")
    assert [m["role"] for m in messages] == ["system", "user"]


def test_model_fallback_policy():
    """test access errors move to the next model and other errors stop the loop"""
    from studyguide.errors import UpstreamError
    from studyguide.llm_service import ModelFallbackPolicy

    policy = ModelFallbackPolicy(["a", "b", "c"])
    tried = []

    def attempt(model):
        tried.append(model)
        if model == "a":
            raise UpstreamError("no access", status=403)
        if model == "b":
            raise UpstreamError("The model `b` does not exist", status=404, code="model_not_found")
        return "ok"

    assert policy.run(attempt) == ("c", "ok")
    assert tried == ["a", "b", "c"]

    tried.clear()

    def fatal(model):
        tried.append(model)
        raise UpstreamError("bad key", status=401)

    try:
        policy.run(fatal)
        assert False, "fatal error swallowed"
    except UpstreamError as e:
        assert e.status == 401
    assert tried == ["a"]


def test_llm_service_with_fake_client():
    """test generation, fallback and error classification"""
    from studyguide.errors import (
        UpstreamError, ModelAccessError, RateLimitError, InvalidCredentialError, StudyGuideError
    )
    from studyguide.llm_service import LLMService

    client = FakeClient({"m1": UpstreamError("forbidden", status=403), "m2": "# Summary\nText"})
    service = LLMService("sk-test", client=client, models=["m1", "m2"])
    result = service.generate("summary", "content")

    assert result.content == "# Summary\nText"
    assert result.model == "m2"
    assert result.usage.total_tokens == 15
    assert client.models_tried == ["m1", "m2"]

    cases = [
        ({"m1": UpstreamError("forbidden", status=403)}, ModelAccessError),
        ({"m1": UpstreamError("slow down", status=429)}, RateLimitError),
        ({"m1": UpstreamError("Incorrect API key provided", status=401)}, InvalidCredentialError),
        ({"m1": UpstreamError("Request timed out.")}, StudyGuideError),
        ({"m1": ""}, StudyGuideError),
    ]
    for outcomes, expected in cases:
        service = LLMService("sk-test", client=FakeClient(outcomes), models=["m1"])
        try:
            service.generate("summary", "content")
            assert False, f"expected {expected.__name__}"
        except StudyGuideError as e:
            assert type(e) is expected, (type(e), expected)


def test_llm_service_closes_its_own_session():
    """test close releases the http session only when the service built the client"""
    from studyguide.llm_service import LLMService

    service = LLMService("sk-test", models=["m1"])
    with mock.patch.object(service.client.session, "close") as close:
        service.close()
    close.assert_called_once()

    client = FakeClient({"m1": "text"})
    client.close = mock.Mock()
    LLMService("sk-test", client=client, models=["m1"]).close()
    client.close.assert_not_called()


def test_chat_completions_client_errors():
    """test non-200 responses become UpstreamError with status and code"""
    import requests
    from studyguide.errors import UpstreamError
    from studyguide.llm_service import ChatCompletionsClient, is_model_access_error

    response = requests.Response()
    response.status_code = 404
    response.encoding = "utf-8"
    response._content = b'{"error": {"message": "The model does not exist", "code": "model_not_found"}}'

    client = ChatCompletionsClient("sk-test", base_url="http://llm.local/v1/", timeout=5)
    with mock.patch.object(client.session, "post", return_value=response) as post:
        try:
            client.create("gpt-x", [{"role": "user", "content": "hi"}], 10, 0.2)
            assert False, "error response accepted"
        except UpstreamError as e:
            assert e.status == 404
            assert e.code == "model_not_found"
            assert e.message == "The model does not exist"
            assert is_model_access_error(e)

    assert post.call_args[0][0] == "http://llm.local/v1/chat/completions"
    assert post.call_args[1]["json"]["model"] == "gpt-x"
    assert client.session.headers["Authorization"] == "Bearer sk-test"


def test_generation_service():
    """test the service pipeline with a fake llm"""
    from studyguide.document_parser import DocumentParser
    from studyguide.errors import ValidationError
    from studyguide.processing_service import StudyGuideService
    from studyguide.config import TRUNCATION_MARKER

    with tempfile.TemporaryDirectory() as tmp:
        fake = FakeLLM()
        service = StudyGuideService(parser=DocumentParser(upload_dir=tmp), llm_factory=lambda key: fake)

        response = service.generate(b"Plants use light.", "bio.txt", "text/plain", "flashcards", "sk-test")
        assert response.success
        assert response.type.value == "flashcards"
        assert response.filename == "bio.txt"
        assert response.model == "gpt-4o-mini"
        assert fake.calls[0][1] == "Plants use light."
        assert fake.closed

        failing = FakeLLM(error=ValidationError("File parsing failed: bad"))
        failing_service = StudyGuideService(parser=DocumentParser(upload_dir=tmp), llm_factory=lambda key: failing)
        try:
            failing_service.generate(b"Plants use light.", "bio.txt", "text/plain", "summary", "sk-test")
            assert False, "llm failure swallowed"
        except ValidationError:
            pass
        assert failing.closed

        service.generate(b"x" * 13000, "long.md", "text/markdown", "summary", "sk-test")
        assert fake.calls[-1][1].endswith(TRUNCATION_MARKER)

        bad_requests = [
            (None, "bio.txt", "text/plain", "summary", "sk-test", "No file uploaded"),
            (b"text", "bio.txt", "text/plain", None, "sk-test", "Study guide type not specified"),
            (b"text", "bio.txt", "text/plain", "poem", "sk-test", "Unknown study guide type"),
            (b"   \n", "bio.txt", "text/plain", "summary", "sk-test", "No readable content"),
            (b"\xff\xfe\xfa", "bad.txt", "text/plain", "summary", "sk-test", "Failed to parse file content"),
        ]
        for data, name, ctype, kind, key, message in bad_requests:
            try:
                service.generate(data, name, ctype, kind, key)
                assert False, message
            except ValidationError as e:
                assert message in e.message, e.message

        from studyguide.config import Settings
        with mock.patch("studyguide.processing_service.settings", Settings(openai_api_key="")):
            try:
                service.generate(b"text", "bio.txt", "text/plain", "summary", None)
                assert False, "missing key accepted"
            except ValidationError as e:
                assert e.message == "OpenAI API key not provided"

        assert os.listdir(tmp) == []


def test_session_state_transitions():
    """test idle -> file_selected -> generating -> result_ready | error"""
    from studyguide.errors import ValidationError, InvalidCredentialError
    from studyguide.session import StudyGuideSession, SessionState
    from studyguide.document_parser import DocumentParser
    from studyguide.processing_service import StudyGuideService

    session = StudyGuideSession()
    assert session.state == SessionState.IDLE

    # rejected files leave everything as it was
    for name, data in [("virus.exe", b"MZ"), ("huge.pdf", b"0" * (50 * 1024 * 1024 + 1))]:
        try:
            session.select_file(name, "application/octet-stream", data)
            assert False, f"{name} accepted"
        except ValidationError:
            pass
        assert session.state == SessionState.IDLE
        assert session.filename is None

    session.select_file("bio.md", "text/markdown", b"Plants use light.")
    assert session.state == SessionState.FILE_SELECTED

    try:
        session.select_file("virus.exe", "application/octet-stream", b"MZ")
        assert False, "exe accepted"
    except ValidationError:
        pass
    assert session.state == SessionState.FILE_SELECTED
    assert session.filename == "bio.md"

    try:
        session.generate(None)
        assert False, "generated without a type"
    except ValidationError:
        pass

    session.select_kind("flashcards")

    with tempfile.TemporaryDirectory() as tmp:
        parser = DocumentParser(upload_dir=tmp)

        service = StudyGuideService(parser=parser, llm_factory=lambda key: FakeLLM())
        result = session.generate(service, "sk-test")
        assert session.state == SessionState.RESULT_READY
        assert result.filename == "bio.md"
        assert len(session.structured().flashcards) == 2

        failing = StudyGuideService(parser=parser, llm_factory=lambda key: FakeLLM(
            error=InvalidCredentialError("Invalid OpenAI API key. Please check your API key and try again.")
        ))
        assert session.generate(failing, "sk-bad") is None
        assert session.state == SessionState.ERROR
        assert session.error[0] == "Invalid API Key"

        # picking a new file clears the previous outcome
        session.select_file("other.txt", "text/plain", b"More notes.")
        assert session.state == SessionState.FILE_SELECTED
        assert session.result is None and session.error is None

    session.reset()
    assert session.state == SessionState.IDLE and session.kind is None


def test_describe_error():
    """test friendly titles for known server messages"""
    from studyguide.session import describe_error

    assert describe_error(
        "Your OpenAI API key does not have access to the required models."
    )[0] == "API Key Access Issue"
    assert describe_error("Invalid OpenAI API key. Please check")[0] == "Invalid API Key"
    assert describe_error("OpenAI API rate limit exceeded.")[0] == "Rate Limit Exceeded"
    assert describe_error("Something else broke") == ("Generation failed", "Something else broke")


def test_exporters():
    """test markdown, docx, html and json exports"""
    import docx
    from studyguide.exporters import export, to_docx, to_print_html
    from studyguide.errors import ExportError
    from studyguide.models import GeneratedContent
    from studyguide.structurer import structure_content

    generated = GeneratedContent(
        type="summary",
        content="# Cells\n## Parts\n### Membrane\n- lipid <bilayer> & proteins\n1. selective",
        filename="bio notes.pdf",
    )

    body, filename, media_type = export(generated, "md")
    assert body == generated.content.encode("utf-8")
    assert filename == "bio notes-summary.md"
    assert media_type.startswith("text/markdown")

    document = docx.Document(io.BytesIO(to_docx(generated)))
    paragraphs = [(p.style.name, p.text) for p in document.paragraphs]
    assert paragraphs == [
        ("Title", "Cells"),
        ("Heading 1", "Parts"),
        ("Heading 2", "Membrane"),
        ("Normal", "lipid <bilayer> & proteins"),
        ("Normal", "selective"),
    ]

    html = to_print_html(generated)
    assert "lipid &lt;bilayer&gt; &amp; proteins" in html
    assert "<title>bio notes-summary</title>" in html
    assert "window.print()" in html

    body, filename, _ = export(generated, "json", structure_content(generated))
    assert filename == "bio notes-summary.json"
    assert b'"cleaned"' in body

    try:
        export(generated, "pptx")
        assert False, "unknown format accepted"
    except ExportError as e:
        assert e.status_code == 400


def test_api_endpoints():
    """test the http api end to end with a fake llm"""
    from fastapi.testclient import TestClient
    from studyguide import api
    from studyguide.document_parser import DocumentParser
    from studyguide.errors import UpstreamError
    from studyguide.llm_service import LLMService

    client = TestClient(api.app)
    assert client.get("/health").json()["status"] == "healthy"
    assert "generate" in client.get("/api").json()["endpoints"]

    with tempfile.TemporaryDirectory() as tmp:
        fake = FakeLLM()
        with mock.patch.object(api.study_guide_service, "parser", DocumentParser(upload_dir=tmp)), \
                mock.patch.object(api.study_guide_service, "llm_factory", lambda key: fake):

            response = client.post(
                "/api/generate-study-guide",
                files={"file": ("bio.md", b"# Photosynthesis\nPlants use light.", "text/markdown")},
                data={"type": "flashcards", "apiKey": "sk-test"},
            )
            assert response.status_code == 200, response.text
            payload = response.json()
            assert payload["content"] == FLASHCARD_REPLY
            assert payload["type"] == "flashcards"
            assert payload["filename"] == "bio.md"

            structured = client.post("/api/structure", json={
                "type": payload["type"], "content": payload["content"], "filename": payload["filename"]
            }).json()
            assert len(structured["flashcards"]) >= 1
            assert structured["flashcards"][0]["question"] == "What is photosynthesis?"

            missing_file = client.post("/api/generate-study-guide", data={"type": "summary", "apiKey": "k"})
            assert missing_file.status_code == 400
            assert missing_file.json() == {"error": "No file uploaded"}

            bad_type = client.post(
                "/api/generate-study-guide",
                files={"file": ("setup.exe", b"MZ", "application/octet-stream")},
                data={"type": "summary", "apiKey": "k"},
            )
            assert bad_type.status_code == 400
            assert "Invalid file type" in bad_type.json()["error"]

            exported = client.post("/api/export/txt", json={
                "type": "summary", "content": "plain", "filename": "bio.md"
            })
            assert exported.status_code == 200
            assert exported.content == b"plain"
            assert 'filename="bio-summary.txt"' in exported.headers["content-disposition"]

        # upstream failures keep their status codes
        for outcome, status in [
            (UpstreamError("Incorrect API key provided", status=401), 401),
            (UpstreamError("forbidden", status=403), 403),
            (UpstreamError("Rate limit reached", status=429), 429),
            (UpstreamError("too big", status=413), 413),
            (UpstreamError("server exploded", status=500), 500),
        ]:
            factory = lambda key, outcome=outcome: LLMService(
                key, client=FakeClient({"m1": outcome, "m2": outcome}), models=["m1", "m2"]
            )
            with mock.patch.object(api.study_guide_service, "parser", DocumentParser(upload_dir=tmp)), \
                    mock.patch.object(api.study_guide_service, "llm_factory", factory):
                response = client.post(
                    "/api/generate-study-guide",
                    files={"file": ("bio.txt", b"Plants use light.", "text/plain")},
                    data={"type": "summary", "apiKey": "sk-test"},
                )
            assert response.status_code == status, (status, response.text)
            assert "error" in response.json()

        assert os.listdir(tmp) == []


def test_api_rejects_oversized_upload_before_reading():
    """test a file over the size limit gets 413 without its body being read"""
    from fastapi.testclient import TestClient
    from starlette.datastructures import UploadFile
    from studyguide import api

    client = TestClient(api.app)
    too_big = b"0" * (50 * 1024 * 1024 + 1)

    with mock.patch.object(UploadFile, "read", side_effect=AssertionError("upload was read")) as read:
        response = client.post(
            "/api/generate-study-guide",
            files={"file": ("huge.pdf", too_big, "application/pdf")},
            data={"type": "summary", "apiKey": "sk-test"},
        )

    assert response.status_code == 413
    assert "File too large" in response.json()["error"]
    read.assert_not_called()


def main():
    """run all tests"""
    print("🚀 studyguide - System Test")
    print("=" * 50)

    # list of all tests to run
    tests = [
        ("Import Test", test_imports),
        ("Upload Validation", test_validate_upload),
        ("Text Parsing", test_document_parser_text_and_cleanup),
        ("PDF Parsing", test_document_parser_pdf),
        ("PNG Parsing", test_document_parser_png),
        ("Failed Upload Write", test_document_parser_failed_write_leaves_no_file),
        ("Prompts", test_prompts),
        ("Model Fallback", test_model_fallback_policy),
        ("LLM Service", test_llm_service_with_fake_client),
        ("LLM Session Close", test_llm_service_closes_its_own_session),
        ("Chat Client Errors", test_chat_completions_client_errors),
        ("Generation Service", test_generation_service),
        ("Session", test_session_state_transitions),
        ("Error Messages", test_describe_error),
        ("Exporters", test_exporters),
        ("HTTP API", test_api_endpoints),
        ("Oversized Upload", test_api_rejects_oversized_upload_before_reading),
    ]

    results = []

    # run each test and collect results
    for test_name, test_func in tests:
        try:
            test_func()
            results.append((test_name, True))
        except Exception as e:
            print(f"❌ {test_name} failed: {str(e)}")
            results.append((test_name, False))

    # show summary of all tests
    print("\n" + "=" * 50)
    print("📊 TEST SUMMARY")
    print("=" * 50)

    passed = sum(1 for _, result in results if result)
    total = len(results)

    for test_name, result in results:
        status = "✅ PASS" if result else "❌ FAIL"
        print(f"{status} {test_name}")

    print(f"\nOverall: {passed}/{total} tests passed")
    return 0 if passed == total else 1


if __name__ == "__main__":
    sys.exit(main())

"""Tests for the AI extraction service."""

from decimal import Decimal
from pathlib import Path
from types import SimpleNamespace

import pytest

from app.pdf_processor.services.ai import (
    AIService,
    ConfigurationError,
    ExtractionError,
    InvalidInputError,
    load_system_instructions,
)
from app.pdf_processor.services.ai.extraction import build_messages, request_financial_data


class FakeCompletions:
    """Records requests and replays a canned reply or error."""

    def __init__(self, content: str | None = None, error: Exception | None = None):
        self.content = content
        self.error = error
        self.requests: list[dict] = []

    async def create(self, **kwargs):
        self.requests.append(kwargs)
        if self.error is not None:
            raise self.error
        message = SimpleNamespace(content=self.content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def fake_client(completions: FakeCompletions) -> SimpleNamespace:
    return SimpleNamespace(chat=SimpleNamespace(completions=completions))


def live_service(completions: FakeCompletions) -> AIService:
    service = AIService(api_key="sk-test", model="test-model")
    service._client = fake_client(completions)
    return service


class TestSystemInstructions:
    """Tests for loading the extraction prompt."""

    def test_packaged_prompt_lists_fields(self):
        instructions = load_system_instructions()
        assert "companyId" in instructions
        assert "alreadyInThousands" in instructions

    def test_missing_file_raises(self, tmp_path: Path):
        with pytest.raises(ConfigurationError):
            load_system_instructions(tmp_path / "missing.txt")

    def test_blank_file_raises(self, tmp_path: Path):
        path = tmp_path / "blank.txt"
        path.write_text("   \n")
        with pytest.raises(ConfigurationError):
            load_system_instructions(path)


class TestMockMode:
    """Tests for mock mode (no API key)."""

    def test_no_api_key_enables_mock(self):
        service = AIService(api_key="")
        assert service.use_mock is True

    @pytest.mark.asyncio
    async def test_mock_reply_is_parsed(self, sample_pdf_bytes: bytes):
        service = AIService(use_mock=True)
        data = await service.get_financial_data(sample_pdf_bytes)

        assert data.company_id == 12345678
        assert data.company_name == "Mock Company ApS"
        assert data.gross_profit == Decimal("2450000")
        assert data.total_assets == Decimal("5120000")
        assert data.already_in_thousands is False

    @pytest.mark.asyncio
    async def test_empty_bytes_raise(self):
        service = AIService(use_mock=True)
        with pytest.raises(InvalidInputError):
            await service.get_financial_data(b"")

    @pytest.mark.asyncio
    async def test_missing_instructions_raise(self, tmp_path: Path, sample_pdf_bytes: bytes):
        service = AIService(use_mock=True, instructions_path=tmp_path / "missing.txt")
        with pytest.raises(ConfigurationError):
            await service.get_financial_data(sample_pdf_bytes)


class TestUpstreamCall:
    """Tests for the OpenAI request, using a fake client."""

    @pytest.mark.asyncio
    async def test_request_parameters(self, sample_pdf_bytes: bytes):
        completions = FakeCompletions(content='{"companyName": "Live A/S", "equity": 42}')
        service = live_service(completions)

        data = await service.get_financial_data(sample_pdf_bytes)

        assert data.company_name == "Live A/S"
        assert data.equity == Decimal("42")
        (request,) = completions.requests
        assert request["model"] == "test-model"
        assert request["temperature"] == 0
        assert request["top_p"] == 0.95
        assert request["max_completion_tokens"] == service.max_output_tokens
        system, user = request["messages"]
        assert system["role"] == "system"
        assert "companyId" in system["content"]
        file_part = user["content"][1]
        assert file_part["type"] == "file"
        assert file_part["file"]["file_data"].startswith("data:application/pdf;base64,")

    @pytest.mark.asyncio
    async def test_upstream_failure_becomes_extraction_error(self, sample_pdf_bytes: bytes):
        completions = FakeCompletions(error=RuntimeError("quota exceeded"))
        service = live_service(completions)

        with pytest.raises(ExtractionError, match="quota exceeded"):
            await service.get_financial_data(sample_pdf_bytes)
        assert len(completions.requests) == 1

    @pytest.mark.asyncio
    async def test_empty_reply_gives_empty_record(self, sample_pdf_bytes: bytes):
        service = live_service(FakeCompletions(content=None))
        data = await service.get_financial_data(sample_pdf_bytes)

        assert data.company_name is None
        assert data.gross_profit is None

    @pytest.mark.asyncio
    async def test_non_json_reply_raises(self, sample_pdf_bytes: bytes):
        service = live_service(FakeCompletions(content="Sorry, I cannot read this file."))
        with pytest.raises(ExtractionError):
            await service.get_financial_data(sample_pdf_bytes)

    @pytest.mark.asyncio
    async def test_request_rejects_empty_bytes(self):
        with pytest.raises(InvalidInputError):
            await request_financial_data(
                b"", "instructions", client=fake_client(FakeCompletions()), model="m"
            )

    def test_client_requires_api_key(self):
        service = AIService(api_key="", use_mock=True)
        with pytest.raises(ConfigurationError):
            _ = service.client


class TestBuildMessages:
    def test_system_then_user_with_pdf(self):
        messages = build_messages("Extract figures.", b"%PDF-1.4", filename="x.pdf")

        assert messages[0] == {"role": "system", "content": "Extract figures."}
        text_part, file_part = messages[1]["content"]
        assert text_part["type"] == "text"
        assert file_part["file"]["filename"] == "x.pdf"

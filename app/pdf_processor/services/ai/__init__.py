"""
AI service package for financial data extraction.

This package provides the extraction client split into:
- extraction: Prompt loading and the upstream model call
- parsing: Conversion of the model reply into a FinancialData record

The AIService class ties them together and owns the OpenAI client.
"""

import logging
from pathlib import Path

from ...config import get_settings
from ...models import FinancialData
from .exceptions import (
    AIServiceError,
    ConfigurationError,
    ExtractionError,
    InvalidInputError,
)
from .extraction import load_system_instructions, request_financial_data
from .parsing import parse_financial_data

logger = logging.getLogger(__name__)

# Export public functions and classes
__all__ = [
    "AIService",
    "AIServiceError",
    "ConfigurationError",
    "ExtractionError",
    "InvalidInputError",
    "get_ai_service",
    "load_system_instructions",
    "parse_financial_data",
]

MOCK_REPLY = """Here is the extracted data:
{
  "companyId": "DK-12 34 56 78",
  "companyName": "Mock Company ApS",
  "grossProfit": 2450000,
  "staffCosts": -1300000,
  "depreciation": -85000,
  "profitBeforeTax": 910000,
  "tax": -200200,
  "profitAfterTax": 709800,
  "totalAssets": "5.120.000",
  "equity": "2.300.000",
  "alreadyInThousands": false
}"""


# =============================================================================
# AIService Class
# =============================================================================


class AIService:
    """
    Extraction client turning annual-report PDFs into FinancialData.

    Uses an OpenAI chat model with PDF file input. Runs in mock mode
    (canned reply, no network) when no API key is configured.
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        use_mock: bool = False,
        instructions_path: Path | None = None,
        max_output_tokens: int | None = None,
    ):
        """
        Initialize the AI service.

        Args:
            api_key: OpenAI API key. If None, reads from config/environment.
            model: OpenAI model to use (must accept PDF input).
            use_mock: If True, return mock data instead of calling OpenAI.
            instructions_path: System prompt file. Defaults to the packaged prompt.
            max_output_tokens: Upper bound on the reply length.
        """
        settings = get_settings()
        if api_key is None:
            api_key = settings.openai_api_key

        self.api_key = api_key
        self.model = model or settings.openai_model
        self.instructions_path = instructions_path or settings.system_instructions_path
        self.max_output_tokens = max_output_tokens or settings.extraction_max_output_tokens
        self.use_mock = use_mock or not self.api_key
        self._client = None
        self._system_instructions: str | None = None

        if self.use_mock:
            logger.warning(
                "AI Service running in MOCK MODE. Set OPENAI_API_KEY for real extraction."
            )

    @property
    def client(self):
        """Lazy-load the OpenAI client."""
        if self._client is None:
            if not self.api_key:
                raise ConfigurationError(
                    "OpenAI API key not provided. Set OPENAI_API_KEY environment variable."
                )
            from openai import AsyncOpenAI

            self._client = AsyncOpenAI(api_key=self.api_key, max_retries=0)
        return self._client

    @property
    def system_instructions(self) -> str:
        """The extraction prompt, read from disk on first use."""
        if self._system_instructions is None:
            self._system_instructions = load_system_instructions(self.instructions_path)
        return self._system_instructions

    async def get_financial_data(self, pdf_bytes: bytes) -> FinancialData:
        """
        Extract financial figures from one PDF.

        Args:
            pdf_bytes: Raw PDF content.

        Returns:
            The parsed (not yet normalized) record. An empty reply yields
            an empty record.

        Raises:
            InvalidInputError: If ``pdf_bytes`` is empty.
            ConfigurationError: If the system prompt cannot be loaded.
            ExtractionError: If the upstream call fails or the reply is not JSON.
        """
        if not pdf_bytes:
            raise InvalidInputError("PDF bytes are null or empty.")

        instructions = self.system_instructions

        if self.use_mock:
            logger.info("Extracting financial data (MOCK MODE)")
            reply = MOCK_REPLY
        else:
            reply = await request_financial_data(
                pdf_bytes,
                instructions,
                client=self.client,
                model=self.model,
                max_output_tokens=self.max_output_tokens,
            )

        if not reply.strip():
            logger.warning("Empty response received from %s", self.model)
            return FinancialData()

        data = parse_financial_data(reply)
        logger.info("Successfully processed financial data for %s", data.company_name)
        return data


# =============================================================================
# Singleton Factory
# =============================================================================

_ai_service: AIService | None = None


def get_ai_service() -> AIService:
    """Get or create the AI service singleton."""
    global _ai_service
    if _ai_service is None:
        _ai_service = AIService()
    return _ai_service

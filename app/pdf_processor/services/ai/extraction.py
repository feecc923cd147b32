"""
Financial data extraction from annual-report PDFs.

Sends the raw PDF together with a fixed system prompt to an OpenAI chat
model and returns the textual reply. Parsing of the reply lives in
``parsing``.
"""

import base64
import logging
from pathlib import Path
from typing import Any

from .exceptions import ConfigurationError, ExtractionError, InvalidInputError

logger = logging.getLogger(__name__)

DEFAULT_INSTRUCTIONS_PATH = Path(__file__).parent / "system_instructions.txt"

USER_PROMPT = "Please analyze this PDF and extract the financial data in JSON format."


# =============================================================================
# Prompt Loading
# =============================================================================


def load_system_instructions(path: Path | None = None) -> str:
    """
    Read the system prompt used for every extraction.

    Args:
        path: Instruction file. Defaults to the packaged prompt.

    Returns:
        The prompt text.

    Raises:
        ConfigurationError: If the file is missing, unreadable or blank.
    """
    path = path or DEFAULT_INSTRUCTIONS_PATH
    try:
        instructions = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigurationError(f"System instructions not found: {path}") from e

    if not instructions.strip():
        raise ConfigurationError(f"System instructions are empty: {path}")
    return instructions


# =============================================================================
# Request Building
# =============================================================================


def _pdf_to_data_url(pdf_bytes: bytes) -> str:
    encoded = base64.b64encode(pdf_bytes).decode("utf-8")
    return f"data:application/pdf;base64,{encoded}"


def build_messages(
    system_instructions: str,
    pdf_bytes: bytes,
    filename: str = "report.pdf",
) -> list[dict[str, Any]]:
    """Build the chat messages: system prompt, then instruction text + PDF file."""
    return [
        {"role": "system", "content": system_instructions},
        {
            "role": "user",
            "content": [
                {"type": "text", "text": USER_PROMPT},
                {
                    "type": "file",
                    "file": {
                        "filename": filename,
                        "file_data": _pdf_to_data_url(pdf_bytes),
                    },
                },
            ],
        },
    ]


# =============================================================================
# Upstream Call
# =============================================================================


async def request_financial_data(
    pdf_bytes: bytes,
    system_instructions: str,
    client: Any,  # AsyncOpenAI client
    model: str,
    max_output_tokens: int = 8192,
) -> str:
    """
    Send one PDF to the model and return its reply text.

    Single attempt with deterministic sampling; no retries.

    Raises:
        InvalidInputError: If ``pdf_bytes`` is empty.
        ExtractionError: If the upstream call fails.
    """
    if not pdf_bytes:
        raise InvalidInputError("PDF bytes are null or empty.")

    logger.info("Sending %d byte PDF to %s", len(pdf_bytes), model)
    try:
        response = await client.chat.completions.create(
            model=model,
            messages=build_messages(system_instructions, pdf_bytes),
            temperature=0.0,
            top_p=0.95,
            max_completion_tokens=max_output_tokens,
        )
    except Exception as e:
        logger.error("Extraction request to %s failed: %s", model, e)
        raise ExtractionError(f"Extraction request failed: {e}") from e

    content = response.choices[0].message.content if response.choices else None
    logger.info("Received response from %s", model)
    return content or ""

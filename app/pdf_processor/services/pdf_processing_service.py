"""
Upload intake and extraction pipeline.

Accepts a batch of uploaded files, keeps the PDFs, stores each one in a
temp file, runs the extraction client on it and registers the result in
the transient registry. One file's failure never affects its siblings.
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path
from typing import Protocol

from ..config import get_settings
from ..models import FinancialData
from .ai import get_ai_service
from .registry import ProcessedFile, ProcessedFileRegistry, delete_file

logger = logging.getLogger(__name__)

PDF_CONTENT_TYPE = "application/pdf"
COPY_CHUNK_SIZE = 1024 * 1024


class NoFilesProvidedError(ValueError):
    """Raised when a batch contains no files at all."""

    def __init__(self, message: str = "No files were uploaded."):
        super().__init__(message)


class UploadedFile(Protocol):
    """The subset of ``fastapi.UploadFile`` the pipeline relies on."""

    filename: str | None
    content_type: str | None

    async def read(self, size: int = -1) -> bytes: ...


class FinancialDataExtractor(Protocol):
    async def get_financial_data(self, pdf_bytes: bytes) -> FinancialData: ...


@dataclass(frozen=True)
class ProcessingResult:
    """Outcome for one file of a batch."""

    id: str
    file_name: str
    success: bool
    error: str | None = None
    processed_file: ProcessedFile | None = None


def is_pdf(content_type: str | None) -> bool:
    """True when the declared media type is ``application/pdf`` (parameters ignored)."""
    if not content_type:
        return False
    media_type = content_type.split(";", 1)[0].strip().lower()
    return media_type == PDF_CONTENT_TYPE


def _error_message(exc: BaseException) -> str:
    return str(exc) or exc.__class__.__name__


class PdfProcessingService:
    """
    Service for batch PDF processing.

    Uses asyncio.Semaphore to bound concurrent extractions per batch.
    """

    def __init__(
        self,
        registry: ProcessedFileRegistry,
        extractor: FinancialDataExtractor,
        upload_dir: Path,
        max_concurrency: int = 4,
        handle_release_delay: float = 0.1,
    ):
        """
        Initialize the processing service.

        Args:
            registry: Where successful results are registered.
            extractor: Extraction client.
            upload_dir: Directory for temp PDF copies.
            max_concurrency: Files processed at once within one batch.
            handle_release_delay: Pause between writing and re-reading a file.
        """
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        self.registry = registry
        self.extractor = extractor
        self.upload_dir = Path(upload_dir)
        self.max_concurrency = max_concurrency
        self.handle_release_delay = handle_release_delay

    async def process_files(
        self, files: list[UploadedFile] | None
    ) -> list[ProcessingResult]:
        """
        Process every PDF of a batch.

        Files whose content type is not ``application/pdf`` are skipped and
        do not appear in the result list.

        Args:
            files: The uploaded files of one request.

        Returns:
            One result per processed PDF.

        Raises:
            NoFilesProvidedError: If ``files`` is empty or missing.
        """
        if not files:
            raise NoFilesProvidedError()

        pdfs = []
        for file in files:
            if not is_pdf(file.content_type):
                logger.warning(
                    "Invalid file type received: %s (%s)", file.content_type, file.filename
                )
                continue
            pdfs.append(file)

        self.upload_dir.mkdir(parents=True, exist_ok=True)
        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def _bounded(file: UploadedFile) -> ProcessingResult:
            async with semaphore:
                return await self.process_file(file)

        results = await asyncio.gather(*(_bounded(file) for file in pdfs))

        logger.info(
            "Processed batch: %d files received, %d PDFs, %d succeeded",
            len(files),
            len(pdfs),
            sum(1 for r in results if r.success),
        )
        return list(results)

    async def process_file(self, file: UploadedFile) -> ProcessingResult:
        """Store, extract and register one PDF. Exceptions become failure results."""
        file_id = str(uuid.uuid4())
        file_name = file.filename or f"{file_id}.pdf"
        temp_path = self.upload_dir / f"{file_id}.pdf"

        try:
            await self._save_upload(file, temp_path)
            # Give the OS a moment to release the write handle
            await asyncio.sleep(self.handle_release_delay)
            pdf_bytes = await asyncio.to_thread(temp_path.read_bytes)

            logger.info("Processing file: %s (%d bytes)", file_name, len(pdf_bytes))
            financial_data = await self.extractor.get_financial_data(pdf_bytes)
            financial_data.normalize()

            entry = self.registry.add(
                file_id,
                file_name,
                temp_path,
                self.registry.now(),
                financial_data,
            )
            if entry is None:
                raise RuntimeError(f"Processed file id {file_id} is already registered")

            return ProcessingResult(
                id=file_id,
                file_name=file_name,
                success=True,
                processed_file=entry,
            )
        except FileExistsError:
            # The path belongs to someone else; leave it alone
            logger.error("Temp path already exists: %s", temp_path)
            return ProcessingResult(
                id=file_id,
                file_name=file_name,
                success=False,
                error=f"Temp file {temp_path.name} already exists",
            )
        except asyncio.CancelledError:
            self._discard(temp_path)
            raise
        except Exception as e:
            logger.exception("Error processing file: %s", file_name)
            self._discard(temp_path)
            return ProcessingResult(
                id=file_id,
                file_name=file_name,
                success=False,
                error=_error_message(e),
            )

    async def _save_upload(self, file: UploadedFile, temp_path: Path) -> None:
        # "xb": fail rather than overwrite if the path already exists
        with open(temp_path, "xb") as out:
            while True:
                chunk = await file.read(COPY_CHUNK_SIZE)
                if not chunk:
                    break
                await asyncio.to_thread(out.write, chunk)

    @staticmethod
    def _discard(temp_path: Path) -> None:
        try:
            delete_file(temp_path)
        except OSError:
            logger.exception("Error deleting temp file: %s", temp_path)


# =============================================================================
# Singleton Factory
# =============================================================================

_registry: ProcessedFileRegistry | None = None
_pdf_processing_service: PdfProcessingService | None = None


def get_registry() -> ProcessedFileRegistry:
    """Get or create the process-wide registry."""
    global _registry
    if _registry is None:
        settings = get_settings()
        _registry = ProcessedFileRegistry(
            retention=timedelta(hours=settings.file_retention_hours),
        )
    return _registry


def get_pdf_processing_service() -> PdfProcessingService:
    """Get or create the processing service singleton."""
    global _pdf_processing_service
    if _pdf_processing_service is None:
        settings = get_settings()
        _pdf_processing_service = PdfProcessingService(
            registry=get_registry(),
            extractor=get_ai_service(),
            upload_dir=settings.upload_dir,
            max_concurrency=settings.max_concurrent_extractions,
            handle_release_delay=settings.handle_release_delay_seconds,
        )
    return _pdf_processing_service

"""
Router for PDF processing endpoints (admin only).

Handles:
- Batch upload and extraction
- Listing and reading processed files
- Streaming the stored PDF back
- Clearing the registry
"""

import asyncio
import contextlib
import logging
from collections.abc import Awaitable
from typing import Annotated, TypeVar
from urllib.parse import quote

from fastapi import APIRouter, Depends, File, HTTPException, Request, Response, UploadFile, status
from fastapi.responses import JSONResponse

from ..models import (
    MessageResponse,
    ProcessedFileResponse,
    ProcessFilesResponse,
    ProcessingResultResponse,
)
from ..security import require_admin
from ..services.pdf_processing_service import (
    NoFilesProvidedError,
    PdfProcessingService,
    get_pdf_processing_service,
    get_registry,
)
from ..services.registry import ProcessedFileRegistry

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Seconds between client connection checks while a batch runs
DISCONNECT_POLL_SECONDS = 0.5

# nginx convention for a request the client abandoned
CLIENT_CLOSED_REQUEST = 499

router = APIRouter(
    prefix="/api/pdf",
    tags=["pdf processing"],
    dependencies=[Depends(require_admin)],
)


def content_disposition(file_name: str, disposition: str = "inline") -> str:
    """Build a Content-Disposition value that survives any file name."""
    quoted = quote(file_name)
    if quoted == file_name:
        return f'{disposition}; filename="{file_name}"'
    # RFC 5987 form for non-ASCII names and names with quotes or separators
    return f"{disposition}; filename*=utf-8''{quoted}"


class ClientDisconnectedError(Exception):
    """Raised when the client goes away before the work finishes."""


async def run_until_disconnected(
    request: Request,
    work: Awaitable[T],
    poll_interval: float = DISCONNECT_POLL_SECONDS,
) -> T:
    """
    Await ``work`` while watching the client connection.

    If the client disconnects first, the work is cancelled and
    ``ClientDisconnectedError`` is raised once it has unwound.
    """
    task = asyncio.ensure_future(work)
    try:
        while True:
            done, _ = await asyncio.wait({task}, timeout=poll_interval)
            if done:
                return task.result()
            if await request.is_disconnected():
                logger.warning("Client disconnected; cancelling %s", request.url.path)
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task
                raise ClientDisconnectedError()
    finally:
        if not task.done():
            task.cancel()


@router.post("/process", response_model=ProcessFilesResponse)
async def process_files(
    request: Request,
    files: Annotated[
        list[UploadFile] | None, File(description="PDF annual reports to analyze")
    ] = None,
    service: PdfProcessingService = Depends(get_pdf_processing_service),
):
    """
    Upload a batch of PDFs and extract their financial figures.

    Non-PDF files are skipped. Each PDF gets its own result entry; a
    failure on one file does not affect the others. Work still in flight
    is cancelled if the client disconnects.
    """
    try:
        results = await run_until_disconnected(request, service.process_files(files))
    except NoFilesProvidedError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except ClientDisconnectedError:
        return Response(status_code=CLIENT_CLOSED_REQUEST)
    except Exception as e:
        logger.exception("Error processing uploaded files")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "title": "Error processing files",
                "detail": str(e),
                "status": status.HTTP_500_INTERNAL_SERVER_ERROR,
            },
        )

    succeeded = sum(1 for r in results if r.success)
    failed = len(results) - succeeded
    return ProcessFilesResponse(
        message=f"Processed {succeeded} files successfully, {failed} files failed",
        results=[ProcessingResultResponse.from_result(r) for r in results],
    )


@router.get("/processed", response_model=list[ProcessedFileResponse])
async def list_processed_files(
    registry: ProcessedFileRegistry = Depends(get_registry),
) -> list[ProcessedFileResponse]:
    """List every file currently held in the registry."""
    return [ProcessedFileResponse.from_entry(entry) for entry in registry.list_all()]


@router.get("/processed/{file_id}", response_model=ProcessedFileResponse)
async def get_processed_file(
    file_id: str,
    registry: ProcessedFileRegistry = Depends(get_registry),
) -> ProcessedFileResponse:
    entry = registry.get(file_id)
    if entry is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Processed file {file_id} not found",
        )
    return ProcessedFileResponse.from_entry(entry)


@router.get("/file/{file_id}")
async def get_file(
    file_id: str,
    registry: ProcessedFileRegistry = Depends(get_registry),
) -> Response:
    """
    Return the stored PDF of a processed file.

    Args:
        file_id: Id assigned at processing time.
        registry: The transient registry.

    Returns:
        PDF content with inline content-disposition.
    """
    entry = registry.get(file_id)
    if entry is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Processed file {file_id} not found",
        )

    try:
        content = await asyncio.to_thread(entry.file_path.read_bytes)
    except FileNotFoundError:
        # Swept between the lookup and the read
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="PDF content not available for this file",
        )

    return Response(
        content=content,
        media_type="application/pdf",
        headers={
            "Content-Disposition": content_disposition(entry.file_name),
        },
    )


@router.delete("/clear", response_model=MessageResponse)
async def clear_processed_files(
    registry: ProcessedFileRegistry = Depends(get_registry),
) -> MessageResponse:
    """Delete every processed file and empty the registry."""
    await asyncio.to_thread(registry.clear_all)
    return MessageResponse(message="All processed files cleared")

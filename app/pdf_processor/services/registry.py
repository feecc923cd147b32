"""
Transient registry of processed files.

Holds processed-file metadata and extracted data in memory, keyed by a
generated id, independent of any single request. Every entry owns one
temp PDF on disk; whenever an entry leaves the registry (expiry, clear or
shutdown) its file is deleted as well.
"""

import asyncio
import logging
import threading
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path

from ..models import FinancialData

logger = logging.getLogger(__name__)

DEFAULT_RETENTION = timedelta(hours=6)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def delete_file(path: str | Path) -> None:
    """Remove a file from disk; a missing file is not an error."""
    Path(path).unlink(missing_ok=True)


@dataclass(frozen=True)
class ProcessedFile:
    """One processed upload and the figures extracted from it."""

    id: str
    file_name: str
    file_path: Path
    processed_time: datetime
    financial_data: FinancialData | None = None


class ProcessedFileRegistry:
    """
    Thread-safe map of processed files with time-based expiry.

    A single lock guards the map; file deletion always happens outside the
    lock. Deletion failures are logged and never stop the remaining cleanup.
    """

    def __init__(
        self,
        retention: timedelta = DEFAULT_RETENTION,
        clock: Callable[[], datetime] = utcnow,
        delete: Callable[[Path], None] = delete_file,
    ):
        """
        Initialize the registry.

        Args:
            retention: Age after which an entry expires.
            clock: Returns the current (timezone-aware) time.
            delete: Removes one file from storage.
        """
        self.retention = retention
        self._clock = clock
        self._delete = delete
        self._entries: dict[str, ProcessedFile] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def now(self) -> datetime:
        return self._clock()

    def add(
        self,
        file_id: str,
        file_name: str,
        file_path: str | Path,
        processed_time: datetime | None = None,
        financial_data: FinancialData | None = None,
    ) -> ProcessedFile | None:
        """
        Register a processed file.

        Returns:
            The new entry, or None when ``file_id`` is already registered
            (the existing entry is left untouched).
        """
        entry = ProcessedFile(
            id=file_id,
            file_name=file_name,
            file_path=Path(file_path),
            processed_time=processed_time or self._clock(),
            financial_data=financial_data,
        )
        with self._lock:
            if file_id in self._entries:
                logger.warning("Processed file id %s already registered", file_id)
                return None
            self._entries[file_id] = entry
        logger.info("Registered processed file %s (%s)", file_id, file_name)
        return entry

    def get(self, file_id: str) -> ProcessedFile | None:
        with self._lock:
            return self._entries.get(file_id)

    def list_all(self) -> Iterator[ProcessedFile]:
        """Yield every current entry, in no particular order."""
        with self._lock:
            snapshot = list(self._entries.values())
        yield from snapshot

    def _delete_files(self, entries: list[ProcessedFile], reason: str) -> None:
        for entry in entries:
            try:
                self._delete(entry.file_path)
                logger.info("Deleted %s file: %s", reason, entry.file_path)
            except Exception:
                logger.exception("Error deleting %s file: %s", reason, entry.file_path)

    def clear_all(self) -> int:
        """
        Remove every entry and delete its temp file.

        Returns:
            The number of entries removed.
        """
        with self._lock:
            removed = list(self._entries.values())
            self._entries.clear()
        self._delete_files(removed, "cleared")
        logger.info("Cleared %d processed files", len(removed))
        return len(removed)

    def sweep_expired(self, now: datetime | None = None) -> list[ProcessedFile]:
        """
        Remove entries older than the retention window.

        An entry expires when ``now - processed_time`` is strictly greater
        than ``retention``.

        Returns:
            The removed entries.
        """
        now = now or self._clock()
        with self._lock:
            expired = [
                entry
                for entry in self._entries.values()
                if now - entry.processed_time > self.retention
            ]
            for entry in expired:
                del self._entries[entry.id]

        if expired:
            self._delete_files(expired, "expired")
            logger.info("Swept %d expired processed files", len(expired))
        return expired

    def dispose(self) -> None:
        """Final cleanup: delete every remaining file regardless of age. Safe to repeat."""
        self.sweep_expired()
        with self._lock:
            remaining = list(self._entries.values())
            self._entries.clear()
        self._delete_files(remaining, "remaining")
        logger.info("Registry disposed")

    async def run_cleanup_loop(self, interval_seconds: float) -> None:
        """Sweep expired entries every ``interval_seconds`` until cancelled."""
        logger.info("Starting processed file cleanup every %.0fs", interval_seconds)
        while True:
            await asyncio.sleep(interval_seconds)
            try:
                await asyncio.to_thread(self.sweep_expired)
            except Exception:
                logger.exception("Error during cleanup of expired files")

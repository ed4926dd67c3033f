"""Session-only list of the most recent conversions."""

from __future__ import annotations

import logging
from typing import Optional

from chameleon.history.base import BaseHistory
from chameleon.records import ConversionRecord, new_record
from chameleon.shell import FileShell

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 50


class RecentHistory(BaseHistory):
    """In-memory history capped at ``limit`` entries.

    Nothing is read from or written to disk; a new process starts empty.
    When a record pushes the list past ``limit`` the oldest entries are
    dropped without notice.
    """

    def __init__(self, limit: int = DEFAULT_LIMIT, shell: Optional[FileShell] = None) -> None:
        super().__init__(shell)
        if limit < 1:
            raise ValueError("limit must be positive")
        self.limit = limit

    def record(
        self,
        input_file_name: str,
        input_format: str,
        output_format: str,
        output_file_path,
        thumbnail_data: Optional[bytes] = None,
    ) -> ConversionRecord:
        record = new_record(
            input_file_name,
            input_format,
            output_format,
            output_file_path,
            timestamp=self._clock.now(),
            thumbnail_data=thumbnail_data,
        )
        self._records.insert(0, record)
        if len(self._records) > self.limit:
            evicted = len(self._records) - self.limit
            del self._records[self.limit:]
            logger.debug("Evicted %d old conversion(s) from recent history", evicted)
        logger.info("Recorded %s -> %s", input_file_name, record.output_file_name)
        self._notify()
        return record

    def remove(self, record: ConversionRecord) -> bool:
        """Drop ``record``; returns ``False`` if it was not present."""
        before = len(self._records)
        self._records = [r for r in self._records if r.id != record.id]
        if len(self._records) == before:
            return False
        self._notify()
        return True

    def clear(self) -> None:
        self._records = []
        self._notify()

    # Alias matching SavedHistory.clear_all
    clear_all = clear

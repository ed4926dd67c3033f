"""Durable history of conversions the user chose to keep."""

from __future__ import annotations

import logging
from typing import List, Optional

from chameleon.errors import StorageError
from chameleon.history.base import BaseHistory
from chameleon.records import ConversionRecord, MonotonicClock, new_record
from chameleon.shell import FileShell
from chameleon.storage import RecordStorage, SQLAlchemyRecordStorage

logger = logging.getLogger(__name__)


class SavedHistory(BaseHistory):
    """History persisted through a ``RecordStorage``.

    Writes go to storage first. The in-memory view is loaded once, then
    patched with each committed change without reading storage again, so a
    ``StorageError`` leaves the view exactly as it was and a committed write
    is always visible.

    ``has_missing_files`` is set by ``scan_for_missing_files`` and cleared by
    a clean scan or by ``clear_missing_files``. Nothing else touches it;
    removing a single record does not re-evaluate it.
    """

    def __init__(self, storage: RecordStorage, shell: Optional[FileShell] = None) -> None:
        super().__init__(shell)
        self.storage = storage
        self.has_missing_files = False
        self._records = self.storage.enumerate_all()
        if self._records:
            self._clock = MonotonicClock(last=max(r.timestamp for r in self._records))

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
        self.storage.insert(record)
        # Clock stamps are strictly increasing, so the new record is the newest
        self._records.insert(0, record)
        logger.info("Saved %s -> %s", input_file_name, record.output_file_name)
        self._notify()
        return record

    def remove(self, record: ConversionRecord) -> bool:
        """Forget ``record``; the output file itself is left alone."""
        if not self.storage.delete(record.id):
            return False
        self._drop({record.id})
        logger.info("Removed saved conversion %s", record.id)
        self._notify()
        return True

    def clear_all(self) -> None:
        removed = self.storage.delete_all()
        self._records = []
        logger.info("Cleared %d saved conversion(s)", removed)
        self._notify()

    def _drop(self, record_ids) -> None:
        self._records = [r for r in self._records if r.id not in record_ids]

    def missing_records(self) -> List[ConversionRecord]:
        return [record for record in self._records if not record.is_file_accessible]

    def scan_for_missing_files(self) -> bool:
        """Check every record's output file and update ``has_missing_files``."""
        missing = self.missing_records()
        self.has_missing_files = bool(missing)
        if missing:
            logger.warning("%d saved conversion(s) point to missing files", len(missing))
        self._notify()
        return self.has_missing_files

    def clear_missing_files(self) -> int:
        """Remove every record whose output file is currently absent."""
        missing = self.missing_records()
        removed = 0
        if missing:
            missing_ids = {record.id for record in missing}
            removed = self.storage.delete_many(missing_ids)
            self._drop(missing_ids)
            logger.info("Removed %d saved conversion(s) with missing files", removed)
        if not self.missing_records():
            self.has_missing_files = False
        self._notify()
        return removed


def open_saved_history(database_url: str, shell: Optional[FileShell] = None) -> SavedHistory:
    """Open (creating if needed) the saved history stored at ``database_url``."""
    try:
        storage = SQLAlchemyRecordStorage.from_url(database_url)
    except StorageError:
        logger.error("Saved history at %s is unavailable", database_url)
        raise
    return SavedHistory(storage, shell=shell)

from __future__ import annotations

import logging
from typing import Callable, Iterator, List, Optional, Tuple

from chameleon.records import ConversionRecord, MonotonicClock
from chameleon.shell import FileShell, SystemFileShell

logger = logging.getLogger(__name__)

Listener = Callable[["BaseHistory"], None]


class BaseHistory:
    """Behaviour shared by the recent and saved histories.

    Subclasses keep ``self._records`` ordered most-recent-first and call
    ``_notify()`` after each successful mutation. Instances are meant to be
    driven from a single event loop or UI thread; they do no locking.
    """

    def __init__(self, shell: Optional[FileShell] = None) -> None:
        self._records: List[ConversionRecord] = []
        self._listeners: List[Listener] = []
        self._clock = MonotonicClock()
        self.shell = shell if shell is not None else SystemFileShell()

    @property
    def records(self) -> Tuple[ConversionRecord, ...]:
        return tuple(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[ConversionRecord]:
        return iter(self.records)

    def get(self, record_id: str) -> Optional[ConversionRecord]:
        for record in self._records:
            if record.id == record_id:
                return record
        return None

    def search(self, query: str) -> List[ConversionRecord]:
        return [record for record in self._records if record.matches(query)]

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call ``listener(history)`` after every change; returns an unsubscribe function."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self)

    def open_file(self, record: ConversionRecord) -> bool:
        """Open the output file; ``False`` if it is no longer there."""
        # Check again: the file may have gone since the last scan
        # 最後のスキャン以降に消えている可能性があるため再確認する
        if not record.is_file_accessible:
            logger.info("Not opening %s: file is missing", record.output_file_path)
            return False
        self.shell.open(record.output_file_path)
        return True

    def reveal_in_file_manager(self, record: ConversionRecord) -> bool:
        """Show the output file in the file manager; ``False`` if it is missing."""
        if not record.is_file_accessible:
            logger.info("Not revealing %s: file is missing", record.output_file_path)
            return False
        self.shell.reveal(record.output_file_path)
        return True

"""Conversion records shared by the recent and saved histories."""

from __future__ import annotations

import io
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Optional

from PIL import Image, UnidentifiedImageError

_SIZE_UNITS = (("KB", 0), ("MB", 1), ("GB", 2), ("TB", 2))


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def probe_file_size(path: Path) -> int:
    """Return the byte length of ``path`` or 0 if it cannot be read."""
    try:
        return path.stat().st_size
    except OSError:
        return 0


def format_file_size(size: int) -> str:
    """Render a byte count the way file browsers do (decimal units).
    ファイルブラウザと同じ表記（10進単位）でバイト数を整形する。
    """
    if size == 0:
        return "Zero KB"
    if size < 1000:
        return "1 byte" if size == 1 else f"{size} bytes"
    value = float(size)
    for unit, decimals in _SIZE_UNITS:
        value /= 1000
        # Round before picking the unit so 999_999 bytes reads "1 MB", not "1000 KB"
        shown = round(value, decimals)
        if shown < 1000:
            break
    text = f"{shown:.{decimals}f}"
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return f"{text} {unit}"


def format_date(moment: datetime) -> str:
    """Short local date and time, e.g. ``10/18/26, 14:05``."""
    return moment.astimezone().strftime("%m/%d/%y, %H:%M")


def format_relative_time(moment: datetime, now: Optional[datetime] = None) -> str:
    now = now or utcnow()
    elapsed = (now - moment).total_seconds()
    if elapsed < 60:
        return "Just now"
    if elapsed < 3600:
        minutes = int(elapsed // 60)
        return "1 minute ago" if minutes == 1 else f"{minutes} minutes ago"
    if elapsed < 86400:
        hours = int(elapsed // 3600)
        return "1 hour ago" if hours == 1 else f"{hours} hours ago"
    days = int(elapsed // 86400)
    if days == 1:
        return "Yesterday"
    if days < 7:
        return f"{days} days ago"
    return format_date(moment)


@dataclass(frozen=True)
class ConversionRecord:
    """Metadata about one completed conversion.

    Records are never edited after creation. ``file_size`` is the size of the
    output when the conversion was logged, not a live measurement; the file
    itself belongs to the filesystem and may disappear at any time.
    """

    input_file_name: str
    input_format: str
    output_format: str
    output_file_path: Path
    timestamp: datetime
    file_size: int = 0
    thumbnail_data: Optional[bytes] = field(default=None, repr=False)
    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    @property
    def output_file_name(self) -> str:
        return self.output_file_path.name

    @property
    def is_file_accessible(self) -> bool:
        return self.output_file_path.is_file()

    @property
    def formatted_file_size(self) -> str:
        return format_file_size(self.file_size)

    @property
    def formatted_date(self) -> str:
        return format_date(self.timestamp)

    def relative_time(self, now: Optional[datetime] = None) -> str:
        return format_relative_time(self.timestamp, now)

    @property
    def thumbnail_image(self) -> Optional[Image.Image]:
        """Decode ``thumbnail_data``; ``None`` when absent or not an image."""
        if not self.thumbnail_data:
            return None
        try:
            image = Image.open(io.BytesIO(self.thumbnail_data))
            image.load()
        except (UnidentifiedImageError, OSError):
            return None
        return image

    def matches(self, query: str) -> bool:
        """Case-insensitive substring match over names and formats."""
        needle = query.strip().casefold()
        if not needle:
            return True
        haystack = (
            self.input_file_name,
            self.output_file_name,
            self.input_format,
            self.output_format,
        )
        return any(needle in value.casefold() for value in haystack)


def new_record(
    input_file_name: str,
    input_format: str,
    output_format: str,
    output_file_path,
    timestamp: datetime,
    thumbnail_data: Optional[bytes] = None,
) -> ConversionRecord:
    """Build a record, measuring the output file once."""
    path = Path(output_file_path).expanduser().absolute()
    return ConversionRecord(
        input_file_name=input_file_name,
        input_format=input_format,
        output_format=output_format,
        output_file_path=path,
        timestamp=timestamp,
        file_size=probe_file_size(path),
        thumbnail_data=thumbnail_data,
    )


class MonotonicClock:
    """Hands out strictly increasing UTC timestamps.

    Two records created within the clock's resolution still sort in insertion
    order.
    """

    def __init__(self, last: Optional[datetime] = None) -> None:
        self.last = last

    def now(self) -> datetime:
        stamp = utcnow()
        if self.last is not None and stamp <= self.last:
            stamp = self.last + timedelta(microseconds=1)
        self.last = stamp
        return stamp

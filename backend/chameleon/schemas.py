from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from chameleon.records import ConversionRecord


class RecordIn(BaseModel):
    input_file_name: str = Field(min_length=1)
    input_format: str = Field(min_length=1)
    output_format: str = Field(min_length=1)
    output_file_path: str = Field(min_length=1)


class ConvertIn(BaseModel):
    input_path: str = Field(min_length=1)
    output_format: str = Field(min_length=1)
    # Defaults to the input file's extension
    # 省略時は入力ファイルの拡張子から決める
    input_format: Optional[str] = None
    engine: str = "pandoc"
    output_dir: Optional[str] = None


class RecordOut(BaseModel):
    id: str
    input_file_name: str
    input_format: str
    output_format: str
    output_file_name: str
    output_file_path: str
    timestamp: datetime
    file_size: int
    formatted_file_size: str
    formatted_date: str
    relative_time: str
    is_file_accessible: bool
    has_thumbnail: bool

    @classmethod
    def from_record(cls, record: ConversionRecord) -> "RecordOut":
        return cls(
            id=record.id,
            input_file_name=record.input_file_name,
            input_format=record.input_format,
            output_format=record.output_format,
            output_file_name=record.output_file_name,
            output_file_path=str(record.output_file_path),
            timestamp=record.timestamp,
            file_size=record.file_size,
            formatted_file_size=record.formatted_file_size,
            formatted_date=record.formatted_date,
            relative_time=record.relative_time(),
            is_file_accessible=record.is_file_accessible,
            has_thumbnail=record.thumbnail_data is not None,
        )


class HistoryOut(BaseModel):
    mode: str
    count: int
    has_missing_files: bool = False
    records: List[RecordOut]

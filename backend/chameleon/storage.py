from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import timezone
from pathlib import Path
from typing import Iterable, Iterator, List, Protocol

from sqlalchemy import delete
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from chameleon import models
from chameleon.database import Base, build_engine, build_session_factory
from chameleon.errors import StorageError
from chameleon.records import ConversionRecord

logger = logging.getLogger(__name__)

# Older SQLite builds cap a statement at 999 bound parameters
DELETE_CHUNK_SIZE = 500


class RecordStorage(Protocol):
    def insert(self, record: ConversionRecord) -> None:
        ...

    def delete(self, record_id: str) -> bool:
        ...

    def delete_many(self, record_ids: Iterable[str]) -> int:
        ...

    def delete_all(self) -> int:
        ...

    def enumerate_all(self) -> List[ConversionRecord]:
        ...


class SQLAlchemyRecordStorage:
    """Record store backed by the ``conversion_history`` table.

    Every call runs in its own transaction; a failed call is rolled back and
    surfaces as ``StorageError`` so callers never see a partial commit.
    SQLAlchemyのテーブルを使う履歴ストア。各呼び出しは独立したトランザクションで、
    失敗時はロールバックしてStorageErrorを送出する。
    """

    def __init__(self, session_factory) -> None:
        self._session_factory = session_factory

    @classmethod
    def from_url(cls, database_url: str) -> "SQLAlchemyRecordStorage":
        return cls.from_engine(build_engine(database_url))

    @classmethod
    def from_engine(cls, engine) -> "SQLAlchemyRecordStorage":
        try:
            Base.metadata.create_all(bind=engine)
        except SQLAlchemyError as exc:
            raise StorageError(f"Cannot open history store: {exc}") from exc
        return cls(build_session_factory(engine))

    @contextmanager
    def _session(self, action: str) -> Iterator[Session]:
        db = self._session_factory()
        try:
            yield db
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            logger.exception("History store failed to %s", action)
            raise StorageError(f"Failed to {action}: {exc}") from exc
        finally:
            db.close()

    def insert(self, record: ConversionRecord) -> None:
        with self._session("insert record") as db:
            db.add(_to_row(record))

    def delete(self, record_id: str) -> bool:
        return self.delete_many([record_id]) > 0

    def delete_many(self, record_ids: Iterable[str]) -> int:
        ids = list(record_ids)
        if not ids:
            return 0
        removed = 0
        with self._session("delete records") as db:
            for start in range(0, len(ids), DELETE_CHUNK_SIZE):
                chunk = ids[start:start + DELETE_CHUNK_SIZE]
                result = db.execute(
                    delete(models.ConversionHistory).where(models.ConversionHistory.record_id.in_(chunk))
                )
                removed += result.rowcount
        return removed

    def delete_all(self) -> int:
        with self._session("clear records") as db:
            result = db.execute(delete(models.ConversionHistory))
            return result.rowcount

    def enumerate_all(self) -> List[ConversionRecord]:
        with self._session("load records") as db:
            rows = (
                db.query(models.ConversionHistory)
                .order_by(
                    models.ConversionHistory.conversion_time.desc(),
                    models.ConversionHistory.id.desc(),
                )
                .all()
            )
            return [_from_row(row) for row in rows]


def _to_row(record: ConversionRecord) -> models.ConversionHistory:
    return models.ConversionHistory(
        record_id=record.id,
        input_filename=record.input_file_name,
        input_format=record.input_format,
        output_format=record.output_format,
        output_filename=record.output_file_name,
        output_path=str(record.output_file_path),
        conversion_time=record.timestamp.astimezone(timezone.utc).replace(tzinfo=None),
        file_size=record.file_size,
        thumbnail=record.thumbnail_data,
    )


def _from_row(row: models.ConversionHistory) -> ConversionRecord:
    stamp = row.conversion_time
    if stamp.tzinfo is None:
        stamp = stamp.replace(tzinfo=timezone.utc)
    else:
        stamp = stamp.astimezone(timezone.utc)
    return ConversionRecord(
        id=row.record_id,
        input_file_name=row.input_filename,
        input_format=row.input_format,
        output_format=row.output_format,
        output_file_path=Path(row.output_path),
        timestamp=stamp,
        file_size=row.file_size or 0,
        thumbnail_data=row.thumbnail,
    )

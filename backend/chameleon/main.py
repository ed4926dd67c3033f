from fastapi import Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from datetime import datetime
from pathlib import Path
import threading
from typing import Optional

import uvicorn

from chameleon.config import settings
from chameleon.database import engine
from chameleon.engines.adapter import get_engine
from chameleon.errors import ConversionError, FileShellError, StorageError
from chameleon.history.recent import RecentHistory
from chameleon.history.saved import SavedHistory
from chameleon.jobs import convert_and_record
from chameleon.log import setup_logging
from chameleon.schemas import ConvertIn, HistoryOut, RecordIn, RecordOut
from chameleon.shell import SystemFileShell
from chameleon.storage import SQLAlchemyRecordStorage

logger = setup_logging(settings)
logger.info("Recording conversions into %s history", settings.history_mode)

app = FastAPI(
    title="Chameleon",
    description="Convert files with external engines and keep a conversion history",
    version="1.0.0",
)

# Add CORS middleware only when origins are configured
# CORSが設定されている場合のみオリジンを許可するミドルウェアを追加
if settings.cors_origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

# Session-only history lives as long as the process
# セッション限りの履歴はプロセスと同じ寿命
_recent_history = RecentHistory(settings.recent_history_limit)


def get_recent_history() -> RecentHistory:
    return _recent_history


_saved_history: Optional[SavedHistory] = None
_saved_history_lock = threading.Lock()


def get_saved_history() -> SavedHistory:
    # Open the store on first use rather than at import time; the lock keeps it to one instance
    # ストアはインポート時ではなく初回利用時に開く（ロックで単一インスタンスを保証する）
    global _saved_history
    with _saved_history_lock:
        if _saved_history is None:
            storage = SQLAlchemyRecordStorage.from_engine(engine)
            _saved_history = SavedHistory(storage, shell=SystemFileShell())
        return _saved_history


def _saved() -> SavedHistory:
    try:
        return get_saved_history()
    except StorageError as e:
        raise HTTPException(status_code=500, detail=f"History store unavailable: {str(e)}")


def _select(mode: Optional[str], recent: RecentHistory):
    mode_norm = (mode or settings.history_mode).strip().lower()
    if mode_norm == "recent":
        return mode_norm, recent
    if mode_norm == "saved":
        return mode_norm, _saved()
    raise HTTPException(status_code=400, detail="mode must be 'saved' or 'recent'")


def _find(history, record_id: str):
    record = history.get(record_id)
    if record is None:
        raise HTTPException(status_code=404, detail="Record not found")
    return record


def _history_out(mode: str, history, query: Optional[str] = None) -> HistoryOut:
    records = history.search(query) if query else history.records
    return HistoryOut(
        mode=mode,
        count=len(history),
        has_missing_files=getattr(history, "has_missing_files", False),
        records=[RecordOut.from_record(r) for r in records],
    )


@app.get("/")
async def root():
    return {"message": "Chameleon conversion history API", "version": "1.0.0"}


@app.get("/health")
async def health_check():
    return {"status": "healthy", "timestamp": datetime.now().isoformat()}


@app.get("/history", response_model=HistoryOut)
async def list_history(
    mode: Optional[str] = None,
    q: Optional[str] = None,
    recent: RecentHistory = Depends(get_recent_history),
):
    mode_norm, history = _select(mode, recent)
    return _history_out(mode_norm, history, q)


@app.post("/history", response_model=RecordOut)
async def add_history(
    payload: RecordIn,
    mode: Optional[str] = None,
    recent: RecentHistory = Depends(get_recent_history),
):
    _, history = _select(mode, recent)
    try:
        record = history.record(
            payload.input_file_name,
            payload.input_format,
            payload.output_format,
            Path(payload.output_file_path),
        )
    except StorageError as e:
        raise HTTPException(status_code=500, detail=f"Error saving history: {str(e)}")
    return RecordOut.from_record(record)


@app.delete("/history/missing")
async def clear_missing_files():
    saved = _saved()
    try:
        removed = saved.clear_missing_files()
    except StorageError as e:
        raise HTTPException(status_code=500, detail=f"Error clearing missing files: {str(e)}")
    return {"removed": removed, "has_missing_files": saved.has_missing_files}


@app.delete("/history/{record_id}")
async def remove_history(
    record_id: str,
    mode: Optional[str] = None,
    recent: RecentHistory = Depends(get_recent_history),
):
    _, history = _select(mode, recent)
    record = history.get(record_id)
    # Removing an unknown record is a no-op, not an error
    # 存在しないレコードの削除はエラーにせず何もしない
    if record is None:
        return {"removed": False}
    try:
        removed = history.remove(record)
    except StorageError as e:
        raise HTTPException(status_code=500, detail=f"Error removing history: {str(e)}")
    return {"removed": removed}


@app.delete("/history")
async def clear_history(
    mode: Optional[str] = None,
    recent: RecentHistory = Depends(get_recent_history),
):
    _, history = _select(mode, recent)
    try:
        history.clear_all()
    except StorageError as e:
        raise HTTPException(status_code=500, detail=f"Error clearing history: {str(e)}")
    return {"success": True}


@app.post("/history/scan")
async def scan_history():
    saved = _saved()
    has_missing = saved.scan_for_missing_files()
    return {"has_missing_files": has_missing, "missing": len(saved.missing_records())}


@app.post("/history/{record_id}/open")
async def open_history_file(
    record_id: str,
    mode: Optional[str] = None,
    recent: RecentHistory = Depends(get_recent_history),
):
    _, history = _select(mode, recent)
    record = _find(history, record_id)
    try:
        return {"success": history.open_file(record)}
    except FileShellError as e:
        raise HTTPException(status_code=500, detail=f"Error opening file: {str(e)}")


@app.post("/history/{record_id}/reveal")
async def reveal_history_file(
    record_id: str,
    mode: Optional[str] = None,
    recent: RecentHistory = Depends(get_recent_history),
):
    _, history = _select(mode, recent)
    record = _find(history, record_id)
    try:
        return {"success": history.reveal_in_file_manager(record)}
    except FileShellError as e:
        raise HTTPException(status_code=500, detail=f"Error revealing file: {str(e)}")


@app.post("/convert", response_model=RecordOut)
async def convert_file(
    payload: ConvertIn,
    recent: RecentHistory = Depends(get_recent_history),
):
    input_path = Path(payload.input_path).expanduser()
    if not input_path.is_file():
        raise HTTPException(status_code=400, detail="Input file not found")
    input_format = payload.input_format or input_path.suffix.lstrip(".").lower()
    if not input_format:
        raise HTTPException(status_code=400, detail="Input format is required")
    try:
        conversion_engine = get_engine(payload.engine)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    _, history = _select(None, recent)
    output_dir = Path(payload.output_dir or settings.output_dir)
    try:
        record = await convert_and_record(
            conversion_engine,
            history,
            input_path,
            input_format,
            payload.output_format,
            output_dir,
        )
    except ConversionError as e:
        raise HTTPException(status_code=422, detail=f"Conversion failed: {str(e)}")
    except StorageError as e:
        raise HTTPException(status_code=500, detail=f"Error saving history: {str(e)}")
    return RecordOut.from_record(record)


def run():
    """Serve the API with uvicorn using the configured host and port."""
    uvicorn.run(
        "chameleon.main:app",
        host=settings.host,
        port=settings.port or 8000,
        reload=settings.debug,
    )

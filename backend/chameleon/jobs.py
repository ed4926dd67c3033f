"""Run conversions in the background and log the successful ones."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Optional, Union

from chameleon.engines.adapter import ConversionEngine
from chameleon.history.recent import RecentHistory
from chameleon.history.saved import SavedHistory
from chameleon.records import ConversionRecord

logger = logging.getLogger(__name__)

History = Union[RecentHistory, SavedHistory]


async def convert_and_record(
    engine: ConversionEngine,
    history: History,
    input_path: Path,
    input_format: str,
    output_format: str,
    output_dir: Path,
    thumbnail_data: Optional[bytes] = None,
) -> ConversionRecord:
    """Convert ``input_path`` off the event loop, then record it on the loop.

    Engine failures propagate as ``ConversionError`` and cancellation as
    ``asyncio.CancelledError``; in both cases nothing is recorded.
    """
    try:
        output_path = await asyncio.to_thread(
            engine.convert, input_path, input_format, output_format, output_dir
        )
    except asyncio.CancelledError:
        logger.info("Conversion of %s cancelled", input_path.name)
        raise
    return history.record(
        input_path.name,
        input_format,
        output_format,
        output_path,
        thumbnail_data=thumbnail_data,
    )

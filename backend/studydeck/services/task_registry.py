from __future__ import annotations

import asyncio
import logging
from collections.abc import Coroutine
from typing import Any

logger = logging.getLogger(__name__)

_running_tasks: dict[str, asyncio.Task[Any]] = {}


def start_task(material_id: str, coro: Coroutine[Any, Any, Any]) -> asyncio.Task[Any]:
    """Create an asyncio task and register it by material ID."""
    task = asyncio.create_task(coro, name=f"ingest-{material_id}")
    _running_tasks[material_id] = task
    task.add_done_callback(lambda _: _running_tasks.pop(material_id, None))
    return task


def is_processing(material_id: str) -> bool:
    task = _running_tasks.get(material_id)
    return task is not None and not task.done()


async def recover_stuck_materials() -> None:
    """Re-queue materials left mid-pipeline by a previous crash."""
    from studydeck.db.sqlite import find_materials_by_status, get_db
    from studydeck.services.ingestion import run_ingestion

    async for db in get_db():
        stuck = await find_materials_by_status(db, ["extracting", "chunking", "embedding"])
        for material in stuck:
            logger.info("Recovering stuck material: %s (%s)", material.id, material.status)
            start_task(material.id, run_ingestion(material.id))

from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import TypeVar

from fastapi import Request
from fastapi.concurrency import run_in_threadpool

from ..core.cancellation import Cancellation

T = TypeVar("T")

DISCONNECT_POLL_SECONDS = 0.05


async def run_unit(
    request: Request,
    unit: Callable[[Cancellation], T],
    timeout: float,
) -> T:
    """Run a blocking store unit in the threadpool, tied to its request.

    A worker thread cannot be interrupted, so the unit is handed a
    ``Cancellation`` instead: it is cancelled once the client disconnects and
    expires after ``timeout`` seconds, and the unit checks it before commit.
    """
    cancellation = Cancellation(timeout)

    async def watch_disconnect() -> None:
        while not await request.is_disconnected():
            await asyncio.sleep(DISCONNECT_POLL_SECONDS)
        cancellation.cancel()

    watcher = asyncio.create_task(watch_disconnect())
    try:
        return await run_in_threadpool(unit, cancellation)
    finally:
        watcher.cancel()

"""Running blocking file work off the event loop."""

import asyncio
import contextlib
from typing import Any, Callable, TypeVar

T = TypeVar("T")


async def run_blocking(func: Callable[..., T], *args: Any) -> T:
    """Run ``func`` in the default executor.

    If the awaiting task is cancelled, the worker thread is waited for before
    the cancellation propagates, so the caller's cleanup never runs while the
    thread is still reading or writing the export directory.
    """
    loop = asyncio.get_event_loop()
    future = loop.run_in_executor(None, func, *args)
    try:
        return await asyncio.shield(future)
    except asyncio.CancelledError:
        # The worker's own error is secondary to the cancellation
        with contextlib.suppress(Exception):
            await future
        raise

"""
Deferred callbacks.
"""

import asyncio
from typing import Any, Callable

LaterFunc = Callable[[Callable[[], Any]], Any]


def schedule_later(fn: Callable[[], Any]) -> asyncio.Handle:
    """
    Run `fn` on a later turn of the running event loop.

    Callbacks scheduled from the same loop run in FIFO order.

    Args:
        fn (Callable[[], Any]): The callback to run.

    Returns:
        asyncio.Handle: The handle returned by `loop.call_soon`.

    Raises:
        RuntimeError: If no event loop is running.
    """
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError as exc:
        raise RuntimeError(
            "deferred triggers need a running event loop "
            "or a schedule_later callable passed to EventProxy"
        ) from exc
    return loop.call_soon(fn)

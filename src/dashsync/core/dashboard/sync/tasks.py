"""
Fail-fast concurrent execution for independent fetches.
"""

import asyncio
from collections.abc import Awaitable
from typing import Any


async def gather_fail_fast(*awaitables: Awaitable[Any]) -> list[Any]:
    """
    Run awaitables concurrently and return their results in order.

    Unlike ``asyncio.gather``, the first failure cancels every sibling that
    is still running, waits for the cancellations to settle and re-raises
    that failure. No result is returned unless every awaitable succeeded.

    Example:
        >>> dashboards, items = await gather_fail_fast(fetch_dashboards(), fetch_items())
    """
    tasks = [asyncio.ensure_future(awaitable) for awaitable in awaitables]
    if not tasks:
        return []

    try:
        _, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_EXCEPTION)
    except asyncio.CancelledError:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise

    failure: BaseException | None = None
    for task in tasks:
        if not task.done():
            continue
        if task.cancelled():
            failure = failure or asyncio.CancelledError()
        elif task.exception() is not None:
            failure = failure or task.exception()

    if failure is not None:
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)
        raise failure

    return [task.result() for task in tasks]

"""Cancellation-aware sleeping."""

from __future__ import annotations

import asyncio


async def sleep_or_cancel(delay: float, cancel: asyncio.Event | None = None) -> bool:
    """Sleep for ``delay`` seconds unless ``cancel`` fires first.

    Args:
        delay: Seconds to sleep. Non-positive values only yield control.
        cancel: Optional run-scoped cancellation event.

    Returns:
        True if the cancellation event was set before or during the
        sleep, False if the full delay elapsed.
    """
    if cancel is None:
        await asyncio.sleep(max(delay, 0.0))
        return False
    if cancel.is_set():
        return True
    try:
        await asyncio.wait_for(cancel.wait(), timeout=max(delay, 0.0))
    except TimeoutError:
        return False
    return True

"""Run blocking provider calls from async code with cancellation hand-off.

`asyncio.to_thread` cannot interrupt a running thread, so each call receives a
`threading.Event` that is set when the awaiting task is cancelled (for example
by a stage timeout). The HTTP clients check it between streamed body chunks.
"""

from __future__ import annotations

import asyncio
import threading
from typing import Any, Callable, TypeVar

_CallResult = TypeVar("_CallResult")


async def run_cancellable(func: Callable[..., _CallResult], /, **kwargs: Any) -> _CallResult:
    """Await `func(cancel_event=..., **kwargs)` in a worker thread."""

    cancel_event = threading.Event()
    try:
        return await asyncio.to_thread(func, cancel_event=cancel_event, **kwargs)
    except asyncio.CancelledError:
        cancel_event.set()
        raise

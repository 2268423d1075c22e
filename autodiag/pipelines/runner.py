from __future__ import annotations

import time
from typing import Any, Callable, Tuple

import anyio

from autodiag.config import settings
from autodiag.llm.client import GenerationTimeout


async def run_with_timeout(fn: Callable[..., Any], *args, **kwargs) -> Tuple[Any, float]:
    """
    Run a blocking client call in a worker thread, bounded by the configured timeout.
    Returns (result, duration_seconds).
    """
    start = time.perf_counter()
    try:
        with anyio.fail_after(settings.llm_timeout_seconds):
            result = await anyio.to_thread.run_sync(lambda: fn(*args, **kwargs), abandon_on_cancel=True)
        duration = time.perf_counter() - start
        return result, duration
    except TimeoutError as e:
        raise GenerationTimeout(f"Generative API timed out after {settings.llm_timeout_seconds}s") from e

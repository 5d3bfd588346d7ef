"""
Async helper utilities for the Streamlit application.

Streamlit scripts are synchronous, but the batch runner is a coroutine.
"""

import asyncio
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Coroutine, TypeVar

T = TypeVar('T')


def run_async(coro: Coroutine[Any, Any, T]) -> T:
    """
    Run a coroutine to completion from synchronous code.

    Uses asyncio.run() directly when no event loop is running in this
    thread; otherwise runs it on a fresh loop in a worker thread so the
    caller's loop is left alone.

    Args:
        coro: The coroutine to run

    Returns:
        The result of the coroutine
    """
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(coro)

    with ThreadPoolExecutor(max_workers=1) as executor:
        return executor.submit(asyncio.run, coro).result()

"""Retry helpers with linear backoff."""
from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, Optional, Tuple, Type


OnAttemptFailed = Callable[[int, BaseException], None]


async def retry_after_failure(
    func: Callable[..., Awaitable[Any]],
    *args: Any,
    retries: int = 3,
    delay: float = 1.0,
    exceptions: Tuple[Type[BaseException], ...] = (Exception,),
    on_attempt_failed: Optional[OnAttemptFailed] = None,
    **kwargs: Any,
) -> Tuple[int, Any]:
    """Re-run ``func`` after it already failed once.

    Attempt ``n`` (1-based) waits ``delay * n`` seconds before calling. Returns
    ``(attempt, result)`` on the first success and re-raises the last error
    when every attempt fails.
    """
    if retries < 1:
        raise ValueError("retries must be >= 1")
    attempt = 0
    while True:
        attempt += 1
        await asyncio.sleep(delay * attempt)
        try:
            return attempt, await func(*args, **kwargs)
        except exceptions as exc:
            if on_attempt_failed is not None:
                on_attempt_failed(attempt, exc)
            if attempt >= retries:
                raise

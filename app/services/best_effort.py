"""
best_effort.py - Isolate side effects that must never fail the primary operation

run_best_effort(label, fn, *args, default=None, **kwargs) awaits fn and, if
it raises, logs a warning naming the step and returns `default` instead.
"""

import logging
from typing import Any, Awaitable, Callable

logger = logging.getLogger(__name__)


async def run_best_effort(
    label: str,
    fn: Callable[..., Awaitable[Any]],
    *args: Any,
    default: Any = None,
    **kwargs: Any,
) -> Any:
    try:
        return await fn(*args, **kwargs)
    except Exception as e:
        logger.warning(f"Best-effort step '{label}' failed ({type(e).__name__}): {e}")
        return default

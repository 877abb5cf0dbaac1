from __future__ import annotations

import logging
from typing import Any, Callable

logger = logging.getLogger(__name__)


def run_best_effort(action: str, func: Callable[..., Any], *args: Any, **kwargs: Any) -> bool:
    """Run a side effect whose failure must not fail the caller.

    Returns ``False`` when ``func`` raises or itself returns ``False``.
    Exceptions are logged with the traceback.
    """
    try:
        result = func(*args, **kwargs)
    except Exception:
        logger.exception("[BEST_EFFORT] %s failed", action)
        return False
    return result is not False

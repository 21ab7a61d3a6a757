"""Uniform invocation of user hooks that may complete later.

A hook is any callable.  It may return ``None`` (or any plain value)
to signal it is done, or an awaitable to signal completion is deferred.
:func:`invoke_hook` turns both into one shape: ``None`` when the hook
already settled, otherwise a coroutine the caller awaits at its single
suspension point.  Hook failures never propagate.
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Awaitable, Callable, Coroutine
from typing import Any

_LOGGER = logging.getLogger(__name__)


def invoke_hook(
    name: str, hook: Callable[..., Any] | None, *args: Any
) -> Coroutine[Any, Any, None] | None:
    """Call *hook* with *args*.

    Returns ``None`` if the hook is unset, returned synchronously or
    raised (the error is logged).  Returns a coroutine that awaits the
    hook's result and logs any failure if the hook returned an
    awaitable.
    """
    if hook is None:
        return None
    try:
        result = hook(*args)
    except Exception:
        _LOGGER.exception("%s raised", name)
        return None
    if inspect.isawaitable(result):
        return _settle(name, result)
    return None


async def _settle(name: str, awaitable: Awaitable[Any]) -> None:
    try:
        await awaitable
    except Exception:
        _LOGGER.exception("%s failed", name)

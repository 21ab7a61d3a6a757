"""FIFO buffer of sends deferred until the connection is open."""

from __future__ import annotations

import logging
from collections import deque
from collections.abc import Callable

_LOGGER = logging.getLogger(__name__)


class PendingSendQueue:
    """Ordered queue of deferred send actions.

    There is no size bound and no de-duplication: every action
    appended is run exactly once by the next :meth:`flush`, in the
    order it was appended.
    """

    def __init__(self) -> None:
        self._actions: deque[Callable[[], object]] = deque()

    def __len__(self) -> int:
        return len(self._actions)

    def append(self, action: Callable[[], object]) -> None:
        """Defer *action* until the next flush."""
        self._actions.append(action)

    def flush(self) -> int:
        """Run every queued action in FIFO order and empty the queue.

        The queue is swapped out before the first action runs, so an
        action that queues new work (for example because the link
        dropped mid-flush) lands behind nothing from this batch.  A
        failing action is logged and the remaining actions still run.

        Returns the number of actions that ran without raising.
        """
        actions, self._actions = self._actions, deque()
        succeeded = 0
        for action in actions:
            try:
                action()
            except Exception:
                _LOGGER.exception("Error running pending send action")
                continue
            succeeded += 1
        return succeeded

    def clear(self) -> int:
        """Drop all queued actions, returning how many were dropped."""
        dropped = len(self._actions)
        self._actions.clear()
        return dropped

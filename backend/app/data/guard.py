"""
Resource guard — a stack of release callbacks drained on teardown.

Handles are pushed as they are opened and released in reverse order. Every
release is attempted even when an earlier one fails; failures are logged and
returned to the caller instead of raised.
"""

from __future__ import annotations

import inspect
import logging
from typing import Awaitable, Callable, List, Tuple, Union

logger = logging.getLogger(__name__)

ReleaseFn = Callable[[], Union[Awaitable[None], None]]


class ResourceGuard:

    def __init__(self) -> None:
        self._releases: List[Tuple[str, ReleaseFn]] = []

    def push(self, name: str, release: ReleaseFn) -> None:
        self._releases.append((name, release))

    def __len__(self) -> int:
        return len(self._releases)

    @property
    def names(self) -> List[str]:
        return [name for name, _ in self._releases]

    async def close(self) -> List[Exception]:
        """Release everything, newest first. A drained guard closes as a no-op."""
        errors: List[Exception] = []
        while self._releases:
            name, release = self._releases.pop()
            try:
                result = release()
                if inspect.isawaitable(result):
                    await result
                logger.debug("Released %s", name)
            except Exception as exc:
                logger.error("failed to close %s resources: %s", name, exc)
                errors.append(exc)
        return errors

"""
In-flight request registry.

Collapses concurrent identical outbound requests: while an operation for a
request key is pending, every new caller awaits the same task. The entry is
dropped on settlement so the next call issues a fresh request.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Optional

from wiki_resolver.config import REQUEST_TIMEOUT
from wiki_resolver.errors import UpstreamTimeoutError

logger = logging.getLogger(__name__)


class InFlightRequestRegistry:
    """At most one outstanding operation per request key at any instant."""

    def __init__(self, timeout: float = REQUEST_TIMEOUT):
        self.timeout = timeout
        self._pending: Dict[str, asyncio.Task] = {}

    async def fetch(self, request_key: str, operation: Callable[[], Awaitable[Any]]) -> Any:
        """Run ``operation`` once per key, sharing its result with concurrent callers.

        ``operation`` is a zero-argument coroutine factory; it is only invoked
        when no request for ``request_key`` is already pending. A caller that
        is cancelled while waiting does not cancel the shared task.
        """
        task = self._pending.get(request_key)
        if task is None:
            task = asyncio.ensure_future(self._run(request_key, operation))
            self._pending[request_key] = task
            task.add_done_callback(lambda t, key=request_key: self._settle(key, t))
        else:
            logger.debug(f"Joined in-flight request {request_key}")

        return await asyncio.shield(task)

    def pending(self, request_key: str) -> Optional[asyncio.Task]:
        return self._pending.get(request_key)

    def __len__(self) -> int:
        return len(self._pending)

    async def _run(self, request_key: str, operation: Callable[[], Awaitable[Any]]) -> Any:
        try:
            return await asyncio.wait_for(operation(), timeout=self.timeout)
        except asyncio.TimeoutError:
            raise UpstreamTimeoutError(
                f"Request timed out after {self.timeout}s", url=request_key
            ) from None

    def _settle(self, request_key: str, task: asyncio.Task) -> None:
        if self._pending.get(request_key) is task:
            del self._pending[request_key]
        # Mark the exception retrieved; callers that gave up never will.
        if not task.cancelled():
            task.exception()

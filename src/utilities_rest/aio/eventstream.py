#  Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
#  SPDX-License-Identifier: Apache-2.0
import asyncio
import logging

from ..interfaces import ServerSentEventHandler
from ..response import Response
from ..sse import ServerSentEvent
from .utils import maybe_await

logger = logging.getLogger(__name__)


class ServerSentEventQueue:
    """Delivers server sent events to a handler one at a time, in arrival order.

    :py:meth:`run` is intended to be run as a task alongside the exchange that
    produces the events. Each handler invocation is awaited before the next event is
    dequeued, so invocations never overlap.
    """

    def __init__(self, handler: ServerSentEventHandler) -> None:
        self._handler = handler
        self._queue: asyncio.Queue[tuple[Response, ServerSentEvent] | None] = (
            asyncio.Queue()
        )
        self._stopped = False

    def __len__(self) -> int:
        return self._queue.qsize()

    def put(self, response: Response, event: ServerSentEvent) -> None:
        if self._stopped:
            raise RuntimeError("Cannot enqueue events on a stopped queue.")
        self._queue.put_nowait((response, event))

    async def run(self) -> None:
        """Deliver queued events until :py:meth:`stop` is called."""
        while True:
            item = await self._queue.get()
            try:
                if item is None:
                    logger.debug("Server sent event queue stopped")
                    return
                response, event = item
                try:
                    await maybe_await(self._handler(response, event))
                except Exception:
                    logger.exception("Server sent event handler failed on %s", event)
            finally:
                self._queue.task_done()

    async def drain(self) -> None:
        """Wait until every queued event has been delivered."""
        await self._queue.join()

    def stop(self) -> None:
        """Signal :py:meth:`run` to return once the events ahead of it are delivered."""
        if not self._stopped:
            self._stopped = True
            self._queue.put_nowait(None)

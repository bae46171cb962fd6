import asyncio
import logging
from typing import Any, Awaitable, Callable, List

logger = logging.getLogger(__name__)


class PageController:
    """
    Base for page-level state holders.

    Listeners are notified after every state change. Once disposed, a
    controller ignores results that arrive from work started before.
    """

    def __init__(self):
        self._listeners: List[Callable[[], Any]] = []
        self.is_disposed = False

    def add_listener(self, listener: Callable[[], Any]):
        self._listeners.append(listener)

    def remove_listener(self, listener: Callable[[], Any]):
        if listener in self._listeners:
            self._listeners.remove(listener)

    def notify_listeners(self):
        if self.is_disposed:
            return
        for listener in list(self._listeners):
            listener()

    def dispose(self):
        self.is_disposed = True
        self._listeners.clear()

    async def run_parallel(self, *aws: Awaitable) -> List[Any]:
        """
        Await everything concurrently and return once all have settled.

        Failures come back in place as exception instances and are logged;
        they never cancel sibling loads.
        """
        results = await asyncio.gather(*aws, return_exceptions=True)
        for result in results:
            if isinstance(result, Exception):
                logger.warning(f"{self.__class__.__name__}: parallel load failed: {result}")
        return results

import asyncio
import logging
from typing import Callable, Dict, List, Optional

logger = logging.getLogger(__name__)


class TimerRegistry:
    """
    Named, cancellable ``loop.call_later`` timers.

    Scheduling a name that already has a timer replaces it. A fired timer
    removes itself before its callback runs.
    """

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        self._loop = loop
        self._handles: Dict[str, asyncio.TimerHandle] = {}

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        return self._loop or asyncio.get_running_loop()

    def __contains__(self, name: str) -> bool:
        return name in self._handles

    def __len__(self) -> int:
        return len(self._handles)

    def schedule(self, name: str, delay: float, callback: Callable[[], None]):
        self.cancel(name)

        def fire():
            self._handles.pop(name, None)
            callback()

        self._handles[name] = self.loop.call_later(delay, fire)

    def cancel(self, name: str) -> bool:
        handle = self._handles.pop(name, None)
        if handle is None:
            return False
        handle.cancel()
        return True

    def names(self, prefix: str = "") -> List[str]:
        return [name for name in self._handles if name.startswith(prefix)]

    def cancel_prefix(self, prefix: str) -> List[str]:
        names = self.names(prefix)
        for name in names:
            self.cancel(name)
        return names

    def cancel_all(self):
        for handle in self._handles.values():
            handle.cancel()
        self._handles.clear()

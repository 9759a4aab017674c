"""
Call coalescing (Singleflight) for threads.

When several threads ask for the same key at once, only one runs the function;
the others block and receive the same result (or the same exception).
"""
import logging
import threading
from dataclasses import dataclass
from typing import Callable, Dict, Generic, Optional, TypeVar

T = TypeVar("T")

logger = logging.getLogger(__name__)


@dataclass
class SingleflightResult(Generic[T]):
    """Result of a coalesced call"""

    value: T
    """Value returned by the leader"""

    shared: bool
    """True if this caller joined a call already in flight"""

    subscribers: int
    """Number of callers that received this value"""


class _InFlightCall:
    def __init__(self) -> None:
        self.done = threading.Event()
        self.value = None
        self.error: Optional[BaseException] = None
        self.subscribers = 1


class Singleflight:
    """
    Singleflight - coalescing of concurrent identical calls.

    Example:
        sf = Singleflight()

        # Threads racing on the same stale token trigger one refresh
        result = sf.do(stale_token, lambda: refresher.refresh(stale_token))
        print(result.shared)  # False for the leader, True for joiners
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._calls: Dict[str, _InFlightCall] = {}

    def in_flight(self, key: str) -> bool:
        """Check whether a call for key is currently running."""
        with self._lock:
            return key in self._calls

    def do(self, key: str, fn: Callable[[], T]) -> SingleflightResult[T]:
        """
        Run fn once per key among concurrent callers.

        Args:
            key: Coalescing key
            fn: Function executed by the first caller

        Returns:
            The shared result
        """
        with self._lock:
            call = self._calls.get(key)
            if call is not None:
                call.subscribers += 1
                leader = False
            else:
                call = _InFlightCall()
                self._calls[key] = call
                leader = True

        if not leader:
            logger.debug(f"Singleflight.do: joined in-flight call (subscribers={call.subscribers})")
            call.done.wait()
            if call.error is not None:
                raise call.error
            return SingleflightResult(value=call.value, shared=True, subscribers=call.subscribers)

        try:
            call.value = fn()
        except BaseException as err:
            call.error = err
            raise
        finally:
            with self._lock:
                del self._calls[key]
            call.done.set()

        return SingleflightResult(value=call.value, shared=False, subscribers=call.subscribers)

"""One-time, shared asynchronous initialization."""

import asyncio
import logging
from enum import Enum
from typing import Awaitable, Callable, Generic, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class InitState(str, Enum):
    """Lifecycle of a single-flight initializer."""

    UNINITIALIZED = "uninitialized"
    IN_FLIGHT = "in_flight"
    READY = "ready"
    FAILED = "failed"


class SingleFlight(Generic[T]):
    """Runs an async factory at most once and shares its outcome.

    The first caller starts the factory as a task; concurrent callers await
    that same task. The result, or the exception, is memoized for the life
    of the instance. Awaiting callers are shielded from each other: one
    caller being cancelled does not cancel the shared initialization.
    """

    def __init__(self, factory: Callable[[], Awaitable[T]], name: str = "resource"):
        self._factory = factory
        self._name = name
        self._state = InitState.UNINITIALIZED
        self._task: Optional[asyncio.Task] = None
        self._value: Optional[T] = None
        self._error: Optional[BaseException] = None

    @property
    def state(self) -> InitState:
        return self._state

    async def get(self) -> T:
        """
        Return the initialized value, starting initialization if needed.

        Raises:
            Exception: Whatever the factory raised, on every call once failed
        """
        if self._state is InitState.READY:
            return self._value  # type: ignore[return-value]
        if self._state is InitState.FAILED:
            raise self._error  # type: ignore[misc]

        if self._task is None:
            logger.debug(f"Initializing {self._name}")
            self._state = InitState.IN_FLIGHT
            self._task = asyncio.ensure_future(self._run())

        return await asyncio.shield(self._task)

    async def _run(self) -> T:
        try:
            value = await self._factory()
        except asyncio.CancelledError:
            # Cancelled work is not a verdict; let the next caller retry
            self._state = InitState.UNINITIALIZED
            self._task = None
            raise
        except Exception as e:
            self._state = InitState.FAILED
            self._error = e
            logger.debug(f"Initialization of {self._name} failed: {e}")
            raise
        self._value = value
        self._state = InitState.READY
        logger.debug(f"{self._name} ready")
        return value

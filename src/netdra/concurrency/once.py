import threading
from typing import Callable, Generic, TypeVar

T = TypeVar("T")


class Once(Generic[T]):
    """
    A one-time execution guard for plain (thread-based) callables.

    The first call to ``run`` executes the function while holding a lock;
    concurrent callers block until it finishes and then all callers get the
    cached result. If the function raises, the exception is cached and
    re-raised on every later call, so callers that need a fallback value
    must handle failures inside the function itself.

    Example:
        once = Once()

        def detect():
            return detect_kernel_mode()

        mode = once.run(detect)
        assert once.run(detect) is mode

    ``reset`` forgets the cached outcome. It exists for tests; production
    code never needs to run the function a second time.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._done = False
        self._result: T | None = None
        self._exception: BaseException | None = None

    def run(self, func: Callable[[], T]) -> T:
        """Run ``func`` if it has not been run yet and return its (cached) result."""
        if not self._done:
            with self._lock:
                if not self._done:
                    try:
                        self._result = func()
                    except BaseException as e:
                        self._exception = e
                    self._done = True
        if self._exception is not None:
            raise self._exception
        return self._result  # type: ignore[return-value]

    def reset(self) -> None:
        with self._lock:
            self._done = False
            self._result = None
            self._exception = None

    @property
    def done(self) -> bool:
        """Return True if the one-time operation has completed."""
        return self._done

    @property
    def result(self) -> T | None:
        """Return the cached result if available."""
        if self._done and self._exception is None:
            return self._result
        return None

    @property
    def exception(self) -> BaseException | None:
        """Return the cached exception if one was raised."""
        return self._exception

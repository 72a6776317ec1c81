import logging
import queue
from abc import ABC, abstractmethod
from concurrent import futures
from typing import Callable, Optional


class CompletionContext(ABC):
    """Execution context on which stitch results are delivered to the caller."""

    @abstractmethod
    def post(self, fn: Callable, *args):
        """Schedule fn(*args) on this context. Must not block."""

    def close(self, wait: bool = True):
        pass


class QueueCompletionContext(CompletionContext):
    """
    Callbacks are queued and run by the owning thread when it calls run_pending().

    This is the "deliver on the main thread" contract: a UI loop or CLI pumps
    the queue from the thread that owns its state.
    """

    def __init__(self):
        self.log = logging.getLogger("QueueCompletionContext")
        self._queue: "queue.Queue" = queue.Queue()

    def post(self, fn: Callable, *args):
        self._queue.put((fn, args))

    def run_pending(self, timeout: Optional[float] = 0) -> int:
        """
        Run queued callbacks on the calling thread.

        :param timeout: seconds to wait for the first callback; 0 does not
                        wait, None waits indefinitely.
        :return: number of callbacks executed
        """
        block = timeout is None or timeout > 0
        try:
            fn, args = self._queue.get(block=block, timeout=timeout if block else None)
        except queue.Empty:
            return 0

        ran = 0
        while True:
            fn(*args)
            ran += 1
            try:
                fn, args = self._queue.get_nowait()
            except queue.Empty:
                return ran

    def pending(self) -> int:
        return self._queue.qsize()


class ThreadCompletionContext(CompletionContext):
    """A single dedicated delivery thread. Callbacks run one at a time, in order."""

    def __init__(self, name: str = "stitch-delivery"):
        self.log = logging.getLogger("ThreadCompletionContext")
        self._executor = futures.ThreadPoolExecutor(max_workers=1, thread_name_prefix=name)

    def post(self, fn: Callable, *args):
        self._executor.submit(self._call, fn, args)

    def _call(self, fn: Callable, args):
        try:
            fn(*args)
        except Exception as e:
            self.log.error(f"Completion callback failed: {e}", exc_info=True)

    def close(self, wait: bool = True):
        self._executor.shutdown(wait=wait)

import collections
import functools
import itertools
import logging
import threading
from concurrent import futures
from typing import Callable, Optional

from stitchbox.config import StitchConfig
from stitchbox.errors import ErrorKind, StitchCancelled
from stitchbox.fsm import CoordinatorFSM
from stitchbox.pipeline.delivery import CompletionContext, ThreadCompletionContext
from stitchbox.pipeline.models import Failure, StitchRequest, StitchResult
from stitchbox.pipeline.runner import RequestRunner


class _Job:
    __slots__ = ("ticket", "request", "cancelled")

    def __init__(self, ticket: int, request: StitchRequest):
        self.ticket = ticket
        self.request = request
        self.cancelled = threading.Event()


class StitchCoordinator:
    """
    Single-flight coordinator for stitch requests.

    - Accepts requests at any time; the latest submission wins
    - Runs each request on one background worker thread
    - Delivers the result of the current request on the completion context
    - Discards results of superseded requests and everything after dispose()

    The only state shared across requests is the active-job slot, swapped
    under a lock. Superseded requests are asked to stop between stages;
    the engine call itself is not interrupted.

    When submit() is called from the completion context itself (a UI thread
    pumping a QueueCompletionContext), a superseded request can never be
    delivered after its successor was submitted.

    State callbacks run in transition order, outside the lock, so they may
    call submit() or dispose(). A failing callback is logged and ignored.
    """

    def __init__(
        self,
        runner: RequestRunner,
        on_result: Callable[[StitchResult], None],
        completion: Optional[CompletionContext] = None,
        callbacks: dict = None,
    ):
        """
        :param runner: executes one request end to end
        :param on_result: called with the StitchResult on the completion context
        :param completion: where on_result runs; defaults to a dedicated thread
        :param callbacks: FSM callbacks, e.g. {"on_enter_in_flight": show_progress,
                          "on_enter_idle": hide_progress}
        """
        self.log = logging.getLogger("StitchCoordinator")

        self.runner = runner
        self.on_result = on_result
        self._owns_completion = completion is None
        self.completion = completion or ThreadCompletionContext()

        self._lock = threading.Lock()
        self._active: Optional[_Job] = None
        self._tickets = itertools.count(1)
        self._disposed = False
        self._worker = futures.ThreadPoolExecutor(max_workers=1, thread_name_prefix="stitch-worker")

        # --- FSM ---
        # Transitions fire under the lock; they only queue the callback names.
        self.callbacks = dict(callbacks or {})
        for name, func in self.callbacks.items():
            if not callable(func):
                raise ValueError(f"Callback '{name}' must be callable, got {type(func)}")
        self._pending = collections.deque()
        self._notify_lock = threading.Lock()
        self.fsm = CoordinatorFSM(
            callbacks={name: functools.partial(self._pending.append, name) for name in self.callbacks}
        )

    @classmethod
    def from_config(
        cls,
        config: Optional[StitchConfig],
        on_result: Callable[[StitchResult], None],
        completion: Optional[CompletionContext] = None,
        callbacks: dict = None,
    ) -> "StitchCoordinator":
        return cls(RequestRunner.from_config(config), on_result, completion, callbacks)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.dispose()
        return False

    # ----------------------------------------------------------------------
    # PUBLIC API
    # ----------------------------------------------------------------------

    def submit(self, request: StitchRequest) -> int:
        """
        Start stitching a request, superseding any request in flight.

        :return: ticket number of the request
        """
        with self._lock:
            if self._disposed:
                raise RuntimeError("Coordinator has been disposed")

            job = _Job(next(self._tickets), request)
            previous = self._active
            if previous is not None:
                previous.cancelled.set()
                self.log.info(f"Request #{previous.ticket} superseded by #{job.ticket}")

            self._active = job
            self.fsm.submit()
            self._worker.submit(self._work, job)

        self._notify()
        self.log.info(f"Request #{job.ticket} submitted ({len(request)} images, mode={request.mode.value})")
        return job.ticket

    def dispose(self, wait: bool = False):
        """
        Tear down: pending delivery is cancelled and in-flight results are dropped.

        :param wait: block until the worker has finished (and cleaned up) the
                     request it is running
        """
        with self._lock:
            first = not self._disposed
            self._disposed = True
            if self._active is not None:
                self._active.cancelled.set()
                self._active = None
            if first:
                self.fsm.dispose()

        self._notify()
        # Safe to repeat, so a later dispose(wait=True) can join the worker
        self._worker.shutdown(wait=wait, cancel_futures=True)
        if first:
            if self._owns_completion:
                self.completion.close(wait=False)
            self.log.info("Coordinator disposed")

    def current_state(self) -> str:
        return self.fsm.state

    @property
    def disposed(self) -> bool:
        return self._disposed

    # ----------------------------------------------------------------------
    # WORKER / DELIVERY
    # ----------------------------------------------------------------------

    def _is_current(self, job: _Job) -> bool:
        return not self._disposed and self._active is job and not job.cancelled.is_set()

    def _work(self, job: _Job):
        """Runs on the worker thread."""
        try:
            result = self.runner.run(job.request, job.cancelled)
        except StitchCancelled:
            self.log.info(f"Request #{job.ticket} stopped early, result discarded")
            return
        except Exception as e:
            self.log.error(f"Request #{job.ticket} crashed: {e}", exc_info=True)
            result = Failure(ErrorKind.UNEXPECTED, str(e) or type(e).__name__)

        with self._lock:
            if not self._is_current(job):
                self.log.info(f"Request #{job.ticket} finished after being superseded, result discarded")
                return
            self.fsm.complete()
        self._notify()

        try:
            self.completion.post(self._deliver, job, result)
        except RuntimeError as e:
            self.log.warning(f"Completion context unavailable, result of #{job.ticket} dropped: {e}")
            with self._lock:
                if self._active is job:
                    self._active = None
                    self.fsm.dispose()
            self._notify()

    def _deliver(self, job: _Job, result: StitchResult):
        """Runs on the completion context."""
        with self._lock:
            if not self._is_current(job):
                self.log.info(f"Delivery of #{job.ticket} cancelled")
                return

        try:
            self.on_result(result)
        finally:
            with self._lock:
                if self._active is job:
                    self._active = None
                    self.fsm.delivered()
            self._notify()

    def _notify(self):
        """Run queued state callbacks, in order, without holding the lock."""
        while self._pending:
            # Whoever holds the notify lock drains the queue, including nested
            # transitions triggered by the callbacks themselves.
            if not self._notify_lock.acquire(blocking=False):
                return
            try:
                while self._pending:
                    name = self._pending.popleft()
                    try:
                        self.callbacks[name]()
                    except Exception as e:
                        self.log.error(f"State callback '{name}' failed: {e}", exc_info=True)
            finally:
                self._notify_lock.release()

"""
Bounded worker pool running one fetch task per request.
"""

import traceback
from concurrent.futures import ThreadPoolExecutor, wait
from typing import Callable, List, Optional, Sequence

from labirint_parser.utils.logging import get_logger
from .models import FailureOutcome, FetchRequest, FetchState, Outcome
from .thread_safe import ConcurrencyPermit, ThreadSafeCounter


logger = get_logger(__name__)


class WorkerPool:
    """
    Runs fetch tasks with at most `concurrency` in flight.

    Submitting a task first acquires a permit, so the submitting thread
    blocks while the ceiling is reached. Each task hands exactly one
    outcome to the emit callback; an exception escaping the fetch
    function becomes a failure outcome for that request only.
    """

    def __init__(self, concurrency: int,
                 fetch: Callable[[FetchRequest], Outcome],
                 permit: Optional[ConcurrencyPermit] = None):
        """
        Initialize worker pool.

        Args:
            concurrency: Maximum number of tasks in flight (>= 1)
            fetch: Function producing one outcome for a request
            permit: Admission permit (created from concurrency when omitted)
        """
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        self.concurrency = concurrency
        self.fetch = fetch
        self.permit = permit or ConcurrencyPermit(concurrency)

        self.submitted = ThreadSafeCounter()
        self.completed = ThreadSafeCounter()

    def run(self, requests: Sequence[FetchRequest],
            emit: Callable[[Outcome], None]) -> int:
        """
        Execute all requests and wait for every task to finish.

        Args:
            requests: Requests in submission order
            emit: Receives each outcome from the worker thread that produced it

        Returns:
            Number of tasks executed
        """
        futures: List = []
        with ThreadPoolExecutor(max_workers=self.concurrency,
                                thread_name_prefix="BookFetcher") as executor:
            for request in requests:
                self.permit.acquire()
                try:
                    futures.append(executor.submit(self._run_task, request, emit))
                except Exception:
                    self.permit.release()
                    raise
                self.submitted.increment()

            wait(futures)

        for future in futures:
            # Re-raises errors from emit itself, which would break count conservation
            future.result()

        return len(futures)

    def _run_task(self, request: FetchRequest, emit: Callable[[Outcome], None]) -> None:
        try:
            logger.info("Starting to parse book",
                        id=request.identifier,
                        url=request.url,
                        progress=request.progress,
                        state=FetchState.FETCHING.value)
            try:
                outcome = self.fetch(request)
            except Exception as e:
                logger.debug("Fetch task raised", id=request.identifier,
                             traceback=traceback.format_exc())
                outcome = FailureOutcome(
                    request=request,
                    error=f"error parsing book {request.identifier}: {e}"
                )
            emit(outcome)
            self.completed.increment()
        finally:
            self.permit.release()

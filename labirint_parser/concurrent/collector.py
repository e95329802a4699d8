"""
Fan-in collector draining success and failure streams into a run result.
"""

import queue
import threading
from datetime import datetime
from typing import List, Optional

from labirint_parser.data.models import BookRecord
from labirint_parser.utils.logging import get_logger
from .models import FailureOutcome, RunResult, SuccessOutcome
from .thread_safe import STREAM_CLOSED, OutcomeStream, ThreadSafeCounter


logger = get_logger(__name__)


class OutcomeCollector:
    """
    Single aggregator for the outcomes of one run.

    The collector thread exclusively owns the record and failure lists.
    It stops only after both streams have been closed and drained.
    """

    def __init__(self, capacity: int, poll_interval: float = 0.5):
        """
        Initialize collector.

        Args:
            capacity: Capacity of each stream, at least the concurrency ceiling
            poll_interval: Upper bound of a single idle wait in seconds
        """
        self._ready = threading.Event()
        self.successes = OutcomeStream("successes", capacity, self._ready)
        self.failures = OutcomeStream("failures", capacity, self._ready)
        self.poll_interval = poll_interval

        self._records: List[BookRecord] = []
        self._errors: List[str] = []
        self.success_count = ThreadSafeCounter()
        self.failure_count = ThreadSafeCounter()
        # Outcomes whose bookkeeping or log event raised
        self.unhandled_count = ThreadSafeCounter()

        self._thread: Optional[threading.Thread] = None
        self._finished = threading.Event()

    def start(self) -> None:
        """Start the collector thread."""
        if self._thread is not None:
            raise RuntimeError("collector already started")
        self._thread = threading.Thread(target=self._run, name="OutcomeCollector", daemon=True)
        self._thread.start()

    def emit(self, outcome) -> None:
        """Route an outcome to its stream. Called by producer threads."""
        if isinstance(outcome, SuccessOutcome):
            self.successes.send(outcome)
        else:
            self.failures.send(outcome)

    def close(self) -> None:
        """Close both streams. Call only after every producer has finished."""
        self.successes.close()
        self.failures.close()

    def join(self, timeout: Optional[float] = None) -> bool:
        """
        Wait for the collector to drain both streams.

        Returns:
            True if the collector finished
        """
        if self._thread is None:
            raise RuntimeError("collector not started")
        self._thread.join(timeout)
        return self._finished.is_set()

    def build_result(self, total_submitted: int, started_at: datetime) -> RunResult:
        """
        Freeze the collected outcomes.

        Raises:
            RuntimeError: If the collector is still draining
        """
        if not self._finished.is_set():
            raise RuntimeError("collector has not finished draining")

        completed_at = datetime.now()
        return RunResult(
            records=tuple(self._records),
            failures=tuple(self._errors),
            total_submitted=total_submitted,
            duration_seconds=(completed_at - started_at).total_seconds(),
            started_at=started_at,
            completed_at=completed_at
        )

    @property
    def finished(self) -> bool:
        return self._finished.is_set()

    def _run(self) -> None:
        open_streams = [self.successes, self.failures]
        try:
            while open_streams:
                # Clear before draining so a send racing with the drain re-arms the event
                self._ready.clear()
                received = False
                for stream in list(open_streams):
                    while True:
                        try:
                            item = stream.receive_nowait()
                        except queue.Empty:
                            break
                        received = True
                        if item is STREAM_CLOSED:
                            open_streams.remove(stream)
                            logger.debug("Stream closed", stream=stream.name)
                            break
                        self._handle(item)

                if open_streams and not received:
                    self._ready.wait(self.poll_interval)
        finally:
            self._finished.set()

    def _handle(self, outcome) -> None:
        """Store one outcome, then report it. Never raises."""
        try:
            self._store(outcome)
        except Exception as e:
            self._errors.append(f"error collecting outcome: {e}")
            self.failure_count.increment()
            self.unhandled_count.increment()
            return

        try:
            self._report(outcome)
        except Exception:
            # The outcome is already stored; only its log event is lost
            self.unhandled_count.increment()

    def _store(self, outcome) -> None:
        if isinstance(outcome, SuccessOutcome):
            self._records.append(outcome.record)
            self.success_count.increment()
        elif isinstance(outcome, FailureOutcome):
            self._errors.append(outcome.error)
            self.failure_count.increment()
        else:
            # Unknown items are still counted as failures so totals stay conserved
            self._errors.append(f"unexpected outcome type: {type(outcome).__name__}")
            self.failure_count.increment()

    def _report(self, outcome) -> None:
        if isinstance(outcome, SuccessOutcome):
            logger.info("Book parsed successfully",
                        id=outcome.record.identifier,
                        total_parsed=self.success_count.get_value())
        elif isinstance(outcome, FailureOutcome):
            logger.error("Failed to parse book",
                         id=outcome.request.identifier,
                         error=outcome.error,
                         total_failed=self.failure_count.get_value())
        else:
            logger.error("Unexpected outcome received", outcome_type=type(outcome).__name__)

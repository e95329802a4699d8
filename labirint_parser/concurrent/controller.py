"""
Run coordinator sequencing pool, collector and result sinks.
"""

from datetime import datetime
from typing import Callable, Dict, List, Optional, Sequence

from labirint_parser.utils.errors import ExportError
from labirint_parser.utils.logging import get_logger
from .collector import OutcomeCollector
from .models import FetchRequest, Outcome, RunResult
from .thread_pool import WorkerPool


logger = get_logger(__name__)


class RunCoordinator:
    """
    Executes one harvesting run.

    Order of operations: start collector, run every request through the
    pool, close both streams once all tasks are done, wait for the
    collector, freeze the result and hand it to the sinks.
    """

    def __init__(self, fetch: Callable[[FetchRequest], Outcome],
                 concurrency: int,
                 sinks: Optional[Sequence] = None,
                 stream_capacity: Optional[int] = None):
        """
        Initialize coordinator.

        Args:
            fetch: Function producing one outcome per request
            concurrency: Concurrency ceiling
            sinks: Objects with write(RunResult) returning the written path
            stream_capacity: Capacity of each outcome stream (defaults to the ceiling)
        """
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        self.fetch = fetch
        self.concurrency = concurrency
        self.sinks = list(sinks or [])
        self.stream_capacity = max(stream_capacity or concurrency, concurrency)

        self.sink_results: Dict[str, str] = {}
        self.sink_errors: Dict[str, str] = {}

    def run(self, requests: Sequence[FetchRequest]) -> RunResult:
        """
        Fetch every request and return the frozen result.

        Args:
            requests: Requests in submission order

        Returns:
            Run result with one entry per submitted request
        """
        started_at = datetime.now()
        logger.info("Starting run", total_books=len(requests), parallel=self.concurrency)

        collector = OutcomeCollector(capacity=self.stream_capacity)
        pool = WorkerPool(self.concurrency, self.fetch)

        collector.start()
        try:
            pool.run(requests, collector.emit)
        finally:
            # Producers are done (or the pool itself failed); let the collector finish
            collector.close()
            collector.join()

        result = collector.build_result(total_submitted=len(requests), started_at=started_at)

        logger.info("Parsing completed",
                    total_books=result.total_submitted,
                    successful=result.succeeded,
                    failed=result.failed,
                    duration=f"{result.duration_seconds:.2f}s",
                    peak_parallel=pool.permit.peak)

        if collector.unhandled_count.get_value():
            logger.warning("Some outcomes could not be reported",
                           unhandled=collector.unhandled_count.get_value())

        if not result.is_complete:
            logger.error("Outcome count does not match submitted requests",
                         submitted=result.total_submitted,
                         received=result.succeeded + result.failed)

        if result.records:
            self.export(result)

        return result

    def export(self, result: RunResult) -> List[str]:
        """
        Hand the result to every sink.

        A failing sink is logged and skipped; the collected records stay valid.

        Returns:
            Paths written by the sinks that succeeded
        """
        written = []
        for sink in self.sinks:
            sink_name = type(sink).__name__
            try:
                path = sink.write(result)
            except (ExportError, OSError) as e:
                self.sink_errors[sink_name] = str(e)
                logger.error("Failed to save results", sink=sink_name, error=str(e))
                continue
            self.sink_results[sink_name] = str(path)
            written.append(str(path))
            logger.info("Results saved successfully", sink=sink_name, file=str(path))
        return written

"""
Concurrent fetch pipeline: bounded worker pool, fan-in collector and run coordinator.
"""

from .models import (
    FetchState,
    FetchRequest,
    SuccessOutcome,
    FailureOutcome,
    Outcome,
    RunResult,
    book_url,
    build_requests
)
from .thread_safe import ThreadSafeCounter, ConcurrencyPermit, OutcomeStream, STREAM_CLOSED
from .thread_pool import WorkerPool
from .collector import OutcomeCollector
from .controller import RunCoordinator

__all__ = [
    'FetchState',
    'FetchRequest',
    'SuccessOutcome',
    'FailureOutcome',
    'Outcome',
    'RunResult',
    'book_url',
    'build_requests',
    'ThreadSafeCounter',
    'ConcurrencyPermit',
    'OutcomeStream',
    'STREAM_CLOSED',
    'WorkerPool',
    'OutcomeCollector',
    'RunCoordinator'
]

"""
Data models for the concurrent fetch pipeline.
"""

from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Tuple, Union
from datetime import datetime
from enum import Enum

from labirint_parser.data.models import BookRecord
from labirint_parser.utils.errors import ValidationError


class FetchState(Enum):
    """Lifecycle of one fetch request. PARSED and FAILED are terminal."""
    PENDING = "pending"
    FETCHING = "fetching"
    PARSED = "parsed"
    FAILED = "failed"


@dataclass(frozen=True)
class FetchRequest:
    """One identifier scheduled for retrieval."""
    identifier: str
    url: str
    ordinal: int    # 1-based input position, used for progress only
    total: int

    @property
    def progress(self) -> str:
        return f"{self.ordinal}/{self.total}"


@dataclass(frozen=True)
class SuccessOutcome:
    """Fetch finished with an extracted record."""
    request: FetchRequest
    record: BookRecord
    state: FetchState = field(default=FetchState.PARSED, init=False)

    @property
    def success(self) -> bool:
        return True


@dataclass(frozen=True)
class FailureOutcome:
    """Fetch finished with an error description."""
    request: FetchRequest
    error: str
    state: FetchState = field(default=FetchState.FAILED, init=False)

    @property
    def success(self) -> bool:
        return False


Outcome = Union[SuccessOutcome, FailureOutcome]


def book_url(base_url: str, identifier: str) -> str:
    """Derive the page URL of a book."""
    return f"{base_url.rstrip('/')}/{identifier}"


def build_requests(identifiers: Iterable[str], base_url: str) -> List[FetchRequest]:
    """
    Create fetch requests in input order.

    Duplicated identifiers produce independent requests.

    Raises:
        ValidationError: If an identifier is not a non-empty string
    """
    identifiers = list(identifiers)
    total = len(identifiers)
    fetch_requests = []
    for index, identifier in enumerate(identifiers):
        if not isinstance(identifier, str) or not identifier.strip():
            raise ValidationError(
                "Book identifier must be a non-empty string",
                {"position": index + 1, "value": repr(identifier)}
            )
        fetch_requests.append(FetchRequest(
            identifier=identifier,
            url=book_url(base_url, identifier),
            ordinal=index + 1,
            total=total
        ))
    return fetch_requests


@dataclass(frozen=True)
class RunResult:
    """Final aggregation of one run."""
    records: Tuple[BookRecord, ...]
    failures: Tuple[str, ...]
    total_submitted: int
    duration_seconds: float
    started_at: datetime
    completed_at: Optional[datetime] = None

    @property
    def succeeded(self) -> int:
        return len(self.records)

    @property
    def failed(self) -> int:
        return len(self.failures)

    @property
    def is_complete(self) -> bool:
        """Every submitted request produced exactly one outcome."""
        return self.succeeded + self.failed == self.total_submitted

    def get_success_rate(self) -> float:
        """Get success rate as percentage."""
        if self.total_submitted == 0:
            return 0.0
        return (self.succeeded / self.total_submitted) * 100.0

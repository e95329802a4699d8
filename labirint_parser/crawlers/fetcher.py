"""
Book page fetcher producing one outcome per request.
"""

from typing import Optional

import requests

from labirint_parser.concurrent.models import FailureOutcome, FetchRequest, Outcome, SuccessOutcome
from labirint_parser.crawlers.extractor import ExtractionSettings, extract_book
from labirint_parser.crawlers.http_client import HTTPClient
from labirint_parser.utils.errors import CrawlerError
from labirint_parser.utils.logging import get_logger


class BookFetcher:
    """
    Retrieves a book page once and extracts its record.

    The client profile and extraction settings are read-only; every call
    opens its own session and parses its own document.
    """

    def __init__(self, client: Optional[HTTPClient] = None,
                 settings: Optional[ExtractionSettings] = None):
        """
        Initialize fetcher.

        Args:
            client: HTTP client holding the request profile and throttle
            settings: Extraction switches
        """
        self.client = client or HTTPClient()
        self.settings = settings or ExtractionSettings()
        self.logger = get_logger(__name__)

    def __call__(self, request: FetchRequest) -> Outcome:
        return self.fetch(request)

    def fetch(self, request: FetchRequest) -> Outcome:
        """
        Fetch and parse one book page.

        Transport errors, non-OK statuses and empty bodies become a
        failure outcome carrying the identifier; nothing is retried.
        """
        self.logger.debug("Started parsing book", url=request.url)

        try:
            html = self._retrieve(request)
        except CrawlerError as e:
            cause = e.details.get("cause", e.message)
            return FailureOutcome(
                request=request,
                error=f"error parsing book {request.identifier}: {cause}"
            )

        record = extract_book(html, request.identifier, request.url, self.settings)
        return SuccessOutcome(request=request, record=record)

    def _retrieve(self, request: FetchRequest) -> str:
        """
        Download the page markup.

        Raises:
            CrawlerError: On transport or protocol failure
        """
        try:
            response = self.client.get(request.url)
        except requests.exceptions.RequestException as e:
            raise CrawlerError(
                f"Request for book {request.identifier} failed",
                {"id": request.identifier, "url": request.url,
                 "cause": f"error scraping {request.url}: {e}"}
            )

        if not response.text or not response.text.strip():
            raise CrawlerError(
                f"Empty response for book {request.identifier}",
                {"id": request.identifier, "url": request.url,
                 "cause": f"empty response body from {request.url}"}
            )

        return response.text

"""
Tests for the book fetcher, the HTTP client and the politeness throttle.
"""

import random
import socket
from unittest.mock import Mock, patch
from hypothesis import given, strategies as st
from pathlib import Path
import sys

import pytest
import requests

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from conftest import render_book_page
from labirint_parser.concurrent.models import FetchState, build_requests
from labirint_parser.crawlers.extractor import ExtractionSettings
from labirint_parser.crawlers.fetcher import BookFetcher
from labirint_parser.crawlers.http_client import (
    DEFAULT_COOKIES,
    HTTPClient,
    PolitenessThrottle,
    RequestProfile
)
from labirint_parser.data.models import Availability


BASE_URL = "https://www.labirint.ru/books"


def make_response(text="", status_code=200, error=None):
    response = Mock()
    response.status_code = status_code
    response.text = text
    response.content = text.encode("utf-8")
    response.raise_for_status = Mock(side_effect=error) if error else Mock()
    return response


def single_request(identifier="123456"):
    return build_requests([identifier], BASE_URL)[0]


class TestHTTPClientSession:

    def test_session_carries_browser_headers(self):
        session = HTTPClient().create_session()
        try:
            assert "Chrome/124" in session.headers["User-Agent"]
            assert session.headers["Referer"] == "https://www.labirint.ru/"
            assert session.headers["Accept-Language"].startswith("ru-RU")
            assert session.headers["Sec-Fetch-Mode"] == "navigate"
        finally:
            session.close()

    def test_session_carries_fixed_cookies(self):
        session = HTTPClient().create_session()
        try:
            assert len(session.cookies) == len(DEFAULT_COOKIES) == 17
            for name, value in DEFAULT_COOKIES:
                assert session.cookies.get(name, domain=".labirint.ru") == value
        finally:
            session.close()

    def test_single_attempt_adapter(self):
        session = HTTPClient().create_session()
        try:
            retries = session.get_adapter("https://www.labirint.ru/books/1").max_retries
            assert retries.total == 0
            assert retries.read is False
        finally:
            session.close()

    def test_profile_overrides(self):
        profile = RequestProfile.from_settings(
            user_agent="TestAgent/1.0",
            referer="https://example.org/",
            cookies=[["session", "abc"]],
            cookie_domain=".example.org"
        )
        session = HTTPClient(profile).create_session()
        try:
            assert session.headers["User-Agent"] == "TestAgent/1.0"
            assert session.headers["Referer"] == "https://example.org/"
            assert session.cookies.get("session", domain=".example.org") == "abc"
            assert len(session.cookies) == 1
        finally:
            session.close()

    def test_get_uses_profile_timeout(self):
        client = HTTPClient(RequestProfile(timeout=12.5))
        with patch.object(requests.Session, "get", return_value=make_response("<html></html>")) as mock_get:
            client.get(f"{BASE_URL}/1")
        mock_get.assert_called_once_with(f"{BASE_URL}/1", timeout=12.5)


class TestBookFetcher:

    def test_successful_fetch(self):
        html = render_book_page(
            title="Нос",
            prices='<div class="_prices_a"><div class="rubl">301</div></div>',
            status='<div class="_block_b">Ограниченное количество</div>',
            slides=1
        )
        fetcher = BookFetcher(settings=ExtractionSettings(parse_images=True))
        with patch.object(requests.Session, "get", return_value=make_response(html)) as mock_get:
            outcome = fetcher(single_request("555"))

        mock_get.assert_called_once()
        assert mock_get.call_args[0][0] == f"{BASE_URL}/555"
        assert outcome.success
        assert outcome.state == FetchState.PARSED
        assert outcome.record.identifier == "555"
        assert outcome.record.url == f"{BASE_URL}/555"
        assert outcome.record.title == "Нос"
        assert outcome.record.price == "301"
        assert outcome.record.availability == Availability.LIMITED_STOCK
        assert len(outcome.record.image_links) == 2

    @pytest.mark.parametrize("error", [
        requests.exceptions.HTTPError("404 Client Error: Not Found"),
        requests.exceptions.HTTPError("503 Server Error: Service Unavailable"),
    ])
    def test_non_ok_status_is_failure(self, error):
        response = make_response("<html>gone</html>", status_code=404, error=error)
        with patch.object(requests.Session, "get", return_value=response):
            outcome = BookFetcher()(single_request("404404"))

        assert not outcome.success
        assert outcome.state == FetchState.FAILED
        assert outcome.error.startswith("error parsing book 404404:")
        assert str(error) in outcome.error

    @pytest.mark.parametrize("error", [
        requests.exceptions.ConnectionError("connection refused"),
        requests.exceptions.ReadTimeout("read timed out"),
    ])
    def test_transport_error_is_failure(self, error):
        with patch.object(requests.Session, "get", side_effect=error) as mock_get:
            outcome = BookFetcher()(single_request("77"))

        assert mock_get.call_count == 1
        assert not outcome.success
        assert "77" in outcome.error
        assert f"error scraping {BASE_URL}/77" in outcome.error

    @pytest.mark.parametrize("body", ["", "   \n"])
    def test_empty_body_is_failure(self, body):
        with patch.object(requests.Session, "get", return_value=make_response(body)):
            outcome = BookFetcher()(single_request("9"))

        assert not outcome.success
        assert "error parsing book 9" in outcome.error
        assert "empty response body" in outcome.error

    def test_unmatched_page_is_success_with_defaults(self):
        with patch.object(requests.Session, "get", return_value=make_response("<html><body></body></html>")):
            outcome = BookFetcher()(single_request("1"))

        assert outcome.success
        assert outcome.record.title == ""
        assert outcome.record.price == ""
        assert outcome.record.availability == Availability.OUT_OF_STOCK

    def test_each_fetch_uses_its_own_session(self):
        client = HTTPClient()
        sessions = []
        original = client.create_session

        def tracking_session():
            session = original()
            sessions.append(session)
            return session

        fetcher = BookFetcher(client=client)
        with patch.object(client, "create_session", side_effect=tracking_session), \
             patch.object(requests.Session, "get", return_value=make_response(render_book_page())):
            for request in build_requests(["1", "2", "3"], BASE_URL):
                fetcher(request)

        assert len(sessions) == 3
        assert len({id(session) for session in sessions}) == 3


    def test_refused_connection_is_failure(self):
        """A real connection error from the transport becomes a failure outcome."""
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
            sock.bind(("127.0.0.1", 0))
            port = sock.getsockname()[1]
        # Nothing listens on the port once the socket is closed
        request = build_requests(["42"], f"http://127.0.0.1:{port}/books")[0]

        outcome = BookFetcher(client=HTTPClient(RequestProfile(timeout=2)))(request)

        assert not outcome.success
        assert outcome.state == FetchState.FAILED
        assert outcome.error.startswith("error parsing book 42:")
        assert f"error scraping http://127.0.0.1:{port}/books/42" in outcome.error

    def test_refused_connection_raises_requests_error(self):
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
            sock.bind(("127.0.0.1", 0))
            port = sock.getsockname()[1]

        with pytest.raises(requests.exceptions.ConnectionError):
            HTTPClient(RequestProfile(timeout=2)).get(f"http://127.0.0.1:{port}/books/1")

class TestPolitenessThrottle:

    @given(
        delay=st.floats(min_value=0.01, max_value=30.0, allow_nan=False),
        seed=st.integers(min_value=0, max_value=10_000),
        calls=st.integers(min_value=1, max_value=20)
    )
    def test_pause_is_within_bound(self, delay, seed, calls):
        sleeps = []
        throttle = PolitenessThrottle(delay, sleep=sleeps.append, rng=random.Random(seed))

        pauses = [throttle.wait(f"{BASE_URL}/{i}") for i in range(calls)]

        assert sleeps == pauses
        assert all(0.0 <= pause <= delay for pause in pauses)

    @pytest.mark.parametrize("delay", [0, 0.0, -1.0])
    def test_non_positive_delay_never_sleeps(self, delay):
        sleeps = []
        throttle = PolitenessThrottle(delay, sleep=sleeps.append)
        assert throttle.wait(f"{BASE_URL}/1") == 0.0
        assert sleeps == []

    def test_client_waits_before_request(self):
        order = []
        throttle = PolitenessThrottle(1.0, sleep=lambda pause: order.append("sleep"),
                                      rng=random.Random(1))
        client = HTTPClient(throttle=throttle)

        def fake_get(url, timeout=None):
            order.append("get")
            return make_response("<html></html>")

        with patch.object(requests.Session, "get", side_effect=fake_get):
            client.get(f"{BASE_URL}/1")

        assert order == ["sleep", "get"]

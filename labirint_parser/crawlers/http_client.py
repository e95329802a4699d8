"""
HTTP client with a fixed browser request profile and a politeness throttle.
"""

import time
import random
import threading
from typing import Callable, Dict, Optional, Tuple
from dataclasses import dataclass, field
from urllib.parse import urlparse
import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from labirint_parser.utils.logging import get_logger


DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
)

DEFAULT_REFERER = "https://www.labirint.ru/"

DEFAULT_COOKIE_DOMAIN = ".labirint.ru"

# Captured browser session, sent unchanged with every request
DEFAULT_COOKIES: Tuple[Tuple[str, str], ...] = (
    ("PHPSESSID", "0d9kvv5f7jrocq8vt3f50o1dac"),
    ("id_post", "2451"),
    ("UserSes", "lab0d9kvv5f7jrocq8"),
    ("br_webp", "8"),
    ("tmr_lvid", "e9a77b749b213444810e4770875ef198"),
    ("tmr_lvidTS", "1702769808113"),
    ("_ym_uid", "1702769808552808847"),
    ("_ym_d", "1714482904"),
    ("cookie_policy", "1"),
    ("begintimed", "MTcxNDg1NzA3Nw%3D%3D"),
    ("_ym_isad", "1"),
    ("_gid", "GA1.2.358946072.1714857078"),
    ("domain_sid", "Kw3lXRqb9Krjhsy8HLx7X%3A1714857078139"),
    ("_ym_visorc", "b"),
    ("_ga", "GA1.2.1239653893.1714482903"),
    ("tmr_detect", "1%7C1714857297906"),
    ("_ga_21PJ900698", "GS1.1.1714857077.2.1.1714857301.0.0.0"),
)


def default_headers(referer: str = DEFAULT_REFERER) -> Dict[str, str]:
    """Header set of a desktop Chrome navigation request."""
    return {
        'Accept': 'text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,'
                  'image/apng,*/*;q=0.8,application/signed-exchange;v=b3;q=0.7',
        'Accept-Language': 'ru-RU,ru;q=0.9,en-US;q=0.8,en;q=0.7',
        'Cache-Control': 'max-age=0',
        'Priority': 'u=0, i',
        'Referer': referer,
        'Sec-Ch-Ua': '"Chromium";v="124", "Google Chrome";v="124", "Not-A.Brand";v="99"',
        'Sec-Ch-Ua-Mobile': '?0',
        'Sec-Ch-Ua-Platform': '"Windows"',
        'Sec-Fetch-Dest': 'document',
        'Sec-Fetch-Mode': 'navigate',
        'Sec-Fetch-Site': 'same-origin',
        'Sec-Fetch-User': '?1',
        'Upgrade-Insecure-Requests': '1'
    }


@dataclass(frozen=True)
class RequestProfile:
    """Read-only request settings shared by every fetch of a run."""
    user_agent: str = DEFAULT_USER_AGENT
    headers: Tuple[Tuple[str, str], ...] = field(
        default_factory=lambda: tuple(default_headers().items())
    )
    cookies: Tuple[Tuple[str, str], ...] = DEFAULT_COOKIES
    cookie_domain: str = DEFAULT_COOKIE_DOMAIN
    timeout: Optional[float] = 30.0
    pool_size: int = 10

    @classmethod
    def from_settings(cls,
                      user_agent: Optional[str] = None,
                      referer: Optional[str] = None,
                      cookies: Optional[Tuple[Tuple[str, str], ...]] = None,
                      cookie_domain: Optional[str] = None,
                      timeout: Optional[float] = 30.0,
                      pool_size: int = 10) -> "RequestProfile":
        """Build a profile, keeping defaults for every unset value."""
        return cls(
            user_agent=user_agent or DEFAULT_USER_AGENT,
            headers=tuple(default_headers(referer or DEFAULT_REFERER).items()),
            cookies=tuple(tuple(pair) for pair in cookies) if cookies is not None else DEFAULT_COOKIES,
            cookie_domain=cookie_domain or DEFAULT_COOKIE_DOMAIN,
            timeout=timeout,
            pool_size=pool_size
        )

    def build_headers(self) -> Dict[str, str]:
        headers = {'User-Agent': self.user_agent}
        headers.update(self.headers)
        return headers


class PolitenessThrottle:
    """Sleeps a random duration in [0, delay] before each request to a domain."""

    def __init__(self, delay: float = 0.0,
                 sleep: Callable[[float], None] = time.sleep,
                 rng: Optional[random.Random] = None):
        """
        Initialize throttle.

        Args:
            delay: Upper bound of the random pause in seconds
            sleep: Sleep function (replaceable in tests)
            rng: Random source
        """
        self.delay = max(0.0, delay)
        self._sleep = sleep
        self._rng = rng or random.Random()
        self._rng_lock = threading.Lock()
        self.logger = get_logger(__name__)

    def wait(self, url: str) -> float:
        """
        Pause before a request to the domain of url.

        Returns:
            Seconds slept
        """
        if self.delay <= 0:
            return 0.0

        with self._rng_lock:
            pause = self._rng.uniform(0.0, self.delay)

        self.logger.debug("Politeness delay", domain=self._get_domain(url),
                          delay_seconds=round(pause, 3))
        self._sleep(pause)
        return pause

    def _get_domain(self, url: str) -> str:
        """Extract domain from URL."""
        return urlparse(url).netloc or "unknown"


class HTTPClient:
    """Builds independent sessions from a shared request profile."""

    def __init__(self, profile: Optional[RequestProfile] = None,
                 throttle: Optional[PolitenessThrottle] = None):
        """
        Initialize HTTP client.

        Args:
            profile: Request profile (defaults to the built-in browser profile)
            throttle: Politeness throttle (defaults to no delay)
        """
        self.profile = profile or RequestProfile()
        self.throttle = throttle or PolitenessThrottle()
        self.logger = get_logger(__name__)

    def create_session(self) -> requests.Session:
        """Create a session carrying the profile headers and cookies."""
        session = requests.Session()

        # Single attempt per request; requests follows redirects itself.
        # total=0 makes urllib3 wrap connection errors so requests raises ConnectionError
        retry_strategy = Retry(total=0, read=False)
        adapter = HTTPAdapter(max_retries=retry_strategy,
                              pool_connections=1,
                              pool_maxsize=self.profile.pool_size)
        session.mount("http://", adapter)
        session.mount("https://", adapter)

        session.headers.update(self.profile.build_headers())
        for name, value in self.profile.cookies:
            session.cookies.set(name, value, domain=self.profile.cookie_domain, path="/")

        return session

    def get(self, url: str, session: Optional[requests.Session] = None) -> requests.Response:
        """
        Perform one throttled GET request.

        Args:
            url: URL to request
            session: Session to use; a fresh one is created and closed otherwise

        Returns:
            Response with a successful status

        Raises:
            requests.RequestException: On transport failure or non-OK status
        """
        self.throttle.wait(url)

        owns_session = session is None
        session = session or self.create_session()
        try:
            self.logger.debug("Making HTTP request", url=url)
            response = session.get(url, timeout=self.profile.timeout)
            response.raise_for_status()
            self.logger.debug("HTTP request successful", url=url,
                              status=response.status_code, size=len(response.content))
            return response
        finally:
            if owns_session:
                session.close()

"""
Book page retrieval and field extraction.
"""

from .http_client import HTTPClient, RequestProfile, PolitenessThrottle, DEFAULT_COOKIES
from .extractor import (
    ExtractionSettings,
    AVAILABILITY_RULES,
    classify_availability,
    build_image_links,
    extract_book
)
from .fetcher import BookFetcher

__all__ = [
    'HTTPClient',
    'RequestProfile',
    'PolitenessThrottle',
    'DEFAULT_COOKIES',
    'ExtractionSettings',
    'AVAILABILITY_RULES',
    'classify_availability',
    'build_image_links',
    'extract_book',
    'BookFetcher'
]

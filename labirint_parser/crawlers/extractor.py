"""
Field extraction rules for Labirint book pages.

Every rule is applied independently. A selector that matches nothing
leaves the corresponding field at its default value and never raises.
"""

from dataclasses import dataclass
from typing import List, Optional, Tuple

from bs4 import BeautifulSoup, Tag

from labirint_parser.data.models import Availability, BookRecord


DEFAULT_IMAGE_BASE_URL = "https://static10.labirint.ru/books"

TITLE_SELECTOR = "h1[itemprop=name]"
PRICES_BLOCK_SELECTOR = "div[class^='_prices_']"
PRICE_IN_CURRENCY_SELECTOR = "div.rubl"
BASE_PRICE_SELECTOR = "div[class^='_priceBase_']"
STATUS_BLOCK_SELECTOR = "div[class^='_block_']"
GALLERY_SELECTOR = "div[class^='_gallery_']"
SLIDE_SELECTOR = "div[class^='_slide_']"

# Checked top to bottom, case-sensitive, first match wins
AVAILABILITY_RULES: Tuple[Tuple[str, Availability], ...] = (
    ("Ограниченное количество", Availability.LIMITED_STOCK),
    ("Нет в продаже", Availability.OUT_OF_STOCK),
    ("Ожидается", Availability.EXPECTED),
)


@dataclass(frozen=True)
class ExtractionSettings:
    """Read-only switches for the extractor."""
    parse_images: bool = False
    image_base_url: str = DEFAULT_IMAGE_BASE_URL


def classify_availability(status_text: Optional[str],
                          rules: Tuple[Tuple[str, Availability], ...] = AVAILABILITY_RULES) -> Availability:
    """
    Classify the text of the status block.

    Args:
        status_text: Text of the status block, or None when the block is absent
        rules: Ordered (phrase, availability) pairs

    Returns:
        Availability of the first matching rule, IN_STOCK when the block
        is present but nothing matches, OUT_OF_STOCK when it is absent
    """
    if status_text is None:
        return Availability.OUT_OF_STOCK

    text = status_text.strip()
    for phrase, availability in rules:
        if phrase in text:
            return availability
    return Availability.IN_STOCK


def build_image_links(identifier: str, slide_count: int,
                      image_base_url: str = DEFAULT_IMAGE_BASE_URL) -> List[str]:
    """
    Synthesise image URLs for a gallery with the given number of slides.

    Returns a cover link followed by one link per slide, or an empty
    list when there are no slides.
    """
    if slide_count <= 0:
        return []

    base = image_base_url.rstrip("/")
    links = [f"{base}/{identifier}/cover.jpg"]
    for index in range(1, slide_count + 1):
        links.append(f"{base}/{identifier}/ph_{index:02d}.jpg")
    return links


def extract_title(soup: BeautifulSoup) -> str:
    heading = soup.select_one(TITLE_SELECTOR)
    if heading is None:
        return ""
    return heading.get_text().strip()


def extract_price(soup: BeautifulSoup) -> str:
    """Primary price in currency, falling back to the base price, both inside the prices block."""
    scope = soup.select_one(PRICES_BLOCK_SELECTOR)
    if scope is None:
        return ""

    price_node = scope.select_one(PRICE_IN_CURRENCY_SELECTOR)
    if price_node is not None:
        return price_node.decode_contents().strip()

    base_price_node = scope.select_one(BASE_PRICE_SELECTOR)
    if base_price_node is not None:
        return base_price_node.get_text().strip()

    return ""


def extract_availability(soup: BeautifulSoup) -> Availability:
    status_block = soup.select_one(STATUS_BLOCK_SELECTOR)
    if status_block is None:
        return classify_availability(None)
    return classify_availability(status_block.get_text())


def count_slides(soup: BeautifulSoup) -> int:
    """Number of slides in the first gallery block, 0 without a gallery."""
    gallery: Optional[Tag] = soup.select_one(GALLERY_SELECTOR)
    if gallery is None:
        return 0
    return len(gallery.select(SLIDE_SELECTOR))


def extract_book(html: str, identifier: str, url: str,
                 settings: Optional[ExtractionSettings] = None) -> BookRecord:
    """
    Extract a book record from a fetched page.

    Args:
        html: Page markup
        identifier: Book id the page was fetched for
        url: Page URL
        settings: Extraction switches (defaults to no image collection)

    Returns:
        Immutable book record
    """
    settings = settings or ExtractionSettings()
    soup = BeautifulSoup(html, "html.parser")

    image_links: List[str] = []
    if settings.parse_images:
        image_links = build_image_links(identifier, count_slides(soup), settings.image_base_url)

    return BookRecord(
        identifier=identifier,
        url=url,
        title=extract_title(soup),
        price=extract_price(soup),
        availability=extract_availability(soup),
        image_links=tuple(image_links)
    )

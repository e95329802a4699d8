"""
Book record data model.
"""

from dataclasses import dataclass, field
from typing import Dict, Any, Tuple
from enum import Enum


class Availability(Enum):
    """Stock status as shown on the book page."""
    IN_STOCK = "В наличии"
    LIMITED_STOCK = "Ограниченное количество"
    OUT_OF_STOCK = "Нет в продаже"
    EXPECTED = "Ожидается"


@dataclass(frozen=True)
class BookRecord:
    """Fields extracted from one book page."""
    identifier: str                  # Book id as given in the input list
    url: str                         # Page the record was extracted from
    title: str = ""                  # Empty when the heading is missing
    price: str = ""                  # Empty when no price node is present
    availability: Availability = Availability.IN_STOCK
    image_links: Tuple[str, ...] = field(default_factory=tuple)

    def to_dict(self) -> Dict[str, Any]:
        """Convert record to a JSON serialisable dictionary."""
        return {
            "id": self.identifier,
            "url": self.url,
            "title": self.title,
            "price": self.price,
            "availability": self.availability.value,
            "image_links": list(self.image_links)
        }

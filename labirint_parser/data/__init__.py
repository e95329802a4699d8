"""
Book records. Result sinks are in labirint_parser.data.exporters.
"""

from .models import Availability, BookRecord

__all__ = [
    'Availability',
    'BookRecord'
]

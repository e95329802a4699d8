"""
Labirint book parser: concurrent fetch, extraction and export of book records.
"""

__version__ = "1.0.0"

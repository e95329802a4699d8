"""
Pytest configuration and fixtures for labirint parser tests.
"""

import pytest
from hypothesis import settings, Verbosity
import json
import os

# Configure Hypothesis for faster test runs
settings.register_profile("fast", max_examples=10, deadline=None, verbosity=Verbosity.quiet)
settings.register_profile("thorough", max_examples=100, deadline=None, verbosity=Verbosity.normal)

settings.load_profile(os.environ.get("HYPOTHESIS_PROFILE", "fast"))


BOOK_PAGE_TEMPLATE = """
<html>
<head><title>{title} | Лабиринт</title></head>
<body>
  <h1 itemprop="name"> {title} </h1>
  {prices}
  {status}
  {gallery}
</body>
</html>
"""


def render_book_page(title="Мастер и Маргарита", prices="", status="", slides=None):
    """Build a book page fixture in the markup the extractor expects."""
    gallery = ""
    if slides is not None:
        gallery = '<div class="_gallery_1x2">' + '<div class="_slide_ab">img</div>' * slides + '</div>'
    return BOOK_PAGE_TEMPLATE.format(title=title, prices=prices, status=status, gallery=gallery)


@pytest.fixture
def book_page():
    """Factory for book page markup."""
    return render_book_page


@pytest.fixture
def config_file(tmp_path):
    """Write a configuration file and a book id list, return the config path."""
    ids_path = tmp_path / "books_ids.json"
    ids_path.write_text(json.dumps(["100", "200", "300"]), encoding="utf-8")

    def _write(overrides=None):
        data = {
            "parser": {
                "books_ids_file": str(ids_path),
                "parallel": 3,
                "delay": 0,
                "output_file": str(tmp_path / "out" / "books.json")
            },
            "logger": {"level": "WARNING", "format": "console"}
        }
        for section, values in (overrides or {}).items():
            data.setdefault(section, {}).update(values)
        path = tmp_path / "config.json"
        path.write_text(json.dumps(data, ensure_ascii=False), encoding="utf-8")
        return path

    return _write


def pytest_configure(config):
    """Configure pytest with custom settings."""
    # Environment overrides must not reach the config tests
    for name in ("LABIRINT_PARALLEL", "LABIRINT_DELAY", "LABIRINT_IDS_FILE", "LABIRINT_LOG_LEVEL"):
        os.environ.pop(name, None)

    import logging
    logging.getLogger("labirint_parser").setLevel(logging.WARNING)
    logging.getLogger("hypothesis").setLevel(logging.WARNING)


def pytest_collection_modifyitems(config, items):
    """Modify test collection to add markers."""
    for item in items:
        # Mark property-based tests
        if any(marker.name == "hypothesis" for marker in item.iter_markers()) or "propert" in item.fspath.basename:
            item.add_marker(pytest.mark.property)

        if "integration" in item.name.lower() or "integration" in item.fspath.basename:
            item.add_marker(pytest.mark.integration)
        else:
            item.add_marker(pytest.mark.unit)


@pytest.fixture(autouse=True)
def _clear_labirint_env():
    """Keep environment overrides from leaking between tests."""
    names = ("LABIRINT_PARALLEL", "LABIRINT_DELAY", "LABIRINT_IDS_FILE", "LABIRINT_LOG_LEVEL")
    for name in names:
        os.environ.pop(name, None)
    yield
    for name in names:
        os.environ.pop(name, None)

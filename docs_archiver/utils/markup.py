"""
HTML parsing shared by the extractor, the rewriter and the exporter.
"""

from bs4 import BeautifulSoup


def parse_soup(html: str) -> BeautifulSoup:
    """Parse markup with lxml, falling back to the stdlib parser."""
    try:
        return BeautifulSoup(html, 'lxml')
    except Exception:
        return BeautifulSoup(html, 'html.parser')

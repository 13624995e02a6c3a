"""
Asset extractor for parsing HTML and extracting asset URLs.

Uses BeautifulSoup for HTML parsing to find all linked resources.
"""

import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional
from urllib.parse import urljoin, urlparse

from bs4 import BeautifulSoup

from .models import ResourceCategory
from ..utils.log import get_logger
from ..utils.markup import parse_soup
from ..utils.paths import normalize_url


STYLESHEET_EXTS = ('.css',)
SCRIPT_EXTS = ('.js', '.mjs')
IMAGE_EXTS = ('.png', '.jpg', '.jpeg', '.gif', '.svg', '.webp', '.ico', '.bmp', '.avif')
FONT_EXTS = ('.woff', '.woff2', '.ttf', '.otf', '.eot')

# Playwright request.resource_type -> category
NETWORK_RESOURCE_TYPES = {
    'stylesheet': ResourceCategory.STYLESHEET,
    'script': ResourceCategory.SCRIPT,
    'image': ResourceCategory.IMAGE,
    'font': ResourceCategory.FONT,
    'media': ResourceCategory.OTHER,
    'manifest': ResourceCategory.OTHER,
}

# <link rel="preload" as="..."> -> category
PRELOAD_TYPES = {
    'style': ResourceCategory.STYLESHEET,
    'script': ResourceCategory.SCRIPT,
    'image': ResourceCategory.IMAGE,
    'font': ResourceCategory.FONT,
}


def guess_category(url: str) -> ResourceCategory:
    """
    Determine the resource category based on the URL's file extension.

    Args:
        url: Resource URL

    Returns:
        Best-guess ResourceCategory
    """
    path = urlparse(url).path.lower()

    if path.endswith(STYLESHEET_EXTS):
        return ResourceCategory.STYLESHEET
    if path.endswith(SCRIPT_EXTS):
        return ResourceCategory.SCRIPT
    if path.endswith(IMAGE_EXTS):
        return ResourceCategory.IMAGE
    if path.endswith(FONT_EXTS):
        return ResourceCategory.FONT
    return ResourceCategory.OTHER


@dataclass
class ExtractedAssets:
    """Container for extracted assets and links."""

    # Page links in document order
    links: List[str] = field(default_factory=list)

    # Resource URL -> category
    resources: Dict[str, ResourceCategory] = field(default_factory=dict)

    title: str = ""

    def add_link(self, url: str) -> None:
        if url not in self.links:
            self.links.append(url)

    def add_resource(self, url: str, category: ResourceCategory) -> None:
        # Keep the most specific category seen for a URL
        if self.resources.get(url, ResourceCategory.OTHER) is ResourceCategory.OTHER:
            self.resources[url] = category


class AssetExtractor:
    """
    Extracts assets and links from HTML content.

    Finds all linked resources including images, stylesheets, scripts,
    fonts, and other files.
    """

    # CSS url() pattern
    CSS_URL_PATTERN = re.compile(r'url\s*\(\s*["\']?([^"\')\s]+)["\']?\s*\)', re.IGNORECASE)

    # CSS @import pattern (string form; url() form is covered above)
    CSS_IMPORT_PATTERN = re.compile(r'@import\s+["\']([^"\']+)["\']', re.IGNORECASE)

    # Absolute asset URLs inside inline scripts (serialized page data)
    SCRIPT_ASSET_PATTERN = re.compile(
        r'https?://[^\s"\'`\\<>()]+?\.(?:css|js|mjs|png|jpe?g|gif|svg|webp|ico|avif|woff2?|ttf|otf)'
        r'(?=[?"\'`\\\s])',
        re.IGNORECASE
    )

    def __init__(self):
        self.logger = get_logger("extractor")

    def extract(self, html: str, page_url: str) -> ExtractedAssets:
        """
        Extract all assets and links from HTML content.

        Args:
            html: HTML content to parse
            page_url: URL of the page (for resolving relative URLs)

        Returns:
            ExtractedAssets object containing all found resources
        """
        assets = ExtractedAssets()
        soup = parse_soup(html)

        # Relative URLs resolve against <base href> when present
        base_tag = soup.find('base', href=True)
        if base_tag and base_tag['href'].strip():
            page_url = urljoin(page_url, base_tag['href'].strip())

        if soup.title and soup.title.string:
            assets.title = soup.title.string.strip()

        self._extract_links(soup, page_url, assets)
        self._extract_link_tags(soup, page_url, assets)
        self._extract_scripts(soup, page_url, assets)
        self._extract_images(soup, page_url, assets)
        self._extract_media(soup, page_url, assets)
        self._extract_css_urls(soup, page_url, assets)
        self._extract_inline_script_urls(soup, assets)

        self.logger.debug(
            f"Extracted from {page_url}: "
            f"{len(assets.links)} links, "
            f"{len(assets.resources)} assets"
        )

        return assets

    def _add(self, assets: ExtractedAssets, url: str, page_url: str, category: ResourceCategory) -> None:
        full_url = normalize_url(url, page_url, keep_trailing_slash=True)
        if full_url:
            assets.add_resource(full_url, category)

    def _extract_links(self, soup: BeautifulSoup, page_url: str, assets: ExtractedAssets) -> None:
        """Extract anchor links from the page."""
        for anchor in soup.find_all(['a', 'area'], href=True):
            full_url = normalize_url(anchor.get('href', ''), page_url)
            if full_url:
                assets.add_link(full_url)

    def _extract_link_tags(self, soup: BeautifulSoup, page_url: str, assets: ExtractedAssets) -> None:
        """Extract stylesheets, icons, preloads and other <link> targets."""
        for link in soup.find_all('link', href=True):
            href = link.get('href', '').strip()
            if not href:
                continue

            rel_value = link.get('rel', [])
            # BeautifulSoup returns rel as a list of individual values
            if isinstance(rel_value, list):
                rel_values = [v.lower() for v in rel_value]
            else:
                rel_values = rel_value.lower().split()

            if 'stylesheet' in rel_values:
                category = ResourceCategory.STYLESHEET
            elif 'modulepreload' in rel_values:
                category = ResourceCategory.SCRIPT
            elif 'preload' in rel_values or 'prefetch' in rel_values:
                category = PRELOAD_TYPES.get(link.get('as', '').lower(), guess_category(href))
            elif any('icon' in v for v in rel_values):
                category = ResourceCategory.IMAGE
            elif 'manifest' in rel_values:
                category = ResourceCategory.OTHER
            else:
                # canonical, alternate, dns-prefetch... are not files to mirror
                continue

            self._add(assets, href, page_url, category)

    def _extract_scripts(self, soup: BeautifulSoup, page_url: str, assets: ExtractedAssets) -> None:
        """Extract script sources."""
        for script in soup.find_all('script', src=True):
            self._add(assets, script.get('src', ''), page_url, ResourceCategory.SCRIPT)

    def _extract_images(self, soup: BeautifulSoup, page_url: str, assets: ExtractedAssets) -> None:
        """Extract image sources including srcset."""
        for img in soup.find_all('img'):
            for attr in ('src', 'data-src'):
                src = img.get(attr, '').strip()
                if src:
                    self._add(assets, src, page_url, ResourceCategory.IMAGE)

            for attr in ('srcset', 'data-srcset'):
                for url in self._parse_srcset(img.get(attr, '')):
                    self._add(assets, url, page_url, ResourceCategory.IMAGE)

        # <source srcset> in <picture>
        for source in soup.find_all('source', srcset=True):
            for url in self._parse_srcset(source.get('srcset', '')):
                self._add(assets, url, page_url, ResourceCategory.IMAGE)

        # SVG sprites and embedded images
        for elem in soup.find_all(['use', 'image']):
            href = elem.get('href') or elem.get('xlink:href')
            if href and not href.startswith('#'):
                self._add(assets, href, page_url, ResourceCategory.IMAGE)

    def _extract_media(self, soup: BeautifulSoup, page_url: str, assets: ExtractedAssets) -> None:
        """Extract video, audio and embedded object sources."""
        for elem in soup.find_all(['video', 'audio', 'source', 'track'], src=True):
            self._add(assets, elem.get('src', ''), page_url, guess_category(elem.get('src', '')))

        for video in soup.find_all('video', poster=True):
            self._add(assets, video.get('poster', ''), page_url, ResourceCategory.IMAGE)

        for obj in soup.find_all('object', data=True):
            self._add(assets, obj.get('data', ''), page_url, guess_category(obj.get('data', '')))

    def _extract_css_urls(self, soup: BeautifulSoup, page_url: str, assets: ExtractedAssets) -> None:
        """Extract URLs from <style> tags and inline style attributes."""
        for style in soup.find_all('style'):
            if style.string:
                for url, category in self.extract_css_assets(style.string, page_url).items():
                    assets.add_resource(url, category)

        for elem in soup.find_all(style=True):
            for url in self._extract_urls_from_css(elem.get('style', '')):
                full_url = normalize_url(url, page_url, keep_trailing_slash=True)
                if full_url:
                    category = guess_category(full_url)
                    if category is ResourceCategory.OTHER:
                        # Background images without an obvious extension
                        category = ResourceCategory.IMAGE
                    assets.add_resource(full_url, category)

    def _extract_inline_script_urls(self, soup: BeautifulSoup, assets: ExtractedAssets) -> None:
        """Extract absolute asset URLs from serialized data in inline scripts."""
        for script in soup.find_all('script', src=False):
            text = script.string
            if not text:
                continue
            for full_url, category in self.extract_script_assets(text).items():
                assets.add_resource(full_url, category)

    def extract_script_assets(self, script: str) -> Dict[str, ResourceCategory]:
        """
        Extract absolute asset URLs from script content.

        Args:
            script: Inline script text or a downloaded script file

        Returns:
            Dictionary of normalized URL -> category
        """
        found: Dict[str, ResourceCategory] = {}
        for match in self.SCRIPT_ASSET_PATTERN.finditer(script or ''):
            full_url = normalize_url(match.group(0), keep_trailing_slash=True)
            if full_url:
                found.setdefault(full_url, guess_category(full_url))
        return found

    def _parse_srcset(self, srcset: str) -> List[str]:
        """
        Parse srcset attribute and extract URLs.

        Args:
            srcset: srcset attribute value

        Returns:
            List of URLs from srcset
        """
        urls = []
        for part in (srcset or '').split(','):
            pieces = part.split()
            if pieces and not pieces[0].startswith('data:'):
                urls.append(pieces[0])
        return urls

    def _extract_urls_from_css(self, css: str) -> List[str]:
        """
        Extract URLs from CSS content (url() references).

        Args:
            css: CSS content string

        Returns:
            List of URLs found in CSS
        """
        urls = []
        for match in self.CSS_URL_PATTERN.finditer(css):
            url = match.group(1).strip()
            if url and not url.startswith(('data:', '#')):
                urls.append(url)
        return urls

    def extract_css_assets(self, css_content: str, css_url: str) -> Dict[str, ResourceCategory]:
        """
        Extract asset URLs from CSS file content.

        Args:
            css_content: CSS file content
            css_url: URL of the CSS file (for resolving relative URLs)

        Returns:
            Mapping of asset URL -> category found in the CSS
        """
        found: Dict[str, ResourceCategory] = {}

        for match in self.CSS_IMPORT_PATTERN.finditer(css_content):
            full_url = normalize_url(match.group(1), css_url, keep_trailing_slash=True)
            if full_url:
                found[full_url] = ResourceCategory.STYLESHEET

        # Look for url() references; @import url(...) ones are stylesheets
        for match in self.CSS_URL_PATTERN.finditer(css_content):
            url = match.group(1).strip()
            if not url or url.startswith(('data:', '#')):
                continue
            full_url = normalize_url(url, css_url, keep_trailing_slash=True)
            if not full_url or full_url in found:
                continue
            preceding = css_content[max(0, match.start() - 12):match.start()]
            if '@import' in preceding.lower():
                found[full_url] = ResourceCategory.STYLESHEET
            else:
                category = guess_category(full_url)
                found[full_url] = category if category is not ResourceCategory.OTHER else ResourceCategory.IMAGE

        return found

    def navigation_path(self, url: str) -> Optional[str]:
        """Path component used for a page's navigation entry."""
        try:
            return urlparse(url).path or '/'
        except ValueError:
            return None

"""
Structured data extraction from archived pages.

Pulls the Next.js ``__NEXT_DATA__`` payload out of a page and turns the
MDX ``compiledSource`` it carries into an ordered list of content
elements. Pages without the payload degrade to title, headings and text.
"""

import json
import os
import re
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from ..utils.constants import JSON_DATA_DIR, SUMMARY_FILE
from ..utils.errors import WriteError
from ..utils.log import get_logger
from ..utils.markup import parse_soup
from ..utils.paths import write_file


# Patterns over the compiled MDX module; each yields one element type
ELEMENT_PATTERNS = (
    ('heading', re.compile(
        r'_jsx\(Heading,\s*{\s*level:\s*["\'](?P<level>\d+)["\'],\s*id:\s*["\'](?P<id>[^"\']+)["\'],'
        r'\s*children:\s*["\'](?P<text>[^"\']+)["\']'
    )),
    ('accordion', re.compile(r'_jsxs?\(Accordion,\s*{\s*title:\s*["\'](?P<title>[^"\']+)["\']')),
    ('paragraph', re.compile(r'_jsx\(_components\.p,\s*{\s*children:\s*["\'](?P<text>[^"\']+)["\']')),
    ('listItem', re.compile(r'_jsx\(_components\.li,\s*{\s*children:\s*["\'](?P<text>[^"\']+)["\']')),
    ('link', re.compile(
        r'_jsx\(_components\.a,\s*{\s*href:\s*["\'](?P<url>[^"\']+)["\'],\s*children:\s*["\'](?P<text>[^"\']+)["\']'
    )),
    ('image', re.compile(r'_jsx\(_components\.img,\s*{\s*src:\s*["\'](?P<src>[^"\']+)["\']')),
    ('code', re.compile(r'_jsx\(_components\.code,\s*{\s*(?:className:\s*["\'](?P<language>[^"\']*)["\'],\s*)?'
                        r'children:\s*["\'](?P<text>[^"\']+)["\']')),
)

TITLE_PATTERN = re.compile(r'useMDXComponents[\s\S]*?title:\s*["\']([^"\']+)["\']')


def json_filename(page_path: str) -> str:
    """
    Name of the JSON file for a page path.

    '/' becomes 'index.json'; '/a/b' becomes 'a-b.json'.
    """
    stripped = page_path.strip('/')
    if not stripped:
        return 'index.json'
    return stripped.replace('/', '-') + '.json'


def find_key(data: Any, key: str) -> Optional[Any]:
    """Depth-first search for the first value stored under key."""
    if isinstance(data, dict):
        if key in data:
            return data[key]
        values = data.values()
    elif isinstance(data, list):
        values = data
    else:
        return None

    for value in values:
        found = find_key(value, key)
        if found is not None:
            return found
    return None


def parse_compiled_source(compiled_source: str, url: str = "") -> Dict[str, Any]:
    """
    Parse a compiled MDX module into ordered content elements.

    Args:
        compiled_source: The compiledSource string of the page
        url: URL of the page

    Returns:
        Dictionary with title, meta and elements
    """
    parsed: Dict[str, Any] = {
        'title': '',
        'url': url,
        'meta': {
            'extractedAt': datetime.now(timezone.utc).isoformat(),
            'contentType': 'MDX' if 'MDXContent' in compiled_source else 'Unknown',
        },
        'elements': [],
    }

    title_match = TITLE_PATTERN.search(compiled_source)
    if title_match:
        parsed['title'] = title_match.group(1)

    matches = []
    for element_type, pattern in ELEMENT_PATTERNS:
        for match in pattern.finditer(compiled_source):
            data = {k: v for k, v in match.groupdict().items() if v is not None}
            matches.append((match.start(), element_type, data))
    matches.sort(key=lambda m: m[0])

    elements: List[Dict[str, Any]] = []
    for _, element_type, data in matches:
        # Consecutive paragraphs read as one block
        if element_type == 'paragraph' and elements and elements[-1]['type'] == 'paragraph':
            elements[-1]['text'] += '\n\n' + data['text']
            continue
        elements.append({'type': element_type, **data})

    parsed['elements'] = elements
    return parsed


class NextDataExtractor:
    """
    Extracts structured JSON data from rendered pages.

    extract() never raises: failures are reported inside the result.
    """

    def __init__(self):
        self.logger = get_logger("exporter")

    def extract(self, markup: str, url: str) -> Dict[str, Any]:
        """
        Extract structured data from a page.

        Args:
            markup: Page HTML
            url: URL of the page

        Returns:
            Dictionary describing the page content
        """
        try:
            soup = parse_soup(markup)
            script = soup.find('script', id='__NEXT_DATA__')
            if script and script.string:
                try:
                    return self._from_next_data(script.string, url)
                except ValueError as e:
                    self.logger.debug(f"Malformed __NEXT_DATA__ in {url}: {e}")
            return self._from_markup(soup, url)
        except Exception as e:
            self.logger.debug(f"Extraction failed for {url}: {e}")
            return {'url': url, 'source': 'error', 'error': str(e)}

    def _from_next_data(self, payload: str, url: str) -> Dict[str, Any]:
        data = json.loads(payload)
        result: Dict[str, Any] = {
            'url': url,
            'source': '__NEXT_DATA__',
            'page': data.get('page') if isinstance(data, dict) else None,
            'buildId': data.get('buildId') if isinstance(data, dict) else None,
            'data': data,
        }

        compiled_source = find_key(data, 'compiledSource')
        if isinstance(compiled_source, str):
            result['content'] = parse_compiled_source(compiled_source, url)

        return result

    def _from_markup(self, soup, url: str) -> Dict[str, Any]:
        title = soup.title.get_text(strip=True) if soup.title else ''

        headings = []
        for heading in soup.find_all(['h1', 'h2', 'h3', 'h4', 'h5', 'h6']):
            text = heading.get_text(' ', strip=True)
            if text:
                headings.append({
                    'level': int(heading.name[1]),
                    'id': heading.get('id', ''),
                    'text': text,
                })

        for tag in soup.find_all(['script', 'style', 'noscript']):
            tag.decompose()
        body = soup.body or soup
        text = re.sub(r'\s+', ' ', body.get_text(' ', strip=True)).strip()

        return {
            'url': url,
            'source': 'markup',
            'title': title,
            'headings': headings,
            'text': text,
        }


def export_page_data(
    output_dir: str,
    page,
    markup: str,
    extractor: NextDataExtractor
) -> Optional[str]:
    """
    Write the structured data of one page under json_data/.

    Returns:
        Local path of the JSON file, or None if it could not be written
    """
    filename = json_filename(page.path)
    local_path = f"{JSON_DATA_DIR}/{filename}"
    data = extractor.extract(markup, page.url)

    try:
        write_file(
            os.path.join(output_dir, JSON_DATA_DIR, filename),
            json.dumps(data, indent=2, ensure_ascii=False)
        )
    except WriteError as e:
        extractor.logger.warning(str(e))
        return None
    return local_path


def write_summary(output_dir: str, summary: Dict[str, Any]) -> str:
    """
    Write the run summary document.

    Raises:
        WriteError: If the file cannot be written
    """
    summary_path = os.path.join(output_dir, JSON_DATA_DIR, SUMMARY_FILE)
    write_file(summary_path, json.dumps(summary, indent=2, ensure_ascii=False))
    return summary_path


def summarize_pages(pages: Iterable) -> List[Dict[str, Any]]:
    return [page.to_dict() for page in pages]

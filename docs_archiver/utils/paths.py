"""
Path and URL utilities for the docs archiver.

Provides URL normalization, the URL to local path mapper, the mapping
table consulted by the rewriter, and file writing helpers.
"""

import hashlib
import os
import posixpath
import re
from typing import Dict, Iterable, Iterator, List, Optional, Set, Tuple, Union
from urllib.parse import urlparse, urlunparse, urljoin, unquote, quote

from .errors import MappingError, OutputRootError, WriteError
from .constants import JSON_DATA_DIR


# Characters that cannot appear in file names on common filesystems.
# '%' is escaped too so that the escaping stays reversible.
UNSAFE_CHARS = re.compile(r'[<>:"|?*\\/%]')

# Dynamic route segments such as [slug] keep a readable, reversible form
BRACKET_PLACEHOLDERS = (("[", "_lbracket_"), ("]", "_rbracket_"))

# Literal placeholder words get their first letter escaped, so "lbracket"
# and "rbracket" only ever appear inside placeholders
PLACEHOLDER_WORDS = re.compile(r'[lr](?=bracket)')

# Characters left as-is when a local path is emitted as a URL reference
REFERENCE_SAFE_CHARS = "/!$&'()*+,;=@-._~"

# Escaped segments only hold "%" as an uppercase %XX escape, so these
# markers never come out of safe_segment
QUERY_MARKER = "%q"
IMPLICIT_INDEX = "%index"

SKIPPED_SCHEMES = ('javascript:', 'data:', 'mailto:', 'tel:', 'blob:', 'about:', '#')


def normalize_url(url: str, base_url: Optional[str] = None, keep_trailing_slash: bool = False) -> str:
    """
    Normalize a URL by resolving relative paths and removing fragments.

    The trailing slash is removed except for the root path, so URLs that
    differ only by fragment or trailing slash collapse to one key.

    Args:
        url: URL to normalize
        base_url: Base URL for resolving relative URLs
        keep_trailing_slash: Keep the path as written (for URLs to fetch)

    Returns:
        Normalized URL string, or "" when the URL is not an http(s) URL
    """
    if not url:
        return ""

    url = url.strip()
    if not url or url.lower().startswith(SKIPPED_SCHEMES):
        return ""

    # Handle protocol-relative URLs
    if url.startswith('//'):
        if base_url:
            url = f"{urlparse(base_url).scheme}:{url}"
        else:
            url = f"https:{url}"

    try:
        # Resolve relative URLs
        if base_url and not url.startswith(('http://', 'https://')):
            url = urljoin(base_url, url)
        parsed = urlparse(url)
    except ValueError:
        return ""

    if parsed.scheme.lower() not in ('http', 'https') or not parsed.netloc:
        return ""

    path = parsed.path or '/'
    # Remove trailing slash for consistency (except for root path)
    if not keep_trailing_slash and len(path) > 1 and path.endswith('/'):
        path = path.rstrip('/') or '/'

    return urlunparse((
        parsed.scheme.lower(),
        parsed.netloc.lower(),
        path,
        parsed.params,
        parsed.query,
        ''  # Remove fragment
    ))


def get_domain(url: str) -> str:
    """
    Extract the domain (host and optional port) from a URL.

    Args:
        url: URL to extract domain from

    Returns:
        Domain string (e.g., 'docs.example.com')
    """
    try:
        return urlparse(url).netloc.lower()
    except ValueError:
        return ""


def strip_query(url: str) -> str:
    """Return the URL without its query string and fragment."""
    parsed = urlparse(url)
    return urlunparse(parsed._replace(query='', fragment=''))


def _percent_escape(match) -> str:
    return f"%{ord(match.group(0)):02X}"


def safe_segment(segment: str) -> str:
    """
    Make a single (already decoded) path segment filesystem-safe.

    Args:
        segment: Path segment

    Returns:
        Segment with unsafe characters encoded as %XX and square brackets
        replaced by their placeholders
    """
    safe = UNSAFE_CHARS.sub(_percent_escape, segment)
    safe = PLACEHOLDER_WORDS.sub(_percent_escape, safe)
    for char, placeholder in BRACKET_PLACEHOLDERS:
        safe = safe.replace(char, placeholder)
    return safe


def _resolve_segments(path: str) -> List[str]:
    """Split a URL path into decoded segments with dot segments resolved."""
    resolved: List[str] = []
    for raw in path.split('/'):
        segment = unquote(raw)
        if segment in ('', '.'):
            continue
        if segment == '..':
            if resolved:
                resolved.pop()
            continue
        resolved.append(segment)
    return resolved


def _fold_query(filename: str, query: str) -> str:
    """Fold a query string into an escaped file name, keeping the extension."""
    digest = hashlib.sha256(query.encode('utf-8')).hexdigest()[:10]
    stem, ext = posixpath.splitext(filename)
    return f"{stem}{QUERY_MARKER}{digest}{ext}"


class PathMapper:
    """
    Maps remote URLs to local paths relative to the output root.

    The mapping is a pure function of the URL (and, for resources, its
    category): no network or filesystem access happens here.
    """

    PAGE_INDEX = "index.html"

    # Extension given to directory-like resource URLs
    CATEGORY_EXTENSIONS = {
        'stylesheet': '.css',
        'script': '.js',
    }

    def __init__(self, primary_host: str, allowed_hosts: Iterable[str] = ()):
        """
        Initialize the path mapper.

        Args:
            primary_host: Host (and optional port) of the archived site
            allowed_hosts: Additional hosts whose resources may be mirrored
        """
        self.primary_host = primary_host.lower()
        self.allowed_hosts: Set[str] = {self.primary_host}
        self.allowed_hosts.update(host.lower() for host in allowed_hosts if host)

    def is_allowed(self, url: str) -> bool:
        """Check whether a URL belongs to an allow-listed origin."""
        try:
            self._parse(url)
        except MappingError:
            return False
        return True

    def is_same_origin(self, url: str) -> bool:
        """Check whether a URL belongs to the archived site itself."""
        return get_domain(url) == self.primary_host

    def map(
        self,
        url: str,
        category: Optional[str] = None,
        base_url: Optional[str] = None
    ) -> str:
        """
        Map a URL to a local path.

        Args:
            url: Absolute URL (or relative, when base_url is given)
            category: Resource category; None maps the URL as a page
            base_url: Base URL for resolving relative URLs

        Returns:
            Relative POSIX path under the output root

        Raises:
            MappingError: If the URL is malformed or not allow-listed
        """
        parsed = self._parse(url, base_url)
        segments = _resolve_segments(parsed.path)
        directory_like = (
            not segments
            or parsed.path.endswith('/')
            or '.' not in segments[-1]
        )

        # Pages ignore query strings
        if category is None and directory_like:
            segments.append(self.PAGE_INDEX)

        local_segments = self._prefix(parsed.netloc.lower(), segments)
        local_segments.extend(safe_segment(segment) for segment in segments)

        if category is not None:
            if directory_like:
                ext = self.CATEGORY_EXTENSIONS.get(getattr(category, 'value', category), '')
                local_segments.append(IMPLICIT_INDEX + ext)
            if parsed.query:
                local_segments[-1] = _fold_query(local_segments[-1], parsed.query)

        return '/'.join(local_segments)

    def map_page(self, url: str) -> str:
        """Map a page URL to its local markup file."""
        return self.map(url)

    def map_resource(self, url: str, category: str) -> str:
        """Map a resource URL of the given category to its local file."""
        return self.map(url, category=category)

    def map_directory(self, url: str) -> str:
        """
        Map a URL prefix to the local directory holding its files.

        Args:
            url: URL prefix; every path segment is treated as a directory

        Returns:
            Relative POSIX directory path ('' for the output root)
        """
        parsed = self._parse(url)
        segments = _resolve_segments(parsed.path)
        local_segments = self._prefix(parsed.netloc.lower(), segments)
        local_segments.extend(safe_segment(segment) for segment in segments)
        return '/'.join(local_segments)

    def _prefix(self, host: str, segments: List[str]) -> List[str]:
        """Directory prefix keeping other origins apart from the site's own paths."""
        if host != self.primary_host:
            return ['assets', safe_segment(host)]
        if segments and segments[0] == 'assets':
            # Cannot clash with assets/<other host>/...
            return ['assets', safe_segment(host)]
        return []

    def _parse(self, url: str, base_url: Optional[str] = None):
        if not url or not isinstance(url, str):
            raise MappingError(f"Empty URL: {url!r}")

        url = url.strip()
        try:
            if base_url:
                url = urljoin(base_url, url)
            elif url.startswith('//'):
                url = f"https:{url}"
            parsed = urlparse(url)
        except ValueError as e:
            raise MappingError(f"Malformed URL {url!r}: {e}") from e

        if parsed.scheme.lower() not in ('http', 'https') or not parsed.netloc:
            raise MappingError(f"Not an absolute http(s) URL: {url!r}")
        if parsed.netloc.lower() not in self.allowed_hosts:
            raise MappingError(f"Origin not allow-listed: {url}")
        return parsed


class PathMapping:
    """
    Injective table of remote URL -> local path.

    Populated as pages are saved and resources downloaded, then consulted
    by the rewriter. Keys are normalized URLs.
    """

    def __init__(self):
        self._by_url: Dict[str, str] = {}
        self._by_path: Dict[str, str] = {}
        self._pages: Set[str] = set()
        self._redirects: Dict[str, str] = {}

    def add(self, url: str, local_path: str, page: bool = False) -> bool:
        """
        Record the local path of a URL.

        Args:
            url: Remote URL
            local_path: Relative local path
            page: Whether the URL is a page (query-less lookups fall back to it)

        Returns:
            True if recorded, False if the local path belongs to another URL
        """
        key = normalize_url(url)
        if not key:
            return False

        owner = self._by_path.get(local_path)
        if owner is not None and owner != key:
            return False

        previous = self._by_url.get(key)
        if previous is not None and previous != local_path:
            return False

        self._by_url[key] = local_path
        self._by_path[local_path] = key
        if page:
            self._pages.add(key)
        return True

    def add_redirect(self, source_url: str, target_url: str) -> None:
        """Make lookups of source_url resolve to target_url."""
        source = normalize_url(source_url)
        target = normalize_url(target_url)
        if source and target and source != target:
            self._redirects[source] = target

    def get(self, url: str) -> Optional[str]:
        """
        Look up the local path of a URL.

        Args:
            url: Remote URL (fragments are ignored)

        Returns:
            Local path, or None if the URL is unmapped
        """
        key = normalize_url(url)
        if not key:
            return None
        key = self._redirects.get(key, key)

        local_path = self._by_url.get(key)
        if local_path is None:
            bare = strip_query(key)
            bare = self._redirects.get(bare, bare)
            if bare in self._pages:
                local_path = self._by_url.get(bare)
        return local_path

    def url_for(self, local_path: str) -> Optional[str]:
        """Reverse lookup: the remote URL saved at local_path."""
        return self._by_path.get(local_path)

    def has_prefix(self, url_prefix: str) -> bool:
        """Check whether any mapped URL starts with the given prefix."""
        return any(url.startswith(url_prefix) for url in self._by_url)

    @property
    def local_paths(self) -> Set[str]:
        return set(self._by_path)

    def is_local_path(self, local_path: str) -> bool:
        return local_path in self._by_path

    def items(self) -> Iterator[Tuple[str, str]]:
        return iter(self._by_url.items())

    def __contains__(self, url: str) -> bool:
        return self.get(url) is not None

    def __len__(self) -> int:
        return len(self._by_url)


def relative_reference(from_file: str, to_file: str) -> str:
    """
    Build the URL reference from one local file to another.

    Args:
        from_file: Local path of the file containing the reference
        to_file: Local path of the referenced file

    Returns:
        URL-quoted relative path, computed from from_file's directory
    """
    from_dir = posixpath.dirname(from_file) or '.'
    rel_path = posixpath.relpath(to_file, from_dir)
    return quote(rel_path, safe=REFERENCE_SAFE_CHARS)


def resolve_local_reference(from_file: str, reference: str) -> Optional[str]:
    """
    Resolve a relative reference against a local file's directory.

    Args:
        from_file: Local path of the file containing the reference
        reference: Relative URL reference (no scheme, not root-relative)

    Returns:
        Normalized local path, or None if it escapes the output root
    """
    from_dir = posixpath.dirname(from_file)
    target = posixpath.normpath(posixpath.join(from_dir, unquote(reference)))
    if target == '..' or target.startswith('../'):
        return None
    return target


def ensure_dir(path: str) -> None:
    """
    Ensure a directory exists, creating it if necessary.

    Args:
        path: Directory path to ensure exists
    """
    os.makedirs(path, exist_ok=True)


def ensure_parent_dir(file_path: str) -> None:
    """
    Ensure the parent directory of a file exists.

    Args:
        file_path: File path whose parent directory should exist
    """
    parent = os.path.dirname(file_path)
    if parent:
        ensure_dir(parent)


def _write(file_path: str, data: Union[str, bytes]) -> None:
    if isinstance(data, str):
        with open(file_path, 'w', encoding='utf-8', errors='surrogateescape') as f:
            f.write(data)
    else:
        with open(file_path, 'wb') as f:
            f.write(data)


def write_file(file_path: str, data: Union[str, bytes]) -> None:
    """
    Write text or bytes to a file.

    A write failing because the parent directory is missing is retried
    once after recreating the directory.

    Args:
        file_path: Destination path
        data: Text (written as UTF-8) or raw bytes

    Raises:
        WriteError: If the write fails
    """
    try:
        _write(file_path, data)
    except FileNotFoundError:
        try:
            ensure_parent_dir(file_path)
            _write(file_path, data)
        except OSError as e:
            raise WriteError(f"Failed writing {file_path}: {e}") from e
    except OSError as e:
        raise WriteError(f"Failed writing {file_path}: {e}") from e


def read_text(file_path: str) -> str:
    """Read a text file without losing undecodable bytes."""
    with open(file_path, 'r', encoding='utf-8', errors='surrogateescape') as f:
        return f.read()


def create_output_structure(output_dir: str) -> Dict[str, str]:
    """
    Create the output directory structure for the archived site.

    Args:
        output_dir: Base output directory

    Returns:
        Dictionary of created directory paths

    Raises:
        OutputRootError: If the directories cannot be created
    """
    dirs = {
        'root': output_dir,
        'json': os.path.join(output_dir, JSON_DATA_DIR),
    }

    try:
        for dir_path in dirs.values():
            ensure_dir(dir_path)
    except OSError as e:
        raise OutputRootError(f"Cannot create output directory {output_dir}: {e}") from e

    return dirs

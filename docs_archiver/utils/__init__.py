"""
Utility modules for site archiving.

Contains logging, path mapping, error types, and constants.
"""

from .log import setup_logger, get_logger
from .paths import normalize_url, PathMapper, PathMapping, ensure_dir, write_file
from .errors import (
    ArchiverError,
    MappingError,
    NavigationError,
    FetchError,
    WriteError,
    OutputRootError,
)
from .constants import (
    DEFAULT_USER_AGENT,
    DEFAULT_TIMEOUT,
    DEFAULT_PAGE_TIMEOUT,
    DEFAULT_WORKERS,
    DEFAULT_BATCH_SIZE,
    DEFAULT_MAX_PAGES,
    DEFAULT_ALLOWED_HOSTS,
)

__all__ = [
    "setup_logger",
    "get_logger",
    "normalize_url",
    "PathMapper",
    "PathMapping",
    "ensure_dir",
    "write_file",
    "ArchiverError",
    "MappingError",
    "NavigationError",
    "FetchError",
    "WriteError",
    "OutputRootError",
    "DEFAULT_USER_AGENT",
    "DEFAULT_TIMEOUT",
    "DEFAULT_PAGE_TIMEOUT",
    "DEFAULT_WORKERS",
    "DEFAULT_BATCH_SIZE",
    "DEFAULT_MAX_PAGES",
    "DEFAULT_ALLOWED_HOSTS",
]

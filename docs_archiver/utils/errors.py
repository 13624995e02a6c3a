"""
Exception types raised by the archiver components.

Every failure except OutputRootError is recorded against the page or
resource it belongs to; the run itself keeps going.
"""


class ArchiverError(Exception):
    """Base class for archiver errors."""


class MappingError(ArchiverError, ValueError):
    """A URL could not be mapped to a local path."""


class NavigationError(ArchiverError):
    """A page could not be rendered (HTTP error, timeout, browser error)."""


class FetchError(ArchiverError):
    """A resource could not be fetched from its origin."""

    def __init__(self, url: str, reason: str):
        super().__init__(f"{reason}: {url}")
        self.url = url
        self.reason = reason


class WriteError(ArchiverError):
    """A file could not be written, even after recreating its directory."""


class OutputRootError(ArchiverError):
    """The output root could not be created. Aborts the run."""

"""Exceptions raised by the notice sync pipeline."""


class NoticeSyncError(Exception):
    """Base class for every error raised by this package."""


class FetchError(NoticeSyncError):
    """The remote board could not be fetched."""


class FetchTimeoutError(FetchError):
    """No response from the remote board within the timeout."""


class FetchHttpError(FetchError):
    """The remote board answered with a non-success status."""

    def __init__(self, url: str, status_code: int):
        super().__init__(f"HTTP {status_code} for {url}")
        self.url = url
        self.status_code = status_code


class ParseError(NoticeSyncError):
    """The remote HTML did not have the expected shape."""


class RowParseError(ParseError):
    """A single row of the notice index could not be parsed."""


class ContentBlockMissingError(ParseError):
    """A detail page has no content body block."""


class PersistenceError(NoticeSyncError):
    """The notice store rejected or failed an operation."""

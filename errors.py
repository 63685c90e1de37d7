"""Exception hierarchy shared by the fetch, render and export stages."""

from typing import Optional


class MigrationError(Exception):
    """Base exception for all migration errors."""
    pass


class FetcherError(MigrationError):
    """Base exception for fetcher-related errors."""
    pass


class TransportError(FetcherError):
    """Raised when an upstream request fails or returns an error status."""

    def __init__(self, message: str, status_code: Optional[int] = None, url: Optional[str] = None):
        super().__init__(message)
        self.status_code = status_code
        self.url = url


class NotFoundError(FetcherError):
    """Raised when the target folder for the migration does not exist."""

    def __init__(self, path: str):
        super().__init__(f'Folder "{path}" does not exist.')
        self.path = path


class DownloadError(MigrationError):
    """Raised when an asset cannot be downloaded or written."""

    def __init__(self, url: str, reason: str):
        super().__init__(reason)
        self.url = url
        self.reason = reason


__all__ = [
    'MigrationError',
    'FetcherError',
    'TransportError',
    'NotFoundError',
    'DownloadError',
]

"""Asset fetcher for downloading attachments and media into the vault."""

import logging
from pathlib import Path
from typing import Dict, Optional, Union

import requests

from errors import DownloadError
from .storage import LocalStorage


class AssetFetcher:
    """
    Downloads binary resources into the vault.

    This fetcher:
    1. Ensures the destination's parent directory exists
    2. Issues a plain HTTP GET (hosted URLs are pre-signed, no auth header)
    3. Writes the raw bytes to the destination
    4. Raises DownloadError on any failure; callers decide whether it is fatal
    """

    def __init__(
        self,
        storage: LocalStorage,
        session: Optional[requests.Session] = None,
        timeout: Optional[float] = None,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize the asset fetcher.

        Args:
            storage: Vault storage that destination paths are resolved against
            session: HTTP session (a new one is created if omitted)
            timeout: Per-download timeout in seconds (None waits indefinitely)
            logger: Logger instance
        """
        self.storage = storage
        self.session = session or requests.Session()
        self.timeout = timeout
        self.logger = logger or logging.getLogger('notion_vault_migrator.exporters.attachment_manager')

        self.stats = {
            'downloaded': 0,
            'failed': 0,
            'total_size_bytes': 0
        }

    def fetch(self, url: str, destination: Union[str, Path]) -> Path:
        """
        Download `url` and write it to `destination`.

        Args:
            url: Resource URL (external or signed hosted URL)
            destination: Vault-relative or absolute destination path

        Returns:
            Resolved path of the written file

        Raises:
            DownloadError: If the request fails or returns no body
        """
        if not url:
            self.stats['failed'] += 1
            raise DownloadError(url, "No URL to download")

        target = self.storage.resolve(destination)
        self.storage.ensure_directory(target.parent)

        self.logger.debug(f"Downloading {url} -> {target}")
        try:
            response = self.session.get(url, timeout=self.timeout)
            response.raise_for_status()
        except requests.exceptions.RequestException as e:
            self.stats['failed'] += 1
            raise DownloadError(url, str(e)) from e

        content = response.content
        if not content:
            self.stats['failed'] += 1
            raise DownloadError(url, "Failed to download file.")

        try:
            self.storage.write_bytes(target, content)
        except OSError as e:
            self.stats['failed'] += 1
            raise DownloadError(url, f"Could not write {target}: {e}") from e

        self.stats['downloaded'] += 1
        self.stats['total_size_bytes'] += len(content)
        return target

    def get_stats(self) -> Dict[str, int]:
        """Get download statistics."""
        return self.stats.copy()

"""Fetchers package for retrieving Notion databases, pages and blocks."""

from .base_fetcher import BaseFetcher, FetcherError, NotFoundError, TransportError
from .api_fetcher import ApiFetcher


class FetcherFactory:
    """Factory for creating fetcher instances based on configuration."""

    @staticmethod
    def create_fetcher(config: dict, logger):
        """Create the fetcher for the configured Notion workspace.

        Args:
            config: Configuration dictionary
            logger: Logger instance

        Returns:
            BaseFetcher instance

        Raises:
            ValueError: If the API key is missing
        """
        if not config.get('notion', {}).get('api_key'):
            raise ValueError("notion.api_key is required to fetch content")
        return ApiFetcher(config, logger)


__all__ = [
    'BaseFetcher',
    'FetcherError',
    'TransportError',
    'NotFoundError',
    'ApiFetcher',
    'FetcherFactory'
]

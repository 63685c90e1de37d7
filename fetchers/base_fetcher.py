"""Abstract upstream data source interface."""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from errors import FetcherError, NotFoundError, TransportError
from models import ContentBlock, Record


class BaseFetcher(ABC):
    """Abstract base class for Notion content fetchers."""

    def __init__(self, config: Optional[Dict[str, Any]] = None, logger=None):
        """
        Initialize base fetcher with configuration and logger.

        Args:
            config: Configuration dictionary
            logger: Logger instance (optional, uses module logger if not provided)
        """
        self.config = config or {}
        self.logger = logger

        # Import logger if not provided
        if not self.logger:
            import logging
            self.logger = logging.getLogger('notion_vault_migrator.fetcher')

    @abstractmethod
    def query_records(self, container_id: str) -> List[Record]:
        """
        Fetch every record of a database, following pagination.

        Args:
            container_id: Database id

        Returns:
            Flattened list of records
        """
        pass

    @abstractmethod
    def fetch_record(self, record_id: str) -> Record:
        """
        Fetch a single record by id.

        Raises:
            TransportError: If the upstream request fails
        """
        pass

    @abstractmethod
    def fetch_child_blocks(self, block_id: str) -> List[ContentBlock]:
        """
        Fetch the direct children of a page or block.

        Raises:
            TransportError: If the upstream request fails
        """
        pass

    @abstractmethod
    def fetch_container_name(self, container_id: str) -> Optional[str]:
        """Return the database title, or None when it cannot be fetched."""
        pass


__all__ = ['BaseFetcher', 'FetcherError', 'TransportError', 'NotFoundError']

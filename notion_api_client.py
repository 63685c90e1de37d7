"""Notion REST API client with bearer authentication and cursor pagination."""

import json
import logging
import time
from typing import Any, Dict, List, Optional

import requests

from errors import TransportError

logger = logging.getLogger('notion_vault_migrator.client')

DEFAULT_BASE_URL = 'https://api.notion.com/v1'
DEFAULT_API_VERSION = '2022-06-28'


class NotionClient:
    """
    Thin Notion REST API client.

    Every failure (transport error, timeout, non-2xx status, invalid JSON) is
    raised as TransportError. Requests are neither retried nor rate limited.
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = DEFAULT_BASE_URL,
        api_version: str = DEFAULT_API_VERSION,
        timeout: Optional[float] = None,
        page_size: int = 100
    ):
        """
        Initialize Notion client.

        Args:
            api_key: Notion integration token
            base_url: API base URL
            api_version: Value of the Notion-Version header
            timeout: HTTP request timeout in seconds (None waits indefinitely)
            page_size: Page size for paginated endpoints (max 100)
        """
        if not api_key:
            raise ValueError("Notion client requires an api_key")

        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.page_size = page_size

        self.session = requests.Session()
        self.session.headers.update({
            'Authorization': f'Bearer {api_key}',
            'Notion-Version': api_version,
            'Content-Type': 'application/json',
        })

        logger.info(f"Initialized Notion client for {self.base_url} (Notion-Version {api_version})")

    def _make_request(self, method: str, endpoint: str, **kwargs) -> Dict[str, Any]:
        """
        Make HTTP request to the Notion API and decode the JSON body.

        Args:
            method: HTTP method (GET, POST)
            endpoint: API endpoint path (e.g., "/pages/<id>")
            **kwargs: Additional arguments for requests

        Returns:
            Decoded JSON response

        Raises:
            TransportError: For any request, HTTP or decoding failure
        """
        url = f"{self.base_url}/{endpoint.lstrip('/')}"

        start_time = time.time()
        logger.debug(f"API Request: {method} {url}")

        try:
            response = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.exceptions.Timeout as e:
            logger.error(f"Request timeout after {self.timeout}s: {method} {url}")
            raise TransportError(f"Request timed out: {method} {url}", url=url) from e
        except requests.exceptions.RequestException as e:
            logger.error(f"Request error: {method} {url} - {str(e)}")
            raise TransportError(f"Request failed: {method} {url}: {e}", url=url) from e

        elapsed = time.time() - start_time
        logger.debug(f"API Response: {response.status_code} {url} ({elapsed:.3f}s)")

        if not response.ok:
            error_details = ""
            try:
                error_json = response.json()
                if 'message' in error_json:
                    error_details = f" - {error_json['message']}"
                logger.error(f"Error details: {json.dumps(error_json, indent=2)}")
            except ValueError:
                logger.error(f"Error response: {response.text[:500]}")

            raise TransportError(
                f"HTTP {response.status_code}: {method} {url}{error_details}",
                status_code=response.status_code,
                url=url
            )

        try:
            return response.json()
        except ValueError as e:
            raise TransportError(f"Invalid JSON in response: {method} {url}", url=url) from e

    def query_database(self, database_id: str) -> List[Dict[str, Any]]:
        """
        Query every row of a database, following `next_cursor` until exhausted.

        Args:
            database_id: Notion database id

        Returns:
            Flattened list of page objects
        """
        results: List[Dict[str, Any]] = []
        start_cursor: Optional[str] = None

        while True:
            body: Dict[str, Any] = {'page_size': self.page_size}
            if start_cursor:
                body['start_cursor'] = start_cursor

            data = self._make_request('POST', f'/databases/{database_id}/query', json=body)
            results.extend(data.get('results', []))

            if not data.get('has_more') or not data.get('next_cursor'):
                break
            start_cursor = data['next_cursor']

        logger.info(f"Queried {len(results)} rows from database {database_id}")
        return results

    def get_page(self, page_id: str) -> Dict[str, Any]:
        """Fetch a single page object."""
        return self._make_request('GET', f'/pages/{page_id}')

    def get_database(self, database_id: str) -> Dict[str, Any]:
        """Fetch a database object (title and property schema)."""
        return self._make_request('GET', f'/databases/{database_id}')

    def get_block_children(self, block_id: str) -> List[Dict[str, Any]]:
        """
        Fetch all direct children of a page or block.

        Args:
            block_id: Page or block id

        Returns:
            List of block objects in document order
        """
        children: List[Dict[str, Any]] = []
        start_cursor: Optional[str] = None

        while True:
            params: Dict[str, Any] = {'page_size': self.page_size}
            if start_cursor:
                params['start_cursor'] = start_cursor

            data = self._make_request('GET', f'/blocks/{block_id}/children', params=params)
            children.extend(data.get('results', []))

            if not data.get('has_more') or not data.get('next_cursor'):
                break
            start_cursor = data['next_cursor']

        return children

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> 'NotionClient':
        """
        Initialize Notion client from configuration dictionary.

        Args:
            config: Configuration dictionary with a notion section

        Returns:
            NotionClient instance
        """
        notion_config = config.get('notion', {})

        return cls(
            api_key=notion_config.get('api_key'),
            base_url=notion_config.get('base_url', DEFAULT_BASE_URL),
            api_version=notion_config.get('api_version', DEFAULT_API_VERSION),
            timeout=notion_config.get('request_timeout')
        )

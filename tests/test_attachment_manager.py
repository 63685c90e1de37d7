"""Tests for downloading attachments into the vault."""

import tempfile
import unittest
from pathlib import Path
from unittest.mock import MagicMock

import requests

from errors import DownloadError
from exporters import AssetFetcher, LocalStorage

from fakes import download_session


class TestAssetFetcher(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.root = Path(self._tmp.name)
        self.storage = LocalStorage(self.root)

    def tearDown(self):
        self._tmp.cleanup()

    def test_writes_body_and_creates_folder(self):
        session = download_session(b'\x89PNG')
        fetcher = AssetFetcher(self.storage, session=session, timeout=30)

        target = fetcher.fetch('https://s3.example.com/a.png', 'Attachments/nested/a.png')

        self.assertEqual(target, self.root / 'Attachments' / 'nested' / 'a.png')
        self.assertEqual(target.read_bytes(), b'\x89PNG')
        session.get.assert_called_once_with('https://s3.example.com/a.png', timeout=30)
        self.assertEqual(fetcher.get_stats(), {'downloaded': 1, 'failed': 0, 'total_size_bytes': 4})

    def test_no_auth_header_is_sent(self):
        session = download_session()
        AssetFetcher(self.storage, session=session).fetch('https://s3.example.com/a.pdf', 'a.pdf')

        _args, kwargs = session.get.call_args
        self.assertNotIn('headers', kwargs)

    def test_empty_body_raises(self):
        fetcher = AssetFetcher(self.storage, session=download_session(b''))

        with self.assertRaises(DownloadError) as ctx:
            fetcher.fetch('https://s3.example.com/empty.bin', 'empty.bin')

        self.assertEqual(str(ctx.exception), 'Failed to download file.')
        self.assertFalse((self.root / 'empty.bin').exists())
        self.assertEqual(fetcher.get_stats()['failed'], 1)

    def test_request_failure_raises(self):
        error = requests.exceptions.ConnectionError('connection refused')
        fetcher = AssetFetcher(self.storage, session=download_session(error=error))

        with self.assertRaises(DownloadError) as ctx:
            fetcher.fetch('https://s3.example.com/a.pdf', 'a.pdf')

        self.assertEqual(ctx.exception.url, 'https://s3.example.com/a.pdf')
        self.assertIn('connection refused', str(ctx.exception))

    def test_http_error_status_raises(self):
        session = download_session(b'denied')
        session.get.return_value.raise_for_status.side_effect = requests.exceptions.HTTPError('403 Forbidden')
        fetcher = AssetFetcher(self.storage, session=session)

        with self.assertRaises(DownloadError):
            fetcher.fetch('https://s3.example.com/a.pdf', 'a.pdf')
        self.assertFalse((self.root / 'a.pdf').exists())

    def test_missing_url_raises_without_request(self):
        session = MagicMock()
        fetcher = AssetFetcher(self.storage, session=session)

        with self.assertRaises(DownloadError):
            fetcher.fetch('', 'a.pdf')
        session.get.assert_not_called()


if __name__ == '__main__':
    unittest.main()

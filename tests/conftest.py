"""Shared pytest fixtures: a temporary vault, a fake upstream fetcher and a base configuration."""

import pytest

from exporters import LocalStorage
from fakes import FakeFetcher


@pytest.fixture
def vault(tmp_path):
    """Vault root containing the default migration folder."""
    (tmp_path / 'Notion').mkdir()
    return tmp_path


@pytest.fixture
def storage(vault):
    return LocalStorage(vault)


@pytest.fixture
def fake_fetcher():
    return FakeFetcher()


@pytest.fixture
def base_config(vault):
    return {
        'notion': {'api_key': 'secret_test', 'database_id': 'db-1'},
        'vault': {'path': str(vault)},
        'migration': {
            'migration_path': 'Notion',
            'attachment_path': 'Attachments',
            'subpages_path': 'subpages',
            'progress_bars': False,
            'write_workers': 2,
        },
    }

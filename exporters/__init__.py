"""Vault export package for the Notion to Obsidian migration pipeline.

This package writes converted notes and downloaded assets into an Obsidian
vault.

Package Structure:
- storage: Vault-rooted file system access (write, exists, directories)
- file_naming: Title sanitizing and collision-free note/attachment names
- attachment_manager: Downloads attachments and media into the vault
- markdown_exporter: Queues note writes and performs them on a thread pool
"""

from .storage import LocalStorage
from .file_naming import (
    generate_unique_title,
    get_file_extension,
    get_image_extension,
    get_url_basename,
    sanitize_title,
    unique_file_name,
)
from .attachment_manager import AssetFetcher
from .markdown_exporter import MarkdownExporter

__all__ = [
    'LocalStorage',
    'AssetFetcher',
    'MarkdownExporter',
    'sanitize_title',
    'generate_unique_title',
    'unique_file_name',
    'get_file_extension',
    'get_image_extension',
    'get_url_basename',
]

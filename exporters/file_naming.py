"""Collision-free file naming for vault notes and attachments."""

import posixpath
import re
from pathlib import Path
from typing import Callable, Optional, Union
from urllib.parse import unquote, urlparse

from .storage import LocalStorage

MAX_TITLE_LENGTH = 200

UNSAFE_TITLE_CHARS = re.compile(r'[^A-Za-z0-9\- ]')
IMAGE_EXTENSION_PATTERN = re.compile(r'\.(jpeg|jpg|gif|png)')

PathLike = Union[str, Path]


def _exists_check(storage: Optional[LocalStorage]) -> Callable[[PathLike], bool]:
    if storage is not None:
        return storage.exists
    return lambda path: Path(path).exists()


def sanitize_title(title: str) -> str:
    """
    Strip every character outside [A-Za-z0-9- ] and cut to 200 characters.

    Truncation may split a word.
    """
    return UNSAFE_TITLE_CHARS.sub('', title or '')[:MAX_TITLE_LENGTH]


def generate_unique_title(title: str, directory: PathLike, storage: Optional[LocalStorage] = None) -> str:
    """
    Return `title`, or `title (n)` for the smallest n whose note does not exist yet.

    Args:
        title: Sanitized note title
        directory: Directory the note will be written to
        storage: Vault storage used for existence checks (plain paths otherwise)

    Returns:
        Title without the .md extension
    """
    exists = _exists_check(storage)
    directory = Path(directory)

    unique_title = title
    counter = 1
    while exists(directory / f"{unique_title}.md"):
        unique_title = f"{title} ({counter})"
        counter += 1
    return unique_title


def unique_file_name(path: PathLike, storage: Optional[LocalStorage] = None) -> Path:
    """
    Return `path`, or `stem (n).ext` for the smallest n that does not exist yet.

    Applied again right before a write so that two notes resolving to the same
    name between title generation and the actual write never overwrite each other.
    """
    exists = _exists_check(storage)
    path = Path(path)

    candidate = path
    counter = 1
    while exists(candidate):
        candidate = path.with_name(f"{path.stem} ({counter}){path.suffix}")
        counter += 1
    return candidate


def get_file_extension(url: str) -> str:
    """Extension of the URL path without the dot, or '' when there is none."""
    return posixpath.splitext(unquote(urlparse(url).path))[1].lstrip('.')


def get_image_extension(url: str) -> str:
    """Image extension found anywhere in the URL, defaulting to png."""
    match = IMAGE_EXTENSION_PATTERN.search(url)
    return match.group(1) if match else 'png'


def get_url_basename(url: str) -> str:
    """Last segment of the URL path."""
    return posixpath.basename(unquote(urlparse(url).path))


__all__ = [
    'sanitize_title',
    'generate_unique_title',
    'unique_file_name',
    'get_file_extension',
    'get_image_extension',
    'get_url_basename',
]

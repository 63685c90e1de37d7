"""Local vault storage rooted at the vault directory."""

import logging
from pathlib import Path
from typing import List, Optional, Union

PathLike = Union[str, Path]


class LocalStorage:
    """
    File system access for one vault.

    Relative paths are resolved against the vault root; absolute paths are used
    as given.
    """

    def __init__(self, root: PathLike, logger: Optional[logging.Logger] = None):
        self.root = Path(root)
        self.logger = logger or logging.getLogger('notion_vault_migrator.exporters.storage')

    def resolve(self, path: PathLike) -> Path:
        path = Path(path)
        if path.is_absolute():
            return path
        return self.root / path

    def exists(self, path: PathLike) -> bool:
        return self.resolve(path).exists()

    def is_directory(self, path: PathLike) -> bool:
        return self.resolve(path).is_dir()

    def ensure_directory(self, path: PathLike) -> Path:
        directory = self.resolve(path)
        directory.mkdir(parents=True, exist_ok=True)
        return directory

    def read_directory_entries(self, path: PathLike) -> List[str]:
        directory = self.resolve(path)
        if not directory.is_dir():
            return []
        return sorted(entry.name for entry in directory.iterdir())

    def write(self, path: PathLike, content: str) -> Path:
        """Write text content, creating parent directories as needed."""
        target = self.resolve(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content, encoding='utf-8')
        self.logger.debug(f"Wrote {len(content)} chars to {target}")
        return target

    def write_bytes(self, path: PathLike, data: bytes) -> Path:
        target = self.resolve(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)
        self.logger.debug(f"Wrote {len(data)} bytes to {target}")
        return target

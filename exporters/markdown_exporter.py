"""Markdown note writer for the Notion to Obsidian migration."""

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from .file_naming import unique_file_name
from .storage import LocalStorage


class MarkdownExporter:
    """
    Queues note writes and performs them on a small thread pool.

    Notes are produced sequentially by the orchestrator; only the final file
    writes overlap. The target name is resolved with `unique_file_name` when the
    write actually happens, so two notes that resolved to the same title never
    overwrite each other.
    """

    def __init__(
        self,
        storage: LocalStorage,
        max_workers: int = 4,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize the markdown exporter.

        Args:
            storage: Vault storage used for all writes
            max_workers: Number of concurrent write threads
            logger: Logger instance
        """
        self.storage = storage
        self.logger = logger or logging.getLogger('notion_vault_migrator.exporters.markdown_exporter')

        self.max_workers = max_workers
        self._executor: Optional[ThreadPoolExecutor] = None
        self._name_lock = threading.Lock()
        self._pending: List[Future] = []

        self.stats = {
            'notes_scheduled': 0,
            'notes_written': 0,
            'write_errors': 0
        }

        # Track written files for reporting
        self.exported_files: List[Path] = []

    def schedule_write(self, path: Union[str, Path], content: Optional[str]) -> Future:
        """
        Queue one note write.

        Args:
            path: Vault-relative or absolute note path
            content: Note text (None is written as an empty note)

        Returns:
            Future resolving to the path actually written
        """
        self.stats['notes_scheduled'] += 1
        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix='note-writer')
        future = self._executor.submit(self._write_note, Path(path), content or "")
        self._pending.append(future)
        return future

    def _write_note(self, path: Path, content: str) -> Path:
        target = self.storage.resolve(path)

        # Reserve the name before releasing the lock
        with self._name_lock:
            target.parent.mkdir(parents=True, exist_ok=True)
            target = unique_file_name(target)
            target.touch()

        self.storage.write(target, content)
        self.logger.debug(f"{target} was saved!")
        return target

    def wait_for_pending(self) -> List[Path]:
        """
        Block until every queued write has finished.

        Returns:
            Paths written successfully since the previous call
        """
        pending, self._pending = self._pending, []
        if not pending:
            return []

        wait(pending)

        written = []
        for future in pending:
            error = future.exception()
            if error is not None:
                self.stats['write_errors'] += 1
                self.logger.error(f"Error writing note: {error}")
                continue
            path = future.result()
            written.append(path)
            self.exported_files.append(path)
            self.stats['notes_written'] += 1

        return written

    @property
    def pending_count(self) -> int:
        return sum(1 for future in self._pending if not future.done())

    def close(self) -> List[Path]:
        """Let queued writes finish, then shut the pool down. A later write starts a new pool."""
        written = self.wait_for_pending()
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None
        return written

    def reset_stats(self) -> None:
        self.stats = dict.fromkeys(self.stats, 0)

    def get_stats(self) -> Dict[str, Any]:
        return self.stats.copy()

"""
Migration orchestrator for coordinating the Notion to Obsidian import.

This module provides the central coordinator that sequences one import run:
Check folder → Fetch records → Map properties → Render content → Write notes.
It owns the ImportControl token that every stage checks for cooperative
cancellation.
"""

import logging
import posixpath
import time
from typing import Any, Dict, List, Optional

from tqdm import tqdm

from converters import BlockRenderer, PropertyMapper, assemble_note
from errors import MigrationError, NotFoundError
from exporters import AssetFetcher, LocalStorage, MarkdownExporter, generate_unique_title, sanitize_title
from fetchers.base_fetcher import BaseFetcher
from logger import ProgressTracker, log_section
from models import ImportControl, ImportState, MigrationSettings, Record

logger = logging.getLogger('notion_vault_migrator.orchestrator')

STATUS_COMPLETED = "Migration completed!"
STATUS_STOPPED = "Migration was stopped by user."
STATUS_ISSUES = "Migration ended with issues."

DEFAULT_TITLE = "empty"


class MigrationOrchestrator:
    """Central coordinator for one database import: Fetch → Map → Render → Write."""

    def __init__(
        self,
        config: Dict[str, Any],
        fetcher: BaseFetcher,
        storage: LocalStorage,
        control: Optional[ImportControl] = None,
        asset_fetcher: Optional[AssetFetcher] = None,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize migration orchestrator.

        Args:
            config: Configuration dictionary (notion, vault, migration sections)
            fetcher: Upstream source for records and blocks
            storage: Vault storage every path is resolved against
            control: Cancellation token (a new one is created if omitted)
            asset_fetcher: Downloader for attachments (built from config if omitted)
            logger: Optional logger instance
        """
        self.config = config
        self.fetcher = fetcher
        self.storage = storage
        self.control = control or ImportControl()
        self.logger = logger or logging.getLogger('notion_vault_migrator.orchestrator')

        migration_config = config.get('migration', {}) or {}
        self.settings = MigrationSettings.from_config(config)
        self.dry_run = bool(migration_config.get('dry_run', False))
        self.progress_bars = bool(migration_config.get('progress_bars', True))

        timeout = (config.get('notion', {}) or {}).get('request_timeout')
        self.asset_fetcher = asset_fetcher or AssetFetcher(storage, timeout=timeout)
        self.exporter = MarkdownExporter(storage, max_workers=migration_config.get('write_workers', 4))
        self.tracker = ProgressTracker(item_type='attachments and subpages')

        self.property_mapper = PropertyMapper(
            self.fetcher, self.asset_fetcher, self.settings, tracker=self.tracker
        )
        self.block_renderer = BlockRenderer(
            self.fetcher,
            self.asset_fetcher,
            self.exporter,
            self.settings,
            self.control,
            tracker=self.tracker
        )

        self._state = ImportState.IDLE

        self.stats = {
            'records_total': 0,
            'records_processed': 0,
            'records_queued': 0,
            'content_errors': 0
        }

        self.logger.info(
            f"MigrationOrchestrator initialized: database={self.settings.database_id}, "
            f"folder={self.settings.migration_path}, dry_run={self.dry_run}"
        )

    @property
    def state(self) -> ImportState:
        """Current lifecycle state; a requested force stop shows as STOPPING while running."""
        if self._state is ImportState.RUNNING and self.control.force_stop:
            return ImportState.STOPPING
        return self._state

    def request_stop(self) -> None:
        """Ask a running import to stop as soon as possible."""
        self.logger.warning("Initiating graceful stop...")
        self.control.request_stop()

    def run(self) -> Dict[str, Any]:
        """
        Run one full import of the configured database.

        Returns:
            Run summary dictionary (status, message, counts, duration)

        Raises:
            NotFoundError: If the migration folder does not exist (nothing is processed)
            MigrationError: If fetching fails; the run is torn down before re-raising
        """
        log_section("Notion Import")

        migration_path = self.settings.migration_path
        if not self.storage.is_directory(migration_path):
            self.logger.error(f'Error: Folder "{migration_path}" does not exist.')
            raise NotFoundError(migration_path)

        start_time = time.time()
        self._reset_run_stats()
        self.control.start()
        self._state = ImportState.RUNNING
        completed = False

        try:
            database_id = self.settings.database_id
            database_name = self.fetcher.fetch_container_name(database_id)
            if database_name:
                self.logger.info(f"Starting to migrate content from Notion database: {database_name}")
            else:
                self.logger.info("Starting to migrate content from Notion...")

            self.logger.info("Fetching data from Notion...")
            records = self.fetcher.query_records(database_id)
            self.stats['records_total'] = len(records)
            self.logger.info(f"{len(records)} items fetched from Notion.")

            if self.dry_run:
                self._list_records(records)
                completed = True
            else:
                self.logger.info("Creating markdown files...")
                with self.tracker:
                    completed = self.create_markdown_files(records)

        except MigrationError as e:
            self.logger.error(f"Error: {e}")
            raise

        finally:
            self.exporter.close()
            self.control.finish()
            self._state = ImportState.COMPLETED
            self.logger.info("Migration process ended.")

        if completed:
            status, message = 'completed', STATUS_COMPLETED
        elif self.control.force_stop:
            status, message = 'stopped', STATUS_STOPPED
        else:
            status, message = 'issues', STATUS_ISSUES

        log_method = self.logger.info if status == 'completed' else self.logger.warning
        log_method(message)

        return self._build_summary(status, message, time.time() - start_time)

    def create_markdown_files(self, records: List[Record]) -> bool:
        """
        Convert and queue one note per record.

        Records are processed strictly in order. `is_importing` is checked
        before each record; once it is false no new record is started. When a
        force stop was requested, notes of records not yet queued are skipped,
        but writes already queued still complete.

        Args:
            records: Flat list of records to import

        Returns:
            True when the run completed naturally

        Raises:
            TransportError: If a related record cannot be fetched while mapping
        """
        if not self.control.is_importing:
            self.logger.info("Import not active or was halted.")
            return False

        migration_path = self.settings.migration_path

        progress = tqdm(
            records,
            desc="Importing",
            unit="record",
            disable=None if self.progress_bars else True
        )
        for record in progress:
            if not self.control.is_importing:
                self.logger.warning("Import halted by user. Finishing remaining subpages and files...")
                break

            title = self._resolve_title(record)
            content = self._convert_record(record)
            self.stats['records_processed'] += 1

            self.logger.info(f"Importing: {title}")

            if not self.control.force_stop:
                self.exporter.schedule_write(posixpath.join(migration_path, f"{title}.md"), content)
                self.stats['records_queued'] += 1

        progress.close()

        if self.control.is_importing and not self.control.force_stop:
            self.exporter.wait_for_pending()
            if self.control.is_importing:
                self.logger.info("Migration completed automatically!")
                self.control.finish()
                return True

        self.exporter.wait_for_pending()
        return False

    def _reset_run_stats(self) -> None:
        self.stats = dict.fromkeys(self.stats, 0)
        self.exporter.reset_stats()
        self.tracker.reset()

    def _resolve_title(self, record: Record) -> str:
        raw_title = record.title_text
        title = sanitize_title(raw_title) if raw_title is not None else DEFAULT_TITLE

        if self.settings.attach_page_id:
            return f"{title}_{record.id}"
        return generate_unique_title(title, self.settings.migration_path, self.storage)

    def _convert_record(self, record: Record) -> str:
        mapped = self.property_mapper.map(record)

        body = ''
        if self.settings.import_page_content:
            try:
                body = self.block_renderer.extract_page_content(record.id, mapped.page_title)
            except MigrationError as e:
                self.stats['content_errors'] += 1
                self.logger.error(f"Error extracting content from page {record.display_name}: {e}")

        return assemble_note(mapped, body)

    def _list_records(self, records: List[Record]) -> None:
        log_section("Dry Run")
        for record in records:
            self.logger.info(f"Would import: {self._resolve_title(record)}")
            self.stats['records_processed'] += 1

    def _build_summary(self, status: str, message: str, duration: float) -> Dict[str, Any]:
        exporter_stats = self.exporter.get_stats()
        tracker_stats = self.tracker.get_stats()
        return {
            'status': status,
            'message': message,
            'dry_run': self.dry_run,
            'records_total': self.stats['records_total'],
            'records_processed': self.stats['records_processed'],
            'notes_written': exporter_stats['notes_written'],
            'write_errors': exporter_stats['write_errors'],
            'content_errors': self.stats['content_errors'],
            'attachments': tracker_stats['attachments'],
            'subpages': tracker_stats['subpages'],
            'duration_seconds': round(duration, 2)
        }

    def get_stats(self) -> Dict[str, Any]:
        return {
            'orchestrator': self.stats.copy(),
            'property_mapper': self.property_mapper.get_stats(),
            'block_renderer': self.block_renderer.get_stats(),
            'downloads': self.asset_fetcher.get_stats(),
            'exporter': self.exporter.get_stats(),
            'progress': self.tracker.get_stats()
        }

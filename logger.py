"""Logging setup for the migrator plus the attachment/subpage progress tracker."""

import logging
import logging.handlers
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

import colorlog

LOGGER_NAME = 'notion_vault_migrator'

DEFAULT_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DEFAULT_DATE_FORMAT = '%Y-%m-%d %H:%M:%S'

LEVEL_NAMES = ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL')
LEVEL_COLORS = {
    'DEBUG': 'cyan',
    'INFO': 'green',
    'WARNING': 'yellow',
    'ERROR': 'red',
    'CRITICAL': 'red,bg_white',
}

LOG_FILE_MAX_BYTES = 10 * 1024 * 1024
LOG_FILE_BACKUPS = 5

SECRET_KEY_PARTS = ('password', 'secret', 'api_key', 'token', 'auth_header')
REDACTED = '***REDACTED***'

ITEM_KINDS = ('attachment', 'subpage')


def resolve_level(verbosity: int = 0, level: Optional[str] = None) -> int:
    """
    Pick the effective log level.

    An explicit level name wins over the -v count (0=WARNING, 1=INFO, 2+=DEBUG).

    Raises:
        ValueError: If `level` is not a standard level name
    """
    if level:
        name = level.upper()
        if name not in LEVEL_NAMES:
            raise ValueError(f"Invalid log level '{level}'. Must be one of: {', '.join(LEVEL_NAMES)}")
        return getattr(logging, name)

    if verbosity >= 2:
        return logging.DEBUG
    if verbosity == 1:
        return logging.INFO
    return logging.WARNING


def _console_handler(log_level: int, log_format: str, date_format: str) -> logging.Handler:
    handler = logging.StreamHandler()
    handler.setLevel(log_level)
    handler.setFormatter(colorlog.ColoredFormatter(
        fmt=f'%(log_color)s{log_format}',
        datefmt=date_format,
        log_colors=LEVEL_COLORS
    ))
    return handler


def _file_handler(log_file: str, log_level: int, log_format: str, date_format: str) -> logging.Handler:
    handler = logging.handlers.RotatingFileHandler(
        log_file,
        maxBytes=LOG_FILE_MAX_BYTES,
        backupCount=LOG_FILE_BACKUPS,
        encoding='utf-8'
    )
    handler.setLevel(log_level)
    handler.setFormatter(logging.Formatter(fmt=log_format, datefmt=date_format))
    return handler


def setup_logging(
    verbosity: int = 0,
    log_file: Optional[str] = None,
    log_format: Optional[str] = None,
    date_format: Optional[str] = None,
    level: Optional[str] = None
) -> logging.Logger:
    """
    Configure the `notion_vault_migrator` logger hierarchy.

    Console output is colored through colorlog; a rotating log file is added
    when `log_file` is given. Calling this again replaces the handlers, so the
    CLI can reconfigure once the config file has been read.

    Args:
        verbosity: Number of -v flags
        log_file: Optional path of a rotating log file
        log_format: Record format (defaults to time, logger, level, message)
        date_format: strftime format for timestamps
        level: Explicit level name, overriding `verbosity`

    Returns:
        The configured package logger
    """
    log_level = resolve_level(verbosity, level)
    log_format = log_format or DEFAULT_FORMAT
    date_format = date_format or DEFAULT_DATE_FORMAT

    # Third-party loggers (requests, urllib3) stay at WARNING through the root
    logging.basicConfig(level=logging.WARNING, format=log_format, datefmt=date_format)

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(log_level)
    logger.propagate = False
    logger.handlers.clear()
    logger.addHandler(_console_handler(log_level, log_format, date_format))

    level_name = logging.getLevelName(log_level)
    if not log_file:
        logger.info(f"Console logging only. Level: {level_name}")
        return logger

    try:
        logger.addHandler(_file_handler(log_file, log_level, log_format, date_format))
    except OSError as e:
        logger.warning(f"Could not open log file {log_file}: {e}")
    else:
        logger.info(f"Logging to {log_file} at level {level_name}")

    return logger


@dataclass
class TrackedItem:
    """One attachment or subpage registered with the tracker."""

    parent_page: str
    kind: str
    subtype: Optional[str] = None
    status: str = 'pending'
    error: Optional[str] = None


class ProgressTracker:
    """
    Observer for attachment and subpage progress within one import run.

    Purely informational: nothing in the pipeline reads its state to decide
    what to do next. Used as a context manager, it logs a summary on exit.
    """

    DIGEST_INTERVAL = 10

    def __init__(self, item_type: str = "items", logger: Optional[logging.Logger] = None):
        """
        Initialize progress tracker.

        Args:
            item_type: Label used in the exit summary
            logger: Logger instance
        """
        self.item_type = item_type
        self.logger = logger or logging.getLogger(f'{LOGGER_NAME}.progress')
        self.reset()

    def reset(self) -> None:
        """Forget every registered item, ready for another run."""
        self.items: Dict[str, TrackedItem] = {}
        self.processed_items = 0
        self.by_kind = {kind: {'total': 0, 'completed': 0, 'failed': 0} for kind in ITEM_KINDS}
        self.start_time: Optional[float] = None

    def __enter__(self) -> 'ProgressTracker':
        self.start_time = time.time()
        self.logger.debug(f"Tracking {self.item_type}")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self.start_time is None:
            return

        failed = self.failed_items
        if failed and failed == self.processed_items:
            emit = self.logger.error
        elif failed:
            emit = self.logger.warning
        else:
            emit = self.logger.info

        stats = self.get_stats()
        emit(f"--- {self.item_type}: {stats['processed']}/{stats['total']} processed "
             f"in {stats['elapsed_time_formatted']} ---")
        for label, kind in (('Attachments', 'attachments'), ('Subpages', 'subpages')):
            counts = stats[kind]
            emit(f"{label}: {counts['completed']}/{counts['total']} ({counts['failed']} failed)")

    @property
    def total_items(self) -> int:
        return len(self.items)

    @property
    def failed_items(self) -> int:
        return sum(counts['failed'] for counts in self.by_kind.values())

    def add_item(self, item_id: str, parent_page: str, kind: str, subtype: Optional[str] = None) -> None:
        """
        Register a pending attachment or subpage.

        Args:
            item_id: Unique id (usually the destination path)
            parent_page: Label of the page the item belongs to
            kind: 'attachment' or 'subpage'
            subtype: Media type for attachments (image, audio, video, file)
        """
        if kind not in self.by_kind:
            raise ValueError(f"Unknown item kind '{kind}'. Must be one of: {list(ITEM_KINDS)}")

        self.items[item_id] = TrackedItem(parent_page=parent_page, kind=kind, subtype=subtype)
        self.by_kind[kind]['total'] += 1
        self.logger.debug(f"Tracker: Adding {kind} item: {item_id} from page {parent_page}")

    def mark_complete(self, item_id: str, success: bool, error: Optional[str] = None) -> None:
        """
        Transition a registered item to success or error.

        Unknown ids are ignored.
        """
        item = self.items.get(item_id)
        if item is None:
            return

        item.status = 'success' if success else 'error'
        if error:
            item.error = error

        self.processed_items += 1
        self.by_kind[item.kind]['completed' if success else 'failed'] += 1

        if success:
            self.logger.debug(f"Tracker: Completed {item.kind} {item_id}")
        else:
            self.logger.warning(f"Tracker: {item.kind} {item_id} failed (in {item.parent_page}): {error}")

        if self.processed_items % self.DIGEST_INTERVAL == 0:
            self._log_digest()

    def _log_digest(self) -> None:
        total = self.total_items
        percentage = round(self.processed_items / total * 100) if total > 0 else 0
        attachments = self.by_kind['attachment']
        subpages = self.by_kind['subpage']
        self.logger.info(
            f"Progress: {self.processed_items}/{total} items ({percentage}%) - "
            f"Processed {attachments['completed']} attachments ({attachments['failed']} failed) and "
            f"{subpages['completed']} subpages ({subpages['failed']} failed)"
        )

    def get_stats(self) -> Dict[str, Any]:
        elapsed = time.time() - self.start_time if self.start_time is not None else 0.0
        return {
            'total': self.total_items,
            'processed': self.processed_items,
            'failed': self.failed_items,
            'attachments': dict(self.by_kind['attachment']),
            'subpages': dict(self.by_kind['subpage']),
            'elapsed_time': elapsed,
            'elapsed_time_formatted': self._format_elapsed(elapsed)
        }

    @staticmethod
    def _format_elapsed(seconds: float) -> str:
        """`5.3s`, `2m 5s` or `1h 2m 5s`."""
        if seconds < 60:
            return f"{seconds:.1f}s"

        minutes, secs = divmod(int(seconds), 60)
        hours, minutes = divmod(minutes, 60)
        if hours:
            return f"{hours}h {minutes}m {secs}s"
        return f"{minutes}m {secs}s"


def log_section(title: str) -> None:
    """Log a banner line framing `title`."""
    logger = logging.getLogger(LOGGER_NAME)
    rule = "=" * 60
    for line in ("", rule, f"  {title.upper()}", rule, ""):
        logger.info(line)


def log_config(config: Dict[str, Any]) -> None:
    """
    Log the effective configuration with secrets redacted.

    Args:
        config: Loaded and merged configuration dictionary
    """
    logger = logging.getLogger(LOGGER_NAME)
    safe = redact_secrets(config)

    log_section("Configuration")

    notion = safe.get('notion') or {}
    logger.info(f"Notion API: {notion.get('base_url', 'https://api.notion.com/v1')}")
    logger.info(f"API Key: {notion['api_key'] if notion.get('api_key') else 'Not Set'}")
    logger.info(f"Database ID: {notion.get('database_id', 'Not Set')}")
    logger.info(f"Vault Path: {(safe.get('vault') or {}).get('path', 'Not Set')}")

    migration = safe.get('migration') or {}
    for label, key, default in (
        ("Migration Path", 'migration_path', 'Not Set'),
        ("Attachment Path", 'attachment_path', ''),
        ("Subpages Path", 'subpages_path', 'subpages'),
        ("Attach Page ID", 'attach_page_id', False),
        ("Import Page Content", 'import_page_content', True),
        ("Import Subpages", 'import_subpages', True),
        ("Relation Content Page", 'create_relation_content_page', True),
        ("Semantic Linking", 'create_semantic_linking', True),
        ("Squash Date Names", 'squash_date_names_for_dataview', True),
    ):
        logger.info(f"{label}: {migration.get(key, default)}")

    disabled = [name for name, enabled in (migration.get('enabled_properties') or {}).items() if enabled is False]
    logger.info(f"Disabled Properties: {', '.join(disabled) if disabled else 'None'}")


def redact_secrets(value: Any, key: str = '') -> Any:
    """Copy `value`, replacing string values under secret-looking keys."""
    if isinstance(value, dict):
        return {k: redact_secrets(v, str(k)) for k, v in value.items()}
    if isinstance(value, list):
        return [redact_secrets(item, key) for item in value]
    if isinstance(value, str) and any(part in key.lower() for part in SECRET_KEY_PARTS):
        return REDACTED
    return value


__all__ = [
    'setup_logging',
    'resolve_level',
    'ProgressTracker',
    'TrackedItem',
    'log_section',
    'log_config',
    'redact_secrets',
]

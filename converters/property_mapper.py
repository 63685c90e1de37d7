"""Property mapper converting typed record properties into vault front matter."""

import logging
import posixpath
import re
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from dateutil import parser as date_parser

from errors import DownloadError
from exporters.attachment_manager import AssetFetcher
from exporters.file_naming import get_file_extension, get_url_basename, sanitize_title
from fetchers.base_fetcher import BaseFetcher
from logger import ProgressTracker
from models import (
    CheckboxProperty,
    DateProperty,
    FilesProperty,
    FormulaProperty,
    FormulaValue,
    MigrationSettings,
    MultiSelectProperty,
    NumberProperty,
    PropertyKind,
    Record,
    RelationProperty,
    RichTextProperty,
    RollupProperty,
    SelectProperty,
    TitleProperty,
    UrlProperty,
)

# ASCII word characters only
KEY_NEEDS_QUOTES = re.compile(r'[^\w\s]', re.ASCII)
VALUE_NEEDS_QUOTES = re.compile(r'[\W_]', re.ASCII)

FRONT_MATTER_DELIMITER = '---\n'
PERCENT_PER_GROUP = 'percent_per_group'


def safe_key(key: str) -> str:
    """Quote a key containing anything other than word characters and whitespace."""
    return f'"{key}"' if KEY_NEEDS_QUOTES.search(key) else key


def safe_value(value: Optional[str]) -> str:
    """
    Quote a value containing any non-word character, underscores included.

    Plain phrases such as `In Progress` come out quoted.
    """
    if value is None:
        return 'null'
    return f'"{value}"' if VALUE_NEEDS_QUOTES.search(value) else value


def squash_key(key: str) -> str:
    """`Due date` -> `DueDate`: capitalize each space-separated word and join."""
    return ''.join(word[:1].upper() + word[1:] for word in key.split(' '))


def format_number(number: Any) -> str:
    """Render a number the way JSON clients print it (no trailing `.0`)."""
    if isinstance(number, float) and number.is_integer():
        return str(int(number))
    return str(number)


def format_scalar(value: Any) -> str:
    if value is None:
        return 'null'
    if isinstance(value, bool):
        return 'true' if value else 'false'
    if isinstance(value, (int, float)):
        return format_number(value)
    return str(value)


def to_utc_iso(value: str) -> Optional[str]:
    """
    Convert a date or datetime string to UTC ISO-8601 with milliseconds.

    Naive values are taken as UTC. Returns None when the value is unparseable.
    """
    try:
        parsed = date_parser.isoparse(value)
    except (ValueError, OverflowError):
        return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    else:
        parsed = parsed.astimezone(timezone.utc)

    return _format_iso_millis(parsed)


def _format_iso_millis(moment: datetime) -> str:
    return f"{moment.strftime('%Y-%m-%dT%H:%M:%S')}.{moment.microsecond // 1000:03d}Z"


@dataclass
class MappedProperties:
    """
    Result of mapping one record's properties.

    Attributes:
        front_matter: Front matter block including both `---` delimiters
        semantic_links: Dataview `key:: [[A]], [[B]]` lines
        relation_links: YAML wikilink lists destined for after the front matter
        page_title: Alias derived from the title property, threaded into the
            block renderer for naming media files
    """

    front_matter: str = ''
    semantic_links: List[str] = field(default_factory=list)
    relation_links: List[str] = field(default_factory=list)
    page_title: str = ''

    @property
    def relation_fragments(self) -> List[str]:
        """Only one kind of relation fragment is appended; semantic links win."""
        if self.semantic_links:
            return list(self.semantic_links)
        return list(self.relation_links)

    @property
    def relation_text(self) -> str:
        return ''.join(self.relation_fragments)

    def render(self) -> str:
        """Front matter followed by the chosen relation fragments."""
        return self.front_matter + self.relation_text


class _MappingRun:
    """Accumulates output lines while one record is being mapped."""

    def __init__(self, record: Record, settings: MigrationSettings):
        self.record = record
        self.settings = settings
        self.lines: List[str] = []
        self.semantic_links: List[str] = []
        self.relation_links: List[str] = []
        self.page_title = ''

    def emit(self, line: str) -> None:
        self.lines.append(line if line.endswith('\n') else f"{line}\n")


class PropertyMapper:
    """
    Converts a record's typed properties into front matter and relation fragments.

    Relation names are resolved through the upstream fetcher and files are
    downloaded through the asset fetcher while mapping, so a single `map` call
    may perform network I/O. A failed relation lookup raises TransportError; a
    failed file download is recorded inline and mapping continues.
    """

    def __init__(
        self,
        fetcher: BaseFetcher,
        asset_fetcher: AssetFetcher,
        settings: MigrationSettings,
        tracker: Optional[ProgressTracker] = None,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize the property mapper.

        Args:
            fetcher: Upstream source used to resolve related record names
            asset_fetcher: Downloads `files` property attachments
            settings: Run settings (enabled properties and formatting flags)
            tracker: Optional progress observer for attachment downloads
            logger: Logger instance
        """
        self.fetcher = fetcher
        self.asset_fetcher = asset_fetcher
        self.settings = settings
        self.tracker = tracker
        self.logger = logger or logging.getLogger('notion_vault_migrator.converters.property_mapper')

        self._handlers: Dict[PropertyKind, Callable[[str, Any, _MappingRun], None]] = {
            PropertyKind.SELECT: self._map_select,
            PropertyKind.STATUS: self._map_status,
            PropertyKind.MULTI_SELECT: self._map_multi_select,
            PropertyKind.RICH_TEXT: self._map_rich_text,
            PropertyKind.CHECKBOX: self._map_checkbox,
            PropertyKind.DATE: self._map_date,
            PropertyKind.CREATED_TIME: self._map_date,
            PropertyKind.NUMBER: self._map_number,
            PropertyKind.URL: self._map_url,
            PropertyKind.FILES: self._map_files,
            PropertyKind.RELATION: self._map_relation,
            PropertyKind.ROLLUP: self._map_rollup,
            PropertyKind.FORMULA: self._map_formula,
            PropertyKind.TITLE: self._map_title,
        }

        self.stats = {
            'records_mapped': 0,
            'properties_mapped': 0,
            'properties_skipped': 0,
            'relations_resolved': 0,
            'files_downloaded': 0,
            'files_failed': 0
        }

    @property
    def handled_kinds(self) -> List[PropertyKind]:
        return list(self._handlers)

    def map(self, record: Record) -> MappedProperties:
        """
        Map every enabled property of `record`.

        Args:
            record: Record whose properties are converted

        Returns:
            MappedProperties with front matter, relation fragments and alias

        Raises:
            TransportError: If a related record cannot be fetched
        """
        run = _MappingRun(record, self.settings)

        for key, prop in record.properties.items():
            if not self.settings.is_property_enabled(key):
                self.stats['properties_skipped'] += 1
                continue

            self._handlers[prop.kind](key, prop, run)
            self.stats['properties_mapped'] += 1

        self.stats['records_mapped'] += 1

        return MappedProperties(
            front_matter=FRONT_MATTER_DELIMITER + ''.join(run.lines) + FRONT_MATTER_DELIMITER,
            semantic_links=run.semantic_links,
            relation_links=run.relation_links,
            page_title=run.page_title,
        )

    # --- Scalar kinds ------------------------------------------------------

    def _map_select(self, key: str, prop: SelectProperty, run: _MappingRun) -> None:
        if prop.option is not None:
            run.emit(f"{safe_key(key)}: {safe_value(prop.option)}")

    def _map_status(self, key: str, prop: SelectProperty, run: _MappingRun) -> None:
        if prop.option:
            run.emit(f"{safe_key(key)}: {safe_value(prop.option)}")
        else:
            run.emit(f"{safe_key(key)}: ")

    def _map_multi_select(self, key: str, prop: MultiSelectProperty, run: _MappingRun) -> None:
        if prop.options:
            run.emit(f"{safe_key(key)}: {' '.join(prop.options)}")

    def _map_rich_text(self, key: str, prop: RichTextProperty, run: _MappingRun) -> None:
        if prop.runs:
            text = prop.text.replace('\n', ' ')
            run.emit(f"{safe_key(key)}: >-\n  {safe_value(text)}")
        else:
            run.emit(f"{safe_key(key)}: null")

    def _map_checkbox(self, key: str, prop: CheckboxProperty, run: _MappingRun) -> None:
        run.emit(f"{safe_key(key)}: {'true' if prop.checked else 'false'}")

    def _map_date(self, key: str, prop: DateProperty, run: _MappingRun) -> None:
        final_key = squash_key(key) if self.settings.squash_date_names_for_dataview else key

        iso_value = to_utc_iso(prop.start) if prop.start else None
        if prop.start and iso_value is None:
            self.logger.warning(f"Could not parse date '{prop.start}' for property {key}")

        run.emit(f"{safe_key(final_key)}: {iso_value if iso_value is not None else 'null'}")

    def _map_number(self, key: str, prop: NumberProperty, run: _MappingRun) -> None:
        if prop.number is not None:
            run.emit(f"{safe_key(key)}: {format_number(prop.number)}")
        else:
            run.emit(f"{safe_key(key)}: ")

    def _map_url(self, key: str, prop: UrlProperty, run: _MappingRun) -> None:
        if prop.url:
            run.emit(f"{safe_key(key)}: {prop.url}")
        else:
            run.emit(f"{safe_key(key)}: ")

    # --- Files -----------------------------------------------------------

    def _map_files(self, key: str, prop: FilesProperty, run: _MappingRun) -> None:
        run.emit(f"{safe_key(key)}:")

        if not prop.files:
            run.emit("  []")
            return

        for file_ref in prop.files:
            if file_ref.is_external:
                file_name = get_url_basename(file_ref.url or '') or f"external_file_{int(time.time() * 1000)}"
            else:
                file_name = file_ref.name or f"notion_file_{int(time.time() * 1000)}"

            if not file_ref.url:
                self.logger.warning(f"No URL found for file: {file_name}")
                continue

            extension = get_file_extension(file_ref.url)
            safe_file_name = sanitize_title(file_name)
            output_path = posixpath.join(
                self.settings.attachment_path,
                f"{safe_file_name}.{extension}" if extension else safe_file_name
            )

            if self.tracker:
                self.tracker.add_item(output_path, run.record.display_name, 'attachment', 'file')

            try:
                self.asset_fetcher.fetch(file_ref.url, output_path)
            except DownloadError as e:
                self.stats['files_failed'] += 1
                self.logger.error(f"Failed to download file: {e}")
                if self.tracker:
                    self.tracker.mark_complete(output_path, False, str(e))
                run.emit(f"  - Failed: {file_ref.name or 'unnamed file'} ({e})")
                continue

            self.stats['files_downloaded'] += 1
            if self.tracker:
                self.tracker.mark_complete(output_path, True)
            run.emit(f"  - [[{posixpath.basename(output_path)}]]")
            self.logger.info(f"Downloaded file: {file_name}")

    # --- Relations -------------------------------------------------------

    def _resolve_related_names(self, prop: RelationProperty) -> List[str]:
        names = []
        for related_id in prop.related_ids:
            related = self.fetcher.fetch_record(related_id)
            names.append(related.display_name)
            self.stats['relations_resolved'] += 1
        return names

    def _map_relation(self, key: str, prop: RelationProperty, run: _MappingRun) -> None:
        if not prop.related_ids:
            run.emit(f"{safe_key(key)}: ")
            return

        related_names = self._resolve_related_names(prop)

        if self.settings.create_semantic_linking:
            semantic_key = safe_key(key).replace(' ', '_')
            links = ', '.join(f"[[{name}]]" for name in related_names)
            run.semantic_links.append(f"{semantic_key}:: {links}\n")

        if self.settings.create_relation_content_page:
            items = '\n'.join(f"  - [[{name}]]" for name in related_names)
            run.relation_links.append(f"{safe_key(key)}:\n{items}\n")
        else:
            items = '\n'.join(f"  - {name}" for name in related_names)
            run.emit(f"{safe_key(key)}:\n{items}")

    # --- Computed kinds --------------------------------------------------

    def _map_rollup(self, key: str, prop: RollupProperty, run: _MappingRun) -> None:
        if prop.items is None:
            run.emit(f"{safe_key(key)}: null")
            return

        for item in prop.items:
            if item.type != 'formula' or item.formula is None:
                continue

            formula = item.formula
            if formula.type == 'string':
                run.emit(f"{safe_key(key)}: {safe_value(formula.value)}")
            elif formula.type == 'boolean':
                run.emit(f"{safe_key(key)}: {format_scalar(formula.value)}")
            elif formula.type == 'number' and item.function == PERCENT_PER_GROUP:
                value = item.number if item.number is not None else formula.value
                run.emit(f"{safe_key(key)}: {format_scalar(value)}")

    def _map_formula(self, key: str, prop: FormulaProperty, run: _MappingRun) -> None:
        formula: Optional[FormulaValue] = prop.formula
        if formula is None or formula.type not in ('number', 'string', 'boolean'):
            self.logger.warning(f"Unknown formula type: {formula.type if formula else None} ({key})")
            return

        run.emit(f"{safe_key(key)}: {format_scalar(formula.value)}")

    def _map_title(self, key: str, prop: TitleProperty, run: _MappingRun) -> None:
        text = prop.text
        if text is None:
            run.emit("Alias: ")
            return

        alias = safe_key(text.replace(' ', '_'))
        run.page_title = alias
        run.emit(f"Alias: {alias}")

    def get_stats(self) -> Dict[str, int]:
        return self.stats.copy()


__all__ = [
    'PropertyMapper',
    'MappedProperties',
    'safe_key',
    'safe_value',
    'squash_key',
    'format_number',
    'to_utc_iso',
]

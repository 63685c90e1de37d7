"""Data models for Notion to Obsidian migration pipeline."""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

logger = logging.getLogger('notion_vault_migrator')


class PropertyKind(Enum):
    """Database property types understood by the property mapper."""
    SELECT = "select"
    MULTI_SELECT = "multi_select"
    STATUS = "status"
    RICH_TEXT = "rich_text"
    CHECKBOX = "checkbox"
    DATE = "date"
    CREATED_TIME = "created_time"
    NUMBER = "number"
    URL = "url"
    FILES = "files"
    RELATION = "relation"
    ROLLUP = "rollup"
    FORMULA = "formula"
    TITLE = "title"


class BlockKind(Enum):
    """Content block types understood by the block renderer."""
    PARAGRAPH = "paragraph"
    HEADING_1 = "heading_1"
    HEADING_2 = "heading_2"
    HEADING_3 = "heading_3"
    BULLETED_LIST_ITEM = "bulleted_list_item"
    NUMBERED_LIST_ITEM = "numbered_list_item"
    TO_DO = "to_do"
    IMAGE = "image"
    VIDEO = "video"
    AUDIO = "audio"
    FILE = "file"
    CODE = "code"
    TABLE = "table"
    TABLE_ROW = "table_row"
    TOGGLE = "toggle"
    BOOKMARK = "bookmark"
    LINK_PREVIEW = "link_preview"
    CHILD_PAGE = "child_page"

    @property
    def heading_level(self) -> int:
        """Heading depth (1-3) or 0 for non-heading kinds."""
        if self.value.startswith('heading_'):
            return int(self.value.split('_')[1])
        return 0

    @property
    def is_media(self) -> bool:
        return self in (BlockKind.IMAGE, BlockKind.VIDEO, BlockKind.AUDIO, BlockKind.FILE)


class FileSource(Enum):
    """Where a file or media resource lives."""
    EXTERNAL = "external"
    HOSTED = "file"


class ImportState(Enum):
    """Lifecycle of one orchestrated import run."""
    IDLE = "idle"
    RUNNING = "running"
    STOPPING = "stopping"
    COMPLETED = "completed"


@dataclass
class RichTextRun:
    """One styled run of text inside a block or property."""

    plain_text: str
    bold: bool = False
    italic: bool = False
    href: Optional[str] = None
    mention_date: Optional[str] = None

    @property
    def is_date_mention(self) -> bool:
        return self.mention_date is not None


@dataclass
class FileRef:
    """A file attached to a `files` property or a media block."""

    source: FileSource
    url: Optional[str]
    name: Optional[str] = None

    @property
    def is_external(self) -> bool:
        return self.source is FileSource.EXTERNAL


# --- Property variants -----------------------------------------------------


@dataclass
class Property:
    """Base class for typed record properties."""

    name: str
    kind: PropertyKind


@dataclass
class SelectProperty(Property):
    """`select` and `status` properties: a single optional option name."""

    option: Optional[str] = None


@dataclass
class MultiSelectProperty(Property):
    options: List[str] = field(default_factory=list)


@dataclass
class RichTextProperty(Property):
    runs: List[RichTextRun] = field(default_factory=list)

    @property
    def text(self) -> str:
        return ''.join(run.plain_text for run in self.runs)


@dataclass
class CheckboxProperty(Property):
    checked: bool = False


@dataclass
class DateProperty(Property):
    """`date` and `created_time` properties."""

    start: Optional[str] = None


@dataclass
class NumberProperty(Property):
    number: Optional[float] = None


@dataclass
class UrlProperty(Property):
    url: Optional[str] = None


@dataclass
class FilesProperty(Property):
    files: List[FileRef] = field(default_factory=list)


@dataclass
class RelationProperty(Property):
    """Ordered ids of the records this property points at."""

    related_ids: List[str] = field(default_factory=list)


@dataclass
class FormulaValue:
    """Result of a formula; `type` is one of string, number, boolean, date."""

    type: str
    value: Any = None


@dataclass
class RollupItem:
    """One element of a rollup array."""

    type: str
    formula: Optional[FormulaValue] = None
    function: Optional[str] = None
    number: Optional[float] = None


@dataclass
class RollupProperty(Property):
    """A rollup; `items` is None when the upstream array is absent."""

    items: Optional[List[RollupItem]] = None


@dataclass
class FormulaProperty(Property):
    formula: Optional[FormulaValue] = None


@dataclass
class TitleProperty(Property):
    runs: List[RichTextRun] = field(default_factory=list)

    @property
    def text(self) -> Optional[str]:
        """Text of the first title run, as the vault alias is derived from it."""
        if not self.runs:
            return None
        return self.runs[0].plain_text


# --- Blocks ----------------------------------------------------------------


@dataclass
class ContentBlock:
    """A single block of page content, possibly with nested children."""

    id: str
    kind: BlockKind
    rich_text: List[RichTextRun] = field(default_factory=list)
    has_children: bool = False
    checked: bool = False
    language: Optional[str] = None
    media: Optional[FileRef] = None
    url: Optional[str] = None
    caption: List[RichTextRun] = field(default_factory=list)
    title: Optional[str] = None
    cells: List[str] = field(default_factory=list)
    table_rows: List[List[str]] = field(default_factory=list)
    children: Optional[List['ContentBlock']] = None

    @property
    def text(self) -> str:
        return ''.join(run.plain_text for run in self.rich_text)


# --- Records ---------------------------------------------------------------


@dataclass
class Record:
    """One database row (page) with its typed properties."""

    id: str
    properties: Dict[str, Property] = field(default_factory=dict)
    url: Optional[str] = None
    blocks: Optional[List[ContentBlock]] = None

    @property
    def title_property(self) -> Optional[TitleProperty]:
        for prop in self.properties.values():
            if isinstance(prop, TitleProperty) and prop.runs:
                return prop
        return None

    @property
    def title_text(self) -> Optional[str]:
        title_property = self.title_property
        return title_property.text if title_property else None

    @property
    def display_name(self) -> str:
        return self.title_text or self.id


# --- Run control and settings ------------------------------------------------


@dataclass
class ImportControl:
    """
    Cooperative cancellation token shared by every stage of one run.

    `is_importing` means "keep consuming records"; `force_stop` means "skip the
    remaining writes and return from recursive rendering as soon as possible".
    """

    is_importing: bool = False
    force_stop: bool = False

    def start(self) -> None:
        self.is_importing = True
        self.force_stop = False

    def halt(self) -> None:
        """Stop consuming new records but let queued work finish."""
        self.is_importing = False

    def request_stop(self) -> None:
        """Abort: stop consuming records and skip writes not yet queued."""
        self.is_importing = False
        self.force_stop = True

    def finish(self) -> None:
        self.is_importing = False


@dataclass
class MigrationSettings:
    """Persisted run state, read once when a run starts."""

    api_key: str = ""
    database_id: str = ""
    migration_path: str = ""
    attachment_path: str = ""
    subpages_path: str = "subpages"
    attach_page_id: bool = False
    import_page_content: bool = True
    import_subpages: bool = True
    create_relation_content_page: bool = True
    create_semantic_linking: bool = True
    squash_date_names_for_dataview: bool = True
    enabled_properties: Dict[str, bool] = field(default_factory=dict)

    def is_property_enabled(self, name: str) -> bool:
        """Properties are enabled unless explicitly switched off."""
        return self.enabled_properties.get(name) is not False

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> 'MigrationSettings':
        """Build settings from a loaded configuration dictionary."""
        notion = config.get('notion', {}) or {}
        migration = config.get('migration', {}) or {}
        defaults = cls()

        return cls(
            api_key=notion.get('api_key', defaults.api_key) or "",
            database_id=notion.get('database_id', defaults.database_id) or "",
            migration_path=migration.get('migration_path', defaults.migration_path) or "",
            attachment_path=migration.get('attachment_path', defaults.attachment_path) or "",
            subpages_path=migration.get('subpages_path', defaults.subpages_path) or "",
            attach_page_id=bool(migration.get('attach_page_id', defaults.attach_page_id)),
            import_page_content=bool(migration.get('import_page_content', defaults.import_page_content)),
            import_subpages=bool(migration.get('import_subpages', defaults.import_subpages)),
            create_relation_content_page=bool(
                migration.get('create_relation_content_page', defaults.create_relation_content_page)
            ),
            create_semantic_linking=bool(
                migration.get('create_semantic_linking', defaults.create_semantic_linking)
            ),
            squash_date_names_for_dataview=bool(
                migration.get('squash_date_names_for_dataview', defaults.squash_date_names_for_dataview)
            ),
            enabled_properties=dict(migration.get('enabled_properties') or {}),
        )


__all__ = [
    'PropertyKind',
    'BlockKind',
    'FileSource',
    'ImportState',
    'RichTextRun',
    'FileRef',
    'Property',
    'SelectProperty',
    'MultiSelectProperty',
    'RichTextProperty',
    'CheckboxProperty',
    'DateProperty',
    'NumberProperty',
    'UrlProperty',
    'FilesProperty',
    'RelationProperty',
    'FormulaValue',
    'RollupItem',
    'RollupProperty',
    'FormulaProperty',
    'TitleProperty',
    'ContentBlock',
    'Record',
    'ImportControl',
    'MigrationSettings',
]

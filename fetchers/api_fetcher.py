"""API fetcher implementation for retrieving Notion content via REST API."""

import logging
from typing import Any, Callable, Dict, List, Optional

from errors import TransportError
from models import (
    BlockKind,
    CheckboxProperty,
    ContentBlock,
    DateProperty,
    FileRef,
    FileSource,
    FilesProperty,
    FormulaProperty,
    FormulaValue,
    MultiSelectProperty,
    NumberProperty,
    Property,
    PropertyKind,
    Record,
    RelationProperty,
    RichTextProperty,
    RichTextRun,
    RollupItem,
    RollupProperty,
    SelectProperty,
    TitleProperty,
    UrlProperty,
)
from notion_api_client import NotionClient
from .base_fetcher import BaseFetcher

logger = logging.getLogger('notion_vault_migrator.fetcher.api')


# --- Payload parsing ---------------------------------------------------------


def parse_rich_text(items: Optional[List[Dict[str, Any]]]) -> List[RichTextRun]:
    """Convert a Notion rich text array into runs."""
    runs = []
    for item in items or []:
        annotations = item.get('annotations') or {}
        mention_date = None
        if item.get('type') == 'mention':
            mention = item.get('mention') or {}
            if mention.get('type') == 'date':
                mention_date = (mention.get('date') or {}).get('start') or item.get('plain_text', '')
        runs.append(RichTextRun(
            plain_text=item.get('plain_text', ''),
            bold=bool(annotations.get('bold')),
            italic=bool(annotations.get('italic')),
            href=item.get('href'),
            mention_date=mention_date,
        ))
    return runs


def parse_file_ref(data: Dict[str, Any]) -> FileRef:
    """Convert a Notion file object (external or hosted) into a FileRef."""
    file_type = data.get('type')
    if file_type == 'external':
        return FileRef(
            source=FileSource.EXTERNAL,
            url=(data.get('external') or {}).get('url'),
            name=data.get('name')
        )
    return FileRef(
        source=FileSource.HOSTED,
        url=(data.get('file') or {}).get('url'),
        name=data.get('name')
    )


def _parse_formula(data: Optional[Dict[str, Any]]) -> Optional[FormulaValue]:
    if not data:
        return None
    formula_type = data.get('type', '')
    return FormulaValue(type=formula_type, value=data.get(formula_type))


def _parse_rollup(name: str, payload: Optional[Dict[str, Any]]) -> RollupProperty:
    array = payload.get('array') if payload else None
    if not isinstance(array, list):
        return RollupProperty(name=name, kind=PropertyKind.ROLLUP, items=None)

    rollup_function = payload.get('function')
    items = []
    for entry in array:
        entry_type = entry.get('type', '')
        items.append(RollupItem(
            type=entry_type,
            formula=_parse_formula(entry.get('formula')) if entry_type == 'formula' else None,
            function=entry.get('function', rollup_function),
            number=entry.get('number'),
        ))
    return RollupProperty(name=name, kind=PropertyKind.ROLLUP, items=items)


def _parse_select(name: str, kind: PropertyKind, payload: Any) -> Property:
    return SelectProperty(name=name, kind=kind, option=(payload or {}).get('name'))


def _parse_date(name: str, kind: PropertyKind, payload: Any) -> Property:
    if kind is PropertyKind.CREATED_TIME:
        return DateProperty(name=name, kind=kind, start=payload or None)
    return DateProperty(name=name, kind=kind, start=(payload or {}).get('start'))


PROPERTY_PARSERS: Dict[PropertyKind, Callable[[str, PropertyKind, Any], Property]] = {
    PropertyKind.SELECT: _parse_select,
    PropertyKind.STATUS: _parse_select,
    PropertyKind.MULTI_SELECT: lambda name, kind, payload: MultiSelectProperty(
        name=name, kind=kind, options=[option.get('name', '') for option in payload or []]
    ),
    PropertyKind.RICH_TEXT: lambda name, kind, payload: RichTextProperty(
        name=name, kind=kind, runs=parse_rich_text(payload)
    ),
    PropertyKind.CHECKBOX: lambda name, kind, payload: CheckboxProperty(
        name=name, kind=kind, checked=bool(payload)
    ),
    PropertyKind.DATE: _parse_date,
    PropertyKind.CREATED_TIME: _parse_date,
    PropertyKind.NUMBER: lambda name, kind, payload: NumberProperty(name=name, kind=kind, number=payload),
    PropertyKind.URL: lambda name, kind, payload: UrlProperty(name=name, kind=kind, url=payload),
    PropertyKind.FILES: lambda name, kind, payload: FilesProperty(
        name=name, kind=kind, files=[parse_file_ref(item) for item in payload or []]
    ),
    PropertyKind.RELATION: lambda name, kind, payload: RelationProperty(
        name=name, kind=kind, related_ids=[item['id'] for item in payload or [] if item.get('id')]
    ),
    PropertyKind.ROLLUP: lambda name, kind, payload: _parse_rollup(name, payload),
    PropertyKind.FORMULA: lambda name, kind, payload: FormulaProperty(
        name=name, kind=kind, formula=_parse_formula(payload)
    ),
    PropertyKind.TITLE: lambda name, kind, payload: TitleProperty(
        name=name, kind=kind, runs=parse_rich_text(payload)
    ),
}


def parse_property(name: str, data: Dict[str, Any]) -> Optional[Property]:
    """Convert one property payload, or return None for unsupported types."""
    type_name = data.get('type')
    try:
        kind = PropertyKind(type_name)
    except ValueError:
        logger.debug(f"Skipping unsupported property type '{type_name}' ({name})")
        return None
    return PROPERTY_PARSERS[kind](name, kind, data.get(type_name))


def parse_record(data: Dict[str, Any]) -> Record:
    """Convert a Notion page object into a Record."""
    properties = {}
    for name, prop_data in (data.get('properties') or {}).items():
        prop = parse_property(name, prop_data)
        if prop is not None:
            properties[name] = prop
    return Record(id=data['id'], properties=properties, url=data.get('url'))


def parse_block(data: Dict[str, Any]) -> Optional[ContentBlock]:
    """Convert a Notion block object, or return None for unsupported types."""
    type_name = data.get('type')
    try:
        kind = BlockKind(type_name)
    except ValueError:
        logger.debug(f"Skipping unsupported block type '{type_name}' ({data.get('id')})")
        return None

    payload = data.get(type_name) or {}
    block = ContentBlock(
        id=data.get('id', ''),
        kind=kind,
        rich_text=parse_rich_text(payload.get('rich_text')),
        has_children=bool(data.get('has_children')),
    )

    if kind is BlockKind.TO_DO:
        block.checked = bool(payload.get('checked'))
    elif kind is BlockKind.CODE:
        block.language = payload.get('language')
    elif kind.is_media:
        block.media = parse_file_ref(payload)
        block.caption = parse_rich_text(payload.get('caption'))
    elif kind in (BlockKind.BOOKMARK, BlockKind.LINK_PREVIEW):
        block.url = payload.get('url')
        block.caption = parse_rich_text(payload.get('caption'))
    elif kind is BlockKind.CHILD_PAGE:
        block.title = payload.get('title')
    elif kind is BlockKind.TABLE_ROW:
        block.cells = [
            ''.join(run.plain_text for run in parse_rich_text(cell))
            for cell in payload.get('cells') or []
        ]
    elif kind is BlockKind.TABLE:
        headers = payload.get('headers')
        rows = payload.get('rows')
        if headers and rows is not None:
            block.table_rows = [list(headers)] + [list(row) for row in rows]

    return block


# --- Fetcher -------------------------------------------------------------------


class ApiFetcher(BaseFetcher):
    """Fetches Notion databases, pages and blocks via the REST API."""

    def __init__(self, config: Dict[str, Any], logger=None, client: Optional[NotionClient] = None):
        """
        Initialize API fetcher with configuration.

        Args:
            config: Configuration dictionary with a notion section
            logger: Logger instance (optional)
            client: Pre-built NotionClient (optional, built from config otherwise)
        """
        super().__init__(config, logger)
        self.client = client or NotionClient.from_config(config)
        self._api_calls_made = 0

    def query_records(self, container_id: str) -> List[Record]:
        self._api_calls_made += 1
        return [parse_record(page) for page in self.client.query_database(container_id)]

    def fetch_record(self, record_id: str) -> Record:
        self._api_calls_made += 1
        return parse_record(self.client.get_page(record_id))

    def fetch_child_blocks(self, block_id: str) -> List[ContentBlock]:
        self._api_calls_made += 1
        blocks = []
        for item in self.client.get_block_children(block_id):
            block = parse_block(item)
            if block is not None:
                blocks.append(block)
        return blocks

    def fetch_container_name(self, container_id: str) -> Optional[str]:
        try:
            self._api_calls_made += 1
            data = self.client.get_database(container_id)
        except TransportError as e:
            self.logger.error(f"Error fetching database name: {e}")
            return None

        title = data.get('title') or []
        if not title:
            return None
        return title[0].get('plain_text')

    def get_stats(self) -> Dict[str, int]:
        return {'api_calls': self._api_calls_made}

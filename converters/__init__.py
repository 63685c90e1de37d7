"""Converters package turning Notion records and blocks into Obsidian markdown."""

from .block_renderer import BlockRenderer, PageContext, RendererState, quote_lines
from .property_mapper import MappedProperties, PropertyMapper, safe_key, safe_value, squash_key
from .rich_text import format_date_mention, format_paragraph, format_styled, plain_text


def assemble_note(mapped: MappedProperties, body: str = '') -> str:
    """
    Assemble the final note text for one record.

    Layout:
    1. Front matter between `---` lines
    2. Relation fragments (semantic links or wikilink lists, never both)
    3. Rendered page body

    Args:
        mapped: Result of PropertyMapper.map
        body: Rendered block content (empty when content import is off)

    Returns:
        Complete markdown note
    """
    return mapped.render() + (body or '')


__all__ = [
    'assemble_note',
    'PropertyMapper',
    'MappedProperties',
    'BlockRenderer',
    'RendererState',
    'PageContext',
    'quote_lines',
    'safe_key',
    'safe_value',
    'squash_key',
    'format_date_mention',
    'format_paragraph',
    'format_styled',
    'plain_text',
]

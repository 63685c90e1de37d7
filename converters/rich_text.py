"""Rich text run formatting shared by the block renderer."""

import logging
from typing import Iterable

from dateutil import parser as date_parser

from models import RichTextRun

logger = logging.getLogger('notion_vault_migrator.converters.rich_text')

DATE_MENTION_FORMAT = '%d.%m.%Y'


def plain_text(runs: Iterable[RichTextRun]) -> str:
    """Concatenate the plain text of every run."""
    return ''.join(run.plain_text for run in runs)


def format_date_mention(value: str) -> str:
    """
    Render a date mention as a wikilink to a `DD.MM.YYYY` daily note.

    Values that cannot be parsed as a date are linked verbatim.
    """
    try:
        parsed = date_parser.parse(value)
    except (ValueError, OverflowError):
        logger.debug(f"Could not parse date mention '{value}'")
        return f"[[{value}]]"
    return f"[[{parsed.strftime(DATE_MENTION_FORMAT)}]]"


def format_styled(runs: Iterable[RichTextRun]) -> str:
    """
    Render runs with bold and italic emphasis.

    Used for headings, list items and to-dos. Bold is applied first, so a run
    that is both renders as `***text***`.
    """
    parts = []
    for run in runs:
        text = run.plain_text
        if run.bold:
            text = f"**{text}**"
        if run.italic:
            text = f"*{text}*"
        parts.append(text)
    return ''.join(parts)


def format_paragraph(runs: Iterable[RichTextRun]) -> str:
    """Render paragraph runs: hyperlinks as markdown links, date mentions as daily-note links."""
    parts = []
    for run in runs:
        if run.is_date_mention:
            parts.append(format_date_mention(run.mention_date))
        elif run.href:
            parts.append(f"[{run.plain_text}]({run.href})")
        else:
            parts.append(run.plain_text)
    return ''.join(parts)


__all__ = [
    'plain_text',
    'format_date_mention',
    'format_styled',
    'format_paragraph',
]

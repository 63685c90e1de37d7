"""Block renderer converting a page's content block tree into markdown."""

import logging
import posixpath
import time
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional
from urllib.parse import unquote, urlparse

from errors import DownloadError, TransportError
from exporters.attachment_manager import AssetFetcher
from exporters.file_naming import get_image_extension, sanitize_title, unique_file_name
from exporters.markdown_exporter import MarkdownExporter
from fetchers.base_fetcher import BaseFetcher
from logger import ProgressTracker
from models import BlockKind, ContentBlock, ImportControl, MigrationSettings
from .rich_text import format_paragraph, format_styled, plain_text

NOTION_PAGE_URL = 'https://www.notion.so/{page_id}'

# Blocks whose children are consumed by the block itself
SELF_CONTAINED_KINDS = (BlockKind.CHILD_PAGE, BlockKind.TABLE)


@dataclass
class RendererState:
    """Numbering state for one nesting level."""

    previous_kind: Optional[BlockKind] = None
    number_counter: int = 1


@dataclass
class PageContext:
    """State shared by every nesting level of one page's render."""

    page_name: str
    file_counter: int = 1


class BlockRenderer:
    """
    Recursively converts content blocks into markdown text.

    Hosted media is downloaded into the attachment folder as it is met, and
    child pages are rendered through `extract_page_content` and queued for
    writing into the subpages folder. The shared ImportControl is checked
    before every block and again before any network-bound step; when a force
    stop is requested the text accumulated so far is returned.
    """

    def __init__(
        self,
        fetcher: BaseFetcher,
        asset_fetcher: AssetFetcher,
        exporter: MarkdownExporter,
        settings: MigrationSettings,
        control: ImportControl,
        tracker: Optional[ProgressTracker] = None,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize the block renderer.

        Args:
            fetcher: Upstream source for child blocks
            asset_fetcher: Downloads hosted media
            exporter: Write stage for subpage notes
            settings: Run settings (attachment and subpage paths, subpage toggle)
            control: Cancellation token shared with the orchestrator
            tracker: Optional progress observer for attachments and subpages
            logger: Logger instance
        """
        self.fetcher = fetcher
        self.asset_fetcher = asset_fetcher
        self.exporter = exporter
        self.settings = settings
        self.control = control
        self.tracker = tracker
        self.logger = logger or logging.getLogger('notion_vault_migrator.converters.block_renderer')

        self._handlers: Dict[BlockKind, Callable[[ContentBlock, PageContext, RendererState], str]] = {
            BlockKind.PARAGRAPH: self._render_paragraph,
            BlockKind.HEADING_1: self._render_heading,
            BlockKind.HEADING_2: self._render_heading,
            BlockKind.HEADING_3: self._render_heading,
            BlockKind.BULLETED_LIST_ITEM: self._render_list_item,
            BlockKind.NUMBERED_LIST_ITEM: self._render_list_item,
            BlockKind.TO_DO: self._render_to_do,
            BlockKind.IMAGE: self._render_image,
            BlockKind.VIDEO: self._render_media,
            BlockKind.AUDIO: self._render_media,
            BlockKind.FILE: self._render_media,
            BlockKind.CODE: self._render_code,
            BlockKind.TABLE: self._render_table,
            BlockKind.TABLE_ROW: self._render_table_row,
            BlockKind.TOGGLE: self._render_toggle,
            BlockKind.BOOKMARK: self._render_bookmark,
            BlockKind.LINK_PREVIEW: self._render_link_preview,
            BlockKind.CHILD_PAGE: self._render_child_page,
        }

        self.stats = {
            'pages_rendered': 0,
            'blocks_rendered': 0,
            'attachments_downloaded': 0,
            'attachments_failed': 0,
            'subpages_queued': 0
        }

    @property
    def handled_kinds(self) -> List[BlockKind]:
        return list(self._handlers)

    def extract_page_content(self, page_id: str, page_name: str) -> str:
        """
        Fetch and render the full block tree of one page.

        Args:
            page_id: Page (or block) whose children form the body
            page_name: Label used for naming downloaded audio/video/file assets

        Returns:
            Markdown body, possibly partial if a force stop was requested

        Raises:
            TransportError: If a block listing cannot be fetched
        """
        if self.control.force_stop:
            self.logger.info("Import stopped by user.")
            return ""

        blocks = self.fetcher.fetch_child_blocks(page_id)

        if self.control.force_stop:
            self.logger.info("Import stopped by user.")
            return ""

        content = self.render(blocks, PageContext(page_name=page_name))
        self.stats['pages_rendered'] += 1

        if self.control.force_stop:
            self.logger.info("Import stopped by user.")
        return content

    def render(
        self,
        blocks: List[ContentBlock],
        page: PageContext,
        state: Optional[RendererState] = None
    ) -> str:
        """
        Render one level of blocks, recursing into children.

        Args:
            blocks: Blocks of this nesting level, in order
            page: Page-wide context (asset file counter)
            state: Numbering state for this level (fresh when omitted)

        Returns:
            Markdown text for this level and everything below it
        """
        state = state or RendererState()
        content = ''

        for block in blocks:
            if self.control.force_stop:
                return content

            if state.previous_kind is BlockKind.NUMBERED_LIST_ITEM and block.kind is not BlockKind.NUMBERED_LIST_ITEM:
                state.number_counter = 1

            content += self._handlers[block.kind](block, page, state)
            self.stats['blocks_rendered'] += 1
            state.previous_kind = block.kind

            if not block.has_children or block.kind in SELF_CONTAINED_KINDS:
                continue

            if self.control.force_stop:
                return content
            children = self._children_of(block)
            if self.control.force_stop:
                return content

            # Nested lists number from 1 again rather than continuing the parent level
            child_content = self.render(children, page, RendererState())
            if block.kind is BlockKind.TOGGLE:
                child_content = quote_lines(child_content)
            content += child_content

        return content

    def _children_of(self, block: ContentBlock) -> List[ContentBlock]:
        if block.children is not None:
            return block.children
        return self.fetcher.fetch_child_blocks(block.id)

    # --- Text blocks -----------------------------------------------------

    def _render_paragraph(self, block: ContentBlock, page: PageContext, state: RendererState) -> str:
        if not block.rich_text:
            return ''
        return f"{format_paragraph(block.rich_text)}\n\n"

    def _render_heading(self, block: ContentBlock, page: PageContext, state: RendererState) -> str:
        if not block.rich_text:
            return ''
        return f"{'#' * block.kind.heading_level} {format_styled(block.rich_text)}\n\n"

    def _render_list_item(self, block: ContentBlock, page: PageContext, state: RendererState) -> str:
        if not block.rich_text:
            return ''

        if block.kind is BlockKind.NUMBERED_LIST_ITEM:
            prefix = f"{state.number_counter}."
            state.number_counter += 1
        else:
            prefix = '-'
        return f"{prefix} {format_styled(block.rich_text)}\n"

    def _render_to_do(self, block: ContentBlock, page: PageContext, state: RendererState) -> str:
        if not block.rich_text:
            return ''
        checkbox = '[x]' if block.checked else '[ ]'
        return f"{checkbox} {format_styled(block.rich_text)}\n"

    def _render_code(self, block: ContentBlock, page: PageContext, state: RendererState) -> str:
        if not block.rich_text:
            return ''
        return f"```{block.language or ''}\n{block.text}\n```\n\n"

    def _render_toggle(self, block: ContentBlock, page: PageContext, state: RendererState) -> str:
        if not block.rich_text:
            return ''
        return f"> [!NOTE]+ {block.text}\n"

    def _render_bookmark(self, block: ContentBlock, page: PageContext, state: RendererState) -> str:
        if not block.url:
            return ''
        label = plain_text(block.caption) or block.url
        return f"[{label}]({block.url})\n\n"

    def _render_link_preview(self, block: ContentBlock, page: PageContext, state: RendererState) -> str:
        if not block.url:
            return ''
        return f"[Link Preview]({block.url})\n\n"

    # --- Tables ----------------------------------------------------------

    def _render_table(self, block: ContentBlock, page: PageContext, state: RendererState) -> str:
        rows = block.table_rows
        if not rows and block.has_children:
            rows = [child.cells for child in self._children_of(block) if child.kind is BlockKind.TABLE_ROW]
        if not rows:
            return ''

        headers, body = rows[0], rows[1:]
        lines = [
            '| ' + ' | '.join(headers) + ' |',
            '| ' + ' | '.join(['---'] * len(headers)) + ' |',
        ]
        lines.extend('| ' + ' | '.join(row) + ' |' for row in body)
        return '\n'.join(lines) + '\n\n'

    def _render_table_row(self, block: ContentBlock, page: PageContext, state: RendererState) -> str:
        if not block.cells:
            return ''
        return '| ' + ' | '.join(block.cells) + ' |\n'

    # --- Media -----------------------------------------------------------

    def _render_image(self, block: ContentBlock, page: PageContext, state: RendererState) -> str:
        media = block.media
        if media is None or not media.url:
            return ''

        if media.is_external:
            return f"![]({media.url})\n\n"

        extension = get_image_extension(media.url)
        image_path = posixpath.join(self.settings.attachment_path, f"image_{int(time.time() * 1000)}.{extension}")
        image_path = unique_file_name(image_path, self.asset_fetcher.storage).as_posix()

        error = self._download(media.url, image_path, page, block.kind)
        if error is not None:
            return f"Failed: {posixpath.basename(image_path)} ({error})\n\n"
        return f"![[{posixpath.basename(image_path)}]]\n\n"

    def _render_media(self, block: ContentBlock, page: PageContext, state: RendererState) -> str:
        media = block.media
        if media is None or not media.url:
            return ''

        if media.is_external:
            if block.kind is BlockKind.VIDEO:
                return f"Video: [{media.url}]({media.url})\n\n"
            if block.kind is BlockKind.AUDIO:
                return f"Audio: [{media.url}]({media.url})\n\n"
            return f"[{media.url}]({media.url})\n\n"

        extension = posixpath.splitext(unquote(urlparse(media.url).path))[1]
        file_name = f"{page.page_name}_{page.file_counter}{extension}"
        file_path = posixpath.join(self.settings.attachment_path, file_name)

        error = self._download(media.url, file_path, page, block.kind)
        if error is not None:
            return f"Failed: {file_name} ({error})\n\n"

        page.file_counter += 1
        return f"![[{file_name}]]\n\n"

    def _download(self, url: str, path: str, page: PageContext, kind: BlockKind) -> Optional[str]:
        """Download into `path`; returns the error message, or None on success."""
        if self.tracker:
            self.tracker.add_item(path, page.page_name, 'attachment', kind.value)

        try:
            self.asset_fetcher.fetch(url, path)
        except DownloadError as e:
            self.stats['attachments_failed'] += 1
            self.logger.error(f"Failed to download {kind.value} for {page.page_name}: {e}")
            if self.tracker:
                self.tracker.mark_complete(path, False, str(e))
            return str(e)

        self.stats['attachments_downloaded'] += 1
        if self.tracker:
            self.tracker.mark_complete(path, True)
        return None

    # --- Subpages --------------------------------------------------------

    def _render_child_page(self, block: ContentBlock, page: PageContext, state: RendererState) -> str:
        title = block.title
        if not title:
            return ''

        if not self.settings.import_subpages:
            page_url = NOTION_PAGE_URL.format(page_id=block.id.replace('-', ''))
            return f"[{title}]({page_url})\n\n"

        subpage_path = posixpath.join(self.settings.subpages_path, f"{sanitize_title(title)}.md")
        if self.tracker:
            self.tracker.add_item(subpage_path, page.page_name, 'subpage')

        try:
            child_content = self.extract_page_content(block.id, sanitize_title(title))
        except TransportError as e:
            if self.tracker:
                self.tracker.mark_complete(subpage_path, False, str(e))
            raise

        if self.control.force_stop:
            if self.tracker:
                self.tracker.mark_complete(subpage_path, False, "Import stopped by user.")
        else:
            self.exporter.schedule_write(subpage_path, child_content)
            self.stats['subpages_queued'] += 1
            if self.tracker:
                self.tracker.mark_complete(subpage_path, True)

        return f"[[{title}]]\n\n"

    def get_stats(self) -> Dict[str, int]:
        return self.stats.copy()


def quote_lines(text: str) -> str:
    """Prefix every line with `> `, leaving a trailing newline unprefixed."""
    if not text:
        return text

    lines = text.split('\n')
    trailing = lines[-1] == ''
    if trailing:
        lines = lines[:-1]

    quoted = '\n'.join(f"> {line}" for line in lines)
    return quoted + '\n' if trailing else quoted


__all__ = [
    'BlockRenderer',
    'RendererState',
    'PageContext',
    'quote_lines',
]

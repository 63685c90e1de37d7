"""Tests for rendering content block trees to markdown."""

import tempfile
import unittest
from pathlib import Path
from unittest.mock import MagicMock, patch

import requests

from converters import BlockRenderer, PageContext, quote_lines
from errors import TransportError
from exporters import AssetFetcher, LocalStorage, MarkdownExporter
from logger import ProgressTracker
from models import BlockKind, ImportControl, MigrationSettings

from fakes import FakeFetcher, download_session, external, hosted, make_block, text_run


class TestQuoteLines(unittest.TestCase):
    def test_each_line_is_prefixed(self):
        self.assertEqual(quote_lines("a\nb\n"), "> a\n> b\n")

    def test_blank_lines_inside_are_prefixed(self):
        self.assertEqual(quote_lines("Inside\n\n"), "> Inside\n> \n")

    def test_text_without_trailing_newline(self):
        self.assertEqual(quote_lines("only"), "> only")

    def test_empty_text(self):
        self.assertEqual(quote_lines(""), "")


class BlockRendererTestCase(unittest.TestCase):
    """Renderer wired to a temporary vault, a fake upstream and an in-memory download session."""

    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.root = Path(self._tmp.name)
        self.storage = LocalStorage(self.root)
        self.asset_fetcher = AssetFetcher(self.storage, session=download_session(b'bytes'))
        self.exporter = MarkdownExporter(self.storage, max_workers=1)
        self.fetcher = FakeFetcher()
        self.settings = MigrationSettings(attachment_path='Attachments', subpages_path='subpages')
        self.control = ImportControl()
        self.control.start()
        self.tracker = ProgressTracker()
        self.renderer = BlockRenderer(
            self.fetcher,
            self.asset_fetcher,
            self.exporter,
            self.settings,
            self.control,
            tracker=self.tracker
        )

    def tearDown(self):
        self.exporter.close()
        self._tmp.cleanup()

    def render(self, *blocks, page_name='Alpha') -> str:
        return self.renderer.render(list(blocks), PageContext(page_name=page_name))


class TestTextBlocks(BlockRendererTestCase):
    def test_headings(self):
        result = self.render(
            make_block(BlockKind.HEADING_1, 'One'),
            make_block(BlockKind.HEADING_2, 'Two'),
            make_block(BlockKind.HEADING_3, 'Three'),
        )
        self.assertEqual(result, "# One\n\n## Two\n\n### Three\n\n")

    def test_heading_emphasis(self):
        block = make_block(BlockKind.HEADING_2)
        block.rich_text = [text_run('Key', bold=True, italic=True), text_run(' point')]
        self.assertEqual(self.render(block), "## ***Key*** point\n\n")

    def test_paragraph_links_and_date_mentions(self):
        block = make_block(BlockKind.PARAGRAPH)
        block.rich_text = [
            text_run('See '),
            text_run('docs', href='https://example.com/docs'),
            text_run(' on '),
            text_run('January 5, 2024', mention_date='2024-01-05'),
        ]
        self.assertEqual(self.render(block), "See [docs](https://example.com/docs) on [[05.01.2024]]\n\n")

    def test_empty_blocks_render_nothing(self):
        result = self.render(
            make_block(BlockKind.PARAGRAPH),
            make_block(BlockKind.HEADING_1),
            make_block(BlockKind.CODE),
        )
        self.assertEqual(result, "")

    def test_to_do(self):
        result = self.render(
            make_block(BlockKind.TO_DO, 'done', checked=True),
            make_block(BlockKind.TO_DO, 'open'),
        )
        self.assertEqual(result, "[x] done\n[ ] open\n")

    def test_code_block(self):
        block = make_block(BlockKind.CODE, 'print(1)', language='python')
        self.assertEqual(self.render(block), "```python\nprint(1)\n```\n\n")

    def test_bookmark_and_link_preview(self):
        bookmark = make_block(BlockKind.BOOKMARK, url='https://example.com')
        captioned = make_block(BlockKind.BOOKMARK, url='https://example.org', caption=[text_run('Example')])
        preview = make_block(BlockKind.LINK_PREVIEW, url='https://example.net')

        result = self.render(bookmark, captioned, preview)

        self.assertEqual(
            result,
            "[https://example.com](https://example.com)\n\n"
            "[Example](https://example.org)\n\n"
            "[Link Preview](https://example.net)\n\n"
        )


class TestListNumbering(BlockRendererTestCase):
    def test_numbering_restarts_after_other_block(self):
        result = self.render(
            make_block(BlockKind.NUMBERED_LIST_ITEM, 'A'),
            make_block(BlockKind.NUMBERED_LIST_ITEM, 'B'),
            make_block(BlockKind.BULLETED_LIST_ITEM, 'C'),
            make_block(BlockKind.NUMBERED_LIST_ITEM, 'D'),
        )
        self.assertEqual(result, "1. A\n2. B\n- C\n1. D\n")

    def test_nested_level_has_its_own_counter(self):
        parent = make_block(
            BlockKind.NUMBERED_LIST_ITEM, 'A', block_id='a',
            has_children=True,
            children=[
                make_block(BlockKind.NUMBERED_LIST_ITEM, 'x'),
                make_block(BlockKind.NUMBERED_LIST_ITEM, 'y'),
            ]
        )
        result = self.render(parent, make_block(BlockKind.NUMBERED_LIST_ITEM, 'B'))
        self.assertEqual(result, "1. A\n1. x\n2. y\n2. B\n")

    def test_children_are_fetched_when_not_embedded(self):
        self.fetcher.children['parent'] = [make_block(BlockKind.BULLETED_LIST_ITEM, 'child')]
        parent = make_block(BlockKind.BULLETED_LIST_ITEM, 'parent', block_id='parent', has_children=True)

        self.assertEqual(self.render(parent), "- parent\n- child\n")
        self.assertIn(('fetch_child_blocks', 'parent'), self.fetcher.calls)


class TestToggleAndTable(BlockRendererTestCase):
    def test_toggle_children_are_quoted(self):
        toggle = make_block(
            BlockKind.TOGGLE, 'Details',
            has_children=True,
            children=[make_block(BlockKind.PARAGRAPH, 'Inside')]
        )
        self.assertEqual(self.render(toggle), "> [!NOTE]+ Details\n> Inside\n> \n")

    def test_table_from_rows(self):
        table = make_block(BlockKind.TABLE, table_rows=[['Name', 'Qty'], ['Apple', '3']])
        self.assertEqual(self.render(table), "| Name | Qty |\n| --- | --- |\n| Apple | 3 |\n\n")

    def test_table_from_row_children_is_not_repeated(self):
        table = make_block(
            BlockKind.TABLE,
            has_children=True,
            children=[
                make_block(BlockKind.TABLE_ROW, cells=['Name', 'Qty']),
                make_block(BlockKind.TABLE_ROW, cells=['Pear', '1']),
            ]
        )
        self.assertEqual(self.render(table), "| Name | Qty |\n| --- | --- |\n| Pear | 1 |\n\n")


class TestMediaBlocks(BlockRendererTestCase):
    @patch('converters.block_renderer.time.time', return_value=1700000000.0)
    def test_hosted_images_get_unique_names(self, _mock_time):
        first = make_block(BlockKind.IMAGE, media=hosted('https://s3.example.com/a/photo.png?sig=1'))
        second = make_block(BlockKind.IMAGE, media=hosted('https://s3.example.com/a/other.png?sig=2'))

        result = self.render(first, second)

        self.assertEqual(result, "![[image_1700000000000.png]]\n\n![[image_1700000000000 (1).png]]\n\n")
        self.assertTrue((self.root / 'Attachments' / 'image_1700000000000.png').exists())
        self.assertTrue((self.root / 'Attachments' / 'image_1700000000000 (1).png').exists())

    def test_external_image_is_linked(self):
        block = make_block(BlockKind.IMAGE, media=external('https://cdn.example.com/pic.jpg'))
        self.assertEqual(self.render(block), "![](https://cdn.example.com/pic.jpg)\n\n")
        self.asset_fetcher.session.get.assert_not_called()

    def test_hosted_files_are_numbered_per_page(self):
        result = self.render(
            make_block(BlockKind.FILE, media=hosted('https://s3.example.com/a/report.pdf?x=1')),
            make_block(BlockKind.AUDIO, media=hosted('https://s3.example.com/a/song.mp3')),
            page_name='Alpha',
        )
        self.assertEqual(result, "![[Alpha_1.pdf]]\n\n![[Alpha_2.mp3]]\n\n")
        self.assertTrue((self.root / 'Attachments' / 'Alpha_2.mp3').exists())
        self.assertEqual(self.tracker.get_stats()['attachments']['completed'], 2)

    def test_failed_download_keeps_counter(self):
        self.asset_fetcher.session = download_session(error=requests.exceptions.ConnectionError('boom'))
        block = make_block(BlockKind.VIDEO, media=hosted('https://s3.example.com/a/clip.mp4'))

        result = self.render(block, block)

        self.assertEqual(result, "Failed: Alpha_1.mp4 (boom)\n\nFailed: Alpha_1.mp4 (boom)\n\n")
        self.assertEqual(self.renderer.get_stats()['attachments_failed'], 2)
        self.assertEqual(self.tracker.get_stats()['attachments']['failed'], 2)

    def test_external_media_links(self):
        result = self.render(
            make_block(BlockKind.VIDEO, media=external('https://youtu.be/abc')),
            make_block(BlockKind.AUDIO, media=external('https://cdn.example.com/a.mp3')),
            make_block(BlockKind.FILE, media=external('https://cdn.example.com/f.zip')),
        )
        self.assertEqual(
            result,
            "Video: [https://youtu.be/abc](https://youtu.be/abc)\n\n"
            "Audio: [https://cdn.example.com/a.mp3](https://cdn.example.com/a.mp3)\n\n"
            "[https://cdn.example.com/f.zip](https://cdn.example.com/f.zip)\n\n"
        )


class TestChildPages(BlockRendererTestCase):
    def child_page(self):
        return make_block(BlockKind.CHILD_PAGE, block_id='child-1-abc', title='Meeting Notes', has_children=True)

    def test_subpage_is_rendered_and_queued(self):
        self.fetcher.children['child-1-abc'] = [make_block(BlockKind.PARAGRAPH, 'Agenda')]

        result = self.render(self.child_page())
        self.exporter.wait_for_pending()

        self.assertEqual(result, "[[Meeting Notes]]\n\n")
        self.assertEqual((self.root / 'subpages' / 'Meeting Notes.md').read_text(encoding='utf-8'), "Agenda\n\n")
        self.assertEqual(self.tracker.get_stats()['subpages']['completed'], 1)

    def test_subpage_link_when_import_disabled(self):
        self.settings.import_subpages = False

        result = self.render(self.child_page())

        self.assertEqual(result, "[Meeting Notes](https://www.notion.so/child1abc)\n\n")
        self.assertNotIn(('fetch_child_blocks', 'child-1-abc'), self.fetcher.calls)

    def test_subpage_fetch_failure_propagates(self):
        self.fetcher.failing_ids.add('child-1-abc')

        with self.assertRaises(TransportError):
            self.render(self.child_page())
        self.assertEqual(self.tracker.get_stats()['subpages']['failed'], 1)


class TestCancellation(BlockRendererTestCase):
    def test_stop_before_extract_skips_fetch(self):
        self.control.request_stop()

        self.assertEqual(self.renderer.extract_page_content('page-1', 'Alpha'), "")
        self.assertEqual(self.fetcher.calls, [])

    def test_stop_during_render_returns_partial_content(self):
        response = MagicMock()
        response.content = b'img'

        def respond_then_stop(*args, **kwargs):
            self.control.request_stop()
            return response

        self.asset_fetcher.session.get.side_effect = respond_then_stop
        self.fetcher.children['page-1'] = [
            make_block(BlockKind.PARAGRAPH, 'before'),
            make_block(BlockKind.FILE, media=hosted('https://s3.example.com/a/doc.pdf')),
            make_block(BlockKind.PARAGRAPH, 'after'),
        ]

        result = self.renderer.extract_page_content('page-1', 'Alpha')

        self.assertEqual(result, "before\n\n![[Alpha_1.pdf]]\n\n")

    def test_stop_before_media_block_skips_download(self):
        self.control.request_stop()

        result = self.render(make_block(BlockKind.IMAGE, media=hosted('https://s3.example.com/a/pic.png')))

        self.assertEqual(result, "")
        self.asset_fetcher.session.get.assert_not_called()

    def test_every_block_kind_has_a_handler(self):
        self.assertEqual(set(self.renderer.handled_kinds), set(BlockKind))


if __name__ == '__main__':
    unittest.main()

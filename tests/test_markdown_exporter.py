"""Tests for the threaded note writer."""

import tempfile
import unittest
from pathlib import Path

from exporters import LocalStorage, MarkdownExporter


class TestMarkdownExporter(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.root = Path(self._tmp.name)
        self.exporter = MarkdownExporter(LocalStorage(self.root), max_workers=3)

    def tearDown(self):
        self.exporter.close()
        self._tmp.cleanup()

    def test_writes_note_and_creates_folders(self):
        self.exporter.schedule_write('Notion/Alpha.md', '---\nAlias: Alpha\n---\n')

        written = self.exporter.wait_for_pending()

        self.assertEqual(written, [self.root / 'Notion' / 'Alpha.md'])
        self.assertEqual((self.root / 'Notion' / 'Alpha.md').read_text(encoding='utf-8'), '---\nAlias: Alpha\n---\n')

    def test_colliding_names_never_overwrite(self):
        for index in range(5):
            self.exporter.schedule_write('Notion/Same.md', f'note {index}')

        written = self.exporter.wait_for_pending()

        self.assertEqual(len(written), 5)
        names = sorted(path.name for path in (self.root / 'Notion').iterdir())
        self.assertEqual(names, ['Same (1).md', 'Same (2).md', 'Same (3).md', 'Same (4).md', 'Same.md'])
        contents = sorted(path.read_text(encoding='utf-8') for path in written)
        self.assertEqual(contents, [f'note {index}' for index in range(5)])

    def test_none_content_writes_empty_note(self):
        self.exporter.schedule_write('empty.md', None)
        self.exporter.wait_for_pending()

        self.assertEqual((self.root / 'empty.md').read_text(encoding='utf-8'), '')

    def test_wait_for_pending_drains_queue(self):
        self.exporter.schedule_write('a.md', 'a')
        self.exporter.schedule_write('b.md', 'b')

        self.assertEqual(len(self.exporter.wait_for_pending()), 2)
        self.assertEqual(self.exporter.pending_count, 0)
        self.assertEqual(self.exporter.wait_for_pending(), [])

        stats = self.exporter.get_stats()
        self.assertEqual(stats['notes_scheduled'], 2)
        self.assertEqual(stats['notes_written'], 2)
        self.assertEqual(stats['write_errors'], 0)

    def test_write_error_is_counted(self):
        (self.root / 'blocked').write_text('a file, not a folder')
        self.exporter.schedule_write('blocked/note.md', 'x')

        self.assertEqual(self.exporter.wait_for_pending(), [])
        self.assertEqual(self.exporter.get_stats()['write_errors'], 1)


if __name__ == '__main__':
    unittest.main()

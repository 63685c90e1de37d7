"""Tests for the Notion REST client and payload parsing."""

import unittest
from unittest.mock import MagicMock

import requests

from errors import TransportError
from fetchers import ApiFetcher, FetcherFactory
from fetchers.api_fetcher import parse_block, parse_property, parse_record, parse_rich_text
from models import BlockKind, FileSource, PropertyKind
from notion_api_client import NotionClient


def api_response(payload=None, status=200, json_error=False):
    response = MagicMock()
    response.ok = 200 <= status < 300
    response.status_code = status
    response.text = str(payload)
    if json_error:
        response.json.side_effect = ValueError('not json')
    else:
        response.json.return_value = payload
    return response


class TestNotionClient(unittest.TestCase):
    def setUp(self):
        self.client = NotionClient('secret_abc', timeout=15)
        self.client.session = MagicMock()

    def test_headers(self):
        client = NotionClient('secret_abc', api_version='2022-06-28')
        self.assertEqual(client.session.headers['Authorization'], 'Bearer secret_abc')
        self.assertEqual(client.session.headers['Notion-Version'], '2022-06-28')

    def test_requires_api_key(self):
        with self.assertRaises(ValueError):
            NotionClient('')

    def test_query_database_follows_cursor(self):
        self.client.session.request.side_effect = [
            api_response({'results': [{'id': 'p1'}], 'has_more': True, 'next_cursor': 'c1'}),
            api_response({'results': [{'id': 'p2'}], 'has_more': False, 'next_cursor': None}),
        ]

        results = self.client.query_database('db-1')

        self.assertEqual([page['id'] for page in results], ['p1', 'p2'])
        first, second = self.client.session.request.call_args_list
        self.assertEqual(first.args, ('POST', 'https://api.notion.com/v1/databases/db-1/query'))
        self.assertEqual(first.kwargs['json'], {'page_size': 100})
        self.assertEqual(second.kwargs['json'], {'page_size': 100, 'start_cursor': 'c1'})
        self.assertEqual(second.kwargs['timeout'], 15)

    def test_block_children_follow_cursor(self):
        self.client.session.request.side_effect = [
            api_response({'results': [{'id': 'b1'}], 'has_more': True, 'next_cursor': 'c9'}),
            api_response({'results': [{'id': 'b2'}], 'has_more': False}),
        ]

        children = self.client.get_block_children('page-1')

        self.assertEqual([block['id'] for block in children], ['b1', 'b2'])
        second = self.client.session.request.call_args_list[1]
        self.assertEqual(second.args, ('GET', 'https://api.notion.com/v1/blocks/page-1/children'))
        self.assertEqual(second.kwargs['params'], {'page_size': 100, 'start_cursor': 'c9'})

    def test_error_status_raises(self):
        self.client.session.request.return_value = api_response(
            {'object': 'error', 'message': 'Could not find page'}, status=404
        )

        with self.assertRaises(TransportError) as ctx:
            self.client.get_page('missing')

        self.assertEqual(ctx.exception.status_code, 404)
        self.assertIn('Could not find page', str(ctx.exception))

    def test_connection_error_raises(self):
        self.client.session.request.side_effect = requests.exceptions.ConnectionError('down')
        with self.assertRaises(TransportError):
            self.client.get_database('db-1')

    def test_invalid_json_raises(self):
        self.client.session.request.return_value = api_response(json_error=True)
        with self.assertRaises(TransportError):
            self.client.get_page('p1')


class TestPayloadParsing(unittest.TestCase):
    def test_rich_text_with_date_mention(self):
        runs = parse_rich_text([
            {'type': 'text', 'plain_text': 'Due ', 'annotations': {'bold': True}, 'href': None},
            {'type': 'mention', 'plain_text': 'January 5, 2024',
             'mention': {'type': 'date', 'date': {'start': '2024-01-05'}}},
        ])

        self.assertTrue(runs[0].bold)
        self.assertFalse(runs[0].is_date_mention)
        self.assertEqual(runs[1].mention_date, '2024-01-05')

    def test_record_properties(self):
        record = parse_record({
            'id': 'rec-1',
            'url': 'https://www.notion.so/rec1',
            'properties': {
                'Name': {'type': 'title', 'title': [{'type': 'text', 'plain_text': 'Alpha'}]},
                'Stage': {'type': 'select', 'select': {'name': 'Done'}},
                'State': {'type': 'status', 'status': None},
                'Tags': {'type': 'multi_select', 'multi_select': [{'name': 'a'}, {'name': 'b'}]},
                'Due': {'type': 'date', 'date': {'start': '2024-01-05', 'end': None}},
                'Created': {'type': 'created_time', 'created_time': '2023-11-02T08:15:00.000Z'},
                'Owners': {'type': 'people', 'people': []},
                'Links': {'type': 'relation', 'relation': [{'id': 'r1'}, {'id': 'r2'}]},
            },
        })

        self.assertEqual(record.display_name, 'Alpha')
        self.assertNotIn('Owners', record.properties)
        self.assertEqual(record.properties['Stage'].option, 'Done')
        self.assertIsNone(record.properties['State'].option)
        self.assertEqual(record.properties['Tags'].options, ['a', 'b'])
        self.assertEqual(record.properties['Due'].start, '2024-01-05')
        self.assertEqual(record.properties['Created'].start, '2023-11-02T08:15:00.000Z')
        self.assertEqual(record.properties['Links'].related_ids, ['r1', 'r2'])

    def test_files_property(self):
        prop = parse_property('Files', {'type': 'files', 'files': [
            {'type': 'file', 'name': 'Brief.pdf', 'file': {'url': 'https://s3/Brief.pdf'}},
            {'type': 'external', 'name': 'Site', 'external': {'url': 'https://example.com/a.zip'}},
        ]})

        self.assertEqual(prop.kind, PropertyKind.FILES)
        self.assertEqual(prop.files[0].source, FileSource.HOSTED)
        self.assertEqual(prop.files[1].url, 'https://example.com/a.zip')

    def test_rollup_and_formula(self):
        absent = parse_property('Sum', {'type': 'rollup', 'rollup': {'type': 'number', 'number': 3}})
        self.assertIsNone(absent.items)

        rollup = parse_property('Progress', {'type': 'rollup', 'rollup': {
            'type': 'array',
            'function': 'show_original',
            'array': [{'type': 'formula', 'formula': {'type': 'string', 'string': 'ok'}}],
        }})
        self.assertEqual(rollup.items[0].formula.value, 'ok')
        self.assertEqual(rollup.items[0].function, 'show_original')

        formula = parse_property('Total', {'type': 'formula', 'formula': {'type': 'number', 'number': 4}})
        self.assertEqual((formula.formula.type, formula.formula.value), ('number', 4))

    def test_blocks(self):
        to_do = parse_block({'id': 'b1', 'type': 'to_do', 'has_children': False,
                             'to_do': {'rich_text': [{'plain_text': 'Ship'}], 'checked': True}})
        child = parse_block({'id': 'b2', 'type': 'child_page', 'has_children': True,
                             'child_page': {'title': 'Minutes'}})
        row = parse_block({'id': 'b3', 'type': 'table_row',
                           'table_row': {'cells': [[{'plain_text': 'a'}], [{'plain_text': 'b'}, {'plain_text': 'c'}]]}})
        image = parse_block({'id': 'b4', 'type': 'image',
                             'image': {'type': 'external', 'external': {'url': 'https://x/y.png'}}})

        self.assertTrue(to_do.checked)
        self.assertEqual(to_do.text, 'Ship')
        self.assertEqual((child.kind, child.title, child.has_children), (BlockKind.CHILD_PAGE, 'Minutes', True))
        self.assertEqual(row.cells, ['a', 'bc'])
        self.assertTrue(image.media.is_external)

    def test_unsupported_block_is_skipped(self):
        self.assertIsNone(parse_block({'id': 'b5', 'type': 'divider', 'divider': {}}))


class TestApiFetcher(unittest.TestCase):
    def setUp(self):
        self.client = MagicMock(spec=NotionClient)
        self.fetcher = ApiFetcher({'notion': {'api_key': 'secret'}}, client=self.client)

    def test_container_name(self):
        self.client.get_database.return_value = {'title': [{'plain_text': 'Projects'}]}
        self.assertEqual(self.fetcher.fetch_container_name('db-1'), 'Projects')

    def test_container_name_failure_returns_none(self):
        self.client.get_database.side_effect = TransportError('HTTP 404', status_code=404)
        self.assertIsNone(self.fetcher.fetch_container_name('db-1'))

    def test_child_blocks_skip_unsupported(self):
        self.client.get_block_children.return_value = [
            {'id': 'b1', 'type': 'paragraph', 'paragraph': {'rich_text': [{'plain_text': 'hi'}]}},
            {'id': 'b2', 'type': 'divider', 'divider': {}},
        ]

        blocks = self.fetcher.fetch_child_blocks('page-1')

        self.assertEqual([block.id for block in blocks], ['b1'])
        self.assertEqual(self.fetcher.get_stats(), {'api_calls': 1})

    def test_fetch_record_propagates_transport_error(self):
        self.client.get_page.side_effect = TransportError('HTTP 500', status_code=500)
        with self.assertRaises(TransportError):
            self.fetcher.fetch_record('rec-1')


class TestFetcherFactory(unittest.TestCase):
    def test_missing_api_key(self):
        with self.assertRaises(ValueError):
            FetcherFactory.create_fetcher({'notion': {}}, None)


if __name__ == '__main__':
    unittest.main()

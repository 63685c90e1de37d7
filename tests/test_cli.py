"""Tests for the command-line entry point."""

import logging
import signal

import yaml

import migrate
from models import ImportControl


def write_config(path, vault, migration_path='Notion'):
    path.write_text(yaml.safe_dump({
        'notion': {'api_key': 'secret_test', 'database_id': 'db-1'},
        'vault': {'path': str(vault)},
        'migration': {'migration_path': migration_path, 'progress_bars': False},
    }), encoding='utf-8')
    return str(path)


class TestMain:
    def test_missing_config_file(self, tmp_path, capsys):
        code = migrate.main(['--config', str(tmp_path / 'absent.yaml')])

        assert code == migrate.EXIT_CONFIG_ERROR
        assert 'File not found' in capsys.readouterr().err

    def test_invalid_config(self, tmp_path, capsys):
        config_path = write_config(tmp_path / 'config.yaml', tmp_path / 'no-vault')

        code = migrate.main(['--config', config_path])

        assert code == migrate.EXIT_CONFIG_ERROR
        assert 'Configuration error' in capsys.readouterr().err

    def test_missing_migration_folder_fails(self, tmp_path):
        config_path = write_config(tmp_path / 'config.yaml', tmp_path, migration_path='Missing')

        assert migrate.main(['--config', config_path]) == migrate.EXIT_FAILURE

    def test_malformed_yaml_is_a_config_error(self, tmp_path, capsys):
        config_path = tmp_path / 'config.yaml'
        config_path.write_text('notion: [unclosed\n', encoding='utf-8')

        code = migrate.main(['--config', str(config_path)])

        assert code == migrate.EXIT_CONFIG_ERROR
        assert 'Configuration error' in capsys.readouterr().err

    def test_unexpected_error_fails(self, tmp_path, capsys, monkeypatch):
        config_path = write_config(tmp_path / 'config.yaml', tmp_path)

        def explode(config, logger):
            raise RuntimeError('disk on fire')

        monkeypatch.setattr(migrate, 'run_migration', explode)

        assert migrate.main(['--config', config_path]) == migrate.EXIT_FAILURE
        assert 'Unexpected error: disk on fire' in capsys.readouterr().err

    def test_version(self, capsys):
        parser = migrate.create_argument_parser()
        try:
            parser.parse_args(['--version'])
        except SystemExit as e:
            assert e.code == 0
        assert migrate.__version__ in capsys.readouterr().out


class TestStopHandler:
    def test_first_interrupt_requests_stop(self):
        control = ImportControl()
        control.start()
        previous = migrate.install_stop_handler(control, logging.getLogger('test'))
        try:
            handler = signal.getsignal(signal.SIGINT)
            handler(signal.SIGINT, None)

            assert control.force_stop is True
            assert control.is_importing is False
            assert signal.getsignal(signal.SIGINT) is signal.default_int_handler
        finally:
            signal.signal(signal.SIGINT, previous)

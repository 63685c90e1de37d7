"""YAML configuration for the migrator: loading, `${VAR}` expansion, validation and CLI overrides."""

import copy
import os
import re
from typing import Any, Dict
from urllib.parse import urlparse

import yaml

# Run-state toggles that can be overridden from the command line
MIGRATION_FLAGS = (
    'attach_page_id',
    'import_page_content',
    'import_subpages',
    'create_relation_content_page',
    'create_semantic_linking',
    'squash_date_names_for_dataview',
)

MIGRATION_PATHS = ('migration_path', 'attachment_path', 'subpages_path')

REQUIRED_FIELDS = ('notion.api_key', 'notion.database_id', 'vault.path')

LOG_LEVELS = ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL')

# (argparse attribute, config path, override even when empty)
CLI_OVERRIDES = (
    ('database_id', 'notion.database_id', False),
    ('vault', 'vault.path', False),
    ('migration_path', 'migration.migration_path', False),
    ('attachment_path', 'migration.attachment_path', True),
    ('subpages_path', 'migration.subpages_path', False),
    ('log_file', 'logging.file', False),
)


class ConfigLoader:
    """Reads, checks and merges the migrator's configuration."""

    ENV_VAR_PATTERN = re.compile(r'\$\{([A-Za-z_][A-Za-z0-9_]*)\}')

    @classmethod
    def load(cls, config_path: str) -> Dict[str, Any]:
        """
        Read a YAML config file and expand `${VAR}` references from the environment.

        References to unset variables are kept as written so that `validate`
        can name the missing variable.

        Raises:
            FileNotFoundError: If `config_path` does not exist
            ValueError: If the document is not a mapping
            yaml.YAMLError: On malformed YAML
        """
        if not os.path.isfile(config_path):
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        with open(config_path, encoding='utf-8') as handle:
            document = yaml.safe_load(handle)

        if not isinstance(document, dict):
            raise ValueError(f"Configuration file {config_path} must contain a mapping at the top level")

        return cls.expand_env(document)

    @classmethod
    def expand_env(cls, node: Any) -> Any:
        """Return a copy of `node` with `${VAR}` references replaced in every string."""
        if isinstance(node, dict):
            return {key: cls.expand_env(value) for key, value in node.items()}
        if isinstance(node, list):
            return [cls.expand_env(item) for item in node]
        if not isinstance(node, str):
            return node
        return cls.ENV_VAR_PATTERN.sub(lambda m: os.environ.get(m.group(1), m.group(0)), node)

    @classmethod
    def validate(cls, config: Dict[str, Any]) -> None:
        """
        Check required fields and value types.

        The vault root must already exist; the migration folder inside it is
        only checked when an import starts.

        Raises:
            ValueError: Describing the first problem found
        """
        for field in REQUIRED_FIELDS:
            cls._require(config, field)

        vault_path = get_nested(config, 'vault.path')
        if not os.path.isdir(vault_path):
            raise ValueError(f"vault.path '{vault_path}' is not a valid directory")

        base_url = get_nested(config, 'notion.base_url')
        if base_url:
            cls._check_url('notion.base_url', base_url)

        timeout = get_nested(config, 'notion.request_timeout')
        if timeout is not None and not _is_positive(timeout, (int, float)):
            raise ValueError("notion.request_timeout must be a positive number")

        migration = get_nested(config, 'migration')
        if not isinstance(migration, dict):
            migration = {}
        for flag in MIGRATION_FLAGS + ('dry_run', 'progress_bars'):
            if migration.get(flag) is not None and not isinstance(migration[flag], bool):
                raise ValueError(f"migration.{flag} must be a boolean")

        for key in MIGRATION_PATHS:
            if migration.get(key) is not None and not isinstance(migration[key], str):
                raise ValueError(f"migration.{key} must be a string")

        if not _is_positive(migration.get('write_workers', 4), (int,)):
            raise ValueError("migration.write_workers must be a positive integer")

        enabled_properties = migration.get('enabled_properties') or {}
        if not isinstance(enabled_properties, dict):
            raise ValueError("migration.enabled_properties must be a mapping of property name to boolean")
        bad = [name for name, enabled in enabled_properties.items() if not isinstance(enabled, bool)]
        if bad:
            raise ValueError(f"migration.enabled_properties['{bad[0]}'] must be a boolean")

        level = get_nested(config, 'logging.level')
        if level is not None and str(level).upper() not in LOG_LEVELS:
            raise ValueError(f"logging.level must be one of {', '.join(LOG_LEVELS)}")

    @classmethod
    def merge_with_args(cls, config: Dict[str, Any], args) -> Dict[str, Any]:
        """
        Overlay parsed CLI arguments onto a copy of `config`.

        A flag the user did not pass (None) leaves the file value alone.
        `--disable-property` adds `False` entries to `enabled_properties`, and
        `-v`/`-vv` raise the log level to INFO/DEBUG.
        """
        merged = copy.deepcopy(config)
        for section in ('notion', 'vault', 'migration', 'logging'):
            if not isinstance(merged.get(section), dict):
                merged[section] = {}

        for attr, path, allow_empty in CLI_OVERRIDES:
            value = getattr(args, attr, None)
            if value is None or (value == '' and not allow_empty):
                continue
            section, key = path.split('.')
            merged[section][key] = value

        migration = merged['migration']
        for flag in MIGRATION_FLAGS + ('dry_run',):
            value = getattr(args, flag, None)
            if value is not None:
                migration[flag] = value

        disabled = getattr(args, 'disable_property', None) or []
        if disabled:
            enabled = dict(migration.get('enabled_properties') or {})
            enabled.update((name, False) for name in disabled)
            migration['enabled_properties'] = enabled

        verbose = getattr(args, 'verbose', 0) or 0
        if verbose:
            merged['logging']['level'] = 'DEBUG' if verbose > 1 else 'INFO'

        return merged

    @classmethod
    def _require(cls, config: Dict[str, Any], field: str) -> None:
        value = get_nested(config, field)
        if value in (None, ''):
            raise ValueError(f"Missing required configuration: {field}")

        if isinstance(value, str):
            unresolved = cls.ENV_VAR_PATTERN.search(value)
            if unresolved:
                raise ValueError(
                    f"{field} still references ${{{unresolved.group(1)}}}; "
                    f"export {unresolved.group(1)} or put the value in the config file"
                )

    @staticmethod
    def _check_url(field: str, url: str) -> None:
        parsed = urlparse(url)
        if parsed.scheme not in ('http', 'https'):
            raise ValueError(f"{field} must be an http(s) URL, got: {url}")
        if not parsed.netloc:
            raise ValueError(f"{field} has no host: {url}")


def _is_positive(value: Any, types: tuple) -> bool:
    return not isinstance(value, bool) and isinstance(value, types) and value > 0


def get_nested(config: dict, path: str, default: Any = None) -> Any:
    """Look up a dotted path such as `notion.database_id`, returning `default` when any step is missing."""
    node = config
    for key in path.split('.'):
        if not isinstance(node, dict) or key not in node:
            return default
        node = node[key]
    return node


__all__ = ['ConfigLoader', 'get_nested', 'MIGRATION_FLAGS']

#!/usr/bin/env python3
"""
Notion to Obsidian Migration Tool - Main CLI Entry Point

This script provides the command-line interface for importing a Notion
database into an Obsidian vault: one note per database row with YAML front
matter, relation links, page content, subpages and downloaded attachments.
"""

import argparse
import logging
import signal
import sys
from typing import Optional

import yaml

from config_loader import ConfigLoader, get_nested
from errors import MigrationError, NotFoundError
from exporters import LocalStorage
from fetchers import FetcherFactory
from logger import log_config, log_section, setup_logging
from models import ImportControl
from orchestrator import MigrationOrchestrator

# Version
__version__ = "1.0.0"

EXIT_SUCCESS = 0
EXIT_FAILURE = 1
EXIT_CONFIG_ERROR = 2
EXIT_INTERRUPTED = 130


def create_argument_parser() -> argparse.ArgumentParser:
    """Create and configure the argument parser for CLI."""
    parser = argparse.ArgumentParser(
        description="Import a Notion database into an Obsidian vault",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Import using a config file
  python migrate.py --config config.yaml

  # Override the database and target folder
  python migrate.py --database-id 0123abcd --migration-path Projects

  # Keep Notion page ids in note names, skip page bodies
  python migrate.py --attach-page-id --no-import-page-content

  # Hide a property from the front matter
  python migrate.py --disable-property "Internal Notes"

  # Dry-run mode (list records only)
  python migrate.py --dry-run

  # Verbose logging
  python migrate.py -vv
        """
    )

    parser.add_argument(
        '--version',
        action='version',
        version=f'%(prog)s {__version__}'
    )

    parser.add_argument(
        '--config',
        type=str,
        default='config.yaml',
        help='Path to configuration YAML file (default: config.yaml)'
    )

    parser.add_argument(
        '--database-id',
        type=str,
        help='Notion database to import'
    )

    parser.add_argument(
        '--vault',
        type=str,
        help='Root directory of the Obsidian vault'
    )

    parser.add_argument(
        '--migration-path',
        type=str,
        help='Vault folder receiving one note per record (must exist)'
    )

    parser.add_argument(
        '--attachment-path',
        type=str,
        help='Vault folder for downloaded files and media'
    )

    parser.add_argument(
        '--subpages-path',
        type=str,
        help='Vault folder for imported subpages (default: subpages)'
    )

    parser.add_argument(
        '--attach-page-id',
        action=argparse.BooleanOptionalAction,
        default=None,
        help='Append the Notion page id to every note name'
    )

    parser.add_argument(
        '--import-page-content',
        action=argparse.BooleanOptionalAction,
        default=None,
        help='Render page bodies below the front matter'
    )

    parser.add_argument(
        '--import-subpages',
        action=argparse.BooleanOptionalAction,
        default=None,
        help='Import child pages as separate notes instead of linking to Notion'
    )

    parser.add_argument(
        '--create-relation-content-page',
        action=argparse.BooleanOptionalAction,
        default=None,
        help='Write relations as wikilink lists after the front matter'
    )

    parser.add_argument(
        '--create-semantic-linking',
        action=argparse.BooleanOptionalAction,
        default=None,
        help='Write relations as Dataview "key:: [[Name]]" lines'
    )

    parser.add_argument(
        '--squash-date-names-for-dataview',
        action=argparse.BooleanOptionalAction,
        default=None,
        help='Rewrite date property names like "Due Date" to "DueDate"'
    )

    parser.add_argument(
        '--disable-property',
        action='append',
        metavar='NAME',
        help='Leave a property out of the front matter (repeatable)'
    )

    parser.add_argument(
        '--dry-run',
        action=argparse.BooleanOptionalAction,
        default=None,
        help='Fetch and list records without writing anything'
    )

    parser.add_argument(
        '--log-file',
        type=str,
        help='Also write logs to this file'
    )

    parser.add_argument(
        '-v', '--verbose',
        action='count',
        default=0,
        help='Increase verbosity (-v for INFO, -vv for DEBUG)'
    )

    return parser


def install_stop_handler(control: ImportControl, logger: logging.Logger):
    """
    Route the first Ctrl-C to a cooperative force stop.

    A second Ctrl-C falls back to the default handler and interrupts at once.

    Returns:
        The previously installed SIGINT handler
    """
    def handle_sigint(signum, frame):
        logger.warning("Initiating graceful stop... (press Ctrl-C again to abort immediately)")
        control.request_stop()
        signal.signal(signal.SIGINT, signal.default_int_handler)

    return signal.signal(signal.SIGINT, handle_sigint)


def run_migration(config: dict, logger: logging.Logger, control: Optional[ImportControl] = None) -> int:
    """Execute one import run and map its outcome to an exit code."""
    control = control or ImportControl()

    try:
        logger.debug("Creating fetcher")
        fetcher = FetcherFactory.create_fetcher(config, logger)
        storage = LocalStorage(get_nested(config, 'vault.path'))

        orchestrator = MigrationOrchestrator(config, fetcher, storage, control=control)

        previous_handler = install_stop_handler(control, logger)
        try:
            summary = orchestrator.run()
        finally:
            signal.signal(signal.SIGINT, previous_handler)

        _print_summary(summary)

        if summary['status'] == 'stopped':
            return EXIT_INTERRUPTED
        if summary['status'] != 'completed' or summary['write_errors'] > 0:
            return EXIT_FAILURE
        return EXIT_SUCCESS

    except NotFoundError as e:
        logger.error(str(e))
        return EXIT_FAILURE
    except KeyboardInterrupt:
        logger.error("Migration interrupted by user")
        return EXIT_INTERRUPTED
    except MigrationError as e:
        logger.error(f"Migration failed: {str(e)}")
        return EXIT_FAILURE


def _print_summary(summary: dict) -> None:
    """Print a short run summary."""
    print("\n" + "=" * 60)
    print("MIGRATION SUMMARY" + (" (DRY RUN)" if summary.get('dry_run') else ""))
    print("=" * 60)
    print(f"Status: {summary['message']}")
    print(f"Records: {summary['records_processed']}/{summary['records_total']}")
    print(f"Notes written: {summary['notes_written']} ({summary['write_errors']} failed)")
    print(
        f"Attachments: {summary['attachments']['completed']}/{summary['attachments']['total']} "
        f"({summary['attachments']['failed']} failed)"
    )
    print(
        f"Subpages: {summary['subpages']['completed']}/{summary['subpages']['total']} "
        f"({summary['subpages']['failed']} failed)"
    )
    print(f"Duration: {summary['duration_seconds']}s")
    print("=" * 60)


def main(argv=None) -> int:
    """Main entry point for the CLI."""
    parser = create_argument_parser()
    args = parser.parse_args(argv)

    try:
        # Setup minimal logging for config loading
        logger = setup_logging(verbosity=args.verbose)

        log_section("Notion to Obsidian Migration Tool")
        logger.info(f"Version: {__version__}")

        # Load configuration
        logger.info(f"Loading configuration from {args.config}")
        config = ConfigLoader.load(args.config)

        # Merge with CLI arguments (CLI takes precedence)
        config = ConfigLoader.merge_with_args(config, args)

        ConfigLoader.validate(config)

        # Reconfigure logging with config file settings
        logger = setup_logging(
            verbosity=args.verbose,
            log_file=get_nested(config, 'logging.file'),
            level=get_nested(config, 'logging.level')
        )

        # Log sanitized configuration
        log_config(config)

        return run_migration(config, logger)

    except FileNotFoundError as e:
        print(f"ERROR: File not found: {e}", file=sys.stderr)
        return EXIT_CONFIG_ERROR
    except (ValueError, yaml.YAMLError) as e:
        print(f"ERROR: Configuration error: {e}", file=sys.stderr)
        return EXIT_CONFIG_ERROR
    except KeyboardInterrupt:
        print("\nMigration interrupted by user", file=sys.stderr)
        return EXIT_INTERRUPTED
    except Exception as e:
        print(f"ERROR: Unexpected error: {e}", file=sys.stderr)
        return EXIT_FAILURE


if __name__ == "__main__":
    sys.exit(main())

#!/usr/bin/env python3
"""
Content Export/Import Tool - Main CLI Entry Point

This script provides the command-line interface for exporting content items
of a repository into a portable zip bundle, and for importing such a bundle
back into a repository through the document workflow.
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from config_loader import ConfigLoader, get_nested
from logger import log_section, setup_logging
from models import MigrationError
from orchestrator.migration_orchestrator import MigrationOrchestrator, RunOutcome
from orchestrator.migration_report import MigrationReport
from store.base_store import StoreError
from store.memory_store import InMemoryContentStore
from store.workflow_document_manager import WorkflowDocumentManager

# Version
__version__ = "1.0.0"

EXIT_OK = 0
EXIT_ABORTED = 1
EXIT_ITEM_FAILURES = 2


def create_argument_parser() -> argparse.ArgumentParser:
    """Create and configure the argument parser for CLI."""
    parser = argparse.ArgumentParser(
        description="Export repository content into a bundle, or import a bundle into a repository",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Export the documents and binaries selected in config.yaml
  python migrate.py --workflow export --repository repo.json --bundle export.zip --config config.yaml

  # Import a bundle and publish items that were live at export time
  python migrate.py --workflow import --repository target.json --bundle export.zip --publish live

  # XML snapshots, larger batches, verbose logging
  python migrate.py --workflow export --repository repo.json --bundle out.zip --format xml --batch-size 500 -vv
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
        help='Path to configuration YAML file'
    )

    parser.add_argument(
        '--workflow',
        choices=['export', 'import'],
        required=True,
        help='Run an export or an import'
    )

    parser.add_argument(
        '--repository',
        type=str,
        required=True,
        help='Repository JSON file (read for export, written back after import)'
    )

    parser.add_argument(
        '--bundle',
        type=str,
        required=True,
        help='Zip bundle to write (export) or zip/directory bundle to read (import)'
    )

    parser.add_argument(
        '--format',
        choices=['json', 'xml'],
        help='Snapshot file format for export (default: json)'
    )

    parser.add_argument(
        '--publish',
        choices=['none', 'all', 'live'],
        help='Publish documents after import (default: none)'
    )

    parser.add_argument(
        '--batch-size',
        type=int,
        help='Items per batch commit (default: 200)'
    )

    parser.add_argument(
        '--throttle',
        type=int,
        help='Pause after each batch in milliseconds (default: 10)'
    )

    parser.add_argument(
        '--log-file',
        type=str,
        help='Write logs to this file as well'
    )

    parser.add_argument(
        '--no-progress',
        action='store_true',
        help='Disable progress bars'
    )

    parser.add_argument(
        '-v', '--verbose',
        action='count',
        default=0,
        help='Increase verbosity (-v for INFO, -vv for DEBUG)'
    )

    return parser


def open_repository(path: str, workflow: str, logger: logging.Logger) -> InMemoryContentStore:
    """Load the repository file; an import into a missing file starts from an empty repository."""
    if Path(path).exists():
        return InMemoryContentStore.load(path)
    if workflow == 'import':
        logger.info(f"Repository {path} does not exist, importing into an empty repository")
        return InMemoryContentStore()
    raise FileNotFoundError(f"Repository not found: {path}")


def run_workflow(config: dict, args: argparse.Namespace, logger: logging.Logger) -> int:
    """
    Run the requested workflow.

    Returns:
        Exit code
    """
    params = ConfigLoader.build_execution_params(config)
    store = open_repository(args.repository, args.workflow, logger)
    document_manager = WorkflowDocumentManager(store)
    report_generator = MigrationReport()

    orchestrator = MigrationOrchestrator(
        store,
        document_manager,
        params,
        show_progress=not args.no_progress,
        report_generator=report_generator
    )

    outcome: RunOutcome
    if args.workflow == 'export':
        outcome = orchestrator.run_export(args.bundle)
    else:
        outcome = orchestrator.run_import(args.bundle)
        store.dump(args.repository)
        logger.info(f"Repository written to {args.repository}")
        for category in ('binaries', 'documents'):
            print(outcome.summaries.get(category, ''))

    print(report_generator.format_console_report(outcome.report))

    if outcome.cancelled:
        logger.warning(f"{args.workflow.capitalize()} stopped before all items were processed")
    if outcome.has_failures:
        return EXIT_ITEM_FAILURES
    return EXIT_OK


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the CLI."""
    parser = create_argument_parser()
    args = parser.parse_args(argv)

    try:
        setup_logging(verbosity=args.verbose)
        logger = logging.getLogger('content_exim.migrate')

        config = {}
        if args.config:
            logger.info(f"Loading configuration from {args.config}")
            config = ConfigLoader.load(args.config)

        # CLI takes precedence
        config = ConfigLoader.merge_with_args(config, args)
        ConfigLoader.validate(config)

        # Reconfigure logging with config file settings
        setup_logging(
            verbosity=args.verbose,
            log_file=get_nested(config, 'logging.file'),
            log_format=get_nested(config, 'logging.format'),
            date_format=get_nested(config, 'logging.date_format'),
            level=get_nested(config, 'logging.level')
        )
        logger = logging.getLogger('content_exim.migrate')

        log_section("Content Export/Import Tool")
        logger.info(f"Version: {__version__}")

        return run_workflow(config, args, logger)

    except FileNotFoundError as e:
        print(f"ERROR: File not found: {e}", file=sys.stderr)
        return EXIT_ABORTED
    except ValueError as e:
        print(f"ERROR: Configuration error: {e}", file=sys.stderr)
        return EXIT_ABORTED
    except (MigrationError, StoreError) as e:
        print(f"ERROR: Run aborted: {e}", file=sys.stderr)
        return EXIT_ABORTED
    except KeyboardInterrupt:
        print("\nRun interrupted by user", file=sys.stderr)
        return 130
    except Exception as e:
        print(f"ERROR: Unexpected error: {e}", file=sys.stderr)
        return EXIT_ABORTED


if __name__ == "__main__":
    sys.exit(main())

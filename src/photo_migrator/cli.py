"""Command line entry point for the photo migrator."""

import argparse
import json
import logging
import signal
import sys
from contextlib import ExitStack
from pathlib import Path
from typing import Any, Dict, List, Optional

import toml
from pydantic import ValidationError

from photo_migrator.common import ConfigLoader, setup_logging_from_config
from .cancellation import CancellationToken
from .config import MigratorConfig
from .errors import EnumerationError
from .orchestrator import MigrationOrchestrator
from .sinks import DryRunSink, JsonLinesSink
from .summary import STATUS_CANCELLED

APP_NAME = "photo-migrator"

EXIT_OK = 0
EXIT_ENUMERATION_FAILED = 1
EXIT_INVALID_CONFIG = 2
EXIT_CANCELLED = 130

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=APP_NAME,
        description="Migrate an extracted Google Takeout photo archive into an asset store"
    )
    parser.add_argument(
        "--source",
        type=Path,
        help="Root of the extracted takeout tree (overrides config)"
    )
    parser.add_argument(
        "--config",
        type=Path,
        help="Path to config file (defaults.toml)"
    )
    parser.add_argument(
        "--worker-threads",
        type=int,
        help="Worker threads for directory resolution; 0 or 1 runs sequentially (overrides config)"
    )
    parser.add_argument(
        "--batch-size",
        type=int,
        help="Initial batch size (overrides config)"
    )
    parser.add_argument(
        "--min-batch-size",
        type=int,
        help="Batch size floor (overrides config)"
    )
    parser.add_argument(
        "--pause",
        type=float,
        help="Pause between batches in seconds (overrides config)"
    )
    parser.add_argument(
        "--manifest",
        type=Path,
        help="Write a JSON Lines manifest of migrated items (default: dry run)"
    )
    parser.add_argument(
        "--checkpoint",
        type=Path,
        help="Checkpoint file for resuming an interrupted run"
    )
    parser.add_argument(
        "--use-ffprobe",
        action="store_true",
        help="Use ffprobe for video metadata extraction (requires ffmpeg/ffprobe installed)"
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        type=str.upper,
        help="Log level (overrides config)"
    )
    return parser


def apply_overrides(config: MigratorConfig, args: argparse.Namespace) -> MigratorConfig:
    """Return a validated copy of ``config`` with command line overrides applied."""
    data: Dict[str, Any] = config.model_dump()
    if args.source is not None:
        data['scan']['source_path'] = str(args.source)
    if args.worker_threads is not None:
        data['runtime']['worker_threads'] = args.worker_threads
    if args.batch_size is not None:
        data['batch']['initial_size'] = args.batch_size
        data['batch']['max_size'] = max(data['batch']['max_size'], args.batch_size)
    if args.min_batch_size is not None:
        data['batch']['min_size'] = args.min_batch_size
    if args.pause is not None:
        data['batch']['pause_seconds'] = args.pause
    if args.manifest is not None:
        data['runtime']['manifest_path'] = str(args.manifest)
    if args.checkpoint is not None:
        data['runtime']['checkpoint_path'] = str(args.checkpoint)
    if args.use_ffprobe:
        data['metadata']['use_ffprobe'] = True
    if args.log_level is not None:
        data['logging']['level'] = args.log_level
    return MigratorConfig.model_validate(data)


def migrate_command(config: MigratorConfig, cancel_token: CancellationToken) -> int:
    """Run one migration and print its report.

    Returns:
        Exit code (0 completed, 1 unreadable source, 130 cancelled)
    """
    source_path = Path(config.scan.source_path)
    logger.info(
        f"Configuration: {{'source_path': {str(source_path)!r}, "
        f"'worker_threads': {config.runtime.worker_threads}, "
        f"'initial_batch_size': {config.batch.initial_size}, 'min_batch_size': {config.batch.min_size}, "
        f"'manifest_path': {config.runtime.manifest_path!r}, 'checkpoint_path': {config.runtime.checkpoint_path!r}}}"
    )

    with ExitStack() as stack:
        if config.runtime.manifest_path:
            sink = stack.enter_context(JsonLinesSink(Path(config.runtime.manifest_path)))
        else:
            sink = DryRunSink()

        orchestrator = MigrationOrchestrator(config, sink, cancel_token=cancel_token)
        try:
            summary = orchestrator.run(source_path)
        except EnumerationError as e:
            logger.error(f"Cannot enumerate source: {{'path': {str(source_path)!r}, 'error': {e.message!r}}}")
            return EXIT_ENUMERATION_FAILED

    print(json.dumps(summary.build_report(), indent=2))
    if summary.status == STATUS_CANCELLED:
        return EXIT_CANCELLED
    return EXIT_OK


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the migrate command."""
    parser = build_parser()
    args = parser.parse_args(argv)

    loader = ConfigLoader(app_name=APP_NAME, config_class=MigratorConfig)
    try:
        config = apply_overrides(loader.load(defaults_path=args.config), args)
    except (ValidationError, FileNotFoundError, toml.TomlDecodeError) as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        return EXIT_INVALID_CONFIG

    setup_logging_from_config(config.logging)

    if not config.scan.source_path:
        parser.error("no source directory: pass --source or set scan.source_path")

    cancel_token = CancellationToken()

    def handle_sigint(signum, frame):
        logger.warning("Interrupt received, finishing the current batch...")
        cancel_token.cancel()

    previous_handler = signal.signal(signal.SIGINT, handle_sigint)
    try:
        return migrate_command(config, cancel_token)
    finally:
        signal.signal(signal.SIGINT, previous_handler)


if __name__ == "__main__":
    sys.exit(main())

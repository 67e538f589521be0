# transferpilot/cli/application_factory.py

import json
import signal
import threading
import logging

from rich.table import Table

from transferpilot.core.config_manager import TransferConfig
from transferpilot.core.exceptions import (
    FatalSessionError, StorageError, TransferPilotError, ValidationError,
)
from transferpilot.core.interfaces.types import TransferPhase
from transferpilot.core.platform_manager import PlatformManager
from transferpilot.core.transfer_engine import TransferEngine
from transferpilot.core.utils import format_size

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_CANCELLED = 130


def validate_arguments(args):
    """
    Validate command line arguments.

    Args:
        args: Parsed command line arguments

    Returns:
        tuple: (is_valid: bool, error_message: str)
    """
    if args.command in ("preflight", "transfer"):
        if not args.dest or not args.dest.strip():
            return False, "A destination is required"
        if any(not path.strip() for path in args.paths):
            return False, "Source paths must not be empty"

    workers = getattr(args, "workers", None)
    if workers is not None and workers < 1:
        return False, "Workers must be a positive integer"

    return True, ""


def create_engine(config: TransferConfig, args=None) -> TransferEngine:
    """Build an engine, applying command line overrides to the configuration."""
    workers = getattr(args, "workers", None)
    if workers:
        config = config.model_copy(update={"max_workers": workers})
    return TransferEngine(config)


def run_volumes(engine: TransferEngine, display) -> int:
    try:
        volumes = engine.list_volumes()
    except StorageError as e:
        display.show_error(str(e))
        return EXIT_FAILURE

    table = Table(title="Volumes")
    table.add_column("Name", style="cyan")
    table.add_column("Mount point")
    table.add_column("Type")
    table.add_column("Size", justify="right")
    table.add_column("Free", justify="right")
    table.add_column("Removable")
    for volume in volumes:
        table.add_row(
            volume.name,
            volume.mount_point,
            volume.fs_type or "-",
            format_size(volume.total_bytes),
            format_size(volume.avail_bytes),
            "yes" if volume.removable else "no",
        )
    display.console.print(table)
    return EXIT_OK


def run_preflight(args, engine: TransferEngine, display) -> int:
    """Exit code 0 when the selection fits on the destination, 1 otherwise."""
    engine.add_dropped_paths(args.paths)
    preflight = engine.queue_preflight(args.dest)
    display.show_preflight(preflight)
    return EXIT_OK if preflight.will_fit else EXIT_FAILURE


def run_transfer(args, engine: TransferEngine, display) -> int:
    """
    Run a transfer session from the command line.

    Ctrl+C requests cancellation; files already being copied finish first.

    Returns:
        0 when every file was transferred, 1 on per-file or fatal errors,
        130 when cancelled
    """
    engine.add_dropped_paths(args.paths)
    preflight = engine.queue_preflight(args.dest)
    display.show_preflight(preflight)
    if not preflight.will_fit:
        display.show_error("Not enough space on the destination")
        return EXIT_FAILURE

    overrides = {
        "dest_root_dir_name": args.root_dir,
        "group_by_date": args.group_by_date,
        "group_by_type": args.group_by_type,
        "preserve_folder_structure": args.preserve_folder_structure,
    }

    previous_handler = None
    if threading.current_thread() is threading.main_thread():
        def _on_interrupt(signum, frame):
            logger.warning("Interrupt received, cancelling transfer")
            engine.cancel_transfer()
        previous_handler = signal.signal(signal.SIGINT, _on_interrupt)

    try:
        summary = engine.start_transfer(
            engine.queue.items(),
            args.dest,
            copy_mode=args.mode,
            conflict_policy=args.conflict,
            verify_mode=args.verify,
            progress_sink=display.show_progress,
            **overrides,
        )
    except FatalSessionError as e:
        display.show_error(str(e))
        if e.summary is not None:
            _report(args, display, e.summary)
        return EXIT_FAILURE
    finally:
        if previous_handler is not None:
            signal.signal(signal.SIGINT, previous_handler)

    _report(args, display, summary)
    if summary.phase == TransferPhase.CANCELLED:
        return EXIT_CANCELLED
    return EXIT_FAILURE if summary.error_files else EXIT_OK


def _report(args, display, summary) -> None:
    if getattr(args, "json", False):
        display.console.print_json(json.dumps(summary.to_dict()))
    else:
        display.show_summary(summary)


def run_application(args, config: TransferConfig) -> int:
    """
    Run the selected subcommand.

    Args:
        args: Parsed command line arguments
        config: Loaded configuration

    Returns:
        Process exit code
    """
    try:
        display = PlatformManager.create_display()
        engine = create_engine(config, args)

        if args.command == "volumes":
            return run_volumes(engine, display)
        if args.command == "preflight":
            return run_preflight(args, engine, display)
        return run_transfer(args, engine, display)

    except ValidationError as e:
        logger.error(f"Invalid request: {e}")
        print(f"Error: {e}")
        return EXIT_FAILURE
    except TransferPilotError as e:
        logger.error(f"{type(e).__name__}: {e}")
        print(f"Error: {e}")
        return EXIT_FAILURE
    except KeyboardInterrupt:
        print("\nExiting due to keyboard interrupt")
        return EXIT_CANCELLED

# transferpilot/cli/argument_parser.py

import argparse
from transferpilot import __version__, __project_name__
from transferpilot.core.interfaces.types import ConflictPolicy, CopyMode, VerifyMode


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description=f"{__project_name__} v{__version__}")

    parser.add_argument(
        "--version",
        action="version",
        version=f"{__project_name__} {__version__}"
    )

    parser.add_argument(
        "--config",
        type=str,
        help="Path to a configuration file"
    )

    parser.add_argument(
        "--debug",
        action="store_true",
        help="Log debug output to the console"
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("volumes", help="List mounted volumes")

    preflight = subparsers.add_parser("preflight", help="Report size and composition without copying")
    _add_selection_arguments(preflight)

    transfer = subparsers.add_parser("transfer", help="Copy or move files to a destination volume")
    _add_selection_arguments(transfer)

    transfer.add_argument(
        "--mode",
        choices=[mode.value for mode in CopyMode],
        help="Copy the files or move them (delete sources after verification)"
    )

    transfer.add_argument(
        "--conflict",
        choices=[policy.value for policy in ConflictPolicy],
        help="What to do when a destination file already exists"
    )

    transfer.add_argument(
        "--verify",
        choices=[mode.value for mode in VerifyMode],
        help="How each copied file is verified"
    )

    transfer.add_argument(
        "--root-dir",
        type=str,
        help="Name of the folder created at the destination root"
    )

    transfer.add_argument(
        "--no-group-by-date",
        dest="group_by_date",
        action="store_false",
        default=None,
        help="Do not add a date folder inside the session folder"
    )

    transfer.add_argument(
        "--no-group-by-type",
        dest="group_by_type",
        action="store_false",
        default=None,
        help="Do not sort files into category folders"
    )

    transfer.add_argument(
        "--preserve-folder-structure",
        action="store_true",
        default=None,
        help="Keep the layout of picked folders"
    )

    transfer.add_argument(
        "--workers",
        type=int,
        help="Number of files transferred in parallel"
    )

    transfer.add_argument(
        "--json",
        action="store_true",
        help="Print the session summary as JSON"
    )

    return parser


def _add_selection_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "paths",
        nargs="+",
        help="Files and folders to transfer"
    )

    parser.add_argument(
        "--dest",
        required=True,
        help="Mount point of the destination volume"
    )


def parse_arguments(argv=None):
    """Parse command line arguments"""
    return build_parser().parse_args(argv)

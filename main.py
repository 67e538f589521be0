# main.py

import sys
import logging
from pathlib import Path

from transferpilot.core.config_manager import ConfigManager
from transferpilot.core.logger_setup import setup_logging
from transferpilot.cli.argument_parser import parse_arguments
from transferpilot.cli.application_factory import run_application, validate_arguments


def main(argv=None):
    """Main entry point"""
    args = parse_arguments(argv)

    # Initialize configuration first
    config_manager = ConfigManager(Path(args.config) if args.config else None)
    config = config_manager.load_config()

    # Now initialize logging with config settings
    setup_logging(
        log_level=getattr(logging, config.log_level),  # Convert string level to logging constant
        log_format='%(message)s',
        console_level=logging.DEBUG if args.debug else logging.WARNING,
        log_file_rotation=config.log_file_rotation,
        log_file_max_size=config.log_file_max_size
    )

    # Validate arguments
    is_valid, error_message = validate_arguments(args)
    if not is_valid:
        print(f"Error: {error_message}")
        return 1

    return run_application(args, config)

if __name__ == "__main__":
    sys.exit(main())

#!/usr/bin/env python3
"""
Throttle Guard - daemon entry point

Intended to run under systemd (see deploy/throttle-guard.service).
Exit codes: 0 graceful stop, 1 missing privilege or tool, 2 bad configuration.
"""

import argparse
import logging
import signal
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import List, Optional

from . import __version__
from .config_manager import DEFAULT_CONFIG_PATH, GuardConfig, GuardConfigManager
from .errors import ConfigError, StartupFatal
from .guard_service import ThrottleGuardService, check_startup_preconditions

logger = logging.getLogger("throttle_guard")

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def setup_logging(diagnostic_log_path: Optional[Path] = None, verbose: bool = False) -> None:
    """Diagnostic logging: stderr (captured by the journal) plus an optional rotating file"""
    handlers: List[logging.Handler] = [logging.StreamHandler()]
    if diagnostic_log_path is not None:
        diagnostic_log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(
            RotatingFileHandler(
                diagnostic_log_path,
                maxBytes=10*1024*1024,  # 10MB
                backupCount=5
            )
        )

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format=LOG_FORMAT,
        handlers=handlers,
        force=True
    )


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="throttle-guard",
        description="Keep the CPU temperature target where you set it"
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=DEFAULT_CONFIG_PATH,
        help=f"JSON configuration file (default: {DEFAULT_CONFIG_PATH})"
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single check/correct cycle and exit"
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Debug-level diagnostic logging"
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser.parse_args(argv)


def install_signal_handlers(service: ThrottleGuardService) -> None:
    """SIGTERM/SIGINT end the loop at its next sleep"""
    def signal_handler(signum, frame):
        logger.info(f"Received signal {signum}, shutting down after the current cycle...")
        service.stop()

    signal.signal(signal.SIGTERM, signal_handler)
    signal.signal(signal.SIGINT, signal_handler)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    setup_logging(verbose=args.verbose)

    try:
        config: GuardConfig = GuardConfigManager(args.config).load_config()
    except ConfigError as e:
        logger.critical(str(e))
        return e.exit_code

    if config.diagnostic_log_path is not None:
        setup_logging(config.diagnostic_log_path, verbose=args.verbose)

    service = ThrottleGuardService(config)

    try:
        check_startup_preconditions(config)
    except StartupFatal as e:
        logger.critical(str(e))
        service.record_startup_failure(str(e))
        return e.exit_code

    if args.once:
        service.run_cycle()
        return 0

    install_signal_handlers(service)
    service.run()
    return 0


if __name__ == "__main__":
    sys.exit(main())

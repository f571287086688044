"""Command line entry point for move-instance."""

import argparse
import os
import signal
import sys
import tempfile
from pathlib import Path

from .constants import ENV_LOG_DIR, ENV_LOG_LEVEL, EXIT_FAILURE, EXIT_INTERRUPTED, EXIT_OK
from .core.config_loader import MoverConfig, load_config
from .core.exceptions import (
    ConfigurationError,
    DescriptorUnavailable,
    MoveInstanceError,
    PreflightError,
    RemoteExecutionError,
    UserDeclined,
)
from .core.executor import RemoteExecutor
from .core.logging_config import get_logger, setup_logging
from .core.migration import MigrationWorkflow


class MoveInstanceArgumentParser(argparse.ArgumentParser):
    """argparse that reports usage errors with exit status 1."""

    def error(self, message: str):
        self.print_usage(sys.stderr)
        self.exit(EXIT_FAILURE, f"{self.prog}: error: {message}\n")


def build_parser() -> argparse.ArgumentParser:
    parser = MoveInstanceArgumentParser(
        prog="move-instance",
        description=(
            "Move a Ganeti instance to a node in another cluster, "
            "converting it to the configured hypervisor on the way."
        ),
    )
    parser.add_argument("-i", "--instance", required=True, help="Instance to move")
    parser.add_argument(
        "-d", "--destination-node", required=True, help="Node that will host the instance"
    )
    return parser


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    return build_parser().parse_args(argv)


def _setup_log_directory(config: MoverConfig) -> str | None:
    """Setup log directory with fallback options."""
    log_dir_candidates = [
        os.getenv(ENV_LOG_DIR),  # Explicit environment override
        config.log_dir,
        str(Path.home() / ".local" / "share" / "move-instance" / "logs"),  # User fallback
        str(Path(tempfile.gettempdir()) / "move-instance-logs"),  # System fallback
    ]

    for candidate in log_dir_candidates:
        if candidate:
            try:
                candidate_path = Path(candidate)
                candidate_path.mkdir(parents=True, exist_ok=True)
                if candidate_path.is_dir() and os.access(candidate_path, os.W_OK):
                    return str(candidate_path)
            except OSError:
                continue

    print("Warning: Unable to create log directory, using console-only logging")
    return None


def _setup_logging_system(config: MoverConfig, log_dir: str | None):
    """Setup logging system and return the tool logger."""
    try:
        max_file_size_mb = int(os.getenv("LOG_FILE_SIZE_MB", "10"))
        if max_file_size_mb < 1 or max_file_size_mb > 100:
            max_file_size_mb = 10  # Reset to default if out of range
    except ValueError:
        max_file_size_mb = 10

    log_level = os.getenv(ENV_LOG_LEVEL) or config.log_level
    setup_logging(log_dir=log_dir, log_level=log_level, max_file_size_mb=max_file_size_mb)
    return get_logger()


def _raise_keyboard_interrupt(signum, frame):
    raise KeyboardInterrupt(signal.Signals(signum).name)


def install_signal_handlers() -> None:
    """Treat SIGTERM and SIGHUP like Ctrl-C so cleanup runs for all three."""
    signal.signal(signal.SIGTERM, _raise_keyboard_interrupt)
    if hasattr(signal, "SIGHUP"):
        signal.signal(signal.SIGHUP, _raise_keyboard_interrupt)


def _run_workflow(workflow: MigrationWorkflow, args: argparse.Namespace, logger) -> int:
    """Run the move and map its outcome to an exit status."""
    try:
        workflow.run(args.instance, args.destination_node)
    except UserDeclined:
        print("No changes made, exiting.")
        return EXIT_OK
    except KeyboardInterrupt:
        logger.warning("Interrupted, cleanup finished", instance=args.instance)
        return EXIT_INTERRUPTED
    except PreflightError as e:
        logger.error(
            "Preflight check failed",
            cause=getattr(e.cause, "value", e.cause),
            detail=e.detail,
        )
        print(f"ERROR: {e}")
        return EXIT_FAILURE
    except DescriptorUnavailable as e:
        logger.error("Unable to describe instance", instance=args.instance, error=str(e))
        print(f"ERROR: {e}")
        return EXIT_FAILURE
    except RemoteExecutionError as e:
        logger.error(
            "Command failed",
            error=str(e),
            host=e.host,
            command=e.command,
            returncode=e.returncode,
        )
        print(f"ERROR: {e}")
        return EXIT_FAILURE
    except MoveInstanceError as e:
        logger.error("Move failed", error=str(e), error_type=type(e).__name__)
        print(f"ERROR: {e}")
        return EXIT_FAILURE

    logger.info(
        "Instance moved", instance=args.instance, destination_node=args.destination_node
    )
    return EXIT_OK


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    args = parse_args(argv)

    try:
        config = load_config()
    except ConfigurationError as e:
        print(f"ERROR: {e}")
        return EXIT_FAILURE

    log_dir = _setup_log_directory(config)
    logger = _setup_logging_system(config, log_dir)
    install_signal_handlers()

    executor = RemoteExecutor(config.ssh)
    workflow = MigrationWorkflow(config, executor)
    return _run_workflow(workflow, args, logger)


if __name__ == "__main__":
    sys.exit(main())

from __future__ import annotations

import argparse
import os
import signal
import sys
import threading
import traceback
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional, Sequence
from zoneinfo import ZoneInfo

from croniter import croniter

from .api import VercelAPI, VercelAPIError
from .config import BackupConfig, ConfigurationError, SchedulerConfig, load_config
from .logger import configure_logging, get_logger
from .orchestrator import BackupOrchestrator, BackupRunError
from .pagination import PaginationError
from .storage import FilesystemStorage

LOG = get_logger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_CONFIG_ERROR = 2


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Back up the environment variables of every Vercel project you can reach."
    )
    parser.add_argument(
        "--config",
        default=os.getenv("VERCEL_BACKUP_CONFIG"),
        help="Optional path to a YAML configuration file.",
    )
    parser.add_argument("--output-dir", help="Root directory for backup runs (default ./backups).")
    parser.add_argument("--page-size", type=int, help="Projects requested per page (1-100).")
    parser.add_argument(
        "--file-naming",
        choices=("name", "id"),
        help="Name project files by project name, or by name plus project id.",
    )
    parser.add_argument(
        "--continue-on-error",
        action="store_true",
        help="Keep going past failing scopes or projects and report them at the end.",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single backup even when a scheduler is configured.",
    )
    parser.add_argument("--log-level", help="Log level (default INFO).")
    return parser.parse_args(argv)


def _overrides(args: argparse.Namespace) -> Dict[str, Any]:
    return {
        "output_dir": args.output_dir,
        "page_size": args.page_size,
        "file_naming": args.file_naming,
        "on_error": "continue" if args.continue_on_error else None,
        "log_level": args.log_level,
    }


def run_backup(config: BackupConfig) -> int:
    """Run one backup pass and map its outcome to an exit code.

    A missing token raises :class:`ConfigurationError` before any request is made.
    """
    token = config.require_token()
    api = VercelAPI(token, base_url=config.api_url, timeout=config.timeout)
    storage = FilesystemStorage(base_path=config.output_dir, file_naming=config.file_naming)
    orchestrator = BackupOrchestrator(
        api=api,
        storage=storage,
        page_size=config.page_size,
        on_error=config.on_error,
    )

    try:
        root = orchestrator.run()
    except BackupRunError as exc:
        LOG.error("%s", exc)
        for error in exc.errors:
            LOG.error("  %s", error)
        return EXIT_FAILURE
    except (VercelAPIError, PaginationError, OSError) as exc:
        LOG.error("Backup failed: %s", exc)
        LOG.debug("Traceback:\n%s", traceback.format_exc())
        return EXIT_FAILURE

    LOG.info("Backup written to %s", root)
    return EXIT_OK


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    configure_logging(args.log_level or os.getenv("LOG_LEVEL", "INFO"))

    config_path = Path(args.config).expanduser() if args.config else None
    overrides = _overrides(args)
    try:
        config = load_config(config_path, overrides)
    except ConfigurationError as exc:
        LOG.error("Configuration error: %s", exc)
        return EXIT_CONFIG_ERROR

    configure_logging(config.log_level)

    if config.scheduler and not args.once:
        return run_with_scheduler(config_path, config, overrides)

    try:
        return run_backup(config)
    except ConfigurationError as exc:
        LOG.error("Configuration error: %s", exc)
        return EXIT_CONFIG_ERROR


def run_with_scheduler(
    config_path: Optional[Path],
    initial_config: BackupConfig,
    overrides: Dict[str, Any],
    stop_event: Optional[threading.Event] = None,
) -> int:
    """Repeat full backup passes on the configured cron schedule.

    The configuration is re-read before every pass so schedule, output and
    log level changes apply without a restart; removing the ``scheduler``
    block ends the loop. A failed pass is logged and the next one is still
    scheduled.
    """
    stop_event = stop_event or threading.Event()
    previous_handlers = _install_stop_handlers(stop_event)

    config = initial_config
    scheduler = config.scheduler
    now = datetime.now(ZoneInfo(scheduler.timezone))
    next_run = now if scheduler.run_on_startup else _next_run(scheduler, now)
    LOG.info(
        "Backup scheduler started (cron '%s', %s); first run at %s",
        scheduler.cron,
        scheduler.timezone,
        next_run.isoformat(),
    )

    runs = 0
    try:
        while not stop_event.is_set():
            now = datetime.now(next_run.tzinfo)
            if now < next_run:
                stop_event.wait(min((next_run - now).total_seconds(), 60))
                continue

            config = _reload_config(config_path, overrides, config)
            if not config.scheduler:
                LOG.info("Scheduler removed from configuration after %d run(s); exiting", runs)
                break
            scheduler = config.scheduler

            try:
                exit_code = run_backup(config)
            except ConfigurationError as exc:
                LOG.error("Configuration error: %s", exc)
                exit_code = EXIT_CONFIG_ERROR
            runs += 1
            if exit_code != EXIT_OK:
                LOG.warning("Scheduled backup %d failed (exit code %s)", runs, exit_code)

            next_run = _next_run(scheduler, datetime.now(ZoneInfo(scheduler.timezone)))
            LOG.info("Next backup scheduled for %s", next_run.isoformat())
    finally:
        _restore_handlers(previous_handlers)

    LOG.info("Scheduler stopped after %d run(s)", runs)
    return EXIT_OK


def _reload_config(
    config_path: Optional[Path],
    overrides: Dict[str, Any],
    current: BackupConfig,
) -> BackupConfig:
    try:
        config = load_config(config_path, overrides)
    except ConfigurationError as exc:
        LOG.error("Failed to reload configuration: %s; keeping previous settings", exc)
        return current
    if config.log_level != current.log_level:
        configure_logging(config.log_level)
    return config


def _install_stop_handlers(stop_event: threading.Event) -> Dict[int, Any]:
    def _handle_signal(signum: int, _frame: Optional[object]) -> None:
        LOG.info("Received signal %s; stopping scheduler after the current run", signum)
        stop_event.set()

    previous = {}
    for signum in (signal.SIGTERM, signal.SIGINT):
        previous[signum] = signal.signal(signum, _handle_signal)
    return previous


def _restore_handlers(previous: Dict[int, Any]) -> None:
    for signum, handler in previous.items():
        if handler is not None:
            signal.signal(signum, handler)


def _next_run(scheduler: SchedulerConfig, reference: datetime) -> datetime:
    return croniter(scheduler.cron, reference).get_next(datetime)


if __name__ == "__main__":
    sys.exit(main())

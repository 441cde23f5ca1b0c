"""Main entry point for the marketplace notification service.

Modes:
- daemon (default): run the reminder sweep on its interval until SIGINT/SIGTERM
- ``--run-once``: run a single sweep, drain the mail queue and exit
- ``--check``: validate the configuration and the translation catalogs
"""

import argparse
import os
import signal
import sys
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Tuple

from dotenv import load_dotenv

from marketplace.config.environment import EnvironmentConfig
from marketplace.config.exceptions import ConfigurationError
from marketplace.config.loader import load_app_config, load_config
from marketplace.config.models import AppConfig
from marketplace.lifecycle import JobLifecycle
from marketplace.logging import get_logger
from marketplace.logging.config import configure_logging
from marketplace.matching.engine import MatchEngine
from marketplace.notifications.delivery import MailQueue
from marketplace.notifications.dispatcher import NotificationDispatcher
from marketplace.notifications.notifiers import required_catalog_keys
from marketplace.notifications.smtp_client import SMTPClient, build_sender_address
from marketplace.notifications.templates import TemplateRenderer
from marketplace.notifications.translations import Translator
from marketplace.persistence.database import close_database, init_database
from marketplace.persistence.directory import UserDirectory
from marketplace.scheduler import SchedulerService
from marketplace.sweeps import ReminderSweep

logger = get_logger(__name__, component="cli")


@dataclass
class Services:
    """Long-lived objects shared by the sweep and the lifecycle hooks."""

    translator: Translator
    mail_queue: MailQueue
    dispatcher: NotificationDispatcher
    lifecycle: JobLifecycle
    sweep: ReminderSweep


def load_runtime_config(
    config_path: Optional[Path], log_level_override: Optional[str]
) -> Tuple[AppConfig, EnvironmentConfig]:
    """
    Load configuration and settle the log level.

    Priority for the log level: CLI flag, then LOG_LEVEL, then config file.

    Raises:
        ConfigurationError: If configuration is invalid
    """
    app_config, env_config = load_config(config_path)

    if log_level_override:
        env_config.log_level = log_level_override
    elif not env_config.log_level:
        env_config.log_level = app_config.logging.level

    return app_config, env_config


def build_services(app_config: AppConfig, env_config: EnvironmentConfig) -> Services:
    """Wire translator, renderer, mail queue, dispatcher, lifecycle and sweep."""
    translator = Translator.from_config(app_config.localization)
    renderer = TemplateRenderer(translator)

    smtp_client = SMTPClient(env_config, use_tls=app_config.email.use_tls)
    mail_queue = MailQueue(
        smtp_client,
        sender_address=build_sender_address(env_config),
        email_config=app_config.email,
    )

    directory = UserDirectory()
    match_engine = MatchEngine(directory, directory, config=app_config.matching)
    dispatcher = NotificationDispatcher(
        delivery=mail_queue,
        renderer=renderer,
        match_engine=match_engine,
        admin_provider=directory.admins,
        profile_attributes=app_config.reminders.profile_attributes,
    )

    return Services(
        translator=translator,
        mail_queue=mail_queue,
        dispatcher=dispatcher,
        lifecycle=JobLifecycle(dispatcher),
        sweep=ReminderSweep(app_config.reminders, dispatcher),
    )


def check_catalogs(translator: Translator) -> List[str]:
    """Describe every catalog key missing from a shipped locale."""
    problems = []
    for locale, keys in translator.missing_keys(required_catalog_keys()).items():
        for key in keys:
            problems.append(f"{locale}: missing '{key}'")
    return problems


def run_check(config_path: Optional[Path]) -> int:
    """Validate config file and catalogs without touching SMTP or the database."""
    app_config = load_app_config(config_path)
    translator = Translator.from_config(app_config.localization)
    problems = check_catalogs(translator)

    if problems:
        print("Translation catalog problems:", file=sys.stderr)
        for problem in problems:
            print(f"  - {problem}", file=sys.stderr)
        return 1

    print(
        f"Configuration OK; catalogs complete for: {', '.join(translator.locales)}"
    )
    return 0


def shutdown(services: Services, scheduler_service: Optional[SchedulerService] = None) -> None:
    if scheduler_service is not None:
        scheduler_service.shutdown(wait=False)
    services.mail_queue.stop(drain=True)
    close_database()


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main entry point.

    Returns:
        Exit code (0 for success, non-zero for failure).
    """
    start_time = time.time()
    parser = argparse.ArgumentParser(
        description="Job marketplace notifier - reminder sweeps and email notifications"
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to configuration file (default: config.yaml, then config/config.yaml)",
    )
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument(
        "--run-once",
        action="store_true",
        help="Run a single reminder sweep, deliver queued mail and exit",
    )
    mode.add_argument(
        "--check",
        action="store_true",
        help="Validate the configuration and translation catalogs and exit",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Log level (overrides config and environment)",
    )

    args = parser.parse_args(argv)
    load_dotenv()

    try:
        if args.check:
            return run_check(args.config)

        app_config, env_config = load_runtime_config(args.config, args.log_level)
        configure_logging(
            level=env_config.log_level,
            format_type=app_config.logging.format,
            environment=os.environ.get("ENVIRONMENT", "local"),
        )

        logger.info(
            "Marketplace notifier starting",
            extra={
                "event": "service.starting",
                "config_path": str(args.config) if args.config else None,
                "log_level": env_config.log_level,
                "run_once": args.run_once,
            },
        )

        init_database(env_config.database_url)
        services = build_services(app_config, env_config)
        services.mail_queue.start()

        logger.info(
            "Services initialized",
            extra={
                "event": "services.initialized",
                "locales": services.translator.locales,
                "sweep_interval_seconds": app_config.reminders.sweep_interval_seconds,
            },
        )

        if args.run_once:
            result = services.sweep.run_once()
            shutdown(services)
            logger.info(
                f"Sweep completed: {result.overdue_notified} overdue notified, "
                f"{result.data_reminders_sent} data reminders sent, {result.errors} errors",
                extra={
                    "event": "service.run_once.completed",
                    "had_errors": result.had_errors,
                    "uptime_seconds": round(time.time() - start_time, 2),
                },
            )
            return 1 if result.had_errors else 0

        if not app_config.reminders.enabled:
            logger.warning(
                "Reminder sweep is disabled; nothing to schedule",
                extra={"event": "service.sweep_disabled"},
            )
            shutdown(services)
            return 0

        shutdown_event = threading.Event()
        scheduler_service = SchedulerService(
            sweep_callable=services.sweep.run_once,
            interval_seconds=app_config.reminders.sweep_interval_seconds,
            shutdown_event=shutdown_event,
        )

        def signal_handler(signum, frame):
            logger.info(
                f"Received signal {signum}, shutting down",
                extra={"event": "service.signal_received", "signal": signum},
            )
            shutdown_event.set()

        signal.signal(signal.SIGINT, signal_handler)
        signal.signal(signal.SIGTERM, signal_handler)

        scheduler_service.start()
        logger.info(
            "Scheduler started. Press Ctrl+C to stop",
            extra={"event": "service.daemon_mode.started"},
        )

        try:
            shutdown_event.wait()
        except KeyboardInterrupt:
            logger.info(
                "Keyboard interrupt received, shutting down",
                extra={"event": "service.keyboard_interrupt"},
            )
        shutdown(services, scheduler_service)

        logger.info(
            "Marketplace notifier stopped",
            extra={"event": "service.stopping", "uptime_seconds": round(time.time() - start_time, 2)},
        )
        return 0

    except ConfigurationError as e:
        print(f"Configuration Error: {e}", file=sys.stderr)
        logger.error(
            f"Configuration error: {e}",
            extra={"event": "config.error", "error_type": "ConfigurationError"},
        )
        return 1
    except KeyboardInterrupt:
        print("\nShutdown requested by user", file=sys.stderr)
        return 0
    except Exception as e:
        print(f"Fatal error: {e}", file=sys.stderr)
        logger.critical(
            "Fatal error during startup",
            exc_info=True,
            extra={"event": "service.startup.failed", "error_type": type(e).__name__},
        )
        return 1


if __name__ == "__main__":
    sys.exit(main())

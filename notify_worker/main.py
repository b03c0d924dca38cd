"""Main entry point for the notification dispatch worker."""

from dotenv import load_dotenv
load_dotenv()

import argparse
import os
import signal
import sys
import threading
import time
from pathlib import Path
from typing import Optional, Tuple

import requests
import uvicorn

from notify_worker.api import create_app
from notify_worker.config.environment import EnvironmentConfig
from notify_worker.config.exceptions import ConfigurationError
from notify_worker.config.loader import load_config
from notify_worker.config.models import AppConfig
from notify_worker.logging import get_logger
from notify_worker.logging.config import configure_logging
from notify_worker.persistence.database import close_database, init_database
from notify_worker.scheduler import SchedulerService
from notify_worker.worker import DispatchWorker, WorkerContext

logger = get_logger(__name__, component="cli")


def load_runtime_config(
    config_path: Optional[Path], log_level_override: Optional[str]
) -> Tuple[AppConfig, EnvironmentConfig]:
    """
    Load configuration and settle the effective log level.

    Log level priority: CLI > LOG_LEVEL environment variable > config file.

    Raises:
        ConfigurationError: If configuration is invalid
    """
    app_config, env_config = load_config(config_path)

    if log_level_override:
        env_config.log_level = log_level_override
    elif not env_config.log_level:
        env_config.log_level = app_config.logging.level or "INFO"

    return app_config, env_config


def build_worker(
    app_config: AppConfig,
    env_config: EnvironmentConfig,
    http_session: Optional[requests.Session] = None,
) -> DispatchWorker:
    """Worker whose invocations each build a fresh context.

    Every context reuses http_session for provider calls.
    """
    return DispatchWorker(
        lambda: WorkerContext.build(app_config, env_config, http_session=http_session)
    )


def run_manual(worker: DispatchWorker) -> int:
    try:
        result = worker.invoke()
    except Exception as e:
        print(f"Invocation failed: {e}", file=sys.stderr)
        return 1

    logger.info(
        f"Manual run completed: {result.scheduled_enqueued} promoted, "
        f"{result.processed} processed, {result.errors} errors",
        extra={
            "event": "service.manual_run.completed",
            "scheduled_enqueued": result.scheduled_enqueued,
            "processed": result.processed,
            "errors": result.errors,
        },
    )
    return 0


def run_daemon(worker: DispatchWorker, interval_seconds: int) -> int:
    shutdown_event = threading.Event()
    scheduler_service = SchedulerService(
        invoke_callable=worker.invoke,
        interval_seconds=interval_seconds,
        shutdown_event=shutdown_event,
    )

    def signal_handler(signum, frame):
        logger.info(
            f"Received signal {signum}, shutting down",
            extra={"event": "service.signal_received", "signal": signum},
        )
        scheduler_service.shutdown(wait=False)

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
        scheduler_service.shutdown(wait=False)
    return 0


def main(argv=None) -> int:
    """
    Main entry point.

    Modes:
        --manual-run  one invocation, then exit
        --serve       HTTP trigger server
        (default)     daemon, one invocation per poll interval

    Returns:
        Exit code (0 for success, non-zero for failure).
    """
    start_time = time.time()
    parser = argparse.ArgumentParser(
        description="Notification Dispatch Worker - leases queued notification jobs and delivers them"
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to configuration file (default: config.yaml or config/config.yaml)",
    )
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument(
        "--manual-run",
        action="store_true",
        help="Run a single invocation immediately and exit",
    )
    mode.add_argument(
        "--serve",
        action="store_true",
        help="Serve the HTTP trigger instead of polling",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Log level (overrides config and environment)",
    )

    args = parser.parse_args(argv)

    try:
        app_config, env_config = load_runtime_config(args.config, args.log_level)

        configure_logging(
            level=env_config.log_level,
            format_type=app_config.logging.format,
            environment=os.environ.get("ENVIRONMENT", "local"),
        )

        logger.info(
            "Notification dispatch worker starting",
            extra={
                "event": "service.starting",
                "config_path": str(args.config) if args.config else None,
                "log_level": env_config.log_level,
                "manual_run": args.manual_run,
                "serve": args.serve,
            },
        )

        init_database(env_config.database_url)

        logger.info(
            "Configuration loaded",
            extra={
                "event": "config.loaded",
                "batch_size": app_config.worker.batch_size,
                "visibility_timeout": app_config.worker.visibility_timeout,
                "poll_interval_seconds": app_config.worker.poll_interval_seconds,
            },
        )

        http_session = requests.Session()
        worker = build_worker(app_config, env_config, http_session)

        try:
            if args.manual_run:
                exit_code = run_manual(worker)
            elif args.serve:
                uvicorn.run(
                    create_app(worker, env_config),
                    host=app_config.server.host,
                    port=app_config.server.port,
                    log_config=None,
                )
                exit_code = 0
            else:
                exit_code = run_daemon(worker, app_config.worker.poll_interval_seconds)
        finally:
            http_session.close()
            close_database()

        logger.info(
            "Notification dispatch worker stopped",
            extra={
                "event": "service.stopping",
                "uptime_seconds": round(time.time() - start_time, 2),
            },
        )
        return exit_code

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
            extra={
                "event": "service.startup.failed",
                "error_type": type(e).__name__,
                "error": str(e),
            },
        )
        return 1


if __name__ == "__main__":
    sys.exit(main())

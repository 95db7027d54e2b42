#!/usr/bin/env python3
"""
GenieACS Database Restore

Detects the MongoDB deployment, restores the GenieACS database from the
published backup files, restarts the GenieACS services and reports status.
"""

import os
import sys
import signal
import logging
import threading
from datetime import datetime
from pathlib import Path
from argparse import ArgumentParser

from genieacs_restore.utils.config import RestoreConfig
from genieacs_restore.utils.lock import FileLock
from genieacs_restore.utils.subprocess_utils import SubprocessRunner
from genieacs_restore.restore.app_services import primary_address, restart_services, service_status
from genieacs_restore.restore.orchestrator import Outcome, RestoreOrchestrator


class RestoreLogger:
    """Dual logging to console and file."""

    def __init__(self, log_file: Path, name: str = 'genieacs_restore'):
        self.log_file = log_file
        self.log_file.parent.mkdir(parents=True, exist_ok=True)

        self.logger = logging.getLogger(name)
        self.logger.setLevel(logging.INFO)

        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(logging.INFO)

        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(logging.INFO)

        formatter = logging.Formatter('%(asctime)s [%(levelname)s] %(message)s',
                                      datefmt='%Y-%m-%d %H:%M:%S')
        file_handler.setFormatter(formatter)
        console_handler.setFormatter(formatter)

        self.logger.addHandler(file_handler)
        self.logger.addHandler(console_handler)

    def info(self, message: str):
        self.logger.info(message)

    def warning(self, message: str):
        self.logger.warning(message)

    def error(self, message: str, exc_info=None):
        if exc_info:
            self.logger.error(message, exc_info=exc_info)
        else:
            self.logger.error(message)

    def section(self, title: str):
        separator = "=" * 80
        self.info("")
        self.info(separator)
        self.info(f"  {title}")
        self.info(separator)


def report_final_status(logger: RestoreLogger, config: RestoreConfig, session, runner):
    """Final summary block: deployment, outcome, database and service status."""
    logger.section("Final Status")
    kind = session.active_kind or session.kind
    logger.info(f"MongoDB Type: {kind.value if kind else 'unknown'}")
    if session.handle.container:
        logger.info(f"Container: {session.handle.container}")
    logger.info(f"Outcome: {session.outcome.value}")
    if session.failure:
        logger.info(f"Failure: {session.failure.value} ({session.failure_detail})")
    if session.artifacts is not None:
        counts = session.artifacts.counts()
        summary = ', '.join(f"{state.value}={count}" for state, count in counts.items() if count)
        logger.info(f"Artifacts: {summary}")
    for error in session.cleanup_errors:
        logger.warning(f"Cleanup: {error}")

    address = primary_address(runner)
    if address:
        logger.info(f"GenieACS Web UI: http://{address}:{config.genieacs_ui_port}")
    if session.outcome != Outcome.FAILED:
        logger.info(f"Database: {config.database} (restored from backup)")

    if config.genieacs_services:
        logger.section("Service Status")
        for service, running in service_status(runner, config.genieacs_services).items():
            if running:
                logger.info(f"{service}: RUNNING")
            else:
                logger.warning(f"{service}: NOT RUNNING")


def main(argv=None):
    """Main restore program."""
    parser = ArgumentParser(description='GenieACS database restore')
    parser.add_argument('env_file', nargs='?', help='Path to .env file (default: search for .env)')
    parser.add_argument('--no-restart', action='store_true',
                        help='Do not restart GenieACS services after the restore')
    args = parser.parse_args(argv)

    if os.geteuid() != 0:
        print("ERROR: Please run as root")
        return 1

    try:
        config = RestoreConfig(args.env_file)
    except FileNotFoundError as e:
        print(f"ERROR: {e}")
        return 1

    log_file = config.log_dir / f'restore-{datetime.now().strftime("%Y%m%d-%H%M%S")}.log'
    logger = RestoreLogger(log_file)
    logger.section("GenieACS Database Restore Started")
    logger.info(f"  Database: {config.database}")
    logger.info(f"  Backup source: {config.backup_base_url}")
    logger.info(f"  Log file: {log_file}")

    cancel_event = threading.Event()
    signal.signal(signal.SIGTERM, lambda signum, frame: cancel_event.set())

    lock = FileLock(config.lock_file)
    try:
        lock.acquire()
    except RuntimeError as e:
        logger.error(f"Could not acquire lock: {e}")
        return 1

    runner = SubprocessRunner()
    try:
        orchestrator = RestoreOrchestrator.from_config(config, runner, cancel_event=cancel_event)
        session = orchestrator.run()

        if session.outcome == Outcome.FAILED:
            logger.error("Restore FAILED, GenieACS services were not restarted")
        elif args.no_restart or not config.restart_services:
            logger.info("Skipping GenieACS service restart")
        else:
            logger.section("Restarting GenieACS Services")
            restart_services(runner, config.genieacs_services)

        report_final_status(logger, config, session, runner)
    except KeyboardInterrupt:
        logger.warning("Restore interrupted by user")
        return 1
    except Exception as e:
        logger.error(f"Unexpected error: {e}", exc_info=True)
        return 1
    finally:
        lock.release()

    if session.outcome == Outcome.SUCCESS:
        logger.info("Database restore completed successfully!")
        logger.info("You can now access GenieACS and login with the existing credentials")
    elif session.outcome == Outcome.PARTIAL_SUCCESS:
        logger.warning("Database restore completed with warnings, review the log above")
    return session.outcome.exit_code


if __name__ == '__main__':
    sys.exit(main())

"""Start MongoDB when it is installed but not running."""

import logging
import time
from dataclasses import dataclass
from typing import Optional

from genieacs_restore.restore.errors import StartFailure, StartFailureReason
from genieacs_restore.restore.probe import DeploymentHandle, DeploymentKind
from genieacs_restore.utils.polling import poll_until

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StartResult:
    """Either the running kind and handle, or the reason MongoDB could not be started."""
    kind: Optional[DeploymentKind] = None
    handle: DeploymentHandle = DeploymentHandle()
    failure: Optional[StartFailure] = None

    @property
    def success(self) -> bool:
        return self.failure is None


class ServiceController:
    """Start/status operations over containerized and native MongoDB."""

    def __init__(self, runner, service_name='mongod', container_attempts=30,
                 container_interval=1, native_attempts=5, native_interval=1,
                 command_timeout=60, sleep=time.sleep):
        self.runner = runner
        self.service_name = service_name
        self.container_attempts = container_attempts
        self.container_interval = container_interval
        self.native_attempts = native_attempts
        self.native_interval = native_interval
        self.command_timeout = command_timeout
        self.sleep = sleep

    def ensure_running(self, kind: DeploymentKind, handle: DeploymentHandle) -> StartResult:
        if kind in (DeploymentKind.CONTAINER_RUNNING, DeploymentKind.NATIVE_RUNNING):
            return StartResult(kind=kind, handle=handle)
        elif kind == DeploymentKind.CONTAINER_STOPPED:
            return self._start_container(handle)
        elif kind == DeploymentKind.NATIVE_INSTALLED_NOT_RUNNING:
            return self._start_native(handle)
        elif kind == DeploymentKind.NOT_INSTALLED:
            return StartResult(failure=StartFailure(
                StartFailureReason.NOT_INSTALLED, "MongoDB is not installed"))
        raise ValueError(f"Unknown deployment kind: {kind}")

    def container_running(self, container: str) -> bool:
        result = self.runner.run_command(
            ['docker', 'inspect', '-f', '{{.State.Running}}', container],
            timeout=self.command_timeout
        )
        return result['success'] and result['stdout'].strip() == 'true'

    def service_active(self) -> bool:
        result = self.runner.run_command(
            ['systemctl', 'is-active', '--quiet', self.service_name],
            timeout=self.command_timeout
        )
        return result['success']

    def _start_container(self, handle: DeploymentHandle) -> StartResult:
        container = handle.container
        logger.info(f"Starting Docker container: {container}")

        result = self.runner.run_command(['docker', 'start', container], timeout=self.command_timeout)
        if not result['success']:
            logger.error(f"docker start {container} failed: {result['error']}")
            return StartResult(failure=StartFailure(
                StartFailureReason.SERVICE_MANAGER_REJECTED, result['error'] or ''))

        logger.info(f"Waiting up to {self.container_attempts} checks for {container} to run...")
        if not poll_until(lambda: self.container_running(container),
                          self.container_attempts, self.container_interval, self.sleep):
            logger.error(f"Container {container} did not reach running state")
            return StartResult(failure=StartFailure(
                StartFailureReason.TIMED_OUT,
                f"container {container} not running after {self.container_attempts} checks"))

        logger.info("Docker container started successfully")
        return StartResult(kind=DeploymentKind.CONTAINER_RUNNING, handle=handle)

    def _start_native(self, handle: DeploymentHandle) -> StartResult:
        logger.info(f"Attempting to start {self.service_name} via systemd...")

        result = self.runner.run_command(
            ['systemctl', 'start', self.service_name],
            timeout=self.command_timeout
        )
        if not result['success']:
            logger.error(f"systemctl start {self.service_name} failed: {result['error']}")
            return StartResult(failure=StartFailure(
                StartFailureReason.SERVICE_MANAGER_REJECTED, result['error'] or ''))

        if not poll_until(self.service_active, self.native_attempts, self.native_interval, self.sleep):
            logger.error(f"{self.service_name} is not active after start")
            return StartResult(failure=StartFailure(
                StartFailureReason.SERVICE_MANAGER_REJECTED,
                f"{self.service_name} not active after {self.native_attempts} checks"))

        logger.info("MongoDB started successfully via systemd")
        return StartResult(kind=DeploymentKind.NATIVE_RUNNING, handle=handle)

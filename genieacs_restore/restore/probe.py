"""Detection of how MongoDB is deployed on this host."""

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Tuple

logger = logging.getLogger(__name__)


class DeploymentKind(Enum):
    """How the MongoDB engine is hosted and whether it runs."""
    CONTAINER_RUNNING = "container_running"
    CONTAINER_STOPPED = "container_stopped"
    NATIVE_RUNNING = "native_running"
    NATIVE_INSTALLED_NOT_RUNNING = "native_installed_not_running"
    NOT_INSTALLED = "not_installed"

    @property
    def is_container(self) -> bool:
        return self in (DeploymentKind.CONTAINER_RUNNING, DeploymentKind.CONTAINER_STOPPED)

    @property
    def is_running(self) -> bool:
        return self in (DeploymentKind.CONTAINER_RUNNING, DeploymentKind.NATIVE_RUNNING)


@dataclass(frozen=True)
class DeploymentHandle:
    """Reference needed to act on a deployment: the container name, or None for native."""
    container: Optional[str] = None


class EnvironmentProbe:
    """
    Determine the MongoDB deployment kind.

    Checks run in priority order and the first match wins: running
    container, stopped container, active native service or process, client
    tools on PATH, nothing. A missing signal falls through to the next
    check; nothing here starts, stops or modifies anything.
    """

    def __init__(self, runner, container_name_pattern='(mongodb|mongo)',
                 service_name='mongod', client_binary='mongo', timeout=15):
        self.runner = runner
        self.container_pattern = re.compile(container_name_pattern)
        self.service_name = service_name
        self.client_binary = client_binary
        self.timeout = timeout

    def probe(self) -> Tuple[DeploymentKind, DeploymentHandle]:
        if self.runner.which('docker'):
            running = self._matching_containers(all_containers=False)
            if running:
                logger.info(f"Found running MongoDB container: {running[0]}")
                return DeploymentKind.CONTAINER_RUNNING, DeploymentHandle(running[0])

            existing = self._matching_containers(all_containers=True)
            if existing:
                logger.info(f"Found stopped MongoDB container: {existing[0]}")
                return DeploymentKind.CONTAINER_STOPPED, DeploymentHandle(existing[0])
        else:
            logger.info("Docker is not available, checking for native MongoDB")

        if self._service_active() or self._process_running():
            logger.info(f"Found running native MongoDB ({self.service_name})")
            return DeploymentKind.NATIVE_RUNNING, DeploymentHandle()

        if self.runner.which(self.client_binary) and self.runner.which('mongorestore'):
            logger.info("MongoDB tools are installed but the server is not running")
            return DeploymentKind.NATIVE_INSTALLED_NOT_RUNNING, DeploymentHandle()

        logger.info("No MongoDB installation found")
        return DeploymentKind.NOT_INSTALLED, DeploymentHandle()

    def _matching_containers(self, all_containers: bool) -> List[str]:
        cmd = ['docker', 'ps']
        if all_containers:
            cmd.append('-a')
        cmd.extend(['--format', '{{.Names}}'])

        result = self.runner.run_command(cmd, timeout=self.timeout)
        if not result['success']:
            logger.warning(f"Could not list Docker containers: {result['error']}")
            return []

        names = [line.strip() for line in result['stdout'].splitlines() if line.strip()]
        return [name for name in names if self.container_pattern.search(name)]

    def _service_active(self) -> bool:
        if not self.runner.which('systemctl'):
            return False
        result = self.runner.run_command(
            ['systemctl', 'is-active', '--quiet', self.service_name],
            timeout=self.timeout
        )
        return result['success']

    def _process_running(self) -> bool:
        if not self.runner.which('pgrep'):
            return False
        result = self.runner.run_command(['pgrep', self.service_name], timeout=self.timeout)
        return result['success']

"""MongoDB administrative and restore commands for container and native deployments."""

import json
import logging
from pathlib import Path
from typing import List, Optional

logger = logging.getLogger(__name__)


class MongoAccess:
    """
    Build and run MongoDB commands through the right access path.

    For a container handle every command goes through ``docker exec``;
    otherwise the local client binary is invoked directly. All methods
    return the runner's result dict, except where noted.
    """

    def __init__(self, runner, database='genieacs', client_binary='mongo',
                 staging_path='/tmp/backup', connect_timeout=5, restore_timeout=3600):
        self.runner = runner
        self.database = database
        self.client_binary = client_binary
        self.staging_path = staging_path
        self.connect_timeout = connect_timeout
        self.restore_timeout = restore_timeout

    def _wrap(self, handle, cmd: List[str]) -> List[str]:
        if handle.container:
            return ['docker', 'exec', handle.container] + cmd
        return cmd

    def eval(self, handle, script: str, database: Optional[str] = None, timeout=None):
        cmd = [self.client_binary]
        if database:
            cmd.append(database)
        cmd.extend(['--quiet', '--eval', script])
        return self.runner.run_command(
            self._wrap(handle, cmd),
            timeout=timeout if timeout is not None else self.connect_timeout
        )

    def ping(self, handle):
        """Send the no-op ismaster admin command."""
        return self.eval(handle, "db.adminCommand('ismaster')")

    def version(self, handle):
        return self.eval(handle, "db.version()")

    def list_collections(self, handle) -> Optional[List[str]]:
        """
        Return the collection names of the target database.

        Returns None if the command fails or its output cannot be parsed.
        """
        result = self.eval(handle, "JSON.stringify(db.getCollectionNames())",
                           database=self.database, timeout=max(self.connect_timeout, 30))
        if not result['success']:
            logger.warning(f"Could not list collections: {result['error']}")
            return None

        # Older shells may print connection banners before the JSON line
        for line in reversed(result['stdout'].strip().splitlines()):
            line = line.strip()
            if not line.startswith('['):
                continue
            try:
                names = json.loads(line)
            except ValueError:
                continue
            if isinstance(names, list):
                return [str(name) for name in names]

        logger.warning(f"Unexpected collection listing output: {result['stdout'].strip()!r}")
        return None

    def stage(self, handle, source_dir: Path):
        """Copy the contents of source_dir into the container staging path."""
        return self.runner.run_command(
            ['docker', 'cp', f"{source_dir}/.", f"{handle.container}:{self.staging_path}/"],
            timeout=self.restore_timeout
        )

    def staged_files(self, handle) -> Optional[List[str]]:
        result = self.runner.run_command(
            ['docker', 'exec', handle.container, 'ls', self.staging_path],
            timeout=self.connect_timeout
        )
        if not result['success']:
            return None
        return [line.strip() for line in result['stdout'].splitlines() if line.strip()]

    def unstage(self, handle):
        return self.runner.run_command(
            ['docker', 'exec', handle.container, 'rm', '-rf', self.staging_path],
            timeout=60
        )

    def restore(self, handle, source_dir: Optional[Path] = None):
        """
        Run mongorestore with --drop.

        For a container handle the staging path is restored; otherwise
        source_dir on the local filesystem.
        """
        source = f"{self.staging_path}/" if handle.container else f"{source_dir}/"
        cmd = ['mongorestore', '--db', self.database, '--drop', source]
        return self.runner.run_command(self._wrap(handle, cmd), timeout=self.restore_timeout)

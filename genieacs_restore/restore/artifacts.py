"""Download and validation of backup artifacts."""

import logging
import time
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Dict, Iterator, List, Optional

from tqdm import tqdm

from genieacs_restore.utils.polling import poll_until
from genieacs_restore.utils.subprocess_utils import safe_remove_file

logger = logging.getLogger(__name__)

DATA_SUFFIX = '.bson'
METADATA_SUFFIXES = ('.metadata.json', '.json')


class ArtifactRole(Enum):
    DATA = "data"
    METADATA = "metadata"


class ArtifactState(Enum):
    PENDING = "pending"
    DOWNLOADED = "downloaded"
    VALIDATED_OK = "validated_ok"
    VALIDATED_SUSPECT = "validated_suspect"
    FAILED = "failed"


@dataclass
class Artifact:
    name: str
    role: ArtifactRole
    state: ArtifactState = ArtifactState.PENDING
    path: Optional[Path] = None
    size: Optional[int] = None
    error: Optional[str] = None

    @classmethod
    def from_filename(cls, name: str) -> 'Artifact':
        role = ArtifactRole.DATA if name.endswith(DATA_SUFFIX) else ArtifactRole.METADATA
        return cls(name=name, role=role)

    @property
    def collection(self) -> str:
        """Collection name shared by a data file and its metadata companion."""
        if self.name.endswith(DATA_SUFFIX):
            return self.name[:-len(DATA_SUFFIX)]
        for suffix in METADATA_SUFFIXES:
            if self.name.endswith(suffix):
                return self.name[:-len(suffix)]
        return self.name

    @property
    def usable(self) -> bool:
        return self.state in (ArtifactState.VALIDATED_OK, ArtifactState.VALIDATED_SUSPECT)


class ArtifactSet:
    """Artifacts of one session, in manifest order."""

    def __init__(self, artifacts: List[Artifact]):
        self.artifacts = artifacts

    @classmethod
    def from_manifest(cls, manifest: List[str]) -> 'ArtifactSet':
        return cls([Artifact.from_filename(name) for name in manifest])

    def __iter__(self) -> Iterator[Artifact]:
        return iter(self.artifacts)

    def __len__(self):
        return len(self.artifacts)

    def in_state(self, *states: ArtifactState) -> List[Artifact]:
        return [a for a in self.artifacts if a.state in states]

    def counts(self) -> Dict[ArtifactState, int]:
        counts = {state: 0 for state in ArtifactState}
        for artifact in self.artifacts:
            counts[artifact.state] += 1
        return counts

    @property
    def usable_data(self) -> List[Artifact]:
        return [a for a in self.artifacts
                if a.role == ArtifactRole.DATA and (a.usable or a.state == ArtifactState.DOWNLOADED)]

    @property
    def is_usable(self) -> bool:
        """At least one data file made it to disk; the restore may proceed."""
        return bool(self.usable_data)

    @property
    def is_complete(self) -> bool:
        return bool(self.artifacts) and all(a.state == ArtifactState.VALIDATED_OK for a in self.artifacts)

    def expected_collections(self) -> List[str]:
        return [a.collection for a in self.usable_data]


class ArtifactFetcher:
    """
    Fetch the backup manifest into a session working directory.

    Transport is wget when available, curl otherwise. Every file gets a
    bounded number of attempts; a file that still fails is recorded as
    FAILED and the next file is tried. Only the caller decides whether the
    resulting set is good enough to restore from.
    """

    TRANSPORTS = ('wget', 'curl')

    def __init__(self, runner, base_url, connect_timeout=30, max_time=300,
                 retries=3, retry_interval=2, min_bytes=10,
                 show_progress=True, sleep=time.sleep):
        self.runner = runner
        self.base_url = base_url.rstrip('/')
        self.connect_timeout = connect_timeout
        self.max_time = max_time
        self.retries = retries
        self.retry_interval = retry_interval
        self.min_bytes = min_bytes
        self.show_progress = show_progress
        self.sleep = sleep

    def fetch(self, session, manifest: List[str]) -> ArtifactSet:
        artifacts = self.download(session.work_dir, manifest)
        self.validate(artifacts)
        return artifacts

    def url_for(self, filename: str) -> str:
        return f"{self.base_url}/{filename}"

    def transport(self) -> Optional[str]:
        for program in self.TRANSPORTS:
            if self.runner.which(program):
                return program
        return None

    def download(self, work_dir: Path, manifest: List[str]) -> ArtifactSet:
        artifacts = ArtifactSet.from_manifest(manifest)
        transport = self.transport()

        if transport is None:
            logger.error("Neither wget nor curl is available")
            for artifact in artifacts:
                artifact.state = ArtifactState.FAILED
                artifact.error = "no download transport available"
            return artifacts

        logger.info(f"Starting download of {len(artifacts)} files with {transport}...")
        for artifact in tqdm(artifacts.artifacts, desc="Downloading artifacts", unit=' files',
                             disable=not self.show_progress):
            self._download_artifact(transport, artifact, work_dir)

        downloaded = len(artifacts.in_state(ArtifactState.DOWNLOADED))
        failed = len(artifacts.in_state(ArtifactState.FAILED))
        logger.info(f"Download completed: {downloaded} successful, {failed} failed")
        return artifacts

    def validate(self, artifacts: ArtifactSet) -> ArtifactSet:
        """Size-check every downloaded artifact. Small files are suspect, never fatal."""
        logger.info("Checking downloaded files...")
        for artifact in artifacts.in_state(ArtifactState.DOWNLOADED):
            try:
                artifact.size = artifact.path.stat().st_size
            except OSError as e:
                artifact.state = ArtifactState.FAILED
                artifact.error = f"downloaded file unreadable: {e}"
                logger.warning(f"{artifact.name}: {artifact.error}")
                continue

            if artifact.size < self.min_bytes:
                artifact.state = ArtifactState.VALIDATED_SUSPECT
                logger.warning(f"File {artifact.name} seems empty or too small ({artifact.size} bytes)")
            else:
                artifact.state = ArtifactState.VALIDATED_OK
                logger.info(f"{artifact.name}: {artifact.size} bytes")
        return artifacts

    def _download_artifact(self, transport: str, artifact: Artifact, work_dir: Path):
        dest = work_dir / artifact.name
        url = self.url_for(artifact.name)
        logger.info(f"Downloading: {artifact.name}")

        last_error = []

        def attempt():
            result = self.runner.run_command(
                self._command(transport, url, dest),
                timeout=self.max_time + self.connect_timeout
            )
            if result['success'] and dest.is_file():
                return True
            last_error.append(result['error'] or "no file written")
            safe_remove_file(dest)
            return False

        if poll_until(attempt, self.retries, self.retry_interval, self.sleep):
            artifact.state = ArtifactState.DOWNLOADED
            artifact.path = dest
            logger.info(f"Downloaded: {artifact.name}")
        else:
            artifact.state = ArtifactState.FAILED
            artifact.error = last_error[-1] if last_error else "download failed"
            logger.warning(f"{transport} failed for: {artifact.name} ({self.retries} attempts)")

    def _command(self, transport: str, url: str, dest: Path) -> List[str]:
        if transport == 'wget':
            return ['wget', f'--timeout={self.connect_timeout}', '--tries=1', '-q',
                    '-O', str(dest), url]
        elif transport == 'curl':
            return ['curl', '-f', '-s', '-L',
                    '--connect-timeout', str(self.connect_timeout),
                    '--max-time', str(self.max_time),
                    '-o', str(dest), url]
        raise ValueError(f"Unknown transport: {transport}")

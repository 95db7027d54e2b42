"""
Restore session state machine.

Drives one session from probing through cleanup:

    INIT -> PROBING -> [STARTING] -> CHECKING_CONNECTIVITY -> FETCHING
         -> VALIDATING_ARTIFACTS -> RESTORING -> VERIFYING_RESTORE
         -> CLEANING_UP -> DONE

Components report results; only this module decides whether to continue
or abort. The working directory is removed and the container staging path
emptied on every exit path.
"""

import logging
import tempfile
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import List, Optional

from genieacs_restore.restore.artifacts import ArtifactFetcher, ArtifactSet, ArtifactState
from genieacs_restore.restore.connectivity import ConnectivityChecker
from genieacs_restore.restore.errors import FailureKind, SessionCancelled, StartFailure, StartFailureReason
from genieacs_restore.restore.mongo import MongoAccess
from genieacs_restore.restore.probe import DeploymentHandle, DeploymentKind, EnvironmentProbe
from genieacs_restore.restore.service import ServiceController
from genieacs_restore.utils.subprocess_utils import safe_remove_directory

logger = logging.getLogger(__name__)


class SessionState(Enum):
    INIT = "init"
    PROBING = "probing"
    STARTING = "starting"
    CHECKING_CONNECTIVITY = "checking_connectivity"
    FETCHING = "fetching"
    VALIDATING_ARTIFACTS = "validating_artifacts"
    RESTORING = "restoring"
    VERIFYING_RESTORE = "verifying_restore"
    CLEANING_UP = "cleaning_up"
    DONE = "done"


class Outcome(Enum):
    SUCCESS = "success"
    PARTIAL_SUCCESS = "partial_success"
    FAILED = "failed"

    @property
    def exit_code(self) -> int:
        return 1 if self == Outcome.FAILED else 0


@dataclass
class RestoreSession:
    """Everything one restore run knows about itself."""
    work_dir: Path
    kind: Optional[DeploymentKind] = None
    active_kind: Optional[DeploymentKind] = None
    handle: DeploymentHandle = DeploymentHandle()
    artifacts: Optional[ArtifactSet] = None
    outcome: Optional[Outcome] = None
    failure: Optional[FailureKind] = None
    failure_detail: str = ""
    start_failure: Optional[StartFailure] = None
    states: List[SessionState] = field(default_factory=lambda: [SessionState.INIT])
    collections: Optional[List[str]] = None
    missing_collections: List[str] = field(default_factory=list)
    cleanup_errors: List[str] = field(default_factory=list)
    staged: bool = False
    started_at: datetime = field(default_factory=datetime.now)

    @classmethod
    def open(cls, parent: Path) -> 'RestoreSession':
        """Create a session with a fresh, uniquely named working directory under parent."""
        timestamp = datetime.now().strftime('%Y%m%d_%H%M%S')
        work_dir = Path(tempfile.mkdtemp(prefix=f'genieacs_restore_{timestamp}_', dir=str(parent)))
        return cls(work_dir=work_dir)

    @property
    def state(self) -> SessionState:
        return self.states[-1]


class RestoreOrchestrator:
    """Main restore orchestrator."""

    def __init__(self, probe: EnvironmentProbe, controller: ServiceController,
                 checker: ConnectivityChecker, fetcher: ArtifactFetcher,
                 mongo: MongoAccess, manifest: List[str], work_dir_parent: Path,
                 cancel_event: Optional[threading.Event] = None):
        self.probe = probe
        self.controller = controller
        self.checker = checker
        self.fetcher = fetcher
        self.mongo = mongo
        self.manifest = list(manifest)
        self.work_dir_parent = Path(work_dir_parent)
        self.cancel_event = cancel_event or threading.Event()

    @classmethod
    def from_config(cls, config, runner, cancel_event=None, sleep=time.sleep) -> 'RestoreOrchestrator':
        mongo = MongoAccess(
            runner,
            database=config.database,
            client_binary=config.mongo_client,
            staging_path=config.container_staging_path,
            connect_timeout=config.connect_timeout,
            restore_timeout=config.restore_timeout,
        )
        return cls(
            probe=EnvironmentProbe(
                runner,
                container_name_pattern=config.container_name_pattern,
                service_name=config.mongo_service,
                client_binary=config.mongo_client,
            ),
            controller=ServiceController(
                runner,
                service_name=config.mongo_service,
                container_attempts=config.start_poll_attempts,
                container_interval=config.start_poll_interval,
                native_attempts=config.native_start_attempts,
                native_interval=config.start_poll_interval,
                sleep=sleep,
            ),
            checker=ConnectivityChecker(mongo),
            fetcher=ArtifactFetcher(
                runner,
                config.backup_base_url,
                connect_timeout=config.download_timeout,
                max_time=config.download_max_time,
                retries=config.download_retries,
                retry_interval=config.download_retry_interval,
                min_bytes=config.min_artifact_bytes,
                show_progress=config.show_progress,
                sleep=sleep,
            ),
            mongo=mongo,
            manifest=config.backup_files,
            work_dir_parent=config.work_dir_parent,
            cancel_event=cancel_event,
        )

    def run(self) -> RestoreSession:
        """Run one session to completion. Always returns with outcome set and workdir removed."""
        session = RestoreSession.open(self.work_dir_parent)
        logger.info(f"Session working directory: {session.work_dir}")

        try:
            self._drive(session)
        except SessionCancelled:
            logger.warning(f"Cancellation requested during {session.state.value}")
            self._fail(session, FailureKind.CANCELLED, f"cancelled during {session.state.value}")
        except KeyboardInterrupt:
            logger.warning(f"Restore interrupted by user during {session.state.value}")
            self._fail(session, FailureKind.CANCELLED, f"interrupted during {session.state.value}")
        except Exception as e:
            logger.error(f"Unexpected error during {session.state.value}: {e}", exc_info=True)
            self._fail(session, FailureKind.UNEXPECTED_ERROR, str(e))
        finally:
            self._cleanup(session)

        session.states.append(SessionState.DONE)
        logger.info(f"Session finished: {session.outcome.value}")
        return session

    def _enter(self, session: RestoreSession, state: SessionState):
        if self.cancel_event.is_set():
            raise SessionCancelled()
        session.states.append(state)
        logger.info(f"--- {state.value.replace('_', ' ').capitalize()} ---")

    def _fail(self, session: RestoreSession, failure: FailureKind, detail: str):
        session.outcome = Outcome.FAILED
        session.failure = failure
        session.failure_detail = detail
        logger.error(f"Restore failed ({failure.value}): {detail}")

    def _drive(self, session: RestoreSession):
        self._enter(session, SessionState.PROBING)
        kind, handle = self.probe.probe()
        session.kind = kind
        session.handle = handle
        logger.info(f"Detection result - Type: {kind.value}, Container: {handle.container or '-'}")

        if kind.is_running:
            active_kind = kind
        else:
            self._enter(session, SessionState.STARTING)
            result = self.controller.ensure_running(kind, handle)
            if not result.success:
                session.start_failure = result.failure
                self._log_start_hints(result.failure, handle)
                return self._fail(session, FailureKind.START_FAILURE, str(result.failure))
            active_kind, handle = result.kind, result.handle
            session.handle = handle
        session.active_kind = active_kind

        self._enter(session, SessionState.CHECKING_CONNECTIVITY)
        if not self.checker.check_alive(active_kind, handle):
            logger.info("Please ensure MongoDB is running and accessible")
            return self._fail(session, FailureKind.CONNECTIVITY_FAILURE,
                              f"MongoDB did not answer ({active_kind.value})")

        self._enter(session, SessionState.FETCHING)
        session.artifacts = self.fetcher.download(session.work_dir, self.manifest)

        self._enter(session, SessionState.VALIDATING_ARTIFACTS)
        self.fetcher.validate(session.artifacts)
        if not session.artifacts.is_usable:
            logger.error("No BSON files downloaded. Cannot proceed with restore.")
            return self._fail(session, FailureKind.FETCH_EXHAUSTED, "no usable data files")

        self._enter(session, SessionState.RESTORING)
        error = self._restore(session)
        if error:
            return self._fail(session, FailureKind.RESTORE_TOOL_FAILURE, error)
        logger.info("Database restore completed")

        self._enter(session, SessionState.VERIFYING_RESTORE)
        self._verify(session)

        if session.artifacts.is_complete:
            session.outcome = Outcome.SUCCESS
        else:
            session.outcome = Outcome.PARTIAL_SUCCESS
            counts = session.artifacts.counts()
            logger.warning(
                f"Restore completed with incomplete artifacts: "
                f"{counts[ArtifactState.VALIDATED_SUSPECT]} suspect, {counts[ArtifactState.FAILED]} failed"
            )

    def _restore(self, session: RestoreSession) -> Optional[str]:
        """Run the destructive restore. Returns an error message, or None on success."""
        kind = session.active_kind
        handle = session.handle

        if kind == DeploymentKind.CONTAINER_RUNNING:
            logger.info(f"Using Docker method with container: {handle.container}")
            session.staged = True
            result = self.mongo.stage(handle, session.work_dir)
            if not result['success']:
                return f"Failed to copy files to container: {result['error']}"

            staged = self.mongo.staged_files(handle) or []
            if not any(name.endswith('.bson') for name in staged):
                return "No BSON files found in container after copy"
            logger.info("Files successfully copied to container")

            logger.info("Running mongorestore inside container...")
            result = self.mongo.restore(handle)
            if not result['success']:
                return f"mongorestore failed in container: {result['error']}"
            return None

        elif kind == DeploymentKind.NATIVE_RUNNING:
            logger.info("Using native MongoDB method...")
            if not self.mongo.runner.which('mongorestore'):
                return "mongorestore command not found"
            logger.info(f"Executing: mongorestore --db {self.mongo.database} --drop {session.work_dir}/")
            result = self.mongo.restore(handle, session.work_dir)
            if not result['success']:
                return f"mongorestore failed: {result['error']}"
            return None

        raise ValueError(f"Cannot restore into deployment kind: {kind}")

    def _verify(self, session: RestoreSession):
        """List collections after restore. A mismatch is only reported."""
        collections = self.mongo.list_collections(session.handle)
        session.collections = collections
        if collections is None:
            logger.warning("Could not verify restored collections")
            return

        logger.info(f"Collections in database: {', '.join(collections) if collections else '(none)'}")
        expected = session.artifacts.expected_collections()
        session.missing_collections = [name for name in expected if name not in collections]
        if session.missing_collections:
            logger.warning(f"Expected collections missing after restore: {', '.join(session.missing_collections)}")

    def _cleanup(self, session: RestoreSession):
        session.states.append(SessionState.CLEANING_UP)
        logger.info("Cleaning up...")

        if session.staged and session.handle.container:
            result = self.mongo.unstage(session.handle)
            if not result['success']:
                message = f"Failed to remove {self.mongo.staging_path} in {session.handle.container}: {result['error']}"
                session.cleanup_errors.append(message)
                logger.warning(message)

        error = safe_remove_directory(session.work_dir)
        if error:
            session.cleanup_errors.append(error)
            logger.warning(error)

    def _log_start_hints(self, failure: StartFailure, handle: DeploymentHandle):
        if failure.reason == StartFailureReason.NOT_INSTALLED:
            logger.error("MongoDB is not installed. Please install MongoDB first.")
            logger.info("For Ubuntu/Debian: sudo apt-get install -y mongodb")
            logger.info("For CentOS/RHEL: sudo yum install -y mongodb")
            logger.info("Or use Docker: docker run -d --name mongodb -p 27017:27017 mongo:4.4")
        elif failure.reason == StartFailureReason.SERVICE_MANAGER_REJECTED:
            logger.info("Please start MongoDB manually and run the script again")
            logger.info(f"Command: sudo systemctl start {self.controller.service_name}")
        elif failure.reason == StartFailureReason.TIMED_OUT:
            logger.info(f"Check the container logs with: docker logs {handle.container}")

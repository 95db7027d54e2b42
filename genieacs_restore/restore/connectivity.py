"""Check that MongoDB answers before anything is restored into it."""

import logging

from genieacs_restore.restore.probe import DeploymentHandle, DeploymentKind

logger = logging.getLogger(__name__)


class ConnectivityChecker:

    def __init__(self, mongo):
        self.mongo = mongo

    def check_alive(self, kind: DeploymentKind, handle: DeploymentHandle) -> bool:
        """Send a no-op admin command. Safe to call any number of times."""
        if kind == DeploymentKind.CONTAINER_RUNNING:
            logger.info(f"Testing Docker container: {handle.container}")
            if self.mongo.ping(handle)['success']:
                logger.info("MongoDB connection successful (Docker)")
                return True
            logger.error("MongoDB connection failed (Docker)")
            return False
        elif kind == DeploymentKind.NATIVE_RUNNING:
            logger.info("Testing native MongoDB connection...")
            if self.mongo.ping(handle)['success']:
                logger.info("MongoDB connection successful (Native)")
                return True
            # Some server versions reject ismaster from an unauthenticated shell
            if self.mongo.version(handle)['success']:
                logger.info("MongoDB connection successful (Native - version check)")
                return True
            logger.error("MongoDB connection failed (Native)")
            return False
        elif kind in (DeploymentKind.CONTAINER_STOPPED,
                      DeploymentKind.NATIVE_INSTALLED_NOT_RUNNING,
                      DeploymentKind.NOT_INSTALLED):
            logger.error(f"MongoDB is not running ({kind.value})")
            return False
        raise ValueError(f"Unknown deployment kind: {kind}")

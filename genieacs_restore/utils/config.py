"""Configuration loader for the GenieACS restore tool."""

import os
import re
import sys
import tempfile
from pathlib import Path
from dotenv import load_dotenv


DEFAULT_BACKUP_BASE_URL = 'https://raw.githubusercontent.com/beryindo/genieacs/main'

DEFAULT_BACKUP_FILES = [
    'config.bson',
    'config.metadata.json',
    'presets.bson',
    'presets.metadata.json',
    'provisions.bson',
    'provisions.metadata.json',
    'virtualParameters.bson',
    'virtualParameters.metadata.json',
]

DEFAULT_GENIEACS_SERVICES = [
    'genieacs-cwmp',
    'genieacs-nbi',
    'genieacs-fs',
    'genieacs-ui',
]


def _split_list(value):
    return [item.strip() for item in value.split(',') if item.strip()]


def _parse_bool(value):
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


class RestoreConfig:
    """Load and validate configuration from .env file and environment."""

    def __init__(self, env_file=None):
        """Load configuration from environment file."""
        if env_file:
            if not os.path.exists(env_file):
                raise FileNotFoundError(f"Environment file not found: {env_file}")
            load_dotenv(env_file)
        else:
            load_dotenv()

        self._load_and_validate()

    def _get_int(self, name, default, minimum=1):
        raw = os.getenv(name)
        if raw is None or raw.strip() == '':
            return default
        try:
            value = int(raw)
        except ValueError:
            print(f"WARNING: Invalid {name} '{raw}', using {default}")
            return default
        if value < minimum:
            print(f"WARNING: {name} must be >= {minimum}, using {default}")
            return default
        return value

    def _load_and_validate(self):
        """Load environment variables and validate them."""
        # Database settings
        self.database = os.getenv('GENIEACS_DB', 'genieacs')
        self.mongo_service = os.getenv('MONGO_SERVICE', 'mongod')
        self.mongo_client = os.getenv('MONGO_CLIENT', 'mongo')

        # Container settings
        self.container_name_pattern = os.getenv('CONTAINER_NAME_PATTERN', '(mongodb|mongo)')
        try:
            re.compile(self.container_name_pattern)
        except re.error as e:
            print(f"ERROR: CONTAINER_NAME_PATTERN is not a valid regular expression: {e}")
            sys.exit(1)
        self.container_staging_path = os.getenv('CONTAINER_STAGING_PATH', '/tmp/backup').rstrip('/') or '/tmp/backup'

        # Artifact source
        self.backup_base_url = os.getenv('BACKUP_BASE_URL', DEFAULT_BACKUP_BASE_URL).rstrip('/')
        if not self.backup_base_url.startswith(('http://', 'https://')):
            print(f"ERROR: BACKUP_BASE_URL must be an http(s) URL: {self.backup_base_url}")
            sys.exit(1)

        backup_files = os.getenv('BACKUP_FILES')
        self.backup_files = _split_list(backup_files) if backup_files else list(DEFAULT_BACKUP_FILES)
        if not self.backup_files:
            print("ERROR: BACKUP_FILES must list at least one file")
            sys.exit(1)

        # Path settings
        self.work_dir_parent = Path(os.getenv('WORK_DIR_PARENT', '/root'))
        self.log_dir = Path(os.getenv('LOG_DIR', str(Path.cwd())))
        self.lock_file = Path(os.getenv('LOCK_FILE', str(Path(tempfile.gettempdir()) / 'genieacs-restore.lock')))

        # Polling and timeouts
        self.start_poll_attempts = self._get_int('START_POLL_ATTEMPTS', 30)
        self.start_poll_interval = self._get_int('START_POLL_INTERVAL', 1, minimum=0)
        self.native_start_attempts = self._get_int('NATIVE_START_ATTEMPTS', 5)
        self.connect_timeout = self._get_int('CONNECT_TIMEOUT', 5)
        self.download_timeout = self._get_int('DOWNLOAD_TIMEOUT', 30)
        self.download_max_time = self._get_int('DOWNLOAD_MAX_TIME', 300)
        self.download_retries = self._get_int('DOWNLOAD_RETRIES', 3)
        self.download_retry_interval = self._get_int('DOWNLOAD_RETRY_INTERVAL', 2, minimum=0)
        self.min_artifact_bytes = self._get_int('MIN_ARTIFACT_BYTES', 10, minimum=0)
        self.restore_timeout = self._get_int('RESTORE_TIMEOUT', 3600)

        # GenieACS application services
        services = os.getenv('GENIEACS_SERVICES')
        self.genieacs_services = _split_list(services) if services is not None else list(DEFAULT_GENIEACS_SERVICES)
        self.genieacs_ui_port = self._get_int('GENIEACS_UI_PORT', 3000)
        self.restart_services = _parse_bool(os.getenv('RESTART_SERVICES', 'true'))

        self.show_progress = _parse_bool(os.getenv('SHOW_PROGRESS', 'true'))

        if not self.work_dir_parent.is_dir():
            print(f"ERROR: Working directory parent is not a directory: {self.work_dir_parent}")
            sys.exit(1)

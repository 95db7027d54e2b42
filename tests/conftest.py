import logging

import pytest

from genieacs_restore.utils.config import RestoreConfig

from fakes import FakeRunner, FakeSleep

CONFIG_VARS = [
    'GENIEACS_DB', 'MONGO_SERVICE', 'MONGO_CLIENT', 'CONTAINER_NAME_PATTERN',
    'CONTAINER_STAGING_PATH', 'BACKUP_BASE_URL', 'BACKUP_FILES', 'WORK_DIR_PARENT',
    'LOG_DIR', 'LOCK_FILE', 'START_POLL_ATTEMPTS', 'START_POLL_INTERVAL',
    'NATIVE_START_ATTEMPTS', 'CONNECT_TIMEOUT', 'DOWNLOAD_TIMEOUT', 'DOWNLOAD_MAX_TIME',
    'DOWNLOAD_RETRIES', 'DOWNLOAD_RETRY_INTERVAL', 'MIN_ARTIFACT_BYTES', 'RESTORE_TIMEOUT',
    'GENIEACS_SERVICES', 'GENIEACS_UI_PORT', 'RESTART_SERVICES', 'SHOW_PROGRESS',
]


@pytest.fixture
def clean_env(monkeypatch):
    # setenv first so that values loaded later by dotenv are removed on teardown
    for name in CONFIG_VARS:
        monkeypatch.setenv(name, 'unset')
        monkeypatch.delenv(name)
    return monkeypatch


@pytest.fixture
def work_parent(tmp_path):
    path = tmp_path / 'work'
    path.mkdir()
    return path


@pytest.fixture
def make_config(clean_env, tmp_path, work_parent):
    def make(**overrides):
        values = {
            'WORK_DIR_PARENT': str(work_parent),
            'LOG_DIR': str(tmp_path / 'logs'),
            'LOCK_FILE': str(tmp_path / 'restore.lock'),
            'SHOW_PROGRESS': 'false',
            'START_POLL_INTERVAL': '0',
            'DOWNLOAD_RETRY_INTERVAL': '0',
        }
        values.update(overrides)
        for name, value in values.items():
            clean_env.setenv(name, value)
        env_file = tmp_path / 'empty.env'
        env_file.write_text('')
        return RestoreConfig(str(env_file))
    return make


@pytest.fixture
def runner():
    return FakeRunner()


@pytest.fixture
def sleep():
    return FakeSleep()


@pytest.fixture
def restore_logger_cleanup():
    yield
    logger = logging.getLogger('genieacs_restore')
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

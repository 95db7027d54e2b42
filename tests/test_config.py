import pytest

from genieacs_restore.utils.config import DEFAULT_BACKUP_FILES, DEFAULT_GENIEACS_SERVICES, RestoreConfig


def test_defaults(make_config, work_parent):
    config = make_config()

    assert config.database == 'genieacs'
    assert config.backup_base_url == 'https://raw.githubusercontent.com/beryindo/genieacs/main'
    assert config.backup_files == DEFAULT_BACKUP_FILES
    assert config.genieacs_services == DEFAULT_GENIEACS_SERVICES
    assert config.container_staging_path == '/tmp/backup'
    assert config.start_poll_attempts == 30
    assert config.min_artifact_bytes == 10
    assert config.download_retries == 3
    assert config.work_dir_parent == work_parent
    assert config.restart_services is True
    assert config.show_progress is False


def test_values_from_env_file(clean_env, tmp_path, work_parent):
    env_file = tmp_path / '.env'
    env_file.write_text(
        f"WORK_DIR_PARENT={work_parent}\n"
        "GENIEACS_DB=acs\n"
        "BACKUP_BASE_URL=https://mirror.example.com/acs/\n"
        "BACKUP_FILES=config.bson, config.metadata.json\n"
        "GENIEACS_SERVICES=\n"
        "MONGO_CLIENT=mongosh\n"
        "RESTART_SERVICES=no\n"
    )

    config = RestoreConfig(str(env_file))

    assert config.database == 'acs'
    assert config.backup_base_url == 'https://mirror.example.com/acs'
    assert config.backup_files == ['config.bson', 'config.metadata.json']
    assert config.genieacs_services == []
    assert config.mongo_client == 'mongosh'
    assert config.restart_services is False


def test_invalid_integer_falls_back(make_config, capsys):
    config = make_config(START_POLL_ATTEMPTS='soon', DOWNLOAD_RETRIES='0')

    assert config.start_poll_attempts == 30
    assert config.download_retries == 3
    assert 'WARNING' in capsys.readouterr().out


def test_invalid_url_exits(make_config):
    with pytest.raises(SystemExit) as exc:
        make_config(BACKUP_BASE_URL='ftp://example.com')
    assert exc.value.code == 1


def test_invalid_container_pattern_exits(make_config):
    with pytest.raises(SystemExit):
        make_config(CONTAINER_NAME_PATTERN='(mongo')


def test_missing_work_parent_exits(make_config, tmp_path):
    with pytest.raises(SystemExit):
        make_config(WORK_DIR_PARENT=str(tmp_path / 'nope'))


def test_missing_env_file(clean_env, tmp_path):
    with pytest.raises(FileNotFoundError):
        RestoreConfig(str(tmp_path / 'missing.env'))


def test_work_parent_must_be_a_directory(make_config, tmp_path):
    not_a_dir = tmp_path / 'afile'
    not_a_dir.write_text('')

    with pytest.raises(SystemExit) as exc:
        make_config(WORK_DIR_PARENT=str(not_a_dir))
    assert exc.value.code == 1

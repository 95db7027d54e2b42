from genieacs_restore.utils.subprocess_utils import SubprocessRunner, safe_remove_directory, safe_remove_file


def test_run_command_success():
    result = SubprocessRunner().run_command(['printf', 'hello'])

    assert result['success'] is True
    assert result['returncode'] == 0
    assert result['stdout'] == 'hello'
    assert result['error'] is None


def test_non_utf8_output_is_replaced_not_raised():
    result = SubprocessRunner().run_command(['printf', '\\377\\376ok'])

    assert result['success'] is True
    assert result['stdout'] == '\ufffd\ufffdok'


def test_failing_command_reports_exit_code():
    result = SubprocessRunner().run_command(['sh', '-c', 'echo broken >&2; exit 3'])

    assert result['success'] is False
    assert result['returncode'] == 3
    assert 'exit code 3' in result['error']
    assert 'broken' in result['error']


def test_missing_binary():
    result = SubprocessRunner().run_command(['genieacs-no-such-binary'])

    assert result['success'] is False
    assert result['error'] == 'Command not found: genieacs-no-such-binary'


def test_timeout():
    result = SubprocessRunner().run_command(['sleep', '5'], timeout=0.2)

    assert result['success'] is False
    assert 'timed out' in result['error']


def test_safe_remove_helpers(tmp_path):
    tree = tmp_path / 'tree'
    (tree / 'sub').mkdir(parents=True)
    (tree / 'sub' / 'file.bson').write_bytes(b'x')
    lone = tmp_path / 'lone.json'
    lone.write_text('{}')

    assert safe_remove_directory(tree) is None
    assert not tree.exists()
    assert safe_remove_directory(tree) is None
    assert safe_remove_file(lone) is True
    assert safe_remove_file(lone) is False

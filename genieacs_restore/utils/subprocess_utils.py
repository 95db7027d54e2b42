"""Common subprocess utilities shared by every restore step."""

import shutil
import subprocess
import time
from pathlib import Path
from typing import Dict, List, Optional, Union


class SubprocessRunner:
    """Common subprocess execution with consistent error handling."""

    def __init__(self, timeout: int = 600):
        self.timeout = timeout

    def which(self, program: str) -> Optional[str]:
        """Return the full path of program if it is on PATH."""
        return shutil.which(program)

    def run_command(self,
                   cmd: List[str],
                   env: Optional[Dict[str, str]] = None,
                   cwd: Optional[Union[str, Path]] = None,
                   timeout: Optional[float] = None) -> Dict[str, Union[bool, str, float, int]]:
        """
        Execute command with consistent error handling.

        Never raises for a failing, missing or hanging command.

        Returns dict with keys: success, error, duration, returncode, stdout, stderr
        """
        timeout = timeout if timeout is not None else self.timeout
        result = {
            'success': False,
            'error': None,
            'duration': 0,
            'returncode': -1,
            'stdout': '',
            'stderr': ''
        }

        start = time.time()
        try:
            process = subprocess.run(
                cmd,
                env=env,
                cwd=cwd,
                capture_output=True,
                encoding='utf-8',
                errors='replace',
                timeout=timeout
            )
            result['returncode'] = process.returncode
            result['stdout'] = process.stdout
            result['stderr'] = process.stderr
            result['duration'] = time.time() - start

            if process.returncode == 0:
                result['success'] = True
            else:
                result['error'] = f"Command failed with exit code {process.returncode}"
                if process.stderr:
                    result['error'] += f"\nSTDERR: {process.stderr.strip()}"

        except subprocess.TimeoutExpired as e:
            result['duration'] = time.time() - start
            result['error'] = f"Command timed out after {timeout} seconds"
            result['timeout_seconds'] = timeout
            if e.stdout:
                result['stdout'] = e.stdout.decode('utf-8', errors='replace') if isinstance(e.stdout, bytes) else str(e.stdout)
            if e.stderr:
                result['stderr'] = e.stderr.decode('utf-8', errors='replace') if isinstance(e.stderr, bytes) else str(e.stderr)
        except FileNotFoundError:
            result['error'] = f"Command not found: {cmd[0] if cmd else 'unknown'}"
        except OSError as e:
            result['error'] = f"Could not execute {cmd[0] if cmd else 'unknown'}: {e}"
        except Exception as e:
            result['error'] = f"Unexpected error: {str(e)}"

        return result


def safe_remove_directory(path: Union[str, Path]) -> Optional[str]:
    """
    Remove a directory tree.

    Args:
        path: Directory to remove

    Returns:
        None if the directory is gone afterwards, otherwise the error message
    """
    path = Path(path)
    if not path.exists():
        return None
    try:
        shutil.rmtree(path)
    except OSError as e:
        return f"Failed to remove {path}: {e}"
    return None


def safe_remove_file(path: Union[str, Path]) -> bool:
    """Remove a file if present. Returns True if a file was removed."""
    path = Path(path)
    try:
        if path.is_file():
            path.unlink()
            return True
    except OSError:
        return False
    return False

"""File-based locking to prevent concurrent restore sessions."""

import fcntl
import os
from pathlib import Path


class FileLock:
    """Context manager for file-based locking with atomic operations."""

    def __init__(self, lockfile_path):
        self.lockfile_path = Path(lockfile_path)
        self.lockfile = None
        self._acquired = False

    def __enter__(self):
        return self.acquire()

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.release()

    def acquire(self):
        try:
            self.lockfile_path.parent.mkdir(parents=True, exist_ok=True)
            self.lockfile = open(self.lockfile_path, 'w')
            fcntl.flock(self.lockfile.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)

            self.lockfile.write(str(os.getpid()))
            self.lockfile.flush()
            os.fsync(self.lockfile.fileno())

            self._acquired = True
            return self

        except BlockingIOError:
            self._close()
            raise RuntimeError("Another restore session is already running")
        except OSError as e:
            self._close()
            raise RuntimeError(f"Failed to acquire lock: {e}")

    def release(self):
        if self.lockfile and self._acquired:
            try:
                fcntl.flock(self.lockfile.fileno(), fcntl.LOCK_UN)
            except OSError:
                pass
            finally:
                self._close()

        if self._acquired:
            self._acquired = False
            try:
                self.lockfile_path.unlink()
            except FileNotFoundError:
                pass

    def _close(self):
        if self.lockfile:
            self.lockfile.close()
            self.lockfile = None

"""
Filesystem helpers for key, CSR and certificate files.
"""

import os
import stat
import tempfile
import contextlib
from typing import Optional

from .errors import ConfigurationError


def ensure_dir(path: str, mode: int = 0o755) -> None:
    """
    Create a directory (and parents) unless it already exists.

    Raises:
        ConfigurationError: if the directory cannot be created
    """
    if os.path.isdir(path):
        return
    try:
        os.makedirs(path, mode=mode, exist_ok=True)
    except OSError as e:
        raise ConfigurationError(f"Can't create directory {path}: {e}") from e


@contextlib.contextmanager
def atomic_write(path: str, binary: bool = False, mode: Optional[int] = None):
    """
    Open a temporary file next to ``path`` and rename it over ``path`` on success.

    The destination is never left half-written: on error the temporary file
    is removed and the previous contents (if any) stay in place.

    Args:
        path: Destination file
        binary: Open the temporary file in binary mode
        mode: Permission bits for the new file (defaults to the existing file's)
    """
    if mode is None:
        try:
            mode = stat.S_IMODE(os.stat(path).st_mode)
        except OSError:
            pass

    tmp = tempfile.NamedTemporaryFile(
        mode="wb" if binary else "w",
        dir=os.path.dirname(path) or ".",
        prefix=os.path.basename(path) + ".",
        delete=False,
    )
    try:
        with tmp:
            if mode is not None:
                os.chmod(tmp.name, mode)
            yield tmp
            tmp.flush()
            os.fsync(tmp.fileno())
        os.replace(tmp.name, path)
    finally:
        try:
            os.unlink(tmp.name)
        except OSError:
            pass


def write_file(path: str, data, mode: Optional[int] = None) -> None:
    """
    Atomically write text or bytes to ``path``.

    Raises:
        ConfigurationError: if the file cannot be written
    """
    try:
        with atomic_write(path, binary=isinstance(data, bytes), mode=mode) as f:
            f.write(data)
    except OSError as e:
        raise ConfigurationError(f"Can't write {path}: {e}") from e

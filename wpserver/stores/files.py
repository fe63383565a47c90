"""Advisory locking and atomic replace for the flat-file stores."""

import fcntl
import os
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional, Union

PathLike = Union[str, Path]


def lock_path_for(path: PathLike) -> Path:
    path = Path(path)
    return path.with_name(path.name + ".lock")


@contextmanager
def exclusive_lock(path: PathLike) -> Iterator[Path]:
    """Hold an exclusive ``flock`` on ``<path>.lock`` for the duration of the block.

    The lock file sits next to the data file so that ``os.replace`` of the data
    file never invalidates a lock another process is waiting on.
    """
    lock_path = lock_path_for(path)
    lock_path.parent.mkdir(parents=True, exist_ok=True)
    fd = os.open(str(lock_path), os.O_RDWR | os.O_CREAT, 0o600)
    try:
        fcntl.flock(fd, fcntl.LOCK_EX)
        try:
            yield lock_path
        finally:
            fcntl.flock(fd, fcntl.LOCK_UN)
    finally:
        os.close(fd)


def atomic_write(path: PathLike, content: str, mode: Optional[int] = None) -> Path:
    """Replace ``path`` with ``content`` via a temp file in the same directory.

    Args:
        path: Destination file
        content: Full new file content
        mode: Permission bits; defaults to the existing file's mode, else 0o644

    Returns:
        The destination path
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    if mode is None:
        mode = path.stat().st_mode & 0o777 if path.exists() else 0o644

    tmp_path: Optional[str] = None
    try:
        with tempfile.NamedTemporaryFile(
            mode="w",
            encoding="utf-8",
            prefix=f".{path.name}.",
            suffix=".tmp",
            dir=str(path.parent),
            delete=False,
        ) as tmp:
            tmp_path = tmp.name
            tmp.write(content)
            tmp.flush()
            os.fsync(tmp.fileno())
        os.chmod(tmp_path, mode)
        os.replace(tmp_path, str(path))
        tmp_path = None
    finally:
        if tmp_path is not None and os.path.exists(tmp_path):
            os.unlink(tmp_path)

    return path

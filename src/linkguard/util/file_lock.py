from __future__ import annotations

import os
from pathlib import Path
from typing import IO


class LockUnavailableError(RuntimeError):
    """Another process already holds the lockfile."""


def _lock(fd: int) -> None:
    if os.name == "nt":
        import msvcrt  # Windows only

        msvcrt.locking(fd, msvcrt.LK_NBLCK, 1)
    else:
        import fcntl  # POSIX only

        fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)


def _unlock(fd: int) -> None:
    if os.name == "nt":
        import msvcrt

        msvcrt.locking(fd, msvcrt.LK_UNLCK, 1)
    else:
        import fcntl

        fcntl.flock(fd, fcntl.LOCK_UN)


def acquire_instance_lock(path: Path) -> IO[bytes]:
    """Take a non-blocking exclusive lock and record our pid in it.

    Keep the returned handle open to hold the lock.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    f = path.open("r+b") if path.exists() else path.open("w+b")
    try:
        _lock(f.fileno())
    except OSError as e:
        f.close()
        raise LockUnavailableError(f"{path} is held by another process") from e
    f.seek(0)
    f.truncate()
    f.write(str(os.getpid()).encode("ascii"))
    f.flush()
    return f


def release_instance_lock(f: IO[bytes]) -> None:
    try:
        _unlock(f.fileno())
    except OSError:
        pass
    f.close()

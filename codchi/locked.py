"""Configuration files read and written under a file lock."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import IO, Callable, TypeVar

import portalocker

log = logging.getLogger(__name__)

T = TypeVar("T")


class LockedConfig:
    """An open config file that stays locked until it is closed or written."""

    def __init__(self, file: IO[bytes], writable: bool) -> None:
        self._file = file
        self._writable = writable

    @classmethod
    def open(cls, path: str | os.PathLike[str], write_mode: bool) -> tuple[LockedConfig, str]:
        """Open and lock ``path`` (exclusively if writing) and return its content."""
        path = Path(path)
        if write_mode:
            fd = os.open(path, os.O_RDWR | os.O_CREAT | getattr(os, "O_BINARY", 0), 0o644)
            file = os.fdopen(fd, "r+b")
        else:
            if not path.exists():
                path.touch()
            file = open(path, "rb")
        try:
            flags = portalocker.LockFlags.EXCLUSIVE if write_mode else portalocker.LockFlags.SHARED
            portalocker.lock(file, flags)
            content = file.read().decode("utf-8")
            file.seek(0)
        except BaseException:
            file.close()
            raise
        return cls(file, write_mode), content

    @classmethod
    def open_parse(
        cls,
        path: str | os.PathLike[str],
        write_mode: bool,
        parse: Callable[[str], T],
        default: Callable[[], T],
    ) -> tuple[LockedConfig, T]:
        """Like :meth:`open`, but parse the content, using ``default`` if empty or invalid."""
        lock, content = cls.open(path, write_mode)
        try:
            if content:
                try:
                    value = parse(content)
                except Exception as err:
                    log.warning("Failed parsing config at '%s':\n%s\n Using default value.", path, err)
                    value = default()
            else:
                value = default()
        except BaseException:
            lock.close()
            raise
        return lock, value

    @property
    def closed(self) -> bool:
        return self._file.closed

    def write(self, content: str) -> None:
        """Replace the file's content and release the lock."""
        if self._file.closed:
            raise ValueError("config file is already closed")
        if not self._writable:
            raise PermissionError("config file was opened read-only")
        try:
            self._file.seek(0)
            self._file.truncate()
            self._file.write(content.encode("utf-8"))
            self._file.flush()
        finally:
            self.close()

    def close(self) -> None:
        """Release the lock and close the file."""
        if self._file.closed:
            return
        try:
            portalocker.unlock(self._file)
        finally:
            self._file.close()

    def __enter__(self) -> LockedConfig:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()
"""Status line that follows nix's structured build log, and log output around it."""

from __future__ import annotations

import contextlib
import logging
import os
import sys
import threading
import time
from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import IO, Iterator, Optional, Union

from .nixlog import (
    TRACE,
    ActivityType,
    Msg,
    OutputLine,
    Result,
    ResultType,
    Start,
    Stop,
    UnknownItem,
    parse_line,
)

log = logging.getLogger(__name__)
_nix_log = logging.getLogger("nix")

_FRAME_INTERVAL = 0.1
_SPINNER = "⠁⠂⠄⡀⢀⠠⠐⠈"
_BINARY_UNITS = ("Ki", "Mi", "Gi", "Ti", "Pi", "Ei", "Zi", "Yi")

_CLEAR_LINE = "\r\x1b[K"
_RESET = "\x1b[0m"
_GREEN = "\x1b[32m"
_BOLD = "\x1b[1m"


def _style(text: str, code: str, enabled: bool) -> str:
    return f"{code}{text}{_RESET}" if enabled else text


def _is_tty(stream: IO[str]) -> bool:
    isatty = getattr(stream, "isatty", None)
    try:
        return bool(isatty and isatty())
    except ValueError:
        return False


def _store_path_base(path: str) -> str:
    """Return the package name of a nix store path (without directory and hash)."""
    base = PurePosixPath(path).name
    _hash, sep, name = base.partition("-")
    return name if sep else base


@dataclass
class RootActivity:
    """Root of a realisation, holding the total bytes to download and unpack."""

    dl_bytes_expected: int = 0
    unpack_bytes_expected: int = 0


@dataclass
class BuildRootActivity:
    """Counts the builds of a realisation."""

    done: int = 0
    expected: int = 0


@dataclass
class BuildActivity:
    name: str
    phase: Optional[str] = None


@dataclass
class UnpackActivity:
    done: int = 0


@dataclass
class DownloadActivity:
    done: int = 0


NixActivity = Union[RootActivity, BuildRootActivity, BuildActivity, UnpackActivity, DownloadActivity]


def _binary_prefix(amount: float) -> tuple[float, str, int]:
    """Scale ``amount`` to a binary unit; return (value, unit, divider)."""
    magnitude = abs(amount)
    if magnitude < 1024:
        return amount, "", 1
    power = 0
    while magnitude >= 1024 and power < len(_BINARY_UNITS):
        magnitude /= 1024
        power += 1
    value = -magnitude if amount < 0 else magnitude
    return value, _BINARY_UNITS[power - 1], 1024**power


def _format_counter(prefix: str, is_bytes: bool, done: int, expected: int, color: bool) -> str | None:
    if expected == 0:
        return None
    if is_bytes:
        expected_value, unit, divider = _binary_prefix(float(expected))
        done_divided = done / divider
        done_text = _style(f"{done_divided:.1f}", _GREEN, color)
        return f"{prefix} {done_text}/{expected_value:.1f} {unit}B"
    return f"{prefix} {_style(str(done), _GREEN, color)}/{expected}"


def format_counter(prefix: str, is_bytes: bool, done: int, expected: int) -> str | None:
    """Format ``done`` of ``expected`` for the status line, or None if nothing is expected."""
    return _format_counter(prefix, is_bytes, done, expected, False)


class Progress:
    """Tracks nix activities and shows a one-line summary with a status message."""

    def __init__(self, stream: IO[str] | None = None) -> None:
        self.activities: dict[int, NixActivity] = {}
        self.status = ""
        self.prefix = ""
        self._stream = stream if stream is not None else sys.stderr
        self._interactive = _is_tty(self._stream)
        self._frame = 0
        self._drawn = False
        self._last_render: float | None = None

    def set_status(self, msg: str) -> None:
        """Set the message shown next to the spinner."""
        self.status = str(msg)
        self._draw()

    def log(self, fallback_target: str, fallback_level: int, msg: str) -> None:
        """Handle one line of nix output, logging it and updating the activities."""
        try:
            item = parse_line(msg)
        except ValueError as err:
            log.error("Failed parsing log line from nix: %s. Original line: %s", err, msg)
        else:
            self._handle(item, fallback_target, fallback_level)
        now = time.monotonic()
        if self._last_render is None or now - self._last_render >= _FRAME_INTERVAL:
            self._last_render = now
            self.render()

    def _handle(self, item: object, fallback_target: str, fallback_level: int) -> None:
        if isinstance(item, OutputLine):
            logging.getLogger(fallback_target).log(fallback_level, "%s", item.line)
        elif isinstance(item, UnknownItem):
            log.warning("Unknown message from nix: %s", item.value)
        elif isinstance(item, Msg):
            _nix_log.log(item.level.to_log_level(), "%s", "\r\n".join(item.msg.splitlines()))
        elif isinstance(item, Start):
            self._start(item, fallback_level)
        elif isinstance(item, Stop):
            if isinstance(self.activities.get(item.id), RootActivity):
                self.activities.clear()
        elif isinstance(item, Result):
            self._result(item, fallback_level)

    def _start(self, item: Start, fallback_level: int) -> None:
        kind = item.activity.type
        if kind is ActivityType.REALISE:
            self.activities.clear()
            self.activities[item.id] = RootActivity()
            _nix_log.log(fallback_level, "%s", item.text)
        elif kind is ActivityType.BUILDS:
            self.activities[item.id] = BuildRootActivity()
        elif kind is ActivityType.BUILD:
            name = _store_path_base(item.activity.path or "")
            self.activities[item.id] = BuildActivity(name)
            _nix_log.log(fallback_level, "%s", item.text)
        elif kind is ActivityType.COPY_PATH:
            self.activities[item.id] = UnpackActivity()
            _nix_log.log(fallback_level, "%s", item.text)
        elif kind is ActivityType.FILE_TRANSFER:
            self.activities[item.id] = DownloadActivity()

    def _result(self, item: Result, fallback_level: int) -> None:
        activity = self.activities.get(item.id)
        if activity is None:
            return
        result = item.result
        kind = result.type
        if kind is ResultType.BUILD_LOG_LINE:
            if isinstance(activity, BuildActivity):
                phase = f" ({activity.phase})" if activity.phase is not None else ""
                _nix_log.log(fallback_level, "%s%s> %s", activity.name, phase, result.line)
        elif kind is ResultType.SET_EXPECTED:
            expected = result.expected or 0
            if isinstance(activity, RootActivity):
                if result.activity_type is ActivityType.FILE_TRANSFER:
                    activity.dl_bytes_expected = expected
                elif result.activity_type is ActivityType.COPY_PATH:
                    activity.unpack_bytes_expected = expected
            elif isinstance(activity, BuildRootActivity):
                activity.expected = expected
        elif kind is ResultType.SET_PHASE:
            if isinstance(activity, BuildActivity):
                activity.phase = result.phase
        elif kind is ResultType.PROGRESS:
            done = result.done or 0
            if isinstance(activity, BuildRootActivity):
                activity.done = done
                activity.expected = result.expected or 0
            elif isinstance(activity, (UnpackActivity, DownloadActivity)):
                activity.done = done

    def render(self) -> None:
        """Recompute the summary of builds, unpacking and downloads."""
        values = list(self.activities.values())
        build_roots = [a for a in values if isinstance(a, BuildRootActivity)]
        color = self._interactive
        parts = [
            _format_counter(
                "building",
                False,
                sum(a.done for a in build_roots),
                sum(a.expected for a in build_roots),
                color,
            ),
            _format_counter(
                "unpacking",
                True,
                sum(a.done for a in values if isinstance(a, UnpackActivity)),
                sum(a.unpack_bytes_expected for a in values if isinstance(a, RootActivity)),
                color,
            ),
            _format_counter(
                "downloading",
                True,
                sum(a.done for a in values if isinstance(a, DownloadActivity)),
                sum(a.dl_bytes_expected for a in values if isinstance(a, RootActivity)),
                color,
            ),
        ]
        joined = ", ".join(part for part in parts if part is not None)
        if joined:
            self.prefix = f"{_style('[', _BOLD, color)}{joined}{_style(']', _BOLD, color)}"
        else:
            self.prefix = ""
        self._draw()

    def _draw(self) -> None:
        if not self._interactive:
            return
        spinner = _style(_SPINNER[self._frame % len(_SPINNER)], "\x1b[36m", True)
        self._frame += 1
        line = " ".join(part for part in (spinner, self.status, self.prefix) if part)
        self._stream.write(f"{_CLEAR_LINE}{line}")
        self._stream.flush()
        self._drawn = True

    def _clear(self) -> None:
        if self._drawn:
            self._stream.write(_CLEAR_LINE)
            self._stream.flush()
            self._drawn = False

    def _finish(self) -> None:
        self._clear()
        self._interactive = False


_lock = threading.RLock()
_progress: Progress | None = None


def _current() -> Progress | None:
    return _progress


def _with_progress() -> Progress:
    global _progress
    if _progress is None:
        _progress = Progress()
    return _progress


def set_progress_status(status: str) -> None:
    """Set the status message of the shared progress line, showing it if hidden."""
    with _lock:
        _with_progress().set_status(status)


def log_progress(fallback_target: str, fallback_level: int, msg: str) -> None:
    """Feed one line of nix output to the shared progress line."""
    with _lock:
        _with_progress().log(fallback_target, fallback_level, msg)


def hide_progress() -> None:
    """Remove the shared progress line."""
    global _progress
    with _lock:
        if _progress is not None:
            _progress._finish()
            _progress = None


@contextlib.contextmanager
def progress_scope() -> Iterator[None]:
    """Run a block that may show progress, hiding the progress line afterwards."""
    try:
        yield
    finally:
        hide_progress()


_LEVEL_NAMES = {
    logging.ERROR: "ERROR",
    logging.WARNING: "WARN",
    logging.INFO: "INFO",
    logging.DEBUG: "DEBUG",
    TRACE: "TRACE",
}
_LEVEL_COLORS = {
    logging.ERROR: "\x1b[1;31m",
    logging.WARNING: "\x1b[33m",
    logging.INFO: "\x1b[32m",
    logging.DEBUG: "\x1b[34m",
    TRACE: "\x1b[36m",
}
_LEVELS_BY_NAME = {
    "off": logging.CRITICAL + 1,
    "error": logging.ERROR,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "info": logging.INFO,
    "debug": logging.DEBUG,
    "trace": TRACE,
}


class _ProgressLogHandler(logging.Handler):
    """Writes records to stderr, keeping the progress line below them."""

    def format(self, record: logging.LogRecord) -> str:
        color = _is_tty(sys.stderr)
        level = _style(
            _LEVEL_NAMES.get(record.levelno, record.levelname),
            _LEVEL_COLORS.get(record.levelno, ""),
            color and record.levelno in _LEVEL_COLORS,
        )
        target = "" if record.name.startswith("codchi") else f" {record.name}"
        return f"[{level}{target}] {record.getMessage()}"

    def emit(self, record: logging.LogRecord) -> None:
        try:
            text = self.format(record)
            with _lock:
                progress = _progress
                if progress is not None:
                    progress._clear()
                stream = sys.stderr
                stream.write(text + "\n")
                stream.flush()
                if progress is not None:
                    progress._draw()
        except Exception:
            self.handleError(record)


def _parse_level(level: int | str) -> int:
    if isinstance(level, int):
        return level
    try:
        return _LEVELS_BY_NAME[level.strip().lower()]
    except KeyError:
        raise ValueError(f"unknown log level: {level!r}") from None


def init(level: int | str) -> None:
    """Set up logging at ``level``; the CODCHI_LOG variable overrides it."""
    resolved = _parse_level(level)
    env = os.environ.get("CODCHI_LOG")
    if env:
        with contextlib.suppress(ValueError):
            resolved = _parse_level(env)
    root = logging.getLogger()
    for handler in list(root.handlers):
        if isinstance(handler, _ProgressLogHandler):
            root.removeHandler(handler)
    root.addHandler(_ProgressLogHandler())
    root.setLevel(resolved)
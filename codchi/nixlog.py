"""Parsing of nix's structured JSON log lines (``@nix {...}``)."""

from __future__ import annotations

import enum
import json
import logging
from dataclasses import dataclass
from typing import Any, Union

NIX_PREFIX = "@nix "

TRACE = 5
logging.addLevelName(TRACE, "TRACE")

_I64_MIN = -(2**63)
_I64_MAX = 2**63 - 1


class Verbosity(enum.IntEnum):
    ERROR = 0
    WARN = 1
    NOTICE = 2
    INFO = 3
    TALKATIVE = 4
    CHATTY = 5
    DEBUG = 6
    VOMIT = 7

    def to_log_level(self) -> int:
        """Return the logging level that messages of this verbosity are shown at."""
        if self is Verbosity.ERROR:
            return logging.ERROR
        if self in (Verbosity.WARN, Verbosity.NOTICE):
            return logging.INFO
        if self is Verbosity.INFO:
            return logging.DEBUG
        return TRACE


class ActivityType(enum.IntEnum):
    UNKNOWN = 0
    COPY_PATH = 100
    FILE_TRANSFER = 101
    REALISE = 102
    COPY_PATHS = 103
    BUILDS = 104
    BUILD = 105
    OPTIMISE_STORE = 106
    VERIFY_PATHS = 107
    SUBSTITUTE = 108
    QUERY_PATH_INFO = 109
    POST_BUILD_HOOK = 110
    BUILD_WAITING = 111
    FETCH_TREE = 112


class ResultType(enum.IntEnum):
    FILE_LINKED = 100
    BUILD_LOG_LINE = 101
    UNTRUSTED_PATH = 102
    CORRUPTED_PATH = 103
    SET_PHASE = 104
    PROGRESS = 105
    SET_EXPECTED = 106
    POST_BUILD_LOG_LINE = 107
    FETCH_STATUS = 108


@dataclass(frozen=True)
class Activity:
    """An activity started by nix; only the fields of its type are set."""

    type: ActivityType
    path: str | None = None
    source: str | None = None
    target: str | None = None
    uri: str | None = None
    machine: str | None = None
    round: int | None = None
    total_rounds: int | None = None


@dataclass(frozen=True)
class LogResult:
    """A result reported for an activity; only the fields of its type are set."""

    type: ResultType
    size: int | None = None
    blocks: int | None = None
    line: str | None = None
    path: str | None = None
    phase: str | None = None
    done: int | None = None
    expected: int | None = None
    running: int | None = None
    failed: int | None = None
    activity_type: ActivityType | None = None


@dataclass(frozen=True)
class Msg:
    level: Verbosity
    msg: str


@dataclass(frozen=True)
class Start:
    id: int
    level: Verbosity
    text: str
    activity: Activity


@dataclass(frozen=True)
class Stop:
    id: int


@dataclass(frozen=True)
class Result:
    id: int
    result: LogResult


@dataclass(frozen=True)
class OutputLine:
    line: str


@dataclass(frozen=True)
class UnknownItem:
    value: Any


LogItem = Union[Msg, Start, Stop, Result, OutputLine, UnknownItem]


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and _I64_MIN <= value <= _I64_MAX


def _get_int(obj: dict[str, Any], key: str) -> int | None:
    value = obj.get(key)
    return value if _is_int(value) else None


def _get_str(obj: dict[str, Any], key: str) -> str | None:
    value = obj.get(key)
    return value if isinstance(value, str) else None


def _get_verbosity(obj: dict[str, Any]) -> Verbosity | None:
    level = _get_int(obj, "level")
    if level is None:
        return None
    try:
        return Verbosity(level)
    except ValueError:
        return None


def _fields(value: Any, *kinds: type) -> tuple[Any, ...] | None:
    """Unpack ``value`` as an array of exactly these kinds (``int`` or ``str``)."""
    if not isinstance(value, list) or len(value) != len(kinds):
        return None
    for item, kind in zip(value, kinds):
        if kind is int and not _is_int(item):
            return None
        if kind is str and not isinstance(item, str):
            return None
    return tuple(value)


def _parse_activity(kind: ActivityType, fields: Any) -> Activity | None:
    if kind is ActivityType.COPY_PATH:
        got = _fields(fields, str, str, str)
        return None if got is None else Activity(kind, path=got[0], source=got[1], target=got[2])
    if kind is ActivityType.FILE_TRANSFER:
        got = _fields(fields, str)
        return None if got is None else Activity(kind, uri=got[0])
    if kind is ActivityType.BUILD:
        got = _fields(fields, str, str, int, int)
        if got is None:
            return None
        return Activity(kind, path=got[0], machine=got[1], round=got[2], total_rounds=got[3])
    if kind in (ActivityType.SUBSTITUTE, ActivityType.QUERY_PATH_INFO):
        got = _fields(fields, str, str)
        return None if got is None else Activity(kind, path=got[0], uri=got[1])
    if kind is ActivityType.POST_BUILD_HOOK:
        got = _fields(fields, str)
        return None if got is None else Activity(kind, path=got[0])
    return Activity(kind)


def _parse_result(kind: ResultType, fields: Any) -> LogResult | None:
    if kind is ResultType.FILE_LINKED:
        got = _fields(fields, int, int)
        return None if got is None else LogResult(kind, blocks=got[0], size=got[1])
    if kind in (ResultType.BUILD_LOG_LINE, ResultType.POST_BUILD_LOG_LINE, ResultType.FETCH_STATUS):
        got = _fields(fields, str)
        return None if got is None else LogResult(kind, line=got[0])
    if kind in (ResultType.UNTRUSTED_PATH, ResultType.CORRUPTED_PATH):
        got = _fields(fields, str)
        return None if got is None else LogResult(kind, path=got[0])
    if kind is ResultType.SET_PHASE:
        got = _fields(fields, str)
        return None if got is None else LogResult(kind, phase=got[0])
    if kind is ResultType.PROGRESS:
        got = _fields(fields, int, int, int, int)
        if got is None:
            return None
        return LogResult(kind, done=got[0], expected=got[1], running=got[2], failed=got[3])
    # SET_EXPECTED
    got = _fields(fields, int, int)
    if got is None:
        return None
    try:
        activity_type = ActivityType(got[0])
    except ValueError:
        return None
    return LogResult(kind, activity_type=activity_type, expected=got[1])


def parse_log_item(val: Any) -> LogItem | None:
    """Interpret a decoded JSON value as a nix log item, or return None."""
    if not isinstance(val, dict):
        return None
    action = _get_str(val, "action")

    if action == "msg":
        level = _get_verbosity(val)
        msg = _get_str(val, "msg")
        if level is None or msg is None:
            return None
        return Msg(level, msg)

    if action == "start":
        type_code = _get_int(val, "type")
        if type_code is None:
            return None
        try:
            kind = ActivityType(type_code)
        except ValueError:
            return None
        activity = _parse_activity(kind, val.get("fields", []))
        if activity is None:
            return None
        ident = _get_int(val, "id")
        level = _get_verbosity(val)
        text = _get_str(val, "text")
        if ident is None or level is None or text is None:
            return None
        return Start(ident, level, text, activity)

    if action == "stop":
        ident = _get_int(val, "id")
        return None if ident is None else Stop(ident)

    if action == "result":
        type_code = _get_int(val, "type")
        if type_code is None:
            return None
        try:
            kind = ResultType(type_code)
        except ValueError:
            return None
        result = _parse_result(kind, val.get("fields", []))
        if result is None:
            return None
        ident = _get_int(val, "id")
        return None if ident is None else Result(ident, result)

    return None


def _reject_constant(name: str) -> Any:
    raise ValueError(f"invalid JSON constant: {name}")


def parse_line(line: str) -> LogItem:
    """Parse one line of nix output.

    Lines without the ``@nix`` prefix are plain output. Raises ValueError when a
    prefixed line does not hold valid JSON.
    """
    if not line.startswith(NIX_PREFIX):
        return OutputLine(line)
    value = json.loads(line[len(NIX_PREFIX):], parse_constant=_reject_constant)
    item = parse_log_item(value)
    return item if item is not None else UnknownItem(value)
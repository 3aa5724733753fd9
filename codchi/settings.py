"""Codchi's own user settings stored in config.toml."""

from __future__ import annotations

import functools
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import tomlkit
from tomlkit import TOMLDocument

from .consts import host_config_dir
from .locked import LockedConfig

log = logging.getLogger(__name__)

CONFIG_FILE_NAME = "config.toml"


def _default_path() -> Path:
    directory = host_config_dir()
    directory.mkdir(parents=True, exist_ok=True)
    return directory / CONFIG_FILE_NAME


def _table(data: dict[str, Any], key: str) -> dict[str, Any]:
    value = data.get(key, {})
    if not isinstance(value, dict):
        raise ValueError(f"'{key}' must be a table")
    return value


def _flag(table: dict[str, Any], key: str, default: bool) -> bool:
    value = table.get(key, default)
    if not isinstance(value, bool):
        raise ValueError(f"'{key}' must be a boolean")
    return value


@dataclass
class TrayConfig:
    autostart: bool = True


@dataclass
class VcXsrvConfig:
    enable: bool = False
    tray: bool = False


@dataclass
class CodchiConfig:
    tray: TrayConfig = field(default_factory=TrayConfig)
    vcxsrv: VcXsrvConfig = field(default_factory=VcXsrvConfig)
    data_dir: str | None = None

    @classmethod
    def from_toml(cls, text: str) -> CodchiConfig:
        """Parse settings from TOML, filling in defaults for missing keys."""
        data = tomlkit.parse(text).unwrap()
        tray = _table(data, "tray")
        vcxsrv = _table(data, "vcxsrv")
        data_dir = data.get("data_dir")
        if data_dir is not None and not isinstance(data_dir, str):
            raise ValueError("'data_dir' must be a string")
        return cls(
            tray=TrayConfig(autostart=_flag(tray, "autostart", True)),
            vcxsrv=VcXsrvConfig(
                enable=_flag(vcxsrv, "enable", False),
                tray=_flag(vcxsrv, "tray", False),
            ),
            data_dir=data_dir,
        )

    def to_toml(self) -> str:
        """Serialize the settings to TOML."""
        doc = tomlkit.document()
        if self.data_dir is not None:
            doc["data_dir"] = self.data_dir
        tray = tomlkit.table()
        tray["autostart"] = self.tray.autostart
        doc["tray"] = tray
        vcxsrv = tomlkit.table()
        vcxsrv["enable"] = self.vcxsrv.enable
        vcxsrv["tray"] = self.vcxsrv.tray
        doc["vcxsrv"] = vcxsrv
        return tomlkit.dumps(doc)

    @classmethod
    def load(cls, path: str | os.PathLike[str] | None = None) -> CodchiConfig:
        """Read settings from ``path``, creating an empty file if missing."""
        path = Path(path) if path is not None else _default_path()
        path.parent.mkdir(parents=True, exist_ok=True)
        lock, cfg = LockedConfig.open_parse(path, False, cls.from_toml, cls)
        lock.close()
        log.debug("Read codchi config: %r", cfg)
        return cfg

    @classmethod
    def get(cls) -> CodchiConfig:
        """Return the process-wide settings, read once from the default location."""
        return _global_config()

    @classmethod
    def open_mut(cls, path: str | os.PathLike[str] | None = None) -> ConfigMut:
        """Open the settings for editing, keeping the file locked until written."""
        path = Path(path) if path is not None else _default_path()
        path.parent.mkdir(parents=True, exist_ok=True)
        lock, doc = LockedConfig.open_parse(
            path,
            True,
            tomlkit.parse,
            lambda: tomlkit.parse(cls().to_toml()),
        )
        return ConfigMut(lock, doc)


@functools.lru_cache(maxsize=None)
def _global_config() -> CodchiConfig:
    return CodchiConfig.load()


class ConfigMut:
    """An editable, locked settings document that preserves formatting."""

    def __init__(self, lock: LockedConfig, doc: TOMLDocument) -> None:
        self._lock = lock
        self._doc = doc

    def _set(self, section: str, key: str, value: bool) -> None:
        if section not in self._doc:
            self._doc[section] = tomlkit.table()
        self._doc[section][key] = value

    def tray_autostart(self, autostart: bool) -> None:
        self._set("tray", "autostart", autostart)

    def vcxsrv_enable(self, enable: bool) -> None:
        self._set("vcxsrv", "enable", enable)

    def vcxsrv_tray(self, enable: bool) -> None:
        self._set("vcxsrv", "tray", enable)

    def write(self) -> None:
        """Write the document back and release the lock."""
        self._lock.write(tomlkit.dumps(self._doc))
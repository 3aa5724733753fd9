"""Per-machine configuration stored as JSON below the config directory."""

from __future__ import annotations

import enum
import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .consts import MACHINE_PREFIX, host_config_dir, join_machine
from .locked import LockedConfig

log = logging.getLogger(__name__)

CONFIG_FILE_NAME = "config.json"


def _base(config_dir: str | os.PathLike[str] | None) -> Path:
    return Path(config_dir) if config_dir is not None else host_config_dir()


def _config_path(name: str, config_dir: str | os.PathLike[str] | None) -> Path:
    return join_machine(_base(config_dir), name) / CONFIG_FILE_NAME


def _string_map(data: dict[str, Any], key: str) -> dict[str, str]:
    value = data.get(key, {})
    if not isinstance(value, dict) or not all(
        isinstance(k, str) and isinstance(v, str) for k, v in value.items()
    ):
        raise ValueError(f"'{key}' must map strings to strings")
    return dict(value)


class ConfigState(enum.Enum):
    EXISTS = "exists"
    SIMILAR_EXISTS = "similar_exists"
    NONE = "none"


@dataclass(frozen=True)
class ConfigResult:
    """Outcome of looking up a machine.

    Paths are case insensitive on some hosts but not inside the machines, so a
    machine whose name matches only case-insensitively is reported with its
    real name in ``similar_name``.
    """

    state: ConfigState
    similar_name: str | None = None


@dataclass
class MachineConfig:
    name: str
    nixpkgs_from: str | None = None
    modules: dict[str, str] = field(default_factory=dict)
    secrets: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_json(cls, name: str, content: str) -> MachineConfig:
        """Parse a machine's config from JSON."""
        data = json.loads(content)
        if not isinstance(data, dict):
            raise ValueError("machine config must be a JSON object")
        nixpkgs_from = data.get("nixpkgs_from")
        if nixpkgs_from is not None and not isinstance(nixpkgs_from, str):
            raise ValueError("'nixpkgs_from' must be a string")
        return cls(
            name=name,
            nixpkgs_from=nixpkgs_from,
            modules=_string_map(data, "modules"),
            secrets=_string_map(data, "secrets"),
        )

    def to_json(self) -> str:
        """Serialize to pretty JSON; the name is not stored."""
        data: dict[str, Any] = {}
        if self.nixpkgs_from is not None:
            data["nixpkgs_from"] = self.nixpkgs_from
        data["modules"] = self.modules
        data["secrets"] = self.secrets
        return json.dumps(data, indent=2)

    @classmethod
    def find(cls, name: str, config_dir: str | os.PathLike[str] | None = None) -> ConfigResult:
        """Check whether a machine with exactly this name has a non-empty config."""
        path = _config_path(name, config_dir)
        try:
            size = path.stat().st_size
        except OSError:
            return ConfigResult(ConfigState.NONE)
        if size == 0:
            return ConfigResult(ConfigState.NONE)
        real = path.resolve(strict=True)
        if str(real).endswith(f"{name}{os.sep}{CONFIG_FILE_NAME}"):
            return ConfigResult(ConfigState.EXISTS)
        return ConfigResult(ConfigState.SIMILAR_EXISTS, real.parent.name)

    @classmethod
    def open(
        cls,
        name: str,
        write_mode: bool,
        config_dir: str | os.PathLike[str] | None = None,
    ) -> tuple[LockedConfig, MachineConfig | None]:
        """Open (creating if missing) and lock the config of machine ``name``."""
        directory = join_machine(_base(config_dir), name)
        directory.mkdir(parents=True, exist_ok=True)
        path = directory / CONFIG_FILE_NAME

        def parse(content: str) -> MachineConfig:
            cfg = cls.from_json(name, content)
            log.debug("Read machine config from %s: %r", path, cfg)
            return cfg

        return LockedConfig.open_parse(path, write_mode, parse, lambda: None)

    @classmethod
    def open_existing(
        cls,
        name: str,
        write_mode: bool,
        config_dir: str | os.PathLike[str] | None = None,
    ) -> tuple[LockedConfig, MachineConfig]:
        """Open the config only if the machine already exists."""
        if cls.find(name, config_dir).state is not ConfigState.EXISTS:
            raise FileNotFoundError(f"Machine '{name}' doesn't exist.")
        lock, cfg = cls.open(name, write_mode, config_dir)
        return lock, cfg if cfg is not None else cls(name)

    def write(self, lock: LockedConfig) -> None:
        """Write this config through ``lock`` and release it."""
        lock.write(self.to_json())

    @classmethod
    def list(cls, config_dir: str | os.PathLike[str] | None = None) -> list[MachineConfig]:
        """Return every configured machine, sorted by name."""
        machines_dir = _base(config_dir) / MACHINE_PREFIX
        machines_dir.mkdir(parents=True, exist_ok=True)
        machines = []
        for entry in machines_dir.iterdir():
            if not entry.is_dir():
                continue
            log.debug("Found possible machine %s.", entry.name)
            lock, machine = cls.open(entry.name, False, config_dir)
            lock.close()
            if machine is not None:
                machines.append(machine)
        machines.sort(key=lambda m: m.name)
        return machines

    @classmethod
    def delete(cls, name: str, config_dir: str | os.PathLike[str] | None = None) -> None:
        """Remove the config file of machine ``name``, ignoring failures."""
        path = _config_path(name, config_dir)
        try:
            path.unlink()
        except OSError as err:
            log.debug("Could not remove %s: %s", path, err)
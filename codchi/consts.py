"""Names, paths and fixed values shared across codchi."""

from __future__ import annotations

import os
import platform
import sys
import tempfile
from pathlib import Path, PurePath, PurePosixPath
from typing import TypeVar

import platformdirs

APP_NAME = "codchi"

CONTAINER_STORE_NAME = "codchistore"

NIX_SYSTEM = "aarch64_linux" if platform.machine().lower() in ("aarch64", "arm64") else "x86_64-linux"

STORE_NAME = "store"
MACHINE_PREFIX = "machine"

# used for store / machine container init
INIT_EXIT_ERR = "INIT_ERR"
INIT_EXIT_SUCCESS = "INIT_SUCCESS"

# paths inside the store container
STORE_DIR_CONFIG = PurePosixPath("/config")
STORE_DIR_DATA = PurePosixPath("/data")
STORE_DIR_NIX = PurePosixPath("/nix")
STORE_LOGFILE = STORE_DIR_DATA / "log/store.log"

# paths inside a machine container
CODCHI_ENV = PurePosixPath("/etc/codchi-env")
CODCHI_ENV_TMP = PurePosixPath("/tmp/codchi-env")

# users inside a machine
ROOT_UID = "0"
ROOT_GID = "0"
ROOT_HOME = PurePosixPath("/root")
DEFAULT_USER_NAME = "codchi"
DEFAULT_HOME = PurePosixPath("/home/codchi")
DEFAULT_UID = "1000"
DEFAULT_GID = "100"

# root file system archives
STORE_ROOTFS_NAME = "store.tar.gz"
MACHINE_ROOTFS_NAME = "machine.tar.gz"

P = TypeVar("P", bound=PurePath)


def join_store(base: P) -> P:
    """Return the store directory below ``base``."""
    return base / STORE_NAME


def join_machine(base: P, name: str) -> P:
    """Return the directory of machine ``name`` below ``base``."""
    return base / MACHINE_PREFIX / name


def host_config_dir() -> Path:
    """Return codchi's configuration directory on the host."""
    return Path(platformdirs.user_config_dir(APP_NAME, appauthor=False, roaming=True))


def host_data_dir(data_dir: str | os.PathLike[str] | None = None) -> Path:
    """Return codchi's data directory, honouring a configured override."""
    if data_dir is not None:
        return Path(data_dir)
    return Path(platformdirs.user_data_dir(APP_NAME, appauthor=False))


def host_nix_dir(data_dir: str | os.PathLike[str] | None = None) -> Path:
    """Return the directory holding the nix store on the host."""
    return host_data_dir(data_dir) / "nix"


def host_runtime_dir() -> Path:
    """Return codchi's runtime directory, falling back to the temp dir."""
    runtime = os.environ.get("XDG_RUNTIME_DIR") if sys.platform.startswith("linux") else None
    base = Path(runtime) if runtime and Path(runtime).is_absolute() else Path(tempfile.gettempdir())
    return base / APP_NAME


def host_store_log(data_dir: str | os.PathLike[str] | None = None) -> Path:
    """Return the store's log file on the host."""
    return host_data_dir(data_dir) / "log" / "store.log"


def host_machine_log(name: str, data_dir: str | os.PathLike[str] | None = None) -> Path:
    """Return the log file of machine ``name`` on the host."""
    return host_data_dir(data_dir) / "log" / f"machine-{name}.log"


def store_machine_log(name: str) -> PurePosixPath:
    """Return the log file of machine ``name`` inside the store."""
    return STORE_DIR_DATA / f"log/machine-{name}.log"


def machine_container_name(name: str) -> str:
    """Return the container name used for machine ``name``."""
    return f"codchi-{name}"
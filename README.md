# codchi

A Python library for the host-side bookkeeping of codchi code machines. It
covers the directory layout, configuration files that are locked while in use,
the global settings file, the configuration of each machine, and the reading of
Nix's structured JSON build log into a one-line progress summary.

## Installation

```
pip install codchi
```

## Modules

- `codchi.consts` holds fixed names and paths. It has the directory layout on
  the host (`host_config_dir()`, `host_data_dir(data_dir)`,
  `host_nix_dir(data_dir)`, `host_runtime_dir()`, `host_store_log(data_dir)`,
  `host_machine_log(name, data_dir)`), the paths inside the store and inside
  machines (`STORE_DIR_DATA`, `store_machine_log(name)`, `CODCHI_ENV`,
  `DEFAULT_HOME`, …), and the helpers `join_store(base)`,
  `join_machine(base, name)` and `machine_container_name(name)`.
- `codchi.locked` provides `LockedConfig`. `LockedConfig.open(path, write_mode)`
  reads a file and keeps it locked, shared for reading and exclusive for
  writing, until `write(content)` or `close()` is called.
  `LockedConfig.open_parse(path, write_mode, parse, default)` also parses the
  content. It uses `default()` when the file is empty or cannot be parsed. A
  `LockedConfig` also works as a context manager.
- `codchi.settings` provides `CodchiConfig`, which handles the global
  `config.toml`. Its fields are `tray.autostart`, `vcxsrv.enable`,
  `vcxsrv.tray` and `data_dir`.
  - `from_toml(text)` and `to_toml()` convert the settings to and from TOML.
  - `load(path)` reads the file and creates it if it is missing.
  - `get()` reads the default file once per process.
  - `open_mut(path)` returns a `ConfigMut` that edits the document and keeps
    its formatting. The edits are made with `tray_autostart`, `vcxsrv_enable`
    and `vcxsrv_tray`, then saved with `write()`.
- `codchi.machine_config` provides `MachineConfig` for each machine's
  `machine/<name>/config.json`. It stores `nixpkgs_from`, `modules` and
  `secrets`.
  - `find` returns a `ConfigResult` whose state is a `ConfigState`: `EXISTS`,
    `SIMILAR_EXISTS` (the name matches only case-insensitively) or `NONE`.
  - The other operations are `open`, `open_existing`, `write`, `list` and
    `delete`.
  - Each of these takes an optional `config_dir`.
- `codchi.nixlog` turns `@nix {...}` lines into typed items with
  `parse_line(line)` and `parse_log_item(value)`. The items are `Msg`,
  `Start`, `Stop`, `Result`, `OutputLine` and `UnknownItem`. The types used
  in them are `Verbosity`, `ActivityType`, `ResultType`, `Activity` and
  `LogResult`.
- `codchi.progress` provides `Progress`, which tracks Nix activities and
  renders a status prefix such as `[building 1/3, downloading 1.5/4.0 MiB]`.
  `format_counter(prefix, is_bytes, done, expected)` formats one part of it.
  It also provides a shared progress line:
  - `set_progress_status(status)` sets its status message.
  - `log_progress(fallback_target, fallback_level, msg)` feeds it one line of
    Nix output.
  - `hide_progress()` removes it.
  - `progress_scope()` is a context manager that hides it afterwards.
  - `init(level)` sets up log output to stderr. The `CODCHI_LOG` environment
    variable overrides the level.

## Example

```python
from codchi.settings import CodchiConfig
from codchi.nixlog import parse_line

cfg = CodchiConfig.from_toml("tray.autostart = false\n")
print(cfg.tray.autostart)          # False

item = parse_line('@nix {"action":"stop","id":7}')
print(item.id)                     # 7
```

Progress reporting in your own code:

```python
import logging
from codchi.progress import init, progress_scope, set_progress_status, log_progress

init(logging.INFO)
with progress_scope():
    set_progress_status("Building...")
    log_progress("build", logging.INFO, "plain output line")
```

## What this package does not do

This package is a library only. It does not:

- provide a command-line program;
- create, build, start or delete code machines;
- run Nix or talk to a store container;
- offer a tray icon.

It reads and writes configuration files, works out paths, and interprets
Nix log output that you pass to it.

## Tests

```
pip install -e .[test]
pytest
```
"""Configuration loader for pingsvc.

Configuration values are read from multiple sources, later sources winning:

1. Built-in defaults.
2. ``/etc/pingsvc/config.yml`` (or an override path).
3. Environment variables prefixed with ``PINGSVC_``.
4. Explicit overrides supplied programmatically (reserved for CLI flags).

Environment keys use double underscores to express nesting, e.g.::

    export PINGSVC_PROBE__RESTART_SEC=5
    export PINGSVC_SYSTEMD__UNIT_DIR=/run/systemd/system

Values are coerced via PyYAML's ``safe_load`` so that booleans and numbers are
parsed naturally. The resulting configuration is exposed as immutable
``dataclasses`` for convenient access and type safety.
"""
from __future__ import annotations

import os
from collections.abc import Mapping, MutableMapping
from dataclasses import dataclass
from pathlib import Path
from typing import cast

try:  # PyYAML is a runtime dependency (declared in pyproject.toml).
    import yaml
except Exception as exc:  # pragma: no cover - import failure covered in tests
    raise RuntimeError(
        "PyYAML is required to load pingsvc configuration. Install with "
        "`pip install pingsvc` or ensure PyYAML>=6.0 is available."
    ) from exc


ENV_PREFIX = "PINGSVC_"
CONFIG_ENV_VAR = f"{ENV_PREFIX}CONFIG_FILE"
RESERVED_ENV_KEYS = {CONFIG_ENV_VAR}


class ConfigError(RuntimeError):
    """Raised when configuration parsing fails."""


@dataclass(frozen=True)
class ProbeConfig:
    """Settings baked into every rendered ping unit."""

    binary: str = "/bin/ping"
    restart_sec: int = 10

    def to_dict(self) -> dict[str, object]:
        """Return a serialisable representation."""
        return {"binary": self.binary, "restart_sec": self.restart_sec}


@dataclass(frozen=True)
class SystemdConfig:
    """Systemd integration configuration values."""

    unit_dir: Path = Path("/etc/systemd/system")
    systemctl_bin: str = "systemctl"
    journalctl_bin: str = "journalctl"

    def to_dict(self) -> dict[str, object]:
        """Return a serialisable representation."""
        return {
            "unit_dir": str(self.unit_dir),
            "systemctl_bin": self.systemctl_bin,
            "journalctl_bin": self.journalctl_bin,
        }


@dataclass(frozen=True)
class AppConfig:
    """Resolved configuration values for pingsvc."""

    config_file: Path
    logs_dir: Path
    templates_dir: Path
    require_root: bool
    probe: ProbeConfig
    systemd: SystemdConfig

    def to_dict(self) -> dict[str, object]:
        """Return a JSON-serialisable representation of the config."""
        return {
            "config_file": str(self.config_file),
            "logs_dir": str(self.logs_dir),
            "templates_dir": str(self.templates_dir),
            "require_root": self.require_root,
            "probe": self.probe.to_dict(),
            "systemd": self.systemd.to_dict(),
        }


DEFAULTS: dict[str, object] = {
    "config_file": "/etc/pingsvc/config.yml",
    "logs_dir": "/var/log/pingsvc",
    "templates_dir": "/etc/pingsvc/templates",
    "require_root": True,
    "probe": {
        "binary": "/bin/ping",
        "restart_sec": 10,
    },
    "systemd": {
        "unit_dir": "/etc/systemd/system",
        "systemctl_bin": "systemctl",
        "journalctl_bin": "journalctl",
    },
}

ALLOWED_TOP_LEVEL_KEYS = set(DEFAULTS.keys())
ALLOWED_PROBE_KEYS = {"binary", "restart_sec"}
ALLOWED_SYSTEMD_KEYS = {"unit_dir", "systemctl_bin", "journalctl_bin"}


def load_config(
    config_file: str | os.PathLike[str] | None = None,
    *,
    env: Mapping[str, str] | None = None,
    overrides: Mapping[str, object] | None = None,
) -> AppConfig:
    """Load and merge configuration sources into an :class:`AppConfig`."""
    merged: dict[str, object] = _deep_copy(DEFAULTS)
    resolved_env = dict(os.environ if env is None else env)

    config_default = _expect_str(merged["config_file"], "config_file")
    config_path = _determine_config_path(config_default, config_file, resolved_env)

    file_values = _load_yaml_file(config_path)
    if file_values:
        _deep_merge(merged, file_values)

    env_values = _build_env_overrides(resolved_env)
    if env_values:
        _deep_merge(merged, env_values)

    if overrides:
        _deep_merge(merged, dict(overrides))

    merged["config_file"] = str(config_path)

    _validate_structure(merged)

    return _build_app_config(merged)


def _determine_config_path(
    default_path: str,
    cli_override: str | os.PathLike[str] | None,
    env: Mapping[str, str],
) -> Path:
    if cli_override:
        return Path(cli_override)
    if CONFIG_ENV_VAR in env:
        return Path(env[CONFIG_ENV_VAR])
    return Path(default_path)


def _load_yaml_file(path: Path) -> dict[str, object]:
    if not path.exists():
        return {}
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:  # pragma: no cover - PyYAML owns detailed error
        raise ConfigError(f"Failed to parse config file {path}: {exc}") from exc
    except OSError as exc:
        raise ConfigError(f"Unable to read config file {path}: {exc}") from exc
    if not isinstance(data, Mapping):
        raise ConfigError(f"Config file {path} must contain a mapping at the top level.")
    return _as_dict(data, f"file:{path}")


def _validate_structure(raw: Mapping[str, object]) -> None:
    unknown_keys = set(raw.keys()) - ALLOWED_TOP_LEVEL_KEYS
    if unknown_keys:
        joined = ", ".join(sorted(unknown_keys))
        raise ConfigError(f"Unknown configuration keys: {joined}.")

    probe = raw.get("probe")
    if probe is not None:
        probe_map = _as_dict(probe, "probe")
        unknown = set(probe_map.keys()) - ALLOWED_PROBE_KEYS
        if unknown:
            joined = ", ".join(sorted(unknown))
            raise ConfigError(f"Unknown probe configuration keys: {joined}.")

    systemd = raw.get("systemd")
    if systemd is not None:
        systemd_map = _as_dict(systemd, "systemd")
        unknown = set(systemd_map.keys()) - ALLOWED_SYSTEMD_KEYS
        if unknown:
            joined = ", ".join(sorted(unknown))
            raise ConfigError(f"Unknown systemd configuration keys: {joined}.")


def _build_app_config(raw: Mapping[str, object]) -> AppConfig:
    config_file = _to_path(raw.get("config_file"))
    logs_dir = _to_path(raw.get("logs_dir"))
    templates_dir = _to_path(raw.get("templates_dir"))
    require_root = _expect_bool(raw.get("require_root"), "require_root", default=True)

    probe_mapping = _as_dict(raw.get("probe"), "probe")
    binary = str(probe_mapping.get("binary", "/bin/ping")).strip()
    if not binary:
        raise ConfigError("probe.binary must be a non-empty string.")
    restart_sec = _expect_int(probe_mapping.get("restart_sec"), "probe.restart_sec", default=10)
    if restart_sec <= 0:
        raise ConfigError(f"probe.restart_sec must be greater than zero. Got {restart_sec}.")
    probe = ProbeConfig(binary=binary, restart_sec=restart_sec)

    systemd_mapping = _as_dict(raw.get("systemd"), "systemd")
    systemd = SystemdConfig(
        unit_dir=_to_path(systemd_mapping.get("unit_dir", "/etc/systemd/system")),
        systemctl_bin=str(systemd_mapping.get("systemctl_bin", "systemctl")),
        journalctl_bin=str(systemd_mapping.get("journalctl_bin", "journalctl")),
    )

    return AppConfig(
        config_file=config_file,
        logs_dir=logs_dir,
        templates_dir=templates_dir,
        require_root=require_root,
        probe=probe,
        systemd=systemd,
    )


def _build_env_overrides(env: Mapping[str, str]) -> dict[str, object]:
    overrides: dict[str, object] = {}
    for key, value in env.items():
        if key in RESERVED_ENV_KEYS:
            continue
        if not key.startswith(ENV_PREFIX):
            continue
        suffix = key[len(ENV_PREFIX) :]
        path_segments = [segment.lower() for segment in suffix.split("__") if segment]
        if not path_segments:
            continue
        _assign_nested(overrides, path_segments, _coerce_value(value))
    return overrides


def _assign_nested(tree: MutableMapping[str, object], path: list[str], value: object) -> None:
    current: MutableMapping[str, object] = tree
    for segment in path[:-1]:
        existing = current.get(segment)
        if existing is None:
            new_child: MutableMapping[str, object] = {}
            current[segment] = new_child
            current = new_child
            continue
        if isinstance(existing, MutableMapping):
            current = cast(MutableMapping[str, object], existing)
            continue
        raise ConfigError(
            "Environment overrides conflict with existing scalar value at "
            f"{'.'.join(path)}"
        )
    current[path[-1]] = value


def _deep_merge(target: MutableMapping[str, object], overrides: Mapping[str, object]) -> None:
    for key, value in overrides.items():
        existing = target.get(key)
        if isinstance(existing, MutableMapping) and isinstance(value, Mapping):
            _deep_merge(existing, _as_dict(value, f"merge.{key}"))
            continue
        target[key] = value


def _deep_copy(source: Mapping[str, object]) -> dict[str, object]:
    result: dict[str, object] = {}
    for key, value in source.items():
        if isinstance(value, Mapping):
            result[key] = _deep_copy(_as_dict(value, f"copy.{key}"))
        else:
            result[key] = value
    return result


def _coerce_value(raw: str) -> object:
    raw = raw.strip()
    try:
        parsed = yaml.safe_load(raw)
    except yaml.YAMLError:  # pragma: no cover - treat as string if parsing fails
        return raw
    return parsed


def _to_path(value: object) -> Path:
    if value is None:
        raise ConfigError("Expected a filesystem path, received None.")
    if isinstance(value, Path):
        return value.expanduser()
    if isinstance(value, str):
        return Path(value).expanduser()
    raise ConfigError(f"Cannot convert value {value!r} to Path.")


def _expect_int(value: object | None, label: str, *, default: int) -> int:
    if value is None:
        return default
    if isinstance(value, bool):
        raise ConfigError(f"Expected {label} to be an integer. Got boolean {value!r}.")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value, 0)
        except ValueError as exc:
            raise ConfigError(f"Invalid integer for {label}: {value!r}.") from exc
    raise ConfigError(f"Expected {label} to be an integer. Got {type(value).__name__}.")


def _expect_bool(value: object | None, label: str, *, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    raise ConfigError(f"Expected {label} to be a boolean. Got {value!r}.")


def _expect_str(value: object, key: str) -> str:
    if isinstance(value, str):
        return value
    raise ConfigError(f"Expected {key} to resolve to a string. Got {value!r}.")


def _as_dict(value: object | None, label: str) -> dict[str, object]:
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise ConfigError(f"Expected {label} to be a mapping. Got {type(value).__name__}.")
    result: dict[str, object] = {}
    for key, item in value.items():
        if not isinstance(key, str):
            raise ConfigError(f"Mapping {label} must use string keys. Got {key!r}.")
        result[key] = item
    return result


__all__ = [
    "AppConfig",
    "ConfigError",
    "ProbeConfig",
    "SystemdConfig",
    "load_config",
]

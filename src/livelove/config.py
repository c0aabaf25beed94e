from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date, datetime, time
from pathlib import Path
from typing import Mapping, TypeAlias
import tomllib

DEFAULT_CONFIG_NAME = "livelove.toml"

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 12345
DEFAULT_DEBOUNCE_MS = 10
DEFAULT_WINDOW_SIZE = 5

TomlScalar: TypeAlias = str | int | float | bool | None | date | datetime | time
TomlValue: TypeAlias = TomlScalar | list["TomlValue"] | dict[str, "TomlValue"]
TomlTable: TypeAlias = dict[str, TomlValue]


@dataclass(frozen=True)
class Settings:
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    debounce_ms: int = DEFAULT_DEBOUNCE_MS
    window_size: int = DEFAULT_WINDOW_SIZE
    hints_enabled: bool = True

    @property
    def debounce_seconds(self) -> float:
        return self.debounce_ms / 1000.0


def _load_toml(path: Path) -> TomlTable:
    try:
        raw = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return {}
    except OSError:
        return {}
    try:
        data = tomllib.loads(raw)
    except tomllib.TOMLDecodeError:
        return {}
    return data if isinstance(data, dict) else {}


def load_config(root: Path | None = None, config_path: Path | None = None) -> TomlTable:
    if config_path is None:
        base = root if root is not None else Path.cwd()
        config_path = base / DEFAULT_CONFIG_NAME
    return _load_toml(config_path)


def _section(data: Mapping[str, object], name: str) -> TomlTable:
    section = data.get(name, {})
    return section if isinstance(section, dict) else {}


def _as_bool(value: object, default: bool) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return value != 0
    if isinstance(value, str):
        text = value.strip().lower()
        if text in {"1", "true", "yes", "on"}:
            return True
        if text in {"0", "false", "no", "off"}:
            return False
    return default


def _as_int(value: object, default: int, *, minimum: int = 0) -> int:
    if value is None or isinstance(value, bool):
        return default
    try:
        number = int(value)
    except (TypeError, ValueError):
        return default
    if number < minimum:
        return default
    return number


def _as_host(value: object, default: str) -> str:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return default


def settings_from_tables(
    data: Mapping[str, object], base: Settings | None = None
) -> Settings:
    """Overlay the `[server]`, `[viewer]` and `[hints]` tables on `base`."""
    settings = base or Settings()
    server = _section(data, "server")
    viewer = _section(data, "viewer")
    hints = _section(data, "hints")
    return Settings(
        host=_as_host(server.get("host"), settings.host),
        port=_as_int(server.get("port"), settings.port, minimum=1),
        debounce_ms=_as_int(server.get("debounce_ms"), settings.debounce_ms),
        window_size=_as_int(viewer.get("window_size"), settings.window_size),
        hints_enabled=_as_bool(hints.get("enabled"), settings.hints_enabled),
    )


def load_settings(root: Path | None = None, config_path: Path | None = None) -> Settings:
    return settings_from_tables(load_config(root=root, config_path=config_path))


def apply_initialization_options(settings: Settings, options: object) -> Settings:
    """Overlay LSP `initializationOptions` as sent by editor integrations.

    Recognised keys are `serverOptions.host`, `serverOptions.port` and
    `inlayHints.enabled`; anything else is ignored.
    """
    if not isinstance(options, Mapping):
        return settings
    server_options = options.get("serverOptions")
    hint_options = options.get("inlayHints")
    if isinstance(server_options, Mapping):
        settings = replace(
            settings,
            host=_as_host(server_options.get("host"), settings.host),
            port=_as_int(server_options.get("port"), settings.port, minimum=1),
        )
    if isinstance(hint_options, Mapping):
        settings = replace(
            settings,
            hints_enabled=_as_bool(hint_options.get("enabled"), settings.hints_enabled),
        )
    return settings


def merge_overrides(settings: Settings, overrides: Mapping[str, object]) -> Settings:
    """Apply explicit overrides (CLI flags); `None` means "not given"."""
    values = {key: value for key, value in overrides.items() if value is not None}
    if not values:
        return settings
    return replace(settings, **values)

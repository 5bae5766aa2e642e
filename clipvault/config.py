from __future__ import annotations

import json
import os
import warnings
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

DEFAULT_CONFIG_PATH = Path("~/.config/clipvault/config.json").expanduser()

CONFIG_ENV_OVERRIDES = {
    "db_path": "CLIPVAULT_DB",
    "blob_dir": "CLIPVAULT_BLOB_DIR",
    "history_limit": "CLIPVAULT_HISTORY_LIMIT",
    "text_max_bytes": "CLIPVAULT_TEXT_MAX_BYTES",
    "image_max_bytes": "CLIPVAULT_IMAGE_MAX_BYTES",
    "dedup_enabled": "CLIPVAULT_DEDUP",
    "byte_preserve_mode": "CLIPVAULT_BYTE_PRESERVE",
    "save_images": "CLIPVAULT_SAVE_IMAGES",
    "ignored_source_ids": "CLIPVAULT_IGNORED_SOURCES",
    "ignore_concealed": "CLIPVAULT_IGNORE_CONCEALED",
    "ignore_transient": "CLIPVAULT_IGNORE_TRANSIENT",
    "poll_interval_ms": "CLIPVAULT_POLL_INTERVAL_MS",
    "debounce_ms": "CLIPVAULT_DEBOUNCE_MS",
    "full_text_enabled": "CLIPVAULT_FULL_TEXT",
}

# (min, max) accepted by the settings surface; out-of-range values are clamped.
LIMITS: dict[str, tuple[int, int]] = {
    "history_limit": (100, 2000),
    "text_max_bytes": (10_000, 1_000_000),
    "image_max_bytes": (1_000_000, 20_000_000),
}

_INT_KEYS = {
    "history_limit",
    "text_max_bytes",
    "image_max_bytes",
    "poll_interval_ms",
    "debounce_ms",
}
_BOOL_KEYS = {
    "dedup_enabled",
    "byte_preserve_mode",
    "save_images",
    "ignore_concealed",
    "ignore_transient",
    "full_text_enabled",
}


def get_config_path(path: Path | None = None) -> Path:
    candidate = path or Path(os.getenv("CLIPVAULT_CONFIG", DEFAULT_CONFIG_PATH))
    return candidate.expanduser()


def read_config_file(path: Path | None = None) -> dict[str, Any]:
    config_path = get_config_path(path)
    if not config_path.exists():
        return {}
    raw = config_path.read_text()
    if not raw.strip():
        return {}
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ValueError("invalid config json") from exc
    if not isinstance(data, dict):
        raise ValueError("config must be an object")
    return data


def write_config_file(data: dict[str, Any], path: Path | None = None) -> Path:
    config_path = get_config_path(path)
    config_path.parent.mkdir(parents=True, exist_ok=True)
    config_path.write_text(json.dumps(data, ensure_ascii=False, indent=2) + "\n")
    return config_path


def get_env_overrides() -> dict[str, str]:
    overrides: dict[str, str] = {}
    for key, env_var in CONFIG_ENV_OVERRIDES.items():
        value = os.getenv(env_var)
        if value is not None:
            overrides[key] = value
    return overrides


@dataclass
class ClipVaultConfig:
    db_path: str | None = None
    blob_dir: str | None = None
    history_limit: int = 500
    text_max_bytes: int = 200_000
    image_max_bytes: int = 5_000_000
    dedup_enabled: bool = True
    # Store text exactly as copied instead of trimming surrounding whitespace.
    byte_preserve_mode: bool = False
    save_images: bool = True
    ignored_source_ids: list[str] = field(default_factory=list)
    ignore_concealed: bool = True
    ignore_transient: bool = True
    poll_interval_ms: int = 300
    debounce_ms: int = 500
    full_text_enabled: bool = True

    def is_ignored(self, source_id: str | None) -> bool:
        if not source_id:
            return False
        return source_id in self.ignored_source_ids


def _parse_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    if value.lower() in {"1", "true", "yes", "on"}:
        return True
    if value.lower() in {"0", "false", "off", "no"}:
        return False
    return default


def _parse_int(value: object, default: int, *, key: str) -> int:
    if value is None:
        return default
    try:
        return int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        warnings.warn(f"Invalid int for {key}: {value!r}", RuntimeWarning, stacklevel=2)
        return default


def _coerce_bool(value: object, default: bool, *, key: str) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return value != 0
    if isinstance(value, str):
        return _parse_bool(value, default)
    warnings.warn(f"Invalid bool for {key}: {value!r}", RuntimeWarning, stacklevel=2)
    return default


def _coerce_str_list(value: object, *, key: str) -> list[str] | None:
    if value is None:
        return None
    if isinstance(value, list):
        items: list[str] = []
        for item in value:
            if isinstance(item, str) and item.strip():
                items.append(item.strip())
        return items
    if isinstance(value, str):
        return [p.strip() for p in value.split(",") if p.strip()]
    warnings.warn(f"Invalid list for {key}: {value!r}", RuntimeWarning, stacklevel=2)
    return None


def _clamp(cfg: ClipVaultConfig) -> ClipVaultConfig:
    for key, (low, high) in LIMITS.items():
        setattr(cfg, key, max(low, min(high, getattr(cfg, key))))
    cfg.poll_interval_ms = max(50, cfg.poll_interval_ms)
    cfg.debounce_ms = max(0, cfg.debounce_ms)
    return cfg


def load_config(path: Path | None = None) -> ClipVaultConfig:
    cfg = ClipVaultConfig()
    config_path = get_config_path(path)
    if config_path.exists():
        try:
            data = json.loads(config_path.read_text())
        except json.JSONDecodeError:
            data = {}
        if isinstance(data, dict):
            cfg = _apply_dict(cfg, data)
    cfg = _apply_dict(cfg, get_env_overrides())
    return _clamp(cfg)


def _apply_dict(cfg: ClipVaultConfig, data: dict[str, Any]) -> ClipVaultConfig:
    for key, value in data.items():
        if not hasattr(cfg, key):
            continue
        if key in _INT_KEYS:
            setattr(cfg, key, _parse_int(value, getattr(cfg, key), key=key))
            continue
        if key in _BOOL_KEYS:
            setattr(cfg, key, _coerce_bool(value, getattr(cfg, key), key=key))
            continue
        if key == "ignored_source_ids":
            parsed = _coerce_str_list(value, key=key)
            if parsed is not None:
                cfg.ignored_source_ids = parsed
            continue
        setattr(cfg, key, str(value) if value is not None else None)
    return cfg

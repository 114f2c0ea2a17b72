from __future__ import annotations

import json
import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

import jsonschema
import yaml
from jsonschema.exceptions import ValidationError

"""Config loader.

Responsibilities:
- Load YAML config (default: config/audit.yml)
- Validate keys against the bundled JSON schema
- Apply defaults for every optional key
- Apply environment overrides (STOCK_AUDIT_SESSION_PATH / STOCK_AUDIT_EXPORT_DIR)
"""

__all__ = [
    "ConfigError",
    "AuditConfig",
    "DEFAULT_CONFIG_PATH",
    "SCHEMA_PATH",
    "load_config",
    "apply_env_overrides",
]

SCHEMA_PATH = Path(__file__).with_name("config_schema.json")
DEFAULT_CONFIG_PATH = Path("config/audit.yml")
DEFAULT_SESSION_PATH = "~/.stock_audit/audit_session.json"

ENV_SESSION_PATH = "STOCK_AUDIT_SESSION_PATH"
ENV_EXPORT_DIR = "STOCK_AUDIT_EXPORT_DIR"


class ConfigError(Exception):
    pass


@dataclass(frozen=True)
class AuditConfig:
    session_path: str = DEFAULT_SESSION_PATH  # single well-known session slot
    export_directory: str = "."
    autosave_delay_seconds: float = 5.0
    search_debounce_ms: int = 300
    session_max_age_hours: float = 48.0
    keywords: dict[str, list[str]] = field(default_factory=dict)  # role field -> keyword override

    @property
    def session_file(self) -> Path:
        return Path(self.session_path).expanduser()

    @property
    def export_dir(self) -> Path:
        return Path(self.export_directory).expanduser()


def _validate_config_schema(data: Any) -> None:
    """Validate config data against the bundled JSON schema.

    Raises:
        ConfigError: schema file missing or not valid JSON, or the data fails
            validation (unknown keys, wrong types, empty keyword lists).
    """
    if not SCHEMA_PATH.exists():
        raise ConfigError(f"config schema not found: {SCHEMA_PATH}")
    try:
        schema = json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))
        jsonschema.validate(data, schema)
    except json.JSONDecodeError as e:
        raise ConfigError(f"invalid schema file: {e}") from e
    except ValidationError as e:
        raise ConfigError(f"config validation failed: {e.message}") from e


def load_config(path: Path) -> AuditConfig:
    if not path.exists():
        raise ConfigError(f"config file not found: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid yaml: {e}") from e

    _validate_config_schema(data)

    defaults = AuditConfig()
    return AuditConfig(
        session_path=data.get("session_path", defaults.session_path),
        export_directory=data.get("export_directory", defaults.export_directory),
        autosave_delay_seconds=float(data.get("autosave_delay_seconds", defaults.autosave_delay_seconds)),
        search_debounce_ms=int(data.get("search_debounce_ms", defaults.search_debounce_ms)),
        session_max_age_hours=float(data.get("session_max_age_hours", defaults.session_max_age_hours)),
        keywords={k: [str(w) for w in v] for k, v in (data.get("keywords") or {}).items()},
    )


def apply_env_overrides(cfg: AuditConfig) -> AuditConfig:
    """Environment (including values loaded from .env) wins over the YAML file."""
    session_path = os.getenv(ENV_SESSION_PATH)
    export_dir = os.getenv(ENV_EXPORT_DIR)
    if session_path:
        cfg = replace(cfg, session_path=session_path)
    if export_dir:
        cfg = replace(cfg, export_directory=export_dir)
    return cfg

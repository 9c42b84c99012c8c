from __future__ import annotations

import os
import uuid
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

import yaml
from dotenv import find_dotenv, load_dotenv


# ---------- Typed sections ----------

@dataclass
class AppSection:
    run_id: Optional[str] = None
    dry_run: bool = False


@dataclass
class StoreSection:
    base_url: str = ""
    token: str = ""          # secret – never log in clear text
    verify_tls: bool = True
    timeout_sec: float = 30


@dataclass
class LoggingSection:
    base_dir: str = "logs"
    console_level: str = "INFO"   # INFO..CRITICAL
    file_level: str = "DEBUG"     # DEBUG..CRITICAL


@dataclass
class EntitySection:
    name: str = ""
    namespace: str = ""


@dataclass
class AppConfig:
    """Typed configuration object built by `load_config`."""
    app: AppSection
    store: StoreSection
    logging: LoggingSection
    entity: EntitySection

    @property
    def run_id(self) -> str:
        """Stable run identifier, generated on first access when not configured."""
        if not self.app.run_id:
            self.app.run_id = uuid.uuid4().hex[:12]
        return self.app.run_id


# ---------- Defaults ----------

_DEFAULT_FILES: Tuple[str, ...] = (
    "./deploysync.yml",
    os.path.expanduser("~/.config/deploysync/config.yml"),
    "/etc/deploysync/config.yml",
)

_DEFAULTS: Dict[str, Any] = {
    "app": {"run_id": None, "dry_run": False},
    "store": {
        "base_url": "",
        "token": "",
        "verify_tls": True,
        "timeout_sec": 30,
    },
    "logging": {"base_dir": "logs", "console_level": "INFO", "file_level": "DEBUG"},
    "entity": {"name": "", "namespace": ""},
}


# ---------- Utilities ----------

def _deep_merge(base: Dict[str, Any], ext: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """
    Deep-merge for dicts: maps merge recursively, lists/scalars override.
    `ext` wins over `base`. Returns a new dict.
    """
    if not ext:
        return dict(base)
    out: Dict[str, Any] = dict(base)
    for k, v in ext.items():
        if isinstance(v, dict) and isinstance(out.get(k), dict):
            out[k] = _deep_merge(out[k], v)
        else:
            out[k] = v
    return out


def _read_yaml_file(path: str) -> Dict[str, Any]:
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Top-level YAML must be a mapping: {path}")
    return data


def _load_first_existing(files: Tuple[str, ...]) -> Dict[str, Any]:
    for p in files:
        if os.path.exists(p):
            return _read_yaml_file(p)
    return {}


def _env_to_dict(prefix: str = "DEPLOYSYNC_") -> Dict[str, Any]:
    """
    Convert DEPLOYSYNC_FOO__BAR=val to {"foo": {"bar": "val"}} (lowercased keys).
    """
    out: Dict[str, Any] = {}
    plen = len(prefix)
    for key, val in os.environ.items():
        if not key.startswith(prefix):
            continue
        path = key[plen:].lower().split("__")
        cursor = out
        for part in path[:-1]:
            cursor = cursor.setdefault(part, {})
        cursor[path[-1]] = val
    return out


def _interpolate_env(cfg: Dict[str, Any]) -> Dict[str, Any]:
    """
    Replace values like "${VAR}" with os.environ["VAR"] when present.
    """
    def repl(v: Any) -> Any:
        if isinstance(v, str) and v.startswith("${") and v.endswith("}"):
            return os.environ.get(v[2:-1], "")
        return v

    def walk(obj: Any) -> Any:
        if isinstance(obj, dict):
            return {k: walk(repl(v)) for k, v in obj.items()}
        if isinstance(obj, list):
            return [walk(x) for x in obj]
        return repl(obj)

    return walk(cfg)


_BOOL_KEYS = {("app", "dry_run"), ("store", "verify_tls")}
_FLOAT_KEYS = {("store", "timeout_sec")}
_TRUE_WORDS = {"1", "true", "yes", "y", "on"}


def _coerce_types(cfg: Dict[str, Any]) -> Dict[str, Any]:
    """
    Env and YAML values arrive as strings; coerce the typed section keys.
    """
    out = {section: dict(values) if isinstance(values, dict) else values for section, values in cfg.items()}
    for section, key in _BOOL_KEYS:
        values = out.get(section)
        if isinstance(values, dict) and key in values and not isinstance(values[key], bool):
            values[key] = str(values[key]).strip().lower() in _TRUE_WORDS
    for section, key in _FLOAT_KEYS:
        values = out.get(section)
        if isinstance(values, dict) and isinstance(values.get(key), str):
            try:
                values[key] = float(values[key])
            except ValueError as e:
                raise ValueError(f"{section}.{key} must be a number, got {values[key]!r}") from e
    return out


def _validate(cfg: Dict[str, Any]) -> None:
    """
    A store URL is mandatory unless running dry.
    """
    if bool(cfg.get("app", {}).get("dry_run", False)):
        return
    if not cfg.get("store", {}).get("base_url"):
        raise ValueError("Missing required configuration for non-dry run: store.base_url")


# ---------- Public API ----------

def load_config(
    cli_overrides: Optional[Dict[str, Any]] = None,
    files: Tuple[str, ...] = _DEFAULT_FILES,
    env_prefix: str = "DEPLOYSYNC_",
    dotenv: bool = True,
) -> AppConfig:
    """
    Build an AppConfig from (in precedence order):
      1) CLI overrides
      2) Environment variables (prefix DEPLOYSYNC_, nested via __),
         after loading a .env file found from the working directory
      3) YAML file (first existing)
      4) Built-in defaults

    Also performs ${ENV_VAR} interpolation, bool/number coercion and
    validation of required fields when not in dry_run.
    """
    if dotenv:
        env_path = find_dotenv(usecwd=True) or ""
        if env_path:
            load_dotenv(env_path, override=False)

    file_cfg = _load_first_existing(files)
    env_cfg = _env_to_dict(env_prefix)

    merged = _deep_merge(_DEFAULTS, file_cfg)
    merged = _deep_merge(merged, env_cfg)
    merged = _deep_merge(merged, cli_overrides or {})

    merged = _interpolate_env(merged)
    merged = _coerce_types(merged)

    _validate(merged)

    return AppConfig(
        app=AppSection(**merged.get("app", {})),
        store=StoreSection(**merged.get("store", {})),
        logging=LoggingSection(**merged.get("logging", {})),
        entity=EntitySection(**merged.get("entity", {})),
    )

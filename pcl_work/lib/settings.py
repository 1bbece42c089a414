"""
settings.py — Endpoints, paths and polling bounds.

Sources, lowest precedence first:
  1. built-in defaults
  2. optional YAML manifest (--manifest)
  3. environment variables (PCL_*)
  4. explicit command-line flags (applied by the CLI via override())

Manifest layout:

    urls:
      da: https://...
      dapp: https://.../api/v1
      auth: https://...
    polling:
      auth:
        interval_sec: 2
        max_attempts: 150
    http:
      timeout_sec: 30
    paths:
      root: .
      src: assertions/src
      out: out
"""
from __future__ import annotations
import os
import pathlib
from dataclasses import dataclass, replace
from typing import Mapping, Optional

import yaml

from .common import read_yaml
from .errors import SettingsError

DEFAULT_DA_URL = "https://demo-21-assertion-da.phylax.systems"
DEFAULT_DAPP_URL = "https://dapp.phylax.systems/api/v1"
DEFAULT_AUTH_URL = "https://credible-layer-dapp.pages.dev"

# 150 polls x 2s = 5 minutes to approve the login
POLL_INTERVAL_SEC = 2.0
MAX_POLL_ATTEMPTS = 150

ENV_VARS = {
    "da_url": "PCL_DA_URL",
    "dapp_url": "PCL_DAPP_URL",
    "auth_url": "PCL_AUTH_URL",
    "config_dir": "PCL_CONFIG_DIR",
    "root": "PCL_ROOT",
    "src_dir": "PCL_SRC",
    "out_dir": "PCL_OUT",
}


@dataclass(frozen=True)
class Settings:
    da_url: str = DEFAULT_DA_URL
    dapp_url: str = DEFAULT_DAPP_URL
    auth_url: str = DEFAULT_AUTH_URL
    config_dir: Optional[str] = None
    root: str = "."
    src_dir: str = "assertions/src"
    out_dir: str = "out"
    poll_interval_sec: float = POLL_INTERVAL_SEC
    max_poll_attempts: int = MAX_POLL_ATTEMPTS
    http_timeout_sec: float = 30.0

    def override(self, **values) -> "Settings":
        """Apply non-None values (command-line flags)."""
        return replace(self, **{k: v for k, v in values.items() if v is not None})

    @property
    def root_path(self) -> pathlib.Path:
        return pathlib.Path(self.root).expanduser().resolve()


def _positive(name, value, cast):
    try:
        v = cast(value)
    except (TypeError, ValueError):
        raise SettingsError(f"{name} must be a number, got {value!r}")
    if v <= 0:
        raise SettingsError(f"{name} must be > 0, got {value!r}")
    return v


def _from_manifest(m: dict) -> dict:
    if not isinstance(m, dict):
        raise SettingsError("manifest must be a mapping")
    out = {}
    urls = m.get("urls") or {}
    for key, field_name in (("da", "da_url"), ("dapp", "dapp_url"), ("auth", "auth_url")):
        if urls.get(key):
            out[field_name] = str(urls[key])
    paths = m.get("paths") or {}
    for key, field_name in (("root", "root"), ("src", "src_dir"), ("out", "out_dir"),
                            ("config_dir", "config_dir")):
        if paths.get(key):
            out[field_name] = str(paths[key])
    auth_poll = (m.get("polling") or {}).get("auth") or {}
    if "interval_sec" in auth_poll:
        out["poll_interval_sec"] = _positive("polling.auth.interval_sec", auth_poll["interval_sec"], float)
    if "max_attempts" in auth_poll:
        out["max_poll_attempts"] = _positive("polling.auth.max_attempts", auth_poll["max_attempts"], int)
    http = m.get("http") or {}
    if "timeout_sec" in http:
        out["http_timeout_sec"] = _positive("http.timeout_sec", http["timeout_sec"], float)
    return out


def load_settings(manifest_path=None, env: Optional[Mapping[str, str]] = None) -> Settings:
    env = os.environ if env is None else env
    values = {}
    if manifest_path:
        try:
            m = read_yaml(manifest_path)
        except (OSError, yaml.YAMLError) as e:
            raise SettingsError(f"cannot read manifest {manifest_path}: {e}")
        values.update(_from_manifest(m or {}))
    for field_name, var in ENV_VARS.items():
        if env.get(var):
            values[field_name] = env[var]
    return Settings(**values)

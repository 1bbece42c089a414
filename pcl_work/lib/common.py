#!/usr/bin/env python3
"""
common.py — Shared helpers for the pcl library modules.

Leaf modules follow the same contract when run standalone:
- Read a single JSON object from STDIN.
- Write a single JSON object to STDOUT.
- Fail with a non-zero exit on any error, printing a short message to STDERR.

Also hosts the role-tagged logger and the YAML / atomic-write file helpers
used by the state repository and settings loader.
"""
from __future__ import annotations
import sys, json, time, pathlib
import yaml

# ---------- Logging ----------
_START_TIME = time.time()
_LOG_TO_STDERR = False

def reset_timer() -> None:
    """Restart the elapsed-time origin (one per CLI command)."""
    global _START_TIME
    _START_TIME = time.time()

def log_to_stderr(enabled: bool = True) -> None:
    """Keep stdout clean for machine-readable output."""
    global _LOG_TO_STDERR
    _LOG_TO_STDERR = enabled

def log(role: str, msg: str) -> None:
    """Structured logging with timing information."""
    elapsed = time.time() - _START_TIME
    print(f"[{role}] {elapsed:.2f}s - {msg}", file=sys.stderr if _LOG_TO_STDERR else sys.stdout, flush=True)

def log_err(role: str, msg: str) -> None:
    """Error logging to stderr."""
    elapsed = time.time() - _START_TIME
    print(f"[{role}] {elapsed:.2f}s - {msg}", file=sys.stderr, flush=True)

# ---------- JSON IO ----------
def read_json_stdin() -> dict:
    try:
        return json.load(sys.stdin)
    except Exception as e:
        print(f"error: invalid JSON on stdin: {e}", file=sys.stderr)
        sys.exit(2)

def write_json(obj: dict) -> None:
    json.dump(obj, sys.stdout, separators=(",",":"))
    sys.stdout.write("\n")

def run_json_cli(fn) -> None:
    """Standalone entry used by the leaf modules' __main__ blocks."""
    try:
        write_json(fn(read_json_stdin()))
    except Exception as e:
        print(f"error: {e}", file=sys.stderr)
        sys.exit(1)

# ---------- Files ----------
def read_yaml(path):
    """Read a YAML document."""
    with open(path, "r") as f:
        return yaml.safe_load(f)

def ensure_dir(p):
    """Create directory if it doesn't exist."""
    pathlib.Path(p).mkdir(parents=True, exist_ok=True)

def write_bytes_atomic(p_str, b: bytes) -> None:
    """
    Atomically write bytes to file.
    Readers see either the previous content or the new content, never a
    truncated file.
    """
    p = pathlib.Path(p_str)
    ensure_dir(p.parent)
    tmp_p = p.with_suffix(p.suffix + ".tmp")
    tmp_p.write_bytes(b)
    tmp_p.replace(p)

# ---------- Validation helpers ----------
def require_fields(obj: dict, keys: list[str]) -> list[str]:
    missing = [k for k in keys if obj.get(k) is None]
    return missing

"""
state.py — The per-user state document and its repositories.

The document holds the current login (if any) and the assertions that were
accepted by the DA service but not yet forwarded to a project:

    auth:
      access_token: ...
      refresh_token: ...
      address: 0x...
      expires_at: '2025-01-01T00:00:00+00:00'
    assertions_for_submission:
      MockAssertion(0xabc...):
        assertion_contract: MockAssertion
        assertion_id: 0x...
        signature: 0x...
        constructor_args: [0xabc...]

Repositories load and save the whole document; nothing else touches the file.
There is no file locking: two concurrent invocations race on read-modify-write.
"""
from __future__ import annotations
import os
import pathlib
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple

import yaml

from .assertion_key import AssertionKey, decode, encode
from .common import write_bytes_atomic
from .errors import (
    ConfigParseError,
    ConfigPermissionError,
    ConfigReadError,
    ConfigWriteError,
    InvalidAssertionKey,
    InvalidTimestamp,
)

CONFIG_DIR_NAME = ".pcl"
CONFIG_FILE_NAME = "config.yaml"

_RFC3339 = re.compile(
    r"^(\d{4}-\d{2}-\d{2})[Tt ](\d{2}:\d{2}:\d{2})(?:\.(\d+))?([Zz]|[+-]\d{2}:\d{2})?$"
)


def parse_rfc3339(value) -> datetime:
    """RFC3339 text (or a datetime YAML already parsed) to an aware datetime."""
    if isinstance(value, datetime):
        dt = value
    else:
        if not isinstance(value, str) or not value.strip():
            raise InvalidTimestamp(value)
        m = _RFC3339.match(value.strip())
        if not m:
            raise InvalidTimestamp(value)
        date, clock, frac, offset = m.groups()
        # fromisoformat before 3.11 takes only 6-digit fractions and an upper-case T
        text = f"{date}T{clock}"
        if frac:
            text += "." + frac[:6].ljust(6, "0")
        if offset:
            text += "+00:00" if offset in "zZ" else offset
        try:
            dt = datetime.fromisoformat(text)
        except ValueError:
            raise InvalidTimestamp(value)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


@dataclass(frozen=True)
class UserAuth:
    access_token: str
    refresh_token: str
    address: str
    expires_at: datetime

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        now = now or datetime.now(timezone.utc)
        return self.expires_at <= now

    def to_dict(self) -> dict:
        return {
            "access_token": self.access_token,
            "refresh_token": self.refresh_token,
            "address": self.address,
            "expires_at": self.expires_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, d: dict) -> "UserAuth":
        return cls(
            access_token=str(d["access_token"]),
            refresh_token=str(d["refresh_token"]),
            address=str(d["address"]),
            expires_at=parse_rfc3339(d["expires_at"]),
        )


@dataclass(frozen=True)
class AssertionForSubmission:
    assertion_contract: str
    assertion_id: str
    signature: str
    constructor_args: Tuple[str, ...] = field(default_factory=tuple)

    def __post_init__(self):
        object.__setattr__(self, "constructor_args", tuple(self.constructor_args))

    @property
    def key(self) -> AssertionKey:
        return AssertionKey(self.assertion_contract, self.constructor_args)

    def to_dict(self) -> dict:
        return {
            "assertion_contract": self.assertion_contract,
            "assertion_id": self.assertion_id,
            "signature": self.signature,
            "constructor_args": list(self.constructor_args),
        }

    @classmethod
    def from_dict(cls, d: dict) -> "AssertionForSubmission":
        args = d.get("constructor_args") or []
        if not isinstance(args, list):
            raise TypeError("constructor_args is not a list")
        return cls(
            assertion_contract=str(d["assertion_contract"]),
            assertion_id=str(d["assertion_id"]),
            signature=str(d["signature"]),
            constructor_args=tuple(str(a) for a in args),
        )


@dataclass
class CliConfig:
    auth: Optional[UserAuth] = None
    assertions_for_submission: Dict[str, AssertionForSubmission] = field(default_factory=dict)

    def add_assertion_for_submission(self, record: AssertionForSubmission) -> str:
        """Insert (or replace) a record under the key derived from the record itself."""
        key = encode(record.assertion_contract, list(record.constructor_args))
        self.assertions_for_submission[key] = record
        return key

    def get_assertion(self, key: str) -> Optional[AssertionForSubmission]:
        name, args = decode(key)
        return self.assertions_for_submission.get(encode(name, args))

    def remove_assertion(self, key: str) -> Optional[AssertionForSubmission]:
        name, args = decode(key)
        return self.assertions_for_submission.pop(encode(name, args), None)

    def keys(self) -> List[str]:
        return list(self.assertions_for_submission)

    def to_dict(self) -> dict:
        return {
            "auth": self.auth.to_dict() if self.auth else None,
            "assertions_for_submission": {
                k: v.to_dict() for k, v in self.assertions_for_submission.items()
            },
        }

    @classmethod
    def from_dict(cls, d: dict) -> "CliConfig":
        auth = d.get("auth")
        if auth is not None and not isinstance(auth, dict):
            raise TypeError("auth is not a mapping")
        records = d.get("assertions_for_submission") or {}
        if not isinstance(records, dict):
            raise TypeError("assertions_for_submission is not a mapping")
        doc = cls(auth=UserAuth.from_dict(auth) if auth else None)
        for k, v in records.items():
            if not isinstance(v, dict):
                raise TypeError(f"record {k!r} is not a mapping")
            record = AssertionForSubmission.from_dict(v)
            stored_key = doc.add_assertion_for_submission(record)
            if stored_key != encode(*decode(str(k))):
                raise ValueError(f"key {k!r} does not match its record ({stored_key})")
        return doc


# ============================================================================
# Repositories
# ============================================================================

class StateRepository:
    def load(self) -> CliConfig:
        raise NotImplementedError

    def save(self, doc: CliConfig) -> None:
        raise NotImplementedError


class MemoryStateRepository(StateRepository):
    """Keeps the serialized form so tests exercise the same to/from dict path."""

    def __init__(self, doc: Optional[CliConfig] = None):
        self._data = doc.to_dict() if doc else None
        self.saves = 0

    def load(self) -> CliConfig:
        return CliConfig.from_dict(self._data) if self._data else CliConfig()

    def save(self, doc: CliConfig) -> None:
        self._data = doc.to_dict()
        self.saves += 1


def default_config_dir() -> pathlib.Path:
    return pathlib.Path.home() / CONFIG_DIR_NAME


class FileStateRepository(StateRepository):
    def __init__(self, path=None):
        self.path = pathlib.Path(path) if path else default_config_dir() / CONFIG_FILE_NAME

    @classmethod
    def in_dir(cls, config_dir=None) -> "FileStateRepository":
        return cls(pathlib.Path(config_dir or default_config_dir()) / CONFIG_FILE_NAME)

    def load(self) -> CliConfig:
        if not self.path.exists():
            return CliConfig()
        try:
            text = self.path.read_text()
        except OSError as e:
            raise ConfigReadError(self.path, e)
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as e:
            raise ConfigParseError(self.path, e)
        if data is None:
            return CliConfig()
        if not isinstance(data, dict):
            raise ConfigParseError(self.path, "top level is not a mapping")
        try:
            return CliConfig.from_dict(data)
        except (KeyError, TypeError, ValueError, InvalidTimestamp, InvalidAssertionKey) as e:
            raise ConfigParseError(self.path, e)

    def check_writable(self) -> None:
        """Fail with a precise message before attempting the write."""
        parent = self.path.parent
        try:
            parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ConfigPermissionError(self.path, f"cannot create directory {parent}: {e}")
        if not os.access(parent, os.W_OK | os.X_OK):
            raise ConfigPermissionError(self.path, f"directory {parent} is not writable")
        if self.path.exists() and not os.access(self.path, os.W_OK):
            raise ConfigPermissionError(self.path, "file is not writable")

    def save(self, doc: CliConfig) -> None:
        self.check_writable()
        text = yaml.safe_dump(doc.to_dict(), sort_keys=True, default_flow_style=False)
        try:
            write_bytes_atomic(self.path, text.encode("utf-8"))
        except OSError as e:
            raise ConfigWriteError(self.path, e)

    def delete(self) -> bool:
        if not self.path.exists():
            return False
        try:
            self.path.unlink()
        except OSError as e:
            raise ConfigWriteError(self.path, e)
        return True

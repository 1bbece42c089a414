"""
auth_session.py — Device-code login.

    UNAUTHENTICATED --request_code()--> CODE_ISSUED --poll()--> POLLING
    POLLING --verified--> VERIFIED
    POLLING --max_attempts without verification--> EXPIRED

Polling is a bounded wait, not a retry mechanism: a transport error while
polling ends the login immediately. The sleep primitive is injectable so
the loop can be driven by a fake clock.
"""
from __future__ import annotations
import enum
import re
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional

import requests

from .common import log
from .errors import (
    AuthRequestFailed,
    AuthTimeout,
    IncompleteAuthData,
    InvalidAddress,
)
from .settings import MAX_POLL_ATTEMPTS, POLL_INTERVAL_SEC
from .state import CliConfig, UserAuth, parse_rfc3339

CODE_PATH = "/api/v1/cli/auth/code"
STATUS_PATH = "/api/v1/cli/auth/status"

_ADDRESS = re.compile(r"^0x[0-9a-fA-F]{40}$")


class AuthState(enum.Enum):
    UNAUTHENTICATED = "unauthenticated"
    CODE_ISSUED = "code_issued"
    POLLING = "polling"
    VERIFIED = "verified"
    EXPIRED = "expired"


@dataclass(frozen=True)
class DeviceCode:
    code: str
    session_id: str
    device_secret: str
    expires_at: str


def parse_address(value) -> str:
    if not isinstance(value, str) or not _ADDRESS.match(value.strip()):
        raise InvalidAddress(value)
    return value.strip()


def print_code(code: DeviceCode, url: str) -> None:
    print(f"\nTo authenticate, please visit:\n\n  {url}\n  Code: {code.code}\n\nWaiting for authentication...",
          flush=True)


class AuthSession:
    def __init__(self, base_url: str, interval: float = POLL_INTERVAL_SEC,
                 max_attempts: int = MAX_POLL_ATTEMPTS,
                 sleep: Callable[[float], None] = time.sleep,
                 display: Callable[[DeviceCode, str], None] = print_code,
                 timeout: float = 30.0):
        self.base_url = base_url.rstrip("/")
        self.interval = interval
        self.max_attempts = max_attempts
        self.sleep = sleep
        self.display = display
        self.timeout = timeout
        self.state = AuthState.UNAUTHENTICATED
        self.attempts = 0

    def _get_json(self, path: str, params: Optional[dict] = None) -> dict:
        try:
            response = requests.get(f"{self.base_url}{path}", params=params, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            raise AuthRequestFailed(str(e))
        if not 200 <= response.status_code < 300:
            raise AuthRequestFailed(f"HTTP {response.status_code} from {path}")
        try:
            body = response.json()
        except ValueError:
            raise AuthRequestFailed(f"invalid JSON from {path}")
        if not isinstance(body, dict):
            raise AuthRequestFailed(f"unexpected response from {path}")
        return body

    def verification_url(self, code: DeviceCode) -> str:
        return f"{self.base_url}/device?session_id={code.session_id}"

    def request_code(self) -> DeviceCode:
        body = self._get_json(CODE_PATH)
        fields = {"code": "code", "sessionId": "session_id",
                  "deviceSecret": "device_secret", "expiresAt": "expires_at"}
        for wire in fields:
            if body.get(wire) is None:
                raise IncompleteAuthData(wire)
        code = DeviceCode(**{attr: str(body[wire]) for wire, attr in fields.items()})
        self.state = AuthState.CODE_ISSUED
        self.display(code, self.verification_url(code))
        return code

    def _materialize(self, status: dict, code: DeviceCode) -> UserAuth:
        for wire in ("token", "refresh_token", "address"):
            if status.get(wire) is None:
                raise IncompleteAuthData(wire)
        return UserAuth(
            access_token=str(status["token"]),
            refresh_token=str(status["refresh_token"]),
            address=parse_address(status["address"]),
            expires_at=parse_rfc3339(code.expires_at),
        )

    def poll(self, code: DeviceCode) -> UserAuth:
        self.state = AuthState.POLLING
        self.attempts = 0
        params = {"session_id": code.session_id, "device_secret": code.device_secret}
        while self.attempts < self.max_attempts:
            status = self._get_json(STATUS_PATH, params)
            self.attempts += 1
            if status.get("verified") is True:
                auth = self._materialize(status, code)
                self.state = AuthState.VERIFIED
                return auth
            if self.attempts < self.max_attempts:
                self.sleep(self.interval)
        self.state = AuthState.EXPIRED
        raise AuthTimeout(self.max_attempts)

    def login(self, doc: CliConfig) -> UserAuth:
        """Full flow; doc.auth is replaced only when verification succeeds."""
        code = self.request_code()
        auth = self.poll(code)
        doc.auth = auth
        log("AUTH", f"Authentication successful, connected wallet: {auth.address}")
        return auth


def logout(doc: CliConfig) -> bool:
    """Clear any login; returns whether there was one."""
    had_auth = doc.auth is not None
    doc.auth = None
    return had_auth


@dataclass(frozen=True)
class AuthStatus:
    state: str                      # logged_out | valid | expired
    address: Optional[str] = None
    expires_at: Optional[datetime] = None


def auth_status(doc: CliConfig, now: Optional[datetime] = None) -> AuthStatus:
    """Read-only; an expired login is reported, never renewed."""
    if doc.auth is None:
        return AuthStatus("logged_out")
    now = now or datetime.now(timezone.utc)
    state = "expired" if doc.auth.is_expired(now) else "valid"
    return AuthStatus(state, doc.auth.address, doc.auth.expires_at)

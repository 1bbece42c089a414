"""
da_client.py — Client for the assertion DA (availability) service.

One JSON-RPC 2.0 POST per submission; no retries. The caller decides
between anonymous and bearer-authenticated mode (see DaClient.for_state).
"""
from __future__ import annotations
from dataclasses import dataclass
from typing import List, Optional
from urllib.parse import urlparse

import requests

from .errors import (
    HttpError,
    InvalidResponse,
    InvalidUrl,
    RemoteError,
    RequestFailed,
    Unauthorized,
)

SUBMIT_METHOD = "da_submit_solidity_assertion"


@dataclass(frozen=True)
class DaSubmissionResponse:
    id: str
    signature: str


def _validate_url(url: str) -> str:
    parsed = urlparse(url or "")
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise InvalidUrl(url, "expected an http(s) URL")
    return url


def _parse_success(body) -> DaSubmissionResponse:
    if not isinstance(body, dict):
        raise InvalidResponse("expected a JSON object")
    result = body.get("result", body)
    if not isinstance(result, dict):
        raise InvalidResponse("`result` is not an object")
    sub_id = result.get("id")
    signature = result.get("signature", result.get("prover_signature"))
    if not isinstance(sub_id, str) or not isinstance(signature, str):
        raise InvalidResponse("missing `id` or `signature`")
    return DaSubmissionResponse(id=sub_id, signature=signature)


class DaClient:
    def __init__(self, url: str, access_token: Optional[str] = None, timeout: float = 30.0):
        self.url = _validate_url(url)
        self.access_token = access_token
        self.timeout = timeout
        self._rpc_id = 0

    @classmethod
    def for_state(cls, url: str, doc, timeout: float = 30.0) -> "DaClient":
        """Authenticated whenever the state document carries a login."""
        token = doc.auth.access_token if doc.auth else None
        return cls(url, access_token=token, timeout=timeout)

    @property
    def authenticated(self) -> bool:
        return self.access_token is not None

    def _headers(self) -> dict:
        headers = {"Content-Type": "application/json"}
        if self.access_token:
            headers["Authorization"] = f"Bearer {self.access_token}"
        return headers

    def build_request(self, assertion_contract: str, flattened_source: str, compiler_version: str,
                      constructor_signature: str, constructor_args: List[str]) -> dict:
        self._rpc_id += 1
        return {
            "jsonrpc": "2.0",
            "method": SUBMIT_METHOD,
            "params": [{
                "assertion_contract": assertion_contract,
                "flattened_source": flattened_source,
                "compiler_version": compiler_version,
                "constructor_signature": constructor_signature,
                "constructor_args": list(constructor_args),
            }],
            "id": self._rpc_id,
        }

    def submit_assertion(self, assertion_contract: str, flattened_source: str, compiler_version: str,
                         constructor_signature: str, constructor_args: List[str]) -> DaSubmissionResponse:
        payload = self.build_request(assertion_contract, flattened_source, compiler_version,
                                     constructor_signature, constructor_args)
        try:
            response = requests.post(self.url, json=payload, headers=self._headers(),
                                     timeout=self.timeout)
        except (requests.exceptions.MissingSchema, requests.exceptions.InvalidSchema,
                requests.exceptions.InvalidURL) as e:
            raise InvalidUrl(self.url, str(e))
        except requests.exceptions.RequestException as e:
            raise RequestFailed(str(e))

        if response.status_code == 401:
            raise Unauthorized()

        try:
            body = response.json()
        except ValueError:
            body = None

        # RPC-level error objects can arrive with any status code
        if isinstance(body, dict) and body.get("error"):
            err = body["error"]
            if isinstance(err, dict):
                raise RemoteError(err.get("code", 0), str(err.get("message", "")))
            raise RemoteError(0, str(err))

        if not 200 <= response.status_code < 300:
            raise HttpError(response.status_code)
        if body is None:
            raise InvalidResponse("response body is not valid JSON")
        return _parse_success(body)

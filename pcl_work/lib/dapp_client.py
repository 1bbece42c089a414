"""
dapp_client.py — Forward accepted DA submissions to a dApp project.

Records leave the state document only after the dApp has accepted them;
the caller saves the document afterwards.
"""
from __future__ import annotations
from dataclasses import dataclass, field
from typing import List, Optional

import requests

from .common import log
from .errors import (
    ApiConnectionError,
    CouldNotFindStoredAssertion,
    DappError,
    NoAuthToken,
    NoProjectsFound,
    NoStoredAssertions,
    ProjectNotFound,
    SubmissionFailed,
)
from .state import AssertionForSubmission, CliConfig


@dataclass(frozen=True)
class Project:
    project_id: str
    project_name: str
    project_description: Optional[str] = None
    project_networks: tuple = ()

    @classmethod
    def from_dict(cls, d: dict) -> "Project":
        return cls(
            project_id=str(d["project_id"]),
            project_name=str(d["project_name"]),
            project_description=d.get("project_description"),
            project_networks=tuple(d.get("project_networks") or ()),
        )


class DappClient:
    def __init__(self, base_url: str, access_token: str, timeout: float = 30.0):
        self.base_url = base_url.rstrip("/")
        self.access_token = access_token
        self.timeout = timeout

    @classmethod
    def for_state(cls, base_url: str, doc: CliConfig, timeout: float = 30.0) -> "DappClient":
        if doc.auth is None:
            raise NoAuthToken()
        return cls(base_url, doc.auth.access_token, timeout)

    def _headers(self) -> dict:
        return {"Authorization": f"Bearer {self.access_token}",
                "Content-Type": "application/json"}

    def _send(self, method, url, **kwargs):
        try:
            response = method(url, headers=self._headers(), timeout=self.timeout, **kwargs)
        except requests.exceptions.RequestException as e:
            raise ApiConnectionError(str(e))
        if response.status_code == 401:
            raise NoAuthToken()
        return response

    def get_projects(self, address: str) -> List[Project]:
        response = self._send(requests.get, f"{self.base_url}/projects", params={"user": address})
        if not 200 <= response.status_code < 300:
            raise DappError(f"Listing projects failed: HTTP {response.status_code}")
        try:
            body = response.json()
            return [Project.from_dict(p) for p in body]
        except (ValueError, KeyError, TypeError) as e:
            raise DappError(f"Unexpected projects response: {e}")

    def submit_assertions(self, project: Project, records: List[AssertionForSubmission]) -> None:
        body = {"assertions": [
            {"contract_name": r.assertion_contract,
             "assertion_id": r.assertion_id,
             "signature": r.signature}
            for r in records
        ]}
        url = f"{self.base_url}/projects/{project.project_id}/submitted-assertions"
        response = self._send(requests.post, url, json=body)
        if not 200 <= response.status_code < 300:
            raise SubmissionFailed(response.text, response.status_code)

    def create_project(self, project_name: str, assertion_adopters: List[str], chain_id: int,
                       project_description: Optional[str] = None,
                       profile_image_url: Optional[str] = None) -> dict:
        body = {
            "project_name": project_name,
            "project_description": project_description,
            "profile_image_url": profile_image_url,
            "assertion_adopters": list(assertion_adopters),
            "chain_id": chain_id,
        }
        response = self._send(requests.post, f"{self.base_url}/projects/create", json=body)
        if not 200 <= response.status_code < 300:
            raise SubmissionFailed(response.text or "Unknown error", response.status_code)
        try:
            return response.json()
        except ValueError:
            return {}


@dataclass
class ForwardResult:
    project: Project
    forwarded: List[AssertionForSubmission] = field(default_factory=list)


def select_project(projects: List[Project], project_name: str) -> Project:
    if not projects:
        raise NoProjectsFound()
    for p in projects:
        if p.project_name == project_name:
            return p
    raise ProjectNotFound(project_name)


def select_assertions(doc: CliConfig, keys: Optional[List[str]] = None) -> List[AssertionForSubmission]:
    """Requested keys (or everything stored), all of which must exist."""
    if not doc.assertions_for_submission:
        raise NoStoredAssertions()
    if keys is None:
        return list(doc.assertions_for_submission.values())
    selected = []
    for key in keys:
        record = doc.get_assertion(key)
        if record is None:
            raise CouldNotFindStoredAssertion(key)
        if record not in selected:
            selected.append(record)
    return selected


def forward_assertions(doc: CliConfig, client: DappClient, project_name: str,
                       keys: Optional[List[str]] = None) -> ForwardResult:
    if doc.auth is None:
        raise NoAuthToken()
    project = select_project(client.get_projects(doc.auth.address), project_name)
    records = select_assertions(doc, keys)

    client.submit_assertions(project, records)
    for r in records:
        doc.remove_assertion(str(r.key))
    n = len(records)
    log("SUBMIT", f"Successfully submitted {n} assertion{'s' if n > 1 else ''} to project {project.project_name}")
    return ForwardResult(project=project, forwarded=records)

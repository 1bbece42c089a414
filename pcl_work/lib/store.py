"""
store.py — build -> resolve -> flatten -> bind -> submit -> persist.

Stages run strictly in sequence; the first failure propagates and nothing
is written. The state document is saved once, after the DA service has
accepted the submission.
"""
from __future__ import annotations
import pathlib
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence

from .artifact_resolve import AssertionRef, BuildArtifact, resolve_artifact
from .assertion_key import encode
from .common import log
from .constructor_bind import bind_constructor
from .da_client import DaClient
from .flatten import flatten_source
from .state import AssertionForSubmission, StateRepository


@dataclass
class StoreRequest:
    assertion: AssertionRef
    da_url: str
    root: pathlib.Path
    out_dir: str = "out"
    constructor_args: List[str] = field(default_factory=list)

    @property
    def out_path(self) -> pathlib.Path:
        out = pathlib.Path(self.out_dir)
        return out if out.is_absolute() else pathlib.Path(self.root) / out


@dataclass
class StoreResult:
    key: str
    record: AssertionForSubmission
    artifact: BuildArtifact
    constructor_signature: str
    authenticated: bool


def store_assertion(request: StoreRequest, repository: StateRepository,
                    builder=None,
                    strategies: Optional[Sequence] = None,
                    client_factory: Callable[..., DaClient] = DaClient.for_state,
                    timeout: float = 30.0) -> StoreResult:
    role = "STORE"
    doc = repository.load()
    name = request.assertion.contract_name
    args = list(request.constructor_args)
    # the record key must be encodable before anything is sent
    key = encode(name, args)

    if builder is not None:
        builder.build()

    artifact = resolve_artifact(request.assertion, request.out_path)
    log(role, f"Resolved {name}: solc {artifact.compiler_version}, source {artifact.source_path}")

    root = pathlib.Path(request.root)
    flattened = flatten_source(root / artifact.source_path, root, strategies)
    bound = bind_constructor(artifact.abi, args)

    client = client_factory(request.da_url, doc, timeout)
    log(role, f"Submitting {key} to {request.da_url}"
              f" ({'authenticated' if client.authenticated else 'anonymous'})")
    response = client.submit_assertion(name, flattened, artifact.compiler_version,
                                       bound.signature, list(bound.args))

    record = AssertionForSubmission(
        assertion_contract=name,
        assertion_id=response.id,
        signature=response.signature,
        constructor_args=bound.args,
    )
    doc.add_assertion_for_submission(record)
    repository.save(doc)
    log(role, f"Stored {key} (id {response.id})")

    return StoreResult(key=key, record=record, artifact=artifact,
                       constructor_signature=bound.signature,
                       authenticated=client.authenticated)

#!/usr/bin/env python3
"""
artifact_resolve.py — Locate a compiled assertion in forge build output.

forge writes one artifact per contract at <out>/<SourceFile>/<Contract>.json.
Given an assertion reference (`Name` or `File.sol:Name`) the resolver tries
each candidate source file name in order and reads, from the first artifact
that exists:

- compiler version: metadata.compiler.version up to the first '+'
  (the '+commit...' suffix is build metadata and is discarded)
- compilation target: the key of metadata.settings.compilationTarget whose
  value is the contract name
- abi: the contract ABI list
"""
from __future__ import annotations
import json
import pathlib
from dataclasses import dataclass, field
from typing import List, Optional

from .errors import ContractNotFound, DirectoryNotFound, MalformedArtifact

SUPPORTED_EXTENSIONS = (".a.sol", ".sol")


@dataclass(frozen=True)
class AssertionRef:
    contract_name: str
    file_name: Optional[str] = None

    @classmethod
    def parse(cls, text: str) -> "AssertionRef":
        if ":" in text:
            file_name, _, name = text.rpartition(":")
            return cls(contract_name=name, file_name=file_name or None)
        return cls(contract_name=text)

    def candidate_files(self) -> List[str]:
        if self.file_name:
            return [self.file_name]
        return [f"{self.contract_name}{ext}" for ext in SUPPORTED_EXTENSIONS]

    def __str__(self):
        return f"{self.file_name}:{self.contract_name}" if self.file_name else self.contract_name


@dataclass
class BuildArtifact:
    contract_name: str
    compiler_version: str
    source_path: str
    abi: list = field(default_factory=list)
    artifact_path: Optional[pathlib.Path] = None


def _load_metadata(raw: dict, path) -> dict:
    meta = raw.get("metadata")
    if meta is None:
        meta = raw.get("rawMetadata")
    if isinstance(meta, str):
        try:
            meta = json.loads(meta)
        except ValueError as e:
            raise MalformedArtifact(f"metadata is not valid JSON: {e}", path)
    if not isinstance(meta, dict):
        raise MalformedArtifact("Missing contract metadata", path)
    return meta


def parse_artifact(raw: dict, contract_name: str, path=None) -> BuildArtifact:
    """Extract compiler version, compilation target and ABI from one artifact."""
    if not isinstance(raw, dict):
        raise MalformedArtifact("artifact is not a JSON object", path)
    meta = _load_metadata(raw, path)

    compiler = meta.get("compiler") or {}
    if not isinstance(compiler, dict):
        raise MalformedArtifact("metadata.compiler is not an object", path)
    full_version = compiler.get("version")
    if not isinstance(full_version, str):
        raise MalformedArtifact("Missing compiler version", path)
    version, plus, _build = full_version.partition("+")
    if not plus or not version:
        raise MalformedArtifact("Invalid solc version format", path)

    settings = meta.get("settings") or {}
    if not isinstance(settings, dict):
        raise MalformedArtifact("metadata.settings is not an object", path)
    targets = settings.get("compilationTarget")
    if not isinstance(targets, dict):
        raise MalformedArtifact("Missing compilation target", path)
    source_path = next((p for p, name in targets.items() if name == contract_name), None)
    if source_path is None:
        raise ContractNotFound(contract_name)

    abi = raw.get("abi")
    if abi is None:
        output = meta.get("output") or {}
        if not isinstance(output, dict):
            raise MalformedArtifact("metadata.output is not an object", path)
        abi = output.get("abi")
    if not isinstance(abi, list):
        raise MalformedArtifact("Failed to parse ABI from artifact", path)

    return BuildArtifact(
        contract_name=contract_name,
        compiler_version=version,
        source_path=source_path,
        abi=abi,
        artifact_path=pathlib.Path(path) if path else None,
    )


def resolve_artifact(ref: AssertionRef, out_dir) -> BuildArtifact:
    out = pathlib.Path(out_dir)
    if not out.is_dir():
        raise DirectoryNotFound(out)

    for file_name in ref.candidate_files():
        candidate = out / file_name / f"{ref.contract_name}.json"
        if not candidate.is_file():
            continue
        try:
            raw = json.loads(candidate.read_text())
        except (OSError, ValueError) as e:
            raise MalformedArtifact(f"unreadable artifact: {e}", candidate)
        return parse_artifact(raw, ref.contract_name, candidate)

    raise ContractNotFound(ref.contract_name)


# ---------- JSON CLI ----------
def resolve(d: dict) -> dict:
    art = resolve_artifact(AssertionRef.parse(d["assertion"]), d["out_dir"])
    return {
        "compiler_version": art.compiler_version,
        "source_path": art.source_path,
        "abi": art.abi,
    }


if __name__ == "__main__":
    from .common import run_json_cli
    run_json_cli(resolve)

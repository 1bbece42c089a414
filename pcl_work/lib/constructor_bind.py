#!/usr/bin/env python3
"""
constructor_bind.py — Canonical constructor signature from a contract ABI.

Only the argument count is checked locally; the DA service validates each
literal against its declared type.
"""
from __future__ import annotations
from dataclasses import dataclass
from typing import List

from .errors import InvalidConstructorArgs


@dataclass(frozen=True)
class BoundConstructor:
    signature: str
    args: tuple


def canonical_type(param: dict) -> str:
    """Selector type of one ABI parameter; tuples expand to their components."""
    typ = param.get("type", "")
    if typ.startswith("tuple"):
        inner = ",".join(canonical_type(c) for c in param.get("components", []))
        return f"({inner}){typ[len('tuple'):]}"
    return typ


def constructor_inputs(abi: list) -> List[dict]:
    for entry in abi:
        if isinstance(entry, dict) and entry.get("type") == "constructor":
            return list(entry.get("inputs") or [])
    return []


def bind_constructor(abi: list, args: List[str]) -> BoundConstructor:
    inputs = constructor_inputs(abi)
    if len(inputs) != len(args):
        raise InvalidConstructorArgs(len(inputs), len(args))
    joined = ",".join(canonical_type(p) for p in inputs)
    return BoundConstructor(signature=f"constructor({joined})", args=tuple(args))


# ---------- JSON CLI ----------
def bind(d: dict) -> dict:
    bound = bind_constructor(d["abi"], list(d.get("constructor_args", [])))
    return {"constructor_signature": bound.signature, "constructor_args": list(bound.args)}


if __name__ == "__main__":
    from .common import run_json_cli
    run_json_cli(bind)

"""
flatten.py — Produce one self-contained source text for an assertion.

The flattened text is what gets submitted and signed, so it must be
deterministic for identical inputs.

Strategies are tried in order. Each returns a tagged outcome:
  SUCCESS    -> done
  RETRYABLE  -> try the next strategy (e.g. the compiler rejected the project)
  FATAL      -> stop, nothing else is attempted
"""
from __future__ import annotations
import enum
import os
import pathlib
import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from .common import log
from .errors import FlattenError, ForgeNotInstalled
from .toolchain import ForgeToolchain, is_compilation_failure


class Outcome(enum.Enum):
    SUCCESS = "success"
    RETRYABLE = "retryable"
    FATAL = "fatal"


@dataclass
class FlattenOutcome:
    status: Outcome
    source: str = ""
    reason: str = ""

    @classmethod
    def ok(cls, source: str) -> "FlattenOutcome":
        return cls(Outcome.SUCCESS, source=source)

    @classmethod
    def retry(cls, reason: str) -> "FlattenOutcome":
        return cls(Outcome.RETRYABLE, reason=reason)

    @classmethod
    def fatal(cls, reason: str) -> "FlattenOutcome":
        return cls(Outcome.FATAL, reason=reason)


@dataclass
class Attempt:
    strategy: str
    status: Outcome
    reason: str = ""


class ForgeFlatten:
    """Dependency-graph aware flattening through `forge flatten`."""

    name = "forge-flatten"

    def __init__(self, toolchain: Optional[ForgeToolchain] = None):
        self.toolchain = toolchain

    def __call__(self, path: pathlib.Path, root: pathlib.Path) -> FlattenOutcome:
        toolchain = self.toolchain or ForgeToolchain(root)
        try:
            res = toolchain.flatten(path, root)
        except ForgeNotInstalled as e:
            return FlattenOutcome.fatal(str(e))
        except OSError as e:
            return FlattenOutcome.fatal(f"could not run forge: {e}")

        if res.returncode == 0:
            if res.stdout.strip():
                return FlattenOutcome.ok(res.stdout)
            return FlattenOutcome.retry("forge flatten produced no output")
        if is_compilation_failure(res.output):
            return FlattenOutcome.retry(f"compiler could not process the project: {res.output}")
        return FlattenOutcome.fatal(f"forge flatten failed: {res.output}")


# ============================================================================
# Path-based concatenation (no compiler involved)
# ============================================================================

_IMPORT = re.compile(r'^[ \t]*import\s+(?:[^;"\']*?\bfrom\s+)?["\']([^"\']+)["\'][^;]*;[ \t]*\n?', re.M)
_SPDX = re.compile(r"^[ \t]*//\s*SPDX-License-Identifier:.*\n?", re.M)
_PRAGMA = re.compile(r"^[ \t]*pragma\s+[^;]+;[ \t]*\n?", re.M)


def load_remappings(root: pathlib.Path) -> List[Tuple[str, pathlib.Path]]:
    """`prefix=target` lines of remappings.txt, longest prefix first."""
    f = root / "remappings.txt"
    if not f.is_file():
        return []
    out = []
    for line in f.read_text(encoding="utf-8").splitlines():
        line = line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        prefix, _, target = line.partition("=")
        # drop an optional `context:` qualifier
        prefix = prefix.split(":", 1)[-1]
        out.append((prefix, root / target))
    out.sort(key=lambda r: len(r[0]), reverse=True)
    return out


class PathConcat:
    """Inline imports by walking the file system, dependencies first."""

    name = "path-concat"
    search_dirs = ("", "lib", "node_modules")

    def resolve_import(self, imp: str, importer: pathlib.Path, root: pathlib.Path,
                       remappings) -> Optional[pathlib.Path]:
        if imp.startswith("./") or imp.startswith("../"):
            cand = importer.parent / imp
            return cand if cand.is_file() else None
        for prefix, target in remappings:
            if imp.startswith(prefix):
                cand = target / imp[len(prefix):]
                if cand.is_file():
                    return cand
        for d in self.search_dirs:
            cand = root / d / imp
            if cand.is_file():
                return cand
        return None

    def _label(self, path: pathlib.Path, root: pathlib.Path) -> str:
        try:
            return path.relative_to(root).as_posix()
        except ValueError:
            return path.as_posix()

    def __call__(self, path: pathlib.Path, root: pathlib.Path) -> FlattenOutcome:
        root = pathlib.Path(os.path.realpath(root))
        ordered: List[pathlib.Path] = []
        texts: Dict[pathlib.Path, str] = {}
        visiting = set()

        def visit(p: pathlib.Path):
            p = pathlib.Path(os.path.realpath(p))
            if p in texts or p in visiting:
                return
            visiting.add(p)
            try:
                text = p.read_text(encoding="utf-8")
            except UnicodeDecodeError as e:
                raise ValueError(f"{self._label(p, root)} is not valid UTF-8: {e.reason}")
            for imp in _IMPORT.findall(text):
                dep = self.resolve_import(imp, p, root, remappings)
                if dep is None:
                    raise FileNotFoundError(f"cannot resolve import {imp!r} in {self._label(p, root)}")
                visit(dep)
            visiting.discard(p)
            texts[p] = text
            ordered.append(p)

        try:
            remappings = load_remappings(root)
            visit(pathlib.Path(path))
        except (OSError, ValueError) as e:
            return FlattenOutcome.fatal(str(e))

        seen_license = False
        seen_pragmas = set()
        chunks = []

        def keep_first_pragma(m):
            key = " ".join(m.group(0).split())
            if key in seen_pragmas:
                return ""
            seen_pragmas.add(key)
            return m.group(0)

        for p in ordered:
            body = _IMPORT.sub("", texts[p])
            if seen_license:
                body = _SPDX.sub("", body)
            elif _SPDX.search(body):
                seen_license = True
            body = _PRAGMA.sub(keep_first_pragma, body)
            chunks.append(f"// File: {self._label(p, root)}\n{body.strip()}\n")

        source = "\n".join(chunks)
        if not source.strip():
            return FlattenOutcome.retry("no source produced")
        return FlattenOutcome.ok(source)


DEFAULT_STRATEGIES = (ForgeFlatten(), PathConcat())


def flatten_source(path, root, strategies: Optional[Sequence] = None) -> str:
    """Run the strategies in order until one succeeds."""
    path, root = pathlib.Path(path), pathlib.Path(root)
    if not path.is_file():
        raise FlattenError(f"Source file not found: {path}")

    attempts: List[Attempt] = []
    for strategy in (strategies if strategies is not None else DEFAULT_STRATEGIES):
        outcome = strategy(path, root)
        attempts.append(Attempt(strategy.name, outcome.status, outcome.reason))
        if outcome.status is Outcome.SUCCESS and outcome.source.strip():
            return outcome.source
        if outcome.status is Outcome.FATAL:
            raise FlattenError(f"Flattener error ({strategy.name}): {outcome.reason}", attempts)
        first_line = outcome.reason.splitlines()[0] if outcome.reason else "empty output"
        log("BUILD", f"{strategy.name} could not flatten, falling back ({first_line})")

    tried = ", ".join(a.strategy for a in attempts) or "none"
    raise FlattenError(f"All flatten strategies failed (tried: {tried})", attempts)

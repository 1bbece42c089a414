#!/usr/bin/env python3
r"""
assertion_key.py — Codec for the identity of a pending submission.

A key is an assertion name plus its ordered constructor argument literals:

    name                   -> ("name", [])
    name()                 -> ("name", [])
    name(a0,a1)            -> ("name", ["a0", "a1"])
    name([1,2],(x,y))      -> ("name", ["[1,2]", "(x,y)"])
    name("hello, world")   -> ("name", ['"hello, world"'])
    name(a\,b)             -> ("name", ["a,b"])
    name(\e)               -> ("name", [""])

Arguments are split on top-level commas only. Commas and brackets inside
array/tuple literals or quoted strings stay part of their argument.
Outside quotes a backslash takes the next character literally; `\e` is
the empty argument, needed because `name()` means no arguments at all.
encode() writes an argument verbatim when it reads back unchanged and
escapes it otherwise, so every argument list round-trips.
"""
from __future__ import annotations
from dataclasses import dataclass, field
from typing import List, Tuple

from .errors import InvalidAssertionKey

_OPEN = {"(": ")", "[": "]"}
_CLOSE = {")": "(", "]": "["}
_QUOTES = "\"'"
_ESCAPED = "\\,()[]\"'"
_EMPTY = "\\e"


@dataclass(frozen=True)
class AssertionKey:
    assertion_name: str
    constructor_args: Tuple[str, ...] = field(default_factory=tuple)

    def __post_init__(self):
        object.__setattr__(self, "constructor_args", tuple(self.constructor_args))

    def __str__(self) -> str:
        return encode(self.assertion_name, list(self.constructor_args))

    @classmethod
    def parse(cls, text: str) -> "AssertionKey":
        name, args = decode(text)
        return cls(name, tuple(args))


def _split_args(inner: str, text: str) -> List[str]:
    parts, buf, depth = [], [], []
    quote = None
    i, n = 0, len(inner)
    while i < n:
        ch = inner[i]
        if quote:
            buf.append(ch)
            if ch == "\\":
                if i + 1 == n:
                    raise InvalidAssertionKey(text, "unterminated string literal")
                i += 1
                buf.append(inner[i])
            elif ch == quote:
                quote = None
        elif ch == "\\":
            if i + 1 == n:
                raise InvalidAssertionKey(text, "dangling escape")
            i += 1
            if inner[i] in _ESCAPED:
                buf.append(inner[i])
            elif inner[i] != "e":
                raise InvalidAssertionKey(text, f"unknown escape \\{inner[i]}")
        elif ch in _QUOTES:
            quote = ch
            buf.append(ch)
        elif ch in _OPEN:
            depth.append(ch)
            buf.append(ch)
        elif ch in _CLOSE:
            if not depth or depth[-1] != _CLOSE[ch]:
                raise InvalidAssertionKey(text, "unbalanced brackets")
            depth.pop()
            buf.append(ch)
        elif ch == "," and not depth:
            parts.append("".join(buf))
            buf = []
        else:
            buf.append(ch)
        i += 1
    if quote:
        raise InvalidAssertionKey(text, "unterminated string literal")
    if depth:
        raise InvalidAssertionKey(text, "unbalanced brackets")
    parts.append("".join(buf))
    return parts


def decode(text: str) -> Tuple[str, List[str]]:
    """Parse `name` or `name(arg0,arg1,...)`."""
    text = text.strip()
    paren = text.find("(")
    if paren == -1:
        if not text or ")" in text or "," in text:
            raise InvalidAssertionKey(text, "expected `name` or `name(arg0,...)`")
        return text, []
    if not text.endswith(")"):
        raise InvalidAssertionKey(text, "missing closing parenthesis")
    name = text[:paren]
    if not name or "," in name or ")" in name:
        raise InvalidAssertionKey(text, "invalid assertion name")
    inner = text[paren + 1:-1]
    if inner == "":
        return name, []
    return name, _split_args(inner, text)


def _encode_arg(arg: str) -> str:
    try:
        if _split_args(arg, arg) == [arg]:
            return arg
    except InvalidAssertionKey:
        pass
    return "".join("\\" + ch if ch in _ESCAPED else ch for ch in arg)


def encode(name: str, args: List[str]) -> str:
    """Inverse of decode(); raises only for names that cannot be keyed."""
    if not args:
        text = name
    elif list(args) == [""]:
        text = f"{name}({_EMPTY})"
    else:
        text = f"{name}({','.join(_encode_arg(a) for a in args)})"
    try:
        back = decode(text)
    except InvalidAssertionKey as e:
        raise InvalidAssertionKey(text, e.reason) from e
    if back != (name, list(args)):
        raise InvalidAssertionKey(text, "does not survive encoding")
    return text


# ---------- JSON CLI ----------
def run(d: dict) -> dict:
    if "key" in d:
        name, args = decode(d["key"])
        return {"assertion_name": name, "constructor_args": args}
    return {"key": encode(d["assertion_name"], list(d.get("constructor_args", [])))}


if __name__ == "__main__":
    from .common import run_json_cli
    run_json_cli(run)

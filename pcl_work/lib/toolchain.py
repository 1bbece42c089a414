"""
toolchain.py — Boundary to the external Solidity toolchain (forge).

pcl never compiles anything itself; it shells out to `forge` and inspects
the result. Failures are mapped onto the build error taxonomy.
"""
from __future__ import annotations
import pathlib
import re
import shutil
import subprocess
from dataclasses import dataclass
from typing import List, Optional

from .common import log
from .errors import CompilationError, DirectoryNotFound, ForgeNotInstalled, NoSourceFilesFound

FORGE = "forge"

# forge / solc output that means "the compiler rejected the sources"
_COMPILE_FAILURE = re.compile(
    r"Compiler run failed|Compilation failed|ParserError|DeclarationError|"
    r"SyntaxError|TypeError:|Error \(\d+\)|Failed to resolve file"
)


@dataclass
class ToolResult:
    returncode: int
    stdout: str
    stderr: str

    @property
    def output(self) -> str:
        return (self.stdout + "\n" + self.stderr).strip()


def is_compilation_failure(output: str) -> bool:
    return bool(_COMPILE_FAILURE.search(output or ""))


def run_forge(args: List[str], cwd=None, forge: str = FORGE) -> ToolResult:
    if shutil.which(forge) is None:
        raise ForgeNotInstalled()
    try:
        proc = subprocess.run([forge, *args], cwd=cwd, capture_output=True, text=True)
    except FileNotFoundError:
        raise ForgeNotInstalled()
    return ToolResult(proc.returncode, proc.stdout, proc.stderr)


def check_sources(src_dir) -> None:
    """The assertion sources directory must exist and hold at least one entry."""
    src = pathlib.Path(src_dir)
    if not src.is_dir():
        raise DirectoryNotFound(src)
    if next(src.iterdir(), None) is None:
        raise NoSourceFilesFound(src)


class ForgeToolchain:
    """Runs `forge build` for the assertion sources of a project."""

    def __init__(self, root, src_dir="assertions/src", out_dir="out", forge: str = FORGE):
        self.root = pathlib.Path(root)
        self.src_dir = self.root / src_dir
        self.out_dir = self.root / out_dir
        self.forge = forge

    def build(self) -> pathlib.Path:
        if not self.root.is_dir():
            raise DirectoryNotFound(self.root)
        check_sources(self.src_dir)
        log("BUILD", f"forge build --contracts {self.src_dir}")
        res = run_forge(
            ["build", "--root", str(self.root), "--contracts", str(self.src_dir),
             "--out", str(self.out_dir), "--extra-output", "metadata"],
            cwd=self.root, forge=self.forge,
        )
        if res.returncode != 0:
            raise CompilationError(res.output)
        return self.out_dir

    def flatten(self, path, root: Optional[pathlib.Path] = None) -> ToolResult:
        root = pathlib.Path(root or self.root)
        return run_forge(["flatten", str(path), "--root", str(root)], cwd=root, forge=self.forge)

"""
Build orchestration: compile a cargo project with assembly output enabled
and collect the ``.s`` files the build produced.
"""

import logging
import os
import subprocess
import time
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Iterable, List, Optional

from asmscan.config import SETTINGS
from asmscan.errors import BuildError

logger = logging.getLogger(__name__)

_INTEL_SYNTAX_FLAGS = "-Z asm-comments -C llvm-args=-x86-asm-syntax=intel"


class BuildType(Enum):
    DEBUG = "debug"
    RELEASE = "release"

    @classmethod
    def from_str(cls, value: str) -> "BuildType":
        try:
            return cls(value.strip().lower())
        except ValueError:
            raise ValueError(
                f'"{value}" is not a valid build type. Try "debug" or "release"'
            ) from None


@dataclass
class BuildOptions:
    manifest_dir: str = "."
    build_type: BuildType = BuildType.RELEASE
    clean: bool = False
    intel_syntax: bool = True
    color: bool = False
    verbose: bool = False
    cargo: Optional[str] = None


def _run(cmd: List[str], cwd: str, env: Optional[dict] = None, verbose: bool = False):
    logger.info("Running: %s", " ".join(cmd))
    proc = subprocess.run(cmd, cwd=cwd, env=env, capture_output=True, text=True)
    if verbose:
        logger.info("stdout:\n%s", proc.stdout)
        logger.info("stderr:\n%s", proc.stderr)
    if proc.returncode != 0:
        logger.error("%s failed (%d):\n%s", " ".join(cmd), proc.returncode, proc.stderr)
        raise BuildError(cmd, proc.returncode, proc.stderr)
    return proc


def rustflags(opts: BuildOptions, existing: str = "") -> str:
    """RUSTFLAGS for an assembly-emitting build, appended to ``existing``."""
    flags = [existing.strip(), "--emit asm -g"]
    if opts.intel_syntax:
        flags.append(_INTEL_SYNTAX_FLAGS)
    return " ".join(f for f in flags if f)


def find_output_directories(stderr: str) -> List[str]:
    """Collect the ``--out-dir`` of every rustc invocation in verbose output."""
    dirs: List[str] = []
    for line in stderr.splitlines():
        tokens = line.strip().split()
        for i, tok in enumerate(tokens[:-1]):
            if tok == "--out-dir":
                # cargo quotes the whole rustc command line in backticks
                dirs.append(tokens[i + 1].strip("`"))
                break
    return dirs


def collect_assembly_files(directories: Iterable[str], since: float) -> List[Path]:
    """``.s`` files under ``directories`` modified at or after ``since``."""
    found = set()
    for directory in directories:
        for dirpath, _dirnames, filenames in os.walk(directory):
            for fn in filenames:
                if not fn.endswith(".s"):
                    continue
                p = Path(dirpath) / fn
                if p.stat().st_mtime >= since:
                    found.add(p)
    return sorted(found)


def build_project(opts: BuildOptions) -> List[Path]:
    """Build the project and return the assembly files it generated."""
    cargo = opts.cargo or SETTINGS.cargo
    cwd = opts.manifest_dir

    if opts.clean:
        _run([cargo, "clean"], cwd, verbose=opts.verbose)

    cmd = [cargo, "build"]
    env = dict(os.environ)
    if opts.color:
        cmd.append("--color=always")
    if opts.build_type is BuildType.RELEASE:
        cmd.append("--release")
    cmd.append("--verbose")
    env["RUSTFLAGS"] = rustflags(opts, env.get("RUSTFLAGS", ""))

    # mtime resolution on some filesystems is coarse; round down.
    build_start = float(int(time.time()))
    proc = _run(cmd, cwd, env=env, verbose=opts.verbose)

    out_dirs = find_output_directories(proc.stderr)
    if not out_dirs:
        logger.warning("No --out-dir found in cargo output; is --verbose honoured?")
    files = collect_assembly_files(out_dirs, build_start)
    logger.info("Build produced %d assembly file(s)", len(files))
    return files

"""Configuration settings for the assembly scanner."""
from __future__ import annotations

import os
import platform
import sys
from dataclasses import dataclass

ARM64_MACHINES = ("arm64", "aarch64")


def _default_symbol_prefix() -> str:
    # Mach-O prepends an extra underscore to every symbol.
    return "__" if sys.platform == "darwin" else "_"


def _default_comment_chars() -> str:
    # On arm64 `#` introduces an immediate operand, not a comment.
    if platform.machine().lower() in ARM64_MACHINES:
        return ";"
    return ";#"


@dataclass(frozen=True)
class Settings:
    """Scanner and build settings, overridable through the environment."""

    # Assembly dialect
    symbol_prefix: str = os.getenv("ASMSCAN_SYMBOL_PREFIX") or _default_symbol_prefix()
    comment_chars: str = os.getenv("ASMSCAN_COMMENT_CHARS") or _default_comment_chars()
    proc_end_marker: str = os.getenv("ASMSCAN_PROC_END", ".cfi_endproc")

    # External tools
    cxxfilt: str = os.getenv("ASMSCAN_CXXFILT", "c++filt")
    cargo: str = os.getenv("ASMSCAN_CARGO", "cargo")
    build_type: str = os.getenv("ASMSCAN_BUILD_TYPE", "release")


SETTINGS = Settings()

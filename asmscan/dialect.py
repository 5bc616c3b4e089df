"""Target-specific markers used while scanning an assembly unit."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from asmscan.config import ARM64_MACHINES, SETTINGS, Settings


@dataclass(frozen=True)
class AsmDialect:
    symbol_prefix: str = "_"          # start of a function-defining label
    proc_end_marker: str = ".cfi_endproc"
    comment_chars: str = ";#"
    directive_marker: str = "."

    @property
    def comment_char(self) -> str:
        """Delimiter used when rendering comments back to assembly."""
        return self.comment_chars[-1]

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "AsmDialect":
        settings = settings or SETTINGS
        return cls(
            symbol_prefix=settings.symbol_prefix,
            proc_end_marker=settings.proc_end_marker,
            comment_chars=settings.comment_chars,
        )

    @classmethod
    def elf(cls) -> "AsmDialect":
        return cls(symbol_prefix="_")

    @classmethod
    def macho(cls, arch: str = "arm64") -> "AsmDialect":
        """Mach-O dialect; Apple arm64 comments start with `;` only."""
        if arch.lower() in ARM64_MACHINES:
            return cls(symbol_prefix="__", comment_chars=";")
        return cls(symbol_prefix="__")

"""
Source Provider

Reads the source files that a parsed function's .file table points at, so
assembly listings can be interleaved with the code they came from.

Guards:
  • Skips binary files (null-byte check)
  • Caps reads at MAX_LINES to prevent memory issues
  • Handles encoding errors gracefully
"""

import os
import logging
from typing import Dict, List, Optional

logger = logging.getLogger(__name__)

MAX_LINES = 100_000  # safety cap for very large files


class SourceProvider:
    def __init__(self, workspace_root: str = ""):
        self.workspace_root = workspace_root
        self._lines: Dict[str, Optional[List[str]]] = {}

    # ────────────────────────────────────────────────────────────────
    #  Internal helpers
    # ────────────────────────────────────────────────────────────────

    def _resolve(self, file_path: str) -> str:
        if os.path.isabs(file_path) or not self.workspace_root:
            return file_path
        native = file_path.replace("/", os.sep).replace("\\", os.sep)
        return os.path.join(self.workspace_root, native)

    @staticmethod
    def _read_lines(full_path: str) -> Optional[List[str]]:
        """Read file lines with binary-file guard and size cap."""
        if not os.path.isfile(full_path):
            logger.debug("Source file not found: %s", full_path)
            return None
        try:
            with open(full_path, "rb") as fb:
                head = fb.read(8192)
                if b"\x00" in head:
                    logger.warning("Skipping binary file: %s", full_path)
                    return None
            with open(full_path, "r", encoding="utf-8", errors="replace") as f:
                lines = []
                for i, line in enumerate(f):
                    if i >= MAX_LINES:
                        logger.warning(
                            "File %s exceeds %d lines, truncated", full_path, MAX_LINES
                        )
                        break
                    lines.append(line.rstrip("\n"))
                return lines
        except OSError as e:
            logger.error("Error reading %s: %s", full_path, e)
            return None

    def _lines_of(self, file_path: str) -> Optional[List[str]]:
        full = self._resolve(file_path)
        if full not in self._lines:
            self._lines[full] = self._read_lines(full)
        return self._lines[full]

    # ────────────────────────────────────────────────────────────────
    #  Queries
    # ────────────────────────────────────────────────────────────────

    def get_line(self, file_path: str, line_number: int) -> Optional[str]:
        """Return a single line from a file (1-indexed), or None."""
        lines = self._lines_of(file_path)
        if lines is None:
            return None
        if 1 <= line_number <= len(lines):
            return lines[line_number - 1]
        return None

    def get_code_context(
        self, file_path: str, line_number: int, context_lines: int = 3
    ) -> str:
        """Retrieve code surrounding a specific line number."""
        lines = self._lines_of(file_path)
        if lines is None:
            return f"Error: Cannot read {file_path}"
        start = max(0, line_number - 1 - context_lines)
        end = min(len(lines), line_number + context_lines)
        return "\n".join(lines[start:end])

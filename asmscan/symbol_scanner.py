"""
Symbol Scanner

Walks one assembly translation unit top to bottom and reconstructs a single
function:

  1. Candidate labels (lines starting with the local-symbol marker) are
     demangled and compared to the requested path; every demangled name is
     remembered for "did you mean" diagnostics.
  2. On a match, the lines up to the procedure-end marker form the body,
     which the FunctionBuilder turns into a Function.
  3. If the body had a location but no file, the scan continues past the
     body (trailer scan) until a .file for that location's index turns up.
  4. All .file bindings needed by the body's .loc directives are merged
     into a FileTable, which must cover every one of them.

The unit is read exactly once; the trailer scan continues on the same line
iterator.
"""

import logging
import os
from dataclasses import dataclass, field
from typing import Callable, Iterable, Iterator, List, Optional, Union

from asmscan.asm_ast import Function
from asmscan.dialect import AsmDialect
from asmscan.errors import ResolutionIncomplete
from asmscan.file_table import FileTable
from asmscan.function_builder import (
    FunctionBuilder,
    check_complete,
    merge_function_files,
)
from asmscan.statement_parser import parse_file_directive, parse_label, split_comment

logger = logging.getLogger(__name__)

Demangler = Callable[[str], str]


@dataclass
class Found:
    function: Function
    file_table: FileTable


@dataclass
class NotFound:
    symbols: List[str] = field(default_factory=list)


ScanResult = Union[Found, NotFound]


class SymbolScanner:
    """Finds and reconstructs one function in an assembly unit."""

    def __init__(self, demangler: Demangler, dialect: Optional[AsmDialect] = None):
        self.demangler = demangler
        self.dialect = dialect or AsmDialect.from_settings()

    # ────────────────────────────────────────────────────────────────
    #  Candidate detection
    # ────────────────────────────────────────────────────────────────

    def _candidate_name(self, line: str) -> Optional[str]:
        """Demangled name if ``line`` defines a function, else None."""
        if not line.startswith(self.dialect.symbol_prefix):
            return None
        # LLVM annotates definitions as `_ZN...E:   # @_ZN...E`
        node_text, _comment = split_comment(line, self.dialect.comment_chars)
        label = parse_label(node_text, None)
        if label is None:
            logger.debug("Line starts with %r but is not a label: %s",
                         self.dialect.symbol_prefix, line)
            return None
        return self.demangler(label.id)

    def list_symbols(self, lines: Iterable[str]) -> List[str]:
        """Demangled names of every function-defining label in the unit."""
        symbols: List[str] = []
        for raw in lines:
            name = self._candidate_name(raw.strip())
            if name is not None:
                symbols.append(name)
        return symbols

    # ────────────────────────────────────────────────────────────────
    #  Body delimiting
    # ────────────────────────────────────────────────────────────────

    def _body_lines(self, line_iter: Iterator[str], function_id: str) -> List[str]:
        body: List[str] = []
        for raw in line_iter:
            line = raw.strip()
            if line.startswith(self.dialect.proc_end_marker):
                return body
            body.append(line)
        # TODO: decide whether an unterminated function is valid input; until
        # then the rest of the unit is taken as its body.
        logger.warning(
            "%s: no %s found, treating the rest of the unit as its body",
            function_id, self.dialect.proc_end_marker,
        )
        return body

    # ────────────────────────────────────────────────────────────────
    #  File table helpers
    # ────────────────────────────────────────────────────────────────

    @staticmethod
    def _record_file(line: str, table: FileTable) -> None:
        directive = parse_file_directive(line)
        if directive is not None:
            table.add(directive.file())

    @staticmethod
    def _adopt_from_table(function: Function, table: FileTable) -> bool:
        file = table.pop(function.loc.file_index)
        if file is None:
            return False
        function.file = file
        logger.info("%s: resolved file %d -> %s", function.id, file.index, file.path)
        return True

    def _resolve_trailer(
        self, function: Function, line_iter: Iterator[str], table: FileTable
    ) -> None:
        """Continue past the body until the function's own file is bound."""
        if self._adopt_from_table(function, table):
            return
        for raw in line_iter:
            self._record_file(raw.strip(), table)
            if self._adopt_from_table(function, table):
                return
        logger.error(
            "%s: no .file directive for file index %d in the unit",
            function.id, function.loc.file_index,
        )
        raise ResolutionIncomplete(function.id, function.loc.file_index)

    # ────────────────────────────────────────────────────────────────
    #  Scan
    # ────────────────────────────────────────────────────────────────

    def scan(self, lines: Iterable[str], path: str) -> ScanResult:
        """Scan ``lines`` for the function whose demangled name is ``path``."""
        table = FileTable()
        symbols: List[str] = []
        line_iter = iter(lines)

        for raw in line_iter:
            line = raw.strip()
            name = self._candidate_name(line)
            if name is None:
                self._record_file(line, table)
                continue

            symbols.append(name)
            if name != path:
                continue

            logger.info("Found function %s (label %s)", path, line)
            builder = FunctionBuilder(path, self.dialect)
            function = builder.build(self._body_lines(line_iter, path))

            if function.file is None and function.loc is not None:
                self._resolve_trailer(function, line_iter, table)

            merge_function_files(function, table)
            check_complete(function, table)
            return Found(function=function, file_table=table)

        logger.info("Function %s not found among %d symbols", path, len(symbols))
        return NotFound(symbols=symbols)


def parse_function(
    asm_path: str,
    path: str,
    demangler: Demangler,
    dialect: Optional[AsmDialect] = None,
) -> ScanResult:
    """Parse the function ``path`` out of the assembly file ``asm_path``."""
    if not os.path.isfile(asm_path):
        logger.error("Assembly file not found: %s", asm_path)
        raise FileNotFoundError(f"Assembly file not found: {asm_path}")
    scanner = SymbolScanner(demangler, dialect)
    with open(asm_path, "r", encoding="utf-8", errors="replace") as f:
        return scanner.scan(f, path)


def list_functions(
    asm_path: str,
    demangler: Demangler,
    dialect: Optional[AsmDialect] = None,
) -> List[str]:
    """Demangled names of every function defined in ``asm_path``."""
    if not os.path.isfile(asm_path):
        logger.error("Assembly file not found: %s", asm_path)
        raise FileNotFoundError(f"Assembly file not found: {asm_path}")
    scanner = SymbolScanner(demangler, dialect)
    with open(asm_path, "r", encoding="utf-8", errors="replace") as f:
        return scanner.list_symbols(f)

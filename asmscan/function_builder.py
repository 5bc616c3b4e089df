"""
Function Builder

Turns the delimited body lines of one function into a ``Function``,
resolving which source file the function belongs to.

Resolution rules while walking the body:

  • .file  — adopted as the function's file if no file is set yet and
             either no location is known, or the known location uses the
             same index (inlined code re-declaring the function's own file).
  • .loc   — always becomes the current location; the first one is the
             function's location and must agree with an already known file.
  • labels / instructions — carry a snapshot of the current location.

The state of a build is an explicit ``ScanState`` so every transition can
be exercised on its own.
"""

import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional

from asmscan.asm_ast import (
    FileDirective,
    Function,
    LocDirective,
    Location,
    Statement,
)
from asmscan.dialect import AsmDialect
from asmscan.errors import InconsistentLocationBinding, UnresolvedLocationFile
from asmscan.file_table import FileTable
from asmscan.statement_parser import parse_line

logger = logging.getLogger(__name__)


@dataclass
class ScanState:
    function: Function
    current_location: Optional[Location] = None


class FunctionBuilder:
    def __init__(self, function_id: str, dialect: Optional[AsmDialect] = None):
        self.dialect = dialect or AsmDialect()
        self.state = ScanState(function=Function(id=function_id))

    @property
    def function(self) -> Function:
        return self.state.function

    # ────────────────────────────────────────────────────────────────
    #  Transitions
    # ────────────────────────────────────────────────────────────────

    def on_file_directive(self, directive: FileDirective) -> None:
        function = self.state.function
        if function.file is not None:
            return
        if function.loc is None:
            # A .file emitted for the function itself precedes its first .loc.
            function.file = directive.file()
        elif function.loc.file_index == directive.index:
            function.file = directive.file()
        else:
            logger.debug(
                "%s: .file %d (%s) belongs to other code, not adopted",
                function.id, directive.index, directive.path,
            )

    def on_loc_directive(self, directive: LocDirective) -> None:
        function = self.state.function
        location = directive.location()
        self.state.current_location = location
        if function.loc is not None:
            return
        if function.file is not None and function.file.index != location.file_index:
            logger.error(
                "%s: first location %s does not match file index %d",
                function.id, location, function.file.index,
            )
            raise InconsistentLocationBinding(
                function.id, function.file.index, location.file_index
            )
        function.loc = location

    def apply(self, statement: Statement) -> None:
        if isinstance(statement, FileDirective):
            self.on_file_directive(statement)
        elif isinstance(statement, LocDirective):
            self.on_loc_directive(statement)
        self.state.function.statements.append(statement)

    def feed_line(self, line: str, offset: int) -> None:
        """Parse one body line and apply the resulting statements."""
        line = line.strip()
        if not line:
            return
        for statement in parse_line(
            line,
            self.state.current_location,
            function_id=self.state.function.id,
            offset=offset,
            dialect=self.dialect,
        ):
            self.apply(statement)

    def build(self, body_lines: Iterable[str]) -> Function:
        # Offsets count non-empty body lines only.
        lines = (line.strip() for line in body_lines)
        for offset, line in enumerate(line for line in lines if line):
            self.feed_line(line, offset)
        return self.state.function


def function_body(
    body_lines: Iterable[str],
    function_id: str,
    dialect: Optional[AsmDialect] = None,
) -> Function:
    """Build a ``Function`` from the lines that follow its defining label."""
    return FunctionBuilder(function_id, dialect).build(body_lines)


# ════════════════════════════════════════════════════════════════════
#  Post-processing
# ════════════════════════════════════════════════════════════════════

def merge_function_files(function: Function, table: FileTable) -> FileTable:
    """Add the function's file and every body .file directive to ``table``."""
    if function.file is not None:
        table.add(function.file)
    for directive in function.file_directives():
        table.add(directive.file())
    return table


def check_complete(function: Function, table: FileTable) -> None:
    """Every .loc inside the function must resolve to a file in ``table``."""
    missing: List[int] = []
    for directive in function.loc_directives():
        if directive.file_index not in table:
            logger.error(
                "File directive for location not found! Location: %s",
                directive.location(),
            )
            missing.append(directive.file_index)
    if missing:
        raise UnresolvedLocationFile(function.id, missing)

"""
Statement Parser & Directive Recognizer

Classifies one trimmed assembly line into typed statements:

  1. Split off the inline comment (first comment delimiter outside quotes)
  2. Directive  — .file / .loc / any other dot-directive
  3. Label      — ``name:`` with no whitespace in the name
  4. Instruction — mnemonic followed by optional operand text

A line yields an optional Comment followed by exactly one of the other
kinds.  Node text that matches none of them raises ``MalformedLine``.
"""

import logging
import posixpath
import re
from typing import List, Optional, Tuple

from asmscan.asm_ast import (
    Comment,
    Directive,
    FileDirective,
    Instruction,
    Label,
    LocDirective,
    Location,
    OtherDirective,
    Statement,
)
from asmscan.dialect import AsmDialect
from asmscan.errors import MalformedLine

logger = logging.getLogger(__name__)

_DEFAULT_DIALECT = AsmDialect()

_QUOTED = r'"((?:[^"\\]|\\.)*)"'

# .file 1 "src/bar.rs"
# .file 1 "/home/me/proj" "src/bar.rs" md5 0x0123...
_FILE_RE = re.compile(
    r"^\.file\s+(?P<index>\d+)\s+" + _QUOTED + r"(?:\s+" + _QUOTED + r")?(?:\s+.*)?$"
)

# .loc 1 5 0 prologue_end
_LOC_RE = re.compile(
    r"^\.loc\s+(?P<file>\d+)\s+(?P<line>\d+)\s+(?P<column>\d+)(?:\s+(?P<flags>.*))?$"
)

# name:   "quoted name":
_LABEL_RE = re.compile(r'^(?:"(?P<quoted>[^"]+)"|(?P<plain>[^\s:"]+)):$')

# mnemonic [operands]
_INSTRUCTION_RE = re.compile(r"^[A-Za-z_][\w.]*(?:\s+\S.*)?$")


# ════════════════════════════════════════════════════════════════════
#  Comment splitting
# ════════════════════════════════════════════════════════════════════

def split_comment(line: str, comment_chars: str = ";#") -> Tuple[str, str]:
    """Split ``line`` at the first comment delimiter that is not quoted.

    Returns (node_text, comment_text); comment_text keeps its delimiter.
    """
    in_quotes = False
    escaped = False
    for i, ch in enumerate(line):
        if escaped:
            escaped = False
            continue
        if ch == "\\" and in_quotes:
            escaped = True
        elif ch == '"':
            in_quotes = not in_quotes
        elif not in_quotes and ch in comment_chars:
            return line[:i].rstrip(), line[i:]
    return line, ""


def parse_comment(comment_text: str, comment_chars: str = ";#") -> Optional[Comment]:
    text = comment_text.lstrip(comment_chars).strip()
    if not text:
        return None
    return Comment(text=text)


# ════════════════════════════════════════════════════════════════════
#  Directives
# ════════════════════════════════════════════════════════════════════

def parse_file_directive(text: str) -> Optional[FileDirective]:
    m = _FILE_RE.match(text)
    if not m:
        return None
    first, second = m.group(2), m.group(3)
    if second is None:
        path = first
    elif posixpath.isabs(second) or not first:
        path = second
    else:
        path = posixpath.join(first, second)
    return FileDirective(index=int(m.group("index")), path=path)


def parse_loc_directive(text: str) -> Optional[LocDirective]:
    m = _LOC_RE.match(text)
    if not m:
        return None
    flags = m.group("flags")
    return LocDirective(
        file_index=int(m.group("file")),
        line=int(m.group("line")),
        column=int(m.group("column")),
        flags=tuple(flags.split()) if flags else None,
    )


def parse_directive(text: str, dialect: AsmDialect = _DEFAULT_DIALECT) -> Optional[Directive]:
    """Recognise a directive, or return None if ``text`` is not one."""
    if not text.startswith(dialect.directive_marker):
        return None
    head = text.split(None, 1)[0]
    if head.endswith(":"):
        # `.LBB0_1:` is a local label, not a pseudo-op.
        return None
    if head == ".file":
        directive = parse_file_directive(text)
        if directive:
            return directive
    elif head == ".loc":
        directive = parse_loc_directive(text)
        if directive:
            return directive
    return OtherDirective(raw=text)


# ════════════════════════════════════════════════════════════════════
#  Labels & instructions
# ════════════════════════════════════════════════════════════════════

def parse_label(text: str, loc: Optional[Location] = None) -> Optional[Label]:
    m = _LABEL_RE.match(text)
    if not m:
        return None
    return Label(id=m.group("quoted") or m.group("plain"), loc=loc)


def parse_instruction(text: str, loc: Optional[Location] = None) -> Optional[Instruction]:
    if not _INSTRUCTION_RE.match(text):
        return None
    return Instruction(raw=text, loc=loc)


# ════════════════════════════════════════════════════════════════════
#  Full line
# ════════════════════════════════════════════════════════════════════

def parse_node(
    node_text: str,
    current_loc: Optional[Location],
    dialect: AsmDialect = _DEFAULT_DIALECT,
) -> Optional[Statement]:
    """Classify comment-free text: Directive, else Label, else Instruction."""
    return (
        parse_directive(node_text, dialect)
        or parse_label(node_text, current_loc)
        or parse_instruction(node_text, current_loc)
    )


def parse_line(
    line: str,
    current_loc: Optional[Location],
    function_id: str = "",
    offset: int = 0,
    dialect: AsmDialect = _DEFAULT_DIALECT,
) -> List[Statement]:
    """Parse one trimmed, non-empty body line.

    ``function_id`` and ``offset`` only feed the ``MalformedLine`` diagnostic.
    """
    node_text, comment_text = split_comment(line, dialect.comment_chars)

    statements: List[Statement] = []
    comment = parse_comment(comment_text, dialect.comment_chars)
    if comment:
        statements.append(comment)

    if not node_text:
        return statements

    node = parse_node(node_text, current_loc, dialect)
    if node is None:
        logger.error("Unparseable line %d in %s: %r", offset, function_id, line)
        raise MalformedLine(function_id, offset, line)
    statements.append(node)
    return statements

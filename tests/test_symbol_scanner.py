"""
Symbol Scanner tests: whole-unit scans over the fixtures in tests/mock_asm.

  1. Function found with its own .file before the first .loc
  2. Function file resolved by scanning past the body (trailer)
  3. Inlined code re-declaring the function's file
  4. Function not in the unit: NotFound with every demangled name
  5. Fatal inconsistencies and malformed lines
"""

import os
import sys
import unittest

PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, PROJECT_ROOT)

MOCK_ASM = os.path.join(PROJECT_ROOT, "tests", "mock_asm")

from asmscan.asm_ast import Comment, File, Instruction, Location
from asmscan.dialect import AsmDialect
from asmscan.errors import (
    InconsistentFileBinding, MalformedLine, ResolutionIncomplete, UnresolvedLocationFile,
)
from asmscan.symbol_scanner import (
    Found, NotFound, SymbolScanner, list_functions, parse_function,
)

DEMANGLED = {
    "_ZN9lib_crate3bar9max_array17hb67fa309d9e0df23E": "lib_crate::bar::max_array",
    "_ZN9lib_crate3bar6helper17h1111111111111111E": "lib_crate::bar::helper",
    "_ZN5other4func17h0000000000000001E": "other::func",
    "_ZN5other5after17h0000000000000002E": "other::after",
    "_ZN6inline3run17h00000000000000aaE": "inline::run",
}


def demangle(raw: str) -> str:
    return DEMANGLED.get(raw, raw)


ELF = AsmDialect.elf()


def scan_text(text: str, path: str, dialect: AsmDialect = ELF):
    return SymbolScanner(demangle, dialect).scan(text.splitlines(), path)


class TestFoundWithOwnFile(unittest.TestCase):
    """The .file directive comes before the first .loc in the body."""

    @classmethod
    def setUpClass(cls):
        cls.result = parse_function(
            os.path.join(MOCK_ASM, "bar.s"), "lib_crate::bar::max_array", demangle, ELF
        )

    def test_found(self):
        self.assertIsInstance(self.result, Found)

    def test_function_file_and_loc(self):
        function = self.result.function
        self.assertEqual(function.file, File(index=1, path="src/bar.rs"))
        self.assertEqual(function.loc, Location(file_index=1, line=3, column=0))

    def test_body_ends_before_endproc(self):
        statements = self.result.function.statements
        self.assertTrue(statements[-1].raw.startswith(".size"))
        self.assertEqual(self.result.function.instruction_count(), 5)

    def test_comment_and_snapshot(self):
        statements = self.result.function.statements
        idx = next(i for i, s in enumerate(statements) if isinstance(s, Comment))
        self.assertEqual(statements[idx].text, "set up frame")
        mov = statements[idx + 1]
        self.assertIsInstance(mov, Instruction)
        self.assertEqual(mov.mnemonic, "mov")
        self.assertEqual(mov.loc.line, 5)

    def test_file_table(self):
        table = self.result.file_table
        self.assertEqual(table.as_dict(), {1: File(index=1, path="src/bar.rs")})


class TestTrailerResolution(unittest.TestCase):
    """Body has only a .loc; its .file appears after the body."""

    @classmethod
    def setUpClass(cls):
        cls.result = parse_function(
            os.path.join(MOCK_ASM, "other.s"), "other::func", demangle, ELF
        )

    def test_file_resolved_after_body(self):
        function = self.result.function
        self.assertEqual(function.loc, Location(file_index=2, line=5, column=0,
                                                flags=("prologue_end",)))
        self.assertEqual(function.file, File(index=2, path="src/other.rs"))

    def test_table_covers_trailer_bindings(self):
        table = self.result.file_table
        self.assertEqual(table[2].path, "src/other.rs")
        self.assertEqual(table[1].path, "src/main.rs")

    def test_body_has_no_trailer_statements(self):
        function = self.result.function
        self.assertEqual(function.instruction_count(), 2)
        ids = [s.id for s in function.statements if hasattr(s, "id")]
        self.assertEqual(ids, [".Lfunc_begin0", ".Ltmp0", ".Lfunc_end0"])

    def test_binding_before_function_resolves_without_trailer(self):
        text = "\n".join([
            '\t.file\t2 "src/early.rs"',
            "_ZN5other4func17h0000000000000001E:",
            "\t.loc\t2 1 0",
            "\tret",
        ])
        result = scan_text(text, "other::func")
        self.assertEqual(result.function.file, File(index=2, path="src/early.rs"))

    def test_unresolved_at_end_of_unit(self):
        text = "\n".join([
            "_ZN5other4func17h0000000000000001E:",
            "\t.loc\t4 1 0",
            "\tret",
            "\t.cfi_endproc",
            '\t.file\t1 "src/main.rs"',
        ])
        with self.assertRaises(ResolutionIncomplete) as cm:
            scan_text(text, "other::func")
        self.assertEqual(cm.exception.function_id, "other::func")
        self.assertEqual(cm.exception.file_index, 4)


class TestInlinedFile(unittest.TestCase):

    @classmethod
    def setUpClass(cls):
        cls.result = parse_function(
            os.path.join(MOCK_ASM, "inlined.s"), "inline::run", demangle, ELF
        )

    def test_function_file_is_restated_one(self):
        function = self.result.function
        self.assertEqual(function.loc.file_index, 1)
        self.assertEqual(function.file, File(index=1, path="src/lib.rs"))

    def test_inlined_file_in_table(self):
        table = self.result.file_table
        self.assertEqual(table[2].path, "/rustc/abc/library/core/src/ptr/mod.rs")

    def test_every_location_resolves(self):
        table = self.result.file_table
        for directive in self.result.function.loc_directives():
            self.assertIn(directive.file_index, table)


class TestNotFound(unittest.TestCase):

    def test_all_symbols_in_order(self):
        result = parse_function(os.path.join(MOCK_ASM, "bar.s"), "lib_crate::nope", demangle, ELF)
        self.assertIsInstance(result, NotFound)
        self.assertEqual(result.symbols, ["lib_crate::bar::max_array", "lib_crate::bar::helper"])

    def test_list_functions(self):
        names = list_functions(os.path.join(MOCK_ASM, "other.s"), demangle, ELF)
        self.assertEqual(names, ["other::func", "other::after"])

    def test_marker_line_that_is_not_a_label(self):
        text = "_unused = 1\n_ZN5other4func17h0000000000000001E:\n\tret\n"
        result = scan_text(text, "missing::fn")
        self.assertEqual(result.symbols, ["other::func"])

    def test_macho_prefix(self):
        text = "\n".join([
            "ltmp0:",
            "_not_a_function:",
            "__ZN5other4func17h0000000000000001E:",
            "\tret",
        ])
        result = SymbolScanner(lambda raw: raw[1:], AsmDialect.macho()).scan(
            text.splitlines(), "nothing"
        )
        self.assertEqual(result.symbols, ["_ZN5other4func17h0000000000000001E"])

    def test_missing_file(self):
        with self.assertRaises(FileNotFoundError):
            parse_function(os.path.join(MOCK_ASM, "missing.s"), "x", demangle, ELF)


class TestFatalErrors(unittest.TestCase):

    def test_conflicting_file_bindings(self):
        text = "\n".join([
            '\t.file\t3 "a.rs"',
            '\t.file\t3 "b.rs"',
            "_ZN5other4func17h0000000000000001E:",
            "\tret",
        ])
        with self.assertRaises(InconsistentFileBinding) as cm:
            scan_text(text, "other::func")
        self.assertEqual(cm.exception.index, 3)

    def test_conflicting_binding_between_unit_and_body(self):
        text = "\n".join([
            '\t.file\t3 "a.rs"',
            "_ZN5other4func17h0000000000000001E:",
            '\t.file\t3 "b.rs"',
            "\t.loc\t3 1 0",
            "\tret",
            "\t.cfi_endproc",
        ])
        with self.assertRaises(InconsistentFileBinding):
            scan_text(text, "other::func")

    def test_malformed_line_offset(self):
        text = "\n".join([
            "_ZN5other4func17h0000000000000001E:",
            "\t.cfi_startproc",
            "\tpush rbp",
            "",
            "\t%%%",
            "\t.cfi_endproc",
        ])
        with self.assertRaises(MalformedLine) as cm:
            scan_text(text, "other::func")
        self.assertEqual(cm.exception.function_id, "other::func")
        self.assertEqual(cm.exception.offset, 2)
        self.assertEqual(cm.exception.line, "%%%")

    def test_location_without_file_binding(self):
        text = "\n".join([
            "_ZN5other4func17h0000000000000001E:",
            '\t.file\t1 "src/a.rs"',
            "\t.loc\t1 1 0",
            "\t.loc\t7 2 0",
            "\tret",
            "\t.cfi_endproc",
            '\t.file\t7 "src/later.rs"',
        ])
        with self.assertRaises(UnresolvedLocationFile) as cm:
            scan_text(text, "other::func")
        self.assertEqual(cm.exception.missing_indexes, [7])


class TestAppleArm64(unittest.TestCase):
    """`#` marks immediates on arm64; only `;` starts a comment."""

    BODY = "\n".join([
        "__ZN5other4func17h0000000000000001E:   ; @_ZN5other4func17h0000000000000001E",
        "\t.cfi_startproc",
        "; %bb.0:",
        "\tstp\tx29, x30, [sp, #-16]!",
        "\tmov\tw0, #1                       ; =0x1",
        "\tldp\tx29, x30, [sp], #16",
        "\tret",
        "\t.cfi_endproc",
    ])

    @classmethod
    def setUpClass(cls):
        cls.result = SymbolScanner(lambda raw: demangle(raw[1:]), AsmDialect.macho()).scan(
            cls.BODY.splitlines(), "other::func"
        )

    def test_immediates_kept_in_operands(self):
        raws = [s.raw for s in self.result.function.statements if isinstance(s, Instruction)]
        self.assertEqual(raws, [
            "stp\tx29, x30, [sp, #-16]!",
            "mov\tw0, #1",
            "ldp\tx29, x30, [sp], #16",
            "ret",
        ])

    def test_semicolon_comments(self):
        comments = [s.text for s in self.result.function.statements if isinstance(s, Comment)]
        self.assertEqual(comments, ["%bb.0:", "=0x1"])
        self.assertEqual(self.result.function.statements[1].to_asm(";"), "; %bb.0:")


class TestUnterminatedBody(unittest.TestCase):

    def test_rest_of_unit_is_body(self):
        text = "_ZN5other4func17h0000000000000001E:\n\tpush rbp\n\tret\n"
        with self.assertLogs("asmscan.symbol_scanner", level="WARNING"):
            result = scan_text(text, "other::func")
        self.assertEqual(result.function.instruction_count(), 2)
        self.assertIsNone(result.function.file)
        self.assertIsNone(result.function.loc)


if __name__ == "__main__":
    unittest.main()

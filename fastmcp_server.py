"""
Cargo ASM Agent — MCP Server

Exposes tools to an MCP client for inspecting the assembly a Rust crate
compiles to:

  1. load_units      — register existing assembly (.s) files to search
  2. build_project   — cargo build with --emit asm and register the output
  3. list_functions  — list demangled function paths in the registered units
  4. show_function   — reconstruct one function, optionally with source lines
"""

from mcp.server.fastmcp import FastMCP
import difflib
import os
import sys

# Ensure asmscan is importable
sys.path.append(os.path.dirname(os.path.abspath(__file__)))

from asmscan.asm_ast import Comment, FileDirective, Function, Instruction, Label, LocDirective
from asmscan.build import BuildOptions, BuildType, build_project as cargo_build
from asmscan.demangler import CxxFiltDemangler
from asmscan.dialect import AsmDialect
from asmscan.errors import AsmScanError, BuildError
from asmscan.file_table import FileTable
from asmscan.source_provider import SourceProvider
from asmscan.symbol_scanner import Found, list_functions as unit_functions, parse_function

# ═══════════════════════════════════════════════════════════════════════
#  Server Setup
# ═══════════════════════════════════════════════════════════════════════

mcp = FastMCP("Cargo ASM Agent")

dialect = AsmDialect.from_settings()
demangler = CxxFiltDemangler(strip_leading_underscore=dialect.symbol_prefix == "__")
source_provider = SourceProvider()

# Assembly units searched by list_functions / show_function, in load order.
_units = []


def _register_units(paths) -> int:
    added = 0
    for p in paths:
        p = os.path.abspath(str(p))
        if p not in _units:
            _units.append(p)
            added += 1
    return added


# ═══════════════════════════════════════════════════════════════════════
#  Rendering helpers
# ═══════════════════════════════════════════════════════════════════════

def _render_function(function: Function, table: FileTable, with_source: bool) -> str:
    """Render a parsed function as an assembly listing.

    With ``with_source`` each change of location inserts the source line it
    points at as a ``//`` line.
    """
    out = []
    last_loc = None
    for s in function.statements:
        if isinstance(s, (Label, Instruction)) and with_source and s.loc and s.loc != last_loc:
            last_loc = s.loc
            f = table.get(s.loc.file_index)
            text = source_provider.get_line(f.path, s.loc.line) if f else None
            if text is not None:
                out.append(f"  // {os.path.basename(f.path)}:{s.loc.line}: {text.strip()}")
        if isinstance(s, (FileDirective, LocDirective)) and with_source:
            continue
        if isinstance(s, Comment):
            out.append(s.to_asm(dialect.comment_char))
        else:
            out.append(s.to_asm())
    return "\n".join(out)


def _header(function: Function, unit: str) -> str:
    where = "unknown"
    if function.file and function.loc:
        where = f"{function.file.path}:{function.loc.line}"
    elif function.file:
        where = function.file.path
    comments = sum(1 for s in function.statements if isinstance(s, Comment))
    return (
        f"## `{function.id}`\n\n"
        f"| Field | Value |\n"
        f"|-------|-------|\n"
        f"| **Source** | `{where}` |\n"
        f"| **Unit** | `{unit}` |\n"
        f"| **Instructions** | {function.instruction_count()} |\n"
        f"| **Statements** | {len(function.statements)} ({comments} comments) |\n"
    )


# ═══════════════════════════════════════════════════════════════════════
#  Tool 1 — Load Units
# ═══════════════════════════════════════════════════════════════════════

@mcp.tool()
def load_units(asm_paths: str, workspace_root: str = "") -> str:
    """
    Registers assembly files to search for functions.

    Args:
        asm_paths:      Comma-separated list of .s files.
        workspace_root: Directory that relative .file paths are resolved
                        against when showing source lines.
    """
    global source_provider

    paths = [p.strip() for p in asm_paths.split(",") if p.strip()]
    missing = [p for p in paths if not os.path.isfile(p)]
    if missing:
        return f"Error: Assembly file(s) not found: {', '.join(missing)}"
    if workspace_root:
        if not os.path.isdir(workspace_root):
            return f"Error: Workspace root not found at {workspace_root}"
        source_provider = SourceProvider(workspace_root)

    added = _register_units(paths)
    return f"Registered {added} new unit(s); {len(_units)} unit(s) loaded."


# ═══════════════════════════════════════════════════════════════════════
#  Tool 2 — Build Project
# ═══════════════════════════════════════════════════════════════════════

@mcp.tool()
def build_project(
    manifest_dir: str,
    build_type: str = "release",
    clean: bool = False,
    intel_syntax: bool = True,
) -> str:
    """
    Builds a cargo project with assembly output and registers every .s file
    the build produced.

    Args:
        manifest_dir: Directory containing Cargo.toml.
        build_type:   "debug" or "release".
        clean:        Run `cargo clean` first.
        intel_syntax: Emit Intel instead of AT&T syntax.
    """
    global source_provider

    if not os.path.isdir(manifest_dir):
        return f"Error: Project directory not found at {manifest_dir}"
    try:
        opts = BuildOptions(
            manifest_dir=manifest_dir,
            build_type=BuildType.from_str(build_type),
            clean=clean,
            intel_syntax=intel_syntax,
        )
        files = cargo_build(opts)
    except ValueError as e:
        return f"Error: {e}"
    except BuildError as e:
        tail = "\n".join(e.stderr.splitlines()[-20:])
        return f"Error: {e}\n\n```\n{tail}\n```"

    source_provider = SourceProvider(manifest_dir)
    added = _register_units(files)
    if not files:
        return "Build succeeded but produced no new assembly files."
    listing = "\n".join(f"- `{f}`" for f in files)
    return f"Build succeeded. Registered {added} new unit(s):\n{listing}"


# ═══════════════════════════════════════════════════════════════════════
#  Tool 3 — List Functions
# ═══════════════════════════════════════════════════════════════════════

@mcp.tool()
def list_functions(name_filter: str = "") -> str:
    """
    Lists demangled function paths defined in the registered units.

    Args:
        name_filter: Only list paths containing this substring.
    """
    if not _units:
        return "Error: No units loaded. Call load_units or build_project first."

    result = ""
    total = 0
    for unit in _units:
        names = [n for n in unit_functions(unit, demangler, dialect) if name_filter in n]
        if not names:
            continue
        total += len(names)
        result += f"### `{unit}`\n" + "".join(f"- `{n}`\n" for n in names) + "\n"
    if not total:
        return f"No functions matching '{name_filter}'."
    return f"**{total} function(s)**\n\n{result}"


# ═══════════════════════════════════════════════════════════════════════
#  Tool 4 — Show Function
# ═══════════════════════════════════════════════════════════════════════

@mcp.tool()
def show_function(function_path: str, with_source: bool = False) -> str:
    """
    Reconstructs the assembly of one function.

    Args:
        function_path: Demangled path, e.g. 'my_crate::module::function'.
        with_source:   Interleave the source lines each instruction maps to.
    """
    if not _units:
        return "Error: No units loaded. Call load_units or build_project first."

    seen = []
    for unit in _units:
        try:
            result = parse_function(unit, function_path, demangler, dialect)
        except AsmScanError as e:
            return f"Error parsing `{unit}`: {e}"
        if isinstance(result, Found):
            function, table = result.function, result.file_table
            text = _header(function, unit)
            if with_source and function.file and function.loc:
                ctx = source_provider.get_code_context(function.file.path, function.loc.line)
                text += f"\n### Source\n\n```rust\n{ctx}\n```\n"
            text += f"\n### Assembly\n\n```asm\n{_render_function(function, table, with_source)}\n```\n"
            return text
        seen.extend(result.symbols)

    msg = f"Function `{function_path}` not found in {len(_units)} unit(s)."
    suggestions = difflib.get_close_matches(function_path, seen, n=5, cutoff=0.5)
    if suggestions:
        msg += "\n\n**Did you mean:**\n" + "".join(f"- `{s}`\n" for s in suggestions)
    return msg


if __name__ == "__main__":
    # Debug: Print loaded tools to stderr (visible in MCP logs)
    try:
        if hasattr(mcp, "_tool_manager") and hasattr(mcp._tool_manager, "_tools"):
            tools = mcp._tool_manager._tools.keys()
            print(f"DEBUG: Cargo ASM Agent starting with {len(tools)} tools: {list(tools)}", file=sys.stderr)
        else:
            print("DEBUG: Cargo ASM Agent starting (cannot inspect tools)", file=sys.stderr)
    except Exception as e:
        print(f"DEBUG: Error inspecting tools: {e}", file=sys.stderr)

    mcp.run()

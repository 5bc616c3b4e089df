"""
Assembly AST

Typed statement model for one function reconstructed from an assembly
translation unit:

  • File / Location            — source bindings from .file / .loc
  • Comment                    — inline or full-line comment text
  • FileDirective / LocDirective / OtherDirective
  • Label / Instruction        — carry a snapshot of the current Location
  • Function                   — id, owning File + Location, ordered statements

Every statement renders back to assembly text via ``to_asm()`` so a parsed
function can be displayed without keeping the raw lines around.
"""

from typing import List, Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field


class File(BaseModel):
    """A file-id binding: index is scoped to one translation unit."""
    model_config = ConfigDict(frozen=True)

    index: int = Field(ge=0)
    path: str


class Location(BaseModel):
    model_config = ConfigDict(frozen=True)

    file_index: int = Field(ge=0)
    line: int = Field(ge=0)
    column: int = Field(ge=0)
    flags: Optional[Tuple[str, ...]] = None

    def __str__(self) -> str:
        return f"{self.file_index}:{self.line}:{self.column}"


# ════════════════════════════════════════════════════════════════════
#  Statements
# ════════════════════════════════════════════════════════════════════

class Comment(BaseModel):
    kind: Literal["comment"] = "comment"
    text: str

    def to_asm(self, delimiter: str = "#") -> str:
        return f"{delimiter} {self.text}"


class FileDirective(BaseModel):
    kind: Literal["file"] = "file"
    index: int = Field(ge=0)
    path: str

    def file(self) -> File:
        return File(index=self.index, path=self.path)

    def to_asm(self) -> str:
        return f'.file {self.index} "{self.path}"'


class LocDirective(BaseModel):
    kind: Literal["loc"] = "loc"
    file_index: int = Field(ge=0)
    line: int = Field(ge=0)
    column: int = Field(ge=0)
    flags: Optional[Tuple[str, ...]] = None

    def location(self) -> Location:
        return Location(
            file_index=self.file_index,
            line=self.line,
            column=self.column,
            flags=self.flags,
        )

    def to_asm(self) -> str:
        text = f".loc {self.file_index} {self.line} {self.column}"
        if self.flags:
            text += " " + " ".join(self.flags)
        return text


class OtherDirective(BaseModel):
    kind: Literal["other"] = "other"
    raw: str

    def to_asm(self) -> str:
        return self.raw


Directive = Union[FileDirective, LocDirective, OtherDirective]


class Label(BaseModel):
    kind: Literal["label"] = "label"
    id: str
    loc: Optional[Location] = None

    def to_asm(self) -> str:
        return f"{self.id}:"


class Instruction(BaseModel):
    kind: Literal["instruction"] = "instruction"
    raw: str
    loc: Optional[Location] = None

    @property
    def mnemonic(self) -> str:
        return self.raw.split(None, 1)[0]

    @property
    def operands(self) -> str:
        parts = self.raw.split(None, 1)
        return parts[1] if len(parts) > 1 else ""

    def to_asm(self) -> str:
        return f"    {self.raw}"


Statement = Union[Comment, FileDirective, LocDirective, OtherDirective, Label, Instruction]


class Function(BaseModel):
    """A reconstructed assembly function.

    ``file`` and ``loc`` are written at most once by the function builder;
    the first location seen in the body is the function's own location.
    """
    id: str
    file: Optional[File] = None
    loc: Optional[Location] = None
    statements: List[Statement] = Field(default_factory=list)

    def loc_directives(self) -> List[LocDirective]:
        return [s for s in self.statements if isinstance(s, LocDirective)]

    def file_directives(self) -> List[FileDirective]:
        return [s for s in self.statements if isinstance(s, FileDirective)]

    def instruction_count(self) -> int:
        return sum(1 for s in self.statements if isinstance(s, Instruction))

"""
Error taxonomy for assembly function scanning.

Every error aborts the current parse.  A function that simply is not in
the unit is not an error: the scanner returns ``NotFound`` for that.
"""

from typing import List, Sequence


class AsmScanError(Exception):
    """Base class for fatal scan errors."""


class MalformedLine(AsmScanError):
    """A body line is not a comment, directive, label or instruction."""

    def __init__(self, function_id: str, offset: int, line: str):
        self.function_id = function_id
        self.offset = offset
        self.line = line
        super().__init__(
            f"cannot parse function {function_id}: "
            f"line offset {offset}: {line!r}"
        )


class InconsistentFileBinding(AsmScanError):
    """The same file index is bound to two different paths."""

    def __init__(self, index: int, existing_path: str, new_path: str):
        self.index = index
        self.existing_path = existing_path
        self.new_path = new_path
        super().__init__(
            f"file index {index} bound to {existing_path!r} "
            f"and to {new_path!r}"
        )


class InconsistentLocationBinding(AsmScanError):
    """The function's first location points at a different file than its .file."""

    def __init__(self, function_id: str, file_index: int, location_file_index: int):
        self.function_id = function_id
        self.file_index = file_index
        self.location_file_index = location_file_index
        super().__init__(
            f"function {function_id}: file index {file_index} does not match "
            f"location file index {location_file_index}"
        )


class UnresolvedLocationFile(AsmScanError):
    """A .loc inside the function references a file index with no binding."""

    def __init__(self, function_id: str, missing_indexes: Sequence[int]):
        self.function_id = function_id
        self.missing_indexes: List[int] = sorted(set(missing_indexes))
        super().__init__(
            f"function {function_id}: no .file directive for location "
            f"file index(es) {', '.join(str(i) for i in self.missing_indexes)}"
        )


class ResolutionIncomplete(AsmScanError):
    """The unit ended before the function's own file binding was found."""

    def __init__(self, function_id: str, file_index: int):
        self.function_id = function_id
        self.file_index = file_index
        super().__init__(
            f"function {function_id}: reached end of unit without a "
            f".file directive for file index {file_index}"
        )


class BuildError(Exception):
    """The external build command failed."""

    def __init__(self, command: Sequence[str], returncode: int, stderr: str = ""):
        self.command = list(command)
        self.returncode = returncode
        self.stderr = stderr
        super().__init__(
            f"{' '.join(self.command)} failed with exit code {returncode}"
        )

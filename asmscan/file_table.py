import logging
from typing import Dict, Iterator, Optional

from asmscan.asm_ast import File
from asmscan.errors import InconsistentFileBinding

logger = logging.getLogger(__name__)


class FileTable:
    """
    File index -> File bindings of one translation unit.

    The first binding for an index wins.  Re-binding an index to the same
    path is a no-op; re-binding it to a different path raises
    ``InconsistentFileBinding``.
    """

    def __init__(self):
        self._files: Dict[int, File] = {}

    def add(self, file: File) -> bool:
        """Record ``file``.  Returns True if the index was new."""
        existing = self._files.get(file.index)
        if existing is not None:
            if existing.path != file.path:
                logger.error(
                    "File index %d already bound to %s, got %s",
                    file.index, existing.path, file.path,
                )
                raise InconsistentFileBinding(file.index, existing.path, file.path)
            return False
        self._files[file.index] = file
        return True

    def get(self, index: int) -> Optional[File]:
        return self._files.get(index)

    def pop(self, index: int) -> Optional[File]:
        return self._files.pop(index, None)

    def as_dict(self) -> Dict[int, File]:
        return dict(self._files)

    def __contains__(self, index: int) -> bool:
        return index in self._files

    def __getitem__(self, index: int) -> File:
        return self._files[index]

    def __iter__(self) -> Iterator[int]:
        return iter(sorted(self._files))

    def __len__(self) -> int:
        return len(self._files)

    def __repr__(self) -> str:
        return f"FileTable({self.as_dict()!r})"

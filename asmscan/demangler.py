"""
Symbol demangling via the system ``c++filt``.

The scanner only needs a callable ``raw_symbol -> readable_path``; this
module provides the default one.  Rust legacy symbols share the Itanium
``_ZN`` scheme, so ``c++filt`` decodes them; the trailing ``::h<hash>``
disambiguator is stripped so paths compare equal to what users type.
"""

import logging
import re
import shutil
import subprocess
from typing import Dict, Optional

from asmscan.config import SETTINGS

logger = logging.getLogger(__name__)

_RUST_HASH_RE = re.compile(r"::h[0-9a-f]{16}$")


def strip_rust_hash(name: str) -> str:
    """``lib_crate::bar::max_array::hb67fa309d9e0df23`` -> ``lib_crate::bar::max_array``."""
    return _RUST_HASH_RE.sub("", name)


class CxxFiltDemangler:
    """Demangle symbols one at a time through ``c++filt``, with a cache."""

    def __init__(self, tool: Optional[str] = None, strip_leading_underscore: bool = False):
        self.tool = tool or SETTINGS.cxxfilt
        self.strip_leading_underscore = strip_leading_underscore
        self._cache: Dict[str, str] = {}
        self._available: Optional[bool] = None

    def _tool_available(self) -> bool:
        if self._available is None:
            self._available = shutil.which(self.tool) is not None
            if not self._available:
                logger.warning("%s not found, symbols will stay mangled", self.tool)
        return self._available

    def _run(self, symbol: str) -> str:
        try:
            proc = subprocess.run(
                [self.tool],
                input=symbol + "\n",
                capture_output=True,
                text=True,
                check=True,
            )
        except (subprocess.CalledProcessError, OSError) as e:
            logger.warning("%s failed on %s: %s", self.tool, symbol, e)
            return symbol
        return proc.stdout.strip() or symbol

    def __call__(self, raw_symbol: str) -> str:
        if raw_symbol in self._cache:
            return self._cache[raw_symbol]

        symbol = raw_symbol
        if self.strip_leading_underscore and symbol.startswith("__"):
            # Mach-O adds one underscore in front of the Itanium prefix.
            symbol = symbol[1:]

        if self._tool_available():
            demangled = strip_rust_hash(self._run(symbol))
        else:
            demangled = symbol

        self._cache[raw_symbol] = demangled
        return demangled

from enum import Enum
from types import MappingProxyType

from rv_errors import DuplicateSymbol, UndefinedSymbol


class OnRedefine(Enum):
    # What define() does when the name is already bound
    OVERWRITE = "overwrite"    # last write wins, no error
    KEEP_FIRST = "keep_first"  # first binding stays
    ERROR = "error"            # raise DuplicateSymbol


class SymbolTable:
    # Label name -> 32-bit address. One table per assembly run, nothing is ever removed.

    def __init__(self):
        self._addrs = {}

    def define(self, name: str, address: int, on_redefine: OnRedefine = OnRedefine.OVERWRITE) -> None:
        if name in self._addrs:
            if on_redefine is OnRedefine.KEEP_FIRST:
                return
            if on_redefine is OnRedefine.ERROR:
                raise DuplicateSymbol(f"symbol already defined: {name}")
        self._addrs[name] = address & 0xFFFFFFFF

    def is_defined(self, name: str) -> bool:
        return name in self._addrs

    def get(self, name: str) -> int:
        try:
            return self._addrs[name]
        except KeyError:
            raise UndefinedSymbol(f"undefined symbol: {name}") from None

    def freeze(self):
        # Read-only view handed from pass 1 to pass 2
        return MappingProxyType(dict(self._addrs))

    def __contains__(self, name):
        return name in self._addrs

    def __len__(self):
        return len(self._addrs)

    def __iter__(self):
        return iter(self._addrs)

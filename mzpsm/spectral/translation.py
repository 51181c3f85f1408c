from collections import abc
from typing import Any, Dict, Generic, Hashable, Iterator, Mapping, Optional, TypeVar


T = TypeVar("T")


class TranslationTable(abc.Mapping, Generic[T]):
    """Translate a vendor-specific classification code into one of this
    package's closed enumerations.

    Codes that are not in the table map to :attr:`default` rather than
    raising, so an unfamiliar vendor value never aborts reading a file.

    Parameters
    ----------
    mapping : Mapping
        The known vendor codes and the values they translate to.
    default : object
        The value returned for any code not in ``mapping``.
    """

    _table: Dict[Hashable, T]
    default: T

    def __init__(self, mapping: Optional[Mapping[Hashable, T]]=None, default: T=None):
        self._table = dict(mapping or {})
        self.default = default

    def translate(self, code: Any) -> T:
        try:
            return self._table[code]
        except (KeyError, TypeError):
            pass
        key = str(code)
        if key in self._table:
            return self._table[key]
        return self.default

    def register(self, code: Hashable, value: T):
        self._table[code] = value

    def copy(self) -> 'TranslationTable[T]':
        return self.__class__(self._table, self.default)

    def __getitem__(self, code) -> T:
        return self._table[code]

    def __iter__(self) -> Iterator[Hashable]:
        return iter(self._table)

    def __len__(self):
        return len(self._table)

    def __call__(self, code: Any) -> T:
        return self.translate(code)

    def __repr__(self):
        return f"{self.__class__.__name__}({self._table}, default={self.default})"

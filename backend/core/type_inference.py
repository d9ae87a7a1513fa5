from __future__ import annotations

from typing import Any, Dict, Iterable, Sequence

from core.models import ColumnType, RowSet
from core.values import is_missing, to_number, to_timestamp

_BOOL_STRINGS = frozenset({'true', 'false'})


def _is_bool(v: Any) -> bool:
    return isinstance(v, bool) or (isinstance(v, str) and v in _BOOL_STRINGS)


class TypeInferenceEngine:
    """Classifies a column from its raw cells.

    Rules are tried in priority order and a rule only wins when *every*
    non-missing value satisfies it: numeric, then boolean, then datetime.
    Anything else is categorical; a column with no values is unknown.
    """
    __slots__ = ()

    def infer(self, values: Iterable[Any]) -> ColumnType:
        present = [v for v in values if not is_missing(v)]
        if not present:
            return ColumnType.unknown
        if all(to_number(v) is not None for v in present):
            return ColumnType.numeric
        if all(_is_bool(v) for v in present):
            return ColumnType.boolean
        # "2024" parses as a date too; plain numbers never count as dates
        if all(to_number(v) is None and to_timestamp(v) is not None for v in present):
            return ColumnType.datetime
        return ColumnType.categorical

    def infer_all(self, row_set: RowSet, columns: Sequence[str] = None) -> Dict[str, ColumnType]:
        cols = row_set.columns if columns is None else columns
        return {c: self.infer(row_set.column_values(c)) for c in cols}

from __future__ import annotations

import logging
from typing import Any, Callable, List, Mapping, Optional, Sequence, Set, Union

from core.models import ColumnType, FilterSpec, RangeBound, Row
from core.values import to_number, to_text, to_timestamp

logger = logging.getLogger(__name__)

_Predicate = Callable[[Row], bool]


class RowFilterEngine:
    """Narrows a row set with a FilterSpec.

    Every entry is an independent predicate on the same source rows and the
    result is their conjunction, so entry order never matters. Entries with
    no values constrain nothing. Min/max bounds only apply to numeric and
    datetime columns; on any other column they are ignored.
    """
    __slots__ = ()

    def apply(self, rows: Sequence[Row], filter_spec: Union[FilterSpec, Mapping[str, Any], None],
              column_types: Mapping[str, ColumnType]) -> List[Row]:
        spec = filter_spec if isinstance(filter_spec, FilterSpec) else FilterSpec.from_mapping(filter_spec)
        rows = list(rows)
        known = set(column_types) if column_types else {k for r in rows for k in r}
        predicates = self._predicates(spec, column_types or {}, known)
        if not predicates:
            return rows
        return [r for r in rows if all(p(r) for p in predicates)]

    def _predicates(self, spec: FilterSpec, column_types: Mapping[str, ColumnType],
                    known: Set[str]) -> List[_Predicate]:
        preds: List[_Predicate] = []
        for col, allowed in spec.categories.items():
            if not allowed:
                continue
            if col not in known:
                logger.debug(f"Ignoring filter on unknown column {col!r}")
                continue
            preds.append(self._allow_list(col, allowed))
        for col, bound in spec.ranges.items():
            ctype = column_types.get(col)
            if ctype is not None:
                ctype = ColumnType(ctype)
            if ctype == ColumnType.numeric:
                cast = to_number
            elif ctype == ColumnType.datetime:
                cast = to_timestamp
            else:
                logger.debug(f"Ignoring range filter on {col!r} (type={ctype})")
                continue
            preds.extend(self._bounds(col, bound, cast))
        return preds

    @staticmethod
    def _allow_list(col: str, allowed: Sequence[str]) -> _Predicate:
        allowed_set = frozenset(str(a) for a in allowed)
        return lambda r: to_text(r.get(col)) in allowed_set

    @staticmethod
    def _bounds(col: str, bound: RangeBound, cast) -> List[_Predicate]:
        lo = _cast_bound(bound.min, cast)
        hi = _cast_bound(bound.max, cast)
        has_lo, has_hi = bound.min is not None, bound.max is not None
        if not (has_lo or has_hi):
            return []

        # a bound that fails to cast excludes every row, like any comparison with NaN
        def within(r: Row) -> bool:
            v = cast(r.get(col))
            return (not has_lo or _ge(v, lo)) and (not has_hi or _ge(hi, v))
        return [within]


def _cast_bound(value: Any, cast) -> Optional[Any]:
    if value is None:
        return None
    return cast(value)


def _ge(a: Any, b: Any) -> bool:
    if a is None or b is None:
        return False
    return a >= b

"""InsightGenerator: plain-language summary of column profiles."""
from __future__ import annotations

from typing import Dict, List, Optional, Sequence

from core.models import ColumnProfile, ColumnType


EMPTY_SELECTION_MESSAGE = "Select columns to generate insights."


def _fmt(value: Optional[float]) -> str:
    if value is None:
        return "n/a"
    return f"{value:,.2f}"


def _fmt_bound(value: Optional[float]) -> str:
    if value is None:
        return "n/a"
    if float(value).is_integer():
        return f"{int(value):,}"
    return f"{value:,.2f}"


class InsightGenerator:
    """Builds a short narrative from already-computed profiles.

    Works only on profiles, never on rows, so the text always matches the
    statistics shown next to it (filtered or not).
    """
    __slots__ = ()

    def sentences(self, profiles: Dict[str, ColumnProfile],
                  selected_columns: Sequence[str]) -> List[str]:
        out = []
        for col in selected_columns:
            p = profiles.get(col)
            if p is None:
                continue
            if p.type == ColumnType.numeric and p.mean is not None:
                out.append(
                    f'Column "{col}" has a mean of {_fmt(p.mean)} and a standard deviation '
                    f'of {_fmt(p.std)}. Values range from {_fmt_bound(p.min)} to {_fmt_bound(p.max)}.'
                )
            elif p.type in (ColumnType.categorical, ColumnType.boolean) and p.top_categories:
                top = p.top_categories[0]
                times = "time" if top.count == 1 else "times"
                out.append(f'In "{col}", the most common value is "{top.value}" '
                           f'({top.count} {times}).')
            if p.missing_count:
                out.append(f'"{col}" is missing {p.missing_count} value'
                           f'{"s" if p.missing_count != 1 else ""} '
                           f'({p.missing_percentage:.1f}%).')
        return out

    def narrative(self, profiles: Dict[str, ColumnProfile],
                  selected_columns: Sequence[str]) -> str:
        parts = self.sentences(profiles, selected_columns)
        if not parts:
            return EMPTY_SELECTION_MESSAGE
        return " ".join(parts)

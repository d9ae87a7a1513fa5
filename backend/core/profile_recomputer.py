from __future__ import annotations

from typing import Any, Dict, Mapping, NamedTuple, Optional, Union

from core.column_profiler import ColumnProfiler
from core.models import ColumnProfile, ColumnType, FilterSpec, RowSet
from core.row_filter import RowFilterEngine
from core.type_inference import TypeInferenceEngine


class Recomputation(NamedTuple):
    rows: RowSet
    profiles: Dict[str, ColumnProfile]


class ProfileRecomputer:
    """Filter, then re-profile every column against the surviving rows.

    This is the one place filtering and profiling are composed. The chart
    view, the analyze endpoint, dashboard tiles and the PDF export all call
    it, so a filtered profile is the same wherever it is shown.
    """
    __slots__ = ('_filter', '_profiler', '_inference')

    def __init__(self):
        self._inference = TypeInferenceEngine()
        self._filter = RowFilterEngine()
        self._profiler = ColumnProfiler(self._inference)

    def recompute(self, row_set: RowSet,
                  filter_spec: Union[FilterSpec, Mapping[str, Any], None] = None,
                  column_types: Optional[Mapping[str, ColumnType]] = None) -> Recomputation:
        # types always come from the unfiltered rows
        if column_types is None:
            column_types = self._inference.infer_all(row_set)
        filtered = row_set.with_rows(self._filter.apply(row_set.rows, filter_spec, column_types))
        profiles = self._profiler.profile(filtered.rows, filtered.columns, column_types)
        return Recomputation(rows=filtered, profiles=profiles)

"""AggregationEngine: turns rows into chart-ready records.

Three shapes come out of here:

  passthrough   mode ``none`` with measures: one record per source row holding
                the x value and each measure's raw value.
  counts        no measures (any mode): one ``{x, count}`` record per distinct
                x value, largest groups first.
  grouped       ``sum`` / ``avg`` / ``count`` with measures: one record per
                distinct x value, groups in first-seen order.

Output is capped so very large sheets stay drawable; the caps are display
limits, not part of the maths.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Sequence

from core.models import AggregatedRecord, AggregationMode, AggregationSpec, Row
from core.values import to_number, to_text

logger = logging.getLogger(__name__)

# Maximum records for raw passthrough and for simple counts
_MAX_RAW_RECORDS = 1000
# Maximum records once rows are grouped and reduced
_MAX_GROUPED_RECORDS = 500
COUNT_FIELD = 'count'


class AggregationEngine:
    """Groups rows by an x-axis key and reduces measure columns."""
    __slots__ = ()

    def aggregate(self, rows: Sequence[Row], spec: AggregationSpec) -> List[AggregatedRecord]:
        """Aggregate ``rows`` according to ``spec``.

        Args:
            rows: Source rows (usually already filtered).
            spec: x axis, measures and reduction mode.

        Returns:
            A list of records keyed by ``spec.x_axis`` and the measure names
            (or ``count``). Empty when no x axis is set or no row carries it.
        """
        x = spec.x_axis
        if not x or not rows:
            return []
        if not any(x in r for r in rows):
            logger.debug(f"x axis {x!r} not present in rows; nothing to aggregate")
            return []

        measures = list(spec.y_axis or [])
        mode = AggregationMode(spec.mode)

        if not measures:
            return self._counts(rows, x)
        if mode == AggregationMode.none:
            return self._passthrough(rows, x, measures)
        handler = _GROUP_HANDLERS[mode]
        return handler(self, rows, x, measures)

    # ── Shapes ────────────────────────────────────────────────────────────

    def _passthrough(self, rows: Sequence[Row], x: str, measures: List[str]) -> List[AggregatedRecord]:
        out = []
        for r in rows[:_MAX_RAW_RECORDS]:
            rec = {x: r.get(x)}
            for m in measures:
                rec[m] = r.get(m)
            out.append(rec)
        return out

    def _counts(self, rows: Sequence[Row], x: str) -> List[AggregatedRecord]:
        counts: Dict[str, int] = {}
        for r in rows:
            key = to_text(r.get(x))
            counts[key] = counts.get(key, 0) + 1
        # stable: equal counts keep first-seen order
        ranked = sorted(counts.items(), key=lambda kv: -kv[1])
        return [{x: k, COUNT_FIELD: c} for k, c in ranked[:_MAX_RAW_RECORDS]]

    def _group(self, rows: Sequence[Row], x: str) -> Dict[str, List[Row]]:
        groups: Dict[str, List[Row]] = {}
        for r in rows:
            groups.setdefault(to_text(r.get(x)), []).append(r)
        return groups

    def _reduce_numeric(self, rows: Sequence[Row], x: str, measures: List[str],
                        average: bool) -> List[AggregatedRecord]:
        out = []
        for key, members in list(self._group(rows, x).items())[:_MAX_GROUPED_RECORDS]:
            rec: Dict[str, Any] = {x: key}
            for m in measures:
                nums = [n for n in (to_number(r.get(m)) for r in members) if n is not None]
                total = sum(nums)
                if average:
                    # a group with no numeric values averages to 0, never NaN
                    rec[m] = total / len(nums) if nums else 0
                else:
                    rec[m] = total
            out.append(rec)
        return out

    def _sum(self, rows, x, measures):
        return self._reduce_numeric(rows, x, measures, average=False)

    def _avg(self, rows, x, measures):
        return self._reduce_numeric(rows, x, measures, average=True)

    def _count_per_measure(self, rows, x, measures):
        """Rows per group, repeated under every measure name regardless of value."""
        out = []
        for key, members in list(self._group(rows, x).items())[:_MAX_GROUPED_RECORDS]:
            rec: Dict[str, Any] = {x: key}
            for m in measures:
                rec[m] = len(members)
            out.append(rec)
        return out


_GROUP_HANDLERS = {
    AggregationMode.sum: AggregationEngine._sum,
    AggregationMode.avg: AggregationEngine._avg,
    AggregationMode.count: AggregationEngine._count_per_measure,
}

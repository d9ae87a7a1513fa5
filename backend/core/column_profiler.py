from __future__ import annotations

from collections import Counter
from typing import Any, Dict, List, Mapping, Optional, Sequence

import numpy as np

from core.models import CategoryCount, ColumnProfile, ColumnType, Row
from core.type_inference import TypeInferenceEngine
from core.values import is_missing, to_number, to_text

_TOP_CATEGORIES = 5


class ColumnProfiler:
    """Descriptive statistics per column over one row set.

    A profile is only valid for the rows it was computed from; after filtering,
    every column has to be profiled again (see ProfileRecomputer).
    """
    __slots__ = ('_inference',)

    def __init__(self, inference: Optional[TypeInferenceEngine] = None):
        self._inference = inference or TypeInferenceEngine()

    def profile(self, rows: Sequence[Row], columns: Sequence[str],
                prior_types: Optional[Mapping[str, ColumnType]] = None) -> Dict[str, ColumnProfile]:
        """Profile every column in ``columns``.

        Args:
            rows: The row set to describe.
            columns: Column names, in display order.
            prior_types: Types computed on the unfiltered row set. Filtering must
                not change a column's semantic type, so callers that profile a
                filtered subset pass the base types here.
        """
        prior_types = prior_types or {}
        n = len(rows)
        profiles: Dict[str, ColumnProfile] = {}
        for col in columns:
            values = [r.get(col) for r in rows]
            present = [v for v in values if not is_missing(v)]
            missing = n - len(present)
            ctype = prior_types.get(col)
            if ctype is None:
                ctype = self._inference.infer(present)
            else:
                ctype = ColumnType(ctype)

            p = ColumnProfile(
                name=col, type=ctype,
                missing_count=missing,
                missing_percentage=(missing / n * 100) if n else 0.0,
                unique_count=len({to_text(v) for v in present}),
            )
            if ctype == ColumnType.numeric:
                self._numeric_stats(p, present)
            elif ctype in (ColumnType.categorical, ColumnType.boolean):
                p.top_categories = self._top_categories(present)
            profiles[col] = p
        return profiles

    def _numeric_stats(self, p: ColumnProfile, present: List[Any]) -> None:
        nums = sorted(x for x in (to_number(v) for v in present) if x is not None)
        if not nums:
            return
        arr = np.asarray(nums, dtype=float)
        lo, hi = nums[0], nums[-1]
        # float rounding can push the mean a hair outside [min, max]
        mean = min(max(float(arr.mean()), lo), hi)
        p.min, p.max = lo, hi
        p.mean = mean
        # lower-middle element for even lengths, not the average of the two
        p.median = nums[len(nums) // 2]
        p.std = float(arr.std())  # population (ddof=0)

    def _top_categories(self, present: List[Any]) -> List[CategoryCount]:
        counts = Counter(to_text(v) for v in present)
        # sorted() is stable and Counter keeps first-seen order, so ties stay in order
        ranked = sorted(counts.items(), key=lambda kv: -kv[1])
        return [CategoryCount(value=k, count=c) for k, c in ranked[:_TOP_CATEGORIES]]

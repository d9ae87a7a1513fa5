from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from core.aggregation_engine import AggregationEngine
from core.dataset import Dataset
from core.insight_generator import InsightGenerator
from core.models import AggregatedRecord, ChartConfig, ColumnProfile
from core.profile_recomputer import ProfileRecomputer


@dataclass
class ChartView:
    config: ChartConfig
    records: List[AggregatedRecord] = field(default_factory=list)
    row_count: int = 0
    total_rows: int = 0
    profiles: Dict[str, ColumnProfile] = field(default_factory=dict)
    narrative: Optional[str] = None

    def to_dict(self, include_profiles: bool = True) -> Dict[str, Any]:
        out = {
            'config': self.config.to_dict(),
            'records': self.records,
            'row_count': self.row_count,
            'total_rows': self.total_rows,
        }
        if include_profiles:
            cols = self.config.display_columns or list(self.profiles)
            out['profiles'] = {c: self.profiles[c].to_dict() for c in cols if c in self.profiles}
        if self.narrative is not None:
            out['narrative'] = self.narrative
        return out


class ChartViewBuilder:
    """Everything a chart needs, computed from a dataset and a chart config.

    Chart previews, dashboard tiles and exports are all built here, on top of
    ProfileRecomputer, so filters behave the same everywhere.
    """
    __slots__ = ('_recomputer', '_aggregator', '_insights')

    def __init__(self):
        self._recomputer = ProfileRecomputer()
        self._aggregator = AggregationEngine()
        self._insights = InsightGenerator()

    def build(self, dataset: Optional[Dataset], config: ChartConfig,
              include_insights: bool = False) -> ChartView:
        if dataset is None:
            return ChartView(config=config)
        filtered, profiles = self._recomputer.recompute(
            dataset.row_set, config.filter_spec, dataset.column_types)
        records = self._aggregator.aggregate(filtered.rows, config.aggregation_spec)
        view = ChartView(config=config, records=records, row_count=len(filtered),
                         total_rows=dataset.row_count, profiles=profiles)
        if include_insights:
            view.narrative = self._insights.narrative(profiles, config.display_columns)
        return view

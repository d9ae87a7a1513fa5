"""Value types passed between the profiling, filtering and aggregation engines."""
from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

Row = Dict[str, Any]
AggregatedRecord = Dict[str, Any]

_MIN_SUFFIX = '_min'
_MAX_SUFFIX = '_max'


class ColumnType(str, enum.Enum):
    numeric = "numeric"
    categorical = "categorical"
    datetime = "datetime"
    boolean = "boolean"
    unknown = "unknown"


class AggregationMode(str, enum.Enum):
    none = "none"
    sum = "sum"
    avg = "avg"
    count = "count"


class ChartType(str, enum.Enum):
    bar = "bar"
    line = "line"
    area = "area"
    scatter = "scatter"
    pie = "pie"


@dataclass
class CategoryCount:
    value: str
    count: int

    def to_dict(self) -> dict:
        return {'value': self.value, 'count': self.count}


@dataclass
class ColumnProfile:
    """Statistics for one column over one specific row set."""
    name: str
    type: ColumnType
    missing_count: int
    missing_percentage: float
    unique_count: int
    min: Optional[float] = None
    max: Optional[float] = None
    mean: Optional[float] = None
    median: Optional[float] = None
    std: Optional[float] = None
    top_categories: Optional[List[CategoryCount]] = None

    def to_dict(self) -> dict:
        out = {
            'name': self.name,
            'type': self.type.value,
            'missing_count': self.missing_count,
            'missing_percentage': self.missing_percentage,
            'unique_count': self.unique_count,
        }
        if self.type == ColumnType.numeric and self.mean is not None:
            out.update({'min': self.min, 'max': self.max, 'mean': self.mean,
                        'median': self.median, 'std': self.std})
        if self.top_categories is not None:
            out['top_categories'] = [c.to_dict() for c in self.top_categories]
        return out


@dataclass(frozen=True)
class RowSet:
    """An immutable table: ordered column names plus ordered rows.

    Edits never touch the existing rows; they return a new RowSet.
    """
    columns: Tuple[str, ...] = ()
    rows: Tuple[Row, ...] = ()

    @classmethod
    def from_records(cls, records: Iterable[Mapping[str, Any]],
                     columns: Optional[Sequence[str]] = None) -> "RowSet":
        rows = tuple(dict(r) for r in records)
        if columns is None:
            columns = list(rows[0].keys()) if rows else []
        return cls(columns=tuple(columns), rows=rows)

    def __len__(self) -> int:
        return len(self.rows)

    def column_values(self, column: str) -> List[Any]:
        return [r.get(column) for r in self.rows]

    def with_rows(self, rows: Iterable[Row]) -> "RowSet":
        return RowSet(columns=self.columns, rows=tuple(rows))

    def rename_column(self, old: str, new: str) -> "RowSet":
        new = (new or '').strip()
        if old not in self.columns:
            raise ValueError(f"Column {old!r} does not exist.")
        if not new:
            raise ValueError("Column name cannot be empty.")
        if new != old and new in self.columns:
            raise ValueError(f"Column {new!r} already exists.")
        columns = tuple(new if c == old else c for c in self.columns)
        rows = tuple({(new if k == old else k): v for k, v in r.items()} for r in self.rows)
        return RowSet(columns=columns, rows=rows)

    def delete_row(self, index: int) -> "RowSet":
        if index < 0 or index >= len(self.rows):
            raise ValueError(f"Row index {index} is out of range (0..{len(self.rows) - 1}).")
        return self.with_rows(self.rows[:index] + self.rows[index + 1:])

    def drop_duplicate_rows(self) -> "RowSet":
        """Keep the first occurrence of every distinct row."""
        seen = set()
        kept = []
        for r in self.rows:
            # bool is tagged so True and 1 stay distinct
            key = tuple((isinstance(v, bool), v) for v in (r.get(c) for c in self.columns))
            if key in seen:
                continue
            seen.add(key)
            kept.append(r)
        return self.with_rows(kept)

    def to_dict(self) -> dict:
        return {'columns': list(self.columns), 'rows': [dict(r) for r in self.rows]}


@dataclass(frozen=True)
class RangeBound:
    min: Any = None
    max: Any = None


@dataclass
class FilterSpec:
    """Per-column allow-lists and inclusive min/max bounds.

    The wire form is a flat mapping: ``{"city": ["NY"], "age_min": ["30"]}``.
    Empty lists and absent keys mean "no constraint".
    """
    categories: Dict[str, List[str]] = field(default_factory=dict)
    ranges: Dict[str, RangeBound] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, mapping: Optional[Mapping[str, Any]]) -> "FilterSpec":
        spec = cls()
        for key, values in (mapping or {}).items():
            if values is None:
                continue
            if not isinstance(values, (list, tuple)):
                values = [values]
            if not values:
                continue
            if key.endswith(_MIN_SUFFIX) and len(key) > len(_MIN_SUFFIX):
                col = key[:-len(_MIN_SUFFIX)]
                bound = spec.ranges.get(col, RangeBound())
                spec.ranges[col] = RangeBound(min=values[0], max=bound.max)
            elif key.endswith(_MAX_SUFFIX) and len(key) > len(_MAX_SUFFIX):
                col = key[:-len(_MAX_SUFFIX)]
                bound = spec.ranges.get(col, RangeBound())
                spec.ranges[col] = RangeBound(min=bound.min, max=values[0])
            else:
                spec.categories[key] = [str(v) for v in values]
        return spec

    def to_mapping(self) -> Dict[str, List[Any]]:
        out: Dict[str, List[Any]] = {k: list(v) for k, v in self.categories.items()}
        for col, bound in self.ranges.items():
            if bound.min is not None:
                out[col + _MIN_SUFFIX] = [bound.min]
            if bound.max is not None:
                out[col + _MAX_SUFFIX] = [bound.max]
        return out

    def is_empty(self) -> bool:
        return not any(self.categories.values()) and not any(
            b.min is not None or b.max is not None for b in self.ranges.values())


@dataclass
class AggregationSpec:
    x_axis: Optional[str] = None
    y_axis: List[str] = field(default_factory=list)
    mode: AggregationMode = AggregationMode.none


@dataclass
class ChartConfig:
    """Persisted chart configuration.

    ``extra`` carries caller-specific display options (colours, labels) that
    the engines pass through untouched.
    """
    chart_type: ChartType = ChartType.bar
    x_axis: Optional[str] = None
    y_axis: List[str] = field(default_factory=list)
    aggregation: AggregationMode = AggregationMode.none
    selected_columns: List[str] = field(default_factory=list)
    filters: Dict[str, List[Any]] = field(default_factory=dict)
    extra: Dict[str, Any] = field(default_factory=dict)

    @property
    def aggregation_spec(self) -> AggregationSpec:
        return AggregationSpec(x_axis=self.x_axis, y_axis=list(self.y_axis), mode=self.aggregation)

    @property
    def filter_spec(self) -> FilterSpec:
        return FilterSpec.from_mapping(self.filters)

    @property
    def display_columns(self) -> List[str]:
        if self.selected_columns:
            return list(self.selected_columns)
        cols = [self.x_axis] if self.x_axis else []
        return cols + [y for y in self.y_axis if y not in cols]

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "ChartConfig":
        data = dict(data or {})
        y_axis = data.get('y_axis') or []
        if isinstance(y_axis, str):
            y_axis = [y_axis]
        try:
            chart_type = ChartType(data.get('chart_type') or ChartType.bar)
        except ValueError:
            chart_type = ChartType.bar
        try:
            mode = AggregationMode(data.get('aggregation') or AggregationMode.none)
        except ValueError:
            mode = AggregationMode.none
        return cls(
            chart_type=chart_type,
            x_axis=data.get('x_axis') or None,
            y_axis=list(y_axis),
            aggregation=mode,
            selected_columns=list(data.get('selected_columns') or []),
            filters=dict(data.get('filters') or {}),
            extra=dict(data.get('extra') or {}),
        )

    def to_dict(self) -> dict:
        return {
            'chart_type': self.chart_type.value,
            'x_axis': self.x_axis,
            'y_axis': list(self.y_axis),
            'aggregation': self.aggregation.value,
            'selected_columns': list(self.selected_columns),
            'filters': dict(self.filters),
            'extra': dict(self.extra),
        }

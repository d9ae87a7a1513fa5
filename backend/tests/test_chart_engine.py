import pytest

from core.chart_engine import ChartEngine, measure_fields
from core.models import AggregationMode, ChartConfig, ChartType, ColumnType

PNG_MAGIC = b"\x89PNG\r\n\x1a\n"

TYPES = {
    "date": ColumnType.datetime,
    "region": ColumnType.categorical,
    "paid": ColumnType.boolean,
    "units": ColumnType.numeric,
    "revenue": ColumnType.numeric,
}

RECORDS = [
    {"region": "North", "revenue": 120.5},
    {"region": "South", "revenue": 80},
    {"region": "East", "revenue": 0},
]


@pytest.fixture
def engine():
    return ChartEngine()


@pytest.mark.parametrize("chart_type", list(ChartType))
def test_render_png(engine, chart_type):
    config = ChartConfig(chart_type=chart_type, x_axis="region", y_axis=["revenue"])
    if chart_type == ChartType.scatter:
        records = [{"units": 1, "revenue": 2}, {"units": 3, "revenue": 5}]
        config = ChartConfig(chart_type=chart_type, x_axis="units", y_axis=["revenue"])
    else:
        records = RECORDS
    png = engine.render_png(records, config, title="Revenue")
    assert png.startswith(PNG_MAGIC)


def test_render_counts(engine):
    config = ChartConfig(chart_type=ChartType.bar, x_axis="region", aggregation=AggregationMode.count)
    png = engine.render_png([{"region": "N", "count": 3}], config)
    assert png.startswith(PNG_MAGIC)


def test_render_multiple_measures(engine):
    config = ChartConfig(chart_type=ChartType.bar, x_axis="region", y_axis=["a", "b"])
    png = engine.render_png([{"region": "N", "a": 1, "b": 2}, {"region": "S", "a": 3, "b": None}], config)
    assert png.startswith(PNG_MAGIC)


def test_nothing_to_draw(engine):
    assert engine.render_png([], ChartConfig(x_axis="region")) is None
    assert engine.render_png(RECORDS, ChartConfig()) is None
    pie = ChartConfig(chart_type=ChartType.pie, x_axis="region", y_axis=["revenue"])
    assert engine.render_png([{"region": "x", "revenue": 0}], pie) is None


def test_measure_fields():
    config = ChartConfig(x_axis="region", y_axis=["revenue", "gone"])
    assert measure_fields(RECORDS, config) == ["revenue"]
    assert measure_fields([{"region": "N", "count": 2}], config) == ["count"]


def test_to_csv(engine):
    config = ChartConfig(x_axis="region", y_axis=["revenue"])
    lines = engine.to_csv(RECORDS, config).splitlines()
    assert lines == ["region,revenue", "North,120.5", "South,80", "East,0"]


def test_to_csv_without_axis(engine):
    assert engine.to_csv(RECORDS, ChartConfig()) == ""


@pytest.mark.parametrize("selected, chart_type, x, y, mode", [
    (["date", "revenue"], ChartType.line, "date", ["revenue"], AggregationMode.sum),
    (["region", "units", "revenue"], ChartType.bar, "region", ["units", "revenue"], AggregationMode.sum),
    (["paid", "units"], ChartType.bar, "paid", ["units"], AggregationMode.sum),
    (["units", "revenue"], ChartType.scatter, "units", ["revenue"], AggregationMode.none),
    (["region"], ChartType.bar, "region", [], AggregationMode.count),
    (["units"], ChartType.bar, "units", [], AggregationMode.count),
    (["date"], ChartType.bar, "date", [], AggregationMode.count),
])
def test_suggest_config(engine, selected, chart_type, x, y, mode):
    config = engine.suggest_config(selected, TYPES)
    assert (config.chart_type, config.x_axis, config.y_axis, config.aggregation) == (chart_type, x, y, mode)
    assert config.selected_columns == selected


def test_suggest_nothing_selected(engine):
    assert engine.suggest_config([], TYPES) is None

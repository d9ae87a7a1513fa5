import pytest

from core.aggregation_engine import AggregationEngine
from core.models import AggregationMode, AggregationSpec, RowSet
from core.row_filter import RowFilterEngine
from core.type_inference import TypeInferenceEngine


@pytest.fixture
def engine():
    return AggregationEngine()


def _spec(x="city", y=("sales",), mode=AggregationMode.sum):
    return AggregationSpec(x_axis=x, y_axis=list(y), mode=mode)


def test_sum_keeps_first_seen_order(engine, sales_rows):
    assert engine.aggregate(sales_rows, _spec()) == [
        {"city": "NY", "sales": 30},
        {"city": "LA", "sales": 5},
    ]


def test_avg(engine, sales_rows):
    assert engine.aggregate(sales_rows, _spec(mode=AggregationMode.avg)) == [
        {"city": "NY", "sales": 15},
        {"city": "LA", "sales": 5},
    ]


def test_avg_of_group_without_numbers_is_zero(engine):
    rows = [{"city": "NY", "sales": "n/a"}, {"city": "LA", "sales": 4}]
    out = engine.aggregate(rows, _spec(mode=AggregationMode.avg))
    assert out == [{"city": "NY", "sales": 0}, {"city": "LA", "sales": 4}]


def test_sum_skips_non_numeric(engine):
    rows = [{"city": "NY", "sales": "7"}, {"city": "NY", "sales": None}, {"city": "NY", "sales": True}]
    assert engine.aggregate(rows, _spec()) == [{"city": "NY", "sales": 7}]


def test_count_mode_with_measures(engine, sales_rows):
    out = engine.aggregate(sales_rows, _spec(y=("sales", "other"), mode=AggregationMode.count))
    assert out == [
        {"city": "NY", "sales": 2, "other": 2},
        {"city": "LA", "sales": 1, "other": 1},
    ]


@pytest.mark.parametrize("mode", list(AggregationMode))
def test_no_measures_gives_counts_sorted_desc(engine, mode):
    rows = [{"c": "b"}, {"c": "a"}, {"c": "a"}, {"c": "b"}, {"c": "z"}, {"c": "a"}]
    out = engine.aggregate(rows, _spec(x="c", y=(), mode=mode))
    assert out == [{"c": "a", "count": 3}, {"c": "b", "count": 2}, {"c": "z", "count": 1}]


def test_passthrough(engine, sales_rows):
    out = engine.aggregate(sales_rows, _spec(mode=AggregationMode.none))
    assert out == sales_rows


def test_group_keys_are_strings(engine):
    rows = [{"year": 2024, "v": 1}, {"year": 2024.0, "v": 2}, {"year": None, "v": 3}]
    out = engine.aggregate(rows, _spec(x="year", y=("v",)))
    assert out == [{"year": "2024", "v": 3}, {"year": "null", "v": 3}]


@pytest.mark.parametrize("x", [None, "", "missing"])
def test_no_or_stale_x_axis_is_empty(engine, sales_rows, x):
    assert engine.aggregate(sales_rows, _spec(x=x)) == []


def test_empty_rows(engine):
    assert engine.aggregate([], _spec()) == []


def test_output_caps(engine):
    rows = [{"k": i, "v": i} for i in range(1500)]
    assert len(engine.aggregate(rows, _spec(x="k", y=("v",), mode=AggregationMode.none))) == 1000
    assert len(engine.aggregate(rows, _spec(x="k", y=(), mode=AggregationMode.none))) == 1000
    assert len(engine.aggregate(rows, _spec(x="k", y=("v",), mode=AggregationMode.sum))) == 500


@pytest.mark.parametrize("spec", [
    _spec(),
    _spec(mode=AggregationMode.avg),
    _spec(mode=AggregationMode.count),
    _spec(mode=AggregationMode.none),
    _spec(y=()),
])
def test_empty_filter_leaves_records_unchanged(engine, sales_rows, spec):
    types = TypeInferenceEngine().infer_all(RowSet.from_records(sales_rows, ["city", "sales"]))
    unfiltered = RowFilterEngine().apply(sales_rows, {}, types)
    assert engine.aggregate(unfiltered, spec) == engine.aggregate(sales_rows, spec)
    assert engine.aggregate(unfiltered, spec) != []

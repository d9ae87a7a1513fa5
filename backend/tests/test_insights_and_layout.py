import pytest

from core.column_profiler import ColumnProfiler
from core.dashboard_layout import normalize_layout
from core.insight_generator import EMPTY_SELECTION_MESSAGE, InsightGenerator

ROWS = [
    {"region": "North", "revenue": 10},
    {"region": "North", "revenue": 20},
    {"region": "South", "revenue": None},
]


@pytest.fixture
def profiles():
    return ColumnProfiler().profile(ROWS, ["region", "revenue"])


def test_numeric_sentence(profiles):
    text = InsightGenerator().narrative(profiles, ["revenue"])
    assert 'Column "revenue" has a mean of 15.00 and a standard deviation of 5.00.' in text
    assert "Values range from 10 to 20." in text
    assert '"revenue" is missing 1 value (33.3%).' in text


def test_categorical_sentence(profiles):
    text = InsightGenerator().narrative(profiles, ["region"])
    assert text == 'In "region", the most common value is "North" (2 times).'


def test_no_selection(profiles):
    assert InsightGenerator().narrative(profiles, []) == EMPTY_SELECTION_MESSAGE
    assert InsightGenerator().narrative(profiles, ["gone"]) == EMPTY_SELECTION_MESSAGE


def test_sentences_follow_selection_order(profiles):
    parts = InsightGenerator().sentences(profiles, ["region", "revenue"])
    assert parts[0].startswith('In "region"')
    assert parts[1].startswith('Column "revenue"')


@pytest.mark.parametrize("layout, index, expected", [
    (None, 0, {"x": 0, "y": 0, "w": 6, "h": 4}),
    ({}, 3, {"x": 0, "y": 12, "w": 6, "h": 4}),
    ({"x": 6, "y": 2, "w": 6, "h": 3}, 0, {"x": 6, "y": 2, "w": 6, "h": 3}),
    ({"w": 1, "h": 0}, 0, {"x": 0, "y": 0, "w": 2, "h": 2}),
    ({"w": 40}, 1, {"x": 0, "y": 4, "w": 12, "h": 4}),
    ({"x": 10, "w": 6}, 0, {"x": 6, "y": 0, "w": 6, "h": 4}),
    ({"x": "3", "y": "bad"}, 2, {"x": 3, "y": 8, "w": 6, "h": 4}),
])
def test_normalize_layout(layout, index, expected):
    assert normalize_layout(layout, index) == expected

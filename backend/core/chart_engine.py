"""ChartEngine: draws aggregated records and picks sensible chart defaults.

Design principles:
  - Works only from AggregatedRecord lists (the output of AggregationEngine),
    never from raw rows, so whatever is drawn is exactly what the chart view
    endpoint returns.
  - Self-skipping: ``render_png`` returns None when there is nothing to draw,
    so callers never need to check availability themselves.
  - Returns PNG bytes for direct download, base64 embedding or the
    dashboard PDF.

Usage:
    engine = ChartEngine()
    png = engine.render_png(records, config)   # bytes | None
    csv_text = engine.to_csv(records, config)
"""
from __future__ import annotations

import io
import logging
from typing import Any, List, Mapping, Optional, Sequence

import pandas as pd

from core.aggregation_engine import COUNT_FIELD
from core.models import AggregatedRecord, AggregationMode, ChartConfig, ChartType, ColumnType
from core.values import to_number, to_text

logger = logging.getLogger(__name__)

# ── Colour palette ───────────────────────────────────────────────────────────
_MUTED      = "#6B7280"
_EDGE       = "#E5E7EB"
_DARK       = "#111827"

_SERIES = ["#3b82f6", "#14b8a6", "#f59e0b", "#ef4444", "#8b5cf6"]

_PIE_MAX_SLICES = 10
_LABEL_MAX_CHARS = 18

# DPI and figure size (width × height in inches)
_DPI  = 130
_WIDE = (7.2, 3.6)


def _mpl():
    """Lazy import matplotlib with non-interactive backend."""
    import matplotlib
    matplotlib.use("Agg")
    import matplotlib.pyplot as plt
    return plt


def _fig_to_bytes(fig) -> bytes:
    """Render a matplotlib figure to PNG bytes and close the figure."""
    plt = _mpl()
    buf = io.BytesIO()
    fig.savefig(buf, format="png", dpi=_DPI, bbox_inches="tight",
                facecolor=fig.get_facecolor())
    plt.close(fig)
    buf.seek(0)
    return buf.read()


def _styled_fig(w, h, bg="#FAFAFA"):
    """Create a consistently styled figure."""
    plt = _mpl()
    fig, ax = plt.subplots(figsize=(w, h), facecolor=bg)
    ax.set_facecolor(bg)
    ax.spines["top"].set_visible(False)
    ax.spines["right"].set_visible(False)
    ax.spines["left"].set_color(_EDGE)
    ax.spines["bottom"].set_color(_EDGE)
    ax.tick_params(colors=_MUTED, labelsize=8)
    ax.grid(axis="y", color=_EDGE, linewidth=0.6, linestyle="--", alpha=0.7)
    ax.set_axisbelow(True)
    return fig, ax


def _short(label: Any) -> str:
    s = to_text(label)
    return s if len(s) <= _LABEL_MAX_CHARS else s[:_LABEL_MAX_CHARS - 1] + "…"


def _num(v: Any) -> float:
    n = to_number(v)
    return float(n) if n is not None else 0.0


def measure_fields(records: Sequence[AggregatedRecord], config: ChartConfig) -> List[str]:
    """Value fields present in the records: the measures, or the synthetic count."""
    if config.y_axis and records and any(y in records[0] for y in config.y_axis):
        return [y for y in config.y_axis if y in records[0]]
    return [COUNT_FIELD]


# ═══════════════════════════════════════════════════════════════════════════════
#  ChartEngine
# ═══════════════════════════════════════════════════════════════════════════════
class ChartEngine:
    """Renders chart PNGs, exports chart data and suggests chart configs."""
    __slots__ = ()

    # ── Smart defaults ────────────────────────────────────────────────────

    def suggest_config(self, selected_columns: Sequence[str],
                       column_types: Mapping[str, ColumnType]) -> Optional[ChartConfig]:
        """Choose chart type and axes for a column selection.

        Dates with numbers become a line chart, categories with numbers a
        summed bar chart, two numbers a scatter plot; a lone category or a
        lone number becomes a bar chart of counts.
        """
        if not selected_columns:
            return None

        def of(*types):
            return [c for c in selected_columns if column_types.get(c) in types]

        numerics = of(ColumnType.numeric)
        categoricals = of(ColumnType.categorical, ColumnType.boolean)
        datetimes = of(ColumnType.datetime)
        selected = list(selected_columns)

        if datetimes and numerics:
            return ChartConfig(chart_type=ChartType.line, x_axis=datetimes[0], y_axis=numerics,
                               aggregation=AggregationMode.sum, selected_columns=selected)
        if categoricals and numerics:
            return ChartConfig(chart_type=ChartType.bar, x_axis=categoricals[0], y_axis=numerics,
                               aggregation=AggregationMode.sum, selected_columns=selected)
        if len(numerics) >= 2:
            return ChartConfig(chart_type=ChartType.scatter, x_axis=numerics[0], y_axis=[numerics[1]],
                               aggregation=AggregationMode.none, selected_columns=selected)
        if categoricals:
            return ChartConfig(chart_type=ChartType.bar, x_axis=categoricals[0],
                               aggregation=AggregationMode.count, selected_columns=selected)
        if len(numerics) == 1:
            return ChartConfig(chart_type=ChartType.bar, x_axis=numerics[0],
                               aggregation=AggregationMode.count, selected_columns=selected)
        return ChartConfig(chart_type=ChartType.bar, x_axis=selected[0],
                           aggregation=AggregationMode.count, selected_columns=selected)

    # ── Export ────────────────────────────────────────────────────────────

    def to_csv(self, records: Sequence[AggregatedRecord], config: ChartConfig) -> str:
        """CSV of the x axis and value fields, one line per record."""
        if not config.x_axis:
            return ""
        fields = [config.x_axis] + measure_fields(records, config)
        df = pd.DataFrame([{f: r.get(f) for f in fields} for r in records], columns=fields, dtype=object)
        return df.to_csv(index=False)

    # ── Rendering ─────────────────────────────────────────────────────────

    def render_png(self, records: Sequence[AggregatedRecord], config: ChartConfig,
                   title: str = "") -> Optional[bytes]:
        """Draw ``records`` as ``config.chart_type``. None when nothing to draw."""
        if not records or not config.x_axis:
            return None
        fields = measure_fields(records, config)
        colors = config.extra.get('colors') or _SERIES
        logger.debug(f"Rendering {config.chart_type.value} chart: {len(records)} records, fields={fields}")
        if config.chart_type == ChartType.pie:
            return self._pie(records, config.x_axis, fields[0], colors, title)
        if config.chart_type == ChartType.scatter:
            return self._scatter(records, config.x_axis, fields[0], colors, title)
        return self._series(records, config, fields, colors, title)

    def _finish(self, fig, ax, title: str, xlabel: str = "", ylabel: str = "") -> bytes:
        if title:
            ax.set_title(title, fontsize=10, color=_DARK, loc="left", fontweight="bold")
        if xlabel:
            ax.set_xlabel(xlabel, fontsize=8, color=_MUTED)
        if ylabel:
            ax.set_ylabel(ylabel, fontsize=8, color=_MUTED)
        return _fig_to_bytes(fig)

    def _series(self, records, config: ChartConfig, fields: List[str], colors, title: str) -> bytes:
        fig, ax = _styled_fig(*_WIDE)
        labels = [_short(r.get(config.x_axis)) for r in records]
        positions = list(range(len(records)))
        n = len(fields)
        for i, f in enumerate(fields):
            values = [_num(r.get(f)) for r in records]
            color = colors[i % len(colors)]
            if config.chart_type == ChartType.line:
                ax.plot(positions, values, color=color, linewidth=1.8, label=f)
            elif config.chart_type == ChartType.area:
                ax.fill_between(positions, values, color=color, alpha=0.3)
                ax.plot(positions, values, color=color, linewidth=1.2, label=f)
            else:
                width = 0.8 / n
                offset = (i - (n - 1) / 2) * width
                ax.bar([p + offset for p in positions], values, width=width, color=color, label=f)

        step = max(1, len(labels) // 20)
        ax.set_xticks(positions[::step])
        ax.set_xticklabels(labels[::step], rotation=45 if len(labels) > 6 else 0,
                           ha="right" if len(labels) > 6 else "center")
        if n > 1:
            ax.legend(fontsize=7, frameon=False)
        ylabel = fields[0] if n == 1 else ""
        return self._finish(fig, ax, title, config.x_axis, ylabel)

    def _scatter(self, records, x: str, y: str, colors, title: str) -> Optional[bytes]:
        points = [(to_number(r.get(x)), to_number(r.get(y))) for r in records]
        points = [(a, b) for a, b in points if a is not None and b is not None]
        if not points:
            return None
        fig, ax = _styled_fig(*_WIDE)
        ax.scatter([p[0] for p in points], [p[1] for p in points],
                   s=14, color=colors[0], alpha=0.75, edgecolors="none")
        return self._finish(fig, ax, title, x, y)

    def _pie(self, records, x: str, field: str, colors, title: str) -> Optional[bytes]:
        slices = [(_short(r.get(x)), _num(r.get(field))) for r in records]
        slices = sorted((s for s in slices if s[1] > 0), key=lambda s: -s[1])[:_PIE_MAX_SLICES]
        if not slices:
            return None
        plt = _mpl()
        fig, ax = plt.subplots(figsize=(4.8, 3.6), facecolor="#FAFAFA")
        ax.pie([s[1] for s in slices], labels=[s[0] for s in slices],
               colors=[colors[i % len(colors)] for i in range(len(slices))],
               wedgeprops={"width": 0.45, "edgecolor": "white"},
               textprops={"fontsize": 7, "color": _MUTED})
        ax.set_aspect("equal")
        return self._finish(fig, ax, title)

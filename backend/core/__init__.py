from core.type_inference import TypeInferenceEngine
from core.column_profiler import ColumnProfiler
from core.row_filter import RowFilterEngine
from core.aggregation_engine import AggregationEngine
from core.profile_recomputer import ProfileRecomputer
from core.sheet_decoder import SheetDecoder
from core.chart_engine import ChartEngine
from core.chart_view import ChartViewBuilder
from core.insight_generator import InsightGenerator
from core.pdf_generator import DashboardPDFGenerator

__all__ = [
    "TypeInferenceEngine",
    "ColumnProfiler",
    "RowFilterEngine",
    "AggregationEngine",
    "ProfileRecomputer",
    "SheetDecoder",
    "ChartEngine",
    "ChartViewBuilder",
    "InsightGenerator",
    "DashboardPDFGenerator",
]

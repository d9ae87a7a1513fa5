from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Mapping, Optional

from core.models import ColumnType, RowSet
from core.type_inference import TypeInferenceEngine

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Dataset:
    """The row set a project owns, plus what is known about where it came from.

    Column types are cached here and recomputed every time the rows are
    replaced, so they can never describe a different row set. Profiles are
    not stored at all; they are derived on demand.
    """
    row_set: RowSet
    column_types: Dict[str, ColumnType] = field(default_factory=dict)
    file_name: str = ''
    sheet_names: List[str] = field(default_factory=list)
    active_sheet: Optional[str] = None
    header_mode: bool = True

    @classmethod
    def build(cls, row_set: RowSet, **meta) -> "Dataset":
        return cls(row_set=row_set, column_types=TypeInferenceEngine().infer_all(row_set), **meta)

    @property
    def columns(self) -> List[str]:
        return list(self.row_set.columns)

    @property
    def row_count(self) -> int:
        return len(self.row_set)

    def replace_rows(self, row_set: RowSet) -> "Dataset":
        return replace(self, row_set=row_set,
                       column_types=TypeInferenceEngine().infer_all(row_set))

    def rename_column(self, old: str, new: str) -> "Dataset":
        return self.replace_rows(self.row_set.rename_column(old, new))

    def delete_row(self, index: int) -> "Dataset":
        return self.replace_rows(self.row_set.delete_row(index))

    def drop_duplicate_rows(self) -> "Dataset":
        return self.replace_rows(self.row_set.drop_duplicate_rows())

    # ── Persistence ──────────────────────────────────────────────────────

    def to_document(self) -> dict:
        return {
            'file_name': self.file_name,
            'sheet_names': list(self.sheet_names),
            'active_sheet': self.active_sheet,
            'header_mode': self.header_mode,
            'columns': list(self.row_set.columns),
            'rows': [dict(r) for r in self.row_set.rows],
            'column_types': {c: t.value for c, t in self.column_types.items()},
            'row_count': self.row_count,
        }

    @classmethod
    def from_document(cls, doc: Optional[Mapping[str, Any]]) -> Optional["Dataset"]:
        if not doc:
            return None
        row_set = RowSet.from_records(doc.get('rows') or [], doc.get('columns') or None)
        meta = dict(
            file_name=doc.get('file_name') or '',
            sheet_names=list(doc.get('sheet_names') or []),
            active_sheet=doc.get('active_sheet'),
            header_mode=bool(doc.get('header_mode', True)),
        )
        stored = doc.get('column_types') or {}
        if set(stored) != set(row_set.columns):
            logger.info("Stored column types do not match columns; re-inferring")
            return cls.build(row_set, **meta)
        try:
            types = {c: ColumnType(stored[c]) for c in row_set.columns}
        except ValueError:
            return cls.build(row_set, **meta)
        return cls(row_set=row_set, column_types=types, **meta)

from __future__ import annotations

from typing import Any, Dict, Mapping, Optional

GRID_COLS = 12
DEFAULT_W = 6
DEFAULT_H = 4
MIN_SIZE = 2


def _int(value: Any) -> Optional[int]:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def normalize_layout(layout: Optional[Mapping[str, Any]], index: int = 0) -> Dict[str, int]:
    """Fill in and clamp a dashboard tile position on the 12-column grid.

    Missing fields default to a stack of half-width tiles: ``x=0``,
    ``y=index*4``, ``w=6``, ``h=4``.
    """
    layout = layout or {}
    x = _int(layout.get('x'))
    y = _int(layout.get('y'))
    w = _int(layout.get('w'))
    h = _int(layout.get('h'))
    w = DEFAULT_W if w is None else min(max(w, MIN_SIZE), GRID_COLS)
    h = DEFAULT_H if h is None else max(h, MIN_SIZE)
    x = 0 if x is None else min(max(x, 0), GRID_COLS - w)
    y = index * DEFAULT_H if y is None else max(y, 0)
    return {'x': x, 'y': y, 'w': w, 'h': h}

# coldtrend/edit/__init__.py
"""
Interaction engine: gestures and selections that rewrite device series.

Editors hold no gesture state; `begin` returns a session the caller keeps
and passes back to `move` / `release` / `cancel`.
"""

from .surface import (
    ChartSurface,
    SeriesStore,
    HitResult,
    PointerEvent,
    PathPoint,
    SeriesUpdate,
    SeriesMap,
    SessionState,
)
from .history import HistoryManager
from .commit import SeriesCommitter, CommitReport
from .drag import PointDragEditor, DragSession
from .trajectory import TrajectoryEditor, TrajectorySession, resample_path
from .paste import (
    PasteEditor,
    CopiedBlock,
    Selection,
    SelectionAverage,
    adjust_by_trend,
    align_selection,
    copy_selection,
    selection_average,
)


__all__ = [
    # collaborators
    "ChartSurface",
    "SeriesStore",
    "HitResult",
    "PointerEvent",
    "PathPoint",
    "SeriesUpdate",
    "SeriesMap",
    "SessionState",

    # commit / history
    "HistoryManager",
    "SeriesCommitter",
    "CommitReport",

    # gestures
    "PointDragEditor",
    "DragSession",
    "TrajectoryEditor",
    "TrajectorySession",
    "resample_path",

    # selections
    "PasteEditor",
    "CopiedBlock",
    "Selection",
    "SelectionAverage",
    "adjust_by_trend",
    "align_selection",
    "copy_selection",
    "selection_average",
]

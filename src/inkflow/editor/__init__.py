"""Editor-side state: selections, the document model and undo/redo history."""

from .document_model import DocumentState, SelectionRange
from .history import HistoryEntry, ReplayState, UndoRedoManager
from .scheduling import AsyncioScheduler, Scheduler
from .selection_context import SelectionContextExtractor, SelectionInfo, capture_selection

__all__ = [
    "AsyncioScheduler",
    "DocumentState",
    "HistoryEntry",
    "ReplayState",
    "Scheduler",
    "SelectionContextExtractor",
    "SelectionInfo",
    "SelectionRange",
    "UndoRedoManager",
    "capture_selection",
]

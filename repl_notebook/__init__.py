# repl_notebook package
#
# Notebook-style front end for interactive interpreters: a child process
# whose output fills stacked output cells, with an editable input cell
# below each one.
#
#   from repl_notebook import NotebookPanel, NotebookConfig
#
#   panel = NotebookPanel(NotebookConfig(command="python3 -i -u"))
#   panel.start()            # inside a running asyncio loop
#   panel.on_text_input("print(1)")
#   panel.submit()

from .cells import CellSequence, collapse_submission
from .config import NotebookConfig, load_config
from .errors import NotebookError, SessionClosed, SpawnError, StreamReadError
from .layout import CellRect, LayoutEngine, LayoutMetrics, compute_layout, hit_test
from .newline_merge import MergeStep, NewlineMerger
from .panel import NotebookPanel, PanelFrame
from .process import ProcessHandle, spawn
from .session import Session
from .text_cell import CellRole, InlineTextDisplay, TextCell

__version__ = "0.1.0"

__all__ = [
    "CellRect",
    "CellRole",
    "CellSequence",
    "InlineTextDisplay",
    "LayoutEngine",
    "LayoutMetrics",
    "MergeStep",
    "NewlineMerger",
    "NotebookConfig",
    "NotebookError",
    "NotebookPanel",
    "PanelFrame",
    "ProcessHandle",
    "Session",
    "SessionClosed",
    "SpawnError",
    "StreamReadError",
    "TextCell",
    "collapse_submission",
    "compute_layout",
    "hit_test",
    "load_config",
    "spawn",
]

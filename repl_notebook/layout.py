"""Variable-height layout of notebook cells.

Cells are stacked top to bottom inside the panel, each one as tall as its
text plus padding, separated by a fixed margin:

    margin_y
    +--------------------+   y
    | padding            |
    | line 1             |   height = line_count * line_height + 2 * padding_y
    | line 2             |
    +--------------------+
    margin_y
    +--------------------+
    ...

Geometry is never stored: rectangles are recomputed from the cells' line
counts and the scroll offset on every pass. Rectangles use half-open
bounds ([x, x + width), [y, y + height)) so no point belongs to two cells,
even with a zero margin.
"""

from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple


@dataclass(frozen=True)
class LayoutMetrics:
    """Fixed spacing of the notebook layout, in panel units.

    Attributes:
        margin_x: Gap between the panel edge and the cell frames.
        margin_y: Gap above the first cell and between consecutive cells.
        padding_x: Horizontal space between a frame edge and its text
            (includes the border).
        padding_y: Vertical space between a frame edge and its text
            (includes the border).
        line_height: Height of one text line.
        border: Thickness of the frame drawn inside the padding.
    """
    margin_x: int = 1
    margin_y: int = 1
    padding_x: int = 2
    padding_y: int = 1
    line_height: int = 1
    border: int = 1


@dataclass(frozen=True)
class CellRect:
    """On-screen rectangle of one cell."""
    x: int
    y: int
    width: int
    height: int
    pad_x: int
    pad_y: int

    @property
    def right(self) -> int:
        return self.x + self.width

    @property
    def bottom(self) -> int:
        return self.y + self.height

    def contains(self, x: int, y: int) -> bool:
        return self.x <= x < self.right and self.y <= y < self.bottom

    def inner(self) -> Tuple[int, int, int, int]:
        """Content area as (x, y, width, height)."""
        return (
            self.x + self.pad_x,
            self.y + self.pad_y,
            max(0, self.width - 2 * self.pad_x),
            max(0, self.height - 2 * self.pad_y),
        )

    def to_inner(self, x: int, y: int, line_height: int = 1) -> Tuple[int, int]:
        """Convert a panel point to a (row, column) inside the cell's text."""
        return (y - self.y - self.pad_y) // line_height, x - self.x - self.pad_x


def cell_height(line_count: int, metrics: LayoutMetrics) -> int:
    return line_count * metrics.line_height + 2 * metrics.padding_y


def compute_layout(
    line_counts: Sequence[int],
    metrics: LayoutMetrics,
    viewport_width: int,
    x_offset: int = 0,
    y_offset: int = 0,
) -> List[CellRect]:
    """Compute one rectangle per cell.

    Args:
        line_counts: Number of text lines of each cell, in display order.
        metrics: Margins, padding and line height.
        viewport_width: Width of the panel.
        x_offset: Horizontal content offset.
        y_offset: Vertical content offset (negative scroll offset).

    Returns:
        Rectangles stacked top to bottom with ``margin_y`` gaps.
    """
    x = metrics.margin_x + x_offset
    y = metrics.margin_y + y_offset
    width = max(0, viewport_width - 2 * metrics.margin_x)

    rects: List[CellRect] = []
    for count in line_counts:
        height = cell_height(count, metrics)
        rects.append(CellRect(x, y, width, height, metrics.padding_x, metrics.padding_y))
        y += height + metrics.margin_y
    return rects


def hit_test(rects: Sequence[CellRect], x: int, y: int) -> Optional[int]:
    """Index of the first rectangle containing (x, y), or None."""
    for index, rect in enumerate(rects):
        if rect.contains(x, y):
            return index
    return None


def scrollable_height(rects: Sequence[CellRect]) -> int:
    """Height of the whole content, measured from the unscrolled origin."""
    if not rects:
        return 0
    return rects[-1].bottom


class LayoutEngine:
    """Scroll state plus layout queries for one panel."""

    def __init__(self, metrics: Optional[LayoutMetrics] = None):
        self.metrics = metrics or LayoutMetrics()
        self.viewport_width = 0
        self.viewport_height = 0
        self.scroll_y = 0

    def set_viewport(self, width: int, height: int) -> None:
        self.viewport_width = max(0, width)
        self.viewport_height = max(0, height)

    def content_layout(self, line_counts: Sequence[int]) -> List[CellRect]:
        """Rectangles before the scroll offset is applied."""
        return compute_layout(line_counts, self.metrics, self.viewport_width)

    def layout(self, line_counts: Sequence[int]) -> List[CellRect]:
        """Rectangles as currently drawn on screen."""
        return compute_layout(line_counts, self.metrics, self.viewport_width, y_offset=-self.scroll_y)

    def max_scroll(self, line_counts: Sequence[int]) -> int:
        content = scrollable_height(self.content_layout(line_counts))
        return max(0, content - self.viewport_height)

    def clamp_scroll(self, line_counts: Sequence[int]) -> None:
        self.scroll_y = max(0, min(self.scroll_y, self.max_scroll(line_counts)))

    def scroll_by(self, dy: int, line_counts: Sequence[int]) -> None:
        self.scroll_y += dy
        self.clamp_scroll(line_counts)

    def scroll_to_reveal(self, index: int, line_counts: Sequence[int]) -> None:
        """Scroll past the bottom edge of cell ``index``.

        The offset is the cell's unscrolled bottom edge, clamped to the
        scrollable range. Revealing the trailing output cell therefore ends
        at the bottom of the content, with the input cell below it in view.
        """
        rects = self.content_layout(line_counts)
        if not 0 <= index < len(rects):
            return
        self.scroll_y = rects[index].bottom
        self.clamp_scroll(line_counts)

    def cell_at(self, x: int, y: int, line_counts: Sequence[int]) -> Optional[int]:
        return hit_test(self.layout(line_counts), x, y)

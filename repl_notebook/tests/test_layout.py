"""Tests for cell layout, hit-testing and scrolling."""

import pytest

from repl_notebook.layout import (
    CellRect,
    LayoutEngine,
    LayoutMetrics,
    cell_height,
    compute_layout,
    hit_test,
    scrollable_height,
)


METRICS = LayoutMetrics(margin_x=1, margin_y=1, padding_x=2, padding_y=1, line_height=1)


class TestCellRect:
    """Tests for rectangle geometry."""

    def test_half_open_bounds(self):
        rect = CellRect(x=1, y=1, width=10, height=3, pad_x=2, pad_y=1)
        assert rect.contains(1, 1)
        assert rect.contains(10, 3)
        assert not rect.contains(11, 1)
        assert not rect.contains(1, 4)
        assert not rect.contains(0, 1)

    def test_inner(self):
        rect = CellRect(x=1, y=1, width=10, height=4, pad_x=2, pad_y=1)
        assert rect.inner() == (3, 2, 6, 2)

    def test_to_inner(self):
        rect = CellRect(x=1, y=5, width=10, height=4, pad_x=2, pad_y=1)
        assert rect.to_inner(3, 6) == (0, 0)
        assert rect.to_inner(7, 7) == (1, 4)


class TestComputeLayout:
    """Tests for stacking cells vertically."""

    def test_cell_height(self):
        assert cell_height(1, METRICS) == 3
        assert cell_height(4, METRICS) == 6
        assert cell_height(2, LayoutMetrics(padding_y=2, line_height=2)) == 8

    def test_stacked_with_margins(self):
        rects = compute_layout([1, 2, 1], METRICS, viewport_width=20)
        assert [(r.y, r.height) for r in rects] == [(1, 3), (5, 4), (10, 3)]
        assert all(r.x == 1 and r.width == 18 for r in rects)

    def test_y_offset_shifts_all_cells(self):
        rects = compute_layout([1, 2], METRICS, viewport_width=20, y_offset=-3)
        assert [r.y for r in rects] == [-2, 2]

    def test_empty(self):
        assert compute_layout([], METRICS, viewport_width=20) == []
        assert scrollable_height([]) == 0

    def test_scrollable_height(self):
        rects = compute_layout([1, 2, 1], METRICS, viewport_width=20)
        assert scrollable_height(rects) == 13

    @pytest.mark.parametrize("counts", [[1], [1, 1], [5, 1, 3, 1], [1] * 12])
    @pytest.mark.parametrize("margin_y", [0, 1, 3])
    def test_rectangles_never_overlap(self, counts, margin_y):
        metrics = LayoutMetrics(margin_y=margin_y)
        rects = compute_layout(counts, metrics, viewport_width=30)
        for above, below in zip(rects, rects[1:]):
            assert above.bottom <= below.y
        for x in range(0, 30, 3):
            for y in range(scrollable_height(rects) + 1):
                assert sum(r.contains(x, y) for r in rects) <= 1


class TestHitTest:
    """Tests for mapping a point to a cell."""

    def setup_method(self):
        self.rects = compute_layout([1, 2, 1], METRICS, viewport_width=20)

    def test_points_inside_cells(self):
        assert hit_test(self.rects, 1, 1) == 0
        assert hit_test(self.rects, 5, 5) == 1
        assert hit_test(self.rects, 18, 12) == 2

    def test_points_in_margins(self):
        assert hit_test(self.rects, 0, 2) is None
        assert hit_test(self.rects, 5, 4) is None
        assert hit_test(self.rects, 19, 12) is None
        assert hit_test(self.rects, 5, 13) is None

    def test_no_cells(self):
        assert hit_test([], 0, 0) is None


class TestLayoutEngine:
    """Tests for scroll state."""

    def make_engine(self, height=6):
        engine = LayoutEngine(METRICS)
        engine.set_viewport(20, height)
        return engine

    def test_max_scroll(self):
        engine = self.make_engine()
        assert engine.max_scroll([1, 2, 1]) == 7
        assert engine.max_scroll([1]) == 0

    def test_reveal_scrolls_to_cell_bottom(self):
        engine = self.make_engine()
        engine.scroll_to_reveal(0, [1, 2, 1])
        assert engine.scroll_y == 4
        rect = engine.layout([1, 2, 1])[0]
        assert rect.bottom == 0

    def test_reveal_is_clamped_to_content_end(self):
        engine = self.make_engine()
        engine.scroll_to_reveal(1, [1, 2, 1])
        assert engine.scroll_y == 7
        last = engine.layout([1, 2, 1])[2]
        assert 0 <= last.y and last.bottom <= engine.viewport_height

    def test_reveal_last_cell(self):
        engine = self.make_engine()
        engine.scroll_to_reveal(2, [1, 2, 1])
        assert engine.scroll_y == 7

    def test_reveal_short_content_stays_at_top(self):
        engine = self.make_engine()
        engine.scroll_y = 5
        engine.scroll_to_reveal(0, [1])
        assert engine.scroll_y == 0

    def test_reveal_out_of_range_is_ignored(self):
        engine = self.make_engine()
        engine.scroll_to_reveal(9, [1, 2, 1])
        assert engine.scroll_y == 0

    def test_scroll_by_is_clamped(self):
        engine = self.make_engine()
        engine.scroll_by(-5, [1, 2, 1])
        assert engine.scroll_y == 0
        engine.scroll_by(100, [1, 2, 1])
        assert engine.scroll_y == 7
        engine.scroll_by(-2, [1, 2, 1])
        assert engine.scroll_y == 5

    def test_cell_at_uses_scroll_offset(self):
        engine = self.make_engine()
        engine.scroll_y = 3
        assert engine.cell_at(5, 2, [1, 2, 1]) == 1
        assert engine.cell_at(5, 0, [1, 2, 1]) == 0
        assert engine.cell_at(5, 1, [1, 2, 1]) is None

    def test_clamp_after_content_shrinks(self):
        engine = self.make_engine()
        engine.scroll_y = 7
        engine.clamp_scroll([1])
        assert engine.scroll_y == 0

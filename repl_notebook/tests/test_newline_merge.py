"""Tests for trailing-newline buffering of stream output."""

import pytest

from repl_notebook.newline_merge import (
    DEFAULT_BACKOFF,
    NEXT_TURN,
    MergeStep,
    NewlineMerger,
    split_trailing_newlines,
)


def feed_all(merger, chunks):
    """Feed chunks and return the concatenated flushed text."""
    flushed = []
    for chunk in chunks:
        step = merger.feed(chunk)
        if step.flush is not None:
            flushed.append(step.flush)
    return "".join(flushed)


class TestSplitTrailingNewlines:
    """Tests for splitting a chunk into body and trailing newlines."""

    def test_no_newline(self):
        assert split_trailing_newlines("abc") == ("abc", "")

    def test_single_trailing_newline(self):
        assert split_trailing_newlines("abc\n") == ("abc", "\n")

    def test_run_of_newlines(self):
        assert split_trailing_newlines("abc\n\n\n") == ("abc", "\n\n\n")

    def test_interior_newlines_stay_in_body(self):
        assert split_trailing_newlines("a\nb\n") == ("a\nb", "\n")

    def test_only_newlines(self):
        assert split_trailing_newlines("\n\n") == ("", "\n\n")

    def test_empty(self):
        assert split_trailing_newlines("") == ("", "")


class TestNewlineMerger:
    """Tests for the pending-newline state machine."""

    def test_body_flushes_immediately(self):
        merger = NewlineMerger()
        step = merger.feed("hello")
        assert step == MergeStep(flush="hello", delay=NEXT_TURN)
        assert merger.pending == ""

    def test_trailing_newline_is_held_back(self):
        merger = NewlineMerger()
        step = merger.feed("2\n")
        assert step.flush == "2"
        assert merger.pending == "\n"

    def test_pending_written_before_next_body(self):
        merger = NewlineMerger()
        merger.feed("2\n")
        step = merger.feed("3")
        assert step.flush == "\n3"
        assert merger.pending == ""

    def test_newline_only_chunks_accumulate(self):
        merger = NewlineMerger()
        merger.feed("2\n")
        step = merger.feed("\n")
        assert step.flush is None
        assert step.delay == NEXT_TURN
        assert merger.pending == "\n\n"
        assert merger.feed("3").flush == "\n\n3"

    def test_empty_chunk_backs_off(self):
        merger = NewlineMerger(backoff=0.25)
        merger.feed("x\n")
        step = merger.feed("")
        assert step == MergeStep(flush=None, delay=0.25)
        assert merger.pending == "\n"

    def test_default_backoff(self):
        assert NewlineMerger().backoff == DEFAULT_BACKOFF

    def test_pending_dropped_when_cell_ends(self):
        """"2" then "\\n" then a new cell: the finished cell reads "2"."""
        merger = NewlineMerger()
        assert feed_all(merger, ["2", "\n"]) == "2"
        merger.reset()
        assert merger.pending == ""

    def test_rapid_chunks_lose_nothing(self):
        """"ab" then "cd\\n": the cell gets "abcd" and the newline is pending."""
        merger = NewlineMerger()
        flushed = feed_all(merger, ["ab", "cd\n"])
        assert flushed == "abcd"
        assert flushed + merger.pending == "abcd\n"

    @pytest.mark.parametrize("chunks", [
        ["hello\nworld\n"],
        ["hello\n", "world\n"],
        ["hel", "lo", "\n", "wor", "ld\n"],
        ["hello", "\n", "\n", "\n", "world"],
        ["\n", "\n", "x", "\n\n", "y\n"],
        ["", "a\n", "", "", "\nb"],
    ])
    def test_newlines_preserved_for_any_chunking(self, chunks):
        merger = NewlineMerger()
        flushed = feed_all(merger, chunks)
        assert flushed + merger.pending == "".join(chunks)

    def test_every_split_point_preserves_stream(self):
        stream = "a\n\nb\nc\n\n\nd\n"
        for i in range(len(stream) + 1):
            for j in range(i, len(stream) + 1):
                merger = NewlineMerger()
                chunks = [stream[:i], stream[i:j], stream[j:]]
                assert feed_all(merger, chunks) + merger.pending == stream

    def test_pending_output_flag(self):
        merger = NewlineMerger()
        assert merger.consume_pending_output() is False
        merger.feed("\n")
        assert merger.consume_pending_output() is False
        merger.feed("x")
        assert merger.consume_pending_output() is True
        assert merger.consume_pending_output() is False

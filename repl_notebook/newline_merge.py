"""Newline buffering for streamed process output.

Chunks read from a process stream often end in newlines that belong with
whatever arrives next. Committing them right away would draw a blank line
that may disappear (or double up) a moment later, so trailing newlines are
held back in a pending buffer and only written out in front of the next
piece of real content. When a new output cell starts, whatever is still
pending is dropped as trailing whitespace of the finished cell.

Example:
    merger = NewlineMerger()
    merger.feed("2\\n")   # flush="2", pending="\\n"
    merger.feed("\\n")    # flush=None, pending="\\n\\n"
    merger.feed("3")     # flush="\\n\\n3", pending=""

No newline is ever lost or duplicated: for any chunking of a stream S,
the concatenation of all flushed text plus ``pending`` equals S.
"""

from dataclasses import dataclass
from typing import Optional, Tuple

NEWLINE = "\n"

# Delay meaning "resume on the next scheduling turn"
NEXT_TURN = 0.0

DEFAULT_BACKOFF = 0.1


def split_trailing_newlines(text: str) -> Tuple[str, str]:
    """Split text into its body and the maximal run of trailing newlines.

    Args:
        text: Decoded chunk from a process stream.

    Returns:
        Tuple of (body, trailing_newlines). Either part may be empty.
    """
    body = text.rstrip(NEWLINE)
    return body, text[len(body):]


@dataclass
class MergeStep:
    """Outcome of feeding one chunk to the merger.

    Attributes:
        flush: Text to append to the current output cell, or None when the
            chunk was held back entirely.
        delay: Seconds the reader should suspend before reading again;
            0 means "next scheduling turn".
    """
    flush: Optional[str]
    delay: float


class NewlineMerger:
    """Pending-newline state shared by the readers of one session."""

    def __init__(self, backoff: float = DEFAULT_BACKOFF):
        self.backoff = backoff
        self.pending = ""
        self.pending_output = False

    def feed(self, text: str) -> MergeStep:
        body, trailing = split_trailing_newlines(text)

        if body:
            flush = self.pending + body
            self.pending = trailing
            self.pending_output = True
            return MergeStep(flush=flush, delay=NEXT_TURN)

        # Whole chunk was newlines (or empty): accumulate, don't commit yet
        self.pending += trailing
        if trailing:
            return MergeStep(flush=None, delay=NEXT_TURN)
        return MergeStep(flush=None, delay=self.backoff)

    def reset(self) -> None:
        """Drop held-back newlines; called when a new output cell starts."""
        self.pending = ""
        self.pending_output = False

    def consume_pending_output(self) -> bool:
        """Return whether new text arrived since the last call, clearing the flag."""
        flag = self.pending_output
        self.pending_output = False
        return flag

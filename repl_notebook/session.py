"""Child process session with cooperative stream readers.

A Session owns one ProcessHandle and two reader tasks (stdout, stderr)
running on the asyncio event loop of the host application. Each reader
polls its pipe without blocking, decodes the bytes incrementally and feeds
them through the shared NewlineMerger before handing the merged text to
the session's sink (the panel's current output cell).

All readers run on a single event loop, so the output cell and the
pending-newline state only ever have one mutator at a time. Moving the
readers onto threads would require a lock around both.
"""

import asyncio
import codecs
import logging
from typing import Callable, Dict, Optional, Sequence, Set, Union

from .errors import SessionClosed, StreamReadError
from .newline_merge import DEFAULT_BACKOFF, NewlineMerger
from .process import ProcessHandle, spawn

logger = logging.getLogger(__name__)

OutputSink = Callable[[str], None]
ExitCallback = Callable[[Optional[int]], None]

STREAM_NAMES = ("stdout", "stderr")

LINE_TERMINATOR = "\n"

# Seconds to wait for the child to exit after terminate() before killing it
TERMINATE_GRACE = 2.0


class Session:
    """A running child process plus the reader tasks draining its output.

    Usage:
        session = Session.start("python3 -i -u", sink=panel.append_output)
        session.write_line("print(1)")
        ...
        await session.close()
    """

    def __init__(
        self,
        handle: ProcessHandle,
        sink: OutputSink,
        backoff: float = DEFAULT_BACKOFF,
        on_exit: Optional[ExitCallback] = None,
        encoding: str = "utf-8",
    ):
        """Wrap an already spawned process.

        Args:
            handle: Process handle; the session takes exclusive ownership.
            sink: Called with merged output text destined for the output cell.
            backoff: Delay between polls while a stream has nothing to read.
            on_exit: Called once with the return code (if known) when both
                streams have ended.
            encoding: Encoding used for stream decoding and stdin writes.
        """
        self._handle = handle
        self._sink = sink
        self._on_exit = on_exit
        self.encoding = encoding
        self.merger = NewlineMerger(backoff)

        self._tasks: Dict[str, asyncio.Task] = {}
        self._live_streams: Set[str] = set(STREAM_NAMES)
        self._terminated = False
        self._exit_reported = False

    @classmethod
    def start(
        cls,
        command: Union[str, Sequence[str]],
        sink: OutputSink,
        cwd: Optional[str] = None,
        env: Optional[Dict[str, str]] = None,
        backoff: float = DEFAULT_BACKOFF,
        on_exit: Optional[ExitCallback] = None,
    ) -> "Session":
        """Spawn the command and start both reader tasks.

        Must be called while the event loop is running.

        Raises:
            SpawnError: If the executable cannot be launched.
        """
        handle = spawn(command, cwd=cwd, env=env)
        session = cls(handle, sink, backoff=backoff, on_exit=on_exit)
        session.start_readers()
        return session

    @property
    def handle(self) -> ProcessHandle:
        return self._handle

    @property
    def backoff(self) -> float:
        return self.merger.backoff

    @property
    def is_alive(self) -> bool:
        """True until both streams have ended or the session was terminated."""
        return not self._terminated and bool(self._live_streams)

    @property
    def returncode(self) -> Optional[int]:
        return self._handle.poll()

    @property
    def tasks(self) -> Dict[str, asyncio.Task]:
        return dict(self._tasks)

    def start_readers(self) -> None:
        """Create the stdout and stderr reader tasks on the running loop."""
        if self._tasks:
            return
        loop = asyncio.get_running_loop()
        readers = {
            "stdout": self._handle.read_stdout,
            "stderr": self._handle.read_stderr,
        }
        for name in STREAM_NAMES:
            self._tasks[name] = loop.create_task(
                self._read_stream(name, readers[name]),
                name=f"notebook-reader-{name}",
            )

    async def _read_stream(self, name: str, read: Callable[[], Optional[bytes]]) -> None:
        """Drain one stream until end of stream, error or cancellation."""
        decoder = codecs.getincrementaldecoder(self.encoding)(errors="replace")
        try:
            while True:
                try:
                    data = read()
                except StreamReadError as e:
                    logger.error(f"Reader for {name} stopped: {e}")
                    break

                if data is None:
                    await asyncio.sleep(self.merger.backoff)
                    continue

                if not data:
                    # Flush any incomplete multi-byte sequence as replacement chars
                    tail = decoder.decode(b"", final=True)
                    if tail:
                        self._deliver(tail)
                    logger.debug(f"Reader for {name} reached end of stream")
                    break

                delay = self._deliver(decoder.decode(data))
                await asyncio.sleep(delay)
        finally:
            self._stream_finished(name)

    def _deliver(self, text: str) -> float:
        step = self.merger.feed(text)
        if step.flush is not None:
            self._sink(step.flush)
        return step.delay

    def _stream_finished(self, name: str) -> None:
        self._live_streams.discard(name)
        if self._live_streams or self._exit_reported:
            return
        self._exit_reported = True
        returncode = self._handle.poll()
        logger.info(f"Session for pid {self._handle.pid} ended (returncode={returncode})")
        if self._on_exit and not self._terminated:
            self._on_exit(returncode)

    def write_line(self, text: str) -> None:
        """Send one logical line to the child, appending the line terminator.

        Raises:
            SessionClosed: If the session is no longer alive or stdin is gone.
        """
        if not self.is_alive:
            raise SessionClosed(returncode=self._handle.poll())
        self._handle.write((text + LINE_TERMINATOR).encode(self.encoding))
        logger.debug(f"Wrote {len(text) + 1} chars to pid {self._handle.pid}")

    def reset_pending(self) -> None:
        """Discard held-back newlines when a new output cell starts."""
        self.merger.reset()

    def consume_pending_output(self) -> bool:
        return self.merger.consume_pending_output()

    def terminate(self) -> None:
        """Stop the readers and ask the child to exit. Idempotent."""
        if self._terminated:
            return
        self._terminated = True
        for task in self._tasks.values():
            if not task.done():
                task.cancel()
        self._handle.terminate()

    async def close(self, grace: float = TERMINATE_GRACE) -> None:
        """Terminate and wait for the reader tasks before releasing the process.

        The child gets ``grace`` seconds to exit after the terminate request
        and is killed if it is still running after that.
        """
        self.terminate()
        if self._tasks:
            await asyncio.gather(*self._tasks.values(), return_exceptions=True)

        if self._handle.poll() is None:
            loop = asyncio.get_running_loop()
            try:
                await asyncio.wait_for(loop.run_in_executor(None, self._handle.wait), timeout=grace)
            except asyncio.TimeoutError:
                self._handle.kill()
        self._handle.close()

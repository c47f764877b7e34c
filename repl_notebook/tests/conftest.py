"""Pytest configuration for repl_notebook tests.

Run tests with: pytest repl_notebook/tests/

Provides scripted stand-ins for the process handle and the session so the
reader loop and the panel can be tested without spawning interpreters.
"""

import asyncio
import threading
from typing import Callable, Dict, List, Optional

import pytest

from repl_notebook.errors import SessionClosed, StreamReadError


class FakeProcessHandle:
    """ProcessHandle with scripted stream reads.

    Each script item is returned by one read: bytes, None (no data yet) or
    an exception instance to raise. Once a script is exhausted the stream
    reports end of stream, unless its name is in ``hold_open``, in which
    case it keeps reporting "no data".

    Closing waits on the process with ``wait()``: a handle created with
    ``exits_with`` exits with that code as soon as it is waited on; any
    other running handle blocks until ``kill()``.
    """

    def __init__(self, stdout=(), stderr=(), hold_open=(), returncode: Optional[int] = 0,
                 exits_with: Optional[int] = None):
        self.scripts: Dict[str, List] = {"stdout": list(stdout), "stderr": list(stderr)}
        self.hold_open = set(hold_open)
        self.pid = 4242
        self.returncode = returncode
        self.written: List[bytes] = []
        self.stdin_closed = False
        self.terminate_calls = 0
        self.killed = False
        self.closed = False
        self.wait_calls = 0
        self.exits_with = exits_with
        self._exited = threading.Event()

    def poll(self) -> Optional[int]:
        return self.returncode

    def _read(self, name: str):
        script = self.scripts[name]
        if not script:
            return None if name in self.hold_open else b""
        item = script.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    def read_stdout(self):
        return self._read("stdout")

    def read_stderr(self):
        return self._read("stderr")

    def write(self, data: bytes) -> None:
        if self.stdin_closed:
            raise SessionClosed("Process input is closed", self.returncode)
        self.written.append(data)

    def terminate(self) -> None:
        self.terminate_calls += 1
        self.stdin_closed = True

    def wait(self) -> Optional[int]:
        self.wait_calls += 1
        if self.exits_with is not None:
            self.returncode = self.exits_with
        else:
            self._exited.wait()
        return self.returncode

    def kill(self) -> None:
        self.killed = True
        if self.returncode is None:
            self.returncode = -9
        self._exited.set()

    def close(self) -> None:
        self.closed = True


class FakeSession:
    """Session stand-in for panel tests.

    ``respond`` maps a written line to the output the "interpreter" prints;
    the response is delivered on the next loop iteration when a loop is
    running, like a real reader task would.
    """

    def __init__(self, command, sink: Callable[[str], None], cwd=None, backoff=0.1, on_exit=None,
                 respond: Optional[Callable[[str], str]] = None,
                 exits_with: Optional[int] = None):
        self.command = command
        self.sink = sink
        self.cwd = cwd
        self.backoff = backoff
        self.on_exit = on_exit
        self.respond = respond
        self.alive = True
        self.returncode: Optional[int] = None
        self.lines: List[str] = []
        self.reset_calls = 0
        self.pending_output = False
        self.terminated = False
        self.closed = False
        self.wait_calls = 0
        self.exits_with = exits_with
        self._exited = threading.Event()

    @property
    def is_alive(self) -> bool:
        return self.alive and not self.terminated

    def write_line(self, text: str) -> None:
        if not self.is_alive:
            raise SessionClosed(returncode=self.returncode)
        self.lines.append(text)
        if self.respond:
            asyncio.get_running_loop().call_soon(self.sink, self.respond(text))

    def reset_pending(self) -> None:
        self.reset_calls += 1

    def consume_pending_output(self) -> bool:
        flag = self.pending_output
        self.pending_output = False
        return flag

    def exit(self, returncode: int = 0) -> None:
        self.alive = False
        self.returncode = returncode
        if self.on_exit:
            self.on_exit(returncode)

    def terminate(self) -> None:
        self.terminated = True

    async def close(self) -> None:
        self.terminated = True
        self.closed = True


@pytest.fixture
def fake_handle():
    """Factory for FakeProcessHandle instances."""
    return FakeProcessHandle


@pytest.fixture
def stream_error():
    """Factory for a StreamReadError script item."""
    return lambda name="stdout": StreamReadError(name, "Input/output error")


@pytest.fixture
def session_factory():
    """Session factory for NotebookPanel that records the sessions it creates."""
    created: List[FakeSession] = []

    def factory(command, sink, **kwargs):
        session = FakeSession(command, sink, **kwargs)
        created.append(session)
        return session

    factory.created = created
    return factory


@pytest.fixture
def echo_session_factory():
    """Session factory whose interpreter answers each line with "echo:<line>"."""
    created: List[FakeSession] = []

    def factory(command, sink, **kwargs):
        session = FakeSession(command, sink, respond=lambda text: f"echo:{text}\n", **kwargs)
        created.append(session)
        return session

    factory.created = created
    return factory

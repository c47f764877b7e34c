"""Process primitive used by the notebook session.

Wraps ``subprocess.Popen`` with the small contract the session needs:

    handle = spawn(["python3", "-i", "-u"])
    handle.read_stdout()   # bytes, None (nothing ready) or b"" (end of stream)
    handle.read_stderr()
    handle.write(b"print(1)\\n")
    handle.terminate()

stdout and stderr are put in non-blocking mode so a read never stalls the
event loop; "no data ready" and "stream closed" are reported as distinct
values (``None`` and ``b""``).
"""

import logging
import os
import shlex
import subprocess
from typing import Dict, IO, List, Optional, Sequence, Union

from .errors import SessionClosed, SpawnError, StreamReadError

logger = logging.getLogger(__name__)

# Maximum bytes pulled from a pipe per read
READ_CHUNK_SIZE = 4096

END_OF_STREAM = b""


def split_command(command: Union[str, Sequence[str]]) -> List[str]:
    """Turn a command string into an argv list.

    Args:
        command: Shell-style command string or an argv sequence.

    Returns:
        List of arguments suitable for ``subprocess.Popen``.
    """
    if isinstance(command, str):
        return shlex.split(command)
    return list(command)


class ProcessHandle:
    """Owned handle on a running child process and its three pipes."""

    def __init__(self, popen: subprocess.Popen, argv: List[str]):
        self._popen = popen
        self.argv = argv
        self._streams: Dict[str, Optional[IO[bytes]]] = {
            "stdout": popen.stdout,
            "stderr": popen.stderr,
        }
        self._terminated = False

        for stream in self._streams.values():
            if stream is not None:
                os.set_blocking(stream.fileno(), False)

    @property
    def pid(self) -> int:
        return self._popen.pid

    @property
    def returncode(self) -> Optional[int]:
        return self._popen.returncode

    def poll(self) -> Optional[int]:
        """Return the exit code if the process has exited, else None."""
        return self._popen.poll()

    def read_stdout(self) -> Optional[bytes]:
        return self._read("stdout")

    def read_stderr(self) -> Optional[bytes]:
        return self._read("stderr")

    def _read(self, name: str) -> Optional[bytes]:
        """Non-blocking read from one output pipe.

        Returns:
            The bytes read, None when no data is ready yet, or b"" once the
            pipe has reached end of stream (and on every read after that).

        Raises:
            StreamReadError: On an unexpected I/O failure.
        """
        stream = self._streams.get(name)
        if stream is None:
            return END_OF_STREAM

        try:
            data = os.read(stream.fileno(), READ_CHUNK_SIZE)
        except BlockingIOError:
            return None
        except (OSError, ValueError) as e:
            self._close_stream(name)
            raise StreamReadError(name, str(e)) from e

        if not data:
            logger.debug(f"{name} of pid {self.pid} reached end of stream")
            self._close_stream(name)
        return data

    def _close_stream(self, name: str) -> None:
        stream = self._streams.get(name)
        self._streams[name] = None
        if stream is not None:
            try:
                stream.close()
            except OSError:
                pass

    def write(self, data: bytes) -> None:
        """Write bytes to the child's stdin and flush.

        Raises:
            SessionClosed: If stdin is closed or the child has gone away.
        """
        stdin = self._popen.stdin
        if stdin is None or stdin.closed:
            raise SessionClosed("Process input is closed", self._popen.poll())
        try:
            stdin.write(data)
            stdin.flush()
        except (BrokenPipeError, ValueError, OSError) as e:
            raise SessionClosed(f"Process input is closed ({e})", self._popen.poll()) from e

    def terminate(self) -> None:
        """Ask the child process to stop. Safe to call more than once."""
        if self._terminated:
            return
        self._terminated = True

        stdin = self._popen.stdin
        if stdin is not None and not stdin.closed:
            try:
                stdin.close()
            except OSError:
                pass

        if self._popen.poll() is None:
            try:
                self._popen.terminate()
            except ProcessLookupError:
                pass
            logger.info(f"Sent terminate to pid {self.pid}")

    def wait(self) -> int:
        """Block until the process exits and return its exit code."""
        return self._popen.wait()

    def kill(self) -> None:
        if self._popen.poll() is None:
            try:
                self._popen.kill()
            except ProcessLookupError:
                pass
            logger.warning(f"Killed pid {self.pid}")

    def close(self) -> None:
        """Release the output pipes. The process itself is not waited on."""
        for name in list(self._streams):
            self._close_stream(name)


def spawn(
    command: Union[str, Sequence[str]],
    cwd: Optional[str] = None,
    env: Optional[Dict[str, str]] = None,
) -> ProcessHandle:
    """Launch a child process with piped stdin, stdout and stderr.

    Args:
        command: Command string (split with shlex) or argv list.
        cwd: Working directory for the child.
        env: Extra environment variables merged over ``os.environ``.

    Returns:
        A ProcessHandle owning the process and its pipes.

    Raises:
        SpawnError: If the executable cannot be launched.
    """
    argv = split_command(command)
    if not argv:
        raise SpawnError(argv, "empty command")

    full_env = {**os.environ, **(env or {})}
    try:
        popen = subprocess.Popen(
            argv,
            stdin=subprocess.PIPE,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            cwd=cwd,
            env=full_env,
        )
    except (OSError, ValueError) as e:
        logger.error(f"Failed to spawn {argv}: {e}")
        raise SpawnError(argv, str(e)) from e

    logger.info(f"Spawned {argv} (pid {popen.pid})")
    return ProcessHandle(popen, argv)

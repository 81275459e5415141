"""
bbl/utils/async_command_runner.py

Runs external commands (the infrastructure engine, create-env scripts, the
director CLI) as child processes.

Two flavours:
    - run_command: capture stdout, raise CommandError on failure.
    - run_command_streaming: tee stdout/stderr into an OutputBuffer and,
      optionally, to this process's stdout as lines arrive.

Usage example:
    from bbl.utils.async_command_runner import run_command, CommandError

    try:
        version = await run_command(["terraform", "version"])
    except CommandError as err:
        print(f"Command failed: {err}")
"""

from __future__ import annotations

import asyncio
import os
import sys
from collections import deque
from typing import Callable, Deque, Dict, List, Optional, TextIO

from bbl.utils.async_retry import async_retry

# Size of the tail kept for `bbl latest-error`.
DEFAULT_BUFFER_BYTES = 64 * 1024


class CommandError(Exception):
    """Represents a failure when executing a command.

    Attributes:
        message (str): The error message describing the command failure.
        return_code (Optional[int]): The exit code if available.
    """

    def __init__(self, message: str, return_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.return_code = return_code


class OutputBuffer:
    """Keeps the last `max_bytes` characters written to it."""

    def __init__(self, max_bytes: int = DEFAULT_BUFFER_BYTES) -> None:
        self._max_bytes = max_bytes
        self._chunks: Deque[str] = deque()
        self._size = 0

    def write(self, text: str) -> None:
        self._chunks.append(text)
        self._size += len(text)
        while self._size > self._max_bytes and self._chunks:
            overflow = self._size - self._max_bytes
            head = self._chunks[0]
            if len(head) <= overflow:
                self._chunks.popleft()
                self._size -= len(head)
            else:
                self._chunks[0] = head[overflow:]
                self._size -= overflow

    def getvalue(self) -> str:
        return "".join(self._chunks)

    def reset(self) -> None:
        self._chunks.clear()
        self._size = 0


def _build_env(
    env: Optional[Dict[str, str]], suppress_env_vars: Optional[List[str]]
) -> Optional[Dict[str, str]]:
    if env is None and not suppress_env_vars:
        return None
    proc_env = os.environ.copy()
    for var in suppress_env_vars or []:
        proc_env.pop(var, None)
    if env:
        proc_env.update(env)
    return proc_env


async def run_command(
    command: List[str],
    *,
    sensitive: bool = True,
    env: Optional[Dict[str, str]] = None,
    cwd: Optional[str] = None,
    input_data: Optional[str] = None,
    successful_return_codes: List[int] = [0],
    retries: int = 1,
    retry_delay: float = 1.0,
    suppress_env_vars: Optional[List[str]] = None,
    error_parser: Optional[Callable[[str], Optional[str]]] = None,
) -> str:
    """
    Executes a local command in a subprocess and returns its stdout.

    When `sensitive=True`, the command, stdout and stderr are omitted from the
    raised error, since bbl commands routinely carry credentials.

    Args:
        command (List[str]):
            The command and arguments to execute.
        sensitive (bool):
            If True, hides command details in the raised error.
        env (Optional[Dict[str, str]]):
            Additional environment variables to add or override.
        cwd (Optional[str]):
            Working directory for the command.
        input_data (Optional[str]):
            If provided, passed to stdin.
        successful_return_codes (List[int]):
            Which return codes won't be treated as errors. Defaults to [0].
        retries (int):
            Total attempts. Defaults to 1.
        retry_delay (float):
            Delay in seconds between attempts.
        suppress_env_vars (Optional[List[str]]):
            Environment variables to remove from the child's environment.
        error_parser (Optional[Callable[[str], Optional[str]]]):
            Receives stderr; a non-None return becomes the error message.

    Returns:
        str: The captured stdout of the command on success.

    Raises:
        CommandError: If the command cannot be started or exits with a code not
            in `successful_return_codes`.
    """

    @async_retry(retries=retries, delay=retry_delay)
    async def _inner_run_command() -> str:
        stdin = asyncio.subprocess.PIPE if input_data else asyncio.subprocess.DEVNULL
        try:
            proc = await asyncio.create_subprocess_exec(
                *command,
                stdin=stdin,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=_build_env(env, suppress_env_vars),
                cwd=cwd,
            )
        except OSError as exc:
            raise CommandError(f"Failed to start {command[0]}: {exc}") from exc

        stdout_bytes, stderr_bytes = await proc.communicate(
            input=input_data.encode() if input_data else None
        )
        stdout_str = stdout_bytes.decode(errors="replace").strip()
        stderr_str = stderr_bytes.decode(errors="replace").strip()

        if proc.returncode not in successful_return_codes:
            short_message = error_parser(stderr_str) if error_parser else None
            if short_message is not None:
                raise CommandError(short_message, proc.returncode)

            detail = ""
            if not sensitive:
                detail = (
                    f"\nCommand: {' '.join(command)}"
                    f"\nStdout: {stdout_str}"
                    f"\nStderr: {stderr_str}"
                )

            raise CommandError(
                f"Command failed with return code {proc.returncode}.{detail}",
                proc.returncode,
            )

        return stdout_str

    return await _inner_run_command()


async def _pump(
    reader: Optional[asyncio.StreamReader],
    buffer: OutputBuffer,
    echo_to: Optional[TextIO],
) -> None:
    if reader is None:
        return
    while True:
        line = await reader.readline()
        if not line:
            return
        text = line.decode(errors="replace")
        buffer.write(text)
        if echo_to is not None:
            echo_to.write(text)
            echo_to.flush()


async def run_command_streaming(
    command: List[str],
    *,
    buffer: OutputBuffer,
    echo: bool = False,
    env: Optional[Dict[str, str]] = None,
    cwd: Optional[str] = None,
) -> None:
    """
    Executes a command, copying its combined output into `buffer` as it runs.

    Args:
        command (List[str]): The command and arguments to execute.
        buffer (OutputBuffer): Receives stdout and stderr, line by line.
        echo (bool): Also write each line to sys.stdout.
        env (Optional[Dict[str, str]]): Additional environment variables.
        cwd (Optional[str]): Working directory for the command.

    Raises:
        CommandError: If the command cannot be started or exits non-zero.
    """
    try:
        proc = await asyncio.create_subprocess_exec(
            *command,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            env=_build_env(env, None),
            cwd=cwd,
        )
    except OSError as exc:
        raise CommandError(f"Failed to start {command[0]}: {exc}") from exc

    echo_to = sys.stdout if echo else None
    try:
        await asyncio.gather(
            _pump(proc.stdout, buffer, echo_to),
            _pump(proc.stderr, buffer, echo_to),
        )
        return_code = await proc.wait()
    finally:
        if proc.returncode is None:
            proc.kill()
            await proc.wait()

    if return_code != 0:
        raise CommandError(
            f"Command failed with return code {return_code}.", return_code
        )


async def run_command_interactive(command: List[str], env: Optional[Dict[str, str]] = None) -> int:
    """
    Launches the given command attached to this process's stdin/stdout/stderr.

    Args:
        command: The command and arguments to run.
        env: Additional environment variables.

    Returns:
        The exit code of the child process.

    Raises:
        CommandError: If the command cannot be started.
    """
    try:
        proc = await asyncio.create_subprocess_exec(
            *command, stdin=None, stdout=None, stderr=None, env=_build_env(env, None)
        )
    except OSError as exc:
        raise CommandError(f"Failed to start {command[0]}: {exc}") from exc
    return await proc.wait()


__all__ = [
    "CommandError",
    "OutputBuffer",
    "DEFAULT_BUFFER_BYTES",
    "run_command",
    "run_command_streaming",
    "run_command_interactive",
]

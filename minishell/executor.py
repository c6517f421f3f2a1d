"""Running a parsed pipeline: builtins in-process, other commands as child processes."""

from __future__ import annotations

import contextlib
import io
import os
import signal
import subprocess
import sys
import threading
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import Any, TextIO

from minishell.builtins import ShellExit, run_builtin
from minishell.environment import Environment
from minishell.model import C_RED, RESET_ALL, Command, Redirection, ShellState, TokenType
from minishell.pathing import resolve_command
from minishell.redirection import close_redirections, command_arguments, read_heredoc


def exit_status(returncode: int) -> int:
    """Map a child's return code to a shell status (128 + signal when killed)."""
    if returncode < 0:
        return 128 + (-returncode)
    return returncode


def _read_line(prompt: str) -> str | None:
    try:
        return input(prompt)
    except EOFError:
        return None


def _fileno(stream: TextIO) -> int | None:
    try:
        return stream.fileno()
    except (AttributeError, OSError, ValueError):
        return None


def _child_signals() -> None:
    for signum in (signal.SIGINT, signal.SIGQUIT, signal.SIGPIPE):
        signal.signal(signum, signal.SIG_DFL)


@contextlib.contextmanager
def _ignore_interrupts():
    """Ignore SIGINT and SIGQUIT in the shell while children run."""
    if threading.current_thread() is not threading.main_thread():
        yield
        return
    saved = {
        signum: signal.getsignal(signum) for signum in (signal.SIGINT, signal.SIGQUIT)
    }
    for signum in saved:
        signal.signal(signum, signal.SIG_IGN)
    try:
        yield
    finally:
        for signum, handler in saved.items():
            if handler is not None:
                signal.signal(signum, handler)


def _discard(feed: Any) -> None:
    """Close a pipe handed over from the previous stage that will not be read."""
    close = getattr(feed, "close", None)
    if close is not None:
        close()


def _pump_in(pipe: Any, data: bytes) -> None:
    try:
        pipe.write(data)
    except BrokenPipeError:
        pass
    finally:
        with contextlib.suppress(OSError):
            pipe.close()


def _pump_out(pipe: Any, chunks: list[bytes]) -> None:
    with pipe:
        chunks.append(pipe.read())


@dataclass
class _Stage:
    status: int = 0
    process: subprocess.Popen | None = None
    feed: Any = b""


@dataclass
class _Pipeline:
    state: ShellState
    commands: Sequence[Command]
    reader: Callable[[str], str | None]
    out: TextIO
    err: TextIO
    threads: list[threading.Thread] = field(default_factory=list)
    final_chunks: list[bytes] = field(default_factory=list)
    error_chunks: list[bytes] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.last = len(self.commands) - 1
        self.out_fd = _fileno(self.out)
        self.err_fd = _fileno(self.err)

    def run(self) -> int:
        stages: list[_Stage] = []
        try:
            previous_feed: Any = None
            for index, command in enumerate(self.commands):
                if index > 0 and self._must_wait(index):
                    process = stages[-1].process
                    if process is not None:
                        process.wait()
                stage = self._run_stage(index, command, previous_feed)
                stages.append(stage)
                previous_feed = stage.feed
            _discard(previous_feed)
        finally:
            self._finish(stages)
        final = stages[-1] if stages else _Stage()
        if final.process is not None:
            final.status = exit_status(final.process.returncode)
        self.state.status = final.status
        return final.status

    def _must_wait(self, index: int) -> bool:
        previous = self.commands[index - 1].redir
        current = self.commands[index].redir
        return previous.out_fd != 1 and current.in_fd != 0

    def _stage_input(self, redir: Redirection, previous_feed: Any, index: int) -> Any:
        if redir.in_fd > 0:
            _discard(previous_feed)
            return redir.in_fd
        if redir.in_fd < 0:
            _discard(previous_feed)
            return subprocess.DEVNULL
        if index > 0:
            return previous_feed
        return None

    def _run_stage(self, index: int, command: Command, previous_feed: Any) -> _Stage:
        redir = command.redir
        args = command_arguments(command, self.err)
        feed_in = self._stage_input(redir, previous_feed, index)
        if redir.delimiter is not None:
            text = read_heredoc(redir.delimiter, self.reader, self.err)
            if redir.out_fd != 1:
                if redir.out_fd > 1:
                    self._write_fd(redir.out_fd, text)
            else:
                _discard(feed_in)
                feed_in = text.encode()
        last = index == self.last
        if redir.in_fd < 0 or redir.out_fd < 0 or not args:
            _discard(feed_in)
            return _Stage(status=self.state.status)
        if command.tokens[0].type is TokenType.BUILTIN:
            _discard(feed_in)
            status, text = self._builtin(args)
            return _Stage(status=status, feed=self._deliver(text, redir, last))
        path = resolve_command(args[0], self.state.env)
        if path is None:
            _discard(feed_in)
            message = f"{C_RED}{args[0]}: Command not found\n{RESET_ALL}"
            return _Stage(status=127, feed=self._deliver(message, redir, last))
        return self._spawn(path, args, feed_in, redir, last)

    def _builtin(self, args: list[str]) -> tuple[int, str]:
        """Run a builtin as a pipeline stage, without touching the shell's state."""
        isolated = ShellState(
            Environment(self.state.env.entries()),
            self.state.cwd,
            self.state.status,
            self.state.piped,
        )
        buffer = io.StringIO()
        try:
            saved_cwd: str | None = os.getcwd()
        except OSError:
            saved_cwd = None
        try:
            status = run_builtin(isolated, args, buffer, self.err)
        except ShellExit as request:
            status = request.code
        finally:
            if saved_cwd is not None:
                with contextlib.suppress(OSError):
                    os.chdir(saved_cwd)
        return status, buffer.getvalue()

    def _deliver(self, text: str, redir: Redirection, last: bool) -> bytes:
        if redir.out_fd != 1:
            self._write_fd(redir.out_fd, text)
            return b""
        if not last:
            return text.encode()
        self.out.write(text)
        return b""

    def _write_fd(self, fd: int, text: str) -> None:
        data = text.encode()
        try:
            while data:
                written = os.write(fd, data)
                data = data[written:]
        except OSError as error:
            self.err.write(f"write to output file: {error.strerror or error}\n")

    def _flush(self) -> None:
        for stream in (self.out, self.err):
            with contextlib.suppress(OSError, ValueError):
                stream.flush()

    def _start(self, target: Callable[..., None], *args: Any) -> None:
        thread = threading.Thread(target=target, args=args, daemon=True)
        thread.start()
        self.threads.append(thread)

    def _spawn(
        self, path: str, args: list[str], feed_in: Any, redir: Redirection, last: bool
    ) -> _Stage:
        stdin_arg: Any = feed_in
        payload: bytes | None = None
        if isinstance(feed_in, bytes):
            if feed_in:
                stdin_arg, payload = subprocess.PIPE, feed_in
            else:
                stdin_arg = subprocess.DEVNULL
        capture_final = False
        if redir.out_fd != 1:
            stdout_arg: Any = redir.out_fd
        elif not last:
            stdout_arg = subprocess.PIPE
        elif self.out_fd is not None:
            stdout_arg = self.out_fd
        else:
            stdout_arg = subprocess.PIPE
            capture_final = True
        stderr_arg: Any = self.err_fd if self.err_fd is not None else subprocess.PIPE
        self._flush()
        try:
            process = subprocess.Popen(
                list(args),
                executable=path,
                stdin=stdin_arg,
                stdout=stdout_arg,
                stderr=stderr_arg,
                env=self.state.env.as_dict(),
                cwd=self.state.cwd,
                preexec_fn=_child_signals,
            )
        except OSError as error:
            _discard(feed_in)
            self.err.write(f"execve: {error.strerror or error}\n")
            return _Stage(status=1)
        _discard(feed_in)
        if payload is not None:
            self._start(_pump_in, process.stdin, payload)
        if self.err_fd is None:
            self._start(_pump_out, process.stderr, self.error_chunks)
        stage = _Stage(process=process)
        if capture_final:
            self._start(_pump_out, process.stdout, self.final_chunks)
        elif stdout_arg is subprocess.PIPE:
            stage.feed = process.stdout
        return stage

    def _finish(self, stages: list[_Stage]) -> None:
        for stage in stages:
            if stage.process is not None:
                stage.process.wait()
        for thread in self.threads:
            thread.join()
        for chunk in self.error_chunks:
            self.err.write(chunk.decode(errors="replace"))
        for chunk in self.final_chunks:
            self.out.write(chunk.decode(errors="replace"))


def _run_lone_builtin(
    state: ShellState, command: Command, out: TextIO, err: TextIO
) -> None:
    args = command_arguments(command, err)
    out_fd = command.redir.out_fd
    if out_fd == 1 or out_fd < 0:
        run_builtin(state, args, out, err)
        return
    buffer = io.StringIO()
    try:
        run_builtin(state, args, buffer, err)
    finally:
        data = buffer.getvalue().encode()
        with contextlib.suppress(OSError):
            while data:
                data = data[os.write(out_fd, data):]


def execute(
    state: ShellState,
    commands: Sequence[Command],
    heredoc_reader: Callable[[str], str | None] | None = None,
    stdout: TextIO | None = None,
    stderr: TextIO | None = None,
) -> int:
    """Run the commands of one pipeline and return the status of the last one.

    A single builtin runs in the shell itself, so it can change the shell's
    state; ``exit`` then raises ShellExit. Every other stage runs apart from
    the shell's state, external commands as child processes.
    """
    out = stdout if stdout is not None else sys.stdout
    err = stderr if stderr is not None else sys.stderr
    reader = heredoc_reader if heredoc_reader is not None else _read_line
    state.status = 0
    if not commands:
        return state.status
    try:
        first = commands[0]
        if len(commands) == 1 and first.tokens and first.tokens[0].type is TokenType.BUILTIN:
            _run_lone_builtin(state, first, out, err)
        else:
            with _ignore_interrupts():
                _Pipeline(state, commands, reader, out, err).run()
    finally:
        for command in commands:
            close_redirections(command.redir)
    return state.status
"""The interactive loop: prompt, read a line, parse it and run it."""

from __future__ import annotations

import contextlib
import os
import signal
import sys
import threading
from collections.abc import Callable, Mapping
from typing import Any, TextIO

from minishell.builtins import ShellExit
from minishell.environment import Environment
from minishell.executor import execute
from minishell.lexer import ShellSyntaxError, quotes_balanced, replace_tabs, tokenize
from minishell.model import C_BLUE, C_BRT_GREEN, C_RED, RESET_ALL, RESET_COLOR, ShellState

try:
    import termios
except ImportError:  # not available on every platform
    termios = None  # type: ignore[assignment]

try:
    import readline
except ImportError:  # not available on every platform
    readline = None  # type: ignore[assignment]

_ART = (
    "  _ _ ___         _      _    _        _ _ \n"
    " | | |_  )  _ __ (_)_ _ (_)__| |_  ___| | |\n"
    " |_  _/ /  | '  \\| | ' \\| (_-< ' \\/ -_) | |\n"
    "   |_/___| |_|_|_|_|_||_|_/__/_||_\\___|_|_|\n"
)

_TERMINAL_ERROR = "minishell: failed to set terminal attributes\n"


def header() -> str:
    """Return the banner shown when the shell starts."""
    return C_BRT_GREEN + "\n" + _ART + "\n" + RESET_COLOR


def _read_line(prompt: str) -> str | None:
    try:
        return input(prompt)
    except EOFError:
        return None


@contextlib.contextmanager
def _prompt_signals():
    """Let SIGINT interrupt the prompt and ignore SIGQUIT and SIGPIPE."""
    if threading.current_thread() is not threading.main_thread():
        yield
        return
    wanted: dict[int, Any] = {signal.SIGINT: signal.default_int_handler}
    for name in ("SIGQUIT", "SIGPIPE"):
        signum = getattr(signal, name, None)
        if signum is not None:
            wanted[signum] = signal.SIG_IGN
    saved = {signum: signal.getsignal(signum) for signum in wanted}
    for signum, handler in wanted.items():
        signal.signal(signum, handler)
    try:
        yield
    finally:
        for signum, handler in saved.items():
            if handler is not None:
                signal.signal(signum, handler)


def _is_tty(stream: Any) -> bool:
    try:
        return bool(stream.isatty())
    except (AttributeError, ValueError, OSError):
        return False


def _disable_echoctl(stream: Any) -> list | None:
    """Stop the terminal echoing control characters; return the old settings."""
    if termios is None or not _is_tty(stream):
        return None
    fd = stream.fileno()
    saved = termios.tcgetattr(fd)
    changed = list(saved)
    changed[3] &= ~getattr(termios, "ECHOCTL", 0)
    termios.tcsetattr(fd, termios.TCSANOW, changed)
    return saved


def _restore_terminal(stream: Any, saved: list | None) -> None:
    if termios is None or saved is None:
        return
    with contextlib.suppress(termios.error, OSError, ValueError):
        termios.tcsetattr(stream.fileno(), termios.TCSANOW, saved)


def _bind_tab() -> None:
    """Make TAB insert a tab character instead of completing."""
    if readline is not None:
        readline.parse_and_bind("tab: tab-insert")


class Shell:
    """A shell session: its state, its history and its output streams."""

    def __init__(
        self,
        environ: Mapping[str, str] | None = None,
        cwd: str | None = None,
        stdout: TextIO | None = None,
        stderr: TextIO | None = None,
    ) -> None:
        self.stdout: TextIO = stdout if stdout is not None else sys.stdout
        self.stderr: TextIO = stderr if stderr is not None else sys.stderr
        self.stdout.write(header())
        env = Environment(environ if environ is not None else os.environ)
        env.increment_shlvl()
        self.state = ShellState(env, cwd if cwd is not None else os.getcwd())
        self.history: list[str] = []
        self._heredoc_reader: Callable[[str], str | None] | None = None

    def prompt(self) -> str:
        """Return the prompt: the current directory followed by ``>``."""
        return C_BLUE + self.state.cwd + " > " + RESET_COLOR

    def process_input(self, line: str) -> int:
        """Parse and run one input line; return the resulting status.

        ``exit`` raises ShellExit.
        """
        if line:
            self.history.append(line)
        if not quotes_balanced(line):
            self.stdout.write(f"{C_RED}Invalid Input - Unclosed Quotes\n{RESET_ALL}")
            self.state.status = 1
            return self.state.status
        text = replace_tabs(line)
        if text is None:
            return self.state.status
        try:
            commands = tokenize(text, self.state.env, self.state.status)
        except ShellSyntaxError as error:
            self.stdout.write(f"{C_RED}{error.message}\n{RESET_ALL}")
            self.state.status = error.status
            return self.state.status
        return execute(
            self.state, commands, self._heredoc_reader, self.stdout, self.stderr
        )

    def run(self, reader: Callable[[str], str | None] | None = None) -> int:
        """Read and run lines until end of input or ``exit``; return the exit code.

        ``reader`` is called with the prompt and returns None at end of input.
        """
        read = reader if reader is not None else _read_line
        self._heredoc_reader = read
        with _prompt_signals():
            while True:
                try:
                    line = read(self.prompt())
                except KeyboardInterrupt:
                    self.stdout.write("\n")
                    continue
                if line is None:
                    return 0
                try:
                    self.process_input(line)
                except ShellExit as request:
                    return request.code
                finally:
                    with contextlib.suppress(OSError, ValueError):
                        self.stdout.flush()


def main(argv: list[str] | None = None) -> int:
    """Start an interactive shell on the standard streams; return its exit code."""
    shell = Shell()
    try:
        saved = _disable_echoctl(sys.stdin)
    except (OSError, ValueError) + ((termios.error,) if termios is not None else ()):
        sys.stderr.write(_TERMINAL_ERROR)
        return 255
    _bind_tab()
    try:
        return shell.run()
    finally:
        _restore_terminal(sys.stdin, saved)
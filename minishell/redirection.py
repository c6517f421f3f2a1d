"""File redirections, here-documents and turning a command's tokens into arguments."""

from __future__ import annotations

import contextlib
import os
import sys
from collections.abc import Callable
from typing import TextIO

from minishell.model import (
    C_BLUE,
    C_RED,
    FILE_PERM,
    RESET_ALL,
    RESET_COLOR,
    Command,
    Redirection,
    TokenType,
)

HEREDOC_PROMPT = C_BLUE + " > " + RESET_COLOR


def _report_open_error(stream: TextIO, path: str, error: OSError) -> None:
    reason = error.strerror or str(error)
    stream.write(f"{C_RED}minishell: {path}: {reason}\n{RESET_ALL}")


def open_redirections(
    redir: Redirection,
    infile: str | None = None,
    outfile: str | None = None,
    stderr: TextIO | None = None,
) -> None:
    """Open ``infile`` for reading and ``outfile`` for writing into ``redir``.

    A failed open leaves the descriptor at -1 and reports the error.
    The append flag applies to this output file only and is then cleared.
    """
    stream = stderr if stderr is not None else sys.stderr
    if infile:
        if redir.in_fd > 0:
            with contextlib.suppress(OSError):
                os.close(redir.in_fd)
        try:
            redir.in_fd = os.open(infile, os.O_RDONLY)
        except OSError as error:
            redir.in_fd = -1
            _report_open_error(stream, infile, error)
    if outfile:
        if redir.out_fd > 1:
            with contextlib.suppress(OSError):
                os.close(redir.out_fd)
        mode = os.O_APPEND if redir.append else os.O_TRUNC
        try:
            redir.out_fd = os.open(outfile, os.O_CREAT | os.O_WRONLY | mode, FILE_PERM)
        except OSError as error:
            redir.out_fd = -1
            _report_open_error(stream, outfile, error)
        redir.append = False


def close_redirections(redir: Redirection) -> None:
    """Close any descriptors that ``redir`` opened and mark them closed (-1)."""
    if redir.in_fd != 0 and redir.in_fd >= 0:
        with contextlib.suppress(OSError):
            os.close(redir.in_fd)
        redir.in_fd = -1
    if redir.out_fd != 1 and redir.out_fd >= 0:
        with contextlib.suppress(OSError):
            os.close(redir.out_fd)
        redir.out_fd = -1


def read_heredoc(
    delimiter: str,
    reader: Callable[[str], str | None],
    stderr: TextIO | None = None,
) -> str:
    """Collect lines from ``reader`` until ``delimiter``; each line ends in a newline.

    ``reader`` is called with the prompt and returns None at end of input,
    in which case a warning is written and the lines read so far are kept.
    """
    stream = stderr if stderr is not None else sys.stderr
    lines: list[str] = []
    while True:
        line = reader(HEREDOC_PROMPT)
        if line is None:
            stream.write(
                "minishell: warning: here-document delimited by end-of-file "
                f"(wanted '{delimiter}')\n"
            )
            break
        if line == delimiter:
            break
        lines.append(line + "\n")
    return "".join(lines)


def command_arguments(command: Command, stderr: TextIO | None = None) -> list[str]:
    """Return the argument list of ``command``, applying its redirections.

    Each redirection operator consumes the token after it as its target;
    neither appears among the arguments.
    """
    redir = command.redir
    args: list[str] = []
    tokens = iter(command.tokens)
    for token in tokens:
        if not token.type.is_redirection:
            args.append(token.value)
            continue
        target = next(tokens, None)
        value = target.value if target is not None else None
        if token.type in (TokenType.REDIR_OUT, TokenType.REDIR_APPEND):
            if token.type is TokenType.REDIR_APPEND:
                redir.append = True
            open_redirections(redir, None, value, stderr)
        elif token.type is TokenType.REDIR_DELIM:
            redir.delimiter = value
        else:
            open_redirections(redir, value, None, stderr)
    return args
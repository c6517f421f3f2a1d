"""Core data types shared by the parser, builtins and executor."""

from __future__ import annotations

import enum
import os
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field

from minishell.environment import Environment

C_RED = "\033[31m"
C_GREEN = "\033[32m"
C_YELLOW = "\033[33m"
C_BLUE = "\033[34m"
C_MAGENTA = "\033[35m"
C_CYAN = "\033[36m"
C_BRT_GREEN = "\033[92m"
RESET_ALL = "\033[0m"
RESET_COLOR = "\033[39m"

MAX_PIPE_COUNT = 10
MAX_TOKENS = 100
FILE_PERM = 0o664

BUILTINS = frozenset({"pwd", "env", "echo", "exit", "export", "unset", "cd"})


def is_builtin(command: str) -> bool:
    """Tell whether ``command`` names a shell builtin."""
    return command in BUILTINS


class TokenType(enum.Enum):
    CMD = enum.auto()
    BUILTIN = enum.auto()
    ARG = enum.auto()
    PIPE = enum.auto()
    REDIR_IN = enum.auto()
    REDIR_OUT = enum.auto()
    REDIR_DELIM = enum.auto()
    REDIR_APPEND = enum.auto()
    ERROR = enum.auto()

    @property
    def is_redirection(self) -> bool:
        return self in (
            TokenType.REDIR_IN,
            TokenType.REDIR_OUT,
            TokenType.REDIR_DELIM,
            TokenType.REDIR_APPEND,
        )


@dataclass
class Token:
    type: TokenType
    value: str


@dataclass
class Redirection:
    """Redirection state of one command: descriptors and here-document."""

    delimiter: str | None = None
    heredoc: str | None = None
    in_fd: int = 0
    out_fd: int = 1
    append: bool = False


@dataclass
class Command:
    """One stage of a pipeline."""

    tokens: list[Token] = field(default_factory=list)
    redir: Redirection = field(default_factory=Redirection)

    @property
    def token_count(self) -> int:
        return len(self.tokens)

    def add_token(self, token: Token) -> None:
        """Append ``token``; the command's descriptors reset to the defaults."""
        if len(self.tokens) >= MAX_TOKENS:
            raise ValueError(f"too many tokens in one command (max {MAX_TOKENS})")
        self.tokens.append(token)
        self.redir.in_fd = 0
        self.redir.out_fd = 1


class ShellState:
    """Mutable state of a running shell."""

    def __init__(
        self,
        env: Environment | Iterable[str] | Mapping[str, str] | None = None,
        cwd: str | None = None,
        status: int = 0,
        piped: bool = False,
    ) -> None:
        if env is None:
            env = Environment()
        elif not isinstance(env, Environment):
            env = Environment(env)
        self.env: Environment = env
        self.cwd: str = cwd if cwd is not None else os.getcwd()
        self.status: int = status
        self.piped: bool = piped

    def __repr__(self) -> str:
        return (
            f"ShellState(cwd={self.cwd!r}, status={self.status!r}, "
            f"piped={self.piped!r}, env={self.env!r})"
        )
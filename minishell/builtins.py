"""The commands the shell runs itself: echo, cd, pwd, env, export, unset and exit."""

from __future__ import annotations

import os
import sys
from collections.abc import Callable, Sequence
from typing import TextIO

from minishell.environment import check_identifier
from minishell.model import C_RED, RESET_COLOR, ShellState


class ShellExit(Exception):
    """Raised by ``exit`` to end the shell with ``code``."""

    def __init__(self, code: int) -> None:
        super().__init__(code)
        self.code = code


def _out(stream: TextIO | None) -> TextIO:
    return stream if stream is not None else sys.stdout


def _err(stream: TextIO | None) -> TextIO:
    return stream if stream is not None else sys.stderr


def is_echo_flag(flag: str) -> bool:
    """Tell whether ``flag`` is ``-`` followed only by ``n`` characters."""
    return flag.startswith("-") and all(char == "n" for char in flag[1:])


def parse_exit_code(arg: str) -> int | None:
    """Read an optionally signed run of digits, or return None if ``arg`` is not one."""
    digits = arg
    negative = False
    if digits[:1] in ("-", "+"):
        negative = digits[0] == "-"
        digits = digits[1:]
    value = 0
    for char in digits:
        if not "0" <= char <= "9":
            return None
        value = value * 10 + int(char)
    return -value if negative else value


def echo(state: ShellState, args: Sequence[str], stdout=None, stderr=None) -> int:
    """Print the arguments separated by spaces; ``-n`` flags drop the newline."""
    words = list(args[1:])
    newline = True
    while words and is_echo_flag(words[0]):
        newline = False
        words.pop(0)
    _out(stdout).write(" ".join(words) + ("\n" if newline else ""))
    state.status = 0
    return state.status


def cd(state: ShellState, args: Sequence[str], stdout=None, stderr=None) -> int:
    """Change directory to the argument or HOME and update PWD and OLDPWD."""
    errors = _err(stderr)
    if len(args) > 1:
        path = args[1]
    else:
        path = state.env.get("HOME")
        if path is None:
            errors.write("cd: HOME not set\n")
            state.status = 1
            return state.status
    try:
        old_cwd = os.getcwd()
    except OSError:
        old_cwd = state.cwd
    try:
        os.chdir(path)
    except OSError as error:
        errors.write(f"cd: {error.strerror or error}\n")
        state.status = 1
        return state.status
    state.cwd = os.getcwd()
    if state.env.get("PWD") is not None:
        state.env.assign(f"PWD={state.cwd}")
    if state.env.get("OLDPWD") is not None:
        state.env.assign(f"OLDPWD={old_cwd}")
    state.status = 0
    return state.status


def pwd(state: ShellState, args: Sequence[str], stdout=None, stderr=None) -> int:
    """Print the current directory; extra arguments are an error."""
    if len(args) > 1:
        _err(stderr).write("pwd: too many arguments\n")
        state.status = 1
    else:
        _out(stdout).write(f"{state.cwd}\n")
    return state.status


def env(state: ShellState, args: Sequence[str], stdout=None, stderr=None) -> int:
    """Print every variable that has a value."""
    out = _out(stdout)
    for entry in state.env.printable():
        out.write(f"{entry}\n")
    return state.status


def export(state: ShellState, args: Sequence[str], stdout=None, stderr=None) -> int:
    """Set or declare variables; with no arguments list them sorted."""
    out = _out(stdout)
    if len(args) < 2:
        for line in state.env.sorted_declarations():
            out.write(f"{line}\n")
        return state.status
    for arg in args[1:]:
        if not check_identifier(arg):
            out.write(f"{C_RED}export: not a valid identifier: {arg}\n{RESET_COLOR}")
            continue
        if "=" in arg:
            state.env.assign(arg)
        else:
            try:
                state.env.declare(arg)
            except ValueError as error:
                _err(stderr).write(f"{error}\n")
    return state.status


def unset(state: ShellState, args: Sequence[str], stdout=None, stderr=None) -> int:
    """Remove each named variable."""
    for arg in args[1:]:
        state.env.remove(arg)
    return state.status


def exit_shell(state: ShellState, args: Sequence[str], stdout=None, stderr=None) -> int:
    """End the shell by raising ShellExit, unless the arguments are invalid."""
    errors = _err(stderr)
    if not state.piped:
        _out(stdout).write("exit\n")
    if len(args) < 2:
        raise ShellExit(state.status & 0xFF)
    code = parse_exit_code(args[1])
    if code is None:
        errors.write(f"minishell: exit: {args[1]}: numeric argument required\n")
        state.status = 1
        return state.status
    if len(args) > 2:
        errors.write("minishell: exit: too many arguments\n")
        state.status = 1
        return state.status
    raise ShellExit(code & 0xFF)


_BUILTINS: dict[str, Callable[..., int]] = {
    "exit": exit_shell,
    "pwd": pwd,
    "echo": echo,
    "env": env,
    "export": export,
    "unset": unset,
    "cd": cd,
}


def run_builtin(state: ShellState, args: Sequence[str], stdout=None, stderr=None) -> int:
    """Run the builtin named by ``args[0]`` and return the resulting status."""
    state.status = 0
    if not args:
        return state.status
    handler = _BUILTINS.get(args[0])
    if handler is not None:
        handler(state, args, stdout, stderr)
    return state.status
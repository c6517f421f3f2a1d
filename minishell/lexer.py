"""Splitting an input line into commands and tokens, with quoting and $-expansion."""

from __future__ import annotations

from minishell.environment import Environment
from minishell.model import (
    MAX_PIPE_COUNT,
    Command,
    Token,
    TokenType,
    is_builtin,
)

_WHITESPACE = " \t\n\v\f\r"
_QUOTES = "'\""
_OPERATORS = "|<>"


class ShellSyntaxError(Exception):
    """A line the shell refuses to run; ``status`` is the exit status to record."""

    def __init__(self, message: str, status: int = 2) -> None:
        super().__init__(message)
        self.message = message
        self.status = status


def _is_name_char(char: str) -> bool:
    return char.isascii() and (char.isalnum() or char == "_")


def _skip_spaces(text: str, pos: int) -> int:
    while pos < len(text) and text[pos] == " ":
        pos += 1
    return pos


def quotes_balanced(text: str | None) -> bool:
    """Tell whether every single and double quote in ``text`` is closed."""
    if text is None:
        return True
    in_single = in_double = False
    for char in text:
        if char == "'" and not in_double:
            in_single = not in_single
        elif char == '"' and not in_single:
            in_double = not in_double
    return not in_single and not in_double


def replace_tabs(text: str) -> str | None:
    """Return ``text`` with tabs turned into spaces, or None if it is blank."""
    if not text.strip(_WHITESPACE):
        return None
    return text.replace("\t", " ")


def remove_quotes(text: str) -> str:
    """Drop the quote characters that open and close quoted sections."""
    result = []
    quote_type = ""
    for char in text:
        if char in _QUOTES and (not quote_type or quote_type == char):
            quote_type = "" if quote_type else char
        else:
            result.append(char)
    return "".join(result)


def _expand_dollar(word: str, pos: int, env: Environment, status: int) -> tuple[str, int]:
    """Expand the ``$`` at ``pos``; return the replacement text and new position."""
    pos += 1
    if pos >= len(word):
        return "$", pos
    char = word[pos]
    if char == "?":
        return str(status), pos + 1
    if _is_name_char(char):
        start = pos
        while pos < len(word) and _is_name_char(word[pos]):
            pos += 1
        value = env.get(word[start:pos])
        return (value if value is not None else ""), pos
    if char in _QUOTES:
        return "$", pos
    return "$" + char, pos + 1


def expand_variables(word: str, env: Environment, status: int) -> str:
    """Replace ``$NAME`` and ``$?`` outside single quotes; quotes are kept."""
    result: list[str] = []
    in_single = in_double = False
    pos = 0
    while pos < len(word):
        char = word[pos]
        if char in _QUOTES:
            if char == "'" and not in_double:
                in_single = not in_single
            elif char == '"' and not in_single:
                in_double = not in_double
            result.append(char)
            pos += 1
        elif char == "$" and not in_single:
            piece, pos = _expand_dollar(word, pos, env, status)
            result.append(piece)
        else:
            result.append(char)
            pos += 1
    return "".join(result)


def parse_word(text: str, pos: int, env: Environment, status: int) -> tuple[str, int]:
    """Read one word starting at ``pos``; return it expanded and unquoted, and the end."""
    start = pos
    quote_type = ""
    while pos < len(text):
        char = text[pos]
        if not quote_type and char in _QUOTES:
            quote_type = char
            pos += 1
            continue
        if quote_type and char == quote_type:
            quote_type = ""
            pos += 1
            continue
        if not quote_type and (char in _WHITESPACE or char in _OPERATORS):
            break
        pos += 1
    expanded = expand_variables(text[start:pos], env, status)
    return remove_quotes(expanded), pos


def parse_token(text: str, pos: int, env: Environment, status: int) -> tuple[Token, int]:
    """Read the token at ``pos`` (after spaces); return it and the position after it."""
    pos = _skip_spaces(text, pos)
    char = text[pos] if pos < len(text) else ""
    nxt = text[pos + 1] if pos + 1 < len(text) else ""
    if char == "|":
        return Token(TokenType.PIPE, "|"), pos + 1
    if char == ">":
        if nxt == ">":
            return Token(TokenType.REDIR_APPEND, ">>"), pos + 2
        return Token(TokenType.REDIR_OUT, ">"), pos + 1
    if char == "<":
        if nxt == "<":
            pos = _skip_spaces(text, pos + 2)
            if pos >= len(text) or text[pos] in _OPERATORS:
                raise ShellSyntaxError(
                    "minishell: syntax error near unexpected token `newline'", status=2
                )
            return Token(TokenType.REDIR_DELIM, "<<"), pos
        return Token(TokenType.REDIR_IN, "<"), pos + 1
    word, pos = parse_word(text, pos, env, status)
    kind = TokenType.BUILTIN if is_builtin(word) else TokenType.CMD
    return Token(kind, word), pos


def tokenize(text: str, env: Environment, status: int) -> list[Command]:
    """Split ``text`` into the commands of a pipeline."""
    if not quotes_balanced(text):
        raise ShellSyntaxError("Invalid Input - Unclosed Quotes", status=1)
    commands = [Command()]
    pos = 0
    while pos < len(text):
        token, new_pos = parse_token(text, pos, env, status)
        if new_pos == pos:
            # A whitespace character other than a space stands alone here.
            pos += 1
            continue
        pos = new_pos
        if token.type is TokenType.PIPE:
            if not commands[-1].tokens or _skip_spaces(text, pos) >= len(text):
                raise ShellSyntaxError(
                    "syntax error near unexpected token `|'", status=258
                )
            if len(commands) >= MAX_PIPE_COUNT:
                raise ShellSyntaxError(
                    f"too many commands in one pipeline (max {MAX_PIPE_COUNT})",
                    status=1,
                )
            commands.append(Command())
        else:
            try:
                commands[-1].add_token(token)
            except ValueError as error:
                raise ShellSyntaxError(str(error), status=1) from error
        pos = _skip_spaces(text, pos)
    return commands
import io
import os

import pytest

from minishell.model import Command, Redirection, Token, TokenType
from minishell.redirection import (
    HEREDOC_PROMPT,
    close_redirections,
    command_arguments,
    open_redirections,
    read_heredoc,
)


def _reader(lines):
    iterator = iter(lines)
    prompts = []

    def read(prompt):
        prompts.append(prompt)
        return next(iterator, None)

    return read, prompts


def _command(*pairs):
    command = Command()
    for kind, value in pairs:
        command.add_token(Token(kind, value))
    return command


def test_open_output_creates_and_truncates(tmp_path):
    target = tmp_path / "out.txt"
    target.write_text("old content")
    redir = Redirection()
    open_redirections(redir, None, str(target), io.StringIO())
    try:
        assert redir.out_fd > 1
        os.write(redir.out_fd, b"new")
    finally:
        close_redirections(redir)
    assert target.read_text() == "new"
    assert redir.out_fd == -1


def test_open_output_append_keeps_content_and_clears_flag(tmp_path):
    target = tmp_path / "out.txt"
    target.write_text("first\n")
    redir = Redirection(append=True)
    open_redirections(redir, None, str(target), io.StringIO())
    try:
        os.write(redir.out_fd, b"second\n")
    finally:
        close_redirections(redir)
    assert target.read_text() == "first\nsecond\n"
    assert redir.append is False


def test_open_missing_input_reports_error(tmp_path):
    missing = tmp_path / "missing.txt"
    errors = io.StringIO()
    redir = Redirection()
    open_redirections(redir, str(missing), None, errors)
    assert redir.in_fd == -1
    assert f"minishell: {missing}:" in errors.getvalue()


def test_open_input_reads_file(tmp_path):
    source = tmp_path / "in.txt"
    source.write_text("data")
    redir = Redirection()
    open_redirections(redir, str(source), None, io.StringIO())
    try:
        assert os.read(redir.in_fd, 100) == b"data"
    finally:
        close_redirections(redir)
    assert redir.in_fd == -1


def test_close_leaves_standard_descriptors_alone():
    redir = Redirection()
    close_redirections(redir)
    assert (redir.in_fd, redir.out_fd) == (0, 1)


def test_heredoc_collects_until_delimiter():
    read, prompts = _reader(["a", "b", "EOF", "ignored"])
    assert read_heredoc("EOF", read, io.StringIO()) == "a\nb\n"
    assert prompts == [HEREDOC_PROMPT] * 3


def test_heredoc_end_of_input_warns():
    read, _ = _reader(["only"])
    errors = io.StringIO()
    assert read_heredoc("EOF", read, errors) == "only\n"
    assert errors.getvalue() == (
        "minishell: warning: here-document delimited by end-of-file (wanted 'EOF')\n"
    )


def test_heredoc_delimiter_must_match_whole_line():
    read, _ = _reader(["EOFX", "EOF"])
    assert read_heredoc("EOF", read, io.StringIO()) == "EOFX\n"


def test_arguments_skip_output_redirection(tmp_path):
    target = tmp_path / "out.txt"
    command = _command(
        (TokenType.BUILTIN, "echo"),
        (TokenType.CMD, "hi"),
        (TokenType.REDIR_OUT, ">"),
        (TokenType.CMD, str(target)),
    )
    try:
        assert command_arguments(command, io.StringIO()) == ["echo", "hi"]
        assert command.redir.out_fd > 1
    finally:
        close_redirections(command.redir)
    assert target.exists()


def test_arguments_record_heredoc_delimiter():
    command = _command(
        (TokenType.CMD, "cat"),
        (TokenType.REDIR_DELIM, "<<"),
        (TokenType.CMD, "END"),
    )
    assert command_arguments(command, io.StringIO()) == ["cat"]
    assert command.redir.delimiter == "END"


def test_arguments_with_missing_input_file(tmp_path):
    command = _command(
        (TokenType.CMD, "cat"),
        (TokenType.REDIR_IN, "<"),
        (TokenType.CMD, str(tmp_path / "nope")),
    )
    errors = io.StringIO()
    assert command_arguments(command, errors) == ["cat"]
    assert command.redir.in_fd == -1
    assert "minishell:" in errors.getvalue()


def test_arguments_append_redirection(tmp_path):
    target = tmp_path / "log.txt"
    target.write_text("x")
    command = _command(
        (TokenType.CMD, "ls"),
        (TokenType.REDIR_APPEND, ">>"),
        (TokenType.CMD, str(target)),
    )
    try:
        command_arguments(command, io.StringIO())
        os.write(command.redir.out_fd, b"y")
    finally:
        close_redirections(command.redir)
    assert target.read_text() == "xy"


@pytest.mark.parametrize(
    "pairs, expected",
    [
        ([(TokenType.CMD, "ls"), (TokenType.CMD, "-l")], ["ls", "-l"]),
        ([(TokenType.CMD, "ls"), (TokenType.REDIR_OUT, ">")], ["ls"]),
    ],
)
def test_arguments_plain(pairs, expected):
    assert command_arguments(_command(*pairs), io.StringIO()) == expected
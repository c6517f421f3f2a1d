import io
import os
import sys

import pytest

from minishell.model import C_BLUE, C_BRT_GREEN, RESET_COLOR
from minishell.shell import Shell, header, main


@pytest.fixture
def shell_io(tmp_path):
    out, err = io.StringIO(), io.StringIO()
    shell = Shell({"PATH": str(tmp_path), "HOME": str(tmp_path)}, str(tmp_path), out, err)
    out.seek(0)
    out.truncate()
    return shell, out, err


def _reader(lines):
    items = iter(lines)
    prompts = []

    def read(prompt):
        prompts.append(prompt)
        item = next(items, None)
        if item is KeyboardInterrupt:
            raise KeyboardInterrupt
        return item

    return read, prompts


def test_header_is_coloured_banner():
    text = header()
    assert text.startswith(C_BRT_GREEN)
    assert text.endswith(RESET_COLOR)
    assert "|_/___|" in text


def test_init_writes_header(tmp_path):
    out = io.StringIO()
    Shell({}, str(tmp_path), out, io.StringIO())
    assert out.getvalue() == header()


def test_init_starts_shlvl_at_one(tmp_path):
    shell = Shell({}, str(tmp_path), io.StringIO(), io.StringIO())
    assert shell.state.env.get("SHLVL") == "1"


def test_init_increments_existing_shlvl(tmp_path):
    shell = Shell({"SHLVL": "3"}, str(tmp_path), io.StringIO(), io.StringIO())
    assert int(shell.state.env.get("SHLVL")) > 3


def test_prompt_shows_cwd(shell_io, tmp_path):
    shell, _, _ = shell_io
    assert shell.prompt() == C_BLUE + str(tmp_path) + " > " + RESET_COLOR


def test_echo_writes_output(shell_io):
    shell, out, _ = shell_io
    assert shell.process_input("echo hello world") == 0
    assert out.getvalue() == "hello world\n"


def test_unclosed_quotes_sets_status(shell_io):
    shell, out, _ = shell_io
    assert shell.process_input("echo 'oops") == 1
    assert "Invalid Input - Unclosed Quotes" in out.getvalue()


def test_blank_line_keeps_status(shell_io):
    shell, out, _ = shell_io
    shell.state.status = 5
    assert shell.process_input("   ") == 5
    assert out.getvalue() == ""


def test_history_records_non_empty_lines(shell_io):
    shell, _, _ = shell_io
    shell.process_input("")
    shell.process_input("echo a")
    assert shell.history == ["echo a"]


def test_export_then_expand(shell_io):
    shell, out, _ = shell_io
    shell.process_input("export FOO=bar")
    shell.process_input("echo $FOO")
    assert out.getvalue() == "bar\n"


def test_pipe_syntax_error(shell_io):
    shell, out, _ = shell_io
    assert shell.process_input("| echo") == 258
    assert "syntax error near unexpected token `|'" in out.getvalue()


def test_heredoc_without_delimiter_is_error(shell_io):
    shell, out, _ = shell_io
    assert shell.process_input("cat <<") == 2
    assert "unexpected token `newline'" in out.getvalue()


def test_unknown_command_status_visible_in_dollar_question(shell_io):
    shell, out, _ = shell_io
    assert shell.process_input("nosuchcmd") == 127
    assert "nosuchcmd: Command not found" in out.getvalue()
    out.seek(0)
    out.truncate()
    shell.process_input("echo $?")
    assert out.getvalue() == "127\n"


def test_cd_changes_prompt(shell_io, tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    shell, _, _ = shell_io
    sub = tmp_path / "inner"
    sub.mkdir()
    assert shell.process_input(f"cd {sub}") == 0
    assert shell.prompt() == C_BLUE + os.getcwd() + " > " + RESET_COLOR


def test_run_returns_exit_code(shell_io):
    shell, out, _ = shell_io
    read, _ = _reader(["echo hi", "exit 7"])
    assert shell.run(read) == 7
    assert "hi\n" in out.getvalue()
    assert "exit\n" in out.getvalue()


def test_run_end_of_input_returns_zero(shell_io):
    shell, _, _ = shell_io
    read, prompts = _reader([])
    assert shell.run(read) == 0
    assert prompts == [shell.prompt()]


def test_run_interrupt_redraws_prompt(shell_io):
    shell, out, _ = shell_io
    read, prompts = _reader([KeyboardInterrupt, None])
    assert shell.run(read) == 0
    assert out.getvalue() == "\n"
    assert len(prompts) == 2


def test_run_bad_exit_argument_continues(shell_io):
    shell, _, err = shell_io
    read, _ = _reader(["exit abc", "exit 4"])
    assert shell.run(read) == 4
    assert "exit: abc: numeric argument required" in err.getvalue()


def test_main_runs_standard_input(monkeypatch):
    monkeypatch.setattr(sys, "stdin", io.StringIO("echo hi\nexit 3\n"))
    out = io.StringIO()
    monkeypatch.setattr(sys, "stdout", out)
    assert main([]) == 3
    assert "hi\n" in out.getvalue()
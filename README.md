# minishell

A small interactive shell for POSIX systems. It reads a line, splits it into
words and operators, expands variables, and runs the result as a pipeline of
builtin or external commands.

## Installing

```
pip install .
```

## Running

```
minishell
```

A banner is printed at start-up, then the prompt shows the current directory.
End the session with `exit` or with end-of-file (Ctrl-D). Ctrl-C at the prompt
starts a fresh line. On a terminal, TAB inserts a tab character rather than
completing.

## What it understands

- Single and double quotes. A line with an unclosed quote is rejected with
  status 1.
- `$NAME` expands to the value of an environment variable, and `$?` to the
  exit status of the last command. Nothing is expanded inside single quotes.
- Pipelines joined by `|`, up to 10 commands. A `|` with nothing before or
  after it is a syntax error (status 258).
- Redirections: `< file`, `> file`, `>> file`, and here-documents with
  `<< DELIM`, which read lines until one equals the delimiter. A missing
  here-document delimiter is a syntax error (status 2).
- Builtins: `echo` (with `-n`, `-nnn`, ...), `cd` (no argument means `HOME`;
  updates `PWD` and `OLDPWD` when they are set), `pwd`, `export` (no argument
  lists the variables as `declare -x` lines), `unset`, `env` and `exit`.
- Any other command is looked up on `PATH`, or taken as written when it starts
  with `/` or `./`. An unknown command reports `Command not found` and gives
  status 127. A command killed by a signal gives status 128 plus the signal
  number.
- `SHLVL` goes up by one when the shell starts.

## Using it from Python

```python
import io
from minishell.shell import Shell

out = io.StringIO()
shell = Shell({"PATH": "/usr/bin:/bin"}, "/tmp", out, io.StringIO())
status = shell.process_input("echo hello")
print(out.getvalue())
```

`Shell.process_input` returns the status of the line; an `exit` raises
`minishell.builtins.ShellExit`, whose `code` is the exit code. `Shell.run`
takes a function that is called with the prompt and returns a line, or `None`
at end of input, and returns the exit code.

The pieces can also be used on their own:

```python
from minishell.environment import Environment
from minishell.lexer import tokenize
from minishell.model import ShellState
from minishell.executor import execute

env = Environment({"HOME": "/home/user", "PATH": "/usr/bin:/bin"})
commands = tokenize('echo "$HOME" | cat', env, 0)
state = ShellState(env, "/tmp")
execute(state, commands)
```

- `minishell.lexer`: `tokenize`, `parse_token`, `parse_word`,
  `expand_variables`, `remove_quotes`, `quotes_balanced`, `replace_tabs`, and
  `ShellSyntaxError` (with a `status`).
- `minishell.environment`: `Environment` with `get`, `exists`, `assign`,
  `declare`, `remove`, `printable`, `sorted_declarations`, `increment_shlvl`
  and `as_dict`; `check_identifier`.
- `minishell.builtins`: one function per builtin and `run_builtin`.
- `minishell.pathing`: `resolve_command` and `find_in_dirs`.
- `minishell.redirection`: `open_redirections`, `close_redirections`,
  `read_heredoc` and `command_arguments`.
- `minishell.executor`: `execute` and `exit_status`.

## What it does not do

- No `;`, `&&`, `||`, wildcards, background jobs or subshells.
- History is kept in memory for the session only (`Shell.history`); it is not
  saved to a file.
- Only a builtin that runs alone changes the shell's state. A builtin inside a
  pipeline (for example `cd /tmp | cat` or `exit | cat`) runs apart from it and
  leaves the directory, the variables and the session unchanged.

## Tests

```
pip install .[test]
pytest
```
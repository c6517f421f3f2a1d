"""Environment variable storage with the shell's export and unset rules."""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping

_WHITESPACE = " \t\n\v\f\r"


def _is_alpha(char: str) -> bool:
    return len(char) == 1 and char.isascii() and char.isalpha()


def _is_alnum(char: str) -> bool:
    return len(char) == 1 and char.isascii() and char.isalnum()


def _is_digit(char: str) -> bool:
    return len(char) == 1 and "0" <= char <= "9"


def _atoi(text: str) -> int:
    """Leading-integer conversion: whitespace, optional sign, then digits."""
    rest = text.lstrip(_WHITESPACE)
    sign = 1
    if rest and rest[0] in "+-":
        if rest[0] == "-":
            sign = -1
        rest = rest[1:]
    value = 0
    for char in rest:
        if not _is_digit(char):
            break
        value = value * 10 + int(char)
    return sign * value


def is_valid_identifier_char(char: str, first_char: bool) -> bool:
    """Tell whether ``char`` may appear in a variable name at that position."""
    if first_char:
        return _is_alpha(char) or char == "_"
    return _is_alnum(char) or char == "_"


def check_identifier(arg: str) -> bool:
    """Tell whether the name part (before any ``=``) of ``arg`` is valid."""
    if not arg:
        return False
    if not is_valid_identifier_char(arg[0], True):
        return False
    name = arg.split("=", 1)[0]
    return all(is_valid_identifier_char(char, False) for char in name[1:])


def _names_entry(entry: str, name: str) -> bool:
    """True when ``entry`` is ``name`` alone or ``name=...``."""
    if not entry.startswith(name):
        return False
    return len(entry) == len(name) or entry[len(name)] == "="


class Environment:
    """Ordered list of ``NAME=value`` and bare ``NAME`` entries."""

    def __init__(self, entries: Iterable[str] | Mapping[str, str] = ()) -> None:
        if isinstance(entries, Mapping):
            self._entries = [f"{key}={value}" for key, value in entries.items()]
        else:
            self._entries = [str(entry) for entry in entries]

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._entries))

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self.exists(name)

    def __repr__(self) -> str:
        return f"Environment({self._entries!r})"

    def get(self, name: str) -> str | None:
        """Return the value of ``name``, or None if it has no value."""
        prefix = name + "="
        for entry in self._entries:
            if entry.startswith(prefix):
                return entry[len(prefix):]
        return None

    def exists(self, name: str) -> bool:
        """Tell whether ``name`` is present, with or without a value."""
        return any(_names_entry(entry, name) for entry in self._entries)

    def add(self, entry: str) -> None:
        """Append ``entry`` unconditionally."""
        self._entries.append(entry)

    def assign(self, assignment: str) -> None:
        """Set ``NAME=value``, replacing the first entry for NAME in place."""
        if "=" not in assignment:
            raise ValueError(f"not an assignment: {assignment!r}")
        name = assignment.split("=", 1)[0]
        for index, entry in enumerate(self._entries):
            if _names_entry(entry, name):
                self._entries[index] = assignment
                return
        self._entries.append(assignment)

    def declare(self, name: str) -> None:
        """Add ``name`` without a value unless it is already present."""
        if name and self.exists(name):
            return
        valid = (
            bool(name)
            and not _is_digit(name[0])
            and all(_is_alnum(char) or char == "_" for char in name[1:])
        )
        if not valid:
            raise ValueError(f"minishell: export: `{name}': not a valid identifier")
        self._entries.append(name)

    def remove(self, name: str) -> bool:
        """Remove the first entry for ``name`` (text after ``=`` is ignored)."""
        key = name.split("=", 1)[0]
        for index, entry in enumerate(self._entries):
            if _names_entry(entry, key):
                del self._entries[index]
                return True
        return False

    def entries(self) -> list[str]:
        """Return a copy of all entries in order."""
        return list(self._entries)

    def printable(self) -> list[str]:
        """Return the entries that carry a value, as ``env`` shows them."""
        return [entry for entry in self._entries if "=" in entry]

    def sorted_declarations(self) -> list[str]:
        """Return ``declare -x`` lines in sorted order, as bare ``export`` shows."""
        width = len(self._entries)
        ordered = sorted(self._entries, key=lambda entry: entry[:width])
        lines = []
        for entry in ordered:
            if "=" in entry:
                name, value = entry.split("=", 1)
                lines.append(f'declare -x {name}="{value}"')
            else:
                lines.append(f"declare -x {entry}")
        return lines

    def increment_shlvl(self) -> None:
        """Raise SHLVL by one, starting from zero when unset or empty."""
        current = self.get("SHLVL")
        level = _atoi(current) if current else 0
        assignment = f"SHLVL={level + 1}"
        if self.exists("SHLVL"):
            self.assign(assignment)
        else:
            self.add(assignment)

    def as_dict(self) -> dict[str, str]:
        """Return the entries with values as a mapping, first entry winning."""
        result: dict[str, str] = {}
        for entry in self._entries:
            if "=" in entry:
                name, value = entry.split("=", 1)
                result.setdefault(name, value)
        return result
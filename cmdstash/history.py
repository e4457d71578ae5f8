"""Shell history sources.

The stash core never reads shell history itself; it asks a HistorySource
for candidate commands. Two sources exist:

- HistoryFile: parses a zsh or bash history file on disk
- CommandList: a plain list of commands (piped history, tests)

Usage:
    from cmdstash import history

    source = history.default_source()
    source.last_command()       # most recent command that isn't `stash ...`
    source.head_commands(3)     # last 3 commands, oldest first
    source.tail_commands(3)     # first 3 commands
    source.history_line(120)    # command #120
"""

import os
import re
from abc import ABC, abstractmethod
from pathlib import Path

from cmdstash.store import is_self_reference, log

# Commands last_command() skips over, e.g. an assistant you call right after
# the command you actually meant to stash
IGNORED_COMMANDS = [
    w.strip() for w in os.environ.get("STASH_IGNORE", "gemini").split(",") if w.strip()
]

HISTORY_CANDIDATES = ("~/.zsh_history", "~/.bash_history")

# zsh EXTENDED_HISTORY: ": <start epoch>:<elapsed seconds>;<command>"
ZSH_ENTRY_RE = re.compile(r"^: \d+:\d+;")
# bash HISTTIMEFORMAT writes "#<epoch>" before each command
BASH_TIMESTAMP_RE = re.compile(r"^#\d{9,}$")

# zsh "metafies" bytes >= 0x83 in its history file
ZSH_META = 0x83


class HistorySource(ABC):
    """Candidate commands from the user's shell history, oldest first."""

    @abstractmethod
    def commands(self) -> list[str]:
        """Every history entry, oldest first, with shell encoding stripped."""

    def last_command(self) -> str:
        """Most recent command that is neither a stash invocation nor ignored."""
        for cmd in reversed(self.commands()):
            if not cmd.strip() or is_self_reference(cmd) or is_ignored(cmd):
                continue
            return cmd
        return ""

    def head_commands(self, n: int) -> list[str]:
        """The most recent `n` commands, oldest first, without stash invocations."""
        if n <= 0:
            return []
        return self._candidates()[-n:]

    def tail_commands(self, n: int) -> list[str]:
        """The first `n` commands, in order, without stash invocations."""
        if n <= 0:
            return []
        return self._candidates()[:n]

    def history_line(self, n: int) -> str:
        """The command at absolute history entry `n` (1-based), or ""."""
        commands = self.commands()
        if 1 <= n <= len(commands):
            return commands[n - 1]
        return ""

    def _candidates(self) -> list[str]:
        return [c for c in self.commands() if c.strip() and not is_self_reference(c)]


class CommandList(HistorySource):
    """History held in memory, e.g. lines piped in from `fc -ln 1`."""

    def __init__(self, commands: list[str]):
        self._commands = [c.rstrip("\n") for c in commands]

    def commands(self) -> list[str]:
        return list(self._commands)


class HistoryFile(HistorySource):
    """A zsh or bash history file.

    Handles zsh EXTENDED_HISTORY entries (including multi-line entries,
    whose embedded newlines zsh writes as backslash-newline), zsh
    metafied bytes, bash `#<epoch>` timestamp lines, and plain
    one-command-per-line files.
    """

    def __init__(self, path: str | Path):
        self.path = Path(path).expanduser()

    def commands(self) -> list[str]:
        try:
            data = self.path.read_bytes()
        except FileNotFoundError:
            log("History", f"No history file at {self.path}")
            return []
        except OSError as e:
            log("History", f"Cannot read {self.path}: {e}")
            return []

        if self._is_zsh(data):
            data = unmetafy(data)
        text = data.decode("utf-8", errors="surrogateescape")
        return parse_history(text.splitlines())

    def _is_zsh(self, data: bytes) -> bool:
        if "zsh" in self.path.name:
            return True
        first = data.split(b"\n", 1)[0].decode("utf-8", errors="replace")
        return bool(ZSH_ENTRY_RE.match(first))


def is_ignored(command: str) -> bool:
    """True if any word of `command` is on the ignore list."""
    words = command.split()
    return any(w in words for w in IGNORED_COMMANDS)


def unmetafy(data: bytes) -> bytes:
    """Undo zsh's metafication: 0x83 followed by (byte ^ 0x20)."""
    if ZSH_META not in data:
        return data
    out = bytearray()
    it = iter(data)
    for b in it:
        if b == ZSH_META:
            nxt = next(it, None)
            if nxt is None:
                break
            out.append(nxt ^ 0x20)
        else:
            out.append(b)
    return bytes(out)


def parse_history(lines: list[str]) -> list[str]:
    """Turn raw history file lines into one string per command."""
    if any(ZSH_ENTRY_RE.match(line) for line in lines):
        return _parse_zsh_extended(lines)

    return [line for line in lines if not BASH_TIMESTAMP_RE.match(line)]


def _parse_zsh_extended(lines: list[str]) -> list[str]:
    commands: list[str] = []
    block: list[str] | None = None

    for line in lines:
        if ZSH_ENTRY_RE.match(line):
            if block is not None:
                commands.append(_join_zsh_block(block))
            block = [line.split(";", 1)[1]]
        elif block is not None and block[-1].endswith("\\"):
            block.append(line)
        else:
            # Stray line outside any entry (file written without EXTENDED_HISTORY)
            if block is not None:
                commands.append(_join_zsh_block(block))
                block = None
            commands.append(line)

    if block is not None:
        commands.append(_join_zsh_block(block))
    return commands


def _join_zsh_block(block: list[str]) -> str:
    # zsh stores a newline inside a command as backslash-newline; every line
    # but the last ends with that backslash
    return "\n".join([line[:-1] for line in block[:-1]] + [block[-1]])


def default_source() -> HistoryFile:
    """History file to read: $STASH_HISTFILE, $HISTFILE, then zsh/bash defaults.

    HISTFILE is a shell variable that is usually not exported, so the
    fallbacks are what most invocations end up using.
    """
    explicit = os.environ.get("STASH_HISTFILE") or os.environ.get("HISTFILE")
    if explicit:
        return HistoryFile(explicit)

    for candidate in HISTORY_CANDIDATES:
        path = Path(candidate).expanduser()
        if path.is_file():
            return HistoryFile(path)

    log("History", "No history file found, falling back to ~/.zsh_history")
    return HistoryFile(HISTORY_CANDIDATES[0])

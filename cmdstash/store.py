"""Stash store: the append-only command log.

One entry per line in ~/.command_stash:

    [2026-01-05 14:03:22] git rebase -i origin/main

The 1-based line number is the entry's address. `stash find`, `stash list`
and `stash recall N` all use it, so lines are only ever appended; the file
is never rewritten, only removed by `clear()`.

Follows the same conventions as the rest of the package: plain functions,
dict results, error dicts with an "error" message and a "kind".
"""

import os
import re
import sys
from datetime import datetime

STASH_FILE = os.path.expanduser(os.environ.get("STASH_FILE") or "~/.command_stash")
DEBUG = bool(os.environ.get("STASH_DEBUG"))

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"

# Invocation name of the tool and the other names it is run as
TOOL_NAME = "stash"
SCRIPT_NAMES = ("stash.sh", "cmdstash.cli")

# Error kinds
EMPTY_COMMAND = "EmptyCommand"
SELF_REFERENCE = "SelfReference"
MULTI_LINE = "MultiLine"
DUPLICATE = "Duplicate"
STORE_UNAVAILABLE = "StoreUnavailable"
INVALID_ARGUMENT = "InvalidArgument"
INVALID_LINE = "InvalidLine"
NO_STORE_FOUND = "NoStoreFound"

# "[anything] command" -- same loose prefix the shell version stripped with sed
_ENTRY_RE = re.compile(r"^\[([^\]]*)\] ?(.*)$", re.DOTALL)

# Boundaries between simple commands: lists, pipelines, subshells, substitutions
_SEGMENT_SPLIT_RE = re.compile(r"&&|\|\||[;|&\n()`{}]")
_ASSIGNMENT_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*=")
_PREFIX_WORDS = {"sudo", "command", "builtin", "noglob", "exec", "nohup", "time", "env"}


class StoreUnavailable(OSError):
    """The stash file exists but could not be read or written."""


def log(prefix: str, msg: str):
    if DEBUG:
        print(f"[{prefix}] {msg}", file=sys.stderr)


def is_self_reference(command: str) -> bool:
    """True if `command` runs the stash tool itself.

    Matches a simple command whose first word is the tool name (after
    assignments and wrappers like sudo), or any mention of the script names.
    `git stash pop` is not a self-reference.
    """
    if any(name in command for name in SCRIPT_NAMES):
        return True

    for segment in _SEGMENT_SPLIT_RE.split(command):
        words = segment.split()
        while words and (words[0] in _PREFIX_WORDS or _ASSIGNMENT_RE.match(words[0])):
            words.pop(0)
        if words and os.path.basename(words[0]) == TOOL_NAME:
            return True
    return False


def store_exists() -> bool:
    return os.path.isfile(STASH_FILE)


def read_entries() -> list[dict]:
    """Load every entry in file order.

    Each entry is {"line", "timestamp", "command"}. Blank lines keep their
    number but are skipped. A missing file reads as empty.

    Raises StoreUnavailable if the file exists but cannot be read.
    """
    lines = _split_lines(_read_text() or "")
    return [
        _parse_line(i, text)
        for i, text in enumerate(lines, 1)
        if text.strip()
    ]


def get_entry(line: int) -> dict | None:
    """Return the entry on a 1-based line, or None if out of range or blank."""
    if line < 1:
        return None
    lines = _split_lines(_read_text() or "")
    if line > len(lines) or not lines[line - 1].strip():
        return None
    entry = _parse_line(line, lines[line - 1])
    if not entry["command"].strip():
        return None
    return entry


def add_command(command: str, now: datetime | None = None) -> dict:
    """Append a command to the stash unless it is rejected or already there.

    Returns one of:
        {"status": "stashed", "line", "command", "timestamp"}
        {"status": "duplicate", "line", "command", "timestamp"}  (nothing written)
        {"error", "kind"}
    """
    if not command or not command.strip():
        return {"error": "No command to stash.", "kind": EMPTY_COMMAND}

    # Backslash-newline is a shell line continuation; dropping it keeps the meaning
    command = command.replace("\\\n", "")
    if "\n" in command:
        return {
            "error": "Multi-line commands cannot be stashed (one entry per line).",
            "kind": MULTI_LINE,
        }

    if is_self_reference(command):
        return {"error": "Not stashing stash commands.", "kind": SELF_REFERENCE}

    try:
        text = _read_text()
    except StoreUnavailable as e:
        return {"error": str(e), "kind": STORE_UNAVAILABLE}

    lines = _split_lines(text or "")
    for i, existing in enumerate(lines, 1):
        if not existing.strip():
            continue
        entry = _parse_line(i, existing)
        if entry["command"] == command:
            return {"status": "duplicate", "kind": DUPLICATE, **entry}

    timestamp = (now or datetime.now()).strftime(TIMESTAMP_FORMAT)
    # Hand-edited files may lack the trailing newline
    prefix = "\n" if text and not text.endswith("\n") else ""
    line = len(lines) + 1

    try:
        parent = os.path.dirname(STASH_FILE)
        if parent:
            os.makedirs(parent, exist_ok=True)
        if text is None:
            log("Store", f"Creating stash file {STASH_FILE}")
        with open(STASH_FILE, "a", encoding="utf-8", errors="surrogateescape") as f:
            f.write(f"{prefix}[{timestamp}] {command}\n")
    except OSError as e:
        return {"error": f"Cannot write stash file {STASH_FILE}: {e}", "kind": STORE_UNAVAILABLE}

    return {"status": "stashed", "line": line, "command": command, "timestamp": timestamp}


def clear() -> dict:
    """Delete the stash file. Clearing an absent stash succeeds."""
    try:
        os.unlink(STASH_FILE)
    except FileNotFoundError:
        return {"status": "cleared", "removed": False}
    except OSError as e:
        return {"error": f"Cannot remove stash file {STASH_FILE}: {e}", "kind": STORE_UNAVAILABLE}
    log("Store", f"Removed {STASH_FILE}")
    return {"status": "cleared", "removed": True}


def format_entry(entry: dict) -> str:
    """One display line: `N) [timestamp] command`."""
    if entry["timestamp"]:
        return f"{entry['line']}) [{entry['timestamp']}] {entry['command']}"
    return f"{entry['line']}) {entry['command']}"


def format_entry_list(entries: list[dict]) -> str:
    if not entries:
        return "No stashed commands."
    return "\n".join(format_entry(e) for e in entries)


# --- Internal helpers ---

def _read_text() -> str | None:
    """Raw file contents, or None if the stash file does not exist yet."""
    try:
        # newline="" so a stray \r stays inside its command instead of splitting lines
        with open(STASH_FILE, "r", encoding="utf-8", errors="surrogateescape", newline="") as f:
            return f.read()
    except FileNotFoundError:
        return None
    except OSError as e:
        raise StoreUnavailable(f"Cannot read stash file {STASH_FILE}: {e}") from e


def _split_lines(text: str) -> list[str]:
    if not text:
        return []
    lines = text.split("\n")
    if lines[-1] == "":
        lines.pop()
    return lines


def _parse_line(line: int, text: str) -> dict:
    m = _ENTRY_RE.match(text)
    if m:
        return {"line": line, "timestamp": m.group(1), "command": m.group(2)}
    return {"line": line, "timestamp": "", "command": text}

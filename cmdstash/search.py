"""Search stashed commands.

Case-insensitive regex match against the command text only; the
timestamp is shown but never matched. Results keep their stash line
numbers so any hit can be passed straight to `stash recall N`.
"""

import re

from cmdstash import store

DEFAULT_SHOWN = 5


def find_commands(pattern: str) -> dict:
    """Find every stashed command matching `pattern`.

    A pattern that isn't a valid regex is matched as a plain substring.

    Returns {"pattern", "matches", "total"} with matches in ascending line
    order, or an error dict. An absent stash file is an error here (there
    is nothing to search), unlike `stash list` which reports it as empty.
    """
    if not pattern:
        return {"error": "Search pattern is empty.", "kind": store.INVALID_ARGUMENT}

    if not store.store_exists():
        return {"error": "No stash file.", "kind": store.NO_STORE_FOUND}

    try:
        entries = store.read_entries()
    except store.StoreUnavailable as e:
        return {"error": str(e), "kind": store.STORE_UNAVAILABLE}

    compiled = compile_pattern(pattern)
    matches = [e for e in entries if compiled.search(e["command"])]
    return {"pattern": pattern, "matches": matches, "total": len(matches)}


def compile_pattern(pattern: str) -> re.Pattern:
    try:
        return re.compile(pattern, re.IGNORECASE)
    except re.error:
        return re.compile(re.escape(pattern), re.IGNORECASE)


def format_matches(result: dict, limit: int = DEFAULT_SHOWN) -> str:
    """Format search results, showing the most recent `limit` matches (0 = all)."""
    matches = result["matches"]
    total = result["total"]
    if not matches:
        return f"No stashed commands match \"{result['pattern']}\"."

    shown = matches[-limit:] if limit > 0 else matches
    if len(shown) < total:
        lines = [f"Last {len(shown)} of {total} matching commands:"]
    else:
        lines = [f"{total} matching command{'s' if total != 1 else ''}:"]

    lines.extend(f"  {store.format_entry(e)}" for e in shown)

    hidden = total - len(shown)
    if hidden > 0:
        lines.append(f"... and {hidden} more match{'es' if hidden != 1 else ''} (use --max 0 to show all)")
    return "\n".join(lines)

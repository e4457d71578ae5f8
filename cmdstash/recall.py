"""Recall: run a stashed command again.

    resolving -> confirming -> executing -> done
        \\             \\
         failed         cancelled

The line number is looked up in the live stash file every time, never in
an earlier search result, since line numbers are the store's own stable
addresses.

The command is handed to the user's shell verbatim with the user's full
privileges, cwd and environment, exactly as if it had been typed. It runs
in a child shell, so state changes like `cd` or `export` do not carry
back into the calling shell.
"""

import os
import subprocess

from rich.prompt import Confirm

from cmdstash import store
from cmdstash.store import log

RESOLVING = "resolving"
CONFIRMING = "confirming"
EXECUTING = "executing"
DONE = "done"
FAILED = "failed"
CANCELLED = "cancelled"

DEFAULT_SHELL = "/bin/sh"

# The shell itself could not be started (the command never ran)
EXEC_FAILED = "ExecFailed"


def resolve(line: int) -> dict:
    """Look up `line` in the stash. Moves to confirming, or fails."""
    try:
        entry = store.get_entry(line)
    except store.StoreUnavailable as e:
        return {"state": FAILED, "line": line, "error": str(e), "kind": store.STORE_UNAVAILABLE}

    if entry is None:
        return {
            "state": FAILED,
            "line": line,
            "error": f"Invalid selection: no stashed command on line {line}.",
            "kind": store.INVALID_LINE,
        }
    return {"state": CONFIRMING, "line": line, "command": entry["command"]}


def ask_confirmation(command: str) -> bool:
    """Show the command and block until the user accepts (Enter/y) or refuses (n)."""
    print(f"Executing: {command}")
    return Confirm.ask("Run it?", default=True)


def user_shell() -> str:
    return os.environ.get("SHELL") or DEFAULT_SHELL


def run_command(command: str) -> int:
    """Run `command` through the user's shell and return its exit status.

    Ctrl-C goes to the child (same terminal, same process group); we keep
    waiting so the child's own exit status is what gets reported.
    """
    shell = user_shell()
    if not os.path.isfile(shell):
        log("Recall", f"Shell {shell} not found, using {DEFAULT_SHELL}")
        shell = DEFAULT_SHELL

    log("Recall", f"Running via {shell}: {command}")
    proc = subprocess.Popen([shell, "-c", command])
    while True:
        try:
            returncode = proc.wait()
            break
        except KeyboardInterrupt:
            continue
    log("Recall", f"Exit status {returncode}")
    return returncode


def recall(line: int, confirm=None, run=None) -> dict:
    """Resolve, confirm and execute stashed command `line`.

    Args:
        line: 1-based stash line number
        confirm: callable(command) -> bool, defaults to an interactive prompt.
            EOF or Ctrl-C while confirming cancels.
        run: callable(command) -> int exit status, defaults to run_command

    Returns:
        Dict with "state" (done, failed or cancelled), "line", and either
        "command" + "exit_code" or "error" + "kind".
    """
    confirm = confirm or ask_confirmation
    run = run or run_command

    log("Recall", f"line {line}: {RESOLVING}")
    result = resolve(line)
    if result["state"] == FAILED:
        return result

    command = result["command"]
    try:
        accepted = confirm(command)
    except (EOFError, KeyboardInterrupt):
        accepted = False
    if not accepted:
        return {"state": CANCELLED, "line": line, "command": command}

    log("Recall", f"line {line}: {EXECUTING}")
    try:
        exit_code = run(command)
    except OSError as e:
        return {
            "state": FAILED,
            "line": line,
            "command": command,
            "error": f"Could not start shell: {e}",
            "kind": EXEC_FAILED,
        }
    return {"state": DONE, "line": line, "command": command, "exit_code": exit_code}

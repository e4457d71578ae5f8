"""CLI entry point -- `stash` and its subcommands.

    stash                  stash the last command
    stash head N           stash the last N commands
    stash tail N           stash the first N commands of the history
    stash history N        stash history entry N
    stash find "text"      search stashed commands
    stash recall N         run stashed command N (asks first)
    stash list             list stashed commands
    stash clear            delete the stash
    stash tui              browse the stash interactively
    stash <command...>     stash the given command text

Anything that isn't a subcommand is stashed literally, so `stash git
status` stashes "git status". Use `stash -- <command>` if the command
starts with a subcommand name or `-h`. A leading `--file PATH` applies to
every form.
"""

import argparse
import os
import re
import sys

from cmdstash import history, recall, search, store

SUBCOMMANDS = ("head", "tail", "history", "find", "recall", "list", "clear", "tui", "help")
TOP_LEVEL_OPTIONS = ("-h", "--help", "--file")


def _fail(message: str, code: int = 1):
    print(f"Error: {message}")
    sys.exit(code)


def _exit_status(returncode: int) -> int:
    """Map a Popen return code to a shell-style exit status (signals -> 128+N)."""
    return 128 - returncode if returncode < 0 else returncode


def _history_source(args) -> history.HistorySource:
    if getattr(args, "stdin", False):
        return history.CommandList(sys.stdin.read().splitlines())
    return history.default_source()


def _already_confirmed(command: str) -> bool:
    print(f"Executing: {command}")
    return True


def _stash_one(command: str) -> bool:
    """Stash a single command and report the outcome. False if rejected."""
    result = store.add_command(command)
    if "error" in result:
        print(f"Error: {result['error']}")
        return False
    if result["status"] == "duplicate":
        print(f"Already stashed (line {result['line']}): {result['command']}")
    else:
        print(f"Stashed (line {result['line']}): {result['command']}")
    return True


def _stash_batch(commands: list[str]):
    commands = [c.strip() for c in commands if c.strip()]
    if not commands:
        _fail("No commands found in history.")
    outcomes = [_stash_one(c) for c in commands]
    if not any(outcomes):
        sys.exit(1)


def cmd_stash_last(args):
    """Stash the most recent command from shell history."""
    command = _history_source(args).last_command().strip()
    if not _stash_one(command):
        sys.exit(1)


def cmd_stash_text(args):
    """Stash the argument list as a literal command."""
    command = " ".join(args.text).strip()
    if not _stash_one(command):
        sys.exit(1)


def cmd_head(args):
    """Stash the last N commands of the history."""
    _stash_batch(_history_source(args).head_commands(args.count))


def cmd_tail(args):
    """Stash the first N commands of the history."""
    _stash_batch(_history_source(args).tail_commands(args.count))


def cmd_history(args):
    """Stash a specific history entry."""
    command = _history_source(args).history_line(args.number).strip()
    if not command:
        _fail(f"No command on history line {args.number}.")
    if not _stash_one(command):
        sys.exit(1)


def cmd_find(args):
    """Search stashed commands."""
    result = search.find_commands(args.pattern)
    if "error" in result:
        _fail(result["error"])
    print(search.format_matches(result, limit=args.max))


def cmd_recall(args):
    """Run a stashed command after confirmation; exit with its status."""
    confirm = _already_confirmed if args.yes else None
    result = recall.recall(args.number, confirm=confirm)
    if result["state"] == recall.FAILED:
        _fail(result["error"])
    if result["state"] == recall.CANCELLED:
        print("Cancelled.")
        sys.exit(130)
    sys.exit(_exit_status(result["exit_code"]))


def cmd_list(args):
    """List all stashed commands with their line numbers."""
    try:
        entries = store.read_entries()
    except store.StoreUnavailable as e:
        _fail(str(e))
    print(store.format_entry_list(entries))


def cmd_clear(args):
    """Delete the stash."""
    result = store.clear()
    if "error" in result:
        _fail(result["error"])
    print("Stash cleared.")


def cmd_tui(args):
    """Launch the interactive stash browser."""
    from cmdstash.tui import StashTuiApp

    app = StashTuiApp()
    line = app.run()
    if line is None:
        return

    # Confirmed in the TUI dialog already
    result = recall.recall(line, confirm=_already_confirmed)
    if result["state"] == recall.FAILED:
        _fail(result["error"])
    sys.exit(_exit_status(result["exit_code"]))


def _positive_count(value: str) -> int:
    """N for head/tail; `-N` (the old `stash head -5` form) is accepted too."""
    if not re.fullmatch(r"-?[0-9]+", value) or int(value.lstrip("-")) < 1:
        raise argparse.ArgumentTypeError(f"expected a positive integer, got {value!r}")
    return int(value.lstrip("-"))


def _line_number(value: str) -> int:
    if not re.fullmatch(r"[0-9]+", value):
        raise argparse.ArgumentTypeError(f"expected a non-negative integer, got {value!r}")
    return int(value)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="stash",
        description="Stash shell commands for later search and recall",
        epilog='Any other arguments are stashed as a command, e.g. `stash git status`.',
    )
    parser.add_argument("--file", help="Stash file (default: $STASH_FILE or ~/.command_stash)")
    subparsers = parser.add_subparsers(dest="command")

    # --file is accepted after the subcommand as well
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--file", default=argparse.SUPPRESS, help=argparse.SUPPRESS)

    from_history = argparse.ArgumentParser(add_help=False)
    from_history.add_argument("--stdin", action="store_true",
                              help="Read history from stdin (e.g. `fc -ln 1 | stash head 3 --stdin`)")

    # head
    p_head = subparsers.add_parser("head", parents=[common, from_history],
                                   help="Stash the last N commands")
    p_head.add_argument("count", type=_positive_count, metavar="N", help="Number of commands")
    p_head.set_defaults(func=cmd_head)

    # tail
    p_tail = subparsers.add_parser("tail", parents=[common, from_history],
                                   help="Stash the first N commands of the history")
    p_tail.add_argument("count", type=_positive_count, metavar="N", help="Number of commands")
    p_tail.set_defaults(func=cmd_tail)

    # history
    p_history = subparsers.add_parser("history", parents=[common, from_history],
                                      help="Stash history entry N")
    p_history.add_argument("number", type=_line_number, metavar="N", help="History entry number")
    p_history.set_defaults(func=cmd_history)

    # find
    p_find = subparsers.add_parser("find", parents=[common], help="Search stashed commands")
    p_find.add_argument("pattern", help="Case-insensitive text or regex")
    p_find.add_argument("--max", type=int, default=search.DEFAULT_SHOWN,
                        help="Show at most this many (most recent) matches, 0 for all")
    p_find.set_defaults(func=cmd_find)

    # recall
    p_recall = subparsers.add_parser("recall", parents=[common], help="Run stashed command N")
    p_recall.add_argument("number", type=_line_number, metavar="N", help="Line number from list/find")
    p_recall.add_argument("--yes", action="store_true", help="Skip the confirmation prompt")
    p_recall.set_defaults(func=cmd_recall)

    # list
    p_list = subparsers.add_parser("list", parents=[common], help="List stashed commands")
    p_list.set_defaults(func=cmd_list)

    # clear
    p_clear = subparsers.add_parser("clear", parents=[common], help="Delete the stash")
    p_clear.set_defaults(func=cmd_clear)

    # tui
    p_tui = subparsers.add_parser("tui", parents=[common], help="Browse the stash interactively")
    p_tui.set_defaults(func=cmd_tui)

    # help
    p_help = subparsers.add_parser("help", help="Show this help")
    p_help.set_defaults(func=lambda args: parser.print_help())

    return parser


def _split_file_option(argv: list[str]) -> tuple[str | None, list[str]]:
    """Pull a leading `--file PATH` / `--file=PATH` off argv."""
    if len(argv) >= 2 and argv[0] == "--file":
        return argv[1], argv[2:]
    if argv and argv[0].startswith("--file="):
        return argv[0].split("=", 1)[1], argv[1:]
    return None, argv


def parse_args(argv: list[str]) -> argparse.Namespace:
    """Parse argv, routing free text to a literal stash."""
    file, argv = _split_file_option(argv)
    if argv and argv[0] == "--":
        return argparse.Namespace(func=cmd_stash_text, text=argv[1:], file=file)
    if argv and argv[0] not in SUBCOMMANDS + TOP_LEVEL_OPTIONS:
        return argparse.Namespace(func=cmd_stash_text, text=argv, file=file)

    args = build_parser().parse_args(argv)
    if args.command is None:
        args.func = cmd_stash_last
    # `--file` after the subcommand wins over a leading one
    if args.file is None:
        args.file = file
    return args


def main(argv: list[str] | None = None):
    if argv is None:
        argv = sys.argv[1:]
    args = parse_args(argv)
    if args.file:
        store.STASH_FILE = os.path.expanduser(args.file)
    args.func(args)


if __name__ == "__main__":
    main()

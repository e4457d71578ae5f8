"""Tests for history sources -- zsh/bash file parsing and the four queries."""

import os
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

from cmdstash import history
from cmdstash.history import CommandList, HistoryFile


def _write_history(name: str, data: bytes) -> Path:
    path = Path(tempfile.mkdtemp(prefix="stash-test-history-")) / name
    path.write_bytes(data)
    return path


class TestCommandListQueries(unittest.TestCase):

    def setUp(self):
        self.source = CommandList([
            "git status",
            "stash list",
            "make test",
            "gemini explain this",
            "ls -la",
            "stash",
        ])

    def test_last_command_skips_stash_and_ignored(self):
        self.assertEqual(self.source.last_command(), "ls -la")

    def test_last_command_skips_ignored_word(self):
        source = CommandList(["make test", "gemini"])
        self.assertEqual(source.last_command(), "make test")

    def test_last_command_empty(self):
        self.assertEqual(CommandList([]).last_command(), "")
        self.assertEqual(CommandList(["stash", "  "]).last_command(), "")

    def test_head_commands_most_recent_oldest_first(self):
        self.assertEqual(
            self.source.head_commands(2),
            ["gemini explain this", "ls -la"],
        )

    def test_head_commands_more_than_available(self):
        self.assertEqual(len(self.source.head_commands(50)), 4)

    def test_tail_commands_first_n_in_order(self):
        self.assertEqual(self.source.tail_commands(2), ["git status", "make test"])

    def test_non_positive_counts(self):
        self.assertEqual(self.source.head_commands(0), [])
        self.assertEqual(self.source.tail_commands(0), [])

    def test_history_line_is_absolute(self):
        self.assertEqual(self.source.history_line(1), "git status")
        self.assertEqual(self.source.history_line(2), "stash list")
        self.assertEqual(self.source.history_line(0), "")
        self.assertEqual(self.source.history_line(7), "")


class TestParseHistory(unittest.TestCase):

    def test_zsh_extended(self):
        lines = [
            ": 1700000000:0;git status",
            ": 1700000005:2;make test",
        ]
        self.assertEqual(history.parse_history(lines), ["git status", "make test"])

    def test_zsh_multi_line_entry(self):
        lines = [
            ": 1700000000:0;for f in *; do\\",
            "  echo $f\\",
            "done",
            ": 1700000010:0;ls",
        ]
        self.assertEqual(
            history.parse_history(lines),
            ["for f in *; do\n  echo $f\ndone", "ls"],
        )

    def test_command_containing_semicolons(self):
        lines = [": 1700000000:0;cd /tmp; ls; pwd"]
        self.assertEqual(history.parse_history(lines), ["cd /tmp; ls; pwd"])

    def test_bash_timestamps_skipped(self):
        lines = ["#1700000000", "git status", "#1700000005", "ls -la"]
        self.assertEqual(history.parse_history(lines), ["git status", "ls -la"])

    def test_plain_lines(self):
        self.assertEqual(history.parse_history(["ls", "pwd"]), ["ls", "pwd"])


class TestUnmetafy(unittest.TestCase):

    def test_meta_bytes_restored(self):
        # "é" is C3 A9; zsh writes A9 as 0x83 (0xA9 ^ 0x20)
        raw = b"echo \xc3\x83" + bytes([0xA9 ^ 0x20])
        self.assertEqual(history.unmetafy(raw).decode("utf-8"), "echo \xe9")

    def test_plain_bytes_untouched(self):
        self.assertEqual(history.unmetafy(b"ls -la"), b"ls -la")


class TestHistoryFile(unittest.TestCase):

    def test_reads_zsh_file(self):
        path = _write_history(".zsh_history", b": 1700000000:0;git status\n: 1700000001:0;stash\n")
        source = HistoryFile(path)
        self.assertEqual(source.commands(), ["git status", "stash"])
        self.assertEqual(source.last_command(), "git status")

    def test_reads_bash_file(self):
        path = _write_history(".bash_history", b"ls\n#1700000000\npwd\n")
        self.assertEqual(HistoryFile(path).commands(), ["ls", "pwd"])

    def test_bash_file_with_utf8_not_unmetafied(self):
        path = _write_history(".bash_history", "echo Ã\n".encode("utf-8"))
        self.assertEqual(HistoryFile(path).commands(), ["echo Ã"])

    def test_missing_file_is_empty(self):
        source = HistoryFile("/nonexistent/dir/.zsh_history")
        self.assertEqual(source.commands(), [])
        self.assertEqual(source.last_command(), "")


class TestDefaultSource(unittest.TestCase):

    def test_explicit_env_wins(self):
        with patch.dict(os.environ, {"STASH_HISTFILE": "/tmp/custom_history"}):
            self.assertEqual(history.default_source().path, Path("/tmp/custom_history"))

    def test_histfile_env(self):
        env = {"HISTFILE": "/tmp/zsh_hist_x"}
        with patch.dict(os.environ, env):
            os.environ.pop("STASH_HISTFILE", None)
            self.assertEqual(history.default_source().path, Path("/tmp/zsh_hist_x"))

    def test_falls_back_to_existing_candidate(self):
        path = _write_history(".bash_history", b"ls\n")
        with patch.dict(os.environ, {}, clear=False), \
                patch.object(history, "HISTORY_CANDIDATES", ("/nonexistent/.zsh_history", str(path))):
            os.environ.pop("STASH_HISTFILE", None)
            os.environ.pop("HISTFILE", None)
            self.assertEqual(history.default_source().path, path)


if __name__ == "__main__":
    unittest.main()

"""Stash browser TUI.

Interactive terminal view of the stash: filter with a pattern, pick a
row to recall it, or clear the whole stash. Built with textual.

Launch: `stash tui`

The app never runs a command itself. Picking a row and confirming exits
the app with that line number, and the CLI runs it once the terminal is
back to normal.
"""

from __future__ import annotations

from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical
from textual.screen import ModalScreen
from textual.widgets import Button, DataTable, Footer, Header, Input, Static

from cmdstash import search, store


# --- Confirmation Modal ---

class ConfirmModal(ModalScreen[bool]):
    """Yes/no dialog used before recalling or clearing."""

    DEFAULT_CSS = """
    ConfirmModal {
        align: center middle;
    }
    #confirm-dialog {
        width: 70;
        height: auto;
        max-height: 14;
        border: thick $accent;
        background: $surface;
        padding: 1 2;
    }
    #confirm-dialog Static {
        width: 100%;
        margin-bottom: 1;
    }
    #confirm-buttons {
        width: 100%;
        height: 3;
        align: center middle;
    }
    #confirm-buttons Button {
        margin: 0 2;
    }
    """

    def __init__(self, message: str, confirm_label: str, variant: str = "primary") -> None:
        super().__init__()
        self.message = message
        self.confirm_label = confirm_label
        self.variant = variant

    def compose(self) -> ComposeResult:
        with Vertical(id="confirm-dialog"):
            yield Static(self.message, markup=False)
            with Horizontal(id="confirm-buttons"):
                yield Button(self.confirm_label, variant=self.variant, id="confirm-yes")
                yield Button("Cancel", id="confirm-no")

    def on_button_pressed(self, event: Button.Pressed) -> None:
        self.dismiss(event.button.id == "confirm-yes")


# --- Main App ---

class StashTuiApp(App[int]):
    """Stash browser. Exits with the line number to recall, or None."""

    TITLE = "Command Stash"

    CSS = """
    #find-input {
        dock: top;
        margin: 0 0 1 0;
    }
    #stash-table {
        height: 1fr;
    }
    #stash-status {
        dock: bottom;
        height: 1;
        padding: 0 1;
        color: $text-muted;
    }
    """

    BINDINGS = [
        Binding("/", "focus_find", "Find", show=True),
        Binding("r", "refresh", "Refresh", show=True),
        Binding("c", "clear_stash", "Clear", show=True),
        Binding("q", "quit", "Quit", show=True),
    ]

    def __init__(self) -> None:
        super().__init__()
        self._pattern: str = ""

    def compose(self) -> ComposeResult:
        yield Header()
        with Vertical():
            yield Input(placeholder="Find (case-insensitive text or regex)...", id="find-input")
            yield DataTable(id="stash-table", cursor_type="row")
            yield Static("", id="stash-status")
        yield Footer()

    def on_mount(self) -> None:
        table = self.query_one("#stash-table", DataTable)
        table.add_columns("Line", "Stashed", "Command")
        self._load_entries()
        table.focus()

    # --- Data ---

    def _load_entries(self, pattern: str = "") -> None:
        self._pattern = pattern
        table = self.query_one("#stash-table", DataTable)
        status = self.query_one("#stash-status", Static)
        table.clear()

        if pattern:
            result = search.find_commands(pattern)
            if "error" in result:
                status.update(result["error"])
                return
            entries = result["matches"]
        else:
            try:
                entries = store.read_entries()
            except store.StoreUnavailable as e:
                status.update(str(e))
                return

        for entry in entries:
            table.add_row(
                str(entry["line"]),
                entry["timestamp"],
                entry["command"],
                key=str(entry["line"]),
            )

        if pattern:
            status.update(f"{len(entries)} matches for \"{pattern}\"")
        elif entries:
            status.update(f"{len(entries)} stashed commands  |  Enter: recall")
        else:
            status.update("No stashed commands.")

    def request_recall(self, line: int) -> None:
        """Ask for confirmation, then exit with `line` so the CLI can run it."""
        status = self.query_one("#stash-status", Static)
        try:
            entry = store.get_entry(line)
        except store.StoreUnavailable as e:
            status.update(str(e))
            return
        if entry is None:
            status.update(f"Line {line} is no longer in the stash")
            return

        def handle_confirm(confirmed: bool | None) -> None:
            if confirmed:
                self.exit(line)

        self.push_screen(
            ConfirmModal(f"Run stashed command {line}?\n\n{entry['command']}", "Run"),
            handle_confirm,
        )

    # --- Event handlers ---

    def on_input_submitted(self, event: Input.Submitted) -> None:
        if event.input.id == "find-input":
            self._load_entries(event.value.strip())
            self.query_one("#stash-table", DataTable).focus()

    def on_data_table_row_selected(self, event: DataTable.RowSelected) -> None:
        self.request_recall(int(event.row_key.value))

    # --- Actions ---

    def action_focus_find(self) -> None:
        self.query_one("#find-input", Input).focus()

    def action_refresh(self) -> None:
        self._load_entries(self._pattern)

    def action_clear_stash(self) -> None:
        def handle_clear(confirmed: bool | None) -> None:
            if not confirmed:
                return
            result = store.clear()
            if "error" in result:
                self.query_one("#stash-status", Static).update(result["error"])
                return
            self.query_one("#find-input", Input).value = ""
            self._load_entries()

        self.push_screen(
            ConfirmModal("Delete every stashed command?\n\nLine numbers restart at 1.", "Clear", "error"),
            handle_clear,
        )

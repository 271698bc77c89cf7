"""
Console Surface — the terminal rendering of a coaching session.

Messages are printed permanently as they arrive (the log is append-only);
progress and the closure suggestion are printed as small panels when they
change. Indicators (speaking / recording) are one-line status notes.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from rich.console import Console, Group
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from coachwire.render.base import LogEntry, ProgressSnapshot, RenderSurface
from coachwire.session.models import Role, button_visibility

if TYPE_CHECKING:
    from coachwire.session.models import ConnectionStatus

_ROLE_STYLE = {
    Role.USER: ("you", "bold white"),
    Role.ASSISTANT: ("coach", "cyan"),
    Role.SYSTEM: ("·", "dim"),
}

_BAR_WIDTH = 20


class ConsoleSurface(RenderSurface):
    """Rich-based surface for the terminal client."""

    def __init__(self, console: Console | None = None) -> None:
        super().__init__()
        self.console = console or Console()
        self._progress_visible = False
        self._last_snapshot: ProgressSnapshot | None = None
        self._summary_available = False

    # ─── Messages ────────────────────────────────────────────────

    def draw_message(self, entry: LogEntry) -> None:
        label, style = _ROLE_STYLE[entry.role]
        if entry.role is Role.SYSTEM:
            self.console.print(Text(f"  {entry.text}", style=style))
            return
        line = Text()
        line.append(f"{label} → ", style="dim")
        line.append(entry.text, style=style)
        self.console.print(line)

    def clear_log(self) -> None:
        super().clear_log()
        self.console.rule(style="dim")

    # ─── Progress ────────────────────────────────────────────────

    def set_progress_visible(self, visible: bool) -> None:
        self._progress_visible = visible
        if visible and self._last_snapshot is not None:
            self.console.print(self._render_progress(self._last_snapshot))

    def show_progress(self, snapshot: ProgressSnapshot) -> None:
        self._last_snapshot = snapshot
        if self._progress_visible:
            self.console.print(self._render_progress(snapshot))

    def _render_progress(self, snapshot: ProgressSnapshot) -> Panel:
        table = Table.grid(padding=(0, 1))
        table.add_column(style="dim")
        table.add_column()
        table.add_column(justify="right")
        for key, pct in snapshot.percentages().items():
            filled = round(pct / 100 * _BAR_WIDTH)
            bar = Text("█" * filled, style="green") + Text("░" * (_BAR_WIDTH - filled), style="dim")
            table.add_row(snapshot.labels.get(key, key), bar, f"{pct}%")

        parts: list = [table]
        if snapshot.current_label:
            prefix = f"{snapshot.label_prefix}: " if snapshot.label_prefix else ""
            parts.append(Text(f"{prefix}{snapshot.current_label}", style="bold"))
        if snapshot.notes:
            parts.append(Text(snapshot.notes, style="dim"))
        return Panel(Group(*parts), title="progress", title_align="left", border_style="dim")

    # ─── Closure suggestion ──────────────────────────────────────

    def show_closure_suggestion(self, message: str) -> None:
        self.console.print(
            Panel(
                Text.from_markup(
                    f"{escape(message)}\n[dim]/accept でまとめへ、/decline で続行[/dim]"
                ),
                border_style="yellow",
                padding=(0, 1),
            )
        )

    def hide_closure_suggestion(self) -> None:
        pass

    # ─── Status ──────────────────────────────────────────────────

    def set_connection_status(self, status: "ConnectionStatus") -> None:
        buttons = button_visibility(status)
        actions = [
            name
            for name, visible in (
                ("/connect", buttons.connect),
                ("/quit", buttons.disconnect),
                ("/new", buttons.new_session),
            )
            if visible
        ]
        state = status.state.value
        hint = f"  [{', '.join(actions)}]" if actions else ""
        self.console.print(Text(f"● {state}{hint}", style="magenta"))

    def set_summary_available(self, available: bool) -> None:
        if available and not self._summary_available:
            self.console.print(Text("  /summary でセッションをまとめられます", style="dim"))
        self._summary_available = available

    def set_speaking(self, speaking: bool) -> None:
        pass

    def set_recording(self, recording: bool) -> None:
        if recording:
            self.console.print(Text("  ● listening…", style="red"))

    def alert(self, message: str) -> None:
        self.console.print(f"[bold red]{escape(message)}[/bold red]")

    def show_hint(self, message: str) -> None:
        self.console.print(Text(message, style="yellow"))

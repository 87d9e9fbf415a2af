"""Text rendering of boards and views for the terminal."""

from __future__ import annotations

from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from tttmirror.core.state import Cell, GameRecord, SessionView

# Player color scheme
MARK_COLORS = {
    Cell.X: "cyan",
    Cell.O: "magenta",
}


def render_board(board: tuple[Cell, ...]) -> str:
    """Render ASCII board with labeled axes (x across, y down)."""
    lines = ["     0   1   2"]
    for y in range(3):
        cells = " | ".join(
            f" {'.' if board[y * 3 + x] is Cell.EMPTY else board[y * 3 + x].value}"
            for x in range(3)
        )
        lines.append(f"{y}   {cells}")
        if y < 2:
            lines.append("    ---+---+---")
    return "\n".join(lines)


def status_line(view: SessionView, abandoned: bool = False) -> str:
    """One-line summary of a view from its player's side."""
    if abandoned and not view.phase.is_terminal:
        return "Game abandoned"
    if view.in_progress:
        return "Your move" if view.my_turn else "Waiting for opponent's move"
    if view.is_draw:
        return "Draw"
    if view.phase.is_terminal:
        return "You won" if view.i_won else "You lost"
    return "Waiting for an opponent to join"


def build_board_panel(view: SessionView, title: str, abandoned: bool = False) -> Panel:
    """Rich panel showing the board grid and the status line."""
    grid = Table(show_header=False, show_edge=True, show_lines=True, padding=(0, 1))
    for _ in range(3):
        grid.add_column(justify="center", width=3)
    for y in range(3):
        row = []
        for x in range(3):
            cell = view.board[y * 3 + x]
            if cell is Cell.EMPTY:
                row.append(Text("-", style="dim"))
            else:
                row.append(Text(cell.value, style=f"bold {MARK_COLORS[cell]}"))
        grid.add_row(*row)

    return Panel(
        grid,
        title=f"[bold]{title}[/bold]",
        subtitle=status_line(view, abandoned),
        border_style="green" if view.in_progress else "yellow",
        expand=False,
    )


def build_record_table(record: GameRecord) -> Table:
    """Rich table listing every field of a decoded record."""
    table = Table(title="Game record", show_header=False)
    table.add_column("field", style="bold")
    table.add_column("value")
    table.add_row("phase", record.phase.value)
    table.add_row("player X", str(record.player_x))
    table.add_row("player O", str(record.player_o) if record.player_o else "-")
    table.add_row("keep-alive X", str(record.last_keep_alive[0]))
    table.add_row("keep-alive O", str(record.last_keep_alive[1]))
    table.add_row("board", render_board(record.board))
    return table

"""Tests for terminal rendering of boards and views."""

from rich.console import Console

from tttmirror.core.keys import PublicKey
from tttmirror.core.state import Cell, GameRecord, Phase, SessionView
from tttmirror.render import build_board_panel, build_record_table, render_board, status_line


def _view(phase: Phase, **overrides) -> SessionView:
    fields = dict(
        phase=phase,
        in_progress=phase.in_progress,
        my_turn=False,
        is_draw=phase is Phase.DRAW,
        i_won=False,
        board=(Cell.EMPTY,) * 9,
        player_x=None,
        player_o=None,
        last_keep_alive=(0, 0),
    )
    fields.update(overrides)
    return SessionView(**fields)


def _to_text(renderable) -> str:
    console = Console(width=100, record=True)
    console.print(renderable)
    return console.export_text()


class TestRenderBoard:
    def test_empty_board(self):
        text = render_board((Cell.EMPTY,) * 9)
        assert "X" not in text
        assert text.count(".") == 9

    def test_cells_in_row_major_order(self):
        board = (Cell.X, Cell.EMPTY, Cell.EMPTY, Cell.EMPTY, Cell.O) + (Cell.EMPTY,) * 4
        lines = render_board(board).split("\n")
        assert lines[1].startswith("0")
        assert "X" in lines[1]
        assert "O" in lines[3]


class TestStatusLine:
    def test_waiting(self):
        assert status_line(_view(Phase.WAITING)) == "Waiting for an opponent to join"

    def test_my_turn(self):
        assert status_line(_view(Phase.X_TURN, my_turn=True)) == "Your move"

    def test_their_turn(self):
        assert status_line(_view(Phase.O_TURN)) == "Waiting for opponent's move"

    def test_outcomes(self):
        assert status_line(_view(Phase.DRAW)) == "Draw"
        assert status_line(_view(Phase.X_WON, i_won=True)) == "You won"
        assert status_line(_view(Phase.O_WON)) == "You lost"

    def test_abandoned(self):
        view = _view(Phase.X_TURN, in_progress=False, peer_abandoned=True)
        assert status_line(view, abandoned=True) == "Game abandoned"


class TestPanels:
    def test_board_panel(self):
        board = (Cell.X,) + (Cell.EMPTY,) * 7 + (Cell.O,)
        text = _to_text(build_board_panel(_view(Phase.X_TURN, board=board, my_turn=True), "Player X"))
        assert "Player X" in text
        assert "Your move" in text
        assert "X" in text and "O" in text

    def test_record_table(self):
        record = GameRecord(
            phase=Phase.WAITING,
            board=(Cell.EMPTY,) * 9,
            player_x=PublicKey(b"\x01" * 32),
            player_o=None,
            last_keep_alive=(123, 0),
        )
        text = _to_text(build_record_table(record))
        assert "Waiting" in text
        assert "123" in text

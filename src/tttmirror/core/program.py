"""TicTacToeProgram — in-process stand-in for the remote game authority.

Applies InitGame / Join / KeepAlive / Move commands to a GameRecord and
returns the new record. Illegal commands raise CommandRejected with the
reason; the record is left untouched.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Callable

from tttmirror.core.errors import CommandRejected
from tttmirror.core.keys import PublicKey
from tttmirror.core.state import BOARD_CELLS, Cell, GameRecord, Phase, current_time_ms

__all__ = ["TicTacToeProgram"]

# Eight lines to check for a win: 3 rows, 3 cols, 2 diagonals
_WIN_LINES = [
    # Rows
    (0, 1, 2),
    (3, 4, 5),
    (6, 7, 8),
    # Columns
    (0, 3, 6),
    (1, 4, 7),
    (2, 5, 8),
    # Diagonals
    (0, 4, 8),
    (2, 4, 6),
]


class TicTacToeProgram:
    """Authoritative rules for one game record."""

    def __init__(self, clock: Callable[[], int] = current_time_ms) -> None:
        self._clock = clock

    def process(
        self,
        record: GameRecord | None,
        signer: PublicKey,
        command: str,
        args: list,
    ) -> GameRecord:
        """Apply ``command`` signed by ``signer``. ``record`` is None before InitGame."""
        if command == "InitGame":
            return self._init_game(record, signer)
        if record is None:
            raise CommandRejected(command, "game not initialized")
        if command == "Join":
            return self._join(record, signer, *self._int_args(command, args, 1))
        if command == "KeepAlive":
            return self._keep_alive(record, signer, *self._int_args(command, args, 1))
        if command == "Move":
            return self._move(record, signer, *self._int_args(command, args, 2))
        raise CommandRejected(command, "unknown command")

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def _init_game(self, record: GameRecord | None, signer: PublicKey) -> GameRecord:
        if record is not None:
            raise CommandRejected("InitGame", "game already initialized")
        return GameRecord(
            phase=Phase.WAITING,
            board=(Cell.EMPTY,) * BOARD_CELLS,
            player_x=signer,
            player_o=None,
            last_keep_alive=(self._clock(), 0),
        )

    def _join(self, record: GameRecord, signer: PublicKey, when: int) -> GameRecord:
        if record.phase is not Phase.WAITING:
            raise CommandRejected(
                "Join", f"game is not waiting for a player ({record.phase.value})"
            )
        if signer == record.player_x:
            raise CommandRejected("Join", "player X cannot join as player O")
        return replace(
            record,
            phase=Phase.X_TURN,
            player_o=signer,
            last_keep_alive=(record.last_keep_alive[0], when),
        )

    def _keep_alive(self, record: GameRecord, signer: PublicKey, when: int) -> GameRecord:
        x_mark, o_mark = record.last_keep_alive
        if signer == record.player_x:
            x_mark = when
        elif signer == record.player_o:
            o_mark = when
        else:
            raise CommandRejected("KeepAlive", "signer is not a player in this game")
        return replace(record, last_keep_alive=(x_mark, o_mark))

    def _move(self, record: GameRecord, signer: PublicKey, x: int, y: int) -> GameRecord:
        if record.phase is Phase.X_TURN:
            mover, mark = record.player_x, Cell.X
        elif record.phase is Phase.O_TURN:
            mover, mark = record.player_o, Cell.O
        else:
            raise CommandRejected("Move", f"game not in progress ({record.phase.value})")
        if signer != mover:
            raise CommandRejected("Move", "not your turn")
        if not (0 <= x <= 2 and 0 <= y <= 2):
            raise CommandRejected(
                "Move", f"position ({x}, {y}) out of bounds, x and y must be 0-2"
            )
        index = y * 3 + x
        if record.board[index] is not Cell.EMPTY:
            raise CommandRejected(
                "Move", f"square ({x}, {y}) is already occupied by '{record.board[index].value}'"
            )

        board = list(record.board)
        board[index] = mark

        if self._check_winner(board) is not None:
            phase = Phase.X_WON if mark is Cell.X else Phase.O_WON
        elif Cell.EMPTY not in board:
            phase = Phase.DRAW
        else:
            phase = Phase.O_TURN if mark is Cell.X else Phase.X_TURN
        return replace(record, phase=phase, board=tuple(board))

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @staticmethod
    def _int_args(command: str, args: list, count: int) -> list[int]:
        if len(args) != count or not all(
            isinstance(a, int) and not isinstance(a, bool) for a in args
        ):
            raise CommandRejected(command, f"expected {count} integer argument(s), got {args!r}")
        return args

    @staticmethod
    def _check_winner(board: list[Cell]) -> Cell | None:
        """Check all 8 win lines. Return winning mark or None."""
        for a, b, c in _WIN_LINES:
            if board[a] is not Cell.EMPTY and board[a] is board[b] is board[c]:
                return board[a]
        return None

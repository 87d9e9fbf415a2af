"""Game record model, phase state machine and peer liveness check.

The record is what the remote authority stores; the view is what one local
player sees of it. Views are derived fresh on every update and never
mutated: ``derive_view`` is a pure function of the record, the local
player's mark and the current time.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, replace
from enum import Enum

from tttmirror.core.errors import MalformedState, UnknownPhase
from tttmirror.core.keys import PublicKey

BOARD_CELLS = 9
LIVENESS_TIMEOUT_MS = 10_000


def current_time_ms() -> int:
    return int(time.time() * 1000)


class Phase(Enum):
    """Game phase. Values are the tags used on the wire."""

    WAITING = "Waiting"
    X_TURN = "XMove"
    O_TURN = "OMove"
    DRAW = "Draw"
    X_WON = "XWon"
    O_WON = "OWon"

    @classmethod
    def from_wire(cls, tag: object) -> Phase:
        try:
            return cls(tag)
        except ValueError:
            raise UnknownPhase(tag) from None

    @property
    def in_progress(self) -> bool:
        return self in (Phase.X_TURN, Phase.O_TURN)

    @property
    def is_terminal(self) -> bool:
        return self in (Phase.DRAW, Phase.X_WON, Phase.O_WON)


class Cell(Enum):
    """Board cell as exposed to callers."""

    EMPTY = " "
    X = "X"
    O = "O"

    @classmethod
    def from_wire(cls, code: str) -> Cell:
        if code == "F":
            return cls.EMPTY
        return cls(code)

    def to_wire(self) -> str:
        return "F" if self is Cell.EMPTY else self.value


@dataclass(frozen=True)
class GameRecord:
    """Decoded contents of a remote game record."""

    phase: Phase
    board: tuple[Cell, ...]
    player_x: PublicKey
    player_o: PublicKey | None
    last_keep_alive: tuple[int, int]

    def __post_init__(self) -> None:
        if len(self.board) != BOARD_CELLS:
            raise MalformedState(
                f"Board must have {BOARD_CELLS} cells, got {len(self.board)}"
            )
        if self.player_o is None and self.phase is not Phase.WAITING:
            raise MalformedState(
                f"Player O missing in phase {self.phase.value}"
            )


@dataclass(frozen=True)
class SessionView:
    """One player's read-only snapshot of the game."""

    phase: Phase
    in_progress: bool
    my_turn: bool
    is_draw: bool
    i_won: bool
    board: tuple[Cell, ...]
    player_x: PublicKey | None
    player_o: PublicKey | None
    last_keep_alive: tuple[int, int]
    peer_abandoned: bool = False

    @classmethod
    def initial(cls) -> SessionView:
        """View held by a session before its first update arrives."""
        return cls(
            phase=Phase.WAITING,
            in_progress=False,
            my_turn=False,
            is_draw=False,
            i_won=False,
            board=(Cell.EMPTY,) * BOARD_CELLS,
            player_x=None,
            player_o=None,
            last_keep_alive=(0, 0),
        )


def peer_marker(last_keep_alive: tuple[int, int], is_player_x: bool) -> int:
    """Return the keep-alive marker of the other player."""
    return last_keep_alive[1 if is_player_x else 0]


def is_peer_alive(
    last_keep_alive: tuple[int, int],
    is_player_x: bool,
    now: int,
    timeout_ms: int = LIVENESS_TIMEOUT_MS,
) -> bool:
    """True if the peer refreshed its marker less than ``timeout_ms`` ago.

    Local and remote clocks are compared directly; skew is not corrected.
    """
    return now - peer_marker(last_keep_alive, is_player_x) < timeout_ms


def derive_view(
    record: GameRecord,
    is_player_x: bool,
    now: int,
    liveness_timeout_ms: int = LIVENESS_TIMEOUT_MS,
) -> SessionView:
    """Interpret a record from one player's side.

    An in-progress game whose peer has gone quiet is reported as not in
    progress with ``peer_abandoned`` set.
    """
    phase = record.phase
    my_turn = False
    is_draw = False
    i_won = False

    if phase is Phase.WAITING:
        pass
    elif phase is Phase.X_TURN:
        my_turn = is_player_x
    elif phase is Phase.O_TURN:
        my_turn = not is_player_x
    elif phase is Phase.DRAW:
        is_draw = True
    elif phase is Phase.X_WON:
        i_won = is_player_x
    elif phase is Phase.O_WON:
        i_won = not is_player_x
    else:
        raise UnknownPhase(phase)

    view = SessionView(
        phase=phase,
        in_progress=phase.in_progress,
        my_turn=my_turn,
        is_draw=is_draw,
        i_won=i_won,
        board=record.board,
        player_x=record.player_x,
        player_o=record.player_o,
        last_keep_alive=record.last_keep_alive,
    )

    if view.in_progress and not is_peer_alive(
        record.last_keep_alive, is_player_x, now, liveness_timeout_ms
    ):
        view = replace(view, in_progress=False, peer_abandoned=True)
    return view

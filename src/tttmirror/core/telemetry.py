"""SessionLogger — JSONL session logging.

One logger per session. Writes one JSONL line per state change plus a
session summary as the final line. All entries include schema version and
record handle.
"""

import json
from dataclasses import dataclass, asdict
from datetime import datetime, timezone
from pathlib import Path

import tttmirror
from tttmirror.core.state import SessionView

_SCHEMA_VERSION = "1.0.0"


@dataclass
class ChangeEntry:
    """One observed change of a session's view."""

    mark: str
    phase: str
    board: list[str]
    in_progress: bool
    my_turn: bool
    is_draw: bool
    i_won: bool
    peer_abandoned: bool
    player_x: str | None
    player_o: str | None
    keep_alive: list[int]

    @classmethod
    def from_view(cls, view: SessionView, is_player_x: bool) -> "ChangeEntry":
        return cls(
            mark="X" if is_player_x else "O",
            phase=view.phase.value,
            board=[cell.value for cell in view.board],
            in_progress=view.in_progress,
            my_turn=view.my_turn,
            is_draw=view.is_draw,
            i_won=view.i_won,
            peer_abandoned=view.peer_abandoned,
            player_x=str(view.player_x) if view.player_x else None,
            player_o=str(view.player_o) if view.player_o else None,
            keep_alive=list(view.last_keep_alive),
        )


class SessionLogger:
    """Writes JSONL telemetry for a single session."""

    def __init__(self, output_dir: Path, record_id: str, mark: str):
        self._output_dir = Path(output_dir)
        self._record_id = record_id
        self._output_dir.mkdir(parents=True, exist_ok=True)
        self._file_path = self._output_dir / f"{record_id}-{mark}.jsonl"
        self._changes = 0

    @property
    def file_path(self) -> Path:
        return self._file_path

    def log_change(self, entry: ChangeEntry) -> None:
        record = asdict(entry)
        record["schema_version"] = _SCHEMA_VERSION
        record["record_id"] = self._record_id
        record["timestamp"] = datetime.now(timezone.utc).isoformat()
        self._changes += 1
        self._append(record)

    def finalize_session(self, final: ChangeEntry, abandoned: bool) -> None:
        record = {
            "schema_version": _SCHEMA_VERSION,
            "record_type": "session_summary",
            "record_id": self._record_id,
            "mark": final.mark,
            "final_phase": final.phase,
            "i_won": final.i_won,
            "is_draw": final.is_draw,
            "abandoned": abandoned,
            "changes": self._changes,
            "client_version": tttmirror.__version__,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        self._append(record)

    def _append(self, record: dict) -> None:
        with open(self._file_path, "a") as f:
            f.write(json.dumps(record, default=str) + "\n")

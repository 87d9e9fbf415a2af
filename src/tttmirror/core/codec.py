"""Record codec — length-prefixed CBOR game records and program commands.

Record layout:
    4 bytes   payload length (little-endian u32)
    N bytes   CBOR ``["Game", {state, board, player_x, player_o, keep_alive}]``
    ...       zero padding up to the allocated record size

Commands are bare CBOR values: ``"InitGame"``, ``["Join", ts]``,
``["KeepAlive", ts]``, ``["Move", x, y]``.
"""

from __future__ import annotations

import struct

import cbor2
import jsonschema

from tttmirror.core.errors import MalformedState, UnexpectedTag
from tttmirror.core.keys import PublicKey
from tttmirror.core.schemas import game_record_schema
from tttmirror.core.state import Cell, GameRecord, Phase

__all__ = [
    "GAME_TAG",
    "decode_command",
    "decode_record",
    "encode_command",
    "encode_record",
]

GAME_TAG = "Game"

_LENGTH_PREFIX = struct.Struct("<I")


# ------------------------------------------------------------------
# Records
# ------------------------------------------------------------------

def decode_record(data: bytes) -> GameRecord:
    """Parse raw record bytes into a GameRecord.

    Raises MalformedState when the length prefix claims more bytes than the
    buffer holds (checked before any CBOR decoding) or the fields are
    malformed, UnexpectedTag when the value is not a ``Game`` record, and
    UnknownPhase for a phase tag this client does not know.
    """
    if len(data) < _LENGTH_PREFIX.size:
        raise MalformedState(
            f"Record too short for length prefix: {len(data)} bytes"
        )
    (length,) = _LENGTH_PREFIX.unpack_from(data, 0)
    if length + _LENGTH_PREFIX.size > len(data):
        raise MalformedState(
            f"Invalid game state length: prefix claims {length} bytes, "
            f"buffer holds {len(data) - _LENGTH_PREFIX.size}"
        )

    payload = bytes(data[_LENGTH_PREFIX.size:_LENGTH_PREFIX.size + length])
    try:
        value = cbor2.loads(payload)
    except cbor2.CBORDecodeError as e:
        raise MalformedState(f"Undecodable record payload: {e}") from e

    # Argument-less variants are a bare tag
    if isinstance(value, str):
        if value != GAME_TAG:
            raise UnexpectedTag(value)
        raise MalformedState("Game record body missing")
    if not isinstance(value, list) or not value:
        raise MalformedState(f"Record is not a tagged value: {value!r}")
    if value[0] != GAME_TAG:
        raise UnexpectedTag(value[0])
    if len(value) != 2 or not isinstance(value[1], dict):
        raise MalformedState("Game record body missing")

    return _record_from_map(value[1])


def _record_from_map(game: dict) -> GameRecord:
    try:
        jsonschema.validate(game, game_record_schema())
    except jsonschema.ValidationError as e:
        raise MalformedState(f"Schema validation: {e.message}") from e

    player_x = _key_field(game, "player_x")
    player_o = _key_field(game, "player_o") if game["player_o"] is not None else None

    return GameRecord(
        phase=Phase.from_wire(game["state"]),
        board=tuple(Cell.from_wire(code) for code in game["board"]),
        player_x=player_x,
        player_o=player_o,
        last_keep_alive=(game["keep_alive"][0], game["keep_alive"][1]),
    )


def _key_field(game: dict, name: str) -> PublicKey:
    raw = game[name]
    if not isinstance(raw, bytes):
        raise MalformedState(f"{name} must be a byte string, got {type(raw).__name__}")
    try:
        return PublicKey(raw)
    except ValueError as e:
        raise MalformedState(f"{name}: {e}") from e


def encode_record(record: GameRecord, size: int | None = None) -> bytes:
    """Encode a GameRecord, zero-padded to ``size`` bytes when given."""
    body = {
        "state": record.phase.value,
        "board": [cell.to_wire() for cell in record.board],
        "player_x": bytes(record.player_x),
        "player_o": bytes(record.player_o) if record.player_o is not None else None,
        "keep_alive": list(record.last_keep_alive),
    }
    payload = cbor2.dumps([GAME_TAG, body])
    data = _LENGTH_PREFIX.pack(len(payload)) + payload
    if size is None:
        return data
    if len(data) > size:
        raise ValueError(f"Encoded record needs {len(data)} bytes, record holds {size}")
    return data + bytes(size - len(data))


# ------------------------------------------------------------------
# Commands
# ------------------------------------------------------------------

def encode_command(tag: str, *args: int) -> bytes:
    """Encode a program command. Argument-less commands are a bare tag."""
    if not args:
        return cbor2.dumps(tag)
    return cbor2.dumps([tag, *args])


def decode_command(payload: bytes) -> tuple[str, list]:
    """Inverse of encode_command; returns (tag, args)."""
    try:
        value = cbor2.loads(payload)
    except cbor2.CBORDecodeError as e:
        raise MalformedState(f"Undecodable command: {e}") from e
    if isinstance(value, str):
        return value, []
    if isinstance(value, list) and value and isinstance(value[0], str):
        return value[0], list(value[1:])
    raise MalformedState(f"Command is not a tagged value: {value!r}")

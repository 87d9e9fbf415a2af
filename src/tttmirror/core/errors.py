"""Error taxonomy for decoding records and talking to the ledger.

Decode errors (MalformedState, UnexpectedTag, UnknownPhase) mean the record
does not match this client's protocol version and are never retried.
Ledger errors (CommandRejected, NetworkError, AllocationError) wrap whatever
the transport raised so callers only ever see these types.
"""


class TicTacToeError(Exception):
    """Base class for every error raised by tttmirror."""


class MalformedState(TicTacToeError):
    """Record payload is structurally invalid (length prefix, fields)."""


class UnexpectedTag(TicTacToeError):
    """Top-level record tag is not ``Game``."""

    def __init__(self, tag: object):
        self.tag = tag
        super().__init__(f"Invalid game state type: {tag!r}")


class UnknownPhase(TicTacToeError):
    """Phase tag outside the closed set of known phases."""

    def __init__(self, tag: object):
        self.tag = tag
        super().__init__(f"Unhandled game state: {tag!r}")


class LedgerError(TicTacToeError):
    """Raised by ledgers on command failures. Never let raw transport errors propagate."""

    def __init__(self, command: str, details: str = ""):
        self.command = command  # "InitGame", "Join", "KeepAlive", "Move", ...
        self.details = details
        super().__init__(f"{command} failed: {details}" if details else f"{command} failed")


class CommandRejected(LedgerError):
    """The remote authority refused the command."""


class NetworkError(LedgerError):
    """Transient transport failure."""


class AllocationError(LedgerError):
    """A new record could not be allocated."""

    def __init__(self, details: str = ""):
        super().__init__("allocate", details)

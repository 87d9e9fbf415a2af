"""tttmirror — client-side mirror of a ledger-hosted tic-tac-toe game."""

__version__ = "0.1.0"

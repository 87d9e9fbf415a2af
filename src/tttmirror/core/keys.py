"""Identity handles: public keys for players, records and programs."""

from __future__ import annotations

import secrets
from dataclasses import dataclass, field

KEY_LENGTH = 32


@dataclass(frozen=True)
class PublicKey:
    """32-byte public identifier for an account on the ledger."""

    raw: bytes

    def __post_init__(self) -> None:
        if len(self.raw) != KEY_LENGTH:
            raise ValueError(
                f"Public key must be {KEY_LENGTH} bytes, got {len(self.raw)}"
            )

    @classmethod
    def from_hex(cls, text: str) -> PublicKey:
        return cls(bytes.fromhex(text))

    def __bytes__(self) -> bytes:
        return self.raw

    def __str__(self) -> str:
        return self.raw.hex()


@dataclass(frozen=True)
class Identity:
    """A local credential: public key plus the secret used to sign commands.

    Signing itself is the ledger's concern; the secret is carried opaquely.
    """

    public_key: PublicKey
    secret: bytes = field(default=b"", repr=False)

    @classmethod
    def generate(cls) -> Identity:
        return cls(
            public_key=PublicKey(secrets.token_bytes(KEY_LENGTH)),
            secret=secrets.token_bytes(KEY_LENGTH),
        )

"""Ledger — uniform interface to the store hosting game records.

Provides ABC and concrete implementations:
- Ledger: what a session needs from the remote store (allocate, submit,
  fetch, subscribe)
- InMemoryLedger: deterministic, in-process, for testing and the demo
"""

from __future__ import annotations

import asyncio
import itertools
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable

from tttmirror.core.codec import decode_command, decode_record, encode_record
from tttmirror.core.errors import (
    AllocationError,
    CommandRejected,
    MalformedState,
    NetworkError,
)
from tttmirror.core.keys import Identity, PublicKey
from tttmirror.core.program import TicTacToeProgram
from tttmirror.core.state import current_time_ms

logger = logging.getLogger(__name__)

SnapshotCallback = Callable[[bytes], None]


class Ledger(ABC):
    """Abstract base for record stores.

    Implementations raise only CommandRejected, NetworkError or
    AllocationError from the async methods.
    """

    @abstractmethod
    async def allocate_record(
        self, payer: Identity, owner: PublicKey, size_bytes: int
    ) -> PublicKey:
        """Create a zeroed record of ``size_bytes`` owned by program ``owner``."""

    @abstractmethod
    async def submit_command(
        self,
        signer: Identity,
        targets: list[PublicKey],
        program_id: PublicKey,
        payload: bytes,
        require_confirmation: bool = False,
    ) -> None:
        """Send one command to ``program_id`` and wait for it to be applied."""

    @abstractmethod
    async def fetch_snapshot(self, handle: PublicKey) -> bytes:
        """Return the current raw bytes of a record."""

    @abstractmethod
    def subscribe(self, handle: PublicKey, callback: SnapshotCallback) -> int:
        """Call ``callback(raw_bytes)`` whenever the record changes."""

    @abstractmethod
    def unsubscribe(self, subscription_id: int) -> None:
        """Cancel a subscription returned by subscribe()."""


@dataclass(frozen=True)
class SubmittedCommand:
    """One command applied by an InMemoryLedger."""

    signer: PublicKey
    record: PublicKey
    command: str
    args: tuple


class InMemoryLedger(Ledger):
    """Ledger hosting tic-tac-toe records in process memory.

    Commands for ``program_id`` are applied by a TicTacToeProgram. Change
    notifications are delivered on the running event loop after the command
    completes, as a remote push would be.
    """

    def __init__(
        self,
        program_id: PublicKey | None = None,
        clock: Callable[[], int] = current_time_ms,
    ) -> None:
        self.program_id = program_id or Identity.generate().public_key
        self._program = TicTacToeProgram(clock)
        self._records: dict[PublicKey, bytes] = {}
        self._owners: dict[PublicKey, PublicKey] = {}
        self._subscriptions: dict[int, tuple[PublicKey, SnapshotCallback]] = {}
        self._subscription_ids = itertools.count(1)
        self.submitted: list[SubmittedCommand] = []

    @property
    def subscription_count(self) -> int:
        return len(self._subscriptions)

    async def allocate_record(
        self, payer: Identity, owner: PublicKey, size_bytes: int
    ) -> PublicKey:
        await asyncio.sleep(0)
        if size_bytes <= 0:
            raise AllocationError(f"record size must be positive, got {size_bytes}")
        handle = Identity.generate().public_key
        self._records[handle] = bytes(size_bytes)
        self._owners[handle] = owner
        logger.debug("Allocated %d-byte record %s for %s", size_bytes, handle, payer.public_key)
        return handle

    async def submit_command(
        self,
        signer: Identity,
        targets: list[PublicKey],
        program_id: PublicKey,
        payload: bytes,
        require_confirmation: bool = False,
    ) -> None:
        await asyncio.sleep(0)
        try:
            command, args = decode_command(payload)
        except MalformedState as e:
            raise CommandRejected("unknown", str(e)) from e

        if program_id != self.program_id:
            raise CommandRejected(command, f"unknown program {program_id}")
        if signer.public_key not in targets:
            raise CommandRejected(command, "signer is not among the command targets")

        handle = self._find_record(command, targets)
        data = self._records[handle]
        current = decode_record(data) if any(data) else None
        updated = self._program.process(current, signer.public_key, command, args)
        try:
            new_data = encode_record(updated, size=len(data))
        except ValueError as e:
            raise CommandRejected(command, str(e)) from e

        self._records[handle] = new_data
        self.submitted.append(
            SubmittedCommand(
                signer=signer.public_key, record=handle, command=command, args=tuple(args)
            )
        )
        self._notify(handle, new_data)

    async def fetch_snapshot(self, handle: PublicKey) -> bytes:
        await asyncio.sleep(0)
        try:
            return self._records[handle]
        except KeyError:
            raise NetworkError("fetch", f"record {handle} not found") from None

    def subscribe(self, handle: PublicKey, callback: SnapshotCallback) -> int:
        subscription_id = next(self._subscription_ids)
        self._subscriptions[subscription_id] = (handle, callback)
        return subscription_id

    def unsubscribe(self, subscription_id: int) -> None:
        self._subscriptions.pop(subscription_id, None)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _find_record(self, command: str, targets: list[PublicKey]) -> PublicKey:
        for key in targets:
            if self._owners.get(key) == self.program_id:
                return key
        raise CommandRejected(command, "no game record among the command targets")

    def _notify(self, handle: PublicKey, data: bytes) -> None:
        loop = asyncio.get_running_loop()
        for subscription_id, (watched, _) in list(self._subscriptions.items()):
            if watched == handle:
                loop.call_soon(self._deliver, subscription_id, data)

    def _deliver(self, subscription_id: int, data: bytes) -> None:
        # Dropped if unsubscribed between the change and delivery
        subscription = self._subscriptions.get(subscription_id)
        if subscription is not None:
            subscription[1](data)

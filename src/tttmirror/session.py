"""Session — one player's live mirror of a remote tic-tac-toe record.

A session is created by ``Session.create`` (allocates a record, plays X) or
``Session.join`` (attaches to a waiting record, plays O). While it lives it:

- mirrors the record: every pushed or fetched snapshot is decoded, turned
  into a SessionView for this player and handed to the change listeners
- keeps the game alive: a periodic task sends KeepAlive commands so the
  peer can tell we are still here, and stops once the game is over or
  abandoned, releasing the change subscription on the way out

Sessions are single-owner and run on one event loop; views and the
abandoned flag are only written from the change callback and the
keep-alive task, never concurrently.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from dataclasses import replace
from pathlib import Path
from typing import Callable

from tttmirror.config import ClientConfig
from tttmirror.core.codec import decode_record, encode_command
from tttmirror.core.errors import CommandRejected, LedgerError
from tttmirror.core.keys import Identity, PublicKey
from tttmirror.core.ledger import Ledger
from tttmirror.core.state import GameRecord, SessionView, current_time_ms, derive_view
from tttmirror.core.telemetry import ChangeEntry, SessionLogger

__all__ = ["ChangeListener", "Session"]

logger = logging.getLogger(__name__)

ChangeListener = Callable[[SessionView], None]


class Session:
    """Tracks one player's view of, and interaction with, a single game."""

    def __init__(
        self,
        ledger: Ledger,
        program_id: PublicKey,
        record: PublicKey,
        identity: Identity,
        is_player_x: bool,
        config: ClientConfig | None = None,
        clock: Callable[[], int] = current_time_ms,
        telemetry_dir: Path | None = None,
    ) -> None:
        self._ledger = ledger
        self._program_id = program_id
        self._record = record
        self._identity = identity
        self._is_player_x = is_player_x
        self._config = config or ClientConfig()
        self._clock = clock

        self._abandoned = False
        self._view = SessionView.initial()
        self._listeners: list[ChangeListener] = []
        self._subscription_id: int | None = None
        self._keep_alive_task: asyncio.Task | None = None

        self._telemetry: SessionLogger | None = None
        self._telemetry_finalized = False
        if telemetry_dir is not None:
            self._telemetry = SessionLogger(telemetry_dir, str(record), self.mark)
            self.on_change(self._log_change)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @classmethod
    async def create(
        cls,
        ledger: Ledger,
        program_id: PublicKey,
        identity: Identity,
        *,
        config: ClientConfig | None = None,
        clock: Callable[[], int] = current_time_ms,
        telemetry_dir: Path | None = None,
    ) -> Session:
        """Create a new game with ``identity`` as player X."""
        config = config or ClientConfig()
        record = await ledger.allocate_record(identity, program_id, config.record_size)
        await ledger.submit_command(
            identity,
            [record, identity.public_key],
            program_id,
            encode_command("InitGame"),
            require_confirmation=True,
        )

        session = cls(
            ledger, program_id, record, identity, True,
            config=config, clock=clock, telemetry_dir=telemetry_dir,
        )
        logger.info("Created game %s as player X", record)
        session._start()
        return session

    @classmethod
    async def join(
        cls,
        ledger: Ledger,
        program_id: PublicKey,
        identity: Identity,
        record: PublicKey,
        *,
        config: ClientConfig | None = None,
        clock: Callable[[], int] = current_time_ms,
        telemetry_dir: Path | None = None,
    ) -> Session:
        """Join an existing game as player O.

        The record is not checked for a free seat beforehand; a game that
        was not waiting surfaces as CommandRejected, either from the ledger
        or from the state fetched after joining.
        """
        session = cls(
            ledger, program_id, record, identity, False,
            config=config, clock=clock, telemetry_dir=telemetry_dir,
        )
        await ledger.submit_command(
            identity,
            [identity.public_key, record],
            program_id,
            encode_command("Join", clock()),
            require_confirmation=True,
        )

        session._on_snapshot(await ledger.fetch_snapshot(record))
        if session.view.player_o != identity.public_key:
            session._finalize_telemetry()
            raise CommandRejected(
                "Join", f"game {record} did not accept {identity.public_key} as player O"
            )
        logger.info("Joined game %s as player O", record)
        session._start()
        return session

    async def close(self) -> None:
        """Stop the keep-alive loop and release the change subscription."""
        await self._stop_keep_alive()

    async def __aenter__(self) -> Session:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def record(self) -> PublicKey:
        return self._record

    @property
    def identity(self) -> Identity:
        return self._identity

    @property
    def is_player_x(self) -> bool:
        return self._is_player_x

    @property
    def mark(self) -> str:
        return "X" if self._is_player_x else "O"

    @property
    def abandoned(self) -> bool:
        return self._abandoned

    @property
    def view(self) -> SessionView:
        return self._view

    @property
    def subscribed(self) -> bool:
        return self._subscription_id is not None

    @property
    def keep_alive_running(self) -> bool:
        return self._keep_alive_task is not None and not self._keep_alive_task.done()

    async def move(self, x: int, y: int) -> None:
        """Attempt to make a move at column ``x``, row ``y`` (0-indexed).

        Legality is decided by the remote authority; an illegal move raises
        CommandRejected.
        """
        await self._submit(encode_command("Move", x, y))

    async def keep_alive(self, when: int | None = None) -> None:
        """Send a keep-alive message to tell the other player we're still here.

        ``when`` overrides the timestamp; 0 announces that we are leaving.
        """
        await self._submit(
            encode_command("KeepAlive", self._clock() if when is None else when)
        )

    async def abandon(self) -> None:
        """Leave the game and signal it to the other player.

        The signal is best effort: a failed send is logged, not raised.
        """
        self._abandoned = True
        await self._stop_keep_alive()
        try:
            await self.keep_alive(0)
        except LedgerError as e:
            logger.warning("Abandon signal for game %s not delivered: %s", self._record, e)

    def on_change(self, listener: ChangeListener) -> None:
        """Register a callback for notification when the game state changes."""
        self._listeners.append(listener)

    def remove_change_listener(self, listener: ChangeListener) -> None:
        """Remove a previously registered on_change callback."""
        with contextlib.suppress(ValueError):
            self._listeners.remove(listener)

    async def refresh(self) -> SessionView:
        """Fetch the record now instead of waiting for a pushed change."""
        self._on_snapshot(await self._ledger.fetch_snapshot(self._record))
        return self._view

    @staticmethod
    async def get_game_state(ledger: Ledger, record: PublicKey) -> GameRecord:
        """Fetch and decode the latest state of a game record."""
        return decode_record(await ledger.fetch_snapshot(record))

    # ------------------------------------------------------------------
    # Change notification
    # ------------------------------------------------------------------

    def _on_snapshot(self, data: bytes) -> None:
        """Decode a raw snapshot, replace the view and notify listeners.

        Decode errors propagate to whoever delivered the snapshot.
        """
        record = decode_record(data)
        view = derive_view(
            record, self._is_player_x, self._clock(), self._config.liveness_timeout_ms
        )
        if view.peer_abandoned and not self._abandoned:
            logger.info("Peer stopped keeping game %s alive, marking abandoned", self._record)
            self._abandoned = True
        if self._abandoned and view.in_progress:
            view = replace(view, in_progress=False)

        self._view = view
        for listener in list(self._listeners):
            listener(view)

    def _subscribe(self) -> None:
        if self._subscription_id is None:
            self._subscription_id = self._ledger.subscribe(self._record, self._on_snapshot)
            logger.debug("Subscribed to changes of game %s", self._record)

    def _release_subscription(self) -> None:
        subscription_id = self._subscription_id
        if subscription_id is not None:
            self._subscription_id = None
            self._ledger.unsubscribe(subscription_id)
            logger.debug("Released change subscription for game %s", self._record)

    # ------------------------------------------------------------------
    # Keep-alive loop
    # ------------------------------------------------------------------

    def _start(self) -> None:
        self._subscribe()
        if self._keep_alive_task is None:
            self._keep_alive_task = asyncio.create_task(
                self._keep_alive_loop(), name=f"keep-alive-{self._record}"
            )

    async def _keep_alive_loop(self) -> None:
        interval_s = self._config.keep_alive_interval_ms / 1000
        try:
            while True:
                await asyncio.sleep(interval_s)
                if self._abandoned:
                    logger.info("Keep-alive exit, game abandoned: %s", self._record)
                    return
                if self._view.phase.is_terminal:
                    logger.info("Keep-alive exit, game over: %s", self._record)
                    return
                try:
                    await self._send_periodic_keep_alive()
                except Exception as e:
                    # One failed send never ends the loop
                    logger.warning("keep_alive() failed for game %s: %r", self._record, e)
        finally:
            self._release_subscription()
            self._finalize_telemetry()

    async def _send_periodic_keep_alive(self) -> None:
        timeout_s = self._config.keep_alive_timeout_s
        if timeout_s is None:
            await self.keep_alive()
        else:
            await asyncio.wait_for(self.keep_alive(), timeout_s)

    async def _stop_keep_alive(self) -> None:
        task = self._keep_alive_task
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._release_subscription()
        self._finalize_telemetry()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _submit(self, payload: bytes) -> None:
        await self._ledger.submit_command(
            self._identity,
            [self._identity.public_key, self._record],
            self._program_id,
            payload,
            require_confirmation=True,
        )

    def _log_change(self, view: SessionView) -> None:
        self._telemetry.log_change(ChangeEntry.from_view(view, self._is_player_x))

    def _finalize_telemetry(self) -> None:
        if self._telemetry is None or self._telemetry_finalized:
            return
        self._telemetry_finalized = True
        self._telemetry.finalize_session(
            ChangeEntry.from_view(self._view, self._is_player_x), self._abandoned
        )

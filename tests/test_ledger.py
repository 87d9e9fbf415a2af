"""Tests for InMemoryLedger — allocation, commands, snapshots, pushes."""

import asyncio

import pytest

from tttmirror.core.codec import decode_record, encode_command
from tttmirror.core.errors import AllocationError, CommandRejected, NetworkError
from tttmirror.core.keys import Identity
from tttmirror.core.state import Phase


async def _new_game(ledger, owner):
    record = await ledger.allocate_record(owner, ledger.program_id, 256)
    await ledger.submit_command(
        owner, [record, owner.public_key], ledger.program_id, encode_command("InitGame")
    )
    return record


class TestAllocation:
    def test_allocates_zeroed_record(self, ledger, alice):
        async def scenario():
            record = await ledger.allocate_record(alice, ledger.program_id, 256)
            return await ledger.fetch_snapshot(record)

        assert asyncio.run(scenario()) == bytes(256)

    def test_non_positive_size_rejected(self, ledger, alice):
        with pytest.raises(AllocationError):
            asyncio.run(ledger.allocate_record(alice, ledger.program_id, 0))


class TestSubmitCommand:
    def test_init_game_writes_record(self, ledger, alice, clock):
        async def scenario():
            record = await _new_game(ledger, alice)
            return decode_record(await ledger.fetch_snapshot(record))

        game = asyncio.run(scenario())
        assert game.phase is Phase.WAITING
        assert game.player_x == alice.public_key
        assert game.last_keep_alive == (clock.now, 0)

    def test_records_submitted_commands(self, ledger, alice, bob):
        async def scenario():
            record = await _new_game(ledger, alice)
            await ledger.submit_command(
                bob, [bob.public_key, record], ledger.program_id, encode_command("Join", 7)
            )
            return record

        record = asyncio.run(scenario())
        assert [c.command for c in ledger.submitted] == ["InitGame", "Join"]
        assert ledger.submitted[-1].args == (7,)
        assert ledger.submitted[-1].signer == bob.public_key
        assert ledger.submitted[-1].record == record

    def test_unknown_program_rejected(self, ledger, alice):
        async def scenario():
            record = await ledger.allocate_record(alice, ledger.program_id, 256)
            await ledger.submit_command(
                alice, [record, alice.public_key],
                Identity.generate().public_key, encode_command("InitGame"),
            )

        with pytest.raises(CommandRejected, match="unknown program"):
            asyncio.run(scenario())

    def test_signer_must_be_a_target(self, ledger, alice, bob):
        async def scenario():
            record = await ledger.allocate_record(alice, ledger.program_id, 256)
            await ledger.submit_command(
                bob, [record, alice.public_key], ledger.program_id, encode_command("InitGame")
            )

        with pytest.raises(CommandRejected, match="signer"):
            asyncio.run(scenario())

    def test_no_record_among_targets(self, ledger, alice):
        with pytest.raises(CommandRejected, match="no game record"):
            asyncio.run(ledger.submit_command(
                alice, [alice.public_key], ledger.program_id, encode_command("InitGame")
            ))

    def test_rejected_command_leaves_record_untouched(self, ledger, alice):
        async def scenario():
            record = await _new_game(ledger, alice)
            before = await ledger.fetch_snapshot(record)
            with pytest.raises(CommandRejected):
                await ledger.submit_command(
                    alice, [alice.public_key, record], ledger.program_id,
                    encode_command("Move", 0, 0),
                )
            return before, await ledger.fetch_snapshot(record)

        before, after = asyncio.run(scenario())
        assert before == after

    def test_undecodable_command_rejected(self, ledger, alice):
        async def scenario():
            record = await ledger.allocate_record(alice, ledger.program_id, 256)
            await ledger.submit_command(
                alice, [record, alice.public_key], ledger.program_id, b"\xff\xff"
            )

        with pytest.raises(CommandRejected):
            asyncio.run(scenario())


class TestSnapshots:
    def test_fetch_unknown_record(self, ledger):
        with pytest.raises(NetworkError):
            asyncio.run(ledger.fetch_snapshot(Identity.generate().public_key))

    def test_subscriber_receives_push(self, ledger, alice, bob):
        received = []

        async def scenario():
            record = await _new_game(ledger, alice)
            ledger.subscribe(record, received.append)
            await ledger.submit_command(
                bob, [bob.public_key, record], ledger.program_id, encode_command("Join", 1)
            )
            assert received == []  # delivered on the next loop iteration
            await asyncio.sleep(0)

        asyncio.run(scenario())
        assert len(received) == 1
        assert decode_record(received[0]).phase is Phase.X_TURN

    def test_unsubscribe_drops_pending_push(self, ledger, alice, bob):
        received = []

        async def scenario():
            record = await _new_game(ledger, alice)
            sub_id = ledger.subscribe(record, received.append)
            await ledger.submit_command(
                bob, [bob.public_key, record], ledger.program_id, encode_command("Join", 1)
            )
            ledger.unsubscribe(sub_id)
            await asyncio.sleep(0)

        asyncio.run(scenario())
        assert received == []
        assert ledger.subscription_count == 0

    def test_other_records_not_pushed(self, ledger, alice, bob):
        received = []

        async def scenario():
            watched = await _new_game(ledger, alice)
            other = await _new_game(ledger, bob)
            ledger.subscribe(watched, received.append)
            await ledger.submit_command(
                alice, [alice.public_key, other], ledger.program_id, encode_command("Join", 1)
            )
            await asyncio.sleep(0)

        asyncio.run(scenario())
        assert received == []

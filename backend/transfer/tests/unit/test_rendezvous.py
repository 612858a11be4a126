"""Tests for the pin-based key transfer rendezvous."""

import asyncio

import pytest

from access.signature import generic_hash
from transfer.rendezvous import (
    MAX_PENDING_TRANSFERS,
    InvalidTransferRequest,
    TooManyPendingTransfers,
    TransferExpired,
    TransferRendezvous,
    TransferSuperseded,
)


async def _body(*chunks: bytes):
    for chunk in chunks:
        yield chunk


async def _read(stream) -> bytes:
    return b"".join([chunk async for chunk in stream])


async def _attach_and_wait(rendezvous, pin, role, body):
    """Start attaching in a task and let it reach the waiting state."""
    task = asyncio.create_task(rendezvous.attach(pin, role, body))
    await asyncio.sleep(0)
    return task


class TestRequestPin:
    async def test_pin_is_16_hex_chars(self):
        rendezvous = TransferRendezvous()
        pin = rendezvous.request_pin()

        assert len(pin) == 16
        int(pin, 16)
        assert pin in rendezvous
        assert rendezvous.get_step(pin) == 1
        rendezvous.close()

    async def test_pins_ratchet_a_keyed_hash(self):
        seed, key = b"\x01" * 8, b"k" * 32
        rendezvous = TransferRendezvous(seed=seed, key=key)

        first = rendezvous.request_pin()
        second = rendezvous.request_pin()

        expected_first = generic_hash(seed, digest_size=8, key=key)
        assert first == expected_first.hex()
        assert second == generic_hash(expected_first, digest_size=8, key=key).hex()
        rendezvous.close()

    async def test_admission_limit(self):
        rendezvous = TransferRendezvous()
        pins = {rendezvous.request_pin() for _ in range(MAX_PENDING_TRANSFERS)}
        assert len(pins) == MAX_PENDING_TRANSFERS

        with pytest.raises(TooManyPendingTransfers):
            rendezvous.request_pin()
        rendezvous.close()

    async def test_unknown_pin_step(self):
        assert TransferRendezvous().get_step("0000000000000000") is None


class TestAttach:
    async def test_sender_and_reciever_exchange_bodies(self):
        rendezvous = TransferRendezvous()
        pin = rendezvous.request_pin()

        sender = await _attach_and_wait(rendezvous, pin, "sender", _body(b"from-", b"sender"))
        reciever_leg = await rendezvous.attach(pin, "reciever", _body(b"from-reciever"))
        sender_leg = await sender

        assert sender_leg.step == reciever_leg.step == 2
        assert await _read(sender_leg.peer_body) == b"from-reciever"
        assert await _read(reciever_leg.peer_body) == b"from-sender"
        rendezvous.close()

    async def test_each_side_learns_when_its_body_was_read(self):
        rendezvous = TransferRendezvous()
        pin = rendezvous.request_pin()

        sender = await _attach_and_wait(rendezvous, pin, "sender", _body(b"s"))
        reciever_leg = await rendezvous.attach(pin, "reciever", _body(b"r"))
        sender_leg = await sender

        assert sender_leg.body_read is reciever_leg.peer_body_read
        assert reciever_leg.body_read is sender_leg.peer_body_read
        assert sender_leg.body_read is not reciever_leg.body_read
        rendezvous.close()

    async def test_reciever_may_attach_first(self):
        rendezvous = TransferRendezvous()
        pin = rendezvous.request_pin()

        reciever = await _attach_and_wait(rendezvous, pin, "reciever", _body(b"r"))
        sender_leg = await rendezvous.attach(pin, "sender", _body(b"s"))

        assert await _read(sender_leg.peer_body) == b"r"
        assert (await reciever).step == 2
        rendezvous.close()

    async def test_pin_survives_pairing_and_counts_steps(self):
        rendezvous = TransferRendezvous()
        pin = rendezvous.request_pin()

        for expected_step in (2, 3):
            sender = await _attach_and_wait(rendezvous, pin, "sender", _body(b"s"))
            leg = await rendezvous.attach(pin, "reciever", _body(b"r"))
            await sender
            assert leg.step == expected_step

        assert rendezvous.get_step(pin) == 3
        assert rendezvous.pending_count == 1
        rendezvous.close()

    async def test_same_role_supersedes_waiting_request(self):
        rendezvous = TransferRendezvous()
        pin = rendezvous.request_pin()

        first = await _attach_and_wait(rendezvous, pin, "sender", _body(b"old"))
        second = await _attach_and_wait(rendezvous, pin, "sender", _body(b"new"))

        with pytest.raises(TransferSuperseded):
            await first

        leg = await rendezvous.attach(pin, "reciever", _body(b"r"))
        assert await _read(leg.peer_body) == b"new"
        assert (await second).step == 2
        rendezvous.close()

    @pytest.mark.parametrize("role", ["", "receiver", "SENDER", "both"])
    async def test_invalid_role(self, role):
        rendezvous = TransferRendezvous()
        pin = rendezvous.request_pin()

        with pytest.raises(InvalidTransferRequest):
            await rendezvous.attach(pin, role, _body())
        rendezvous.close()

    async def test_unknown_pin(self):
        with pytest.raises(InvalidTransferRequest):
            await TransferRendezvous().attach("deadbeefdeadbeef", "sender", _body())


class TestEviction:
    async def test_idle_pin_is_evicted(self):
        rendezvous = TransferRendezvous(ttl_seconds=0.01)
        pin = rendezvous.request_pin()

        await asyncio.sleep(0.05)

        assert pin not in rendezvous
        assert rendezvous.pending_count == 0

    async def test_waiting_half_released_on_eviction(self):
        rendezvous = TransferRendezvous(ttl_seconds=0.01)
        pin = rendezvous.request_pin()
        waiting = await _attach_and_wait(rendezvous, pin, "sender", _body(b"s"))

        with pytest.raises(TransferExpired):
            await asyncio.wait_for(waiting, timeout=1)
        assert pin not in rendezvous

    async def test_pairing_rearms_timer(self):
        rendezvous = TransferRendezvous(ttl_seconds=0.2)
        pin = rendezvous.request_pin()

        await asyncio.sleep(0.12)
        sender = await _attach_and_wait(rendezvous, pin, "sender", _body(b"s"))
        await rendezvous.attach(pin, "reciever", _body(b"r"))
        await sender
        await asyncio.sleep(0.12)
        assert pin in rendezvous

        await asyncio.sleep(0.3)
        assert pin not in rendezvous

    async def test_close_releases_everything(self):
        rendezvous = TransferRendezvous()
        pin = rendezvous.request_pin()
        rendezvous.request_pin()
        waiting = await _attach_and_wait(rendezvous, pin, "reciever", _body())

        rendezvous.close()

        assert rendezvous.pending_count == 0
        with pytest.raises(TransferExpired):
            await waiting

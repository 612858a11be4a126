"""Pin-based rendezvous that relays key material between two devices.

One device asks for a pin, then both devices POST to the transfer endpoint
for that pin, one as ``sender`` and one as ``reciever``. When both have
attached, each side's request body is streamed into the other side's
response. The server only relays opaque bytes.

A pin survives pairing: the step counter increments and the idle timer is
re-armed, so one pin can carry several transfer legs until it sits idle for
ten minutes and is evicted.
"""

from __future__ import annotations

import asyncio
import secrets
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING

import anyio
import structlog

from access.signature import generic_hash

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

logger = structlog.get_logger()

MAX_PENDING_TRANSFERS = 1000
PENDING_PIN_TTL_SECONDS = 10 * 60
PIN_BYTES = 8


class TransferRole(StrEnum):
    SENDER = "sender"
    RECIEVER = "reciever"  # spelling is part of the URL contract


class TransferError(Exception):
    """Base class for rendezvous failures."""


class TooManyPendingTransfers(TransferError):
    pass


class InvalidTransferRequest(TransferError):
    pass


class TransferSuperseded(TransferError):
    """Another request attached with the same role before a peer arrived."""


class TransferExpired(TransferError):
    """The pin was evicted while this side was still waiting for a peer."""


@dataclass(frozen=True)
class TransferLeg:
    """What one side streams back once paired.

    ``peer_body_read`` is set by this side once it has finished reading the
    peer's body. ``body_read`` is set by the peer once it has finished reading
    this side's body; until then this side's request must stay open, or the
    server stops delivering its body.
    """

    step: int
    peer_body: AsyncIterator[bytes]
    peer_body_read: anyio.Event
    body_read: anyio.Event


@dataclass(frozen=True)
class EmptySlot:
    pass


@dataclass(frozen=True)
class AwaitingPeer:
    role: TransferRole
    body: AsyncIterator[bytes]
    body_read: anyio.Event
    waiter: asyncio.Future[TransferLeg]


@dataclass
class PendingTransfer:
    step: int
    timer: asyncio.TimerHandle
    slot: EmptySlot | AwaitingPeer = field(default_factory=EmptySlot)


class TransferRendezvous:
    """Owns the pending-pin table. All methods run on the event loop thread."""

    def __init__(
        self,
        *,
        max_pending: int = MAX_PENDING_TRANSFERS,
        ttl_seconds: float = PENDING_PIN_TTL_SECONDS,
        seed: bytes | None = None,
        key: bytes | None = None,
    ) -> None:
        self._max_pending = max_pending
        self._ttl_seconds = ttl_seconds
        self._pending: dict[str, PendingTransfer] = {}
        self._seed = seed if seed is not None else secrets.token_bytes(PIN_BYTES)
        self._key = key if key is not None else secrets.token_bytes(32)

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def __contains__(self, pin: object) -> bool:
        return pin in self._pending

    def get_step(self, pin: str) -> int | None:
        transfer = self._pending.get(pin)
        return transfer.step if transfer is not None else None

    def request_pin(self) -> str:
        """Issue a fresh pin. Raises TooManyPendingTransfers at the admission limit."""
        if len(self._pending) >= self._max_pending:
            raise TooManyPendingTransfers
        pin = ""
        while not pin or pin in self._pending:
            self._seed = generic_hash(self._seed, digest_size=PIN_BYTES, key=self._key)
            pin = self._seed.hex()
        self._pending[pin] = PendingTransfer(step=1, timer=self._arm_eviction(pin))
        logger.info("transfer pin issued", pending=len(self._pending))
        return pin

    async def attach(self, pin: str, role: str, body: AsyncIterator[bytes]) -> TransferLeg:
        """Attach one side of a transfer and wait until the other side arrives.

        A second request for a role that is already waiting replaces it; the
        replaced request fails with TransferSuperseded.
        """
        try:
            transfer_role = TransferRole(role)
        except ValueError:
            raise InvalidTransferRequest from None
        transfer = self._pending.get(pin)
        if transfer is None:
            raise InvalidTransferRequest

        body_read = anyio.Event()
        slot = transfer.slot
        if isinstance(slot, AwaitingPeer) and not slot.waiter.done():
            if slot.role != transfer_role:
                return self._pair(pin, transfer, slot, body, body_read)
            slot.waiter.set_exception(TransferSuperseded())
            logger.info("transfer role superseded", role=transfer_role.value, step=transfer.step)

        waiter: asyncio.Future[TransferLeg] = asyncio.get_running_loop().create_future()
        transfer.slot = AwaitingPeer(role=transfer_role, body=body, body_read=body_read, waiter=waiter)
        return await waiter

    def close(self) -> None:
        """Cancel all timers and release waiting requests (server shutdown)."""
        for pin in list(self._pending):
            self._evict(pin)

    def _pair(
        self,
        pin: str,
        transfer: PendingTransfer,
        waiting: AwaitingPeer,
        body: AsyncIterator[bytes],
        body_read: anyio.Event,
    ) -> TransferLeg:
        transfer.timer.cancel()
        transfer.step += 1
        transfer.slot = EmptySlot()
        waiting.waiter.set_result(
            TransferLeg(step=transfer.step, peer_body=body, peer_body_read=body_read, body_read=waiting.body_read),
        )
        transfer.timer = self._arm_eviction(pin)
        logger.info("transfer paired", step=transfer.step)
        return TransferLeg(
            step=transfer.step,
            peer_body=waiting.body,
            peer_body_read=waiting.body_read,
            body_read=body_read,
        )

    def _arm_eviction(self, pin: str) -> asyncio.TimerHandle:
        return asyncio.get_running_loop().call_later(self._ttl_seconds, self._evict, pin)

    def _evict(self, pin: str) -> None:
        transfer = self._pending.pop(pin, None)
        if transfer is None:
            return
        transfer.timer.cancel()
        slot = transfer.slot
        if isinstance(slot, AwaitingPeer) and not slot.waiter.done():
            slot.waiter.set_exception(TransferExpired())
        logger.debug("transfer pin evicted", step=transfer.step, pending=len(self._pending))

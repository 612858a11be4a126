"""Key-transfer rendezvous between two devices over the server."""

from transfer.relay import RelayResponse
from transfer.rendezvous import (
    MAX_PENDING_TRANSFERS,
    PENDING_PIN_TTL_SECONDS,
    InvalidTransferRequest,
    TooManyPendingTransfers,
    TransferExpired,
    TransferLeg,
    TransferRendezvous,
    TransferRole,
    TransferSuperseded,
)

__all__ = [
    "MAX_PENDING_TRANSFERS",
    "PENDING_PIN_TTL_SECONDS",
    "InvalidTransferRequest",
    "RelayResponse",
    "TooManyPendingTransfers",
    "TransferExpired",
    "TransferLeg",
    "TransferRendezvous",
    "TransferRole",
    "TransferSuperseded",
]

"""Interfaces to the on-chain ledger and the transaction signer."""

from __future__ import annotations

from typing import Any, Protocol

from intent_solver.auction.dutch import DutchCurve
from intent_solver.ledger.result import SubmitResult
from intent_solver.models.intent import Intent
from intent_solver.models.solution import AcceptRequest, BidRequest, FillRequest


class LedgerClient(Protocol):
    """Authoritative intent state and submission endpoint.

    Reads return fresh snapshots. Writes return a SubmitResult for ledger
    rejections and raise SubmissionFailure for transport failures. The
    ledger enforces its own atomicity: of two racing fills for the same
    window at most one is accepted.
    """

    async def get_intent(self, intent_id: int) -> Intent | None:
        ...

    async def get_total_intents(self) -> int:
        ...

    async def get_dutch_auction(self, intent_id: int) -> DutchCurve | None:
        ...

    async def submit_fill(self, request: FillRequest) -> SubmitResult:
        ...

    async def submit_bid(self, request: BidRequest) -> SubmitResult:
        ...

    async def accept_dutch(self, request: AcceptRequest) -> SubmitResult:
        ...

    async def get_sequence_number(self, address: str) -> int:
        """Next account sequence number (signing nonce)."""
        ...


class Signer(Protocol):
    """Signs and submits entry-function payloads for the solver account.

    Key custody lives outside this package; implementations forward the
    payload to whatever holds the key.
    """

    address: str

    async def sign_and_submit(self, payload: dict[str, Any], nonce: int) -> str:
        """Submit payload with the given sequence number and return the tx hash.

        Raises:
            SubmissionFailure: On transport errors or ledger aborts
        """
        ...

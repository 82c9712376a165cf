"""Ledger access: read intent snapshots, submit fills, bids and Dutch claims."""

from intent_solver.ledger.base import LedgerClient, Signer
from intent_solver.ledger.parsing import classify_abort, parse_intent_record
from intent_solver.ledger.rest import RemoteSigner, RestLedgerClient
from intent_solver.ledger.result import RejectionReason, SubmitResult

__all__ = [
    "LedgerClient",
    "RejectionReason",
    "RemoteSigner",
    "RestLedgerClient",
    "Signer",
    "SubmitResult",
    "classify_abort",
    "parse_intent_record",
]

"""Pydantic models for solver-proposed executions and ledger submissions."""

from enum import Enum

from pydantic import BaseModel, Field

from intent_solver.models.intent import IntentType
from intent_solver.models.types import Amount


class RouteStep(BaseModel):
    """Single hop of an execution route."""

    venue: str = Field(description="Liquidity source identifier (DEX name or 'oracle').")
    pool: str | None = None
    token_in: str
    token_out: str
    amount_in: Amount
    expected_out: Amount

    model_config = {"frozen": True}


class Solution(BaseModel):
    """A candidate execution. Never persisted; purely an evaluation input.

    Attributes:
        output_amount: Output the solver would deliver to the maker
        route: Hops the solver intends to use
        gas_estimate: Gas units the submission is expected to burn
    """

    output_amount: Amount
    route: list[RouteStep] = Field(default_factory=list)
    gas_estimate: int = Field(default=0, ge=0)

    model_config = {"frozen": True}


class SubmissionKind(str, Enum):
    """What the solver sends to the ledger."""

    FILL = "fill"
    BID = "bid"
    ACCEPT = "accept"


class FillRequest(BaseModel):
    """Signed fill submission for one window of an intent.

    Attributes:
        intent_id: Target intent
        intent_type: Selects the ledger entry function
        period_index: Window for TWAP/DCA, None for atomic intents
        amount: Input amount consumed from escrow
        min_output: Floor the ledger enforces for this fill
        output_amount: Output the solver delivers
        solver_address: Submitting solver
        nonce: Account sequence number reserved for this submission
    """

    intent_id: int
    intent_type: IntentType
    period_index: int | None = None
    amount: Amount
    min_output: Amount = 0
    output_amount: Amount
    solver_address: str
    nonce: int = Field(ge=0)

    model_config = {"frozen": True}


class BidRequest(BaseModel):
    """Sealed-bid commitment for an intent."""

    intent_id: int
    output_amount: Amount
    solver_address: str
    nonce: int = Field(ge=0)

    model_config = {"frozen": True}


class AcceptRequest(BaseModel):
    """Claim of an open Dutch auction at the ledger's current price.

    The ledger records the claimant and price; fills follow on later polls.
    """

    intent_id: int
    expected_price: Amount
    solver_address: str
    nonce: int = Field(ge=0)

    model_config = {"frozen": True}

"""Parsing of raw ledger view payloads into intent models.

View functions return Move structs as JSON: snake_case keys, u64 values as
decimal strings, and enum variants as {"__variant__": "Name", ...} (older
nodes use "type" instead of "__variant__"). Parsing is tolerant the way the
ledger's own SDK is: missing status means active, missing fills means none,
unknown intent variants parse as swaps.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Any

import structlog
from pydantic import ValidationError

from intent_solver.auction.dutch import DutchCurve
from intent_solver.errors import PreconditionFailure
from intent_solver.ledger.result import RejectionReason
from intent_solver.models.intent import (
    AuctionInfo,
    AuctionType,
    Bid,
    Fill,
    Intent,
    IntentStatus,
    IntentType,
)

logger = structlog.get_logger()

# Move abort codes raised by the settlement contracts
ABORT_CODES: dict[int, tuple[str, RejectionReason]] = {
    2: ("EINTENT_ALREADY_FILLED", RejectionReason.ALREADY_FILLED),
    3: ("EINTENT_EXPIRED", RejectionReason.EXPIRED),
    4: ("EINTENT_CANCELLED", RejectionReason.ALREADY_FILLED),
    5: ("EINTENT_NOT_ACTIVE", RejectionReason.ALREADY_FILLED),
    7: ("EMAX_FILLS_REACHED", RejectionReason.ALREADY_FILLED),
    12: ("EMIN_AMOUNT_NOT_MET", RejectionReason.SLIPPAGE_EXCEEDED),
    13: ("EINSUFFICIENT_OUTPUT", RejectionReason.SLIPPAGE_EXCEEDED),
    16: ("EEXCEEDS_REMAINING", RejectionReason.ALREADY_FILLED),
    24: ("ESOLVER_NOT_WINNER", RejectionReason.NOT_WINNER),
    41: ("EAUCTION_ENDED", RejectionReason.EXPIRED),
    42: ("EAUCTION_IN_PROGRESS", RejectionReason.NOT_READY),
    45: ("EAUCTION_NO_BIDS", RejectionReason.INSUFFICIENT_BID),
    46: ("EAUCTION_ALREADY_COMPLETED", RejectionReason.ALREADY_FILLED),
    47: ("EFILL_DEADLINE_PASSED", RejectionReason.EXPIRED),
    48: ("EBID_TOO_LOW", RejectionReason.INSUFFICIENT_BID),
    49: ("EDUTCH_PRICE_NOT_MET", RejectionReason.SLIPPAGE_EXCEEDED),
    80: ("ECHUNK_NOT_READY", RejectionReason.NOT_READY),
    81: ("EPERIOD_NOT_READY", RejectionReason.NOT_READY),
    82: ("ESCHEDULED_COMPLETED", RejectionReason.ALREADY_FILLED),
    90: ("EDEADLINE_PASSED", RejectionReason.EXPIRED),
    91: ("EEXPIRY_PASSED", RejectionReason.EXPIRED),
    92: ("ETOO_EARLY", RejectionReason.NOT_READY),
}

_ABORT_NAMES = {name: reason for name, reason in ABORT_CODES.values()}

# "Move abort in 0x...::settlement: 0x2" or "...: EINTENT_ALREADY_FILLED(0x2)"
_ABORT_CODE_RE = re.compile(r"Move abort.*?:\s*(?:[A-Z_]+\()?(0x[0-9a-f]+)", re.IGNORECASE)
_ABORT_NAME_RE = re.compile(r"\b(E[A-Z_]{3,})\b")


def classify_abort(message: str) -> RejectionReason:
    """Map a ledger error message to a rejection reason."""
    match = _ABORT_CODE_RE.search(message)
    if match is not None:
        entry = ABORT_CODES.get(int(match.group(1), 16))
        if entry is not None:
            return entry[1]
    for name in _ABORT_NAME_RE.findall(message):
        if name in _ABORT_NAMES:
            return _ABORT_NAMES[name]
    return RejectionReason.UNKNOWN


def _variant(raw: Mapping[str, Any] | None) -> str:
    if not raw:
        return ""
    value = raw.get("__variant__") or raw.get("type") or raw.get("variant") or ""
    return str(value)


def _int(value: Any, default: int | None = None) -> int | None:
    if value is None or value == "":
        return default
    return int(value)


def parse_intent_type(variant: str) -> IntentType:
    if "LimitOrder" in variant or variant.upper() == "LIMIT_ORDER":
        return IntentType.LIMIT_ORDER
    if "TWAP" in variant.upper():
        return IntentType.TWAP
    if "DCA" in variant.upper():
        return IntentType.DCA
    return IntentType.SWAP


def parse_status(variant: str, has_fills: bool) -> IntentStatus:
    """Map a ledger status variant. An active intent with fills is partially filled."""
    lowered = variant.lower()
    if not lowered or "active" in lowered:
        return IntentStatus.PARTIALLY_FILLED if has_fills else IntentStatus.PENDING
    if "partial" in lowered:
        return IntentStatus.PARTIALLY_FILLED
    if "filled" in lowered:
        return IntentStatus.FILLED
    if "cancel" in lowered:
        return IntentStatus.CANCELLED
    if "expired" in lowered:
        return IntentStatus.EXPIRED
    logger.warning("unknown_status_variant", variant=variant)
    return IntentStatus.PENDING


def parse_auction(
    raw: Mapping[str, Any] | None, created_at: int
) -> tuple[AuctionType, AuctionInfo | None]:
    """Parse the auction state variant into an auction type and its parameters.

    A failed auction leaves the intent open to first-come fills.
    """
    variant = _variant(raw)
    if raw is None or not variant or variant == "None" or "Failed" in variant:
        return AuctionType.NONE, None

    if "SealedBid" in variant:
        bids = [
            Bid(
                solver=str(b.get("solver", "")),
                output_amount=_int(b.get("output_amount"), 0),
                submitted_at=_int(b.get("submitted_at"), 0),
            )
            for b in raw.get("bids") or []
        ]
        commit_deadline = _int(raw.get("end_time"))
        if commit_deadline is None:
            # Completed auctions no longer carry their commit deadline
            commit_deadline = created_at
        return AuctionType.SEALED_BID, AuctionInfo(
            commit_deadline=commit_deadline,
            reveal_deadline=_int(raw.get("fill_deadline")),
            bids=bids,
            winner=raw.get("winner") or None,
            winning_bid=_int(raw.get("winning_bid")),
        )

    if "Dutch" in variant:
        return AuctionType.DUTCH, AuctionInfo(
            start_time=_int(raw.get("start_time")),
            start_price=_int(raw.get("start_price")),
            end_time=_int(raw.get("end_time")),
            floor_price=_int(raw.get("end_price", raw.get("floor_price"))),
            accepted_by=raw.get("winner") or raw.get("accepted_by") or None,
            accepted_price=_int(raw.get("accepted_price")),
        )

    logger.warning("unknown_auction_variant", variant=variant)
    return AuctionType.NONE, None


def parse_intent_record(raw: Mapping[str, Any]) -> Intent:
    """Parse a `submission::get_intent` record into an Intent.

    Fills of scheduled intents are numbered by their order on the ledger,
    which executes periods strictly in sequence.

    Raises:
        PreconditionFailure: If the record lacks the fields its intent type needs
    """
    body = raw.get("intent") or {}
    intent_type = parse_intent_type(_variant(body))
    created_at = _int(raw.get("created_at"), 0)

    auction_type, auction = parse_auction(raw.get("auction"), created_at)

    fields: dict[str, Any] = {}
    try:
        if intent_type in (IntentType.SWAP, IntentType.LIMIT_ORDER):
            input_amount = _int(body.get("amount_in"))
            deadline = _int(body.get("deadline"), _int(body.get("expiry")))
            fields["min_output_amount"] = _int(body.get("min_amount_out"))
            fields["limit_price"] = _int(body.get("limit_price"))
        elif intent_type == IntentType.TWAP:
            input_amount = _int(body.get("total_amount"))
            interval = _int(body.get("interval_seconds"))
            chunks = _int(body.get("num_chunks"))
            start_time = _int(body.get("start_time"), created_at)
            fields.update(
                total_amount=input_amount,
                num_chunks=chunks,
                interval_seconds=interval,
                max_slippage_bps=_int(body.get("max_slippage_bps")),
                start_time=start_time,
                min_output_amount=_int(body.get("min_amount_out")),
            )
            deadline = _int(body.get("deadline"))
            if deadline is None and chunks is not None and interval is not None:
                deadline = start_time + chunks * interval
        else:
            per_period = _int(body.get("amount_per_period"))
            periods = _int(body.get("total_periods"))
            interval = _int(body.get("interval_seconds"))
            input_amount = (
                per_period * periods if per_period is not None and periods is not None else None
            )
            fields.update(
                amount_per_period=per_period,
                total_periods=periods,
                interval_seconds=interval,
                min_output_amount=_int(body.get("min_amount_out")),
            )
            deadline = _int(body.get("deadline"))
            if deadline is None and periods is not None and interval is not None:
                deadline = created_at + periods * interval
    except ValueError as err:
        raise PreconditionFailure(f"Malformed intent record {raw.get('id')}: {err}") from err

    if input_amount is None or deadline is None:
        raise PreconditionFailure(
            f"Intent record {raw.get('id')} lacks amount or deadline for {intent_type.value}"
        )

    scheduled = intent_type in (IntentType.TWAP, IntentType.DCA)
    fills = [
        Fill(
            period_index=index if scheduled else None,
            amount_filled=_int(f.get("input_amount"), 0),
            amount_received=_int(f.get("output_amount"), 0),
            solver_address=str(f.get("solver", "")),
            executed_at=_int(f.get("filled_at"), 0),
        )
        for index, f in enumerate(raw.get("fills") or [])
    ]

    try:
        return Intent(
            id=_int(raw.get("id"), 0),
            user=str(raw.get("user", "")),
            type=intent_type,
            input_token=str(body.get("input_token", "")),
            output_token=str(body.get("output_token", "")),
            input_amount=input_amount,
            deadline=deadline,
            created_at=created_at,
            auction_type=auction_type,
            auction=auction,
            status=parse_status(_variant(raw.get("status")), has_fills=bool(fills)),
            fills=fills,
            **{k: v for k, v in fields.items() if v is not None},
        )
    except ValidationError as err:
        raise PreconditionFailure(f"Invalid intent record {raw.get('id')}: {err}") from err


def parse_dutch_params(raw: Mapping[str, Any], created_at: int = 0) -> DutchCurve | None:
    """Parse `auction::get_dutch_auction` output; None if the intent is not Dutch."""
    if not raw or raw.get("start_price") is None or raw.get("end_time") is None:
        return None
    return DutchCurve(
        start_time=_int(raw.get("start_time"), created_at),
        start_price=_int(raw.get("start_price")),
        end_time=_int(raw.get("end_time")),
        floor_price=_int(raw.get("end_price", raw.get("floor_price"))),
    )

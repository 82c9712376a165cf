"""Pydantic models for intent solver data structures."""

from intent_solver.models.intent import (
    AuctionInfo,
    AuctionType,
    Bid,
    Fill,
    Intent,
    IntentStatus,
    IntentType,
)
from intent_solver.models.schedule import ScheduleWindow
from intent_solver.models.solution import (
    AcceptRequest,
    BidRequest,
    FillRequest,
    RouteStep,
    Solution,
    SubmissionKind,
)
from intent_solver.models.types import Address, Amount, Timestamp, normalize_address

__all__ = [
    # Types
    "Address",
    "Amount",
    "Timestamp",
    "normalize_address",
    # Intent models
    "AuctionInfo",
    "AuctionType",
    "Bid",
    "Fill",
    "Intent",
    "IntentStatus",
    "IntentType",
    "ScheduleWindow",
    # Solution models
    "AcceptRequest",
    "BidRequest",
    "FillRequest",
    "RouteStep",
    "Solution",
    "SubmissionKind",
]

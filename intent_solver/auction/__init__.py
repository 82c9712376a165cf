"""Auction mechanisms: Dutch descending price and sealed-bid commit/reveal."""

from intent_solver.auction.dutch import DutchCurve
from intent_solver.auction.resolver import AuctionDecision, AuctionPhase, AuctionResolver
from intent_solver.auction.sealed_bid import SealedBidWindow, bid_with_premium, select_winner

__all__ = [
    "AuctionDecision",
    "AuctionPhase",
    "AuctionResolver",
    "DutchCurve",
    "SealedBidWindow",
    "bid_with_premium",
    "select_winner",
]

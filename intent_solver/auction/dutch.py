"""Dutch auction price curve.

The price is the output amount a solver must deliver for the intent's whole
input. It decays linearly from start_price at start_time to floor_price at
end_time and stays at the floor afterwards:

    price(now) = start_price - (start_price - floor_price) * (now - start_time)
                                                           / (end_time - start_time)

The first solver whose submission the ledger accepts wins. This module only
answers "is my candidate valid right now"; it never decides who wins.
"""

from __future__ import annotations

from dataclasses import dataclass

from intent_solver.errors import PreconditionFailure
from intent_solver.models.intent import Intent
from intent_solver.safe_int import S


@dataclass(frozen=True)
class DutchCurve:
    """Linear descending price curve anchored at (start_time, start_price)."""

    start_time: int
    start_price: int
    end_time: int
    floor_price: int

    def __post_init__(self) -> None:
        if self.end_time < self.start_time:
            raise PreconditionFailure(
                f"Dutch end_time {self.end_time} precedes start_time {self.start_time}"
            )
        if self.floor_price > self.start_price:
            raise PreconditionFailure(
                f"Dutch floor_price {self.floor_price} exceeds start_price {self.start_price}"
            )

    @classmethod
    def from_intent(cls, intent: Intent) -> DutchCurve:
        """Build the curve from an intent's auction block.

        Raises:
            PreconditionFailure: If any curve parameter is missing
        """
        auction = intent.auction
        if (
            auction is None
            or auction.start_price is None
            or auction.floor_price is None
            or auction.end_time is None
        ):
            raise PreconditionFailure(f"Intent {intent.id} has no Dutch curve parameters")

        start_time = auction.start_time if auction.start_time is not None else intent.created_at
        return cls(
            start_time=start_time,
            start_price=auction.start_price,
            end_time=auction.end_time,
            floor_price=auction.floor_price,
        )

    @property
    def duration(self) -> int:
        return self.end_time - self.start_time

    @property
    def price_range(self) -> int:
        return self.start_price - self.floor_price

    def current_price(self, now: int) -> int:
        """Price at `now`, clamped to [floor_price, start_price]."""
        if now >= self.end_time:
            return self.floor_price
        if now <= self.start_time:
            return self.start_price

        decay = S(self.price_range) * (now - self.start_time) // self.duration
        return self.start_price - decay.value

    def time_at_price(self, target_price: int) -> int | None:
        """Earliest instant at which the price is <= target_price.

        Returns None if the curve never gets that low.
        """
        if target_price >= self.start_price:
            return self.start_time
        if target_price < self.floor_price:
            return None
        if self.duration == 0:
            return self.end_time

        # Smallest t with floor(range * t / duration) >= start_price - target
        needed = self.start_price - target_price
        elapsed = (S(needed) * self.duration).ceiling_div(self.price_range).value
        return min(self.start_time + elapsed, self.end_time)

    def scaled_price(self, now: int, amount: int, total_amount: int) -> int:
        """Price for a partial window of `amount` out of `total_amount`."""
        price = self.current_price(now)
        if amount == total_amount:
            return price
        return (S(price) * amount // total_amount).value

    def acceptance_ceiling(self, numerator: int, denominator: int) -> int:
        """Highest price inside the lowest numerator/denominator of the range."""
        return self.floor_price + (S(self.price_range) * numerator // denominator).value

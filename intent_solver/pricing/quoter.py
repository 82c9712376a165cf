"""Turn USD prices into integer output quotes."""

from __future__ import annotations

import decimal
from decimal import ROUND_DOWN, Decimal
from typing import Protocol

import structlog

from intent_solver.constants import GAS_SUBMIT_SOLUTION
from intent_solver.errors import PreconditionFailure
from intent_solver.models.intent import Intent
from intent_solver.models.solution import RouteStep, Solution
from intent_solver.pricing.sources import PriceSource
from intent_solver.safe_int import S

logger = structlog.get_logger()

# 78 digits of precision covers any u64 amount scaled by 10^decimals
QUOTE_CONTEXT = decimal.Context(prec=78, rounding=ROUND_DOWN)


class Quoter(Protocol):
    """Produces a market quote for selling `amount_in` of an intent's input."""

    async def quote(self, intent: Intent, amount_in: int) -> Solution:
        ...


class OracleQuoter:
    """Quotes at the oracle exchange rate, truncating to whole units.

    output = floor(amount_in * usd_in / usd_out * 10^dec_out / 10^dec_in)

    Args:
        source: USD price source
        venue: Route venue label
    """

    def __init__(self, source: PriceSource, venue: str = "oracle") -> None:
        self.source = source
        self.venue = venue

    async def quote(self, intent: Intent, amount_in: int) -> Solution:
        """Quote `amount_in` of the intent's input token.

        Raises:
            PreconditionFailure: If either token has no usable price
        """
        usd_in = await self.source.get_usd_price(intent.input_token)
        usd_out = await self.source.get_usd_price(intent.output_token)
        if not usd_in or not usd_out:
            raise PreconditionFailure(
                f"No price for intent {intent.id}: input={usd_in} output={usd_out}"
            )

        decimals_in = self.source.decimals(intent.input_token)
        decimals_out = self.source.decimals(intent.output_token)
        output = convert_amount(amount_in, usd_in, usd_out, decimals_in, decimals_out)

        logger.debug(
            "oracle_quote",
            intent_id=intent.id,
            amount_in=amount_in,
            output=output,
            usd_in=str(usd_in),
            usd_out=str(usd_out),
        )
        return Solution(
            output_amount=output,
            route=[
                RouteStep(
                    venue=self.venue,
                    token_in=intent.input_token,
                    token_out=intent.output_token,
                    amount_in=amount_in,
                    expected_out=output,
                )
            ],
            gas_estimate=GAS_SUBMIT_SOLUTION,
        )


def convert_amount(
    amount_in: int,
    usd_in: Decimal,
    usd_out: Decimal,
    decimals_in: int,
    decimals_out: int,
) -> int:
    """Convert an input amount to output units at the USD exchange rate, truncating.

    Raises:
        U64Overflow: If the output does not fit a ledger amount
    """
    with decimal.localcontext(QUOTE_CONTEXT):
        value = Decimal(amount_in) * usd_in * (Decimal(10) ** decimals_out)
        value = value / (usd_out * (Decimal(10) ** decimals_in))
        return S(int(value.to_integral_value(rounding=ROUND_DOWN))).to_u64()

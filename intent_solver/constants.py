"""Protocol constants for the intent solver.

Centralizes basis-point denominators, protocol fee defaults and gas
estimates used across evaluation and submission.
"""

# Basis points per whole (100%)
BPS_DENOMINATOR = 10_000

# Protocol fee charged on fills (0.3%), used when the ledger fee lookup fails
PROTOCOL_FEE_BPS = 30

# Default token precision on the ledger (octas)
DEFAULT_TOKEN_DECIMALS = 8

# Gas units for one ledger submission
GAS_SUBMIT_SOLUTION = 50_000

# Sealed-bid output premium per bidding mode, in basis points
SEALED_BID_PREMIUM_BPS = {
    "conservative": 0,
    "moderate": 50,
    "aggressive": 100,
}

# Fraction of the Dutch price range (from the floor) a solver will accept,
# as (numerator, denominator). "aggressive" accepts any clearing price.
DUTCH_ACCEPT_FRACTION = {
    "conservative": (1, 4),
    "moderate": (1, 2),
    "aggressive": (1, 1),
}

AUCTION_MODES = frozenset(SEALED_BID_PREMIUM_BPS)

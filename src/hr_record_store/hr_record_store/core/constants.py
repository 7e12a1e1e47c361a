"""Constants and defaults.

Note: Keep constants here to avoid magic numbers spread across code.
"""

from decimal import Decimal

DEFAULT_LIST_LIMIT = 200
DEFAULT_QUERY_TIMEOUT_SECONDS = 30.0
DEFAULT_WRITE_RETRY_ATTEMPTS = 3
DEFAULT_WRITE_RETRY_BACKOFF_SECONDS = 0.05

DEFAULT_PROBATION_PERIOD_MONTHS = 3
DEFAULT_PROVIDENT_FUND = Decimal("0")
DEFAULT_LEAVE_BALANCE = {
    "casual": Decimal("12"),
    "sick": Decimal("10"),
    "annual": Decimal("15"),
    "unpaid": Decimal("0"),
}

# Upper bound when walking reporting-manager chains.
MAX_REPORTING_CHAIN_DEPTH = 64

MONEY_QUANT = Decimal("0.01")

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Mapping

from .constants import DEFAULT_LEAVE_BALANCE, DEFAULT_PROBATION_PERIOD_MONTHS, DEFAULT_PROVIDENT_FUND


@dataclass(frozen=True)
class EntityDefaults:
    """Values applied to new records when the caller leaves them out.

    Passed into services explicitly so each deployment can set its own policy.
    """

    leave_balance: Mapping[str, Decimal] = field(default_factory=lambda: dict(DEFAULT_LEAVE_BALANCE))
    probation_period_months: int = DEFAULT_PROBATION_PERIOD_MONTHS
    provident_fund: Decimal = DEFAULT_PROVIDENT_FUND

    @classmethod
    def from_settings(cls, settings) -> "EntityDefaults":
        balance = dict(DEFAULT_LEAVE_BALANCE)
        for key, value in (getattr(settings, "LEAVE_BALANCE_DEFAULTS", None) or {}).items():
            balance[str(key)] = Decimal(str(value))
        return cls(
            leave_balance=balance,
            probation_period_months=int(getattr(settings, "PROBATION_PERIOD_MONTHS", DEFAULT_PROBATION_PERIOD_MONTHS)),
            provident_fund=Decimal(str(getattr(settings, "PROVIDENT_FUND_DEFAULT", DEFAULT_PROVIDENT_FUND))),
        )

# utils/ss_utils.py
from decimal import Decimal

from utils.currency import ONE, add, multiply, subtract

# Full retirement age used for every claimant (born 1960 and later).
FULL_RETIREMENT_AGE = 67
# Delayed retirement credits stop accruing at 70.
MAX_CREDIT_AGE = 70

# Per-month adjustments relative to FRA
EARLY_REDUCTION_PER_MONTH = Decimal("0.00555556")   # 5/9 of 1%
DELAYED_CREDIT_PER_MONTH = Decimal("0.00666667")    # 2/3 of 1% (8% per year)


def get_adjustment_factor(claiming_age: int) -> Decimal:
    """
    Multiplier applied to the FRA benefit for a given claiming age.

    Claiming before 67 reduces the benefit by 5/9 of 1% per month early;
    claiming after 67 adds 2/3 of 1% per month, counted only up to age 70.
    """
    if claiming_age < FULL_RETIREMENT_AGE:
        months_early = (FULL_RETIREMENT_AGE - claiming_age) * 12
        return subtract(ONE, multiply(months_early, EARLY_REDUCTION_PER_MONTH))

    if claiming_age > FULL_RETIREMENT_AGE:
        months_delayed = (min(claiming_age, MAX_CREDIT_AGE) - FULL_RETIREMENT_AGE) * 12
        return add(ONE, multiply(months_delayed, DELAYED_CREDIT_PER_MONTH))

    return ONE


def is_collecting(age: int, claiming_age: int) -> bool:
    return age >= claiming_age


__all__ = [
    "FULL_RETIREMENT_AGE",
    "EARLY_REDUCTION_PER_MONTH",
    "DELAYED_CREDIT_PER_MONTH",
    "get_adjustment_factor",
    "is_collecting",
]

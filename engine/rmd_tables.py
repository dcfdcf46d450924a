# engine/rmd_tables.py

"""
RMD calculation supporting:
- 2022+ IRS Uniform Lifetime Table (ages 72-120, flat 2.0 beyond 120)
- SECURE Act 1.0/2.0 start ages (72 -> 73 -> 75)
"""

from decimal import Decimal
from typing import Dict, Optional

from utils.currency import ZERO, divide, to_decimal

# =============================================================================
# FULL 2022+ IRS UNIFORM LIFETIME TABLE (AGES 72–120)
# =============================================================================
UNIFORM_LIFETIME_TABLE: Dict[int, Decimal] = {
    age: Decimal(factor) for age, factor in {
        72: "27.4", 73: "26.5", 74: "25.5", 75: "24.6", 76: "23.7", 77: "22.9",
        78: "22.0", 79: "21.1", 80: "20.2", 81: "19.4", 82: "18.5", 83: "17.7",
        84: "16.8", 85: "16.0", 86: "15.2", 87: "14.4", 88: "13.7", 89: "12.9",
        90: "12.2", 91: "11.5", 92: "10.8", 93: "10.1", 94: "9.5", 95: "8.9",
        96: "8.4", 97: "7.8", 98: "7.3", 99: "6.8", 100: "6.4", 101: "6.0",
        102: "5.6", 103: "5.2", 104: "4.9", 105: "4.6", 106: "4.3", 107: "4.1",
        108: "3.9", 109: "3.7", 110: "3.5", 111: "3.4", 112: "3.3", 113: "3.1",
        114: "3.0", 115: "2.9", 116: "2.8", 117: "2.7", 118: "2.5", 119: "2.3",
        120: "2.0",
    }.items()
}

TABLE_MIN_AGE = 72
TABLE_MAX_AGE = 120

# Used when the owner's birth year is unknown
DEFAULT_RMD_START_AGE = 73


def get_rmd_starting_age(birth_year: int) -> int:
    """SECURE 2.0 start age: before 1951 -> 72, 1951-1959 -> 73, 1960+ -> 75."""
    if birth_year < 1951:
        return 72
    elif birth_year <= 1959:
        return 73
    else:
        return 75


def get_life_expectancy_factor(age: int) -> Decimal:
    """
    Returns the Uniform Lifetime Table divisor for the given age.

    Raises
    ------
    ValueError
        For ages below the table floor (72). Callers gate on the RMD
        starting age first, so this only fires on a broken caller.
    """
    if age < TABLE_MIN_AGE:
        raise ValueError(f"No RMD factor for age {age} (RMDs start at {TABLE_MIN_AGE}+)")
    if age >= TABLE_MAX_AGE:
        return UNIFORM_LIFETIME_TABLE[TABLE_MAX_AGE]
    return UNIFORM_LIFETIME_TABLE[age]


def calculate_rmd(account_balance, current_age: int, birth_year: Optional[int] = None) -> Decimal:
    """
    Required minimum distribution for one account.

    Parameters
    ----------
    account_balance : Decimal
        Balance the distribution is computed on.
    current_age : int
        Owner's age in the distribution year.
    birth_year : int | None
        Selects the SECURE Act starting age. Without it, 73 is assumed.

    Returns
    -------
    Decimal
        balance / life-expectancy factor, or 0 below the starting age.
    """
    if birth_year is not None:
        start_age = get_rmd_starting_age(birth_year)
    else:
        start_age = DEFAULT_RMD_START_AGE

    if current_age < start_age:
        return ZERO

    balance = to_decimal(account_balance)
    if balance == 0:
        return ZERO

    return divide(balance, get_life_expectancy_factor(current_age))


__all__ = [
    "calculate_rmd",
    "get_life_expectancy_factor",
    "get_rmd_starting_age",
    "UNIFORM_LIFETIME_TABLE",
]

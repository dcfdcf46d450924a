# engine/tax_engine.py
"""
Federal income tax calculator for retirement planning (2024 parameters).
It contains the final tax calculation formulas, relying entirely on the
constants provided by utils.tax_utils.

Steps:
1. Taxable portion of Social Security (Publication 915 worksheet)
2. AGI = ordinary + qualified dividends + LTCG + taxable SS
3. Taxable income = AGI - standard deduction (floored at 0)
4. Split taxable income into ordinary vs preferential (QD/LTCG) portions
5. Progressive ordinary brackets
6. Preferential income stacked on top of ordinary income (0% / 15% / 20%)
7. MAGI = AGI + tax-exempt interest
"""
from decimal import Decimal
from typing import List, Tuple
import logging

from models import FilingStatus, TaxInputs, TaxResult
from utils.currency import ZERO, add, maximum, minimum, multiply, subtract
from utils.tax_utils import (
    CAPGAINS_RATES,
    SS_TIER1_RATE,
    SS_TIER2_RATE,
    get_federal_constants,
)

logger = logging.getLogger(__name__)


# --- 1. Internal Helper Functions ---

def compute_taxable_social_security(inputs: TaxInputs) -> Decimal:
    """
    IRS Publication 915 three-tier formula using statutory (non-indexed)
    thresholds. Result is always between 0 and 85% of gross benefits.
    """
    ss = inputs.social_security_gross
    if ss <= 0:
        return ZERO

    base1, base2, additional_cap = get_federal_constants(inputs.filing_status)["ss_thresholds"]
    half_ss = multiply(ss, SS_TIER1_RATE)

    combined_income = add(
        inputs.ordinary_income,
        inputs.qualified_dividends,
        inputs.long_term_capital_gains,
        inputs.tax_exempt_interest,
        half_ss,
    )

    if combined_income <= base1:
        return ZERO

    if combined_income <= base2:
        phase_in = multiply(subtract(combined_income, base1), SS_TIER1_RATE)
        return minimum(half_ss, phase_in)

    excess_over_base2 = multiply(subtract(combined_income, base2), SS_TIER2_RATE)
    taxable = add(excess_over_base2, minimum(additional_cap, half_ss))
    return minimum(multiply(ss, SS_TIER2_RATE), taxable)


def _ordinary_income_tax(
    taxable_ordinary: Decimal,
    brackets: List[Tuple[Decimal, Decimal, Decimal]],
) -> Decimal:
    """Fills the progressive brackets in order."""
    ord_tax = ZERO
    remaining_taxable = taxable_ordinary

    for low, high, rate in brackets:
        if remaining_taxable <= 0:
            break
        if high.is_finite():
            bracket_income = minimum(remaining_taxable, subtract(high, low))
        else:
            bracket_income = remaining_taxable
        ord_tax = add(ord_tax, multiply(bracket_income, rate))
        remaining_taxable = subtract(remaining_taxable, bracket_income)

    return ord_tax


def _preferential_income_tax(
    taxable_ordinary: Decimal,
    preferential: Decimal,
    thresholds: Tuple[Decimal, Decimal],
) -> Decimal:
    """
    Stacks QD/LTCG on top of ordinary income. Whatever room is left under
    the 0% ceiling is taxed at 0%, the next slice up to the 15% ceiling at
    15%, and the remainder at 20%.
    """
    if preferential <= 0:
        return ZERO

    ceiling_0, ceiling_15 = thresholds
    rate_0, rate_15, rate_20 = CAPGAINS_RATES

    room_at_0 = maximum(ZERO, subtract(ceiling_0, taxable_ordinary))
    amount_0 = minimum(preferential, room_at_0)

    remaining = subtract(preferential, amount_0)
    room_at_15 = maximum(ZERO, subtract(subtract(ceiling_15, taxable_ordinary), amount_0))
    amount_15 = minimum(remaining, room_at_15)

    amount_20 = maximum(ZERO, subtract(remaining, amount_15))

    return add(
        multiply(amount_0, rate_0),
        multiply(amount_15, rate_15),
        multiply(amount_20, rate_20),
    )


# --- 2. Main Orchestrator Function ---

def calculate_federal_tax(inputs: TaxInputs) -> TaxResult:
    """
    Calculates federal income tax. Pure: same inputs, same result.

    Returns:
        TaxResult with AGI, MAGI, taxable income, the ordinary / preferential
        split, the tax on each and the total.
    """
    constants = get_federal_constants(inputs.filing_status)

    taxable_ss = compute_taxable_social_security(inputs)

    agi = add(
        inputs.ordinary_income,
        inputs.qualified_dividends,
        inputs.long_term_capital_gains,
        taxable_ss,
    )

    taxable_income = maximum(ZERO, subtract(agi, constants["std_deduction"]))

    preferential_portion = minimum(
        taxable_income,
        add(inputs.qualified_dividends, inputs.long_term_capital_gains),
    )
    ordinary_portion = maximum(ZERO, subtract(taxable_income, preferential_portion))

    ordinary_tax = _ordinary_income_tax(ordinary_portion, constants["ord_list"])
    ltcg_tax = _preferential_income_tax(ordinary_portion, preferential_portion,
                                        constants["cg_thresholds"])

    total_tax = add(ordinary_tax, ltcg_tax)
    magi = add(agi, inputs.tax_exempt_interest)

    logger.debug(
        "Federal tax (%s): AGI=%s taxable=%s ordinary_tax=%s ltcg_tax=%s",
        inputs.filing_status.value, agi, taxable_income, ordinary_tax, ltcg_tax,
    )

    return TaxResult(
        taxable_social_security=taxable_ss,
        agi=agi,
        magi=magi,
        taxable_income=taxable_income,
        ordinary_taxable=ordinary_portion,
        ltcg_taxable=preferential_portion,
        ordinary_tax=ordinary_tax,
        ltcg_tax=ltcg_tax,
        total_tax=total_tax,
    )


def calculate_taxes(
    filing_status: FilingStatus,
    ordinary_income=ZERO,
    qualified_dividends=ZERO,
    long_term_capital_gains=ZERO,
    social_security_income=ZERO,
    tax_exempt_interest=ZERO,
) -> Decimal:
    """Keyword-style shortcut returning only the total federal tax."""
    return calculate_federal_tax(TaxInputs(
        filing_status=filing_status,
        ordinary_income=ordinary_income,
        qualified_dividends=qualified_dividends,
        long_term_capital_gains=long_term_capital_gains,
        social_security_gross=social_security_income,
        tax_exempt_interest=tax_exempt_interest,
    )).total_tax

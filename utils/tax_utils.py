# utils/tax_utils.py
from decimal import Decimal
from typing import Dict, List, Tuple

from models import FilingStatus

BASE_YEAR = 2024  # Tax year all federal constants below are taken from

INF = Decimal("Infinity")


def _d(value: str) -> Decimal:
    return Decimal(value)


# =============================================================================
# 1. Federal Ordinary Income Tax Brackets (2024)
# =============================================================================
ORDINARY_BRACKETS_2024: Dict[FilingStatus, List[Tuple[Decimal, Decimal, Decimal]]] = {
    FilingStatus.SINGLE: [
        (_d("0"), _d("11600"), _d("0.10")), (_d("11600"), _d("47150"), _d("0.12")),
        (_d("47150"), _d("100525"), _d("0.22")), (_d("100525"), _d("191950"), _d("0.24")),
        (_d("191950"), _d("243725"), _d("0.32")), (_d("243725"), _d("609350"), _d("0.35")),
        (_d("609350"), INF, _d("0.37")),
    ],
    FilingStatus.MARRIED_FILING_JOINTLY: [
        (_d("0"), _d("23200"), _d("0.10")), (_d("23200"), _d("94300"), _d("0.12")),
        (_d("94300"), _d("201050"), _d("0.22")), (_d("201050"), _d("383900"), _d("0.24")),
        (_d("383900"), _d("487450"), _d("0.32")), (_d("487450"), _d("731200"), _d("0.35")),
        (_d("731200"), INF, _d("0.37")),
    ],
    FilingStatus.HEAD_OF_HOUSEHOLD: [
        (_d("0"), _d("16550"), _d("0.10")), (_d("16550"), _d("63100"), _d("0.12")),
        (_d("63100"), _d("100500"), _d("0.22")), (_d("100500"), _d("191950"), _d("0.24")),
        (_d("191950"), _d("243700"), _d("0.32")), (_d("243700"), _d("609350"), _d("0.35")),
        (_d("609350"), INF, _d("0.37")),
    ],
}

# =============================================================================
# 2. Federal Preferential Income Thresholds (Capital Gains / QDivs)
#    (0% ceiling, 15% ceiling); above the 15% ceiling the 20% rate applies
# =============================================================================
CAPGAINS_THRESHOLDS_2024: Dict[FilingStatus, Tuple[Decimal, Decimal]] = {
    FilingStatus.SINGLE: (_d("47025"), _d("518900")),
    FilingStatus.MARRIED_FILING_JOINTLY: (_d("94050"), _d("583750")),
    FilingStatus.HEAD_OF_HOUSEHOLD: (_d("63000"), _d("551350")),
}

CAPGAINS_RATES: Tuple[Decimal, Decimal, Decimal] = (_d("0"), _d("0.15"), _d("0.20"))

# =============================================================================
# 3. Standard Deduction (2024)
# =============================================================================
STANDARD_DEDUCTION_2024: Dict[FilingStatus, Decimal] = {
    FilingStatus.SINGLE: _d("14600"),
    FilingStatus.MARRIED_FILING_JOINTLY: _d("29200"),
    FilingStatus.HEAD_OF_HOUSEHOLD: _d("21900"),
}

# =============================================================================
# 4. Social Security Taxation Thresholds (Statutory and NOT indexed)
#    (base1, base2, additional cap on the 50% tier)
# =============================================================================
SS_TAX_THRESHOLDS: Dict[FilingStatus, Tuple[Decimal, Decimal, Decimal]] = {
    FilingStatus.SINGLE: (_d("25000"), _d("34000"), _d("4500")),
    FilingStatus.HEAD_OF_HOUSEHOLD: (_d("25000"), _d("34000"), _d("4500")),
    FilingStatus.MARRIED_FILING_JOINTLY: (_d("32000"), _d("44000"), _d("6000")),
}

SS_TIER1_RATE = _d("0.5")
SS_TIER2_RATE = _d("0.85")


def get_federal_constants(filing_status: FilingStatus) -> Dict[str, object]:
    """
    Returns the federal tax tables for one filing status.
    """
    status = FilingStatus(filing_status)
    return {
        "ord_list": ORDINARY_BRACKETS_2024[status],
        "cg_thresholds": CAPGAINS_THRESHOLDS_2024[status],
        "std_deduction": STANDARD_DEDUCTION_2024[status],
        "ss_thresholds": SS_TAX_THRESHOLDS[status],
    }

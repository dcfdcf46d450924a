# engine/ss_benefits.py
from decimal import Decimal
from typing import Optional

from models import SSAIncome
from utils.currency import ONE, ZERO, add, multiply, power, to_decimal
from utils.ss_utils import get_adjustment_factor, is_collecting


class SSABenefitCalculator:
    """
    Annual Social Security benefit for a given age.

    The benefit at the claiming age (FRA monthly x adjustment factor x 12) is
    computed once and reused; later years compound COLA on top of it.
    """

    def __init__(self, ssa_income: SSAIncome, cola_rate=ZERO):
        self.fra_monthly_benefit = to_decimal(ssa_income.fra_monthly_benefit)
        self.claiming_age = ssa_income.claiming_age
        self.cola_rate = to_decimal(cola_rate)
        self._base_benefit: Optional[Decimal] = None

    @property
    def base_benefit(self) -> Decimal:
        if self._base_benefit is None:
            monthly = multiply(self.fra_monthly_benefit, get_adjustment_factor(self.claiming_age))
            self._base_benefit = multiply(monthly, 12)
        return self._base_benefit

    def get_benefit_at_age(self, age: int) -> Decimal:
        if not is_collecting(age, self.claiming_age):
            return ZERO

        years_since_claiming = age - self.claiming_age
        if years_since_claiming == 0:
            return self.base_benefit

        cola_factor = power(add(ONE, self.cola_rate), years_since_claiming)
        return multiply(self.base_benefit, cola_factor)

# engine/withdrawal_engine.py
#
# Plans and executes one year of retirement withdrawals: guaranteed income,
# the year's need, RMDs, discretionary withdrawals by sequencing strategy,
# and the federal tax on the result.
#
import logging
from decimal import Decimal
from typing import Dict, List, Optional

from engine.accounts import Account
from engine.ss_benefits import SSABenefitCalculator
from engine.tax_engine import calculate_federal_tax
from models import (
    AccountMetadata,
    AccountType,
    ConfigurationError,
    SequencingStrategy,
    SSAIncome,
    TaxInputs,
    UserProfile,
    WithdrawalPlan,
    WithdrawalPolicy,
)
from utils.currency import (
    ONE,
    ZERO,
    add,
    divide,
    maximum,
    minimum,
    multiply,
    power,
    subtract,
    total,
)

logger = logging.getLogger(__name__)

# Flat gross-up applied to a net income target to estimate the pre-tax need.
ESTIMATED_TAX_GROSS_UP = Decimal("1.25")


class WithdrawalCoordinator:
    """
    Owns a run's account records and produces one WithdrawalPlan per year.

    Accounts are kept in the order they were supplied; that order is the
    draw order inside a tier (except taxable accounts under taxable-first,
    which go lowest unrealized gain first).
    """

    def __init__(self,
                 accounts: List[Account],
                 policy: WithdrawalPolicy,
                 user_profile: UserProfile,
                 starting_year: int,
                 starting_age: int,
                 ssa_income: Optional[SSAIncome] = None):
        self.accounts: Dict[str, Account] = {}
        for account in accounts:
            if account.id in self.accounts:
                raise ConfigurationError(f"Duplicate account id: {account.id}")
            self.accounts[account.id] = account

        self.policy = policy
        self.user_profile = user_profile
        self.current_year = starting_year
        self.current_age = starting_age
        self.ssa_calculator = self._make_ssa_calculator(ssa_income)
        self.withdrawal_history: List[WithdrawalPlan] = []

        self._validate_policy()

    def _validate_policy(self) -> None:
        self.policy.validate()

    def _make_ssa_calculator(self, ssa_income: Optional[SSAIncome]) -> Optional[SSABenefitCalculator]:
        if ssa_income is None:
            return None
        cola = ssa_income.cola_rate if ssa_income.cola_rate is not None else self.policy.inflation_rate
        return SSABenefitCalculator(ssa_income, cola)

    # =========================================================================
    # Yearly cycle
    # =========================================================================

    def plan_year(self,
                  year: int,
                  age: int,
                  user_profile: UserProfile,
                  ssa_income: Optional[SSAIncome] = None) -> WithdrawalPlan:
        """
        Plans and executes the withdrawals for one year.

        Mutates account balances. The returned plan is also appended to the
        coordinator's history, whose length drives inflation compounding.
        """
        self.current_year = year
        self.current_age = age
        self.user_profile = user_profile
        if ssa_income is not None:
            self.ssa_calculator = self._make_ssa_calculator(ssa_income)

        # --- 1. Guaranteed income ---
        guaranteed_income = self._calculate_guaranteed_income()

        # --- 2. Withdrawal need ---
        withdrawal_need = self._calculate_withdrawal_need(guaranteed_income)

        # --- 3. Required minimum distributions ---
        rmd_withdrawals = self._calculate_rmds()

        # --- 4. Discretionary withdrawals per strategy ---
        discretionary = self._plan_discretionary_withdrawals(withdrawal_need, rmd_withdrawals)

        # --- 5. Merge and execute ---
        planned = self._merge_withdrawals(rmd_withdrawals, discretionary)
        tax_inputs = self._build_tax_inputs(guaranteed_income, planned)
        executed = self._execute_withdrawals(planned)

        # --- 6. Taxes ---
        withdrawn = total(executed.values())
        total_gross_income = add(guaranteed_income, withdrawn)
        total_taxes = calculate_federal_tax(tax_inputs).total_tax

        shortfall = maximum(ZERO, subtract(withdrawal_need, withdrawn))

        plan = WithdrawalPlan(
            year=year,
            age=age,
            guaranteed_income=guaranteed_income,
            account_withdrawals=executed,
            total_gross_income=total_gross_income,
            total_taxes=total_taxes,
            total_net_income=subtract(total_gross_income, total_taxes),
            account_balances=self.get_account_balances(),
            total_portfolio_value=self.get_portfolio_value(),
            account_metadata=self._account_metadata(),
            dividend_income=ZERO,  # not modeled
            shortfall=shortfall,
        )

        logger.debug(
            "Year %s (age %s): need=%s rmd=%s withdrawn=%s tax=%s shortfall=%s",
            year, age, withdrawal_need, total(rmd_withdrawals.values()),
            withdrawn, total_taxes, shortfall,
        )

        self.withdrawal_history.append(plan)
        return plan

    def apply_growth(self, rate) -> None:
        """Grows every account by `rate` and advances year and age by one."""
        for account in self.accounts.values():
            account.apply_growth(rate)
        self.current_year += 1
        self.current_age += 1

    # =========================================================================
    # Accessors
    # =========================================================================

    def get_portfolio_value(self) -> Decimal:
        return total(account.get_balance() for account in self.accounts.values())

    def get_account_balances(self) -> Dict[str, Decimal]:
        return {acct_id: account.get_balance() for acct_id, account in self.accounts.items()}

    def get_withdrawal_history(self) -> List[WithdrawalPlan]:
        return list(self.withdrawal_history)

    def get_accounts_by_type(self, account_type: AccountType) -> List[Account]:
        return [a for a in self.accounts.values() if a.account_type == account_type]

    # =========================================================================
    # Steps
    # =========================================================================

    def _calculate_guaranteed_income(self) -> Decimal:
        if self.ssa_calculator is None:
            return ZERO
        return self.ssa_calculator.get_benefit_at_age(self.current_age)

    def _inflation_multiplier(self, rate) -> Decimal:
        return power(add(ONE, rate), len(self.withdrawal_history))

    def _calculate_withdrawal_need(self, guaranteed_income: Decimal) -> Decimal:
        policy = self.policy
        need = ZERO

        if policy.target_net_income is not None:
            target = policy.target_net_income
            if policy.inflation_adjust:
                target = multiply(target, self._inflation_multiplier(policy.inflation_rate))
            gross_need = multiply(target, ESTIMATED_TAX_GROSS_UP)
            need = maximum(ZERO, subtract(gross_need, guaranteed_income))
        elif policy.withdrawal_rate is not None:
            target = multiply(self.get_portfolio_value(), policy.withdrawal_rate)
            need = maximum(ZERO, subtract(target, guaranteed_income))

        if policy.min_required_income is not None:
            floor_rate = (policy.min_income_inflation_rate
                          if policy.min_income_inflation_rate is not None
                          else policy.inflation_rate)
            min_income = multiply(policy.min_required_income, self._inflation_multiplier(floor_rate))
            need = maximum(need, subtract(min_income, guaranteed_income))

        return maximum(need, ZERO)

    def _calculate_rmds(self) -> Dict[str, Decimal]:
        rmds = {}
        for acct_id, account in self.accounts.items():
            rmd = account.calculate_rmd(self.current_age, self.user_profile.birth_year)
            if rmd != 0:
                rmds[acct_id] = minimum(rmd, account.get_balance())
        return rmds

    def _get_withdrawal_order(self) -> List[AccountType]:
        """
        Tier order for the configured sequencing strategy.
        Pro-rata has no order; it is handled separately.
        """
        strategy = self.policy.sequencing_strategy

        if strategy == SequencingStrategy.TAXABLE_FIRST:
            return [AccountType.TAXABLE, AccountType.TRADITIONAL, AccountType.ROTH]
        elif strategy == SequencingStrategy.TRADITIONAL_FIRST:
            return [AccountType.TRADITIONAL, AccountType.TAXABLE, AccountType.ROTH]
        elif strategy == SequencingStrategy.ROTH_FIRST:
            return [AccountType.ROTH, AccountType.TAXABLE, AccountType.TRADITIONAL]
        else:
            logger.warning("Unknown sequencing strategy %r; using taxable_first", strategy)
            return [AccountType.TAXABLE, AccountType.TRADITIONAL, AccountType.ROTH]

    def _plan_discretionary_withdrawals(self,
                                        withdrawal_need: Decimal,
                                        rmd_withdrawals: Dict[str, Decimal]) -> Dict[str, Decimal]:
        # RMDs count toward the need.
        remaining = subtract(withdrawal_need, total(rmd_withdrawals.values()))
        if remaining <= 0:
            return {}

        # What is left in each account after its RMD.
        available = {
            acct_id: subtract(account.get_balance(), rmd_withdrawals.get(acct_id, ZERO))
            for acct_id, account in self.accounts.items()
        }

        if self.policy.sequencing_strategy == SequencingStrategy.PRO_RATA:
            return self._withdraw_pro_rata(remaining, available)
        return self._withdraw_from_hierarchy(remaining, available)

    def _withdraw_from_hierarchy(self,
                                 amount: Decimal,
                                 available: Dict[str, Decimal]) -> Dict[str, Decimal]:
        """Drains tiers in order, each account up to what it has available."""
        withdrawals: Dict[str, Decimal] = {}
        remaining = amount
        taxable_first = self.policy.sequencing_strategy == SequencingStrategy.TAXABLE_FIRST

        for acct_type in self._get_withdrawal_order():
            if remaining <= 0:
                break

            targets = self.get_accounts_by_type(acct_type)
            if acct_type == AccountType.TAXABLE and taxable_first:
                # Lowest unrealized gain first; sorted() is stable for ties.
                targets = sorted(targets, key=lambda a: a.gain_percentage())

            for account in targets:
                if remaining <= 0:
                    break
                amt = minimum(remaining, available[account.id])
                if amt > 0:
                    withdrawals[account.id] = amt
                    remaining = subtract(remaining, amt)

        return withdrawals

    def _withdraw_pro_rata(self,
                           amount: Decimal,
                           available: Dict[str, Decimal]) -> Dict[str, Decimal]:
        withdrawals: Dict[str, Decimal] = {}
        total_balance = self.get_portfolio_value()
        if total_balance == 0:
            return withdrawals

        for acct_id, account in self.accounts.items():
            balance = account.get_balance()
            if balance == 0:
                continue
            share = divide(balance, total_balance)
            amt = minimum(multiply(amount, share), available[acct_id])
            if amt > 0:
                withdrawals[acct_id] = amt

        return withdrawals

    def _merge_withdrawals(self,
                           rmd_withdrawals: Dict[str, Decimal],
                           discretionary: Dict[str, Decimal]) -> Dict[str, Decimal]:
        merged = dict(rmd_withdrawals)
        for acct_id, amount in discretionary.items():
            merged[acct_id] = add(merged.get(acct_id, ZERO), amount)
        # Account order, not RMD-first order.
        return {acct_id: merged[acct_id] for acct_id in self.accounts if acct_id in merged}

    def _build_tax_inputs(self,
                          guaranteed_income: Decimal,
                          withdrawals: Dict[str, Decimal]) -> TaxInputs:
        """
        Characterizes planned withdrawals for tax. Must run before execution so
        the taxable estimate sees the pre-withdrawal cost basis.
        """
        ordinary_income = ZERO
        ltcg = ZERO

        for acct_id, amount in withdrawals.items():
            account = self.accounts[acct_id]
            if account.account_type == AccountType.TRADITIONAL:
                ordinary_income = add(ordinary_income, minimum(amount, account.get_balance()))
            elif account.account_type == AccountType.TAXABLE:
                ltcg = add(ltcg, account.estimate_tax_components(amount)["ltcg"])
            # Roth: untaxed

        return TaxInputs(
            filing_status=self.user_profile.filing_status,
            ordinary_income=ordinary_income,
            qualified_dividends=ZERO,
            long_term_capital_gains=ltcg,
            social_security_gross=guaranteed_income,
            tax_exempt_interest=ZERO,
        )

    def _execute_withdrawals(self, withdrawals: Dict[str, Decimal]) -> Dict[str, Decimal]:
        executed = {}
        for acct_id, amount in withdrawals.items():
            result = self.accounts[acct_id].withdraw(amount, self.current_age, self.current_year)
            executed[acct_id] = result.gross_amount
        return executed

    def _account_metadata(self) -> Dict[str, AccountMetadata]:
        return {
            acct_id: AccountMetadata(id=acct_id,
                                     account_type=account.account_type,
                                     nickname=account.nickname)
            for acct_id, account in self.accounts.items()
        }

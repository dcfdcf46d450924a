# models.py
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from types import MappingProxyType
from typing import List, Mapping, Optional

import pandas as pd

from utils.currency import to_decimal


class ConfigurationError(ValueError):
    """Invalid scenario, policy, account or simulation parameters."""


class SimulationCancelled(RuntimeError):
    """A projection or Monte Carlo run was stopped through its cancel event."""


class FilingStatus(str, Enum):
    SINGLE = "single"
    MARRIED_FILING_JOINTLY = "mfj"
    HEAD_OF_HOUSEHOLD = "hoh"


class AccountType(str, Enum):
    TAXABLE = "taxable"
    TRADITIONAL = "traditional"
    ROTH = "roth"


class IncomeType(str, Enum):
    ORDINARY = "ordinary"
    QUALIFIED_DIVIDEND = "qualified_dividend"
    LONG_TERM_CAPITAL_GAIN = "ltcg"
    SOCIAL_SECURITY = "social_security"


class SequencingStrategy(str, Enum):
    TAXABLE_FIRST = "taxable_first"
    TRADITIONAL_FIRST = "traditional_first"
    ROTH_FIRST = "roth_first"
    PRO_RATA = "pro_rata"


# =============================================================================
# Inputs
# =============================================================================

@dataclass(frozen=True)
class UserProfile:
    birth_year: int
    retirement_age: int
    filing_status: FilingStatus = FilingStatus.SINGLE


@dataclass(frozen=True)
class SSAIncome:
    fra_monthly_benefit: Decimal     # monthly benefit at full retirement age (67)
    claiming_age: int = 67           # 62-70
    cola_rate: Optional[Decimal] = None  # None -> policy inflation rate

    def __post_init__(self):
        object.__setattr__(self, "fra_monthly_benefit", to_decimal(self.fra_monthly_benefit))
        if self.cola_rate is not None:
            object.__setattr__(self, "cola_rate", to_decimal(self.cola_rate))


@dataclass(frozen=True)
class WithdrawalPolicy:
    target_net_income: Optional[Decimal] = None
    withdrawal_rate: Optional[Decimal] = None
    min_required_income: Optional[Decimal] = None
    min_income_inflation_rate: Optional[Decimal] = None
    sequencing_strategy: SequencingStrategy = SequencingStrategy.TAXABLE_FIRST
    inflation_adjust: bool = False
    inflation_rate: Decimal = Decimal("0")
    # Accepted but not consulted by the withdrawal logic.
    avoid_irmaa: bool = False

    def __post_init__(self):
        for name in ("target_net_income", "withdrawal_rate",
                     "min_required_income", "min_income_inflation_rate"):
            value = getattr(self, name)
            if value is not None:
                object.__setattr__(self, name, to_decimal(value))
        object.__setattr__(self, "inflation_rate", to_decimal(self.inflation_rate))
        self.validate()

    def validate(self) -> None:
        if (self.target_net_income is None
                and self.withdrawal_rate is None
                and self.min_required_income is None):
            raise ConfigurationError(
                "Policy must specify either target_net_income, withdrawal_rate, "
                "or min_required_income"
            )


@dataclass(frozen=True)
class AccountDefinition:
    id: str
    account_type: AccountType
    balance: Decimal
    cost_basis: Optional[Decimal] = None   # taxable accounts only
    nickname: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, "account_type", AccountType(self.account_type))
        object.__setattr__(self, "balance", to_decimal(self.balance))
        if self.cost_basis is None:
            return
        if self.account_type != AccountType.TAXABLE:
            raise ConfigurationError(
                f"Only taxable accounts carry a cost basis ({self.id})"
            )
        basis = to_decimal(self.cost_basis)
        if basis < 0:
            raise ConfigurationError(f"Cost basis cannot be negative ({self.id})")
        if basis > self.balance:
            raise ConfigurationError(f"Cost basis cannot exceed balance ({self.id})")
        object.__setattr__(self, "cost_basis", basis)


@dataclass(frozen=True)
class Scenario:
    name: str
    user: UserProfile
    accounts: List[AccountDefinition]
    policy: WithdrawalPolicy
    ssa_income: Optional[SSAIncome] = None
    start_year: Optional[int] = None   # None -> current calendar year


# =============================================================================
# Tax
# =============================================================================

@dataclass(frozen=True)
class TaxInputs:
    filing_status: FilingStatus
    ordinary_income: Decimal = Decimal(0)
    qualified_dividends: Decimal = Decimal(0)
    long_term_capital_gains: Decimal = Decimal(0)
    social_security_gross: Decimal = Decimal(0)
    tax_exempt_interest: Decimal = Decimal(0)

    def __post_init__(self):
        object.__setattr__(self, "filing_status", FilingStatus(self.filing_status))
        for name in ("ordinary_income", "qualified_dividends", "long_term_capital_gains",
                     "social_security_gross", "tax_exempt_interest"):
            object.__setattr__(self, name, to_decimal(getattr(self, name)))


@dataclass(frozen=True)
class TaxResult:
    taxable_social_security: Decimal
    agi: Decimal
    magi: Decimal
    taxable_income: Decimal
    ordinary_taxable: Decimal
    ltcg_taxable: Decimal
    ordinary_tax: Decimal
    ltcg_tax: Decimal
    total_tax: Decimal


# =============================================================================
# Withdrawals and results
# =============================================================================

@dataclass(frozen=True)
class WithdrawalResult:
    gross_amount: Decimal
    taxable_amount: Decimal
    income_type: IncomeType
    remaining_balance: Decimal
    cost_basis: Optional[Decimal] = None   # basis removed (taxable accounts)


@dataclass(frozen=True)
class AccountMetadata:
    id: str
    account_type: AccountType
    nickname: Optional[str] = None


@dataclass(frozen=True)
class WithdrawalPlan:
    year: int
    age: int
    guaranteed_income: Decimal
    account_withdrawals: Mapping[str, Decimal]
    total_gross_income: Decimal
    total_taxes: Decimal
    total_net_income: Decimal
    account_balances: Mapping[str, Decimal]
    total_portfolio_value: Decimal
    account_metadata: Mapping[str, AccountMetadata]
    dividend_income: Decimal = Decimal(0)
    shortfall: Decimal = Decimal(0)

    # Per-account maps are copied into read-only views at construction.
    _MAPPINGS = ("account_withdrawals", "account_balances", "account_metadata")

    def __post_init__(self):
        self._freeze_mappings()

    def _freeze_mappings(self) -> None:
        for name in self._MAPPINGS:
            object.__setattr__(self, name, MappingProxyType(dict(getattr(self, name))))

    # mappingproxy does not pickle; plans cross process boundaries in Monte Carlo.
    def __getstate__(self):
        state = dict(self.__dict__)
        for name in self._MAPPINGS:
            state[name] = dict(state[name])
        return state

    def __setstate__(self, state):
        for name, value in state.items():
            object.__setattr__(self, name, value)
        self._freeze_mappings()

    @property
    def total_withdrawals(self) -> Decimal:
        return sum(self.account_withdrawals.values(), Decimal(0))


@dataclass(frozen=True)
class ProjectionResult:
    scenario_name: str
    success: bool
    withdrawal_plans: List[WithdrawalPlan]
    final_portfolio_value: Decimal
    total_taxes_paid: Decimal
    total_withdrawals: Decimal
    failure_year: Optional[int] = None
    failure_age: Optional[int] = None

    def to_frame(self) -> pd.DataFrame:
        """
        Year-by-year rows, one column per account withdrawal and balance.
        Values stay Decimal (object dtype); convert only for display.
        """
        rows = []
        for plan in self.withdrawal_plans:
            row = {
                "year": plan.year,
                "age": plan.age,
                "guaranteed_income": plan.guaranteed_income,
                "total_gross_income": plan.total_gross_income,
                "total_taxes": plan.total_taxes,
                "total_net_income": plan.total_net_income,
                "total_portfolio_value": plan.total_portfolio_value,
                "shortfall": plan.shortfall,
            }
            for acct_id in plan.account_metadata:
                row[f"withdrawal:{acct_id}"] = plan.account_withdrawals.get(acct_id, Decimal(0))
                row[f"balance:{acct_id}"] = plan.account_balances.get(acct_id, Decimal(0))
            rows.append(row)
        return pd.DataFrame(rows).set_index("year") if rows else pd.DataFrame()


@dataclass(frozen=True)
class MonteCarloResult:
    scenario_name: str
    num_runs: int
    success_rate: float
    median_final_value: Decimal
    percentile10_value: Decimal
    percentile90_value: Decimal
    median_run: ProjectionResult
    worst_case_run: ProjectionResult
    best_case_run: ProjectionResult
    final_values: List[Decimal] = field(default_factory=list)   # sorted ascending

    def final_values_frame(self) -> pd.DataFrame:
        return pd.DataFrame({"final_portfolio_value": self.final_values})

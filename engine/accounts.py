# engine/accounts.py
"""
Account records and their per-type behavior.

An Account is one record tagged by AccountType; the tag selects the
withdrawal and RMD handlers from the dispatch tables at the bottom of this
module. Taxable accounts carry a cost basis, traditional accounts may carry
the owner's birth year, Roth accounts carry nothing extra.
"""
from dataclasses import dataclass
from decimal import Decimal
from typing import Callable, Dict, Optional

from engine.rmd_tables import calculate_rmd
from models import AccountDefinition, AccountType, ConfigurationError, IncomeType, WithdrawalResult
from utils.currency import (
    MONEY_CONTEXT,
    ZERO,
    apply_growth,
    divide,
    maximum,
    minimum,
    multiply,
    subtract,
    to_decimal,
)

# Basis removed on a partial withdrawal is held to this many decimal places so
# that gain + basis removed always adds back to the gross amount exactly.
BASIS_PLACES = Decimal("1E-10")


@dataclass
class Account:
    id: str
    account_type: AccountType
    balance: Decimal
    nickname: Optional[str] = None
    cost_basis: Optional[Decimal] = None   # taxable only
    birth_year: Optional[int] = None       # traditional only (owner)

    def __post_init__(self):
        self.account_type = AccountType(self.account_type)
        self.balance = to_decimal(self.balance)
        if self.account_type == AccountType.TAXABLE:
            basis = to_decimal(self.cost_basis)
            if basis < 0:
                raise ConfigurationError("Cost basis cannot be negative")
            if basis > self.balance:
                raise ConfigurationError("Cost basis cannot exceed balance")
            self.cost_basis = basis
        elif self.cost_basis is not None:
            raise ConfigurationError(
                f"Only taxable accounts carry a cost basis ({self.account_type.value})"
            )

    # ----------------------------------------------------------------------
    # Constructors
    # ----------------------------------------------------------------------
    @classmethod
    def taxable(cls, id: str, balance, cost_basis, nickname: Optional[str] = None) -> "Account":
        return cls(id, AccountType.TAXABLE, balance, nickname=nickname, cost_basis=cost_basis)

    @classmethod
    def traditional(cls, id: str, balance, birth_year: Optional[int] = None,
                    nickname: Optional[str] = None) -> "Account":
        return cls(id, AccountType.TRADITIONAL, balance, nickname=nickname, birth_year=birth_year)

    @classmethod
    def roth(cls, id: str, balance, nickname: Optional[str] = None) -> "Account":
        return cls(id, AccountType.ROTH, balance, nickname=nickname)

    # ----------------------------------------------------------------------
    # Capability interface
    # ----------------------------------------------------------------------
    def withdraw(self, amount, age: int = 0, year: int = 0) -> WithdrawalResult:
        """Takes up to `amount` out of the account; never overdraws."""
        return _WITHDRAW_HANDLERS[self.account_type](self, to_decimal(amount), age, year)

    def calculate_rmd(self, age: int, birth_year: Optional[int] = None) -> Decimal:
        return _RMD_HANDLERS[self.account_type](self, age, birth_year)

    def apply_growth(self, rate) -> None:
        # Balance only; cost basis stays put so unrealized gain tracks the market.
        self.balance = apply_growth(self.balance, rate)

    def get_balance(self) -> Decimal:
        return self.balance

    def is_depleted(self) -> bool:
        return self.balance <= 0

    def is_rmd_required(self, age: int, birth_year: Optional[int] = None) -> bool:
        return self.calculate_rmd(age, birth_year) != 0

    # ----------------------------------------------------------------------
    # Taxable-only helpers
    # ----------------------------------------------------------------------
    def unrealized_gains(self) -> Decimal:
        if self.account_type != AccountType.TAXABLE:
            return ZERO
        return subtract(self.balance, self.cost_basis)

    def gain_percentage(self) -> Decimal:
        """Unrealized gain relative to cost basis; 0 when basis is 0."""
        if self.account_type != AccountType.TAXABLE:
            return ZERO
        return divide(self.unrealized_gains(), self.cost_basis)

    def estimate_tax_components(self, amount) -> Dict[str, Decimal]:
        """
        LTCG a withdrawal of `amount` would realize, without touching state.
        Non-taxable accounts realize no capital gain.
        """
        if self.account_type != AccountType.TAXABLE:
            return {"ltcg": ZERO, "basis": ZERO}
        actual = minimum(maximum(to_decimal(amount), ZERO), self.balance)
        basis_removed, gain = _split_taxable(self, actual)
        return {"ltcg": gain, "basis": basis_removed}

    def __str__(self) -> str:
        text = f"{self.account_type.value}({self.id}): ${self.balance:,.2f}"
        if self.account_type == AccountType.TAXABLE:
            text += f" [Basis: ${self.cost_basis:,.2f}, Unrealized: ${self.unrealized_gains():,.2f}]"
        elif self.account_type == AccountType.TRADITIONAL and self.birth_year:
            text += f" [Birth: {self.birth_year}]"
        elif self.account_type == AccountType.ROTH:
            text += " [Tax-Free]"
        return text


def account_from_definition(definition: AccountDefinition,
                            owner_birth_year: Optional[int] = None) -> Account:
    """
    Fresh Account record for a run. Taxable accounts with no basis on file
    use the balance as basis; traditional accounts take the owner's birth year.
    """
    if definition.account_type == AccountType.TAXABLE:
        basis = definition.cost_basis if definition.cost_basis is not None else definition.balance
        return Account.taxable(definition.id, definition.balance, basis, definition.nickname)
    if definition.account_type == AccountType.TRADITIONAL:
        return Account.traditional(definition.id, definition.balance, owner_birth_year,
                                   definition.nickname)
    if definition.account_type == AccountType.ROTH:
        return Account.roth(definition.id, definition.balance, definition.nickname)
    raise ConfigurationError(f"Unknown account type: {definition.account_type}")


# =============================================================================
# Per-type handlers
# =============================================================================

def _split_taxable(account: Account, actual: Decimal):
    """
    (basis removed, capital gain) for a capped withdrawal of `actual`.

    Basis removed never exceeds the amount withdrawn, so an account worth
    less than its basis realizes no gain and no loss.
    """
    if actual == 0 or account.balance == 0:
        return ZERO, ZERO
    if actual == account.balance:
        basis_removed = minimum(account.cost_basis, actual)
    else:
        basis_ratio = divide(account.cost_basis, account.balance)
        basis_removed = minimum(account.cost_basis, actual,
                                multiply(actual, basis_ratio).quantize(
                                    BASIS_PLACES, context=MONEY_CONTEXT))
    gain = maximum(ZERO, subtract(actual, basis_removed))
    return basis_removed, gain


def _withdraw_taxable(account: Account, amount: Decimal, age: int, year: int) -> WithdrawalResult:
    actual = minimum(maximum(amount, ZERO), account.balance)

    if actual == 0:
        return WithdrawalResult(
            gross_amount=ZERO,
            taxable_amount=ZERO,
            income_type=IncomeType.LONG_TERM_CAPITAL_GAIN,
            remaining_balance=account.balance,
            cost_basis=ZERO,
        )

    basis_removed, gain = _split_taxable(account, actual)

    account.balance = subtract(account.balance, actual)
    account.cost_basis = subtract(account.cost_basis, basis_removed)
    if account.balance == 0:
        # Unrecovered basis goes with the last dollar.
        account.cost_basis = ZERO

    return WithdrawalResult(
        gross_amount=actual,
        taxable_amount=gain,
        income_type=IncomeType.LONG_TERM_CAPITAL_GAIN,
        remaining_balance=account.balance,
        cost_basis=basis_removed,
    )


def _withdraw_traditional(account: Account, amount: Decimal, age: int, year: int) -> WithdrawalResult:
    # No early-withdrawal penalty is modeled.
    actual = minimum(maximum(amount, ZERO), account.balance)
    account.balance = subtract(account.balance, actual)
    return WithdrawalResult(
        gross_amount=actual,
        taxable_amount=actual,
        income_type=IncomeType.ORDINARY,
        remaining_balance=account.balance,
    )


def _withdraw_roth(account: Account, amount: Decimal, age: int, year: int) -> WithdrawalResult:
    actual = minimum(maximum(amount, ZERO), account.balance)
    account.balance = subtract(account.balance, actual)
    return WithdrawalResult(
        gross_amount=actual,
        taxable_amount=ZERO,
        income_type=IncomeType.ORDINARY,  # never taxed
        remaining_balance=account.balance,
    )


def _rmd_none(account: Account, age: int, birth_year: Optional[int]) -> Decimal:
    return ZERO


def _rmd_traditional(account: Account, age: int, birth_year: Optional[int]) -> Decimal:
    year = birth_year if birth_year is not None else account.birth_year
    if account.balance == 0:
        return ZERO
    return calculate_rmd(account.balance, age, year)


_WITHDRAW_HANDLERS: Dict[AccountType, Callable[..., WithdrawalResult]] = {
    AccountType.TAXABLE: _withdraw_taxable,
    AccountType.TRADITIONAL: _withdraw_traditional,
    AccountType.ROTH: _withdraw_roth,
}

# Roth IRA: no lifetime RMD. Taxable: never.
_RMD_HANDLERS: Dict[AccountType, Callable[..., Decimal]] = {
    AccountType.TAXABLE: _rmd_none,
    AccountType.TRADITIONAL: _rmd_traditional,
    AccountType.ROTH: _rmd_none,
}

import logging
from dataclasses import fields
from typing import Any, Dict, List, Optional

from config.market_assumptions import (
    inflation_rate as DEFAULT_INFLATION_RATE,
    retirement_age as DEFAULT_RETIREMENT_AGE,
    ss_claiming_age as DEFAULT_CLAIMING_AGE,
    withdrawal_rate as DEFAULT_WITHDRAWAL_RATE,
)
from models import (
    AccountDefinition,
    AccountType,
    ConfigurationError,
    FilingStatus,
    Scenario,
    SequencingStrategy,
    SSAIncome,
    UserProfile,
    WithdrawalPolicy,
)
from utils.currency import clean_currency, clean_percent

logger = logging.getLogger(__name__)

FILING_STATUS_ALIASES = {
    "single": FilingStatus.SINGLE,
    "married": FilingStatus.MARRIED_FILING_JOINTLY,
    "married_filing_jointly": FilingStatus.MARRIED_FILING_JOINTLY,
    "mfj": FilingStatus.MARRIED_FILING_JOINTLY,
    # Separate returns are not modeled; treated as joint.
    "married_filing_separately": FilingStatus.MARRIED_FILING_JOINTLY,
    "mfs": FilingStatus.MARRIED_FILING_JOINTLY,
    "head_of_household": FilingStatus.HEAD_OF_HOUSEHOLD,
    "hoh": FilingStatus.HEAD_OF_HOUSEHOLD,
}

STRATEGY_ALIASES = {
    "taxable_first": SequencingStrategy.TAXABLE_FIRST,
    "taxable_first_min_taxes": SequencingStrategy.TAXABLE_FIRST,
    "taxable_first_proportional": SequencingStrategy.TAXABLE_FIRST,
    "traditional_first": SequencingStrategy.TRADITIONAL_FIRST,
    "roth_first": SequencingStrategy.ROTH_FIRST,
    "pro_rata": SequencingStrategy.PRO_RATA,
    "proportional": SequencingStrategy.PRO_RATA,
}

ACCOUNT_TYPE_ALIASES = {
    "taxable": AccountType.TAXABLE,
    "brokerage": AccountType.TAXABLE,
    "traditional": AccountType.TRADITIONAL,
    "traditional_ira": AccountType.TRADITIONAL,
    "401k": AccountType.TRADITIONAL,
    "roth": AccountType.ROTH,
    "roth_ira": AccountType.ROTH,
}


def _key(value: Any) -> str:
    return str(value).strip().lower().replace(" ", "_").replace("-", "_")


def parse_filing_status(value: Any) -> FilingStatus:
    if isinstance(value, FilingStatus):
        return value
    try:
        return FILING_STATUS_ALIASES[_key(value)]
    except KeyError:
        raise ConfigurationError(f"Unknown filing status: {value!r}")


def parse_strategy(value: Any) -> SequencingStrategy:
    if value is None or value == "":
        return SequencingStrategy.TAXABLE_FIRST
    if isinstance(value, SequencingStrategy):
        return value
    try:
        return STRATEGY_ALIASES[_key(value)]
    except KeyError:
        raise ConfigurationError(f"Unknown sequencing strategy: {value!r}")


def _optional_percent(value: Any):
    if value is None or value == "":
        return None
    return clean_percent(value)


def _optional_currency(value: Any):
    if value is None or value == "":
        return None
    return clean_currency(value)


def build_accounts(rows: List[Dict]) -> List[AccountDefinition]:
    """
    Converts account rows ({"id", "type", "balance", "cost_basis", "nickname"})
    into AccountDefinitions, in row order. Rows of a type this simulator
    does not model (real estate, mortgages, ...) are skipped with a warning.
    """
    accounts = []
    for index, row in enumerate(rows):
        acct_type = ACCOUNT_TYPE_ALIASES.get(_key(row.get("type", "")))
        acct_id = row.get("id") or row.get("name") or f"account-{index + 1}"
        if acct_type is None:
            logger.warning("Skipping account %r: unsupported type %r", acct_id, row.get("type"))
            continue

        cost_basis = None
        if acct_type == AccountType.TAXABLE:
            cost_basis = _optional_currency(row.get("cost_basis", row.get("basis")))

        accounts.append(AccountDefinition(
            id=str(acct_id),
            account_type=acct_type,
            balance=clean_currency(row.get("balance", 0)),
            cost_basis=cost_basis,
            nickname=row.get("nickname"),
        ))
    return accounts


def build_scenario(
    user: Dict,
    accounts: List[Dict],
    ssa_income: Optional[Dict] = None,
    **options: Any,          # name, policy fields, start_year
) -> Scenario:
    """
    Builds a Scenario from plain dict input (form rows, JSON, ...).

    Policy fields are taken from **options by their WithdrawalPolicy names;
    unknown keys are ignored. With no need-driver given, the default 4%
    withdrawal rate applies.
    """

    # 1. User profile
    profile = UserProfile(
        birth_year=int(user["birth_year"]),
        retirement_age=int(user.get("retirement_age") or DEFAULT_RETIREMENT_AGE),
        filing_status=parse_filing_status(user.get("filing_status", "single")),
    )

    # 2. Accounts
    account_defs = build_accounts(accounts)

    # 3. Social Security
    ssa = None
    if ssa_income and ssa_income.get("fra_monthly_benefit") not in (None, "", 0):
        ssa = SSAIncome(
            fra_monthly_benefit=clean_currency(ssa_income["fra_monthly_benefit"]),
            claiming_age=int(ssa_income.get("claiming_age") or DEFAULT_CLAIMING_AGE),
            cola_rate=_optional_percent(ssa_income.get("cola_rate")),
        )

    # 4. Policy: keep only keys WithdrawalPolicy knows about
    policy_field_names = {f.name for f in fields(WithdrawalPolicy)}
    policy_opts = {k: v for k, v in options.items() if k in policy_field_names}

    for name in ("withdrawal_rate", "min_income_inflation_rate", "inflation_rate"):
        if name in policy_opts:
            policy_opts[name] = _optional_percent(policy_opts[name])
    for name in ("target_net_income", "min_required_income"):
        if name in policy_opts:
            policy_opts[name] = _optional_currency(policy_opts[name])
    if policy_opts.get("inflation_rate") is None:
        policy_opts.pop("inflation_rate", None)
        if policy_opts.get("inflation_adjust"):
            policy_opts["inflation_rate"] = DEFAULT_INFLATION_RATE

    policy_opts["sequencing_strategy"] = parse_strategy(policy_opts.get("sequencing_strategy"))

    if all(policy_opts.get(k) is None
           for k in ("target_net_income", "withdrawal_rate", "min_required_income")):
        policy_opts["withdrawal_rate"] = DEFAULT_WITHDRAWAL_RATE

    policy = WithdrawalPolicy(**policy_opts)

    # 5. Scenario
    return Scenario(
        name=options.get("name") or "Scenario",
        user=profile,
        accounts=account_defs,
        policy=policy,
        ssa_income=ssa,
        start_year=options.get("start_year"),
    )

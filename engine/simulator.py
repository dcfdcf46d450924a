# engine/simulator.py
import logging
from datetime import date
from decimal import Decimal
from typing import List, Optional, Sequence

from config.market_assumptions import max_years as DEFAULT_MAX_YEARS
from engine.accounts import Account, account_from_definition
from engine.withdrawal_engine import WithdrawalCoordinator
from models import (
    ConfigurationError,
    ProjectionResult,
    Scenario,
    SimulationCancelled,
    WithdrawalPlan,
)
from utils.currency import to_decimal, total

logger = logging.getLogger(__name__)

DEFAULT_REAL_RETURN = Decimal("0.05")


class ProjectionEngine:
    """
    Runs one deterministic year-by-year projection of a Scenario.

    Every run builds fresh Account records from the scenario's definitions,
    so a single engine can be run many times (Monte Carlo does exactly that).
    """

    def __init__(self, scenario: Scenario):
        self._validate_scenario(scenario)
        self.scenario = scenario

    @staticmethod
    def _validate_scenario(scenario: Scenario) -> None:
        if scenario is None:
            raise ConfigurationError("Scenario is required")
        if not scenario.name:
            raise ConfigurationError("Scenario must have a name")
        if scenario.user is None:
            raise ConfigurationError("Scenario must have a user profile")
        if not scenario.accounts:
            raise ConfigurationError("Scenario must have at least one account")
        if scenario.policy is None:
            raise ConfigurationError("Scenario must have a withdrawal policy")

    # =========================================================================
    # Public entry points
    # =========================================================================

    def run_projection(self, max_years: int = DEFAULT_MAX_YEARS,
                       real_return=DEFAULT_REAL_RETURN,
                       cancel_event=None) -> ProjectionResult:
        """Projection with the same return applied every year."""
        rate = to_decimal(real_return)
        return self.run_projection_with_returns(max_years, [rate] * max_years,
                                                cancel_event=cancel_event)

    def run_projection_with_returns(self, max_years: int,
                                    returns: Sequence,
                                    cancel_event=None,
                                    scenario_name: Optional[str] = None) -> ProjectionResult:
        """
        Projection with one return per year.

        Parameters
        ----------
        max_years : int
            Number of years to simulate.
        returns : sequence of Decimal
            Annual returns; must hold at least `max_years` values.
        cancel_event : object with is_set(), optional
            Checked before each year; raises SimulationCancelled when set.
        scenario_name : str, optional
            Name recorded on the result (defaults to the scenario's name).
        """
        if max_years <= 0:
            raise ConfigurationError("max_years must be positive")
        if len(returns) < max_years:
            raise ConfigurationError(
                f"Need {max_years} annual returns, got {len(returns)}"
            )
        if len(returns) > max_years:
            logger.warning("Ignoring %d surplus annual returns", len(returns) - max_years)

        scenario = self.scenario
        start_year = scenario.start_year if scenario.start_year is not None else date.today().year
        start_age = scenario.user.retirement_age

        coordinator = WithdrawalCoordinator(
            accounts=self._build_accounts(),
            policy=scenario.policy,
            user_profile=scenario.user,
            starting_year=start_year,
            starting_age=start_age,
            ssa_income=scenario.ssa_income,
        )

        plans: List[WithdrawalPlan] = []
        failure_year = None
        failure_age = None

        for year_index in range(max_years):
            if cancel_event is not None and cancel_event.is_set():
                raise SimulationCancelled(f"Projection '{scenario.name}' cancelled")

            year = start_year + year_index
            age = start_age + year_index

            # -------------------------------------------------
            # Depleted before the year starts: stop unplanned
            # -------------------------------------------------
            if coordinator.get_portfolio_value() <= 0:
                failure_year, failure_age = year, age
                break

            plan = coordinator.plan_year(year, age, scenario.user)
            plans.append(plan)

            # -------------------------------------------------
            # Ran dry this year with part of the need unmet
            # -------------------------------------------------
            if plan.total_portfolio_value <= 0 and plan.shortfall > 0:
                failure_year, failure_age = year, age
                break

            coordinator.apply_growth(to_decimal(returns[year_index]))

        success = failure_year is None
        result = ProjectionResult(
            scenario_name=scenario_name or scenario.name,
            success=success,
            withdrawal_plans=plans,
            final_portfolio_value=coordinator.get_portfolio_value(),
            total_taxes_paid=total(p.total_taxes for p in plans),
            total_withdrawals=total(p.total_withdrawals for p in plans),
            failure_year=failure_year,
            failure_age=failure_age,
        )

        if success:
            logger.info("Projection '%s' succeeded over %d years (final value %s)",
                        result.scenario_name, max_years, result.final_portfolio_value)
        else:
            logger.info("Projection '%s' depleted in %s (age %s)",
                        result.scenario_name, failure_year, failure_age)
        return result

    # =========================================================================
    # Helpers
    # =========================================================================

    def _build_accounts(self) -> List[Account]:
        birth_year = self.scenario.user.birth_year
        return [account_from_definition(d, birth_year) for d in self.scenario.accounts]


def run_projection(scenario: Scenario, max_years: int = DEFAULT_MAX_YEARS,
                   real_return=DEFAULT_REAL_RETURN) -> ProjectionResult:
    return ProjectionEngine(scenario).run_projection(max_years, real_return)


__all__ = ["ProjectionEngine", "run_projection"]

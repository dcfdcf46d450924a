import logging
import threading
import unittest
from datetime import date
from decimal import Decimal

from engine.simulator import ProjectionEngine
from models import (
    AccountDefinition,
    AccountType,
    ConfigurationError,
    FilingStatus,
    Scenario,
    SimulationCancelled,
    UserProfile,
    WithdrawalPolicy,
)

logging.disable(logging.CRITICAL)


def traditional_scenario(balance=500000, policy=None, start_year=2025, **kwargs):
    return Scenario(
        name="Traditional only",
        user=UserProfile(birth_year=1960, retirement_age=65, filing_status=FilingStatus.SINGLE),
        accounts=[AccountDefinition("ira", AccountType.TRADITIONAL, Decimal(balance))],
        policy=policy or WithdrawalPolicy(withdrawal_rate=Decimal("0.04")),
        start_year=start_year,
        **kwargs,
    )


class TestProjectionEndToEnd(unittest.TestCase):
    def test_four_percent_traditional(self):
        result = ProjectionEngine(traditional_scenario()).run_projection(10, Decimal("0.05"))

        self.assertTrue(result.success)
        self.assertIsNone(result.failure_year)
        self.assertEqual(len(result.withdrawal_plans), 10)

        first, second = result.withdrawal_plans[:2]
        self.assertEqual(first.year, 2025)
        self.assertEqual(first.age, 65)
        self.assertEqual(first.account_withdrawals["ira"], Decimal(20000))
        self.assertEqual(first.total_taxes, Decimal(540))
        # (500,000 - 20,000) x 1.05 = 504,000, and 4% of that the next year
        self.assertEqual(second.account_withdrawals["ira"], Decimal("20160"))
        self.assertEqual(second.total_portfolio_value, Decimal(504000) - Decimal(20160))

    def test_totals_are_sums_over_plans(self):
        result = ProjectionEngine(traditional_scenario()).run_projection(5, Decimal("0.03"))
        self.assertEqual(result.total_taxes_paid,
                         sum((p.total_taxes for p in result.withdrawal_plans), Decimal(0)))
        self.assertEqual(result.total_withdrawals,
                         sum((p.total_withdrawals for p in result.withdrawal_plans), Decimal(0)))

    def test_taxable_year_one(self):
        scenario = Scenario(
            name="Taxable",
            user=UserProfile(birth_year=1960, retirement_age=65),
            accounts=[AccountDefinition("brokerage", AccountType.TAXABLE, Decimal(100000),
                                        cost_basis=Decimal(60000))],
            policy=WithdrawalPolicy(min_required_income=Decimal(20000)),
            start_year=2025,
        )
        plan = ProjectionEngine(scenario).run_projection(1, 0).withdrawal_plans[0]
        self.assertEqual(plan.account_withdrawals["brokerage"], Decimal(20000))
        self.assertEqual(plan.account_balances["brokerage"], Decimal(80000))


class TestDepletion(unittest.TestCase):
    def test_fails_in_first_year(self):
        scenario = Scenario(
            name="Underfunded",
            user=UserProfile(birth_year=1960, retirement_age=65),
            accounts=[AccountDefinition("roth", AccountType.ROTH, Decimal(100))],
            policy=WithdrawalPolicy(min_required_income=Decimal(1000000)),
            start_year=2030,
        )
        result = ProjectionEngine(scenario).run_projection(40, Decimal("0.05"))
        self.assertFalse(result.success)
        self.assertEqual(result.failure_year, 2030)
        self.assertEqual(result.failure_age, 65)
        self.assertEqual(result.final_portfolio_value, Decimal(0))

    def test_empty_portfolio_not_planned(self):
        result = ProjectionEngine(traditional_scenario(balance=0)).run_projection(5, 0)
        self.assertFalse(result.success)
        self.assertEqual(result.failure_year, 2025)
        self.assertEqual(result.withdrawal_plans, [])
        self.assertEqual(result.total_taxes_paid, Decimal(0))

    def test_later_year_depletion(self):
        policy = WithdrawalPolicy(min_required_income=Decimal(30000))
        result = ProjectionEngine(traditional_scenario(balance=100000, policy=policy)).run_projection(10, 0)
        self.assertFalse(result.success)
        # 30k, 30k, 30k, then 10k against a 30k need
        self.assertEqual(result.failure_year, 2028)
        self.assertEqual(len(result.withdrawal_plans), 4)


class TestProjectionInputs(unittest.TestCase):
    def test_returns_must_cover_horizon(self):
        engine = ProjectionEngine(traditional_scenario())
        with self.assertRaises(ConfigurationError):
            engine.run_projection_with_returns(5, [Decimal("0.05")] * 4)

    def test_per_year_returns(self):
        engine = ProjectionEngine(traditional_scenario(policy=WithdrawalPolicy(withdrawal_rate=Decimal(0))))
        result = engine.run_projection_with_returns(2, [Decimal("0.10"), Decimal("-0.10")])
        self.assertEqual(result.final_portfolio_value, Decimal(495000))

    def test_scenario_validation(self):
        policy = WithdrawalPolicy(withdrawal_rate=Decimal("0.04"))
        ira = AccountDefinition("ira", AccountType.TRADITIONAL, Decimal(1))
        with self.assertRaises(ConfigurationError):
            ProjectionEngine(Scenario(name="x", user=UserProfile(1960, 65), accounts=[], policy=policy))
        with self.assertRaises(ConfigurationError):
            ProjectionEngine(Scenario(name="", user=UserProfile(1960, 65), accounts=[ira], policy=policy))
        with self.assertRaises(ConfigurationError):
            ProjectionEngine(Scenario(name="x", user=None, accounts=[ira], policy=policy))

    def test_bad_cost_basis_rejected_before_any_run(self):
        with self.assertRaises(ConfigurationError):
            AccountDefinition("brokerage", AccountType.TAXABLE, Decimal(1000), cost_basis=Decimal(-1))
        with self.assertRaises(ConfigurationError):
            AccountDefinition("brokerage", AccountType.TAXABLE, Decimal(1000), cost_basis=Decimal(1001))
        with self.assertRaises(ConfigurationError):
            AccountDefinition("ira", AccountType.TRADITIONAL, Decimal(1000), cost_basis=Decimal(500))
        ok = AccountDefinition("brokerage", AccountType.TAXABLE, Decimal(1000), cost_basis="1000")
        self.assertEqual(ok.cost_basis, Decimal(1000))

    def test_start_year_defaults_to_current_year(self):
        result = ProjectionEngine(traditional_scenario(start_year=None)).run_projection(1, 0)
        self.assertEqual(result.withdrawal_plans[0].year, date.today().year)

    def test_engine_is_rerunnable(self):
        engine = ProjectionEngine(traditional_scenario())
        a = engine.run_projection(3, Decimal("0.05"))
        b = engine.run_projection(3, Decimal("0.05"))
        self.assertEqual(a.final_portfolio_value, b.final_portfolio_value)

    def test_cancel_event(self):
        event = threading.Event()
        event.set()
        with self.assertRaises(SimulationCancelled):
            ProjectionEngine(traditional_scenario()).run_projection(5, 0, cancel_event=event)


class TestResultFrame(unittest.TestCase):
    def test_to_frame(self):
        result = ProjectionEngine(traditional_scenario()).run_projection(3, Decimal("0.05"))
        frame = result.to_frame()
        self.assertEqual(list(frame.index), [2025, 2026, 2027])
        self.assertIn("withdrawal:ira", frame.columns)
        self.assertIn("balance:ira", frame.columns)
        self.assertEqual(frame.loc[2025, "withdrawal:ira"], Decimal(20000))


if __name__ == "__main__":
    unittest.main()

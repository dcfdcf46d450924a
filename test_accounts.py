import unittest
from decimal import Decimal

from engine.accounts import Account, account_from_definition
from engine.rmd_tables import calculate_rmd
from models import AccountDefinition, AccountType, ConfigurationError, IncomeType


class TestTaxableAccount(unittest.TestCase):
    def test_partial_withdrawal_splits_gain_and_basis(self):
        acct = Account.taxable("brokerage", 100000, 60000)
        result = acct.withdraw(20000)

        self.assertEqual(result.gross_amount, Decimal(20000))
        self.assertEqual(result.taxable_amount, Decimal(8000))
        self.assertEqual(result.cost_basis, Decimal(12000))
        self.assertEqual(result.income_type, IncomeType.LONG_TERM_CAPITAL_GAIN)
        self.assertEqual(acct.balance, Decimal(80000))
        self.assertEqual(acct.cost_basis, Decimal(48000))
        self.assertEqual(result.remaining_balance, Decimal(80000))

    def test_gain_plus_basis_equals_amount_withdrawn(self):
        cases = [
            ("12345.67", "9876.54", "3333.33"),
            ("100000", "60000", "250000"),
            ("5000", "0", "1234.56"),
            ("777.77", "777.77", "100"),
            ("1000", "333.33", "1000"),
        ]
        for balance, basis, amount in cases:
            acct = Account.taxable("t", Decimal(balance), Decimal(basis))
            expected = min(Decimal(amount), Decimal(balance))
            result = acct.withdraw(Decimal(amount))
            self.assertEqual(result.taxable_amount + result.cost_basis, expected,
                             msg=f"{balance}/{basis}/{amount}")
            self.assertGreaterEqual(acct.cost_basis, 0)

        # Market loss leaves 50,000 against a 60,000 basis.
        for amount in ("10000", "50000", "80000"):
            acct = Account.taxable("t", Decimal(100000), Decimal(60000))
            acct.apply_growth(Decimal("-0.5"))
            self.assertEqual(acct.cost_basis, Decimal(60000))
            expected = min(Decimal(amount), Decimal(50000))
            result = acct.withdraw(Decimal(amount))
            self.assertEqual(result.taxable_amount + result.cost_basis, expected, msg=amount)
            self.assertEqual(result.taxable_amount, Decimal(0))
            self.assertGreaterEqual(acct.cost_basis, 0)

    def test_underwater_full_drain_clears_basis(self):
        acct = Account.taxable("t", Decimal(100000), Decimal(60000))
        acct.apply_growth(Decimal("-0.5"))
        self.assertEqual(acct.estimate_tax_components(Decimal(50000))["basis"], Decimal(50000))
        acct.withdraw(Decimal(50000))
        self.assertTrue(acct.is_depleted())
        self.assertEqual(acct.cost_basis, Decimal(0))

    def test_withdrawal_capped_at_balance(self):
        acct = Account.taxable("t", 1000, 400)
        result = acct.withdraw(5000)
        self.assertEqual(result.gross_amount, Decimal(1000))
        self.assertEqual(result.taxable_amount, Decimal(600))
        self.assertTrue(acct.is_depleted())
        self.assertEqual(acct.cost_basis, Decimal(0))

    def test_zero_withdrawal_is_zero_filled(self):
        acct = Account.taxable("t", 1000, 400)
        result = acct.withdraw(0)
        self.assertEqual(result.gross_amount, Decimal(0))
        self.assertEqual(result.taxable_amount, Decimal(0))
        self.assertEqual(result.cost_basis, Decimal(0))
        self.assertEqual(acct.balance, Decimal(1000))

    def test_estimate_does_not_mutate(self):
        acct = Account.taxable("t", 100000, 60000)
        estimate = acct.estimate_tax_components(20000)
        self.assertEqual(estimate["ltcg"], Decimal(8000))
        self.assertEqual(estimate["basis"], Decimal(12000))
        self.assertEqual(acct.balance, Decimal(100000))
        self.assertEqual(acct.cost_basis, Decimal(60000))

    def test_growth_leaves_basis_alone(self):
        acct = Account.taxable("t", 100000, 60000)
        acct.apply_growth(Decimal("0.10"))
        self.assertEqual(acct.balance, Decimal(110000))
        self.assertEqual(acct.cost_basis, Decimal(60000))
        self.assertEqual(acct.unrealized_gains(), Decimal(50000))

    def test_gain_percentage(self):
        self.assertEqual(Account.taxable("t", 150, 100).gain_percentage(), Decimal("0.5"))
        self.assertEqual(Account.taxable("t", 150, 0).gain_percentage(), Decimal(0))

    def test_invalid_basis_rejected(self):
        with self.assertRaises(ConfigurationError):
            Account.taxable("t", 1000, -1)
        with self.assertRaises(ConfigurationError):
            Account.taxable("t", 1000, 1001)

    def test_no_rmd(self):
        self.assertEqual(Account.taxable("t", 100000, 50000).calculate_rmd(90, 1930), Decimal(0))


class TestTraditionalAccount(unittest.TestCase):
    def test_withdrawal_fully_ordinary(self):
        acct = Account.traditional("ira", 50000, birth_year=1960)
        for amount in ("1", "2500.50", "10000", "60000"):
            result = acct.withdraw(Decimal(amount))
            if result.gross_amount > 0:
                self.assertEqual(result.taxable_amount, result.gross_amount)
            self.assertEqual(result.income_type, IncomeType.ORDINARY)
        self.assertTrue(acct.is_depleted())

    def test_rmd_uses_stored_birth_year(self):
        acct = Account.traditional("ira", 100000, birth_year=1950)
        self.assertEqual(acct.calculate_rmd(72), calculate_rmd(100000, 72, 1950))
        self.assertTrue(acct.is_rmd_required(72))

    def test_rmd_birth_year_override(self):
        acct = Account.traditional("ira", 100000, birth_year=1950)
        # Born 1960: nothing due until 75
        self.assertEqual(acct.calculate_rmd(73, 1960), Decimal(0))
        self.assertFalse(acct.is_rmd_required(73, 1960))

    def test_cost_basis_not_allowed(self):
        with self.assertRaises(ConfigurationError):
            Account(id="x", account_type=AccountType.TRADITIONAL, balance=Decimal(10),
                    cost_basis=Decimal(5))


class TestRothAccount(unittest.TestCase):
    def test_never_taxable(self):
        acct = Account.roth("roth", 30000)
        for age in (45, 59, 60, 75, 95):
            result = acct.withdraw(5000, age=age)
            self.assertEqual(result.taxable_amount, Decimal(0))
        self.assertEqual(acct.balance, Decimal(5000))

    def test_no_rmd(self):
        self.assertEqual(Account.roth("roth", 30000).calculate_rmd(95, 1930), Decimal(0))

    def test_str(self):
        self.assertIn("Tax-Free", str(Account.roth("roth", 30000)))


class TestAccountFromDefinition(unittest.TestCase):
    def test_taxable_without_basis_uses_balance(self):
        acct = account_from_definition(AccountDefinition("t", AccountType.TAXABLE, Decimal(5000)))
        self.assertEqual(acct.cost_basis, Decimal(5000))
        self.assertEqual(acct.unrealized_gains(), Decimal(0))

    def test_traditional_takes_owner_birth_year(self):
        acct = account_from_definition(
            AccountDefinition("ira", AccountType.TRADITIONAL, Decimal(5000), nickname="IRA"), 1955)
        self.assertEqual(acct.birth_year, 1955)
        self.assertEqual(acct.nickname, "IRA")


if __name__ == "__main__":
    unittest.main()

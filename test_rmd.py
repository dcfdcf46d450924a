import unittest
from decimal import Decimal

from engine.rmd_tables import (
    UNIFORM_LIFETIME_TABLE,
    calculate_rmd,
    get_life_expectancy_factor,
    get_rmd_starting_age,
)


class TestRmdTables(unittest.TestCase):
    def test_starting_age_by_birth_year(self):
        self.assertEqual(get_rmd_starting_age(1949), 72)
        self.assertEqual(get_rmd_starting_age(1950), 72)
        self.assertEqual(get_rmd_starting_age(1951), 73)
        self.assertEqual(get_rmd_starting_age(1959), 73)
        self.assertEqual(get_rmd_starting_age(1960), 75)
        self.assertEqual(get_rmd_starting_age(1975), 75)

    def test_factor_lookup(self):
        self.assertEqual(get_life_expectancy_factor(72), Decimal("27.4"))
        self.assertEqual(get_life_expectancy_factor(84), Decimal("16.8"))
        self.assertEqual(get_life_expectancy_factor(120), Decimal("2.0"))
        self.assertEqual(get_life_expectancy_factor(125), Decimal("2.0"))

    def test_factor_below_table_raises(self):
        with self.assertRaises(ValueError):
            get_life_expectancy_factor(71)

    def test_table_is_decreasing(self):
        ages = sorted(UNIFORM_LIFETIME_TABLE)
        for younger, older in zip(ages, ages[1:]):
            self.assertGreater(UNIFORM_LIFETIME_TABLE[younger], UNIFORM_LIFETIME_TABLE[older])


class TestCalculateRmd(unittest.TestCase):
    def test_zero_before_starting_age(self):
        for birth_year in (1950, 1955, 1960):
            start = get_rmd_starting_age(birth_year)
            for age in range(60, start):
                self.assertEqual(calculate_rmd(Decimal(250000), age, birth_year), Decimal(0))

    def test_strictly_increasing_with_age(self):
        balance = Decimal(500000)
        previous = Decimal(0)
        for age in range(75, 121):
            rmd = calculate_rmd(balance, age, 1960)
            self.assertGreater(rmd, previous, msg=f"age {age}")
            previous = rmd

    def test_amount(self):
        self.assertEqual(calculate_rmd(Decimal(274000), 72, 1950), Decimal(10000))

    def test_unknown_birth_year_assumes_73(self):
        self.assertEqual(calculate_rmd(Decimal(100000), 72), Decimal(0))
        self.assertGreater(calculate_rmd(Decimal(100000), 73), Decimal(0))

    def test_zero_balance(self):
        self.assertEqual(calculate_rmd(Decimal(0), 80, 1940), Decimal(0))


if __name__ == "__main__":
    unittest.main()

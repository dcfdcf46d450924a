# =============================================================================
# Market and policy defaults used in simulations
# =============================================================================
from decimal import Decimal

# Return distribution (annual, real)
mean_return = Decimal("0.07")
volatility = Decimal("0.12")

# Inflation / COLA
inflation_rate = Decimal("0.025")

# Horizon and Monte Carlo size
max_years = 40
num_runs = 1000

# Box-Muller guard: first uniform draw is floor-clamped here to avoid log(0)
min_uniform_draw = 1e-10

# Policy defaults
withdrawal_rate = Decimal("0.04")
retirement_age = 67
ss_claiming_age = 67

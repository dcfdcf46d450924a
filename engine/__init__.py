# engine/__init__.py

# Tax calculation (pure functions)
from .tax_engine import calculate_federal_tax, calculate_taxes

# Per-run pieces
from .accounts import Account
from .withdrawal_engine import WithdrawalCoordinator

# Entry points used by callers
from .simulator import ProjectionEngine
from .monte_carlo import MonteCarloEngine

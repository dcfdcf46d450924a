# engine/market_generator.py
#
# Generates annual market returns for Monte Carlo trials.
# Each trial gets its own numpy Generator; nothing here touches the global
# numpy random state.
#

from decimal import Decimal
from typing import List, Optional, Sequence

import numpy as np

from config.market_assumptions import min_uniform_draw
from utils.currency import to_decimal, add, multiply


def make_trial_generators(num_runs: int, seed: Optional[int] = None) -> List[np.random.Generator]:
    """
    One independent Generator per trial, spawned from a single SeedSequence.
    The same seed always yields the same list of streams.
    """
    return [np.random.default_rng(child) for child in spawn_trial_seeds(num_runs, seed)]


def spawn_trial_seeds(num_runs: int, seed: Optional[int] = None) -> Sequence[np.random.SeedSequence]:
    """Picklable per-trial seeds, for handing trials to worker processes."""
    return np.random.SeedSequence(seed).spawn(num_runs)


def box_muller(u1: np.ndarray, u2: np.ndarray) -> np.ndarray:
    """
    Standard-normal draws from paired uniform(0, 1) arrays.

    u1 is floor-clamped so log() never sees 0.
    """
    u1 = np.maximum(np.asarray(u1, dtype=np.float64), min_uniform_draw)
    u2 = np.asarray(u2, dtype=np.float64)
    return np.sqrt(-2.0 * np.log(u1)) * np.cos(2.0 * np.pi * u2)


def generate_returns(
    num_years: int,
    mean_return,
    volatility,
    rng: np.random.Generator,
) -> List[Decimal]:
    """
    Generate `num_years` annual returns, mean_return + volatility * z.

    Args:
        num_years: Number of annual returns to produce.
        mean_return: Expected annual return (e.g. 0.07).
        volatility: Standard deviation of the annual return (e.g. 0.12).
        rng: The trial's own numpy Generator.

    Returns:
        A list of Decimal returns, one per year.
    """
    mu = to_decimal(mean_return)
    sigma = to_decimal(volatility)

    z = box_muller(rng.random(num_years), rng.random(num_years))
    return [add(mu, multiply(sigma, to_decimal(float(value)))) for value in z]

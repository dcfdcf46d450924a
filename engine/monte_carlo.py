# engine/monte_carlo.py
"""
Monte Carlo over the projection engine.

Each trial draws its own return path from its own numpy Generator and runs a
fresh ProjectionEngine over it. Trials share nothing, so they can run serially
or on a multiprocessing.Pool; results are collected first and sorted only
once every trial is done.
"""
import logging
import multiprocessing as mp
from typing import List, Optional, Sequence, Tuple

import numpy as np

from config.market_assumptions import (
    max_years as DEFAULT_MAX_YEARS,
    mean_return as DEFAULT_MEAN_RETURN,
    num_runs as DEFAULT_NUM_RUNS,
    volatility as DEFAULT_VOLATILITY,
)
from engine.market_generator import generate_returns, spawn_trial_seeds
from engine.simulator import ProjectionEngine
from models import (
    ConfigurationError,
    MonteCarloResult,
    ProjectionResult,
    Scenario,
    SimulationCancelled,
)
from utils.currency import to_decimal

logger = logging.getLogger(__name__)

# Nearest-rank picks into the sorted trials, in percent.
P10, P50, P90 = 10, 50, 90


def _run_trial(task: Tuple, cancel_event=None) -> ProjectionResult:
    """
    Runs one trial. Module-level so a Pool can pickle it.

    task = (scenario, run_number, max_years, mean_return, volatility, seed_seq)
    """
    scenario, run_number, max_years, mean_return, volatility, seed_seq = task
    rng = np.random.default_rng(seed_seq)
    returns = generate_returns(max_years, mean_return, volatility, rng)
    engine = ProjectionEngine(scenario)
    return engine.run_projection_with_returns(
        max_years, returns,
        cancel_event=cancel_event,
        scenario_name=f"{scenario.name} - Run {run_number}",
    )


def percentile_index(num_runs: int, percent: int) -> int:
    """floor(num_runs * percent / 100), clipped to the last index."""
    return min(num_runs * percent // 100, num_runs - 1)


class MonteCarloEngine:
    """Runs many randomized projections of one Scenario and summarizes them."""

    def __init__(self, scenario: Scenario):
        # Same construction checks as a single projection.
        ProjectionEngine._validate_scenario(scenario)
        self.scenario = scenario

    def run_monte_carlo(
        self,
        num_runs: int = DEFAULT_NUM_RUNS,
        max_years: int = DEFAULT_MAX_YEARS,
        mean_return=DEFAULT_MEAN_RETURN,
        volatility=DEFAULT_VOLATILITY,
        seed: Optional[int] = None,
        workers: Optional[int] = None,
        cancel_event=None,
    ) -> MonteCarloResult:
        """
        Run `num_runs` independent trials of `max_years` each.

        Parameters
        ----------
        num_runs : int
            Number of trials; must be positive.
        max_years : int
            Years per trial; must be positive.
        mean_return, volatility : Decimal-like
            Parameters of the normal annual return; volatility must be >= 0.
        seed : int, optional
            Root seed. The same seed reproduces the same result, serial or
            parallel.
        workers : int, optional
            None or 1 runs serially. N > 1 uses a Pool of N processes;
            -1 uses all cores but one.
        cancel_event : object with is_set(), optional
            Checked between trials (and between years in serial mode);
            raises SimulationCancelled when set.
        """
        mean_return = to_decimal(mean_return)
        volatility = to_decimal(volatility)

        if num_runs <= 0:
            raise ConfigurationError("num_runs must be positive")
        if max_years <= 0:
            raise ConfigurationError("max_years must be positive")
        if volatility < 0:
            raise ConfigurationError("volatility cannot be negative")

        logger.info("Monte Carlo '%s': %d runs x %d years (mean=%s, vol=%s, seed=%s)",
                    self.scenario.name, num_runs, max_years, mean_return, volatility, seed)

        seeds = spawn_trial_seeds(num_runs, seed)
        tasks = [
            (self.scenario, i + 1, max_years, mean_return, volatility, seeds[i])
            for i in range(num_runs)
        ]

        pool_size = self._pool_size(workers)
        if pool_size > 1:
            results = self._run_parallel(tasks, pool_size, cancel_event)
        else:
            results = self._run_serial(tasks, cancel_event)

        return self._summarize_results(results)

    # =========================================================================
    # Execution
    # =========================================================================

    @staticmethod
    def _pool_size(workers: Optional[int]) -> int:
        if workers is None:
            return 1
        if workers == -1:
            return max(1, mp.cpu_count() - 1)  # leave 1 core free
        return max(1, workers)

    @staticmethod
    def _check_cancelled(cancel_event) -> None:
        if cancel_event is not None and cancel_event.is_set():
            raise SimulationCancelled("Monte Carlo run cancelled")

    def _run_serial(self, tasks: Sequence[Tuple], cancel_event) -> List[ProjectionResult]:
        results = []
        for task in tasks:
            self._check_cancelled(cancel_event)
            results.append(_run_trial(task, cancel_event))
        return results

    def _run_parallel(self, tasks: Sequence[Tuple], pool_size: int,
                      cancel_event) -> List[ProjectionResult]:
        results = []
        # Leaving the with-block terminates the workers, also on cancellation.
        with mp.Pool(pool_size) as pool:
            for result in pool.imap(_run_trial, tasks):
                self._check_cancelled(cancel_event)
                results.append(result)
        return results

    # =========================================================================
    # Summary
    # =========================================================================

    def _summarize_results(self, results: List[ProjectionResult]) -> MonteCarloResult:
        num_runs = len(results)
        success_count = sum(1 for r in results if r.success)
        success_rate = success_count / num_runs * 100

        # Stable sort: ties keep trial order.
        sorted_results = sorted(results, key=lambda r: r.final_portfolio_value)

        worst_case_run = sorted_results[percentile_index(num_runs, P10)]
        median_run = sorted_results[percentile_index(num_runs, P50)]
        best_case_run = sorted_results[percentile_index(num_runs, P90)]

        logger.info("Monte Carlo '%s' finished: success rate %.1f%%, median final value %s",
                    self.scenario.name, success_rate, median_run.final_portfolio_value)

        return MonteCarloResult(
            scenario_name=self.scenario.name,
            num_runs=num_runs,
            success_rate=success_rate,
            median_final_value=median_run.final_portfolio_value,
            percentile10_value=worst_case_run.final_portfolio_value,
            percentile90_value=best_case_run.final_portfolio_value,
            median_run=median_run,
            worst_case_run=worst_case_run,
            best_case_run=best_case_run,
            final_values=[r.final_portfolio_value for r in sorted_results],
        )


__all__ = ["MonteCarloEngine", "SimulationCancelled", "percentile_index"]

"""
Pytest configuration and shared fixtures.

The posterior fit of the strong-effect table is sampled once per session and
shared by every test that needs real MCMC output.
"""

import matplotlib

matplotlib.use("Agg")

import numpy as np
import pandas as pd
import pytest

from ethnobotany.bayesian import fit_bayesian_glm
from ethnobotany.posterior import PosteriorSample
from ethnobotany.simulation import simulate_observations


@pytest.fixture
def observations() -> pd.DataFrame:
    """The reference simulated table: seed 123, 20 rows."""
    return simulate_observations(seed=123, n_rows=20)


@pytest.fixture(scope="session")
def strong_effect_table() -> pd.DataFrame:
    """Observations where use_medicine shifts abundance by 25 with little noise."""
    rng = np.random.default_rng(7)
    n = 40
    use_medicine = np.tile([0, 1], n // 2)
    proportion_used = rng.uniform(0.1, 100.0, n)
    distance = rng.uniform(0.01, 5.5, n)
    abundance = 20.0 + 25.0 * use_medicine + rng.normal(0.0, 2.0, n)
    return pd.DataFrame(
        {
            "abundance": abundance,
            "proportion_used": proportion_used,
            "distance": distance,
            "use_medicine": pd.Categorical(use_medicine, categories=[0, 1]),
        }
    )


@pytest.fixture(scope="session")
def strong_effect_fit(strong_effect_table):
    return fit_bayesian_glm(strong_effect_table, seed=1, n_chains=2, n_iterations=600)


@pytest.fixture
def normal_sample() -> PosteriorSample:
    """Four well-mixed chains: one coefficient far from zero, one centered on it."""
    rng = np.random.default_rng(0)
    draws = np.stack(
        [rng.normal(3.0, 1.0, (4, 1000)), rng.normal(0.0, 1.0, (4, 1000))], axis=-1
    )
    return PosteriorSample(names=("effect", "null"), draws=draws)

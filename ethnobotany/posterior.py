"""Posterior sample container and per-coefficient posterior statistics.

Every statistic is computed on one coefficient's draws at a time, so no
independence between coefficients is assumed. The descriptive indices follow
the usual Bayesian reporting set: median, highest density interval, probability
of direction, ROPE overlap, split R-hat and effective sample size.
"""

import logging
from dataclasses import dataclass
from typing import Optional

import arviz as az
import numpy as np
import pandas as pd
from numpyro.diagnostics import effective_sample_size as _ess
from numpyro.diagnostics import hpdi, split_gelman_rubin

from ethnobotany.exceptions import InsufficientChainsError
from ethnobotany.simulation import OUTCOME

logger = logging.getLogger(__name__)

DEFAULT_CREDIBLE_MASS = 0.95
# ROPE half width as a fraction of the outcome's standard deviation
DEFAULT_ROPE_FRACTION = 0.1

# split R-hat halves every chain and needs at least 2 draws per half
MIN_DRAWS_PER_CHAIN = 4

SUMMARY_COLUMNS = (
    "median",
    "ci_low",
    "ci_high",
    "ci_mass",
    "pd",
    "rope_low",
    "rope_high",
    "rope_percentage",
    "rhat",
    "ess",
)


@dataclass(frozen=True)
class PosteriorSample:
    names: tuple
    # (chain, draw, coefficient)
    draws: np.ndarray
    inference_data: Optional[az.InferenceData] = None

    def __post_init__(self):
        if self.draws.ndim != 3 or self.draws.shape[2] != len(self.names):
            raise ValueError(
                f"draws of shape {self.draws.shape} do not match {len(self.names)} coefficients"
            )

    @property
    def n_chains(self):
        return self.draws.shape[0]

    @property
    def n_draws(self):
        return self.draws.shape[1]

    def chains(self, name):
        """Draws of one coefficient as a (chain, draw) array."""
        return self.draws[:, :, self.names.index(name)]

    def flat(self, name):
        return self.chains(name).reshape(-1)


def hdi(draws, mass=DEFAULT_CREDIBLE_MASS):
    """Shortest interval holding ``mass`` of the draws."""
    low, high = hpdi(np.asarray(draws).reshape(-1), prob=mass)
    return float(low), float(high)


def probability_of_direction(draws):
    draws = np.asarray(draws).reshape(-1)
    sign = np.sign(np.median(draws))
    if sign == 0:
        sign = 1.0 if np.mean(draws) >= 0 else -1.0
    pd_value = float(np.mean(np.sign(draws) == sign))
    return float(np.clip(pd_value, 0.5, 1.0))


def default_rope_range(table, fraction=DEFAULT_ROPE_FRACTION):
    half_width = fraction * float(np.std(table[OUTCOME], ddof=1))
    return -half_width, half_width


def rope_percentage(draws, rope_range, ci_low, ci_high):
    """Fraction of the credible-interval draws that lie inside the ROPE."""
    draws = np.asarray(draws).reshape(-1)
    in_ci = draws[(draws >= ci_low) & (draws <= ci_high)]
    if in_ci.size == 0:
        return 0.0
    low, high = rope_range
    return float(np.mean((in_ci >= low) & (in_ci <= high)))


def _require_chains(chains):
    chains = np.asarray(chains)
    if chains.ndim != 2 or chains.shape[0] < 2:
        n = chains.shape[0] if chains.ndim == 2 else 1
        raise InsufficientChainsError(
            f"between-chain diagnostics need at least 2 chains, got {n}"
        )
    if chains.shape[1] < MIN_DRAWS_PER_CHAIN:
        raise ValueError(
            f"split R-hat needs at least {MIN_DRAWS_PER_CHAIN} draws per chain, "
            f"got {chains.shape[1]}"
        )
    return chains


def convergence_diagnostic(chains):
    """Split R-hat of a (chain, draw) array."""
    return float(split_gelman_rubin(_require_chains(chains)))


def effective_sample_size(chains):
    chains = np.asarray(chains)
    if chains.ndim == 1:
        chains = chains[None, :]
    return float(_ess(chains))


def describe_posterior(
    sample, credible_mass=DEFAULT_CREDIBLE_MASS, rope_range=None, table=None
):
    if not 0 < credible_mass < 1:
        raise ValueError(f"credible_mass must lie in (0, 1), got {credible_mass}")
    if rope_range is None:
        if table is None:
            raise ValueError("either rope_range or the observation table is required")
        rope_range = default_rope_range(table)

    rows = {}
    for name in sample.names:
        chains = sample.chains(name)
        draws = chains.reshape(-1)
        ci_low, ci_high = hdi(draws, credible_mass)
        rows[name] = {
            "median": float(np.median(draws)),
            "ci_low": ci_low,
            "ci_high": ci_high,
            "ci_mass": credible_mass,
            "pd": probability_of_direction(draws),
            "rope_low": rope_range[0],
            "rope_high": rope_range[1],
            "rope_percentage": rope_percentage(draws, rope_range, ci_low, ci_high),
            "rhat": convergence_diagnostic(chains),
            "ess": effective_sample_size(chains),
        }
    summary = pd.DataFrame.from_dict(rows, orient="index", columns=list(SUMMARY_COLUMNS))
    summary.index.name = "coefficient"
    logger.info(
        f"Summarized {len(rows)} coefficients over {sample.n_chains} chains "
        f"x {sample.n_draws} draws"
    )
    return summary

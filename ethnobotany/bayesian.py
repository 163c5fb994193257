import logging
import math
import warnings
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass
from types import MappingProxyType
from typing import Optional

import arviz as az
import jax.numpy as jnp
import numpy as np
import numpyro
import numpyro.distributions as dist
from jax import random
from numpyro.infer import MCMC, NUTS

from ethnobotany.exceptions import (
    ConvergenceWarning,
    InvalidPriorError,
    SamplerNonConvergenceError,
    SamplerTimeoutError,
)
from ethnobotany.frequentist import DEFAULT_FORMULA, INTERCEPT, design_matrices
from ethnobotany.posterior import (
    MIN_DRAWS_PER_CHAIN,
    PosteriorSample,
    convergence_diagnostic,
)

logger = logging.getLogger(__name__)

PRIOR_FAMILIES = ("gaussian", "student_t", "cauchy")
DEFAULT_N_CHAINS = 4
DEFAULT_N_ITERATIONS = 2000
DEFAULT_RHAT_THRESHOLD = 1.05


@dataclass(frozen=True)
class PriorConfig:
    """Independent weakly-informative prior on every regression coefficient.

    With ``autoscale`` the slope scales are ``scale * sd(y) / sd(x)`` and the
    intercept prior is centered on ``mean(y)`` with scale
    ``intercept_scale * sd(y)``.
    """

    family: str = "gaussian"
    location: float = 0.0
    scale: float = 2.5
    df: float = 3.0
    intercept_scale: float = 2.5
    autoscale: bool = True

    def __post_init__(self):
        if self.family not in PRIOR_FAMILIES:
            raise InvalidPriorError(
                f"unknown prior family {self.family!r}, expected one of {PRIOR_FAMILIES}"
            )
        for field in ("scale", "intercept_scale", "df"):
            value = getattr(self, field)
            try:
                valid = float(value) > 0 and math.isfinite(float(value))
            except (TypeError, ValueError):
                valid = False
            if not valid:
                raise InvalidPriorError(f"prior {field} must be positive, got {value!r}")
        if not math.isfinite(float(self.location)):
            raise InvalidPriorError(f"prior location must be finite, got {self.location!r}")

    def coefficient_priors(self, X, y):
        """Location and scale vectors for the columns of design matrix ``X``.

        ``X`` is the patsy design frame; its ``Intercept`` column gets the
        intercept prior, every other column a slope prior.
        """
        intercept = np.asarray(X.columns == INTERCEPT)
        X = X.to_numpy(dtype=float)
        y = np.asarray(y, dtype=float)
        sd_y = outcome_scale(y)
        sd_x = X.std(axis=0, ddof=1)
        # a constant slope column keeps the unscaled slope prior
        sd_x = np.where(sd_x > 0, sd_x, 1.0)

        if self.autoscale:
            loc = np.where(intercept, y.mean(), self.location)
            scale = np.where(
                intercept,
                self.intercept_scale * sd_y,
                self.scale * sd_y / sd_x,
            )
        else:
            loc = np.full(X.shape[1], self.location)
            scale = np.where(intercept, self.intercept_scale, self.scale)
        return loc, scale

    def distribution(self, loc, scale):
        if self.family == "gaussian":
            return dist.Normal(loc, scale)
        if self.family == "student_t":
            return dist.StudentT(self.df, loc, scale)
        return dist.Cauchy(loc, scale)


@dataclass(frozen=True)
class BayesianFit:
    formula: str
    prior: PriorConfig
    sample: PosteriorSample
    # None when there are too few chains to compute it
    rhat: Optional[MappingProxyType]
    converged: Optional[bool]


def outcome_scale(y):
    sd = float(np.std(y, ddof=1)) if len(y) > 1 else 0.0
    return sd if sd > 0 and math.isfinite(sd) else 1.0


def linear_model(X, prior_loc, prior_scale, prior, sd_y, y=None):
    with numpyro.plate("coefficient", X.shape[1]):
        beta = numpyro.sample("beta", prior.distribution(prior_loc, prior_scale))
    sigma = numpyro.sample("sigma", dist.Exponential(1.0 / sd_y))
    numpyro.sample("obs", dist.Normal(X @ beta, sigma), obs=y)


def assess_convergence(rhat, threshold):
    """Whether every R-hat is finite and within ``threshold``, and the worst name."""
    # nan compares false against everything, so it has to be picked out first
    non_finite = [name for name, value in rhat.items() if not math.isfinite(value)]
    if non_finite:
        return False, non_finite[0]
    worst = max(rhat, key=rhat.get)
    return rhat[worst] <= threshold, worst


def run_sampler(mcmc, rng_key, *args, timeout=None, **kwargs):
    if timeout is None:
        mcmc.run(rng_key, *args, **kwargs)
        return
    # the worker cannot be interrupted; on timeout it is left to finish alone
    executor = ThreadPoolExecutor(max_workers=1)
    future = executor.submit(mcmc.run, rng_key, *args, **kwargs)
    try:
        future.result(timeout=timeout)
    except FutureTimeoutError as e:
        raise SamplerTimeoutError(f"MCMC sampling did not finish within {timeout}s") from e
    finally:
        executor.shutdown(wait=False)


def fit_bayesian_glm(
    table,
    formula=DEFAULT_FORMULA,
    prior=None,
    seed=123,
    n_chains=DEFAULT_N_CHAINS,
    n_iterations=DEFAULT_N_ITERATIONS,
    n_warmup=None,
    rhat_threshold=DEFAULT_RHAT_THRESHOLD,
    timeout=None,
    strict=False,
    chain_method="sequential",
):
    prior = PriorConfig() if prior is None else prior
    if n_chains < 1:
        raise ValueError(f"n_chains must be at least 1, got {n_chains}")
    if n_iterations < 2:
        raise ValueError(f"n_iterations must be at least 2, got {n_iterations}")
    n_warmup = n_iterations // 2 if n_warmup is None else n_warmup
    if not 0 <= n_warmup < n_iterations:
        raise ValueError(f"n_warmup must lie in [0, {n_iterations}), got {n_warmup}")
    if n_chains >= 2 and n_iterations - n_warmup < MIN_DRAWS_PER_CHAIN:
        raise ValueError(
            f"R-hat needs at least {MIN_DRAWS_PER_CHAIN} post-warm-up draws per chain, "
            f"got {n_iterations - n_warmup}"
        )
    if timeout is not None and timeout <= 0:
        raise ValueError(f"timeout must be positive, got {timeout}")

    y, X = design_matrices(table, formula)
    names = tuple(X.columns)
    y_arr = y.to_numpy(dtype=float)
    X_arr = X.to_numpy(dtype=float)
    prior_loc, prior_scale = prior.coefficient_priors(X, y_arr)

    # Run NUTS.
    kernel = NUTS(linear_model)
    mcmc = MCMC(
        kernel,
        num_warmup=n_warmup,
        num_samples=n_iterations - n_warmup,
        num_chains=n_chains,
        chain_method=chain_method,
        progress_bar=False,
    )
    logger.info(
        f"Sampling {formula} with a {prior.family} prior: {n_chains} chains x "
        f"{n_iterations} iterations ({n_warmup} warm-up)"
    )
    run_sampler(
        mcmc,
        random.PRNGKey(seed),
        jnp.asarray(X_arr),
        jnp.asarray(prior_loc),
        jnp.asarray(prior_scale),
        prior,
        outcome_scale(y_arr),
        y=jnp.asarray(y_arr),
        timeout=timeout,
    )

    draws = np.asarray(mcmc.get_samples(group_by_chain=True)["beta"])
    data = az.from_numpyro(
        mcmc,
        coords={"coefficient": list(names)},
        dims={"beta": ["coefficient"]},
        log_likelihood=False,
    )
    sample = PosteriorSample(names=names, draws=draws, inference_data=data)

    if n_chains < 2:
        logger.warning("R-hat needs at least 2 chains; convergence was not assessed")
        return BayesianFit(formula, prior, sample, rhat=None, converged=None)

    rhat = {name: convergence_diagnostic(sample.chains(name)) for name in names}
    converged, worst = assess_convergence(rhat, rhat_threshold)
    fit = BayesianFit(formula, prior, sample, rhat=MappingProxyType(rhat), converged=converged)
    if not converged:
        message = f"R-hat for {worst} is {rhat[worst]:.3f}, above {rhat_threshold}"
        if strict:
            raise SamplerNonConvergenceError(message, fit=fit)
        logger.warning(f"{message}; keeping the unreliable sample")
        warnings.warn(message, ConvergenceWarning)
    else:
        logger.info(f"Sampler converged, max R-hat {rhat[worst]:.3f}")
    return fit

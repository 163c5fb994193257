import numpy as np
import pandas as pd
import pytest

from ethnobotany.bayesian import (
    PRIOR_FAMILIES,
    PriorConfig,
    assess_convergence,
    fit_bayesian_glm,
    outcome_scale,
)
from ethnobotany.exceptions import (
    ConvergenceWarning,
    InvalidPriorError,
    SamplerNonConvergenceError,
    SamplerTimeoutError,
)
from ethnobotany.posterior import describe_posterior

INDICATOR = "use_medicine[T.1]"


class TestPriorConfig:
    @pytest.mark.parametrize(
        "kwargs",
        [
            {"family": "laplace"},
            {"scale": -1.0},
            {"scale": 0.0},
            {"scale": float("nan")},
            {"intercept_scale": -2.5},
            {"family": "student_t", "df": 0.0},
            {"location": float("inf")},
        ],
    )
    def test_invalid_prior(self, kwargs):
        with pytest.raises(InvalidPriorError):
            PriorConfig(**kwargs)

    @pytest.mark.parametrize("family", PRIOR_FAMILIES)
    def test_every_family_builds_a_distribution(self, family):
        prior = PriorConfig(family=family)
        d = prior.distribution(np.zeros(3), np.ones(3))
        assert d.batch_shape == (3,)

    def test_autoscaled_priors(self):
        X = pd.DataFrame({"Intercept": np.ones(4), "x": [1.0, 2.0, 3.0, 4.0]})
        y = np.array([10.0, 12.0, 14.0, 16.0])
        loc, scale = PriorConfig().coefficient_priors(X, y)
        sd_y = np.std(y, ddof=1)
        sd_x = np.std(X["x"], ddof=1)
        np.testing.assert_allclose(loc, [y.mean(), 0.0])
        np.testing.assert_allclose(scale, [2.5 * sd_y, 2.5 * sd_y / sd_x])

    def test_unscaled_priors(self):
        X = pd.DataFrame({"Intercept": np.ones(3), "x": [1.0, 5.0, 9.0]})
        loc, scale = PriorConfig(autoscale=False, scale=1.0, intercept_scale=10.0).coefficient_priors(
            X, np.array([1.0, 2.0, 3.0])
        )
        np.testing.assert_allclose(loc, [0.0, 0.0])
        np.testing.assert_allclose(scale, [10.0, 1.0])

    def test_constant_slope_column_keeps_slope_prior(self):
        X = pd.DataFrame(
            {"Intercept": np.ones(4), "use_medicine[T.1]": np.zeros(4), "x": [1.0, 2.0, 3.0, 4.0]}
        )
        y = np.array([10.0, 12.0, 14.0, 16.0])
        loc, scale = PriorConfig().coefficient_priors(X, y)
        sd_y = np.std(y, ddof=1)
        np.testing.assert_allclose(loc, [y.mean(), 0.0, 0.0])
        assert scale[1] == pytest.approx(2.5 * sd_y)

    def test_intercept_is_found_by_name(self):
        X = pd.DataFrame({"x": [1.0, 2.0, 3.0], "Intercept": np.ones(3)})
        y = np.array([4.0, 5.0, 9.0])
        loc, _ = PriorConfig().coefficient_priors(X, y)
        np.testing.assert_allclose(loc, [0.0, y.mean()])


class TestAssessConvergence:
    def test_within_threshold(self):
        assert assess_convergence({"a": 1.001, "b": 1.02}, 1.05) == (True, "b")

    def test_above_threshold(self):
        assert assess_convergence({"a": 1.3, "b": 1.02}, 1.05) == (False, "a")

    def test_nan_on_a_non_maximal_coefficient(self):
        converged, worst = assess_convergence({"a": 1.01, "b": float("nan"), "c": 1.02}, 1.05)
        assert converged is False
        assert worst == "b"

    def test_infinite_rhat(self):
        assert assess_convergence({"a": float("inf")}, 1.05) == (False, "a")


def test_outcome_scale_falls_back_to_one():
    assert outcome_scale(np.array([3.0, 3.0, 3.0])) == 1.0
    assert outcome_scale(np.array([1.0, 3.0])) == pytest.approx(np.sqrt(2.0))


class TestFitBayesianGLM:
    def test_sample_shape(self, strong_effect_fit):
        sample = strong_effect_fit.sample
        assert sample.names == ("Intercept", INDICATOR, "proportion_used", "distance")
        # 2 chains x (600 - 300 warm-up) draws
        assert sample.draws.shape == (2, 300, 4)
        assert sample.inference_data.posterior["beta"].shape == (2, 300, 4)
        assert set(strong_effect_fit.rhat) == set(sample.names)

    def test_recovers_strong_effect(self, strong_effect_fit, strong_effect_table):
        summary = describe_posterior(strong_effect_fit.sample, table=strong_effect_table)
        row = summary.loc[INDICATOR]
        assert row["median"] == pytest.approx(25.0, abs=2.0)
        assert row["pd"] == pytest.approx(1.0)
        # the whole credible interval lies outside the ROPE
        assert row["rope_percentage"] == 0.0
        assert row["ci_low"] > row["rope_high"]

    def test_same_seed_is_reproducible(self, strong_effect_table):
        first = fit_bayesian_glm(strong_effect_table, seed=3, n_chains=2, n_iterations=100)
        second = fit_bayesian_glm(strong_effect_table, seed=3, n_chains=2, n_iterations=100)
        np.testing.assert_array_equal(first.sample.draws, second.sample.draws)

    def test_single_chain_skips_convergence(self, strong_effect_table):
        fit = fit_bayesian_glm(strong_effect_table, n_chains=1, n_iterations=100)
        assert fit.sample.draws.shape == (1, 50, 4)
        assert fit.rhat is None
        assert fit.converged is None

    def test_non_convergence_warns_and_keeps_sample(self, strong_effect_table):
        with pytest.warns(ConvergenceWarning):
            fit = fit_bayesian_glm(
                strong_effect_table, n_chains=2, n_iterations=100, rhat_threshold=0.5
            )
        assert fit.converged is False
        assert fit.sample.draws.shape == (2, 50, 4)

    def test_strict_non_convergence_raises_with_fit(self, strong_effect_table):
        with pytest.raises(SamplerNonConvergenceError) as excinfo:
            fit_bayesian_glm(
                strong_effect_table,
                n_chains=2,
                n_iterations=100,
                rhat_threshold=0.5,
                strict=True,
            )
        assert excinfo.value.fit is not None
        assert excinfo.value.fit.converged is False

    @pytest.mark.parametrize("family", ["student_t", "cauchy"])
    def test_alternative_prior_families(self, strong_effect_table, family):
        fit = fit_bayesian_glm(
            strong_effect_table, prior=PriorConfig(family=family), n_chains=2, n_iterations=100
        )
        assert fit.prior.family == family
        assert np.isfinite(fit.sample.draws).all()

    def test_timeout(self, strong_effect_table):
        with pytest.raises(SamplerTimeoutError):
            fit_bayesian_glm(strong_effect_table, n_chains=2, n_iterations=400, timeout=1e-3)

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"n_chains": 0},
            {"n_iterations": 1},
            {"n_iterations": 100, "n_warmup": 100},
            {"n_chains": 2, "n_iterations": 6},
            {"n_chains": 2, "n_iterations": 100, "n_warmup": 97},
            {"timeout": 0},
        ],
    )
    def test_invalid_sampler_settings(self, strong_effect_table, kwargs):
        with pytest.raises(ValueError):
            fit_bayesian_glm(strong_effect_table, **kwargs)

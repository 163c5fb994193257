"""Frequentist vs. Bayesian linear regression on a simulated ethnobotany dataset."""

__version__ = "0.1.0"

from ethnobotany.analysis import AnalysisResult, run_analysis
from ethnobotany.bayesian import BayesianFit, PriorConfig, fit_bayesian_glm
from ethnobotany.config import AnalysisConfig
from ethnobotany.frequentist import OLSResult, fit_ols
from ethnobotany.posterior import PosteriorSample, describe_posterior
from ethnobotany.report import compare_significance, render_report
from ethnobotany.simulation import simulate_observations

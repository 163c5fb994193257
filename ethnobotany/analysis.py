import logging
import sys
from dataclasses import dataclass
from pathlib import Path

import pandas as pd

from ethnobotany.bayesian import BayesianFit, fit_bayesian_glm
from ethnobotany.config import AnalysisConfig, build_parser
from ethnobotany.exceptions import EthnobotanyError
from ethnobotany.frequentist import OLSResult, fit_ols
from ethnobotany.plotting import (
    plot_coefficient_densities,
    plot_observations,
    plot_trace,
)
from ethnobotany.posterior import describe_posterior
from ethnobotany.report import compare_significance, render_report, write_tables
from ethnobotany.simulation import simulate_observations

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AnalysisResult:
    config: AnalysisConfig
    table: pd.DataFrame
    ols: OLSResult
    bayes: BayesianFit
    summary: pd.DataFrame
    comparison: pd.DataFrame
    report: str


def run_analysis(config=None):
    config = AnalysisConfig() if config is None else config

    table = simulate_observations(seed=config.seed, n_rows=config.n_rows)
    ols = fit_ols(table)
    bayes = fit_bayesian_glm(
        table,
        prior=config.prior(),
        seed=config.seed,
        n_chains=config.n_chains,
        n_iterations=config.n_iterations,
        rhat_threshold=config.rhat_threshold,
        timeout=config.timeout,
        strict=config.strict,
    )
    summary = describe_posterior(
        bayes.sample,
        credible_mass=config.credible_mass,
        rope_range=config.rope_range(),
        table=table,
    )
    comparison = compare_significance(ols, summary)
    report = render_report(ols, summary, comparison)

    result = AnalysisResult(config, table, ols, bayes, summary, comparison, report)
    if config.output_dir is not None:
        save_outputs(result, config.output_dir)
    return result


def save_outputs(result, outdir):
    outdir = Path(outdir)
    outdir.mkdir(parents=True, exist_ok=True)
    (outdir / "report.txt").write_text(result.report, encoding="utf-8")
    write_tables(outdir, result.summary, result.comparison)
    result.bayes.sample.inference_data.to_netcdf(str(outdir / "posterior.nc"))
    plot_observations(result.table, outdir / "observations.png")
    plot_trace(result.bayes.sample, outdir / "trace.png")
    plot_coefficient_densities(result.bayes.sample, result.summary, outdir)
    logger.info(f"Saved analysis outputs to {outdir}")


def main(argv=None):
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        config = AnalysisConfig.from_namespace(args)
        result = run_analysis(config)
    except (EthnobotanyError, ValueError) as e:
        logger.error(f"Analysis failed: {e}")
        return 1
    print(result.report)
    return 0


if __name__ == "__main__":
    sys.exit(main())

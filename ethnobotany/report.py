import logging
from pathlib import Path

import pandas as pd

logger = logging.getLogger(__name__)


def compare_significance(ols, summary):
    """Frequentist p-value next to the pd-derived pseudo p-value (1 - pd)."""
    names = [name for name in ols.names if name in summary.index]
    comparison = pd.DataFrame(
        {
            "p_value": [round(ols.coefficients[name].p_value, 3) for name in names],
            "pseudo_p": [1.0 - summary.loc[name, "pd"] for name in names],
        },
        index=pd.Index(names, name="coefficient"),
    )
    return comparison


def render_report(ols, summary, comparison):
    sections = [
        ("Frequentist model (OLS)", ols.summary_text),
        (
            "Bayesian posterior summary",
            summary.to_string(float_format=lambda v: f"{v:.3f}"),
        ),
        (
            "p-value vs. 1 - probability of direction",
            comparison.to_string(float_format=lambda v: f"{v:.3f}"),
        ),
    ]
    return "\n\n".join(f"{title}\n{'=' * len(title)}\n{body}" for title, body in sections) + "\n"


def write_tables(outdir, summary, comparison):
    outdir = Path(outdir)
    outdir.mkdir(parents=True, exist_ok=True)
    summary_path = outdir / "posterior_summary.csv"
    comparison_path = outdir / "comparison.csv"
    summary.to_csv(summary_path)
    comparison.to_csv(comparison_path)
    logger.info(f"Wrote {summary_path} and {comparison_path}")
    return summary_path, comparison_path

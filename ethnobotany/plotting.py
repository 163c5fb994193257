import logging
import re
from pathlib import Path

import arviz as az
import matplotlib.pyplot as plt
import seaborn as sns

logger = logging.getLogger(__name__)


def _slug(name):
    return re.sub(r"[^0-9A-Za-z]+", "_", name).strip("_").lower()


def plot_observations(table, path):
    fig, ax = plt.subplots(figsize=(8, 6))
    sns.scatterplot(
        table, x="proportion_used", y="abundance", hue="use_medicine",
        size="distance", ax=ax,
    )
    fig.savefig(path)
    plt.close(fig)
    return Path(path)


def plot_trace(sample, path):
    axes = az.plot_trace(sample.inference_data, var_names=["beta"], compact=False)
    fig = axes.ravel()[0].figure
    fig.savefig(path)
    plt.close(fig)
    return Path(path)


def plot_coefficient_densities(sample, summary, outdir):
    """One posterior density per coefficient, median marked and ROPE shaded."""
    outdir = Path(outdir)
    outdir.mkdir(parents=True, exist_ok=True)
    paths = []
    for name in sample.names:
        row = summary.loc[name]
        fig, ax = plt.subplots(figsize=(6, 4))
        az.plot_dist(sample.flat(name), ax=ax)
        ax.axvline(row["median"], color="k", linestyle="--", label="median")
        ax.axvspan(row["rope_low"], row["rope_high"], color="tab:red", alpha=0.2, label="ROPE")
        ax.set_title(name)
        ax.legend()
        path = outdir / f"posterior_{_slug(name)}.png"
        fig.savefig(path)
        plt.close(fig)
        paths.append(path)
    logger.info(f"Wrote {len(paths)} posterior density plots to {outdir}")
    return paths

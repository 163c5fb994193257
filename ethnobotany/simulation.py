import logging

import numpy as np
import pandas as pd

from ethnobotany.exceptions import SimulationError

logger = logging.getLogger(__name__)

OUTCOME = "abundance"
COLUMNS = (OUTCOME, "proportion_used", "distance", "use_medicine")

# Closed ranges, sampled on a grid of unit steps starting at the lower bound
ABUNDANCE_RANGE = (10.5, 60.5)
PROPORTION_USED_RANGE = (0.1, 100.0)
DISTANCE_RANGE = (0.01, 5.5)
USE_MEDICINE_LEVELS = (0, 1)


def unit_grid(low, high):
    """Values low, low + 1, ... up to and including high."""
    if high < low:
        raise SimulationError(f"empty sampling range [{low}, {high}]")
    n_steps = int(np.floor(high - low + 1e-9))
    # round away the float noise of low + k
    return np.round(low + np.arange(n_steps + 1, dtype=float), 10)


def simulate_observations(seed=123, n_rows=20):
    """Simulate the ethnobotany observation table.

    Every column is drawn with replacement from its grid using one generator
    seeded with ``seed``, so equal ``(seed, n_rows)`` give identical tables.
    """
    if isinstance(n_rows, bool) or not isinstance(n_rows, (int, np.integer)):
        raise SimulationError(f"n_rows must be an integer, got {n_rows!r}")
    if n_rows < 1:
        raise SimulationError(f"n_rows must be positive, got {n_rows}")

    rng = np.random.default_rng(seed)
    abundance = rng.choice(unit_grid(*ABUNDANCE_RANGE), size=n_rows, replace=True)
    proportion_used = rng.choice(
        unit_grid(*PROPORTION_USED_RANGE), size=n_rows, replace=True
    )
    distance = rng.choice(unit_grid(*DISTANCE_RANGE), size=n_rows, replace=True)
    use_medicine = rng.choice(USE_MEDICINE_LEVELS, size=n_rows, replace=True)

    table = pd.DataFrame(
        {
            "abundance": abundance,
            "proportion_used": proportion_used,
            "distance": distance,
            "use_medicine": pd.Categorical(
                use_medicine, categories=list(USE_MEDICINE_LEVELS)
            ),
        }
    )
    logger.info(f"Simulated {n_rows} observations with seed {seed}")
    return table


def validate_observations(table):
    """Check an observation table and return it with ``use_medicine`` as a
    two-level categorical."""
    missing = [col for col in COLUMNS if col not in table.columns]
    if missing:
        raise SimulationError(f"observation table is missing columns {missing}")
    if table[list(COLUMNS)].isna().any().any():
        raise SimulationError("observation table contains missing values")

    try:
        indicator = np.asarray(table["use_medicine"], dtype=float)
    except (TypeError, ValueError) as e:
        raise SimulationError(f"use_medicine must be numeric 0/1: {e}") from e
    levels = set(indicator.tolist())
    if not levels <= set(USE_MEDICINE_LEVELS):
        raise SimulationError(
            f"use_medicine must only hold {USE_MEDICINE_LEVELS}, found {sorted(levels)}"
        )

    table = table[list(COLUMNS)].copy()
    table["use_medicine"] = pd.Categorical(
        indicator.astype(int),
        categories=list(USE_MEDICINE_LEVELS),
    )
    return table

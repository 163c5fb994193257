import logging
from dataclasses import dataclass
from types import MappingProxyType

import numpy as np
import pandas as pd
import patsy
import statsmodels.api as sm

from ethnobotany.exceptions import SingularDesignMatrixError
from ethnobotany.simulation import validate_observations

logger = logging.getLogger(__name__)

# use_medicine is categorical, so patsy expands it to use_medicine[T.1]
DEFAULT_FORMULA = "abundance ~ proportion_used + distance + use_medicine"
INTERCEPT = "Intercept"


@dataclass(frozen=True)
class CoefficientEstimate:
    estimate: float
    std_error: float
    t_value: float
    p_value: float


@dataclass(frozen=True)
class OLSResult:
    formula: str
    coefficients: MappingProxyType
    adj_r_squared: float
    df_resid: float
    summary_text: str

    @property
    def names(self):
        return tuple(self.coefficients)

    def to_frame(self):
        return pd.DataFrame.from_dict(
            {name: vars(est) for name, est in self.coefficients.items()},
            orient="index",
        )


def design_matrices(table, formula=DEFAULT_FORMULA):
    """Outcome series and design matrix (with intercept) for ``formula``."""
    table = validate_observations(table)
    y, X = patsy.dmatrices(formula, table, return_type="dataframe")
    return y.iloc[:, 0], X


def check_design(X):
    n_rows, n_cols = X.shape
    if n_rows <= n_cols:
        raise SingularDesignMatrixError(
            f"{n_rows} rows cannot identify {n_cols} coefficients"
        )
    rank = np.linalg.matrix_rank(X.to_numpy())
    if rank < n_cols:
        raise SingularDesignMatrixError(
            f"design matrix has rank {rank} < {n_cols} columns {list(X.columns)}"
        )


def fit_ols(table, formula=DEFAULT_FORMULA):
    y, X = design_matrices(table, formula)
    check_design(X)

    logger.info(f"Fitting OLS: {formula}")
    results = sm.OLS(y, X).fit()
    coefficients = {
        name: CoefficientEstimate(
            estimate=float(results.params[name]),
            std_error=float(results.bse[name]),
            t_value=float(results.tvalues[name]),
            p_value=float(results.pvalues[name]),
        )
        for name in X.columns
    }
    logger.info(f"OLS adjusted R^2 = {results.rsquared_adj:.3f}")
    return OLSResult(
        formula=formula,
        coefficients=MappingProxyType(coefficients),
        adj_r_squared=float(results.rsquared_adj),
        df_resid=float(results.df_resid),
        summary_text=results.summary().as_text(),
    )

"""Exceptions raised by the ethnobotany analysis pipeline.

Every error derives from EthnobotanyError so that a caller can catch the whole
family at once. Nothing is recovered locally: each stage raises and the caller
decides what to do.
"""


class EthnobotanyError(Exception):
    """Base class for all errors raised by the package."""


class SimulationError(EthnobotanyError):
    """Raised when the observation table cannot be simulated or is malformed."""


class SingularDesignMatrixError(EthnobotanyError):
    """Raised when the OLS design matrix has no unique solution.

    This happens when regressors are collinear, an indicator column is constant
    or there are no more rows than columns.
    """


class InvalidPriorError(EthnobotanyError):
    """Raised for an unknown prior family or inconsistent prior parameters."""


class SamplerNonConvergenceError(EthnobotanyError):
    """Raised in strict mode when R-hat stays above the configured threshold.

    The unreliable fit is kept on the ``fit`` attribute so that it is not lost.
    """

    def __init__(self, message, fit=None):
        super().__init__(message)
        self.fit = fit


class InsufficientChainsError(EthnobotanyError):
    """Raised when a between-chain diagnostic is requested for fewer than 2 chains."""


class SamplerTimeoutError(EthnobotanyError):
    """Raised when MCMC sampling does not finish within the configured timeout."""


class ConvergenceWarning(UserWarning):
    """Emitted when a posterior sample is returned despite failing R-hat."""

import argparse
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Optional

from ethnobotany.bayesian import (
    DEFAULT_N_CHAINS,
    DEFAULT_N_ITERATIONS,
    DEFAULT_RHAT_THRESHOLD,
    PRIOR_FAMILIES,
    PriorConfig,
)
from ethnobotany.posterior import DEFAULT_CREDIBLE_MASS, MIN_DRAWS_PER_CHAIN


@dataclass(frozen=True)
class AnalysisConfig:
    seed: int = 123
    n_rows: int = 20
    prior_family: str = "gaussian"
    n_chains: int = DEFAULT_N_CHAINS
    n_iterations: int = DEFAULT_N_ITERATIONS
    credible_mass: float = DEFAULT_CREDIBLE_MASS
    # None means 0.1 standard deviations of the outcome
    rope_half_width: Optional[float] = None
    rhat_threshold: float = DEFAULT_RHAT_THRESHOLD
    timeout: Optional[float] = None
    output_dir: Optional[Path] = None
    strict: bool = False

    def __post_init__(self):
        if self.n_chains < 1:
            raise ValueError(f"n_chains must be at least 1, got {self.n_chains}")
        if self.n_iterations < 2:
            raise ValueError(f"n_iterations must be at least 2, got {self.n_iterations}")
        n_draws = self.n_iterations - self.n_iterations // 2
        if self.n_chains >= 2 and n_draws < MIN_DRAWS_PER_CHAIN:
            raise ValueError(
                f"n_iterations={self.n_iterations} leaves {n_draws} post-warm-up draws "
                f"per chain; R-hat needs at least {MIN_DRAWS_PER_CHAIN}"
            )
        if not 0 < self.credible_mass < 1:
            raise ValueError(f"credible_mass must lie in (0, 1), got {self.credible_mass}")
        if self.rope_half_width is not None and self.rope_half_width < 0:
            raise ValueError(f"rope_half_width must be >= 0, got {self.rope_half_width}")
        if self.timeout is not None and self.timeout <= 0:
            raise ValueError(f"timeout must be positive, got {self.timeout}")
        # raises InvalidPriorError for an unknown family
        self.prior()

    def prior(self):
        return PriorConfig(family=self.prior_family)

    def rope_range(self):
        if self.rope_half_width is None:
            return None
        return -self.rope_half_width, self.rope_half_width

    @classmethod
    def from_args(cls, argv=None):
        return cls.from_namespace(build_parser().parse_args(argv))

    @classmethod
    def from_namespace(cls, args):
        names = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in vars(args).items() if k in names})


def build_parser():
    defaults = AnalysisConfig.__dataclass_fields__
    parser = argparse.ArgumentParser(
        prog="ethnobotany-glm",
        description=(
            "Compare OLS and Bayesian linear regression on a simulated "
            "ethnobotany dataset."
        ),
    )
    parser.add_argument("--seed", type=int, default=defaults["seed"].default)
    parser.add_argument("--n-rows", type=int, default=defaults["n_rows"].default)
    parser.add_argument(
        "--prior-family", choices=PRIOR_FAMILIES,
        default=defaults["prior_family"].default,
    )
    parser.add_argument("--n-chains", type=int, default=defaults["n_chains"].default)
    parser.add_argument(
        "--n-iterations", type=int, default=defaults["n_iterations"].default,
        help="iterations per chain, half of them warm-up",
    )
    parser.add_argument(
        "--credible-mass", type=float, default=defaults["credible_mass"].default
    )
    parser.add_argument(
        "--rope-half-width", type=float, default=None,
        help="defaults to 0.1 standard deviations of abundance",
    )
    parser.add_argument(
        "--rhat-threshold", type=float, default=defaults["rhat_threshold"].default
    )
    parser.add_argument(
        "--timeout", type=float, default=None, help="sampler timeout in seconds"
    )
    parser.add_argument(
        "--output-dir", type=Path, default=None,
        help="write tables, posterior trace and plots here",
    )
    parser.add_argument(
        "--strict", action="store_true",
        help="fail instead of warning when the sampler does not converge",
    )
    parser.add_argument("-v", "--verbose", action="store_true")
    return parser

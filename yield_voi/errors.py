"""
Exception taxonomy for the Yield Strength VoI Analyzer.

All three errors are fatal to the enclosing computation.  Each carries
the stage that raised it and the relevant input size so a failed run
can be diagnosed from the message alone.
"""

from typing import Optional


class YieldVoIError(Exception):
    """Base class for all analyzer errors."""


class InvalidParameterError(YieldVoIError, ValueError):
    """A distribution or model parameter is outside its domain."""


class InsufficientDataError(YieldVoIError, ValueError):
    """A sample is empty or too small for the requested computation.

    Parameters
    ----------
    stage : str
        Computation that rejected the sample, e.g. ``"fit_mle"``.
    n_available : int
        Size of the sample that was passed in.
    n_required : int
        Minimum size the stage needs.
    """

    def __init__(self, stage: str, n_available: int, n_required: int,
                 detail: str = ""):
        self.stage = stage
        self.n_available = n_available
        self.n_required = n_required
        self.detail = detail
        msg = (
            f"{stage}: need at least {n_required} value(s), "
            f"got {n_available}."
        )
        if detail:
            msg += f" {detail}"
        super().__init__(msg)

    def __reduce__(self):
        return (type(self), (self.stage, self.n_available, self.n_required,
                             self.detail))


class ModelDivergenceError(YieldVoIError, RuntimeError):
    """The posterior sampler produced a non-finite log density."""

    def __init__(self, stage: str, n_measurements: int,
                 chain: Optional[int] = None, iteration: Optional[int] = None,
                 detail: str = ""):
        self.stage = stage
        self.n_measurements = n_measurements
        self.chain = chain
        self.iteration = iteration
        self.detail = detail
        where = f"chain {chain}" if chain is not None else "sampler"
        if iteration is not None:
            where += f", iteration {iteration}"
        msg = (
            f"{stage}: non-finite log posterior in {where} "
            f"(N={n_measurements} measurements)."
        )
        if detail:
            msg += f" {detail}"
        super().__init__(msg)

    def __reduce__(self):
        # Rebuilt from fields when raised inside a worker process
        return (type(self), (self.stage, self.n_measurements, self.chain,
                             self.iteration, self.detail))

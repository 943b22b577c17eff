"""
Example data generator for the Yield Strength VoI Analyzer.

Creates a synthetic ``{id, yield_MPa}`` CSV for testing and
demonstration.  True specimen strengths are drawn around 320 MPa with a
25 MPa specimen-to-specimen spread, then measured with 5 MPa noise, so
the default 300 MPa threshold sits inside the plausible range and the
redesign decision is not obvious.
"""

import os

from .constants import DEFAULT_EPSILON
from .csv_parser import write_measurements
from .data_model import MeasurementSet
from .random_stream import RandomStream, derive_seed


def example_measurements(
    n: int = 10,
    *,
    true_mean: float = 320.0,
    true_sd: float = 25.0,
    epsilon: float = DEFAULT_EPSILON,
    seed: int = 42,
) -> MeasurementSet:
    """Synthetic measurement set drawn from the generative model."""
    rng = RandomStream(derive_seed(seed, "example_data"))
    latent = rng.truncated_normal(true_mean, true_sd, 0.0, size=n)
    measured = latent + rng.normal(0.0, epsilon, size=n)
    return MeasurementSet.from_values([round(float(v), 1) for v in measured])


def generate_example_csv(output_dir: str, filename: str = "yield_measurements.csv",
                         **kwargs) -> str:
    """Write an example CSV into *output_dir* and return its path."""
    os.makedirs(output_dir, exist_ok=True)
    path = os.path.join(output_dir, filename)
    return write_measurements(example_measurements(**kwargs), path)

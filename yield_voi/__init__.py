"""
Yield Strength VoI Analyzer v1.0.0

Decision analysis of measured material yield strength: fits a
hierarchical model to noisy strength measurements, evaluates the
expected cost of three redesign actions over the posterior predictive,
and estimates the expected value of perfect and imperfect information
for additional testing of varying precision.

Reads a CSV of ``{id, yield_MPa}`` records and produces plain-data
tables and figure datasets, with optional matplotlib renderers.
"""

APP_NAME = "Yield Strength VoI Analyzer"
APP_VERSION = "1.0.0"
APP_DATE = "2026-10-18"
__version__ = APP_VERSION

"""
Constants for the Yield Strength VoI Analyzer.

Centralises the model priors, decision inputs, sampler defaults,
CSV column names, the plot palette and export settings.
"""

# ── Decision actions (fixed order; ties resolve to the earliest) ────────
ACTION_NO_ACTION = "no_action"
ACTION_INCREASE_RESISTANCE = "increase_resistance"
ACTION_CHANGE_OPERATION = "change_operation"
ACTIONS = (
    ACTION_NO_ACTION,
    ACTION_INCREASE_RESISTANCE,
    ACTION_CHANGE_OPERATION,
)

ACTION_LABELS = {
    ACTION_NO_ACTION: "No action",
    ACTION_INCREASE_RESISTANCE: "Increase resistance",
    ACTION_CHANGE_OPERATION: "Change operation",
}

# ── Hierarchical model priors ───────────────────────────────────────────
PRIOR_MEAN_MU = 300.0        # MPa, Normal prior on the population mean
PRIOR_MEAN_SD = 100.0        # MPa
PRIOR_SD_RATE = 1.0 / 50.0   # Exponential prior on the population std (mean 50 MPa)
DEFAULT_EPSILON = 5.0        # MPa, known measurement-noise std of the historical tests
PREDICTIVE_LOWER_BOUND = 0.0

# ── Decision inputs ─────────────────────────────────────────────────────
DEFAULT_THRESHOLD_MPA = 300.0
DEFAULT_COST_OF_FAILURE = 1_000_000.0

# action -> (fixed_cost, strength_multiplier)
DEFAULT_COSTS = {
    ACTION_NO_ACTION:           (0.0, 1.00),
    ACTION_INCREASE_RESISTANCE: (60_000.0, 1.10),
    ACTION_CHANGE_OPERATION:    (150_000.0, 1.25),
}

# ── Sampler defaults ────────────────────────────────────────────────────
DEFAULT_SEED = 2024
DEFAULT_N_CHAINS = 4
DEFAULT_N_DRAWS = 1000
DEFAULT_N_WARMUP = 1000
SLICE_WIDTH = 1.0            # initial bracket width on log(sigma)
SLICE_MAX_STEPS = 50
RHAT_WARNING_LEVEL = 1.01

# ── Parallel execution ──────────────────────────────────────────────────
PARALLEL_BACKENDS = ("process", "thread")
DEFAULT_PARALLEL_BACKEND = "process"

# ── Value-of-information sweep defaults ─────────────────────────────────
DEFAULT_NOISE_LEVELS = (1.0, 5.0, 10.0, 20.0, 30.0)
DEFAULT_N_TESTS = 6
DEFAULT_MAX_BATCHES = 200
# Inner posterior updates are cheaper than the baseline fit
DEFAULT_VOI_N_CHAINS = 2
DEFAULT_VOI_N_DRAWS = 500
DEFAULT_VOI_N_WARMUP = 500
MONOTONIC_N_SIGMA = 3.0

# ── Bootstrap / MOTE defaults ───────────────────────────────────────────
DEFAULT_BOOTSTRAP_RESAMPLES = 2000
DEFAULT_CONFIDENCE_LEVEL = 0.95
MOTE_N_RANGE = tuple(range(3, 16))
MOTE_N_REPLICATES = 200

# Lowest of 3-5, second-lowest of 6-10, third-lowest of 11-15
MOTE_RANK_TABLE = {
    3: 1, 4: 1, 5: 1,
    6: 2, 7: 2, 8: 2, 9: 2, 10: 2,
    11: 3, 12: 3, 13: 3, 14: 3, 15: 3,
}

# ── CSV input columns ───────────────────────────────────────────────────
COL_ID = "id"
COL_YIELD = "yield_MPa"

# ── Plot palette ────────────────────────────────────────────────────────
PLOT_PALETTE = {
    'primary':        '#0033A1',
    'primary_light':  '#3366CC',
    'prior':          '#BFBFBF',
    'posterior':      '#4472C4',
    'threshold':      '#C00000',
    'zero_line':      '#333333',
    'mean_line':      '#ED7D31',
    'baseline_line':  '#C00000',
    'action_colors': {
        ACTION_NO_ACTION:           '#70AD47',
        ACTION_INCREASE_RESISTANCE: '#ED7D31',
        ACTION_CHANGE_OPERATION:    '#7030A0',
    },
    'chain_cycle': [
        '#0033A1', '#ED7D31', '#70AD47', '#FFC000', '#5B9BD5',
        '#C00000', '#7030A0', '#00B050',
    ],
}

# ── Export settings ─────────────────────────────────────────────────────
EXPORT_DPI = 300
EXPORT_WIDTH_INCHES = 6.0
EXPORT_TEXT_COLOR = '#333333'
EXPORT_BG_COLOR = '#ffffff'

# ── Matplotlib report style dict ────────────────────────────────────────
PLOT_STYLE_LIGHT = {
    'figure.facecolor':  '#ffffff',
    'axes.facecolor':    '#ffffff',
    'axes.edgecolor':    '#333333',
    'axes.labelcolor':   '#1a1a2e',
    'text.color':        '#1a1a2e',
    'xtick.color':       '#333333',
    'ytick.color':       '#333333',
    'xtick.labelsize':   7,
    'ytick.labelsize':   7,
    'axes.labelsize':    8,
    'axes.titlesize':    9,
    'legend.fontsize':   6.5,
    'grid.color':        '#cccccc',
    'legend.facecolor':  '#ffffff',
    'legend.edgecolor':  '#999999',
}

# Composite score weights (must sum to 1.0)
DEFAULT_WEIGHTS = {
    "percentile": 0.40,           # How good the queue position is
    "consistency": 0.25,          # Reliability across events
    "recent_performance": 0.15,   # Recent trend
    "event_coverage": 0.10,       # More events = more data
    "purchase_success": 0.10,     # Proven to convert
}

# Tolerance for the weight-sum check
WEIGHT_SUM_TOLERANCE = 1e-6

# Account aggregation
RECENT_EVENT_COUNT = 3        # Events in the "recent" window
MAX_EVENTS_FOR_NORM = 10      # Events needed for full coverage credit

# Std dev (percentage points) that maps to a consistency score of 0
CONSISTENCY_STDDEV_CALIBRATION = 25.0

# Baseline composite for accounts with no queue data
BASELINE_COMPOSITE = 25.0
BASELINE_COMPOSITE_PURCHASED = 35.0
BASELINE_CONSISTENCY_CONTRIBUTION = 25.0
BASELINE_PURCHASE_CONTRIBUTION = 10.0
NO_DATA_REASON = "No queue data available"

# Confidence tiers by events entered
MEDIUM_CONFIDENCE_MIN_EVENTS = 2
HIGH_CONFIDENCE_MIN_EVENTS = 4

# Reroll analysis
REROLL_MIN_EVENTS_EACH_SIDE = 2
REROLL_SIGNIFICANT_CHANGE = 10.0   # Percentage points
REROLL_TOP_CHANGED_LIMIT = 50

# Distribution analysis
TIER_MIN_POSITIONS = 10
TIER_GAP_SIGNIFICANCE = 3.0
TIER_LINEARITY_CUTOFF = 0.7
JENKS_MIN_POSITIONS = 20
DEFAULT_MAX_TIERS = 4
HISTOGRAM_BUCKETS = 20
SCATTER_MAX_POINTS = 500      # Scatter series is downsampled beyond this

"""
Hybrid inference constants only.

=============================================================================
CONVENTION QUICK REFERENCE
=============================================================================

KEYS:
  Continuous keys are plain non-negative ints.
  Discrete keys are (key, cardinality) pairs, totally ordered by key.

DECISION TREES:
  from_values(): first key is most significant (root), last key varies fastest.
  apply2(): result branches on the union of labels in ascending key order.

ABSENT LEAVES:
  None leaf = zero contribution (empty GaussianFactorGraph) when combining.
  Empty branch graph = absent conditional after elimination.
=============================================================================
"""

# =============================================================================
# TOLERANCES
# =============================================================================

# Default absolute tolerance for equals() on factors/conditionals/mixtures
EQUALITY_TOL_DEFAULT = 1e-9

# Diagonal of R smaller than this (in abs) => frontal block is rank deficient
RANK_TOL_DEFAULT = 1e-9

# =============================================================================
# LOGGING
# =============================================================================

LOG_LEVEL_DEFAULT = "INFO"
LOG_LEVEL_ENV_VAR = "HYBRID_SLAM_LOG_LEVEL"
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")

# =============================================================================
# PRINTING
# =============================================================================

MIXTURE_PRINT_PREFIX_DEFAULT = "GaussianMixtureConditional\n"

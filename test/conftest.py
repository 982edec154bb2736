import os
import sys

import numpy as np
import pytest

# Ensure local package import works for pytest collection.
_TEST_DIR = os.path.dirname(__file__)
_PKG_ROOT = os.path.abspath(os.path.join(_TEST_DIR, ".."))
if _PKG_ROOT not in sys.path:
    sys.path.insert(0, _PKG_ROOT)

from hybrid_slam.linear.gaussian_conditional import GaussianConditional  # noqa: E402

from factor_builders import X1, prior  # noqa: E402


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def cond_a() -> GaussianConditional:
    return prior(X1, 0.0)


@pytest.fixture
def cond_b() -> GaussianConditional:
    return prior(X1, 2.0)


@pytest.fixture
def base_config_path() -> str:
    """Path to the shipped default parameter file."""
    path = os.path.join(_PKG_ROOT, "config", "hybrid_base.yaml")
    if not os.path.exists(path):
        pytest.skip("config/hybrid_base.yaml not found")
    return path


@pytest.fixture
def numpy_seed():
    """Set numpy random seed for reproducible tests."""
    np.random.seed(42)
    yield

"""Pytest configuration and shared fixtures for dualqp tests.

This module provides:
- Deterministic RNG fixtures for numpy and torch
- A factory for random strictly convex QPs with a known interior point
"""

import os
from typing import Callable, Dict

import numpy as np
import pytest
import torch


@pytest.fixture(scope="function")
def rng() -> np.random.Generator:
    """Provide a deterministic numpy RNG for tests.

    Uses seed from TEST_RNG_SEED environment variable (default: 0).
    """
    seed = int(os.environ.get("TEST_RNG_SEED", "0"))
    return np.random.default_rng(seed)


@pytest.fixture(scope="function", autouse=True)
def set_random_seeds() -> None:
    """Auto-use fixture to set global random seeds for reproducibility."""
    seed = int(os.environ.get("TEST_RNG_SEED", "0"))
    np.random.seed(seed)
    torch.manual_seed(seed)


@pytest.fixture(scope="function")
def random_qp(rng: np.random.Generator) -> Callable[..., Dict[str, np.ndarray]]:
    """Factory for feasible QPs with a strictly interior point.

    The Hessian is ``M M^T + n I``; inequalities are satisfied with slack in
    ``[0.1, 1]`` at a random point ``x_feas`` that also satisfies the
    equalities.
    """

    def _make(n: int, n_eq: int, n_ineq: int) -> Dict[str, np.ndarray]:
        m = rng.standard_normal((n, n))
        H = m @ m.T + n * np.eye(n)
        g0 = rng.standard_normal(n) * 5.0
        x_feas = rng.standard_normal(n)
        CE = rng.standard_normal((n_eq, n))
        ce0 = -CE @ x_feas
        CI = rng.standard_normal((n_ineq, n))
        ci0 = -CI @ x_feas + rng.uniform(0.1, 1.0, size=n_ineq)
        return {"H": H, "g0": g0, "CE": CE, "ce0": ce0, "CI": CI, "ci0": ci0}

    return _make

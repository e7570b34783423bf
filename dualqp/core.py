"""
Problem, configuration and result dataclasses for the QP engine.

Problems follow the Goldfarb–Idnani sign convention::

    minimize    0.5 x^T H x + g0^T x
    subject to  CE x + ce0  = 0
                CI x + ci0 >= 0

Equality rows are reported in active sets with the encoding ``-i - 1`` so
that callers can tell them apart from inequality indices ``>= 0``.

References:
    - Goldfarb & Idnani, "A numerically stable dual method for solving
      strictly convex quadratic programs", Math. Programming 27 (1983)
    - Nocedal & Wright, *Numerical Optimization* (2006), Section 16.5
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple

import numpy as np

from .utils import as_float_array, constraint_block

DEFAULT_MAX_ITER = 1000

DEBUG_ENV_VAR = "DUALQP_DEBUG"


def checks_from_env() -> bool:
    """Whether ``DUALQP_DEBUG`` asks for factorization checks (``1/true/yes/on``)."""
    return os.getenv(DEBUG_ENV_VAR, "0").strip().lower() in ("1", "true", "yes", "on")


class Status(Enum):
    """Exit status of the dual active-set solver."""

    OPTIMAL = "optimal"
    UNBOUNDED = "unbounded"
    MAX_ITER_REACHED = "max_iter_reached"
    REDUNDANT_EQUALITIES = "redundant_equalities"


_MESSAGES = {
    Status.OPTIMAL: "No violated constraint remains",
    Status.UNBOUNDED: "Dual problem is unbounded (primal infeasible)",
    Status.MAX_ITER_REACHED: "Maximum iterations reached",
    Status.REDUNDANT_EQUALITIES: "Constraints are linearly dependent",
}


def status_message(status: Status) -> str:
    """Human-readable description of ``status``."""
    return _MESSAGES[status]


def encode_equality(index: int) -> int:
    """Active-set code for equality row ``index``."""
    return -index - 1


def decode_active(code: int) -> Tuple[bool, int]:
    """Return ``(is_equality, row)`` for an active-set entry."""
    if code < 0:
        return True, -code - 1
    return False, code


@dataclass
class SolverConfig:
    """
    Configuration for :class:`~dualqp.solver.DualActiveSetSolver`.

    Attributes:
        max_iter: Cap on outer iterations (violation selections).
        warm_start: Replay the active set recorded by the previous solve of
            the same problem shape before entering the main loop.
        check_invariants: Verify ``J^T N = [R; 0]`` after every constraint
            update and raise ``RuntimeError`` on drift. Defaults to the
            ``DUALQP_DEBUG`` environment variable at construction time.
    """

    max_iter: int = DEFAULT_MAX_ITER
    warm_start: bool = False
    check_invariants: bool = field(default_factory=checks_from_env)

    def __post_init__(self) -> None:
        if self.max_iter < 0:
            raise ValueError(f"max_iter must be non-negative, got {self.max_iter}.")


@dataclass
class QPProblem:
    """
    Dense convex quadratic program.

    ``CE``/``ce0`` and ``CI``/``ci0`` may be ``None`` to describe a problem
    without equality or inequality constraints. All fields are converted to
    ``float64`` NumPy arrays on construction.
    """

    H: np.ndarray
    g0: np.ndarray
    CE: Optional[np.ndarray] = None
    ce0: Optional[np.ndarray] = None
    CI: Optional[np.ndarray] = None
    ci0: Optional[np.ndarray] = None

    def __post_init__(self) -> None:
        self.g0 = as_float_array(self.g0, "g0", ndim=1)
        n = self.g0.shape[0]
        self.H = as_float_array(self.H, "H", ndim=2)
        if self.H.shape != (n, n):
            raise ValueError(
                f"H must have shape {(n, n)} to match g0, got {self.H.shape}"
            )
        self.CE, self.ce0 = constraint_block(self.CE, self.ce0, n, "CE", "ce0")
        self.CI, self.ci0 = constraint_block(self.CI, self.ci0, n, "CI", "ci0")

    @property
    def dims(self) -> Tuple[int, int, int]:
        """``(n_vars, n_eq, n_ineq)``."""
        return self.g0.shape[0], self.ce0.shape[0], self.ci0.shape[0]


@dataclass
class QPResult:
    """
    Solution container returned by the solver.

    Attributes:
        x: Last primal iterate. Only optimal for ``Status.OPTIMAL``.
        fun: Objective value tracked alongside ``x``.
        status: Solver exit status.
        message: Human-readable string explaining the status.
        nit: Number of outer iterations performed.
        active_set: Active constraint codes in insertion order (equality
            row ``i`` appears as ``-i - 1``).
        multipliers: Lagrange multipliers matching ``active_set``.
    """

    x: np.ndarray
    fun: float
    status: Status
    message: str
    nit: int
    active_set: np.ndarray = field(default_factory=lambda: np.zeros(0, dtype=int))
    multipliers: np.ndarray = field(default_factory=lambda: np.zeros(0))

    @property
    def active_set_size(self) -> int:
        return int(self.active_set.shape[0])

    @property
    def success(self) -> bool:
        return self.status is Status.OPTIMAL


__all__ = [
    "DEFAULT_MAX_ITER",
    "Status",
    "status_message",
    "encode_equality",
    "decode_active",
    "SolverConfig",
    "QPProblem",
    "QPResult",
]

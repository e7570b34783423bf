"""
Persistent buffers of the dual active-set solver.

A :class:`QPWorkspace` is allocated once per problem shape
``(n_vars, n_eq, n_ineq)`` and overwritten in place by every solve of that
shape. It is owned by exactly one solver and must not be shared between
concurrent solves.
"""

from __future__ import annotations

from typing import Tuple

import numpy as np


class QPWorkspace:
    """
    Factorization state shared by the active-set driver and the updater.

    Attributes:
        J: ``(n, n)`` factor with ``J J^T = H^{-1}``, rotated in place.
        R: ``(n, n)`` upper-triangular factor of the active normals; only
            the leading ``iq x iq`` block is meaningful.
        active_set: Active constraint codes; slots ``[0, n_eq)`` hold the
            equalities (encoded ``-i - 1``), ``[n_eq, iq)`` the active
            inequalities, slot ``iq`` the candidate being added.
        d, z, r, normal: Constraint normal in the ``J`` basis, primal step
            direction, dual step direction and the candidate normal.
        s: Inequality values ``CI x + ci0``.
        u: Lagrange multipliers of ``active_set``.
        inactive: Per-inequality index, ``-1`` while active.
        eligible: Per-inequality flag, cleared after a degenerate add.
        iq: Number of constraints in the current factorization.
        q: Active-set size recorded by the last solve (warm start source).
        R_norm: Running estimate of the largest diagonal of ``R``.
        replayable: True after an optimal solve; a warm start replays
            ``active_set[n_eq:q]`` only then.
    """

    def __init__(self, n_vars: int, n_eq: int, n_ineq: int) -> None:
        if min(n_vars, n_eq, n_ineq) < 0:
            raise ValueError("Problem dimensions must be non-negative.")
        self.n_vars = n_vars
        self.n_eq = n_eq
        self.n_ineq = n_ineq
        m = n_eq + n_ineq

        self.J = np.zeros((n_vars, n_vars))
        self.R = np.zeros((n_vars, n_vars))
        self.d = np.zeros(n_vars)
        self.z = np.zeros(n_vars)
        self.normal = np.zeros(n_vars)
        self.r = np.zeros(m)
        self.u = np.zeros(m)
        self.s = np.zeros(n_ineq)
        self.active_set = np.zeros(m, dtype=int)
        self.inactive = np.arange(n_ineq)
        self.eligible = np.ones(n_ineq, dtype=bool)

        # Rollback checkpoint, never aliased with the live buffers
        self.x_old = np.zeros(n_vars)
        self.u_old = np.zeros(m)
        self.active_set_old = np.zeros(m, dtype=int)
        self.J_old = np.zeros((n_vars, n_vars))
        self.R_old = np.zeros((n_vars, n_vars))
        self.f_old = 0.0
        self.iq_old = 0
        self.R_norm_old = 1.0
        # J_old/R_old are only filled once a constraint is dropped after save()
        self.factors_saved = False

        self.iq = 0
        self.q = 0
        self.R_norm = 1.0
        # Whether active_set[n_eq:q] may seed a warm start
        self.replayable = False

    @property
    def dims(self) -> Tuple[int, int, int]:
        return self.n_vars, self.n_eq, self.n_ineq

    def matches(self, n_vars: int, n_eq: int, n_ineq: int) -> bool:
        """Whether the buffers fit a problem of the given shape."""
        return self.dims == (n_vars, n_eq, n_ineq)

    def begin(self) -> None:
        """Clear the per-solve factorization state (the recorded ``q`` survives)."""
        self.R.fill(0.0)
        self.d.fill(0.0)
        self.R_norm = 1.0
        self.iq = 0
        self.inactive[:] = np.arange(self.n_ineq)
        self.eligible.fill(True)
        self.factors_saved = False

    def save(self, x: np.ndarray, f_value: float) -> None:
        """Checkpoint ``x``, the multipliers and the active set."""
        iq = self.iq
        self.x_old[:] = x
        self.u_old[:iq] = self.u[:iq]
        self.active_set_old[:iq] = self.active_set[:iq]
        self.f_old = f_value
        self.iq_old = iq
        self.R_norm_old = self.R_norm
        self.factors_saved = False

    def save_factors(self) -> None:
        """
        Add ``J`` and ``R`` to the current checkpoint before the first drop.

        Until a constraint is dropped the factors still describe the
        checkpointed active set, so later calls are no-ops.
        """
        if self.factors_saved:
            return
        self.J_old[:, :] = self.J
        self.R_old[:, :] = self.R
        self.factors_saved = True

    def restore(self, x: np.ndarray) -> float:
        """
        Roll back to the last checkpoint and return the saved objective.

        The multipliers and the active set are restored for the current
        ``iq`` slots. When constraints were dropped since the checkpoint the
        factors are restored as well so that ``J``, ``R`` and the active set
        keep describing the same constraints.
        """
        if self.factors_saved:
            self.J[:, :] = self.J_old
            self.R[:, :] = self.R_old
            self.iq = self.iq_old
            self.R_norm = self.R_norm_old
            self.factors_saved = False
        iq = self.iq
        self.active_set[:iq] = self.active_set_old[:iq]
        self.u[:iq] = self.u_old[:iq]
        x[:] = self.x_old

        self.inactive[:] = np.arange(self.n_ineq)
        active_ineq = self.active_set[self.n_eq:iq]
        self.inactive[active_ineq] = -1
        return self.f_old

    def active_normals(self, CE: np.ndarray, CI: np.ndarray) -> np.ndarray:
        """Columns of the active constraint normals in insertion order."""
        columns = []
        for code in self.active_set[: self.iq]:
            columns.append(CE[-code - 1] if code < 0 else CI[code])
        if not columns:
            return np.zeros((self.n_vars, 0))
        return np.column_stack(columns)


__all__ = ["QPWorkspace"]

"""
Dual active-set solver for dense strictly convex quadratic programs.

Implements the Goldfarb–Idnani method. The solver starts from the
unconstrained minimizer ``x = -H^{-1} g0`` (which is dual feasible), forces
every equality into the working set and then repeatedly picks the most
violated inequality. For that constraint it either

- steps in primal and dual space until the constraint becomes active and
  adds it (full step),
- steps until an active inequality's multiplier reaches zero and drops that
  constraint (partial step), or
- changes the multipliers only and drops a constraint when no primal
  direction is left (dual step).

The working set is represented by ``J`` (``J J^T = H^{-1}``) and the
triangular ``R``, both updated with Givens rotations by
:mod:`dualqp.updates`. The buffers live in a :class:`QPWorkspace` that is
reused while the problem shape stays the same.

Example
-------
>>> import numpy as np
>>> from dualqp import DualActiveSetSolver
>>> solver = DualActiveSetSolver()
>>> res = solver.solve(np.eye(2), np.zeros(2), CI=[[1.0, 1.0]], ci0=[-1.0])
>>> res.status.value, res.x.round(3).tolist()
('optimal', [0.5, 0.5])
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Optional, Union

import numpy as np

from .core import (
    DEFAULT_MAX_ITER,
    QPProblem,
    QPResult,
    SolverConfig,
    Status,
    encode_equality,
    status_message,
)
from .diagnostics import check_factorization
from .logging import get_logger
from .updates import add_constraint, delete_constraint
from .utils import (
    EPS,
    as_float_array,
    cholesky_inverse_factor,
    cholesky_lower,
    cholesky_solve,
    upper_triangular_solve,
)
from .workspace import QPWorkspace

logger = get_logger(__name__)

_INF = math.inf


class _Step(Enum):
    SELECT_VIOLATION = "select_violation"
    CHOOSE_CONSTRAINT = "choose_constraint"
    COMPUTE_DIRECTION = "compute_direction"
    COMPUTE_STEP = "compute_step"
    APPLY_STEP = "apply_step"


_Outcome = Union[_Step, Status]


@dataclass
class _Iterate:
    """Per-solve scalars and read-only problem data."""

    CE: np.ndarray
    ce0: np.ndarray
    CI: np.ndarray
    ci0: np.ndarray
    x: np.ndarray
    f: float
    tolerance: float
    nit: int = 0
    ip: int = 0
    drop: int = 0
    t1: float = _INF
    t2: float = _INF


class DualActiveSetSolver:
    """
    Goldfarb–Idnani QP solver with reusable factorization buffers.

    A solver instance owns its workspace. Solves on one instance must be
    serialized; use one instance per thread for concurrent solving.

    Parameters
    ----------
    config : SolverConfig, optional
        Iteration cap, warm-start default and invariant checking.
    """

    def __init__(self, config: Optional[SolverConfig] = None) -> None:
        self.config = config if config is not None else SolverConfig()
        self._ws: Optional[QPWorkspace] = None
        self._nit = 0
        self._f = 0.0
        self._steps: Dict[_Step, Callable[[_Iterate], _Outcome]] = {
            _Step.SELECT_VIOLATION: self._select_violation,
            _Step.CHOOSE_CONSTRAINT: self._choose_constraint,
            _Step.COMPUTE_DIRECTION: self._compute_direction,
            _Step.COMPUTE_STEP: self._compute_step,
            _Step.APPLY_STEP: self._apply_step,
        }

    # ------------------------------ accessors ------------------------------
    @property
    def max_iter(self) -> int:
        return self.config.max_iter

    @max_iter.setter
    def max_iter(self, value: int) -> None:
        if value < 0:
            raise ValueError(f"max_iter must be non-negative, got {value}.")
        self.config.max_iter = int(value)

    @property
    def workspace(self) -> Optional[QPWorkspace]:
        return self._ws

    @property
    def iterations(self) -> int:
        """Outer iterations of the last solve."""
        return self._nit

    @property
    def objective(self) -> float:
        """Objective value tracked by the last solve."""
        return self._f

    @property
    def active_set_size(self) -> int:
        return 0 if self._ws is None else self._ws.q

    @property
    def active_set(self) -> np.ndarray:
        if self._ws is None:
            return np.zeros(0, dtype=int)
        return self._ws.active_set[: self._ws.q].copy()

    @property
    def multipliers(self) -> np.ndarray:
        if self._ws is None:
            return np.zeros(0)
        return self._ws.u[: self._ws.q].copy()

    def reset(self, n_vars: int, n_eq: int, n_ineq: int) -> None:
        """Allocate fresh buffers for problems of the given shape."""
        logger.debug(
            "allocating workspace for n_vars=%d, n_eq=%d, n_ineq=%d", n_vars, n_eq, n_ineq
        )
        self._ws = QPWorkspace(n_vars, n_eq, n_ineq)

    # ------------------------------ solving ------------------------------
    def solve_problem(self, problem: QPProblem, **kwargs) -> QPResult:
        """Solve a :class:`QPProblem`; keyword arguments go to :meth:`solve`."""
        return self.solve(
            problem.H, problem.g0, problem.CE, problem.ce0, problem.CI, problem.ci0, **kwargs
        )

    def solve(
        self,
        H,
        g0,
        CE=None,
        ce0=None,
        CI=None,
        ci0=None,
        *,
        inverse_factor=None,
        warm_start: Optional[bool] = None,
    ) -> QPResult:
        """
        Solve ``min 0.5 x^T H x + g0^T x`` s.t. ``CE x + ce0 = 0``,
        ``CI x + ci0 >= 0``.

        Parameters
        ----------
        H : array_like, shape (n, n)
            Symmetric positive definite Hessian. Only its lower triangle is
            factorized; its trace always enters the optimality tolerance.
        g0 : array_like, shape (n,)
            Linear term.
        CE, ce0 : array_like, optional
            Equality constraints, shapes ``(m_eq, n)`` and ``(m_eq,)``.
        CI, ci0 : array_like, optional
            Inequality constraints, shapes ``(m_ineq, n)`` and ``(m_ineq,)``.
        inverse_factor : array_like, shape (n, n), optional
            Precomputed ``J`` with ``J J^T = H^{-1}``. Skips the Cholesky
            factorization of ``H``.
        warm_start : bool, optional
            Replay the active set of the previous optimal solve of the same
            shape. Defaults to ``config.warm_start``.

        Returns
        -------
        QPResult

        Raises
        ------
        ValueError
            On inconsistent dimensions, non-finite data or when ``H`` is not
            positive definite.
        """
        problem = QPProblem(H, g0, CE, ce0, CI, ci0)
        n, n_eq, n_ineq = problem.dims
        if self._ws is None or not self._ws.matches(n, n_eq, n_ineq):
            self.reset(n, n_eq, n_ineq)
        ws = self._ws

        if warm_start is None:
            warm_start = self.config.warm_start
        recorded = np.zeros(0, dtype=int)
        if warm_start and ws.replayable:
            recorded = ws.active_set[n_eq : ws.q].copy()

        factor = None
        if inverse_factor is not None:
            factor = as_float_array(inverse_factor, "inverse_factor", ndim=2)
            if factor.shape != (n, n):
                raise ValueError(
                    f"inverse_factor must have shape {(n, n)}, got {factor.shape}"
                )

        it = self._start(problem, factor)
        logger.debug(
            "solving QP: n_vars=%d, n_eq=%d, n_ineq=%d, unconstrained f=%.6g",
            n, n_eq, n_ineq, it.f,
        )

        status = self._add_equalities(it)
        if status is None and recorded.size:
            status = self._replay(it, recorded)
            if status is None and np.any(ws.u[n_eq : ws.iq] < 0.0):
                # a recorded constraint is no longer binding: (x, u) is not
                # dual feasible, so the main loop cannot start from it
                logger.debug("warm start is not dual feasible, restarting cold")
                it = self._start(problem, factor)
                status = self._add_equalities(it)
        if status is None:
            status = self._run(it)
        return self._finish(it, status)

    # ------------------------------ phases ------------------------------
    def _start(self, problem: QPProblem, factor: Optional[np.ndarray]) -> _Iterate:
        """Reset the workspace to the unconstrained minimizer."""
        ws = self._ws
        ws.begin()
        c1 = float(np.trace(problem.H))
        if factor is None:
            lower = cholesky_lower(problem.H)
            cholesky_inverse_factor(lower, out=ws.J)
            x = -cholesky_solve(lower, problem.g0)
        else:
            ws.J[:, :] = factor
            x = -(ws.J @ (ws.J.T @ problem.g0))
        c2 = float(np.trace(ws.J))

        return _Iterate(
            CE=problem.CE,
            ce0=problem.ce0,
            CI=problem.CI,
            ci0=problem.ci0,
            x=x,
            f=0.5 * float(problem.g0 @ x),
            # c1 * c2 estimates the condition number of H
            tolerance=ws.n_ineq * EPS * c1 * c2 * 100.0,
        )

    def _add_equalities(self, it: _Iterate) -> Optional[Status]:
        ws = self._ws
        for i in range(ws.n_eq):
            ws.normal[:] = it.CE[i]
            ws.active_set[ws.iq] = encode_equality(i)
            if not self._force(it, it.ce0[i]):
                logger.debug("equality %d is linearly dependent on the previous rows", i)
                return Status.REDUNDANT_EQUALITIES
        return None

    def _replay(self, it: _Iterate, recorded: np.ndarray) -> Optional[Status]:
        ws = self._ws
        logger.debug("warm start with %d recorded inequalities", recorded.size)
        for ip in recorded:
            ip = int(ip)
            ws.inactive[ip] = -1
            ws.normal[:] = it.CI[ip]
            ws.active_set[ws.iq] = ip
            if not self._force(it, it.ci0[ip]):
                logger.warning(
                    "warm start: constraint %d is linearly dependent on the "
                    "active set; discarding the recorded active set",
                    ip,
                )
                return Status.REDUNDANT_EQUALITIES
        return None

    def _run(self, it: _Iterate) -> Status:
        step = _Step.SELECT_VIOLATION
        while True:
            outcome = self._steps[step](it)
            if isinstance(outcome, Status):
                return outcome
            step = outcome

    def _finish(self, it: _Iterate, status: Status) -> QPResult:
        ws = self._ws
        ws.q = ws.iq
        ws.replayable = status is Status.OPTIMAL
        self._nit = it.nit
        self._f = float(it.f)
        logger.debug(
            "finished with status %s after %d iterations (f=%.6g, active=%d)",
            status.value, it.nit, it.f, ws.q,
        )
        return QPResult(
            x=it.x,
            fun=float(it.f),
            status=status,
            message=status_message(status),
            nit=it.nit,
            active_set=ws.active_set[: ws.q].copy(),
            multipliers=ws.u[: ws.q].copy(),
        )

    # ------------------------------ main loop ------------------------------
    def _select_violation(self, it: _Iterate) -> _Outcome:
        ws = self._ws
        it.nit += 1
        if it.nit >= self.config.max_iter:
            return Status.MAX_ITER_REACHED

        ws.inactive[ws.active_set[ws.n_eq : ws.iq]] = -1
        ws.eligible.fill(True)
        np.matmul(it.CI, it.x, out=ws.s)
        ws.s += it.ci0
        psi = float(np.minimum(ws.s, 0.0).sum())
        if abs(psi) <= it.tolerance:
            return Status.OPTIMAL

        ws.save(it.x, it.f)
        return _Step.CHOOSE_CONSTRAINT

    def _choose_constraint(self, it: _Iterate) -> _Outcome:
        ws = self._ws
        candidates = (ws.inactive != -1) & ws.eligible & (ws.s < 0.0)
        if not candidates.any():
            return Status.OPTIMAL
        ip = int(np.argmin(np.where(candidates, ws.s, _INF)))

        it.ip = ip
        ws.normal[:] = it.CI[ip]
        ws.u[ws.iq] = 0.0
        ws.active_set[ws.iq] = ip
        logger.debug("iteration %d: constraint %d violated by %.3e", it.nit, ip, -ws.s[ip])
        return _Step.COMPUTE_DIRECTION

    def _compute_direction(self, it: _Iterate) -> _Outcome:
        self._direction()
        return _Step.COMPUTE_STEP

    def _compute_step(self, it: _Iterate) -> _Outcome:
        ws = self._ws
        # Largest dual step keeping the active inequality multipliers >= 0
        it.t1 = _INF
        it.drop = 0
        for k in range(ws.n_eq, ws.iq):
            if ws.r[k] > 0.0:
                ratio = ws.u[k] / ws.r[k]
                if ratio < it.t1:
                    it.t1 = ratio
                    it.drop = int(ws.active_set[k])

        # Primal step making constraint ip active
        if abs(ws.z @ ws.z) > EPS:
            it.t2 = -ws.s[it.ip] / (ws.z @ ws.normal)
        else:
            it.t2 = _INF
        return _Step.APPLY_STEP

    def _apply_step(self, it: _Iterate) -> _Outcome:
        ws = self._ws
        iq = ws.iq
        t = min(it.t1, it.t2)

        if t >= _INF:
            return Status.UNBOUNDED

        if it.t2 >= _INF:
            ws.u[:iq] -= t * ws.r[:iq]
            ws.u[iq] += t
            logger.debug("dual step %.3e drops constraint %d", t, it.drop)
            self._drop(it, it.drop)
            return _Step.COMPUTE_DIRECTION

        it.x += t * ws.z
        it.f += t * float(ws.z @ ws.normal) * (0.5 * t + ws.u[iq])
        ws.u[:iq] -= t * ws.r[:iq]
        ws.u[iq] += t

        if t == it.t2:
            if self._add(it):
                ws.inactive[it.ip] = -1
                logger.debug("full step %.3e adds constraint %d", t, it.ip)
                return _Step.SELECT_VIOLATION
            logger.debug("constraint %d is degenerate, rolling back", it.ip)
            ws.eligible[it.ip] = False
            ws.iq = delete_constraint(ws.R, ws.J, ws.active_set, ws.u, ws.n_eq, ws.iq, it.ip)
            it.f = ws.restore(it.x)
            self._check(it)
            return _Step.CHOOSE_CONSTRAINT

        logger.debug("partial step %.3e drops constraint %d", t, it.drop)
        self._drop(it, it.drop)
        ws.s[it.ip] = it.CI[it.ip] @ it.x + it.ci0[it.ip]
        return _Step.COMPUTE_DIRECTION

    # ------------------------------ helpers ------------------------------
    def _direction(self) -> None:
        """Fill ``d = J^T n``, the primal direction ``z`` and dual direction ``r``."""
        ws = self._ws
        iq = ws.iq
        np.matmul(ws.J.T, ws.normal, out=ws.d)
        if iq >= ws.n_vars:
            ws.z.fill(0.0)
        else:
            np.matmul(ws.J[:, iq:], ws.d[iq:], out=ws.z)
        ws.r[:iq] = upper_triangular_solve(ws.R[:iq, :iq], ws.d[:iq])

    def _force(self, it: _Iterate, offset: float) -> bool:
        """Move onto the constraint ``normal^T x + offset = 0`` and add it."""
        ws = self._ws
        self._direction()
        t2 = 0.0
        if abs(ws.z @ ws.z) > EPS:
            t2 = (-float(ws.normal @ it.x) - offset) / float(ws.z @ ws.normal)
        it.x += t2 * ws.z

        iq = ws.iq
        ws.u[iq] = t2
        ws.u[:iq] -= t2 * ws.r[:iq]
        it.f += 0.5 * t2 * t2 * float(ws.z @ ws.normal)

        if self._add(it):
            return True
        # Discard the degenerate column so the reported active set stays valid
        ws.iq -= 1
        if ws.iq < ws.n_vars:
            ws.R[:, ws.iq] = 0.0
        return False

    def _add(self, it: _Iterate) -> bool:
        ws = self._ws
        ok, ws.iq, ws.R_norm = add_constraint(ws.R, ws.J, ws.d, ws.iq, ws.R_norm)
        if ok:
            self._check(it)
        return ok

    def _drop(self, it: _Iterate, constraint: int) -> None:
        ws = self._ws
        ws.save_factors()
        ws.inactive[constraint] = constraint
        ws.iq = delete_constraint(
            ws.R, ws.J, ws.active_set, ws.u, ws.n_eq, ws.iq, constraint
        )
        self._check(it)

    def _check(self, it: _Iterate) -> None:
        if self.config.check_invariants:
            ws = self._ws
            check_factorization(ws.J, ws.R, ws.active_normals(it.CE, it.CI))


def solve_qp(
    H,
    g0,
    CE=None,
    ce0=None,
    CI=None,
    ci0=None,
    *,
    max_iter: int = DEFAULT_MAX_ITER,
    inverse_factor=None,
    check_invariants: Optional[bool] = None,
) -> QPResult:
    """
    Solve a single convex QP with a fresh :class:`DualActiveSetSolver`.

    See :meth:`DualActiveSetSolver.solve` for the problem convention.
    ``check_invariants=None`` defers to the ``DUALQP_DEBUG`` environment
    variable.
    """
    config = SolverConfig(max_iter=max_iter)
    if check_invariants is not None:
        config.check_invariants = bool(check_invariants)
    solver = DualActiveSetSolver(config)
    return solver.solve(H, g0, CE, ce0, CI, ci0, inverse_factor=inverse_factor)


__all__ = ["DualActiveSetSolver", "solve_qp"]

"""
Karush-Kuhn-Tucker diagnostics for QP solutions.

With the convention ``CE x + ce0 = 0`` and ``CI x + ci0 >= 0`` a point ``x``
with multipliers ``lam_eq`` and ``lam_ineq`` is optimal when

    H x + g0 = CE^T lam_eq + CI^T lam_ineq,
    lam_ineq >= 0,  lam_ineq * (CI x + ci0) = 0,

and ``x`` is feasible.
"""

from __future__ import annotations

from typing import Dict, Optional, Tuple

import numpy as np

from .core import QPResult, decode_active
from .utils import as_float_array, constraint_block


def split_multipliers(
    result: QPResult,
    n_eq: int,
    n_ineq: int,
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Scatter the active-set multipliers of ``result`` into full vectors.

    Returns:
        ``(lam_eq, lam_ineq)`` of lengths ``n_eq`` and ``n_ineq``; inactive
        inequalities get zero.
    """
    lam_eq = np.zeros(n_eq)
    lam_ineq = np.zeros(n_ineq)
    for code, value in zip(result.active_set, result.multipliers):
        is_equality, row = decode_active(int(code))
        if is_equality:
            lam_eq[row] = value
        else:
            lam_ineq[row] = value
    return lam_eq, lam_ineq


def kkt_residuals(
    H,
    g0,
    CE,
    ce0,
    CI,
    ci0,
    x,
    lam_eq: Optional[np.ndarray] = None,
    lam_ineq: Optional[np.ndarray] = None,
) -> Dict[str, float]:
    """
    Compute infinity norms of the KKT residuals.

    Returns:
        ``primal_eq``, ``primal_ineq`` (violation of ``CI x + ci0 >= 0``),
        ``dual`` (stationarity), ``dual_feasibility`` (negative inequality
        multipliers) and ``complementary``.
    """
    x = as_float_array(x, "x", ndim=1)
    n = x.shape[0]
    hess = as_float_array(H, "H", ndim=2)
    grad = as_float_array(g0, "g0", ndim=1)
    ce_mat, ce_vec = constraint_block(CE, ce0, n, "CE", "ce0")
    ci_mat, ci_vec = constraint_block(CI, ci0, n, "CI", "ci0")

    lam_eq = np.zeros(ce_mat.shape[0]) if lam_eq is None else np.asarray(lam_eq, dtype=float)
    lam_ineq = (
        np.zeros(ci_mat.shape[0]) if lam_ineq is None else np.asarray(lam_ineq, dtype=float)
    )

    stationarity = hess @ x + grad - ce_mat.T @ lam_eq - ci_mat.T @ lam_ineq
    slack = ci_mat @ x + ci_vec

    def _norm(vec: np.ndarray) -> float:
        return float(np.linalg.norm(vec, ord=np.inf)) if vec.size else 0.0

    return {
        "primal_eq": _norm(ce_mat @ x + ce_vec),
        "primal_ineq": _norm(np.minimum(slack, 0.0)),
        "dual": _norm(stationarity),
        "dual_feasibility": _norm(np.minimum(lam_ineq, 0.0)),
        "complementary": _norm(slack * lam_ineq),
    }


def is_kkt_optimal(
    H,
    g0,
    CE,
    ce0,
    CI,
    ci0,
    x,
    lam_eq: Optional[np.ndarray] = None,
    lam_ineq: Optional[np.ndarray] = None,
    tol: float = 1e-6,
) -> bool:
    """
    Return True if all KKT residuals are below ``tol``.
    """

    residuals = kkt_residuals(H, g0, CE, ce0, CI, ci0, x, lam_eq, lam_ineq)
    return all(value <= tol for value in residuals.values())


__all__ = ["split_multipliers", "kkt_residuals", "is_kkt_optimal"]

"""
Numerical helper routines for the QP engine.

Input arrays are coerced to ``float64`` NumPy arrays (``torch.Tensor`` inputs
are detached and moved to the CPU first). Dense factorizations are delegated
to SciPy's LAPACK wrappers.
"""

from __future__ import annotations

from typing import Optional, Tuple

import numpy as np
import scipy.linalg as la
import torch

EPS = float(np.finfo(float).eps)


def as_float_array(value, name: str, ndim: int) -> np.ndarray:
    """
    Return ``value`` as a finite ``float64`` array with ``ndim`` dimensions.

    Args:
        value: Array-like object or ``torch.Tensor``.
        name: Argument name used in error messages.
        ndim: Required number of dimensions (1 or 2).

    Raises:
        ValueError: If the dimensionality is wrong or the array contains
            NaN or Inf.
    """
    if isinstance(value, torch.Tensor):
        value = value.detach().cpu().numpy()
    arr = np.asarray(value, dtype=float)
    if ndim == 1 and arr.ndim == 0:
        arr = arr.reshape(1)
    if arr.ndim != ndim:
        raise ValueError(f"{name} must be {ndim}D, got {arr.ndim}D array")
    if not np.all(np.isfinite(arr)):
        raise ValueError(f"{name} contains non-finite values")
    return arr


def constraint_block(
    mat,
    vec,
    n: int,
    mat_name: str,
    vec_name: str,
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Coerce one constraint block ``(mat, vec)`` to arrays of shape ``(m, n)``
    and ``(m,)``.

    ``None`` for both means "no constraints of this kind". A ``None`` vector
    with a matrix is read as a zero offset.
    """
    if mat is None:
        if vec is not None and as_float_array(vec, vec_name, ndim=1).size:
            raise ValueError(f"{vec_name} given without {mat_name}")
        return np.zeros((0, n)), np.zeros(0)

    arr = as_float_array(mat, mat_name, ndim=2)
    if arr.shape[0] == 0 and arr.shape[1] != n:
        arr = np.zeros((0, n))
    if arr.shape[1] != n:
        raise ValueError(
            f"{mat_name} must have {n} columns, got shape {arr.shape}"
        )
    if vec is None:
        return arr, np.zeros(arr.shape[0])
    offset = as_float_array(vec, vec_name, ndim=1)
    if offset.shape[0] != arr.shape[0]:
        raise ValueError(
            f"{vec_name} has length {offset.shape[0]}, expected {arr.shape[0]}"
        )
    return arr, offset


def cholesky_lower(hessian: np.ndarray) -> np.ndarray:
    """
    Return the lower Cholesky factor ``L`` of ``hessian`` (``H = L L^T``).

    Only the lower triangle of ``hessian`` is read.

    Raises:
        ValueError: If ``hessian`` is not positive definite.
    """
    try:
        return la.cholesky(hessian, lower=True, check_finite=False)
    except np.linalg.LinAlgError as exc:
        raise ValueError("Hessian is not positive definite") from exc


def cholesky_inverse_factor(lower: np.ndarray, out: Optional[np.ndarray] = None) -> np.ndarray:
    """
    Compute ``J = L^{-T}`` by solving ``L^T J = I``.

    The result satisfies ``J J^T = (L L^T)^{-1}``. When ``out`` is given the
    factor is written into it.
    """
    n = lower.shape[0]
    J = la.solve_triangular(lower.T, np.eye(n), lower=False, check_finite=False)
    if out is None:
        return J
    out[:, :] = J
    return out


def cholesky_solve(lower: np.ndarray, rhs: np.ndarray) -> np.ndarray:
    """Solve ``L L^T x = rhs`` given the lower Cholesky factor."""
    return la.cho_solve((lower, True), rhs, check_finite=False)


def upper_triangular_solve(upper: np.ndarray, rhs: np.ndarray) -> np.ndarray:
    """Solve ``U x = rhs`` for an upper-triangular ``U`` (empty-safe)."""
    if rhs.shape[0] == 0:
        return np.zeros(0)
    return la.solve_triangular(upper, rhs, lower=False, check_finite=False)


__all__ = [
    "EPS",
    "as_float_array",
    "constraint_block",
    "cholesky_lower",
    "cholesky_inverse_factor",
    "cholesky_solve",
    "upper_triangular_solve",
]

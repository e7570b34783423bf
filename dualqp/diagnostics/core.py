"""Invariant checks for the active-set factorization.

The dual active-set method keeps two coupled factors up to date: ``J`` with
``J J^T = H^{-1}`` and the upper-triangular ``R``. For the matrix ``N`` whose
columns are the active constraint normals (in insertion order) they satisfy

    J^T N = [R[:iq, :iq]; 0].

The helpers below measure how far a workspace has drifted from that
relation. The solver runs them after every update when
``SolverConfig.check_invariants`` is set (or ``DUALQP_DEBUG=1``).
"""

from __future__ import annotations

from typing import Dict

import numpy as np


def triangularity_residual(R: np.ndarray, iq: int) -> float:
    """
    Return the largest magnitude below the diagonal of ``R[:iq, :iq]``.

    Parameters
    ----------
    R:
        Square factor whose leading ``iq`` columns are meaningful.
    iq:
        Number of active constraints.

    Returns
    -------
    float
        ``0.0`` for an exactly upper-triangular leading block.
    """
    if iq == 0:
        return 0.0
    lower = np.tril(R[:iq, :iq], k=-1)
    return float(np.max(np.abs(lower)))


def factorization_residuals(
    J: np.ndarray,
    R: np.ndarray,
    normals: np.ndarray,
) -> Dict[str, float]:
    """
    Compute residual norms of the ``J^T N = [R; 0]`` relation.

    Parameters
    ----------
    J:
        Current inverse factor, shape ``(n, n)``.
    R:
        Current triangular factor, shape ``(n, n)``.
    normals:
        Active constraint normals as columns, shape ``(n, iq)``.

    Returns
    -------
    Dict[str, float]
        ``"triangularity"``: largest sub-diagonal entry of ``R[:iq, :iq]``.
        ``"head"``: infinity norm of ``J^T N`` minus ``R`` on the first
        ``iq`` rows. ``"tail"``: infinity norm of the remaining rows, which
        must vanish.
    """
    iq = normals.shape[1]
    projected = J.T @ normals
    head = projected[:iq] - R[:iq, :iq]
    tail = projected[iq:]
    return {
        "triangularity": triangularity_residual(R, iq),
        "head": float(np.max(np.abs(head))) if head.size else 0.0,
        "tail": float(np.max(np.abs(tail))) if tail.size else 0.0,
    }


def check_factorization(
    J: np.ndarray,
    R: np.ndarray,
    normals: np.ndarray,
    rtol: float = 1e-8,
) -> None:
    """
    Raise if the factorization no longer matches the active normals.

    The tolerance is relative to the magnitude of ``J^T N``.

    Raises
    ------
    RuntimeError
        If any residual from :func:`factorization_residuals` exceeds the
        tolerance.
    """
    residuals = factorization_residuals(J, R, normals)
    scale = 1.0
    if normals.size:
        scale = max(scale, float(np.max(np.abs(J.T @ normals))))
    bad = {key: value for key, value in residuals.items() if value > rtol * scale}
    if bad:
        raise RuntimeError(f"Active-set factorization is inconsistent: {bad}")


__all__ = ["triangularity_residual", "factorization_residuals", "check_factorization"]

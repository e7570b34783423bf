"""
Incremental updates of the active-set factorization.

Adding or dropping a constraint is done with Givens rotations instead of
refactorizing. Each rotation uses the symmetric form ``[[cc, ss], [ss, -cc]]``
with ``cc >= 0`` and is applied to a pair of columns of ``J`` (and, when
dropping, to a pair of rows of ``R``). With ``xny = ss / (1 + cc)`` the second
column is updated from the already rotated first one, which saves one
multiplication per entry:

    new_a = cc * a + ss * b
    new_b = xny * (a + new_a) - b        (== ss * a - cc * b)

The reduced entry keeps the sign of the entry it replaces.
"""

from __future__ import annotations

import math
from typing import Tuple

import numpy as np

from .utils import EPS


def _rotate_columns(mat: np.ndarray, j: int, cc: float, ss: float, xny: float) -> None:
    first = mat[:, j].copy()
    second = mat[:, j + 1].copy()
    mat[:, j] = first * cc + second * ss
    mat[:, j + 1] = xny * (first + mat[:, j]) - second


def add_constraint(
    R: np.ndarray,
    J: np.ndarray,
    d: np.ndarray,
    iq: int,
    R_norm: float,
) -> Tuple[bool, int, float]:
    """
    Append the constraint whose normal in the ``J`` basis is ``d``.

    The trailing entries ``d[iq + 1:]`` are rotated into ``d[iq]`` from the
    bottom up while the matching columns of ``J`` receive the same
    rotations. The leading ``iq + 1`` entries of the reduced ``d`` become the
    new column of ``R``.

    Args:
        R: Triangular factor, updated in place.
        J: Inverse factor, updated in place.
        d: ``J^T n`` for the new normal ``n``, reduced in place.
        iq: Number of constraints before the addition.
        R_norm: Running norm of ``R``'s diagonal.

    Returns:
        ``(ok, iq, R_norm)``. ``iq`` is always incremented, even when the new
        diagonal entry is at or below ``eps * R_norm`` (``ok`` is False); the
        caller then owns the removal of the degenerate column.
    """
    if iq >= d.shape[0]:
        # n independent constraints already span the whole space
        return False, iq + 1, R_norm

    for j in range(d.shape[0] - 1, iq, -1):
        cc = d[j - 1]
        ss = d[j]
        h = math.hypot(cc, ss)
        if h == 0.0:
            continue
        d[j] = 0.0
        ss = ss / h
        cc = cc / h
        if cc < 0.0:
            cc = -cc
            ss = -ss
            d[j - 1] = -h
        else:
            d[j - 1] = h
        xny = ss / (1.0 + cc)
        _rotate_columns(J, j - 1, cc, ss, xny)

    iq += 1
    R[:iq, iq - 1] = d[:iq]

    diagonal = abs(d[iq - 1])
    if diagonal <= EPS * R_norm:
        return False, iq, R_norm
    return True, iq, max(R_norm, diagonal)


def delete_constraint(
    R: np.ndarray,
    J: np.ndarray,
    A: np.ndarray,
    u: np.ndarray,
    n_eq: int,
    iq: int,
    constraint: int,
) -> int:
    """
    Drop inequality ``constraint`` from the active set and refactorize.

    The entries after it in ``A``, ``u`` and the columns of ``R`` shift down
    by one slot. The candidate slot ``iq`` (the constraint currently being
    considered for addition) moves down with them. ``R`` is then restored to
    upper-triangular form by a forward sweep of Givens rotations starting at
    the removal point, mirrored on the columns of ``J``.

    Args:
        R, J, A, u: Solver buffers, updated in place.
        n_eq: Number of leading equality slots, which are never searched.
        iq: Number of active constraints before the removal.
        constraint: Inequality index to remove.

    Returns:
        The new number of active constraints.
    """
    qq = n_eq
    for i in range(n_eq, iq):
        if A[i] == constraint:
            qq = i
            break

    A[qq:iq - 1] = A[qq + 1:iq]
    u[qq:iq - 1] = u[qq + 1:iq]
    R[:, qq:iq - 1] = R[:, qq + 1:iq]

    if iq < A.shape[0]:
        A[iq - 1] = A[iq]
        u[iq - 1] = u[iq]
        A[iq] = 0
        u[iq] = 0.0
    R[:iq, iq - 1] = 0.0
    iq -= 1

    if iq == 0:
        return iq

    for j in range(qq, iq):
        cc = R[j, j]
        ss = R[j + 1, j]
        h = math.hypot(cc, ss)
        if h == 0.0:
            continue
        cc = cc / h
        ss = ss / h
        R[j + 1, j] = 0.0
        if cc < 0.0:
            R[j, j] = -h
            cc = -cc
            ss = -ss
        else:
            R[j, j] = h

        xny = ss / (1.0 + cc)
        if j + 1 < iq:
            upper = R[j, j + 1:iq].copy()
            lower = R[j + 1, j + 1:iq].copy()
            R[j, j + 1:iq] = upper * cc + lower * ss
            R[j + 1, j + 1:iq] = xny * (upper + R[j, j + 1:iq]) - lower
        _rotate_columns(J, j, cc, ss, xny)

    return iq


__all__ = ["add_constraint", "delete_constraint"]

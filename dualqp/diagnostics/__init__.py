"""Factorization invariant checks for dualqp."""

from .core import (
    check_factorization,
    factorization_residuals,
    triangularity_residual,
)

__all__ = [
    "triangularity_residual",
    "factorization_residuals",
    "check_factorization",
]

"""dualqp - a dense Goldfarb-Idnani dual active-set QP solver."""

__version__ = "0.1.0"

from .core import (
    DEFAULT_MAX_ITER,
    QPProblem,
    QPResult,
    SolverConfig,
    Status,
)
from .diagnostics import check_factorization, factorization_residuals
from .kkt import is_kkt_optimal, kkt_residuals, split_multipliers
from .logging import configure_logging, get_logger, set_log_level
from .solver import DualActiveSetSolver, solve_qp
from .updates import add_constraint, delete_constraint
from .workspace import QPWorkspace

__all__ = [
    "__version__",
    # Types
    "DEFAULT_MAX_ITER",
    "Status",
    "SolverConfig",
    "QPProblem",
    "QPResult",
    "QPWorkspace",
    # Solver
    "DualActiveSetSolver",
    "solve_qp",
    "add_constraint",
    "delete_constraint",
    # KKT
    "kkt_residuals",
    "is_kkt_optimal",
    "split_multipliers",
    # Diagnostics
    "check_factorization",
    "factorization_residuals",
    # Logging
    "get_logger",
    "set_log_level",
    "configure_logging",
]

import numpy as np
import pytest

from dualqp import QPResult, Status
from dualqp.kkt import is_kkt_optimal, kkt_residuals, split_multipliers


def test_kkt_residuals_at_optimum():
    H = np.eye(2)
    g0 = np.zeros(2)
    CE = np.array([[1.0, 1.0]])
    ce0 = np.array([-1.0])
    x = np.array([0.5, 0.5])
    lam_eq = np.array([0.5])
    residuals = kkt_residuals(H, g0, CE, ce0, None, None, x, lam_eq=lam_eq)
    assert residuals["primal_eq"] <= 1e-12
    assert residuals["dual"] <= 1e-12
    assert residuals["primal_ineq"] == 0.0
    assert is_kkt_optimal(H, g0, CE, ce0, None, None, x, lam_eq=lam_eq)


def test_kkt_detects_infeasibility():
    H = np.eye(1)
    g0 = np.array([0.0])
    CI = np.array([[1.0]])
    ci0 = np.array([-1.0])
    x = np.array([0.0])
    residuals = kkt_residuals(H, g0, None, None, CI, ci0, x)
    assert residuals["primal_ineq"] == pytest.approx(1.0)
    assert not is_kkt_optimal(H, g0, None, None, CI, ci0, x)


def test_kkt_detects_negative_multiplier_and_slack():
    H = np.eye(1)
    g0 = np.array([-2.0])
    CI = np.array([[1.0]])
    ci0 = np.array([0.0])
    x = np.array([2.0])
    residuals = kkt_residuals(H, g0, None, None, CI, ci0, x, lam_ineq=np.array([-1.0]))
    assert residuals["dual_feasibility"] == pytest.approx(1.0)
    assert residuals["complementary"] == pytest.approx(2.0)


def test_split_multipliers_decodes_equalities():
    result = QPResult(
        x=np.zeros(3),
        fun=0.0,
        status=Status.OPTIMAL,
        message="",
        nit=1,
        active_set=np.array([-2, -1, 3]),
        multipliers=np.array([1.0, 2.0, 3.0]),
    )
    lam_eq, lam_ineq = split_multipliers(result, 2, 4)
    assert lam_eq.tolist() == [2.0, 1.0]
    assert lam_ineq.tolist() == [0.0, 0.0, 0.0, 3.0]

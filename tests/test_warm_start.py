"""Tests for replaying the previous optimal active set."""

import logging
from io import StringIO

import numpy as np
import pytest

from dualqp import DualActiveSetSolver, SolverConfig, Status, configure_logging


def _projection_problem(offset: float):
    return np.eye(2), np.zeros(2), np.array([[1.0, 1.0]]), np.array([offset])


def test_warm_start_takes_fewer_iterations():
    H, g0, CI, _ = _projection_problem(-1.0)
    solver = DualActiveSetSolver(SolverConfig(warm_start=True))
    first = solver.solve(H, g0, CI=CI, ci0=[-1.0])
    assert first.nit == 2

    warm = solver.solve(H, g0, CI=CI, ci0=[-1.1])
    cold = DualActiveSetSolver().solve(H, g0, CI=CI, ci0=[-1.1])

    assert warm.status is Status.OPTIMAL
    assert warm.nit == 1
    assert cold.nit == 2
    assert warm.nit < cold.nit
    assert np.allclose(warm.x, [0.55, 0.55])
    assert np.allclose(warm.x, cold.x)
    assert warm.multipliers == pytest.approx(cold.multipliers)
    assert warm.fun == pytest.approx(cold.fun)


@pytest.mark.parametrize("old_offset, new_offset", [(-1e-6, 1e-6), (-1.0, 1.0)])
def test_recorded_constraint_that_became_slack_matches_cold_start(old_offset, new_offset):
    H, g0, CI, _ = _projection_problem(old_offset)
    solver = DualActiveSetSolver(SolverConfig(warm_start=True))
    first = solver.solve(H, g0, CI=CI, ci0=[old_offset])
    assert first.active_set.tolist() == [0]

    # the origin is now feasible, so x0 + x1 >= -new_offset is not binding
    warm = solver.solve(H, g0, CI=CI, ci0=[new_offset])
    cold = DualActiveSetSolver().solve(H, g0, CI=CI, ci0=[new_offset])

    assert warm.status is Status.OPTIMAL
    assert np.array_equal(warm.x, cold.x)
    assert np.allclose(warm.x, [0.0, 0.0])
    assert warm.fun == pytest.approx(0.0)
    assert warm.active_set_size == 0
    assert np.all(warm.multipliers >= 0.0)
    assert solver.workspace.replayable


def test_partially_slack_recorded_set_keeps_multipliers_nonnegative():
    H = np.eye(2)
    g0 = np.zeros(2)
    CI = np.array([[1.0, 0.0], [0.0, 1.0]])
    solver = DualActiveSetSolver(SolverConfig(warm_start=True))
    first = solver.solve(H, g0, CI=CI, ci0=[-1.0, -1.0])
    assert first.active_set.tolist() == [0, 1]

    # x1 >= -1 is no longer binding at the new optimum [2, 0]
    warm = solver.solve(H, g0, CI=CI, ci0=[-2.0, 1.0])

    assert warm.status is Status.OPTIMAL
    assert np.allclose(warm.x, [2.0, 0.0])
    assert warm.active_set.tolist() == [0]
    assert warm.multipliers == pytest.approx([2.0])


def test_warm_start_argument_overrides_config():
    H, g0, CI, ci0 = _projection_problem(-1.0)
    solver = DualActiveSetSolver()
    solver.solve(H, g0, CI=CI, ci0=ci0)

    assert solver.solve(H, g0, CI=CI, ci0=ci0).nit == 2
    assert solver.solve(H, g0, CI=CI, ci0=ci0, warm_start=True).nit == 1

    solver = DualActiveSetSolver(SolverConfig(warm_start=True))
    solver.solve(H, g0, CI=CI, ci0=ci0)
    assert solver.solve(H, g0, CI=CI, ci0=ci0, warm_start=False).nit == 2


def test_warm_start_reaches_same_optimum_on_random_problem(random_qp):
    data = random_qp(6, 2, 12)
    solver = DualActiveSetSolver(SolverConfig(warm_start=True))
    cold = solver.solve(**data)
    warm = solver.solve(**data)

    assert warm.status is Status.OPTIMAL
    assert warm.nit == 1
    assert warm.nit <= cold.nit
    assert np.allclose(warm.x, cold.x, atol=1e-9)
    assert sorted(warm.active_set.tolist()) == sorted(cold.active_set.tolist())


def test_warm_start_ignored_after_shape_change():
    solver = DualActiveSetSolver(SolverConfig(warm_start=True))
    solver.solve(np.eye(2), np.zeros(2), CI=[[1.0, 1.0]], ci0=[-1.0])

    res = solver.solve(
        np.eye(2), np.zeros(2), CI=[[1.0, 1.0], [1.0, 0.0]], ci0=[-1.0, -2.0]
    )
    assert res.status is Status.OPTIMAL
    assert np.allclose(res.x, [2.0, 0.0])


def test_warm_start_not_replayed_after_iteration_cap():
    H, g0, CI, ci0 = _projection_problem(-1.0)
    solver = DualActiveSetSolver(SolverConfig(max_iter=1, warm_start=True))
    res = solver.solve(H, g0, CI=CI, ci0=ci0)
    assert res.status is Status.MAX_ITER_REACHED
    assert not solver.workspace.replayable

    solver.max_iter = 1000
    assert solver.solve(H, g0, CI=CI, ci0=ci0).nit == 2


def test_dependent_recorded_set_reports_redundancy_and_falls_back():
    solver = DualActiveSetSolver(SolverConfig(warm_start=True))
    H = np.eye(2)
    g0 = np.zeros(2)
    first = solver.solve(H, g0, CI=[[1.0, 0.0], [0.0, 1.0]], ci0=[-1.0, -1.0])
    assert first.active_set.tolist() == [0, 1]
    assert np.allclose(first.x, [1.0, 1.0])

    # both recorded rows are now parallel
    CI = np.array([[1.0, 0.0], [2.0, 0.0]])
    ci0 = np.array([-1.0, -1.0])
    stream = StringIO()
    configure_logging(level=logging.WARNING, stream=stream)
    try:
        failed = solver.solve(H, g0, CI=CI, ci0=ci0)
    finally:
        configure_logging(level=logging.WARNING)

    assert failed.status is Status.REDUNDANT_EQUALITIES
    assert "warm start" in stream.getvalue()
    assert not solver.workspace.replayable

    recovered = solver.solve(H, g0, CI=CI, ci0=ci0)
    assert recovered.status is Status.OPTIMAL
    assert np.allclose(recovered.x, [1.0, 0.0])
    assert recovered.active_set.tolist() == [0]

from classtime.algorithms.backtracking import BUDGET_EXHAUSTED, CANCELLED, UNRESOLVED, BacktrackingSearch
from classtime.config import SolverConfig
from classtime.models import Batch, EntitySnapshot, Faculty, Room, Subject, make_timeslots
from classtime.scheduling.constraints import hard_violations
from classtime.scheduling.problem import build_problem
from classtime.scheduling.state import ScheduleState

TWO_MONDAY_SLOTS = make_timeslots([(1, "09:00-10:00"), (1, "10:00-11:00")])
BARE = SolverConfig(preferred_slots=(), restricted_slots=())


def _overfull(**config):
    snap = EntitySnapshot(
        faculty=[Faculty(id="F1", subjects={"A"})],
        rooms=[Room(id="R1")],
        subjects=[Subject(id="A", sessions_per_week=3)],
        batches=[Batch(id="B1", strength=30, subjects=("A",))],
        timeslots=TWO_MONDAY_SLOTS,
    )
    return ScheduleState(build_problem(snap, BARE.with_overrides(**config)))


def _assert_legal(state):
    for i, cand in state.assignment.items():
        assert hard_violations(state, i, cand) == []


def test_feasible_instance_is_fully_placed(department_snapshot):
    state = ScheduleState(build_problem(department_snapshot, SolverConfig()))
    search = BacktrackingSearch(state)
    search.run()
    assert search.unresolved == {}
    assert len(state) == len(state.problem.sessions)
    assert not search.cancelled and not search.budget_exhausted
    _assert_legal(state)


def test_overfull_batch_leaves_one_session_unresolved():
    state = _overfull()
    search = BacktrackingSearch(state)
    search.run()
    assert len(state) == 2
    assert list(search.unresolved.values()) == [UNRESOLVED]
    assert search.backtracks >= 1
    _assert_legal(state)


def test_node_budget_stops_search():
    state = _overfull(node_budget=1)
    search = BacktrackingSearch(state)
    search.run()
    assert search.budget_exhausted
    assert len(state) == 1
    assert set(search.unresolved.values()) == {BUDGET_EXHAUSTED}
    _assert_legal(state)


def test_stop_request_is_honoured_before_the_first_commit():
    state = _overfull()
    search = BacktrackingSearch(state, should_stop=lambda: True)
    search.run()
    assert search.cancelled
    assert len(state) == 0
    assert search.unresolved == {0: CANCELLED, 1: CANCELLED, 2: CANCELLED}


def test_infeasible_sessions_are_not_searched():
    snap = EntitySnapshot(
        faculty=[Faculty(id="F1", subjects={"A", "L"})],
        rooms=[Room(id="R1")],
        subjects=[Subject(id="A"), Subject(id="L", kind="lab")],
        batches=[Batch(id="B1", strength=30, subjects=("A", "L"))],
    )
    state = ScheduleState(build_problem(snap, SolverConfig()))
    search = BacktrackingSearch(state)
    search.run()
    assert state.problem.infeasible.keys() == {1}
    assert set(state.assignment) == {0}
    assert search.unresolved == {}


def test_step_callback_sees_growing_assignment(department_snapshot):
    seen = []
    state = ScheduleState(build_problem(department_snapshot, SolverConfig()))
    BacktrackingSearch(state, on_step=lambda nodes, assigned: seen.append(assigned)).run()
    assert seen and seen[-1] == len(state)
    assert seen[0] == 1

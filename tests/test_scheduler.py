import pytest

from classtime.config import SolverConfig
from classtime.errors import ConfigurationError
from classtime.models import (
    CONFIRMED, CONFLICT, TENTATIVE, Batch, EntitySnapshot, Faculty, Room, Subject, make_timeslots,
)
from classtime.scheduler import CancellationToken, ProgressTracker, Scheduler, solve, solve_many, solve_problem
from classtime.scheduling.problem import build_problem
from classtime.scheduling.validation import completeness_ok, find_clashes, placed, resources_ok


def _check_valid(snapshot, sched):
    assert find_clashes(sched) == []
    assert resources_ok(snapshot, sched)
    assert completeness_ok(snapshot, sched)


def test_single_pair_is_placed_on_distinct_slots(single_pair_snapshot, fast_config):
    sched, diagnostics = solve(single_pair_snapshot, fast_config)
    assert len(sched.slots) == 2
    assert diagnostics == ()
    assert all(s.status != CONFLICT for s in sched.slots)
    assert sched.slots[0].timeslot != sched.slots[1].timeslot
    assert {s.faculty_id for s in sched.slots} == {"F1"}
    assert {s.room_id for s in sched.slots} == {"R1"}
    assert sched.complete
    _check_valid(single_pair_snapshot, sched)


def test_lab_without_lab_room_is_reported(fast_config):
    snap = EntitySnapshot(
        faculty=[Faculty(id="F1", subjects={"L"})],
        rooms=[Room(id="R1", kind="lecture")],
        subjects=[Subject(id="L", kind="lab", sessions_per_week=2)],
        batches=[Batch(id="B1", strength=30, subjects=("L",))],
    )
    sched, diagnostics = solve(snap, fast_config)
    assert [s.status for s in sched.slots] == [CONFLICT, CONFLICT]
    assert all(s.timeslot is None and s.room_id is None for s in sched.slots)
    assert len(diagnostics) == 2
    assert all("no room of kind lab available" in d.reason for d in diagnostics)
    assert {d.code for d in diagnostics} == {"infeasible"}
    assert not sched.complete


def _monday_teacher(timeslots=None):
    return EntitySnapshot(
        faculty=[Faculty(id="F1", available_days={"Monday"}, subjects={"A"})],
        rooms=[Room(id="R1")],
        subjects=[Subject(id="A")],
        batches=[Batch(id="B1", strength=30, subjects=("A",)), Batch(id="B2", strength=30, subjects=("A",))],
        **({"timeslots": timeslots} if timeslots else {}),
    )


def test_shared_monday_teacher(fast_config):
    snap = _monday_teacher()
    sched, diagnostics = solve(snap, fast_config)
    assert diagnostics == ()
    assert all(s.timeslot.day == 1 for s in sched.slots)
    assert sched.slots[0].timeslot != sched.slots[1].timeslot
    _check_valid(snap, sched)


def test_shared_monday_teacher_with_one_monday_slot(fast_config):
    snap = _monday_teacher(make_timeslots([(1, "09:00-10:00"), (2, "09:00-10:00")]))
    config = fast_config.with_overrides(preferred_slots=("09:00-10:00",), restricted_slots=())
    sched, diagnostics = solve(snap, config)
    assert sched.counts[CONFLICT] == 1
    assert len(diagnostics) == 1
    assert diagnostics[0].code == "unresolved"
    assert [s.timeslot.day for s in placed(sched)] == [1]
    _check_valid(snap, sched)


def test_department_solve_is_valid_and_complete(department_snapshot, fast_config):
    sched, diagnostics = solve(department_snapshot, fast_config)
    assert diagnostics == ()
    assert len(sched.slots) == 20
    assert sched.complete
    assert sched.counts[CONFIRMED] + sched.counts[TENTATIVE] == 20
    _check_valid(department_snapshot, sched)
    assert [s.session_id for s in sched.slots][:3] == ["B1/S1#1", "B1/S1#2", "B1/S2#1"]


def test_same_input_same_schedule(department_snapshot, fast_config):
    first, _ = solve(department_snapshot, fast_config)
    second, _ = solve(department_snapshot, fast_config)
    assert first == second


def test_penalty_trace_and_shares(department_snapshot, fast_config):
    sched, _ = solve(department_snapshot, fast_config)
    trace = sched.penalty_trace
    assert trace
    for prev, cur in zip(trace, trace[1:]):
        assert cur < prev
    assert abs(sched.penalty - trace[-1][1]) < 1e-6
    assert sum(s.penalty for s in sched.slots) == pytest.approx(sched.penalty)
    for s in sched.slots:
        assert (s.status == CONFIRMED) == (s.penalty < fast_config.confirm_threshold)
    assert {"nodes", "backtracks", "iterations", "seconds"} <= set(sched.stats)


def test_progress_is_monotone_and_finishes(department_snapshot, fast_config):
    seen = []
    solve(department_snapshot, fast_config, progress=seen.append)
    assert seen[-1] == 100.0
    assert seen == sorted(seen)
    assert all(0.0 <= v <= 100.0 for v in seen)


def test_progress_tracker_clamps():
    seen = []
    tracker = ProgressTracker(seen.append)
    tracker.update(40)
    tracker.update(30)
    tracker.band(60, 100, 2.0)
    tracker.finish()
    assert seen == [40.0, 100.0]


def test_cancel_mid_solve_returns_valid_partial(department_snapshot, fast_config):
    token = CancellationToken()

    def progress(pct):
        if pct >= 20:
            token.cancel()

    config = fast_config.with_overrides(sa_iterations=200000)
    sched, diagnostics = solve(department_snapshot, config, cancel_token=token, progress=progress)
    assert sched.cancelled
    _check_valid(department_snapshot, sched)
    unplaced = [s for s in sched.slots if s.status == CONFLICT]
    assert len(diagnostics) == len(unplaced)
    assert all(d.code == "cancelled" for d in diagnostics)


def test_cancel_before_start(department_snapshot, fast_config):
    token = CancellationToken()
    token.cancel()
    sched, diagnostics = solve(department_snapshot, fast_config, cancel_token=token)
    assert sched.cancelled
    assert all(s.status == CONFLICT and s.violations == ("cancelled",) for s in sched.slots)
    assert len(diagnostics) == len(sched.slots)
    assert completeness_ok(department_snapshot, sched)


def test_configuration_errors_propagate(single_pair_snapshot):
    with pytest.raises(ConfigurationError, match="preferred and restricted"):
        solve(single_pair_snapshot, SolverConfig(preferred_slots=("12:00-13:00",)))
    with pytest.raises(ConfigurationError, match="unknown time slot"):
        solve(single_pair_snapshot, SolverConfig(preferred_slots=("07:00-08:00",)))
    with pytest.raises(ConfigurationError, match="non-positive"):
        solve(EntitySnapshot(subjects=[Subject(id="A", sessions_per_week=0)],
                             batches=[Batch(id="B1", subjects=("A",))]))


def test_scheduler_object_reuses_config(single_pair_snapshot, fast_config):
    scheduler = Scheduler(fast_config)
    sched, _ = scheduler.solve(single_pair_snapshot)
    assert sched == solve(single_pair_snapshot, fast_config)[0]


def test_prebuilt_problem_solves_like_snapshot(department_snapshot, fast_config):
    problem = build_problem(department_snapshot, fast_config)
    assert solve_problem(problem)[0] == solve(department_snapshot, fast_config)[0]


def test_solve_many_keeps_job_order(single_pair_snapshot, department_snapshot, fast_config):
    results = solve_many([(department_snapshot, fast_config), (single_pair_snapshot, fast_config)], max_workers=2)
    assert [len(sched.slots) for sched, _ in results] == [20, 2]
    assert results[1][0] == solve(single_pair_snapshot, fast_config)[0]


def _one_slot(sessions):
    return EntitySnapshot(
        faculty=[Faculty(id="F1", subjects={"A"})],
        rooms=[Room(id="R1")],
        subjects=[Subject(id="A", sessions_per_week=sessions)],
        batches=[Batch(id="B1", strength=30, subjects=("A",))],
        timeslots=make_timeslots([(1, "09:00-10:00")]),
    )


def test_conflict_blocks_fully_confirmed(fast_config):
    config = fast_config.with_overrides(preferred_slots=(), restricted_slots=(), room_utilization_max=100)
    sched, _ = solve(_one_slot(1), config)
    assert sched.penalty == 0.0
    assert sched.fully_confirmed

    sched, diagnostics = solve(_one_slot(2), config)
    assert sched.counts[CONFLICT] == 1
    assert sched.penalty == 0.0
    assert not sched.fully_confirmed
    assert [d.code for d in diagnostics] == ["unresolved"]

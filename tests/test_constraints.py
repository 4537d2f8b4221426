import pytest

from classtime.config import FLEXIBLE, SolverConfig
from classtime.models import Batch, Candidate as C, EntitySnapshot, Faculty, Room, Subject
from classtime.scheduling.constraints import (
    batch_day_terms, faculty_terms, hard_violations, is_free, local_penalty, move_scope, room_terms,
    session_breakdown, session_terms, total_penalty, weighted,
)
from classtime.scheduling.problem import build_problem
from classtime.scheduling.state import ScheduleState

CONFIG = SolverConfig(
    preferred_slots=("09:00-10:00",),
    restricted_slots=("12:00-13:00",),
    min_break_minutes=15,
    max_consecutive_hours=2,
    max_classes_per_day=2,
    room_utilization_max=10,
    allow_back_to_back_labs=False,
)


@pytest.fixture
def state():
    # sessions: 0-3 B1/A, 4-5 B1/L, 6-9 B2/A
    snap = EntitySnapshot(
        faculty=[Faculty(id="F1", max_hours_per_day=2, subjects={"A", "L"}),
                 Faculty(id="F2", available_days={1}, subjects={"A"})],
        rooms=[Room(id="R1", capacity=60), Room(id="R2", capacity=30), Room(id="LAB", kind="lab", capacity=60)],
        subjects=[Subject(id="A", sessions_per_week=4),
                  Subject(id="L", kind="lab", sessions_per_week=2, required_equipment={"Computers"})],
        batches=[Batch(id="B1", strength=40, subjects=("A", "L")), Batch(id="B2", strength=25, subjects=("A",))],
    )
    return ScheduleState(build_problem(snap, CONFIG))


def test_exclusivity_violations(state):
    state.assign(0, C(0, "R1", "F1"))
    assert hard_violations(state, 6, C(0, "R1", "F1")) == ["slot_faculty", "slot_room"]
    assert hard_violations(state, 1, C(0, "R2", "F2")) == ["slot_batch", "room_capacity"]
    # a session never clashes with itself
    assert hard_violations(state, 0, C(0, "R1", "F1")) == []


def test_static_violations(state):
    assert hard_violations(state, 6, C(7, "R1", "F2")) == ["faculty_availability"]
    assert hard_violations(state, 4, C(1, "R1", "F1")) == ["room_kind"]
    assert hard_violations(state, 4, C(1, "LAB", "F2")) == ["faculty_qualification"]


def test_daily_hour_cap(state):
    state.assign(0, C(0, "R1", "F1"))
    state.assign(6, C(1, "R1", "F1"))
    assert hard_violations(state, 1, C(2, "R1", "F1")) == ["faculty_daily_hours"]
    assert not is_free(state, 1, C(2, "R1", "F1"))
    # moving one of F1's own Monday sessions inside Monday stays legal
    assert is_free(state, 6, C(2, "R1", "F1"))
    assert hard_violations(state, 1, C(9, "R1", "F1")) == []


def test_is_free_agrees_with_hard_check_on_domains(state):
    state.assign(0, C(0, "R1", "F1"))
    state.assign(4, C(8, "LAB", "F1"))
    p = state.problem
    for i in (1, 5, 6):
        for cand in p.domains[i]:
            assert is_free(state, i, cand) == (not hard_violations(state, i, cand))


def test_session_terms(state):
    assert session_terms(state, 0, C(0, "R1", "F1")) == {}
    assert session_terms(state, 0, C(1, "R1", "F1")) == {"preferred_slot": 1.0}
    assert session_terms(state, 0, C(3, "R1", "F1")) == {"preferred_slot": 1.0, "restricted_slot": 3.0}
    assert session_terms(state, 4, C(0, "LAB", "F1")) == {"equipment": 1.0}


def test_weighting(state):
    # time preference ranks 3 by default -> weight 2
    assert weighted(state, {"preferred_slot": 1.0, "restricted_slot": 3.0}) == 8.0


def _busy_monday(state):
    state.assign(0, C(0, "R1", "F1"))
    state.assign(1, C(1, "R1", "F2"))
    state.assign(2, C(2, "R1", "F1"))
    state.assign(4, C(4, "LAB", "F1"))
    state.assign(5, C(5, "LAB", "F1"))
    state.assign(6, C(7, "R1", "F1"))


def test_group_terms(state):
    _busy_monday(state)
    assert batch_day_terms(state, "B1", 1) == {
        "batch_gaps": 1.0,
        "daily_class_limit": 3.0,
        "consecutive_hours": 1.0,
        "min_break": 3.0,
        "back_to_back_labs": 1.0,
    }
    assert batch_day_terms(state, "B1", 2) == {}
    assert faculty_terms(state, "F1") == pytest.approx({"workload_balance": 2.25})
    assert room_terms(state, "R1") == {"room_utilization": 1.0}
    assert room_terms(state, "LAB") == {}


def test_shares_add_up_to_total(state):
    _busy_monday(state)
    breakdown = session_breakdown(state)
    assert set(breakdown) == {0, 1, 2, 4, 5, 6}
    assert sum(share for share, _ in breakdown.values()) == pytest.approx(total_penalty(state))
    _, names = breakdown[4]
    assert "back_to_back_labs" in names
    assert "equipment" in names
    assert "workload_balance" in breakdown[6][1]


def test_local_penalty_matches_full_rescore(state):
    _busy_monday(state)
    before_total = total_penalty(state)
    move = [(6, C(8, "R1", "F1")), (2, C(3, "R1", "F2"))]
    scope = move_scope(state, move)
    before = local_penalty(state, scope)
    for i, cand in move:
        state.unassign(i)
        state.assign(i, cand)
    after = local_penalty(state, scope)
    assert after - before == pytest.approx(total_penalty(state) - before_total)


def test_flexible_workload_drops_balance_term():
    snap = EntitySnapshot(
        faculty=[Faculty(id="F1", subjects={"A"})],
        rooms=[Room(id="R1")],
        subjects=[Subject(id="A", sessions_per_week=3)],
        batches=[Batch(id="B1", strength=30, subjects=("A",))],
    )
    even = ScheduleState(build_problem(snap, CONFIG))
    flexible = ScheduleState(build_problem(snap, CONFIG.with_overrides(workload_distribution=FLEXIBLE)))
    for state in (even, flexible):
        state.assign(0, C(0, "R1", "F1"))
        state.assign(1, C(1, "R1", "F1"))
        state.assign(2, C(7, "R1", "F1"))
    assert faculty_terms(even, "F1") == pytest.approx({"workload_balance": 0.25})
    assert "workload_balance" not in faculty_terms(flexible, "F1")

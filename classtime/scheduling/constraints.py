"""Hard-constraint checks and the weighted soft-constraint scorer.

Every function here only reads the ScheduleState it is given, so scoring can
run from any thread while a single search thread owns the mutations.

Soft penalties are grouped by the entity they belong to: a session, a
(batch, weekday) pair, a faculty member or a room. A move only touches a few
groups, which is what `move_scope` + `local_penalty` exploit to score moves
without rescoring the whole week.
"""
import math
from collections import defaultdict
from typing import Dict, Iterable, List, Optional, Set, Tuple

from ..config import EVEN
from ..models import Candidate
from .state import ScheduleState

# hard constraints
SLOT_FACULTY = "slot_faculty"
SLOT_ROOM = "slot_room"
SLOT_BATCH = "slot_batch"
FACULTY_AVAILABILITY = "faculty_availability"
ROOM_AVAILABILITY = "room_availability"
FACULTY_DAILY_HOURS = "faculty_daily_hours"
ROOM_KIND = "room_kind"
ROOM_CAPACITY = "room_capacity"
FACULTY_QUALIFICATION = "faculty_qualification"
ROOM_EQUIPMENT = "room_equipment"

HARD_CONSTRAINTS = (
    SLOT_FACULTY, SLOT_ROOM, SLOT_BATCH, FACULTY_AVAILABILITY, ROOM_AVAILABILITY,
    FACULTY_DAILY_HOURS, ROOM_KIND, ROOM_CAPACITY, FACULTY_QUALIFICATION, ROOM_EQUIPMENT,
)

# soft constraints -> the SoftWeights field that scales them
SOFT_WEIGHT_OF = {
    "preferred_slot": "time_preference",
    "restricted_slot": "time_preference",
    "equipment": "equipment",
    "workload_balance": "workload_balance",
    "consecutive_hours": "consecutive_hours",
    "room_utilization": "room_utilization",
    "batch_gaps": "batch_gaps",
    "daily_class_limit": "daily_class_limit",
    "min_break": "min_break",
    "back_to_back_labs": "back_to_back_labs",
}
SOFT_CONSTRAINTS = tuple(SOFT_WEIGHT_OF)

PREFERRED_MISS = 1.0
RESTRICTED_HIT = 3.0

_EPS = 1e-9


def hard_violations(state: ScheduleState, i: int, cand: Candidate) -> List[str]:
    """Hard constraints `cand` would break for session `i`, given everything else in `state`.

    The session's own current assignment, if any, is ignored.
    """
    p = state.problem
    snap = p.snapshot
    ts = p.slot(cand.slot)
    subject = p.subjects[i]
    batch = p.batches[i]
    room = snap.room(cand.room_id)
    fac = snap.faculty_by_id(cand.faculty_id)
    out: List[str] = []

    for table, key, name in ((state.faculty_at, (cand.slot, cand.faculty_id), SLOT_FACULTY),
                             (state.room_at, (cand.slot, cand.room_id), SLOT_ROOM),
                             (state.batch_at, (cand.slot, batch.id), SLOT_BATCH)):
        other = table.get(key)
        if other is not None and other != i:
            out.append(name)
    if ts.day not in fac.available_days:
        out.append(FACULTY_AVAILABILITY)
    if ts.day not in room.available_days:
        out.append(ROOM_AVAILABILITY)
    minutes = state.faculty_minutes.get((fac.id, ts.day), 0)
    current = state.get(i)
    if current is not None and current.faculty_id == fac.id and p.slot(current.slot).day == ts.day:
        minutes -= subject.duration
    if minutes + subject.duration > fac.max_hours_per_day * 60 + _EPS:
        out.append(FACULTY_DAILY_HOURS)
    if room.kind != subject.room_kind:
        out.append(ROOM_KIND)
    if room.capacity < batch.strength:
        out.append(ROOM_CAPACITY)
    if subject.id not in fac.subjects:
        out.append(FACULTY_QUALIFICATION)
    if p.config.mandatory_equipment and not subject.required_equipment <= room.equipment:
        out.append(ROOM_EQUIPMENT)
    return out


def is_legal(state: ScheduleState, i: int, cand: Candidate) -> bool:
    return not hard_violations(state, i, cand)


def is_free(state: ScheduleState, i: int, cand: Candidate) -> bool:
    """Dynamic part of `is_legal` for a candidate already taken from session i's domain."""
    p = state.problem
    other = state.faculty_at.get((cand.slot, cand.faculty_id))
    if other is not None and other != i:
        return False
    other = state.room_at.get((cand.slot, cand.room_id))
    if other is not None and other != i:
        return False
    other = state.batch_at.get((cand.slot, p.sessions[i].batch_id))
    if other is not None and other != i:
        return False
    day = p.slot(cand.slot).day
    duration = p.duration(i)
    minutes = state.faculty_minutes.get((cand.faculty_id, day), 0)
    current = state.get(i)
    if current is not None and current.faculty_id == cand.faculty_id and p.slot(current.slot).day == day:
        minutes -= duration
    cap = p.snapshot.faculty_by_id(cand.faculty_id).max_hours_per_day * 60
    return minutes + duration <= cap + _EPS


# ---------------------------------------------------------------------------
# soft constraints, raw (unweighted) terms per group
# ---------------------------------------------------------------------------

def session_terms(state: ScheduleState, i: int, cand: Candidate) -> Dict[str, float]:
    p = state.problem
    cfg = p.config
    label = p.slot(cand.slot).label
    terms: Dict[str, float] = {}
    if cfg.preferred_slots and label not in cfg.preferred_slots:
        terms["preferred_slot"] = PREFERRED_MISS
    if label in cfg.restricted_slots:
        terms["restricted_slot"] = RESTRICTED_HIT
    if not cfg.mandatory_equipment:
        missing = p.subjects[i].required_equipment - p.snapshot.room(cand.room_id).equipment
        if missing:
            terms["equipment"] = float(len(missing))
    return terms


def _runs(state: ScheduleState, slots: List[int]) -> List[List[int]]:
    """Split sorted same-day slot indices into runs of back-to-back slots."""
    p = state.problem
    runs: List[List[int]] = []
    for s in slots:
        if runs:
            prev = runs[-1][-1]
            if p.slot_pos[s] == p.slot_pos[prev] + 1 and p.slot(s).start_min <= p.slot(prev).end_min:
                runs[-1].append(s)
                continue
        runs.append([s])
    return runs


def _consecutive_excess(state: ScheduleState, slots: List[int]) -> float:
    p = state.problem
    limit = p.config.max_consecutive_hours
    excess = 0.0
    for run in _runs(state, slots):
        hours = sum(p.slot(s).duration_min for s in run) / 60.0
        if hours > limit + _EPS:
            excess += hours - limit
    return excess


def batch_day_terms(state: ScheduleState, batch_id: str, day: int) -> Dict[str, float]:
    p = state.problem
    cfg = p.config
    members = state.batch_day.get((batch_id, day))
    if not members:
        return {}
    slots = sorted(members)
    terms: Dict[str, float] = {}
    first, last = p.slot_pos[slots[0]], p.slot_pos[slots[-1]]
    gaps = (last - first + 1) - len(slots)
    if gaps:
        terms["batch_gaps"] = float(gaps)
    if len(slots) > cfg.max_classes_per_day:
        terms["daily_class_limit"] = float(len(slots) - cfg.max_classes_per_day)
    excess = _consecutive_excess(state, slots)
    if excess:
        terms["consecutive_hours"] = excess
    short_breaks = 0
    lab_pairs = 0
    for a, b in zip(slots, slots[1:]):
        if p.slot_pos[b] != p.slot_pos[a] + 1:
            continue
        if p.slot(b).start_min - p.slot(a).end_min < cfg.min_break_minutes:
            short_breaks += 1
        if not cfg.allow_back_to_back_labs and p.is_lab(members[a]) and p.is_lab(members[b]):
            lab_pairs += 1
    if short_breaks:
        terms["min_break"] = float(short_breaks)
    if lab_pairs:
        terms["back_to_back_labs"] = float(lab_pairs)
    return terms


def faculty_terms(state: ScheduleState, faculty_id: str) -> Dict[str, float]:
    p = state.problem
    terms: Dict[str, float] = {}
    hours = []
    excess = 0.0
    for day in sorted(p.day_slots):
        minutes = state.faculty_minutes.get((faculty_id, day), 0)
        if minutes > 0:
            hours.append(minutes / 60.0)
            excess += _consecutive_excess(state, sorted(state.faculty_day[(faculty_id, day)]))
    if p.config.workload_distribution == EVEN and len(hours) > 1:
        mean = sum(hours) / len(hours)
        variance = sum((h - mean) ** 2 for h in hours) / len(hours)
        if variance > _EPS:
            terms["workload_balance"] = variance
    if excess:
        terms["consecutive_hours"] = excess
    return terms


def room_terms(state: ScheduleState, room_id: str) -> Dict[str, float]:
    p = state.problem
    load = state.room_load.get(room_id, 0)
    ceiling = math.floor(p.config.room_utilization_max / 100.0 * p.room_slot_count[room_id] + _EPS)
    if load > ceiling:
        return {"room_utilization": float(load - ceiling)}
    return {}


def weighted(state: ScheduleState, terms: Dict[str, float]) -> float:
    weights = state.problem.config.weights
    total = 0.0
    for name, value in terms.items():
        total += getattr(weights, SOFT_WEIGHT_OF[name]) * value
    return total


# ---------------------------------------------------------------------------
# scopes: which groups a move touches
# ---------------------------------------------------------------------------

class Scope:
    """Set of soft-constraint groups; the unit of incremental scoring."""

    def __init__(self):
        self.batch_days: Set[Tuple[str, int]] = set()
        self.faculty: Set[str] = set()
        self.rooms: Set[str] = set()
        self.sessions: Set[int] = set()

    def add(self, state: ScheduleState, i: int, cand: Optional[Candidate]) -> "Scope":
        self.sessions.add(i)
        if cand is not None:
            p = state.problem
            self.batch_days.add((p.sessions[i].batch_id, p.slot(cand.slot).day))
            self.faculty.add(cand.faculty_id)
            self.rooms.add(cand.room_id)
        return self


def move_scope(state: ScheduleState, changes: Iterable[Tuple[int, Optional[Candidate]]]) -> Scope:
    """Groups touched when each session i in `changes` moves from its current candidate to the given one."""
    scope = Scope()
    for i, new in changes:
        scope.add(state, i, state.get(i))
        scope.add(state, i, new)
    return scope


def local_penalty(state: ScheduleState, scope: Scope) -> float:
    total = 0.0
    for batch_id, day in sorted(scope.batch_days):
        total += weighted(state, batch_day_terms(state, batch_id, day))
    for fid in sorted(scope.faculty):
        total += weighted(state, faculty_terms(state, fid))
    for rid in sorted(scope.rooms):
        total += weighted(state, room_terms(state, rid))
    for i in sorted(scope.sessions):
        cand = state.get(i)
        if cand is not None:
            total += weighted(state, session_terms(state, i, cand))
    return total


def full_scope(state: ScheduleState) -> Scope:
    p = state.problem
    scope = Scope()
    scope.batch_days = {(b.id, day) for b in p.snapshot.batches for day in p.day_slots}
    scope.faculty = {f.id for f in p.snapshot.faculty}
    scope.rooms = {r.id for r in p.snapshot.rooms}
    scope.sessions = set(state.assignment)
    return scope


def total_penalty(state: ScheduleState) -> float:
    return local_penalty(state, full_scope(state))


def session_breakdown(state: ScheduleState) -> Dict[int, Tuple[float, Tuple[str, ...]]]:
    """Per assigned session: its share of the total penalty and the soft constraints it takes part in breaking.

    A group's weighted penalty is split evenly across the sessions in the
    group, so the shares add up to `total_penalty`.
    """
    p = state.problem
    weights = p.config.weights
    share: Dict[int, float] = {i: 0.0 for i in state.assignment}
    broken: Dict[int, Set[str]] = {i: set() for i in state.assignment}

    def spread(members: List[int], terms: Dict[str, float]):
        if not members or not terms:
            return
        amount = weighted(state, terms) / len(members)
        names = {n for n, v in terms.items() if v > 0 and getattr(weights, SOFT_WEIGHT_OF[n]) > 0}
        for i in members:
            share[i] += amount
            broken[i].update(names)

    by_faculty: Dict[str, List[int]] = defaultdict(list)
    by_room: Dict[str, List[int]] = defaultdict(list)
    for i in sorted(state.assignment):
        cand = state.assignment[i]
        by_faculty[cand.faculty_id].append(i)
        by_room[cand.room_id].append(i)
        spread([i], session_terms(state, i, cand))
    for b in p.snapshot.batches:
        for day in sorted(p.day_slots):
            members = state.batch_day.get((b.id, day))
            if members:
                spread([members[s] for s in sorted(members)], batch_day_terms(state, b.id, day))
    for f in p.snapshot.faculty:
        spread(by_faculty.get(f.id, []), faculty_terms(state, f.id))
    for r in p.snapshot.rooms:
        spread(by_room.get(r.id, []), room_terms(state, r.id))

    order = {name: k for k, name in enumerate(SOFT_CONSTRAINTS)}
    return {i: (share[i], tuple(sorted(broken[i], key=order.get))) for i in share}

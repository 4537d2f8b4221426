from collections import defaultdict
from typing import Dict, List, Tuple
import networkx as nx

from ..models import CONFLICT, EntitySnapshot, Schedule, ScheduleSlot


def placed(sched: Schedule) -> List[ScheduleSlot]:
    return [s for s in sched.slots if s.status != CONFLICT and s.timeslot is not None]


def find_clashes(sched: Schedule) -> List[Tuple[str, Tuple, List[str]]]:
    """Every (slot, faculty), (slot, room) and (slot, batch) key used by more than one placed slot."""
    tables: Dict[str, Dict[Tuple, List[str]]] = {"faculty": defaultdict(list), "room": defaultdict(list),
                                                 "batch": defaultdict(list)}
    for s in placed(sched):
        tables["faculty"][(s.timeslot.index, s.faculty_id)].append(s.session_id)
        tables["room"][(s.timeslot.index, s.room_id)].append(s.session_id)
        tables["batch"][(s.timeslot.index, s.batch_id)].append(s.session_id)
    clashes = []
    for kind, table in tables.items():
        for key, ids in table.items():
            if len(ids) > 1:
                clashes.append((kind, key, ids))
    return clashes


def conflicts_ok(G: nx.Graph, sched: Schedule) -> bool:
    slot_of = {s.session_id: s.timeslot.index for s in placed(sched)}
    for u, v in G.edges():
        if u in slot_of and slot_of.get(u) == slot_of.get(v):
            return False
    return True


def resources_ok(snapshot: EntitySnapshot, sched: Schedule) -> bool:
    """Room kind, capacity and availability; faculty qualification, availability and daily hours."""
    minutes: Dict[Tuple[str, int], int] = defaultdict(int)
    for s in placed(sched):
        subject = snapshot.subject(s.subject_id)
        room = snapshot.room(s.room_id)
        fac = snapshot.faculty_by_id(s.faculty_id)
        day = s.timeslot.day
        if room.kind != subject.room_kind or room.capacity < snapshot.batch(s.batch_id).strength:
            return False
        if day not in room.available_days or day not in fac.available_days:
            return False
        if subject.id not in fac.subjects:
            return False
        minutes[(fac.id, day)] += subject.duration
        if minutes[(fac.id, day)] > fac.max_hours_per_day * 60 + 1e-9:
            return False
    return True


def completeness_ok(snapshot: EntitySnapshot, sched: Schedule) -> bool:
    expected = sum(snapshot.subject(sid).sessions_per_week for b in snapshot.batches for sid in b.subjects)
    return len(sched.slots) == expected

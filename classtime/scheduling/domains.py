import logging
from typing import Dict, List, Sequence, Tuple, Union

from ..errors import InfeasibleSessionError
from ..models import Batch, Candidate, EntitySnapshot, Faculty, Room, Session, Subject

logger = logging.getLogger(__name__)


def qualified_faculty(snapshot: EntitySnapshot, subject: Subject) -> List[Faculty]:
    return [f for f in snapshot.faculty if subject.id in f.subjects]


def room_fits(room: Room, subject: Subject, batch: Batch, mandatory_equipment: bool = False) -> bool:
    if room.kind != subject.room_kind or room.capacity < batch.strength:
        return False
    return not mandatory_equipment or subject.required_equipment <= room.equipment


def build_domain(snapshot: EntitySnapshot, session: Session, mandatory_equipment: bool = False) -> List[Candidate]:
    """All (slot, room, faculty) triples legal for `session` ignoring every other session.

    Order is slot, then room, then faculty, each in snapshot order. Raises
    InfeasibleSessionError naming the first requirement nobody meets.
    """
    subject = snapshot.subject(session.subject_id)
    batch = snapshot.batch(session.batch_id)
    sid = session.session_id

    teachers = qualified_faculty(snapshot, subject)
    if not teachers:
        raise InfeasibleSessionError(sid, f"no faculty qualified for subject {subject.id}")

    kind = subject.room_kind
    same_kind = [r for r in snapshot.rooms if r.kind == kind]
    if not same_kind:
        raise InfeasibleSessionError(sid, f"no room of kind {kind} available")
    big_enough = [r for r in same_kind if r.capacity >= batch.strength]
    if not big_enough:
        raise InfeasibleSessionError(
            sid, f"no room of kind {kind} with capacity >= {batch.strength} available")
    rooms = [r for r in big_enough if room_fits(r, subject, batch, mandatory_equipment)]
    if not rooms:
        tags = sorted(subject.required_equipment)
        raise InfeasibleSessionError(sid, f"no room of kind {kind} with equipment {tags} available")

    hours = subject.duration / 60.0
    able = [f for f in teachers if f.max_hours_per_day >= hours]
    if not able:
        raise InfeasibleSessionError(
            sid, f"session duration exceeds the daily hour cap of every qualified faculty for subject {subject.id}")

    domain: List[Candidate] = []
    for ts in snapshot.timeslots:
        day_rooms = [r for r in rooms if ts.day in r.available_days]
        day_teachers = [f for f in able if ts.day in f.available_days]
        for r in day_rooms:
            for f in day_teachers:
                domain.append(Candidate(ts.index, r.id, f.id))
    if not domain:
        raise InfeasibleSessionError(
            sid, f"no qualified faculty and matching room share an available weekday for subject {subject.id}")
    return domain


def build_domains(snapshot: EntitySnapshot, sessions: Sequence[Session],
                  mandatory_equipment: bool = False) -> Tuple[List[List[Candidate]], Dict[int, str]]:
    """Static domains for every session plus the reason of each session left without one."""
    domains: List[List[Candidate]] = []
    infeasible: Dict[int, str] = {}
    # every occurrence of a (batch, subject) pair shares one domain
    cache: Dict[Tuple[str, str], Union[List[Candidate], str]] = {}
    for s in sessions:
        key = (s.batch_id, s.subject_id)
        if key not in cache:
            try:
                cache[key] = build_domain(snapshot, s, mandatory_equipment)
            except InfeasibleSessionError as e:
                logger.warning("infeasible session %s: %s", e.session_id, e.reason)
                cache[key] = e.reason
        found = cache[key]
        if isinstance(found, str):
            infeasible[s.index] = found
            domains.append([])
        else:
            domains.append(found)
    return domains, infeasible

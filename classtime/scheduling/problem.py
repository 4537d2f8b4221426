import logging
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, List

from ..config import SolverConfig
from ..models import Batch, Candidate, EntitySnapshot, Session, Subject, TimeSlot
from .domains import build_domains
from .expand_sessions import expand_sessions

logger = logging.getLogger(__name__)


@dataclass
class SchedulingProblem:
    """Everything that stays fixed while one solve runs."""
    snapshot: EntitySnapshot
    config: SolverConfig
    sessions: List[Session]
    domains: List[List[Candidate]]
    infeasible: Dict[int, str]
    domain_sets: List[FrozenSet[Candidate]] = field(init=False, repr=False)
    subjects: List[Subject] = field(init=False, repr=False)
    batches: List[Batch] = field(init=False, repr=False)
    # slot index -> position inside its weekday
    slot_pos: List[int] = field(init=False, repr=False)
    day_slots: Dict[int, List[int]] = field(init=False, repr=False)
    # room id -> number of catalog slots on the room's available days
    room_slot_count: Dict[str, int] = field(init=False, repr=False)

    def __post_init__(self):
        snap = self.snapshot
        self.domain_sets = [frozenset(d) for d in self.domains]
        self.subjects = [snap.subject(s.subject_id) for s in self.sessions]
        self.batches = [snap.batch(s.batch_id) for s in self.sessions]
        self.day_slots = {}
        self.slot_pos = []
        for ts in snap.timeslots:
            day = self.day_slots.setdefault(ts.day, [])
            self.slot_pos.append(len(day))
            day.append(ts.index)
        self.room_slot_count = {
            r.id: sum(1 for ts in snap.timeslots if ts.day in r.available_days) for r in snap.rooms
        }

    def slot(self, index: int) -> TimeSlot:
        return self.snapshot.timeslots[index]

    def duration(self, i: int) -> int:
        return self.subjects[i].duration

    def is_lab(self, i: int) -> bool:
        return self.subjects[i].kind == "lab"

    @property
    def schedulable(self) -> List[int]:
        return [s.index for s in self.sessions if s.index not in self.infeasible]


def build_problem(snapshot: EntitySnapshot, config: SolverConfig) -> SchedulingProblem:
    """Validate the configuration, expand sessions and build their static domains."""
    config.validate(snapshot.slot_labels())
    sessions = expand_sessions(snapshot)
    domains, infeasible = build_domains(snapshot, sessions, config.mandatory_equipment)
    logger.info("built %d sessions, %d without any legal candidate", len(sessions), len(infeasible))
    return SchedulingProblem(snapshot=snapshot, config=config, sessions=sessions,
                             domains=domains, infeasible=infeasible)

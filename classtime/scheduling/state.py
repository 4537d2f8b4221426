from collections import defaultdict
from typing import Dict, Optional, Tuple

from ..models import Candidate
from .problem import SchedulingProblem


class ScheduleState:
    """Partial assignment plus the occupancy tables hard checks and scoring read.

    Only one search owns a state; every mutation goes through assign/unassign
    so the tables never drift from `assignment`.
    """

    def __init__(self, problem: SchedulingProblem):
        self.problem = problem
        self.assignment: Dict[int, Candidate] = {}
        self.faculty_at: Dict[Tuple[int, str], int] = {}
        self.room_at: Dict[Tuple[int, str], int] = {}
        self.batch_at: Dict[Tuple[int, str], int] = {}
        self.faculty_minutes: Dict[Tuple[str, int], int] = defaultdict(int)
        # (batch id, day) -> {slot index: session}
        self.batch_day: Dict[Tuple[str, int], Dict[int, int]] = defaultdict(dict)
        # (faculty id, day) -> {slot index: session}
        self.faculty_day: Dict[Tuple[str, int], Dict[int, int]] = defaultdict(dict)
        self.room_load: Dict[str, int] = defaultdict(int)

    def __len__(self):
        return len(self.assignment)

    def get(self, i: int) -> Optional[Candidate]:
        return self.assignment.get(i)

    def assign(self, i: int, cand: Candidate) -> None:
        if i in self.assignment:
            raise ValueError(f"session {i} is already assigned")
        p = self.problem
        day = p.slot(cand.slot).day
        batch_id = p.sessions[i].batch_id
        self.assignment[i] = cand
        self.faculty_at[(cand.slot, cand.faculty_id)] = i
        self.room_at[(cand.slot, cand.room_id)] = i
        self.batch_at[(cand.slot, batch_id)] = i
        self.faculty_minutes[(cand.faculty_id, day)] += p.duration(i)
        self.batch_day[(batch_id, day)][cand.slot] = i
        self.faculty_day[(cand.faculty_id, day)][cand.slot] = i
        self.room_load[cand.room_id] += 1

    def unassign(self, i: int) -> Candidate:
        p = self.problem
        cand = self.assignment.pop(i)
        day = p.slot(cand.slot).day
        batch_id = p.sessions[i].batch_id
        del self.faculty_at[(cand.slot, cand.faculty_id)]
        del self.room_at[(cand.slot, cand.room_id)]
        del self.batch_at[(cand.slot, batch_id)]
        self.faculty_minutes[(cand.faculty_id, day)] -= p.duration(i)
        del self.batch_day[(batch_id, day)][cand.slot]
        del self.faculty_day[(cand.faculty_id, day)][cand.slot]
        self.room_load[cand.room_id] -= 1
        return cand

    def snapshot(self) -> Dict[int, Candidate]:
        return dict(self.assignment)

    def restore(self, assignment: Dict[int, Candidate]) -> None:
        """Replace the current assignment by `assignment` (sessions re-added in index order)."""
        for i in sorted(self.assignment):
            self.unassign(i)
        for i in sorted(assignment):
            self.assign(i, assignment[i])

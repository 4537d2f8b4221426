import logging
from typing import Dict, List, Tuple

from ..models import CONFIRMED, CONFLICT, TENTATIVE, Diagnostic, Schedule, ScheduleSlot
from .constraints import hard_violations, session_breakdown, total_penalty
from .state import ScheduleState

logger = logging.getLogger(__name__)

INFEASIBLE = "infeasible"
HARD_VIOLATION = "hard_violation"


def describe_failure(state: ScheduleState, i: int, code: str) -> str:
    s = state.problem.sessions[i]
    if code == "budget_exhausted":
        return f"search budget exhausted before placing subject {s.subject_id} for batch {s.batch_id}"
    if code == "cancelled":
        return f"solve cancelled before placing subject {s.subject_id} for batch {s.batch_id}"
    return (f"no qualified faculty, room and free slot of batch {s.batch_id} "
            f"found for subject {s.subject_id}")


def assemble(state: ScheduleState, unresolved: Dict[int, str], cancelled: bool = False,
             budget_exhausted: bool = False, trace=(), stats=None) -> Tuple[Schedule, Tuple[Diagnostic, ...]]:
    """Project the final state onto ScheduleSlots (expansion order) plus diagnostics."""
    p = state.problem
    threshold = p.config.confirm_threshold
    breakdown = session_breakdown(state)
    slots: List[ScheduleSlot] = []
    diagnostics: List[Diagnostic] = []

    def diagnose(i: int, code: str, reason: str):
        s = p.sessions[i]
        diagnostics.append(Diagnostic(session_id=s.session_id, batch_id=s.batch_id, subject_id=s.subject_id,
                                      occurrence=s.occurrence, code=code, reason=reason))

    for s in p.sessions:
        i = s.index
        cand = state.get(i)
        if cand is None:
            if i in p.infeasible:
                code, reason = INFEASIBLE, p.infeasible[i]
            else:
                code = unresolved.get(i, "unresolved")
                reason = describe_failure(state, i, code)
            diagnose(i, code, reason)
            slots.append(ScheduleSlot(session_id=s.session_id, timeslot=None, subject_id=s.subject_id,
                                      faculty_id=None, room_id=None, batch_id=s.batch_id,
                                      status=CONFLICT, violations=(code,)))
            continue
        broken = hard_violations(state, i, cand)
        if broken:
            logger.error("session %s holds an illegal assignment: %s", s.session_id, broken)
            diagnose(i, HARD_VIOLATION, f"assignment breaks hard constraints {', '.join(broken)}")
            status, violations, share = CONFLICT, tuple(broken), 0.0
        else:
            share, violations = breakdown[i]
            status = CONFIRMED if share < threshold else TENTATIVE
        slots.append(ScheduleSlot(session_id=s.session_id, timeslot=p.slot(cand.slot), subject_id=s.subject_id,
                                  faculty_id=cand.faculty_id, room_id=cand.room_id, batch_id=s.batch_id,
                                  status=status, violations=violations, penalty=share))

    schedule = Schedule(slots=tuple(slots), penalty=total_penalty(state), cancelled=cancelled,
                        budget_exhausted=budget_exhausted, penalty_trace=tuple(trace), stats=dict(stats or {}))
    return schedule, tuple(diagnostics)

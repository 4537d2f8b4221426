import logging
import time
from collections import defaultdict
from typing import Callable, Dict, List, Optional, Set, Tuple

from ..errors import Cancelled, SearchBudgetExceeded
from ..models import Candidate
from ..scheduling.constraints import is_free
from ..scheduling.state import ScheduleState

logger = logging.getLogger(__name__)

UNRESOLVED = "unresolved"
BUDGET_EXHAUSTED = "budget_exhausted"
CANCELLED = "cancelled"


class _Frame:
    __slots__ = ("session", "candidates", "pos", "trail")

    def __init__(self, session: int, candidates: List[Candidate]):
        self.session = session
        self.candidates = candidates
        self.pos = -1
        # (session, day, live list before pruning)
        self.trail: List[Tuple[int, int, List[Candidate]]] = []


class BacktrackingSearch:
    """Most-constrained-first backtracking with forward checking.

    Sessions that run out of options are marked unresolved instead of failing
    the whole search, so the state always ends up holding a legal partial
    timetable. `should_stop` is polled before every commit and backtrack.
    """

    def __init__(self, state: ScheduleState, should_stop: Optional[Callable[[], bool]] = None,
                 on_step: Optional[Callable[[int, int], None]] = None):
        self.state = state
        self.problem = state.problem
        cfg = self.problem.config
        self.node_budget = cfg.node_budget
        self.max_backtracks = cfg.max_backtracks_per_session
        self.time_limit = cfg.time_limit
        self.should_stop = should_stop or (lambda: False)
        self.on_step = on_step
        self.nodes = 0
        self.backtracks = 0
        self.unresolved: Dict[int, str] = {}
        self.cancelled = False
        self.budget_exhausted = False
        self._start = 0.0

        # live (still legal) candidates per session, split by weekday
        self.live: Dict[int, Dict[int, List[Candidate]]] = {}
        self.live_count: Dict[int, int] = {}
        self.by_batch: Dict[str, List[int]] = defaultdict(list)
        self.by_faculty: Dict[str, List[int]] = defaultdict(list)
        self.by_room: Dict[str, List[int]] = defaultdict(list)

    def _init_domains(self, sessions: List[int]):
        p = self.problem
        resources: Dict[int, Tuple[List[str], List[str]]] = {}
        for i in sessions:
            domain = p.domains[i]
            by_day: Dict[int, List[Candidate]] = {}
            for c in domain:
                if is_free(self.state, i, c):
                    by_day.setdefault(p.slot(c.slot).day, []).append(c)
            self.live[i] = by_day
            self.live_count[i] = sum(len(v) for v in by_day.values())
            key = id(domain)
            if key not in resources:
                faculty = list(dict.fromkeys(c.faculty_id for c in domain))
                rooms = list(dict.fromkeys(c.room_id for c in domain))
                resources[key] = (faculty, rooms)
            faculty, rooms = resources[key]
            self.by_batch[p.sessions[i].batch_id].append(i)
            for f in faculty:
                self.by_faculty[f].append(i)
            for r in rooms:
                self.by_room[r].append(i)

    def _tick(self):
        self.nodes += 1
        if self.should_stop():
            raise Cancelled()
        if self.nodes > self.node_budget:
            raise SearchBudgetExceeded(f"node budget {self.node_budget} exhausted")
        if self.time_limit and (time.perf_counter() - self._start) >= self.time_limit:
            raise SearchBudgetExceeded(f"time limit {self.time_limit}s exhausted")

    def _candidates(self, i: int) -> List[Candidate]:
        live = self.live[i]
        return [c for day in sorted(live) for c in live[day]]

    def _commit(self, frame: _Frame, pending: Set[int]) -> bool:
        """Assign the next still-free candidate of `frame` and forward-check; False once exhausted."""
        i = frame.session
        while True:
            frame.pos += 1
            if frame.pos >= len(frame.candidates):
                return False
            cand = frame.candidates[frame.pos]
            if is_free(self.state, i, cand):
                break
        self.state.assign(i, cand)
        pending.discard(i)
        day = self.problem.slot(cand.slot).day
        affected = set(self.by_batch[self.problem.sessions[i].batch_id])
        affected.update(self.by_faculty[cand.faculty_id])
        affected.update(self.by_room[cand.room_id])
        for j in sorted(affected):
            if j not in pending:
                continue
            before = self.live[j].get(day)
            if not before:
                continue
            after = [c for c in before if is_free(self.state, j, c)]
            if len(after) != len(before):
                frame.trail.append((j, day, before))
                self.live[j][day] = after
                self.live_count[j] -= len(before) - len(after)
        if self.on_step:
            self.on_step(self.nodes, len(self.state))
        return True

    def _undo(self, frame: _Frame, pending: Set[int]):
        self.state.unassign(frame.session)
        for j, day, before in reversed(frame.trail):
            self.live_count[j] += len(before) - len(self.live[j][day])
            self.live[j][day] = before
        frame.trail.clear()
        pending.add(frame.session)

    def _backtrack(self, stack: List[_Frame], pending: Set[int]):
        """Undo the latest commitment and move it to its next candidate.

        A frame with nothing left marks its own session unresolved.
        """
        self._tick()
        self.backtracks += 1
        frame = stack[-1]
        self._undo(frame, pending)
        if self._commit(frame, pending):
            return
        stack.pop()
        pending.discard(frame.session)
        self.unresolved[frame.session] = UNRESOLVED
        logger.debug("session %s exhausted its candidates", self.problem.sessions[frame.session].session_id)

    def run(self, sessions: Optional[List[int]] = None) -> ScheduleState:
        p = self.problem
        if sessions is None:
            sessions = [i for i in p.schedulable if self.state.get(i) is None]
        self._start = time.perf_counter()
        self._init_domains(sessions)
        pending: Set[int] = set(sessions)
        stack: List[_Frame] = []
        dead_ends: Dict[int, int] = defaultdict(int)
        try:
            while pending:
                i = min(pending, key=lambda j: (self.live_count[j], j))
                if self.live_count[i] > 0:
                    self._tick()
                    frame = _Frame(i, self._candidates(i))
                    if self._commit(frame, pending):
                        stack.append(frame)
                        continue
                # dead end: nothing legal left for i
                dead_ends[i] += 1
                if not stack or dead_ends[i] > self.max_backtracks:
                    pending.discard(i)
                    self.unresolved[i] = UNRESOLVED
                    logger.debug("session %s left unresolved", p.sessions[i].session_id)
                    continue
                self._backtrack(stack, pending)
        except Cancelled:
            self.cancelled = True
            logger.info("constructive search cancelled after %d nodes", self.nodes)
        except SearchBudgetExceeded as e:
            self.budget_exhausted = True
            logger.warning("constructive search stopped: %s", e)
        code = CANCELLED if self.cancelled else BUDGET_EXHAUSTED
        for i in sorted(pending):
            self.unresolved[i] = code
        logger.info("constructive search: %d assigned, %d unresolved, %d nodes, %d backtracks",
                    len(self.state), len(self.unresolved), self.nodes, self.backtracks)
        return self.state

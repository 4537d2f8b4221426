import logging
import math
import random
import time
from typing import Callable, Dict, List, Optional, Tuple

from ..config import SolverConfig
from ..models import Candidate
from ..scheduling.constraints import is_free, local_penalty, move_scope, total_penalty
from ..scheduling.state import ScheduleState

logger = logging.getLogger(__name__)

Move = List[Tuple[int, Candidate]]


class SAParams:
    def __init__(self, T0=2.0, alpha=0.9995, max_iters=20000, T_min=1e-3, rescue_every=500, time_limit=None):
        self.T0 = T0
        self.alpha = alpha
        self.max_iters = max_iters
        self.T_min = T_min
        self.rescue_every = rescue_every
        self.time_limit = time_limit

    @classmethod
    def from_config(cls, cfg: SolverConfig) -> "SAParams":
        return cls(T0=cfg.sa_initial_temperature, alpha=cfg.sa_cooling, max_iters=cfg.sa_iterations,
                   T_min=cfg.sa_min_temperature, rescue_every=cfg.rescue_interval, time_limit=cfg.time_limit)


class SAResult:
    def __init__(self, penalty: float, unresolved: Dict[int, str], trace: List[Tuple[int, float]],
                 iterations: int, accepted: int, rescued: int, cancelled: bool):
        self.penalty = penalty
        self.unresolved = unresolved
        self.trace = trace
        self.iterations = iterations
        self.accepted = accepted
        self.rescued = rescued
        self.cancelled = cancelled


def propose_move(rng: random.Random, state: ScheduleState, movable: List[int]) -> Optional[Move]:
    """Reassign one session, or swap (slot, room) / (slot, faculty) between two.

    Returns None when the drawn move leaves a session's static domain or
    changes nothing.
    """
    p = state.problem
    kind = rng.random()
    if kind < 0.5 or len(movable) < 2:
        i = rng.choice(movable)
        cand = rng.choice(p.domains[i])
        if cand == state.get(i):
            return None
        return [(i, cand)]
    i, j = rng.sample(movable, 2)
    ci, cj = state.get(i), state.get(j)
    if kind < 0.75:
        ni = Candidate(cj.slot, cj.room_id, ci.faculty_id)
        nj = Candidate(ci.slot, ci.room_id, cj.faculty_id)
    else:
        ni = Candidate(cj.slot, ci.room_id, cj.faculty_id)
        nj = Candidate(ci.slot, cj.room_id, ci.faculty_id)
    if (ni == ci and nj == cj) or ni not in p.domain_sets[i] or nj not in p.domain_sets[j]:
        return None
    return [(i, ni), (j, nj)]


def apply_move(state: ScheduleState, move: Move) -> Optional[Move]:
    """Apply `move` if it keeps every hard constraint; return the undo move, or None (state untouched)."""
    undo = [(i, state.unassign(i)) for i, _ in move]
    for k, (i, cand) in enumerate(move):
        if not is_free(state, i, cand):
            for done, _ in move[:k]:
                state.unassign(done)
            for back, old in undo:
                state.assign(back, old)
            return None
        state.assign(i, cand)
    return undo


def revert_move(state: ScheduleState, move: Move, undo: Move):
    for i, _ in move:
        state.unassign(i)
    for i, old in undo:
        state.assign(i, old)


def rescue(state: ScheduleState, unresolved: Dict[int, str]) -> List[int]:
    """Place unresolved sessions into whatever legal candidate earlier moves freed up."""
    p = state.problem
    placed = []
    for i in sorted(unresolved):
        for cand in p.domains[i]:
            if is_free(state, i, cand):
                state.assign(i, cand)
                placed.append(i)
                break
    for i in placed:
        del unresolved[i]
    return placed


def simulated_annealing(state: ScheduleState, unresolved: Dict[int, str], params: Optional[SAParams] = None,
                        seed: Optional[int] = None, should_stop: Optional[Callable[[], bool]] = None,
                        on_iteration: Optional[Callable[[int, int], None]] = None) -> SAResult:
    """Refine a legal partial timetable in place; the best state seen is left in `state`.

    States are ranked by (unresolved sessions, soft penalty). Every accepted
    move keeps all hard constraints, so any intermediate state is a valid
    answer if the caller cancels.
    """
    rng = random.Random(seed)
    if params is None:
        params = SAParams()
    unresolved = dict(unresolved)
    movable = sorted(state.assignment)
    current = total_penalty(state)
    best = state.snapshot()
    best_unresolved = dict(unresolved)
    best_key = (len(unresolved), current)
    trace = [best_key]
    accepted = rescued = 0
    cancelled = False
    start = time.perf_counter()
    T = params.T0
    it = 0
    for it in range(params.max_iters):
        if should_stop and should_stop():
            cancelled = True
            break
        if params.time_limit and (time.perf_counter() - start) >= params.time_limit:
            break
        if T < params.T_min or not (movable or unresolved):
            break
        if unresolved and it % params.rescue_every == 0:
            placed = rescue(state, unresolved)
            if placed:
                rescued += len(placed)
                movable = sorted(movable + placed)
                current = total_penalty(state)
                logger.debug("iteration %d: rescued %d sessions", it, len(placed))
        if movable:
            move = propose_move(rng, state, movable)
            if move is not None:
                scope = move_scope(state, move)
                before = local_penalty(state, scope)
                undo = apply_move(state, move)
                if undo is not None:
                    dE = local_penalty(state, scope) - before
                    if dE <= 0 or rng.random() < math.exp(-dE / max(T, 1e-9)):
                        current += dE
                        accepted += 1
                    else:
                        revert_move(state, move, undo)
        key = (len(unresolved), current)
        if key[0] < best_key[0] or (key[0] == best_key[0] and key[1] < best_key[1] - 1e-9):
            best_key = key
            best = state.snapshot()
            best_unresolved = dict(unresolved)
            trace.append(best_key)
        T *= params.alpha
        if on_iteration:
            on_iteration(it + 1, params.max_iters)
    else:
        it = params.max_iters

    state.restore(best)
    penalty = total_penalty(state)
    logger.info("local search: %d iterations, %d accepted, %d rescued, best penalty %.3f, %d unresolved",
                it, accepted, rescued, penalty, len(best_unresolved))
    return SAResult(penalty=penalty, unresolved=best_unresolved, trace=trace, iterations=it,
                    accepted=accepted, rescued=rescued, cancelled=cancelled)

"""Single entry point of the engine: build, search, refine, assemble.

The facade owns everything presentation-related about a solve (progress
percentages, cancellation) so the search code only sees two callables.
"""
import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Iterable, List, Optional, Tuple

from .algorithms.backtracking import BacktrackingSearch
from .algorithms.sa import SAParams, simulated_annealing
from .config import SolverConfig
from .models import Diagnostic, EntitySnapshot, Schedule
from .scheduling.assemble import assemble
from .scheduling.problem import SchedulingProblem, build_problem
from .scheduling.state import ScheduleState

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[float], None]
SolveOutput = Tuple[Schedule, Tuple[Diagnostic, ...]]

# progress bands
SETUP_DONE = 5.0
CONSTRUCTION_DONE = 60.0


class CancellationToken:
    """Thread-safe stop flag a caller can set while a solve runs elsewhere."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


class ProgressTracker:
    """Forward monotonically non-decreasing percentages in [0, 100] to a callback."""

    def __init__(self, callback: Optional[ProgressCallback] = None, step: float = 0.5):
        self.callback = callback
        self.step = step
        self.value = 0.0
        self._reported = -1.0

    def update(self, percent: float) -> None:
        percent = min(100.0, max(self.value, float(percent)))
        self.value = percent
        if self.callback and (percent >= self._reported + self.step or (percent == 100.0 > self._reported)):
            self._reported = percent
            self.callback(percent)

    def band(self, low: float, high: float, fraction: float) -> None:
        self.update(low + (high - low) * min(1.0, max(0.0, fraction)))

    def finish(self) -> None:
        self.update(100.0)


def solve(snapshot: EntitySnapshot, config: Optional[SolverConfig] = None,
          cancel_token: Optional[CancellationToken] = None,
          progress: Optional[ProgressCallback] = None) -> SolveOutput:
    """Build a weekly timetable for `snapshot`.

    Only ConfigurationError escapes; infeasible sessions, exhausted budgets and
    cancellation all come back as a Schedule with conflict slots and a
    Diagnostic per unplaced session.
    """
    return solve_problem(build_problem(snapshot, config or SolverConfig()), cancel_token, progress)


def solve_problem(problem: SchedulingProblem, cancel_token: Optional[CancellationToken] = None,
                  progress: Optional[ProgressCallback] = None) -> SolveOutput:
    """Search and assemble for an already built problem (see `build_problem`)."""
    config = problem.config
    tracker = ProgressTracker(progress)
    started = time.perf_counter()
    tracker.update(SETUP_DONE)

    def should_stop() -> bool:
        return cancel_token is not None and cancel_token.cancelled

    total = max(1, len(problem.schedulable))

    def on_step(nodes: int, assigned: int):
        tracker.band(SETUP_DONE, CONSTRUCTION_DONE, max(nodes / config.node_budget, assigned / total))

    def on_iteration(done: int, budget: int):
        tracker.band(CONSTRUCTION_DONE, 100.0, done / max(1, budget))

    state = ScheduleState(problem)
    search = BacktrackingSearch(state, should_stop=should_stop, on_step=on_step)
    search.run()
    tracker.update(CONSTRUCTION_DONE)
    unresolved = search.unresolved
    cancelled = search.cancelled
    stats = {"nodes": search.nodes, "backtracks": search.backtracks,
             "construction_seconds": time.perf_counter() - started}

    trace = ()
    if not cancelled and config.sa_iterations > 0:
        result = simulated_annealing(state, unresolved, SAParams.from_config(config), seed=config.seed,
                                     should_stop=should_stop, on_iteration=on_iteration)
        unresolved, trace, cancelled = result.unresolved, result.trace, result.cancelled
        stats.update(iterations=result.iterations, accepted=result.accepted, rescued=result.rescued)

    stats["seconds"] = time.perf_counter() - started
    schedule, diagnostics = assemble(state, unresolved, cancelled=cancelled,
                                     budget_exhausted=search.budget_exhausted, trace=trace, stats=stats)
    counts = schedule.counts
    logger.info("solve finished in %.2fs: %d confirmed, %d tentative, %d conflict, penalty %.3f%s",
                stats["seconds"], counts["confirmed"], counts["tentative"], counts["conflict"],
                schedule.penalty, " (cancelled)" if cancelled else "")
    tracker.finish()
    return schedule, diagnostics


class Scheduler:
    """Keeps one configuration around for repeated solves."""

    def __init__(self, config: Optional[SolverConfig] = None):
        self.config = config or SolverConfig()

    def solve(self, snapshot: EntitySnapshot, cancel_token: Optional[CancellationToken] = None,
              progress: Optional[ProgressCallback] = None) -> SolveOutput:
        return solve(snapshot, self.config, cancel_token=cancel_token, progress=progress)


def solve_many(jobs: Iterable[Tuple[EntitySnapshot, Optional[SolverConfig]]],
               max_workers: Optional[int] = None) -> List[SolveOutput]:
    """Run independent solves (e.g. one per department) in worker threads; results keep job order."""
    jobs = list(jobs)
    with ThreadPoolExecutor(max_workers=max_workers) as pool:
        futures = [pool.submit(solve, snapshot, config) for snapshot, config in jobs]
        return [f.result() for f in futures]

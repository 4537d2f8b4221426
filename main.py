import argparse
import logging
import sys
from concurrent.futures import ThreadPoolExecutor

from classtime.config import SolverConfig
from classtime.errors import ConfigurationError
from classtime.graph_build import build_session_conflict_graph
from classtime.io_utils import (
    load_config_json, load_snapshot_csv, load_snapshot_json, save_diagnostics_csv, save_schedule_csv
)
from classtime.reporting import faculty_utilization, room_utilization, schedule_frame, weekly_grid
from classtime.scheduler import CancellationToken, solve_problem
from classtime.scheduling.evaluation import summary
from classtime.scheduling.problem import build_problem
from classtime.synthetic import generate_snapshot

logger = logging.getLogger("classtime")


def print_progress(percent: float):
    sys.stderr.write(f"\rSolving... {percent:5.1f}%")
    if percent >= 100.0:
        sys.stderr.write("\n")
    sys.stderr.flush()


def main(argv=None):
    p = argparse.ArgumentParser(description="ClassTime – Weekly Teaching Timetable Generator")
    # Input modes
    p.add_argument('--snapshot', type=str, help='JSON file with faculty, rooms, subjects, batches (and timeslots)')
    p.add_argument('--data-dir', type=str, help='Directory with faculty.csv, rooms.csv, subjects.csv, batches.csv')
    p.add_argument('--generate', type=int, default=None, help='Generate a synthetic snapshot with N batches')

    # Constraints & search
    p.add_argument('--config', type=str, help='JSON file with solver configuration')
    p.add_argument('--seed', type=int, default=None)
    p.add_argument('--node-budget', type=int, default=None)
    p.add_argument('--sa-iters', type=int, default=None)
    p.add_argument('--sa-T0', type=float, default=None)
    p.add_argument('--sa-alpha', type=float, default=None)
    p.add_argument('--time-limit', type=float, default=None, help='Per-phase time cap (seconds)')

    # Output
    p.add_argument('--out-schedule', type=str, default='schedule.csv')
    p.add_argument('--out-diagnostics', type=str, default='diagnostics.csv')
    p.add_argument('--show-grid', type=str, default=None, metavar='BATCH', help='Print the weekly grid of a batch')
    p.add_argument('--log-level', type=str, default='INFO')
    args = p.parse_args(argv)

    logging.basicConfig(level=getattr(logging, args.log_level.upper(), logging.INFO),
                        format="%(asctime)s [%(levelname)s] %(message)s")

    try:
        if args.snapshot:
            snapshot = load_snapshot_json(args.snapshot)
        elif args.data_dir:
            snapshot = load_snapshot_csv(args.data_dir)
        elif args.generate is not None:
            snapshot = generate_snapshot(args.generate, seed=42 if args.seed is None else args.seed)
        else:
            raise SystemExit("Provide --snapshot, --data-dir, or --generate N")

        config = load_config_json(args.config) if args.config else SolverConfig()
        config = config.with_overrides(seed=args.seed, node_budget=args.node_budget, sa_iterations=args.sa_iters,
                                       sa_initial_temperature=args.sa_T0, sa_cooling=args.sa_alpha,
                                       time_limit=args.time_limit)
        problem = build_problem(snapshot, config)
        token = CancellationToken()
        with ThreadPoolExecutor(max_workers=1) as pool:
            future = pool.submit(solve_problem, problem, token, print_progress)
            try:
                schedule, diagnostics = future.result()
            except KeyboardInterrupt:
                logger.warning("cancelling; keeping the best timetable found so far")
                token.cancel()
                schedule, diagnostics = future.result()
        G = build_session_conflict_graph(problem)
    except ConfigurationError as e:
        logger.error("invalid input: %s", e)
        raise SystemExit(2)

    print(summary(G, snapshot, schedule, diagnostics))
    for d in diagnostics:
        print(f"  [{d.code}] {d.session_id}: {d.reason}")

    frame = schedule_frame(schedule, snapshot)
    if args.show_grid:
        print(weekly_grid(frame, args.show_grid, snapshot).to_string())
    print(faculty_utilization(frame, snapshot).to_string(index=False))
    print(room_utilization(frame, snapshot).to_string(index=False))

    save_schedule_csv(args.out_schedule, schedule)
    save_diagnostics_csv(args.out_diagnostics, diagnostics)
    print(f"Saved: {args.out_schedule}, {args.out_diagnostics}")


if __name__ == '__main__':
    main()

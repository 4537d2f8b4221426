from typing import Sequence
import networkx as nx

from ..models import Diagnostic, EntitySnapshot, Schedule
from .validation import completeness_ok, conflicts_ok, find_clashes, placed, resources_ok


def _greedy_clique_lb(G: nx.Graph) -> int:
    """Size of a greedily grown clique: sessions that need pairwise distinct time slots.

    Starts at the highest-degree node and keeps adding the candidate with the
    most neighbours that is adjacent to every clique member.
    """
    if G.number_of_nodes() == 0:
        return 0
    seed = max(G.nodes(), key=lambda u: (G.degree(u), u))
    clique = {seed}
    candidates = set(G.neighbors(seed))
    while candidates:
        u = max(candidates, key=lambda v: (G.degree(v), v))
        new_cands = {v for v in candidates if all(G.has_edge(v, w) for w in clique)}
        if u in new_cands:
            clique.add(u)
            candidates = new_cands.intersection(G.neighbors(u))
        else:
            candidates.remove(u)
    return len(clique)


def summary(G: nx.Graph, snapshot: EntitySnapshot, sched: Schedule, diagnostics: Sequence[Diagnostic]) -> str:
    counts = sched.counts
    total_slots = len(snapshot.timeslots)
    used_slots = len({s.timeslot.index for s in placed(sched)})
    lb = _greedy_clique_lb(G)
    warning = ""
    if total_slots < lb:
        warning = (
            f"Warning: time slots={total_slots} < clique LB={lb}; some sessions must end up in conflict.\n"
        )
    flags = []
    if sched.cancelled:
        flags.append("cancelled")
    if sched.budget_exhausted:
        flags.append("search budget exhausted")
    status_line = f"Status: {', '.join(flags)}\n" if flags else ""
    return (
        f"Sessions: {G.number_of_nodes()}  Clashing pairs: {G.number_of_edges()}\n"
        f"Time slots available: {total_slots}  Used: {used_slots}\n"
        f"Clique lower bound: {lb}\n"
        f"Confirmed: {counts['confirmed']}  Tentative: {counts['tentative']}  Conflict: {counts['conflict']}\n"
        f"Soft penalty: {sched.penalty:.3f}  Diagnostics: {len(diagnostics)}\n"
        f"Valid (clashes): {not find_clashes(sched) and conflicts_ok(G, sched)}  "
        f"Valid (resources): {resources_ok(snapshot, sched)}  "
        f"Complete (count): {completeness_ok(snapshot, sched)}\n"
        f"{status_line}"
        f"{warning}"
    )

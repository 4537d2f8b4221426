from typing import Dict, List, Set
import networkx as nx

from .scheduling.problem import SchedulingProblem


def build_session_conflict_graph(problem: SchedulingProblem) -> nx.Graph:
    """Sessions are nodes; an edge means the two can never share a time slot.

    Two sessions clash when they belong to the same batch, or when every
    candidate of both uses the same single faculty member.
    """
    G = nx.Graph()
    sole_teacher: Dict[int, str] = {}
    by_batch: Dict[str, List[str]] = {}
    by_teacher: Dict[str, List[str]] = {}
    for s in problem.sessions:
        G.add_node(s.session_id, batch=s.batch_id, subject=s.subject_id)
        by_batch.setdefault(s.batch_id, []).append(s.session_id)
        teachers: Set[str] = {c.faculty_id for c in problem.domains[s.index]}
        if len(teachers) == 1:
            sole_teacher[s.index] = teachers.pop()
            by_teacher.setdefault(sole_teacher[s.index], []).append(s.session_id)
    for group in list(by_batch.values()) + list(by_teacher.values()):
        for i in range(len(group)):
            for j in range(i + 1, len(group)):
                G.add_edge(group[i], group[j])
    return G

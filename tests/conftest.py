import pytest

from classtime.config import SolverConfig
from classtime.models import Batch, EntitySnapshot, Faculty, Room, Subject


@pytest.fixture
def fast_config():
    return SolverConfig(sa_iterations=1500, rescue_interval=100, node_budget=20000, seed=7)


@pytest.fixture
def single_pair_snapshot():
    """One faculty, one lecture room, one theory subject taught twice a week, one batch."""
    return EntitySnapshot(
        faculty=[Faculty(id="F1", name="Dr. Sarah Johnson", available_days={1, 2, 3, 4, 5},
                         max_hours_per_day=6, subjects={"A"})],
        rooms=[Room(id="R1", kind="lecture", capacity=60, name="Room 101")],
        subjects=[Subject(id="A", kind="theory", sessions_per_week=2, name="Data Structures")],
        batches=[Batch(id="B1", strength=40, subjects=("A",), name="CS-2nd Year-A")],
    )


@pytest.fixture
def department_snapshot():
    """Three batches sharing a pool of faculty and rooms; comfortably feasible."""
    subjects = [Subject(id=f"S{k}", department="CS", sessions_per_week=2) for k in range(1, 5)]
    subjects.append(Subject(id="LAB1", department="CS", sessions_per_week=2, kind="lab",
                            required_equipment={"Computers"}))
    faculty = [
        Faculty(id="F1", max_hours_per_day=6, subjects={"S1", "S2"}),
        Faculty(id="F2", max_hours_per_day=6, subjects={"S2", "S3"}),
        Faculty(id="F3", available_days={1, 2, 3, 4}, max_hours_per_day=8, subjects={"S3", "S4"}),
        Faculty(id="F4", max_hours_per_day=4, subjects={"S4", "LAB1", "S1"}),
    ]
    rooms = [
        Room(id="R101", kind="lecture", capacity=60, equipment={"Projector", "Whiteboard"}),
        Room(id="R102", kind="lecture", capacity=45),
        Room(id="L201", kind="lab", capacity=50, equipment={"Computers", "Projector"}),
    ]
    batches = [
        Batch(id="B1", department="CS", strength=45, subjects=("S1", "S2", "S3", "LAB1")),
        Batch(id="B2", department="CS", strength=38, subjects=("S2", "S3", "S4")),
        Batch(id="B3", department="CS", strength=40, subjects=("S1", "S4", "LAB1")),
    ]
    return EntitySnapshot(faculty=faculty, rooms=rooms, subjects=subjects, batches=batches)

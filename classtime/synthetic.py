"""Seeded random snapshots for demos and stress runs."""
import random
from typing import List

from .models import Batch, EntitySnapshot, Faculty, Room, Subject

DEPARTMENTS = ["CS", "EE", "ME", "MA"]
EQUIPMENT = ["Projector", "Whiteboard", "AC", "Computers"]
MIN_SUBJECTS = 3
MAX_SUBJECTS = 5


def generate_snapshot(n_batches: int = 4, seed: int = 42, subjects_per_department: int = 6,
                      faculty_per_department: int = 4) -> EntitySnapshot:
    rng = random.Random(seed)
    departments = DEPARTMENTS[:max(1, min(len(DEPARTMENTS), (n_batches + 1) // 2))]

    subjects: List[Subject] = []
    for dept in departments:
        for k in range(subjects_per_department):
            is_lab = k == subjects_per_department - 1
            subjects.append(Subject(
                id=f"{dept}{101 + k}",
                department=dept,
                credits=rng.randint(2, 4),
                sessions_per_week=2 if is_lab else rng.randint(2, 4),
                duration=60,
                kind="lab" if is_lab else "theory",
                required_equipment=frozenset({"Computers"}) if is_lab else frozenset(),
                name=f"{dept} Subject {k + 1}",
                code=f"{dept}{101 + k}",
            ))

    faculty: List[Faculty] = []
    for dept in departments:
        dept_subjects = [s.id for s in subjects if s.department == dept]
        for k in range(faculty_per_department):
            days = sorted(rng.sample(range(1, 6), rng.randint(3, 5)))
            teaches = {dept_subjects[k % len(dept_subjects)], rng.choice(dept_subjects)}
            faculty.append(Faculty(
                id=f"F-{dept}-{k + 1}",
                name=f"Faculty {dept} {k + 1}",
                available_days=frozenset(days),
                max_hours_per_day=rng.choice([4, 6, 8]),
                subjects=frozenset(teaches),
                department=dept,
            ))
        # every subject gets at least one teacher
        taught = {s for f in faculty for s in f.subjects}
        for sid in dept_subjects:
            if sid not in taught:
                faculty.append(Faculty(id=f"F-{dept}-{sid}", name=f"Faculty for {sid}",
                                       subjects=frozenset({sid}), department=dept))

    rooms: List[Room] = []
    n_rooms = max(2, n_batches)
    for k in range(n_rooms):
        rooms.append(Room(id=f"R{101 + k}", kind="lecture", capacity=rng.choice([40, 60, 80]),
                          equipment=frozenset(rng.sample(EQUIPMENT[:3], 2)), name=f"Room {101 + k}"))
    for k in range(max(1, n_rooms // 2)):
        rooms.append(Room(id=f"L{201 + k}", kind="lab", capacity=rng.choice([40, 60]),
                          equipment=frozenset({"Computers", "Projector"}), name=f"Lab {201 + k}"))

    batches: List[Batch] = []
    for k in range(n_batches):
        dept = departments[k % len(departments)]
        dept_subjects = [s.id for s in subjects if s.department == dept]
        n = rng.randint(MIN_SUBJECTS, min(MAX_SUBJECTS, len(dept_subjects)))
        picked = set(rng.sample(dept_subjects, n))
        chosen = [sid for sid in dept_subjects if sid in picked]
        batches.append(Batch(id=f"B{k + 1}", department=dept, strength=rng.randint(25, 40),
                             subjects=tuple(chosen), name=f"{dept}-Batch-{k + 1}", semester=rng.choice([1, 3, 5])))

    return EntitySnapshot(faculty=faculty, rooms=rooms, subjects=subjects, batches=batches)

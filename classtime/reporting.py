from typing import Optional

import pandas as pd

from .models import STATUSES, WEEKDAYS, EntitySnapshot, Schedule

SCHEDULE_COLUMNS = ["session_id", "day", "day_name", "slot_index", "time_slot", "subject_id", "subject",
                    "faculty_id", "faculty", "room_id", "room", "batch_id", "batch", "status", "violations",
                    "penalty"]


def schedule_frame(sched: Schedule, snapshot: Optional[EntitySnapshot] = None) -> pd.DataFrame:
    """One row per ScheduleSlot, with display names when a snapshot is given."""
    def name_of(lookup, key):
        if snapshot is None or key is None:
            return key
        entity = lookup(key)
        return entity.name or key

    rows = []
    for s in sched.slots:
        ts = s.timeslot
        rows.append({
            "session_id": s.session_id,
            "day": ts.day if ts else None,
            "day_name": ts.day_name if ts else None,
            "slot_index": ts.index if ts else None,
            "time_slot": ts.label if ts else None,
            "subject_id": s.subject_id,
            "subject": name_of(snapshot.subject if snapshot else None, s.subject_id),
            "faculty_id": s.faculty_id,
            "faculty": name_of(snapshot.faculty_by_id if snapshot else None, s.faculty_id),
            "room_id": s.room_id,
            "room": name_of(snapshot.room if snapshot else None, s.room_id),
            "batch_id": s.batch_id,
            "batch": name_of(snapshot.batch if snapshot else None, s.batch_id),
            "status": s.status,
            "violations": ";".join(s.violations),
            "penalty": s.penalty,
        })
    return pd.DataFrame(rows, columns=SCHEDULE_COLUMNS)


def weekly_grid(frame: pd.DataFrame, batch_id: str, snapshot: Optional[EntitySnapshot] = None) -> pd.DataFrame:
    """Rows are time slot labels, columns are weekdays, cells read 'subject / faculty @ room'."""
    rows = frame[(frame["batch_id"] == batch_id) & frame["time_slot"].notna()].copy()
    labels = list(snapshot.slot_labels()) if snapshot is not None else sorted(rows["time_slot"].unique())
    days = [WEEKDAYS[d] for d in sorted(WEEKDAYS)]
    if rows.empty:
        return pd.DataFrame("", index=labels, columns=days)
    rows["cell"] = rows["subject"].astype(str) + " / " + rows["faculty"].astype(str) + " @ " + rows["room"].astype(str)
    grid = rows.pivot_table(index="time_slot", columns="day_name", values="cell", aggfunc=" | ".join)
    return grid.reindex(index=labels, columns=days).fillna("")


def faculty_utilization(frame: pd.DataFrame, snapshot: EntitySnapshot) -> pd.DataFrame:
    """Classes and teaching hours per faculty member, hours as a share of the weekly cap (cap per day x 5 days)."""
    placed = frame[frame["status"] != "conflict"].copy()
    placed["hours"] = placed["subject_id"].map(lambda sid: snapshot.subject(sid).duration / 60.0)
    by_faculty = placed.groupby("faculty_id")
    counts = by_faculty.size()
    hours = by_faculty["hours"].sum()
    rows = []
    for f in snapshot.faculty:
        taught = float(hours.get(f.id, 0.0))
        rows.append({"faculty_id": f.id, "name": f.name or f.id, "classes": int(counts.get(f.id, 0)),
                     "hours": taught, "utilization": round(taught / (f.max_hours_per_day * 5) * 100)})
    return pd.DataFrame(rows, columns=["faculty_id", "name", "classes", "hours", "utilization"])


def room_utilization(frame: pd.DataFrame, snapshot: EntitySnapshot) -> pd.DataFrame:
    """Classes per room as a share of the whole time slot catalog."""
    placed = frame[frame["status"] != "conflict"]
    counts = placed.groupby("room_id").size()
    total = len(snapshot.timeslots)
    rows = []
    for r in snapshot.rooms:
        classes = int(counts.get(r.id, 0))
        rows.append({"room_id": r.id, "name": r.name or r.id, "classes": classes,
                     "utilization": round(classes / total * 100)})
    return pd.DataFrame(rows, columns=["room_id", "name", "classes", "utilization"])


def status_counts(frame: pd.DataFrame) -> pd.Series:
    return frame["status"].value_counts().reindex(list(STATUSES), fill_value=0)

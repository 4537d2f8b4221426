import csv
import io
import json
import os
from dataclasses import fields
from typing import IO, Dict, List, Sequence, Union

from .config import SolverConfig, weights_from_priorities
from .errors import ConfigurationError
from .models import (
    Batch, Diagnostic, EntitySnapshot, Faculty, Room, Schedule, Subject,
    default_timeslots, make_timeslots, parse_weekday,
)

TextOrPath = Union[str, os.PathLike, IO]


def _open_text(src: TextOrPath):
    """Return a text-mode file handle and a flag indicating whether to close it.

    Accepts a filesystem path, a text IO object, or a BytesIO buffer.
    """
    if isinstance(src, (str, os.PathLike)):
        f = open(src, 'r', newline='', encoding='utf-8')
        return f, True
    if isinstance(src, io.BytesIO):
        src.seek(0)
        return io.TextIOWrapper(src, encoding='utf-8', newline=''), True
    if hasattr(src, 'read'):
        if hasattr(src, 'seek'):
            src.seek(0)
        return src, False
    raise TypeError("Unsupported input type; expected path or file-like object")


def _split(value) -> List[str]:
    """'a; b;c' -> ['a', 'b', 'c']; lists pass through."""
    if value is None:
        return []
    if isinstance(value, (list, tuple, set, frozenset)):
        return [str(v).strip() for v in value if str(v).strip()]
    return [part.strip() for part in str(value).split(';') if part.strip()]


def _int(row: Dict, key: str, default=None) -> int:
    value = row.get(key)
    if value is None or str(value).strip() == '':
        if default is None:
            raise ConfigurationError(f"missing required field {key!r} in {row}")
        return default
    try:
        number = float(value)
    except ValueError:
        raise ConfigurationError(f"field {key!r} is not a number: {value!r}")
    if not number.is_integer():
        raise ConfigurationError(f"field {key!r} must be a whole number: {value!r}")
    return int(number)


def _float(row: Dict, key: str, default: float) -> float:
    value = row.get(key)
    if value is None or str(value).strip() == '':
        return default
    try:
        return float(value)
    except ValueError:
        raise ConfigurationError(f"field {key!r} is not a number: {value!r}")


def _days(row: Dict, key: str):
    values = _split(row.get(key))
    return frozenset(parse_weekday(v) for v in values) if values else frozenset(range(1, 6))


def faculty_from_row(row: Dict) -> Faculty:
    return Faculty(
        id=str(row['id']).strip(),
        name=str(row.get('name') or ''),
        available_days=_days(row, 'availability'),
        max_hours_per_day=_float(row, 'max_hours_per_day', 6.0),
        subjects=frozenset(_split(row.get('subjects'))),
        department=str(row.get('department') or ''),
        email=str(row.get('email') or ''),
    )


def room_from_row(row: Dict) -> Room:
    kind = str(row.get('kind') or row.get('type') or 'lecture').strip().lower()
    # the original records call lecture rooms "classroom"
    if kind == 'classroom':
        kind = 'lecture'
    return Room(
        id=str(row['id']).strip(),
        kind=kind,
        capacity=_int(row, 'capacity'),
        equipment=frozenset(_split(row.get('equipment'))),
        available_days=_days(row, 'availability'),
        name=str(row.get('name') or ''),
    )


def subject_from_row(row: Dict) -> Subject:
    return Subject(
        id=str(row['id']).strip(),
        department=str(row.get('department') or ''),
        credits=_int(row, 'credits', 0),
        sessions_per_week=_int(row, 'sessions_per_week'),
        duration=_int(row, 'duration', 60),
        kind=str(row.get('kind') or row.get('type') or 'theory').strip().lower(),
        required_equipment=frozenset(_split(row.get('required_equipment'))),
        name=str(row.get('name') or ''),
        code=str(row.get('code') or ''),
    )


def batch_from_row(row: Dict) -> Batch:
    return Batch(
        id=str(row['id']).strip(),
        department=str(row.get('department') or ''),
        strength=_int(row, 'strength'),
        subjects=tuple(_split(row.get('subjects'))),
        name=str(row.get('name') or ''),
        semester=_int(row, 'semester', 0),
    )


def _read_rows(src: TextOrPath) -> List[Dict]:
    f, should_close = _open_text(src)
    try:
        return list(csv.DictReader(f))
    finally:
        if should_close:
            f.close()


def load_timeslots_csv(src: TextOrPath):
    """CSV with day,start,end columns."""
    rows = _read_rows(src)
    return make_timeslots((row['day'], f"{row['start'].strip()}-{row['end'].strip()}") for row in rows)


def load_snapshot_csv(directory: str) -> EntitySnapshot:
    """faculty.csv, rooms.csv, subjects.csv, batches.csv and optional timeslots.csv from one directory."""
    def path(name):
        return os.path.join(directory, name)

    try:
        snapshot = EntitySnapshot(
            faculty=[faculty_from_row(r) for r in _read_rows(path('faculty.csv'))],
            rooms=[room_from_row(r) for r in _read_rows(path('rooms.csv'))],
            subjects=[subject_from_row(r) for r in _read_rows(path('subjects.csv'))],
            batches=[batch_from_row(r) for r in _read_rows(path('batches.csv'))],
            timeslots=(load_timeslots_csv(path('timeslots.csv')) if os.path.exists(path('timeslots.csv'))
                       else default_timeslots()),
        )
    except KeyError as e:
        raise ConfigurationError(f"missing column {e} in {directory}")
    return snapshot


def snapshot_from_dict(data: Dict) -> EntitySnapshot:
    slots = data.get('timeslots')
    try:
        return EntitySnapshot(
            faculty=[faculty_from_row(r) for r in data.get('faculty', [])],
            rooms=[room_from_row(r) for r in data.get('rooms', [])],
            subjects=[subject_from_row(r) for r in data.get('subjects', [])],
            batches=[batch_from_row(r) for r in data.get('batches', [])],
            timeslots=(make_timeslots((s['day'], f"{s['start']}-{s['end']}") for s in slots)
                       if slots is not None else default_timeslots()),
        )
    except KeyError as e:
        raise ConfigurationError(f"missing field {e} in snapshot")


def load_snapshot_json(src: TextOrPath) -> EntitySnapshot:
    f, should_close = _open_text(src)
    try:
        return snapshot_from_dict(json.load(f))
    finally:
        if should_close:
            f.close()


def config_from_dict(data: Dict) -> SolverConfig:
    data = dict(data)
    priorities = data.pop('priorities', None)
    extra_weights = data.pop('weights', None) or {}
    known = {f.name for f in fields(SolverConfig)} - {'weights'}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ConfigurationError(f"unknown configuration keys {unknown}")
    return SolverConfig(weights=weights_from_priorities(priorities, **extra_weights), **data)


def load_config_json(src: TextOrPath) -> SolverConfig:
    f, should_close = _open_text(src)
    try:
        return config_from_dict(json.load(f))
    finally:
        if should_close:
            f.close()


def save_schedule_csv(path: str, sched: Schedule):
    with open(path, 'w', newline='') as f:
        w = csv.writer(f)
        w.writerow(['session_id', 'day', 'time_slot', 'subject_id', 'faculty_id', 'room_id', 'batch_id',
                    'status', 'violations', 'penalty'])
        for s in sched.slots:
            ts = s.timeslot
            w.writerow([s.session_id, ts.day if ts else '', ts.label if ts else '', s.subject_id,
                        s.faculty_id or '', s.room_id or '', s.batch_id, s.status,
                        ';'.join(s.violations), f"{s.penalty:.4f}"])


def save_diagnostics_csv(path: str, diagnostics: Sequence[Diagnostic]):
    with open(path, 'w', newline='') as f:
        w = csv.writer(f)
        w.writerow(['session_id', 'batch_id', 'subject_id', 'occurrence', 'code', 'reason'])
        for d in diagnostics:
            w.writerow([d.session_id, d.batch_id, d.subject_id, d.occurrence, d.code, d.reason])

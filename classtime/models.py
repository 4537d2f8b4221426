from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Iterable, Optional, Sequence, Tuple

from .errors import ConfigurationError

WEEKDAYS = {1: "Monday", 2: "Tuesday", 3: "Wednesday", 4: "Thursday", 5: "Friday"}
ALL_DAYS = frozenset(WEEKDAYS)

ROOM_KINDS = ("lecture", "lab")
SUBJECT_KINDS = ("theory", "lab")
# subject kind -> room kind it must be taught in
ROOM_KIND_FOR = {"theory": "lecture", "lab": "lab"}

CONFIRMED = "confirmed"
TENTATIVE = "tentative"
CONFLICT = "conflict"
STATUSES = (CONFIRMED, TENTATIVE, CONFLICT)

# the original system's weekly grid (one hour each, lunch at 13:00)
DEFAULT_SLOT_LABELS = (
    "09:00-10:00", "10:00-11:00", "11:00-12:00", "12:00-13:00",
    "14:00-15:00", "15:00-16:00", "16:00-17:00",
)


def parse_hhmm(text: str) -> int:
    """'09:30' -> 570 minutes after midnight."""
    try:
        hh, mm = str(text).strip().split(":")
        hours, minutes = int(hh), int(mm)
    except ValueError:
        raise ConfigurationError(f"bad time of day {text!r}, expected HH:MM")
    if not 0 <= minutes < 60:
        raise ConfigurationError(f"time of day {text!r} has minutes outside 00..59")
    value = hours * 60 + minutes
    if not 0 <= value <= 24 * 60:
        raise ConfigurationError(f"time of day {text!r} out of range")
    return value


def format_hhmm(minutes: int) -> str:
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def parse_weekday(value) -> int:
    """Accept 1..5 or a (possibly abbreviated) weekday name."""
    if isinstance(value, int):
        day = value
    else:
        text = str(value).strip()
        if text.isdigit():
            day = int(text)
        else:
            matches = [d for d, name in WEEKDAYS.items() if name.lower().startswith(text.lower()[:3])]
            if len(text) < 3 or not matches:
                raise ConfigurationError(f"unknown weekday {value!r}")
            day = matches[0]
    if day not in WEEKDAYS:
        raise ConfigurationError(f"weekday {value!r} outside Monday..Friday")
    return day


@dataclass(frozen=True)
class TimeSlot:
    index: int
    day: int
    start_min: int
    end_min: int

    @property
    def label(self) -> str:
        return f"{format_hhmm(self.start_min)}-{format_hhmm(self.end_min)}"

    @property
    def day_name(self) -> str:
        return WEEKDAYS.get(self.day, str(self.day))

    @property
    def duration_min(self) -> int:
        return self.end_min - self.start_min

    def __str__(self) -> str:
        return f"{self.day_name} {self.label}"


def make_timeslots(pairs: Iterable[Tuple[int, str]]) -> Tuple[TimeSlot, ...]:
    """Build an indexed catalog from (weekday, 'HH:MM-HH:MM') pairs, sorted by day then start."""
    parsed = []
    for day, label in pairs:
        try:
            start_txt, end_txt = str(label).split("-")
        except ValueError:
            raise ConfigurationError(f"bad time slot label {label!r}, expected HH:MM-HH:MM")
        parsed.append((parse_weekday(day), parse_hhmm(start_txt), parse_hhmm(end_txt)))
    parsed.sort()
    return tuple(TimeSlot(index=i, day=d, start_min=s, end_min=e) for i, (d, s, e) in enumerate(parsed))


def default_timeslots(days: Sequence[int] = (1, 2, 3, 4, 5),
                      labels: Sequence[str] = DEFAULT_SLOT_LABELS) -> Tuple[TimeSlot, ...]:
    return make_timeslots((d, label) for d in days for label in labels)


def _days(values) -> FrozenSet[int]:
    return frozenset(parse_weekday(v) for v in values)


@dataclass(frozen=True)
class Faculty:
    id: str
    name: str = ""
    available_days: FrozenSet[int] = ALL_DAYS
    max_hours_per_day: float = 6.0
    subjects: FrozenSet[str] = frozenset()
    department: str = ""
    email: str = ""

    def __post_init__(self):
        object.__setattr__(self, "available_days", _days(self.available_days))
        object.__setattr__(self, "subjects", frozenset(str(s) for s in self.subjects))


@dataclass(frozen=True)
class Room:
    id: str
    kind: str = "lecture"
    capacity: int = 60
    equipment: FrozenSet[str] = frozenset()
    available_days: FrozenSet[int] = ALL_DAYS
    name: str = ""

    def __post_init__(self):
        object.__setattr__(self, "available_days", _days(self.available_days))
        object.__setattr__(self, "equipment", frozenset(self.equipment))


@dataclass(frozen=True)
class Subject:
    id: str
    department: str = ""
    credits: int = 0
    sessions_per_week: int = 1
    duration: int = 60  # minutes
    kind: str = "theory"
    required_equipment: FrozenSet[str] = frozenset()
    name: str = ""
    code: str = ""

    def __post_init__(self):
        object.__setattr__(self, "required_equipment", frozenset(self.required_equipment))

    @property
    def room_kind(self) -> str:
        return ROOM_KIND_FOR[self.kind]


@dataclass(frozen=True)
class Batch:
    id: str
    department: str = ""
    strength: int = 0
    subjects: Tuple[str, ...] = ()
    name: str = ""
    semester: int = 0

    def __post_init__(self):
        object.__setattr__(self, "subjects", tuple(str(s) for s in self.subjects))


def _index_unique(kind: str, items) -> Dict[str, object]:
    index: Dict[str, object] = {}
    for item in items:
        if item.id in index:
            raise ConfigurationError(f"duplicate {kind} id {item.id!r}")
        index[item.id] = item
    return index


@dataclass(frozen=True)
class EntitySnapshot:
    """Read-only view of every record one solve needs.

    Collections keep the caller's order; that order is the tie-break wherever
    ids are compared. Construction validates the records and raises
    ConfigurationError on malformed input.
    """
    faculty: Tuple[Faculty, ...] = ()
    rooms: Tuple[Room, ...] = ()
    subjects: Tuple[Subject, ...] = ()
    batches: Tuple[Batch, ...] = ()
    timeslots: Tuple[TimeSlot, ...] = field(default_factory=default_timeslots)
    _faculty_index: Dict[str, Faculty] = field(init=False, repr=False, compare=False)
    _room_index: Dict[str, Room] = field(init=False, repr=False, compare=False)
    _subject_index: Dict[str, Subject] = field(init=False, repr=False, compare=False)
    _batch_index: Dict[str, Batch] = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        for name in ("faculty", "rooms", "subjects", "batches", "timeslots"):
            object.__setattr__(self, name, tuple(getattr(self, name)))
        object.__setattr__(self, "_faculty_index", _index_unique("faculty", self.faculty))
        object.__setattr__(self, "_room_index", _index_unique("room", self.rooms))
        object.__setattr__(self, "_subject_index", _index_unique("subject", self.subjects))
        object.__setattr__(self, "_batch_index", _index_unique("batch", self.batches))
        self._validate()

    def _validate(self):
        if not self.timeslots:
            raise ConfigurationError("time slot catalog is empty")
        prev: Optional[TimeSlot] = None
        for pos, ts in enumerate(self.timeslots):
            if ts.index != pos:
                raise ConfigurationError(f"time slot {ts} has index {ts.index}, expected {pos}")
            if ts.day not in WEEKDAYS:
                raise ConfigurationError(f"time slot {ts.label} on weekday {ts.day} outside 1..5")
            if ts.end_min <= ts.start_min:
                raise ConfigurationError(f"time slot {ts} ends before it starts")
            if prev is not None and (ts.day, ts.start_min) <= (prev.day, prev.start_min):
                raise ConfigurationError(f"time slot catalog not ordered at {ts}")
            if prev is not None and ts.day == prev.day and ts.start_min < prev.end_min:
                raise ConfigurationError(f"time slots {prev} and {ts} overlap")
            prev = ts

        for f in self.faculty:
            if f.max_hours_per_day <= 0:
                raise ConfigurationError(f"faculty {f.id!r} has non-positive max hours per day")
            unknown = sorted(s for s in f.subjects if s not in self._subject_index)
            if unknown:
                raise ConfigurationError(f"faculty {f.id!r} references unknown subject ids {unknown}")
        for r in self.rooms:
            if r.kind not in ROOM_KINDS:
                raise ConfigurationError(f"room {r.id!r} has unknown kind {r.kind!r}")
            if r.capacity <= 0:
                raise ConfigurationError(f"room {r.id!r} has non-positive capacity")
        for s in self.subjects:
            if s.kind not in SUBJECT_KINDS:
                raise ConfigurationError(f"subject {s.id!r} has unknown kind {s.kind!r}")
        for b in self.batches:
            if b.strength < 0:
                raise ConfigurationError(f"batch {b.id!r} has negative strength")

    def faculty_by_id(self, fid: str) -> Faculty:
        return self._faculty_index[fid]

    def room(self, rid: str) -> Room:
        return self._room_index[rid]

    def subject(self, sid: str) -> Subject:
        return self._subject_index[sid]

    def has_subject(self, sid: str) -> bool:
        return sid in self._subject_index

    def batch(self, bid: str) -> Batch:
        return self._batch_index[bid]

    def slot_labels(self) -> Tuple[str, ...]:
        seen: Dict[str, None] = {}
        for ts in self.timeslots:
            seen.setdefault(ts.label, None)
        return tuple(seen)


@dataclass(frozen=True)
class Session:
    index: int  # position in expansion order
    batch_id: str
    subject_id: str
    occurrence: int

    @property
    def session_id(self) -> str:
        return f"{self.batch_id}/{self.subject_id}#{self.occurrence}"


@dataclass(frozen=True)
class Candidate:
    slot: int  # TimeSlot.index
    room_id: str
    faculty_id: str


@dataclass(frozen=True)
class Diagnostic:
    session_id: str
    batch_id: str
    subject_id: str
    occurrence: int
    code: str  # infeasible | unresolved | budget_exhausted | cancelled | hard_violation
    reason: str


@dataclass(frozen=True)
class ScheduleSlot:
    session_id: str
    timeslot: Optional[TimeSlot]
    subject_id: str
    faculty_id: Optional[str]
    room_id: Optional[str]
    batch_id: str
    status: str
    violations: Tuple[str, ...] = ()
    penalty: float = 0.0


@dataclass(frozen=True)
class Schedule:
    slots: Tuple[ScheduleSlot, ...]
    penalty: float = 0.0
    cancelled: bool = False
    budget_exhausted: bool = False
    # (unresolved, penalty) of every new best state found by the local search
    penalty_trace: Tuple[Tuple[int, float], ...] = ()
    stats: Dict[str, float] = field(default_factory=dict, compare=False)

    @property
    def counts(self) -> Dict[str, int]:
        counts = {status: 0 for status in STATUSES}
        for slot in self.slots:
            counts[slot.status] += 1
        return counts

    @property
    def fully_confirmed(self) -> bool:
        return all(slot.status == CONFIRMED for slot in self.slots)

    @property
    def complete(self) -> bool:
        return all(slot.status != CONFLICT for slot in self.slots)

    def by_batch(self, batch_id: str) -> Tuple[ScheduleSlot, ...]:
        return tuple(s for s in self.slots if s.batch_id == batch_id)

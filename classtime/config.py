import math
from dataclasses import dataclass, field, fields, replace
from typing import Dict, Optional, Tuple

from .errors import ConfigurationError

EVEN = "even"
FLEXIBLE = "flexible"

# factors the user ranks 1 (most important) .. 4
RANKED_FACTORS = ("workload_balance", "room_utilization", "batch_gaps", "time_preference")
DEFAULT_PRIORITIES = {
    "workload_balance": 1,
    "room_utilization": 1,
    "batch_gaps": 2,
    "time_preference": 3,
}


def rank_to_weight(rank: int) -> float:
    """Rank 1 -> 4.0, rank 4 -> 1.0."""
    if rank not in (1, 2, 3, 4):
        raise ConfigurationError(f"priority rank must be 1..4, got {rank!r}")
    return float(5 - rank)


@dataclass(frozen=True)
class SoftWeights:
    workload_balance: float = 4.0
    room_utilization: float = 4.0
    batch_gaps: float = 3.0
    time_preference: float = 2.0
    equipment: float = 1.0
    consecutive_hours: float = 1.0
    daily_class_limit: float = 1.0
    min_break: float = 1.0
    back_to_back_labs: float = 1.0

    def as_dict(self) -> Dict[str, float]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


def weights_from_priorities(priorities: Optional[Dict[str, int]] = None, **extra: float) -> SoftWeights:
    """Turn the ranked priorities into a weight vector; unranked components come from `extra`."""
    ranks = dict(DEFAULT_PRIORITIES)
    for name, rank in (priorities or {}).items():
        if name not in RANKED_FACTORS:
            raise ConfigurationError(f"unknown priority factor {name!r}")
        ranks[name] = rank
    values = {name: rank_to_weight(rank) for name, rank in ranks.items()}
    values.update(extra)
    try:
        return SoftWeights(**values)
    except TypeError as e:
        raise ConfigurationError(f"unknown soft weight: {e}")


@dataclass(frozen=True)
class SolverConfig:
    # general constraints
    max_classes_per_day: int = 6
    max_consecutive_hours: float = 3.0
    min_break_minutes: int = 15
    workload_distribution: str = EVEN
    allow_back_to_back_labs: bool = False
    preferred_slots: Tuple[str, ...] = ("09:00-10:00", "10:00-11:00", "11:00-12:00")
    restricted_slots: Tuple[str, ...] = ("12:00-13:00",)
    room_utilization_max: float = 80.0
    mandatory_equipment: bool = False
    weights: SoftWeights = field(default_factory=weights_from_priorities)

    # result classification
    confirm_threshold: float = 1.0

    # constructive search
    node_budget: int = 200000
    max_backtracks_per_session: int = 50
    time_limit: Optional[float] = None

    # local search
    sa_iterations: int = 20000
    sa_initial_temperature: float = 2.0
    sa_cooling: float = 0.9995
    sa_min_temperature: float = 1e-3
    rescue_interval: int = 500

    seed: int = 0

    def __post_init__(self):
        object.__setattr__(self, "preferred_slots", tuple(self.preferred_slots))
        object.__setattr__(self, "restricted_slots", tuple(self.restricted_slots))

    def with_overrides(self, **changes) -> "SolverConfig":
        return replace(self, **{k: v for k, v in changes.items() if v is not None})

    def validate(self, slot_labels: Tuple[str, ...] = ()) -> None:
        if self.max_classes_per_day <= 0:
            raise ConfigurationError("max_classes_per_day must be positive")
        if self.max_consecutive_hours <= 0:
            raise ConfigurationError("max_consecutive_hours must be positive")
        if self.min_break_minutes < 0:
            raise ConfigurationError("min_break_minutes must not be negative")
        if self.workload_distribution not in (EVEN, FLEXIBLE):
            raise ConfigurationError(f"unknown workload distribution {self.workload_distribution!r}")
        overlap = sorted(set(self.preferred_slots) & set(self.restricted_slots))
        if overlap:
            raise ConfigurationError(f"time slots both preferred and restricted: {overlap}")
        if slot_labels:
            known = set(slot_labels)
            unknown = sorted(label for label in self.preferred_slots + self.restricted_slots if label not in known)
            if unknown:
                raise ConfigurationError(f"unknown time slot labels {unknown}")
        if not 0 < self.room_utilization_max <= 100:
            raise ConfigurationError("room_utilization_max must be in (0, 100]")
        for name, value in self.weights.as_dict().items():
            if not math.isfinite(value) or value < 0:
                raise ConfigurationError(f"soft weight {name} must be a non-negative number")
        if self.node_budget <= 0 or self.max_backtracks_per_session < 0:
            raise ConfigurationError("search budgets must be positive")
        if self.time_limit is not None and self.time_limit <= 0:
            raise ConfigurationError("time_limit must be positive")
        if self.sa_iterations < 0 or self.rescue_interval <= 0:
            raise ConfigurationError("sa_iterations and rescue_interval must be positive")
        if self.sa_initial_temperature <= 0 or self.sa_min_temperature <= 0:
            raise ConfigurationError("annealing temperatures must be positive")
        if not 0 < self.sa_cooling < 1:
            raise ConfigurationError("sa_cooling must be in (0, 1)")

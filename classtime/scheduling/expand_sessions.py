import logging
from typing import List

from ..errors import ConfigurationError
from ..models import EntitySnapshot, Session

logger = logging.getLogger(__name__)


def expand_sessions(snapshot: EntitySnapshot) -> List[Session]:
    """One Session per required weekly occurrence, in batch, subject, occurrence order."""
    sessions: List[Session] = []
    for batch in snapshot.batches:
        for subject_id in batch.subjects:
            if not snapshot.has_subject(subject_id):
                raise ConfigurationError(f"batch {batch.id!r} references unknown subject {subject_id!r}")
            subject = snapshot.subject(subject_id)
            if subject.sessions_per_week <= 0:
                raise ConfigurationError(f"subject {subject.id!r} has non-positive sessions per week")
            if subject.duration <= 0:
                raise ConfigurationError(f"subject {subject.id!r} has non-positive duration")
            for occurrence in range(1, subject.sessions_per_week + 1):
                sessions.append(Session(index=len(sessions), batch_id=batch.id,
                                        subject_id=subject.id, occurrence=occurrence))
    logger.debug("expanded %d batches into %d sessions", len(snapshot.batches), len(sessions))
    return sessions

"""Recording status transition table.

    UPLOADING -> UPLOADED -> TRANSCRIBING -> ANALYZING -> COMPLETED
    any non-terminal status -> FAILED

COMPLETED and FAILED are terminal; the only way out is deleting the
recording and starting over.
"""

from __future__ import annotations

from src.oneonone.core.errors import ConflictError
from src.oneonone.recordings.schemas import RecordingStatus

TRANSITIONS: dict[RecordingStatus, frozenset[RecordingStatus]] = {
    RecordingStatus.UPLOADING: frozenset({RecordingStatus.UPLOADED, RecordingStatus.FAILED}),
    RecordingStatus.UPLOADED: frozenset({RecordingStatus.TRANSCRIBING, RecordingStatus.FAILED}),
    RecordingStatus.TRANSCRIBING: frozenset({RecordingStatus.ANALYZING, RecordingStatus.FAILED}),
    RecordingStatus.ANALYZING: frozenset({RecordingStatus.COMPLETED, RecordingStatus.FAILED}),
    RecordingStatus.COMPLETED: frozenset(),
    RecordingStatus.FAILED: frozenset(),
}


class InvalidTransition(ConflictError):
    def __init__(self, current: RecordingStatus, target: RecordingStatus) -> None:
        super().__init__(
            f"Recording cannot move from {current.value} to {target.value}"
        )
        self.current = current
        self.target = target


def can_transition(current: RecordingStatus, target: RecordingStatus) -> bool:
    return target in TRANSITIONS[current]


def check_transition(current: RecordingStatus, target: RecordingStatus) -> None:
    """Raise InvalidTransition unless current -> target is in the table."""
    if not can_transition(current, target):
        raise InvalidTransition(current, target)

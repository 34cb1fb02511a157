"""Recording state machine for managing per-room recording transitions."""

from livebroker.schemas import RecordingStatus


class RecordingStateMachine:
    """State machine for a room's recording sub-state.

    State flow with triggers:
    - IDLE -> STARTING (start admitted by the coordinator)
    - STARTING -> ACTIVE (provider returned a job id) | IDLE (provider call failed)
    - ACTIVE -> STOPPING (stop admitted by the coordinator)
    - STOPPING -> COMPLETED (provider finished with an artifact) | FAILED (anything else)
    - COMPLETED/FAILED -> STARTING (a new recording of the same room)

    A failed start returns the room to whatever phase it was in before the
    start was admitted, so a room that last COMPLETED goes back to COMPLETED.
    """

    TRANSITIONS: dict[RecordingStatus, set[RecordingStatus]] = {
        RecordingStatus.IDLE: {RecordingStatus.STARTING},
        RecordingStatus.STARTING: {
            RecordingStatus.ACTIVE,
            RecordingStatus.IDLE,
            RecordingStatus.COMPLETED,
            RecordingStatus.FAILED,
        },
        RecordingStatus.ACTIVE: {RecordingStatus.STOPPING},
        RecordingStatus.STOPPING: {RecordingStatus.COMPLETED, RecordingStatus.FAILED},
        RecordingStatus.COMPLETED: {RecordingStatus.STARTING},
        RecordingStatus.FAILED: {RecordingStatus.STARTING},
    }

    # States in which a new recording may be started
    STARTABLE_STATES: set[RecordingStatus] = {
        RecordingStatus.IDLE,
        RecordingStatus.COMPLETED,
        RecordingStatus.FAILED,
    }

    @classmethod
    def can_transition(cls, current: RecordingStatus, new: RecordingStatus) -> bool:
        """Check if state transition is valid.

        Args:
            current: Current recording state
            new: Target state to transition to

        Returns:
            True if transition is valid, False otherwise
        """
        return new in cls.TRANSITIONS.get(current, set())

    @classmethod
    def can_start(cls, state: RecordingStatus) -> bool:
        return state in cls.STARTABLE_STATES

    @classmethod
    def can_stop(cls, state: RecordingStatus) -> bool:
        return state == RecordingStatus.ACTIVE

    @classmethod
    def get_valid_transitions(cls, state: RecordingStatus) -> set[RecordingStatus]:
        return cls.TRANSITIONS.get(state, set())

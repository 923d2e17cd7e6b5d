"""Event names delivered by the stream and connection status values."""

from enum import StrEnum

MESSAGE_EVENT = "message"
CONNECTED_EVENT = "connected"
HEARTBEAT_EVENT = "heartbeat"
CONNECTION_FAILED_EVENT = "connection_failed"

STREAM_EVENT_NAMES: tuple[str, ...] = (
    CONNECTED_EVENT,
    HEARTBEAT_EVENT,
    "session_update",
    "session_invitation",
    "session_invitation_accepted",
    "session_invitation_rejected",
    "relationship_invitation",
    "notification",
    "session_deleted",
    "sessions_update",
    "objective_advancement",
    "session_status_change",
    "vote_update",
    "objective_transition",
    "session_completion",
    "end_session_vote_update",
    "session_summary_generated",
    "session_summary_generating",
    "session_summary_error",
    "objective_completion",
)


class ConnectionStatus(StrEnum):
    """Coarse connection state broadcast to status listeners."""

    CONNECTED = "connected"
    DISCONNECTED = "disconnected"

# feed：事件流接入与快照对账核心
from .models import ConnectionState, EventEnvelope, RetryState
from .envelope_normalizer import normalize, parse_frame
from .event_filter import ALL_TYPES, filter_events
from .event_log import EventLog
from .snapshot import Snapshot
from .snapshot_reducer import apply_event
from .stream_connection import StreamConnection

__all__ = [
    "ALL_TYPES",
    "ConnectionState",
    "EventEnvelope",
    "EventLog",
    "RetryState",
    "Snapshot",
    "StreamConnection",
    "apply_event",
    "filter_events",
    "normalize",
    "parse_frame",
]

"""
Records pushed by ChatBridge on a session's event stream, and the line decoder for them.
"""

import json
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

MESSAGE_KIND = "message"
CONNECTED_KIND = "connected"

EVENT_PREFIX = "event:"
DATA_PREFIX = "data:"
COMMENT_PREFIX = ":"


@dataclass
class Event:
    kind: str
    session_id: str = ""
    sender: str = ""  # channel name, or "web"
    content: str = ""
    timestamp: int = 0  # epoch seconds, 0 when the server didn't set it

    @classmethod
    def from_dict(cls, data: dict) -> "Event":
        """Build an Event from a decoded record.

        Raises TypeError when a field has the wrong JSON type.
        """
        for key in ("type", "session_id", "from", "content"):
            if not isinstance(data.get(key, ""), (str, type(None))):
                raise TypeError(f"{key} must be a string")
        timestamp = data.get("timestamp")
        if timestamp is not None and (isinstance(timestamp, bool) or not isinstance(timestamp, int)):
            raise TypeError("timestamp must be an integer")

        return cls(
            kind=data.get("type") or "",
            session_id=data.get("session_id") or "",
            sender=data.get("from") or "",
            content=data.get("content") or "",
            timestamp=timestamp or 0,
        )

    @property
    def is_deliverable(self) -> bool:
        """Only a non-empty message counts as the human's reply."""
        return self.kind == MESSAGE_KIND and self.content != ""


def decode_line(line: str) -> Optional[Event]:
    """Decode one line of the stream.

    Returns an Event for a well-formed data line and None for everything else:
    blank lines, comments, event-type lines and malformed JSON.
    """
    if not line or line.startswith(COMMENT_PREFIX):
        return None

    if line.startswith(EVENT_PREFIX):
        # the record itself always arrives on a data line
        return None

    if not line.startswith(DATA_PREFIX):
        return None

    payload = line[len(DATA_PREFIX):].strip()
    try:
        data = json.loads(payload)
    except json.JSONDecodeError:
        return None

    if not isinstance(data, dict):
        return None

    try:
        return Event.from_dict(data)
    except TypeError:
        # a field of the wrong type, e.g. a numeric content
        return None


def format_timestamp(ts: int) -> str:
    """HH:MM:SS in local time; an unset timestamp shows the current time."""
    if ts == 0:
        return datetime.now().strftime("%H:%M:%S")
    return time.strftime("%H:%M:%S", time.localtime(ts))

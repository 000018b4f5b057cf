"""
Waits for the human's reply on a ChatBridge session's event stream.

One call to Listener.listen() resolves to exactly one outcome: the reply
Event is returned, or one of the ListenError subclasses is raised.
"""

import queue
import time
from dataclasses import dataclass
from typing import Callable, Optional

import requests

from sse.cancellation import Cancellation
from sse.errors import Cancelled, ListenError, ListenTimeout
from sse.events import Event
from sse.stream import StreamReader
from util.logging_util import setup_logger

logger = setup_logger(__name__)

ResponseHandler = Callable[[Event], None]
ReminderHandler = Callable[[float, float], None]  # (elapsed, remaining) in seconds


@dataclass
class ListenOptions:
    timeout: float  # seconds
    reminder_interval: float = 0  # seconds, 0 disables reminders
    on_event: Optional[ResponseHandler] = None
    on_reminder: Optional[ReminderHandler] = None

    @property
    def reminders_enabled(self) -> bool:
        return (self.reminder_interval or 0) > 0 and self.on_reminder is not None


class Listener:
    def __init__(self, base_url: str, api_key: str, session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        # no timeout on the session: the stream is long-lived
        self.session = session or requests.Session()

    def events_url(self, session_id: str) -> str:
        return f"{self.base_url}/api/events/{session_id}"

    def headers(self) -> dict:
        return {
            "Accept": "text/event-stream",
            "X-API-Key": self.api_key,
            "Cache-Control": "no-cache",
        }

    def listen_for(
        self,
        cancellation: Cancellation,
        session_id: str,
        timeout: float,
        on_event: Optional[ResponseHandler] = None,
    ) -> Event:
        """listen() with just a timeout and a reply callback."""
        return self.listen(cancellation, session_id, ListenOptions(timeout=timeout, on_event=on_event))

    def listen(self, cancellation: Cancellation, session_id: str, options: ListenOptions) -> Event:
        """Block until a reply arrives on `session_id`, the timeout passes, or `cancellation` fires.

        Args:
            cancellation: Cancelled by the caller to abort the wait (e.g. on SIGINT)
            session_id: Session returned by the send request
            options: Timeout, reminder cadence and callbacks

        Returns:
            The first deliverable Event, after on_event has been called with it

        Raises:
            Unauthorized: the server rejected the API key
            TransportError: connection or HTTP failure, or a broken stream
            StreamClosed: the server ended the stream without a reply
            ListenTimeout: nothing arrived within options.timeout
            Cancelled: `cancellation` fired first
        """
        start = time.monotonic()
        deadline = start + options.timeout

        if cancellation.cancelled:
            raise Cancelled()
        if options.timeout <= 0:
            raise ListenTimeout(options.timeout)

        inbox = queue.SimpleQueue()
        reader = StreamReader(self.session, self.events_url(session_id), self.headers(), inbox)
        unregister = cancellation.add_callback(lambda: inbox.put(Cancelled()))

        interval = options.reminder_interval if options.reminders_enabled else None
        next_tick = start + interval if interval else None

        logger.debug(f"Listening on session {session_id} (timeout {options.timeout:g}s)")
        reader.start()
        try:
            while True:
                wake_at = deadline if next_tick is None else min(deadline, next_tick)
                try:
                    outcome = inbox.get(timeout=max(0.0, wake_at - time.monotonic()))
                except queue.Empty:
                    now = time.monotonic()
                    if now >= deadline:
                        raise ListenTimeout(options.timeout) from None
                    if cancellation.cancelled:
                        raise Cancelled() from None
                    if next_tick is not None and now >= next_tick:
                        elapsed = now - start
                        options.on_reminder(elapsed, max(0.0, options.timeout - elapsed))
                        # ticks stay on the start + k * interval grid; a slow callback skips ticks
                        next_tick = start + (int((time.monotonic() - start) // interval) + 1) * interval
                    continue

                if isinstance(outcome, ListenError):
                    raise outcome

                logger.debug(f"Reply received on session {session_id}")
                if options.on_event is not None:
                    options.on_event(outcome)
                return outcome
        finally:
            unregister()
            reader.close()

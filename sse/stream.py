"""
The reader side of a listen call: one daemon thread that owns the streamed
HTTP response and publishes exactly one outcome to the listener's inbox.
"""

import queue
import socket
import threading
from typing import Optional, Union

import requests

from sse.errors import ListenError, StreamClosed, TransportError, Unauthorized
from sse.events import Event, decode_line
from util.logging_util import setup_logger

logger = setup_logger(__name__)

CONNECT_TIMEOUT_SECONDS = 10

Outcome = Union[Event, ListenError]


class StreamReader(threading.Thread):
    def __init__(
        self,
        session: requests.Session,
        url: str,
        headers: dict,
        inbox: queue.SimpleQueue,
        connect_timeout: float = CONNECT_TIMEOUT_SECONDS,
    ):
        super().__init__(name="sse-reader", daemon=True)
        self._session = session
        self._url = url
        self._headers = headers
        self._inbox = inbox
        self._connect_timeout = connect_timeout
        self._response: Optional[requests.Response] = None
        self._closed = threading.Event()
        self._lock = threading.Lock()

    def run(self):
        try:
            outcome = self._read()
        except requests.RequestException as e:
            outcome = TransportError(f"connection failed: {e}")
        except Exception as e:
            outcome = TransportError(f"stream read failed: {e}")

        if outcome is None or self._closed.is_set():
            # the listener already returned; nobody is waiting for this
            logger.debug(f"Reader for {self._url} stopped after close")
            return

        self._inbox.put(outcome)

    def close(self) -> None:
        """Tear down the connection, unblocking a read in progress."""
        with self._lock:
            self._closed.set()
            response = self._response

        if response is not None:
            _shutdown_socket(response)
            response.close()

    def _read(self) -> Optional[Outcome]:
        logger.debug(f"Connecting to {self._url}")
        response = self._session.get(
            self._url,
            headers=self._headers,
            stream=True,
            timeout=(self._connect_timeout, None),  # no read timeout, the stream is long-lived
        )

        with self._lock:
            if self._closed.is_set():
                response.close()
                return None
            self._response = response

        try:
            if response.status_code == 401:
                return Unauthorized()
            if not 200 <= response.status_code < 300:
                return TransportError(f"API error: {response.status_code} {response.reason}")

            logger.debug(f"Stream open for {self._url}")
            return self._first_deliverable(response)
        finally:
            response.close()

    def _first_deliverable(self, response: requests.Response) -> Outcome:
        # chunk_size=1 so a line is handed over as soon as it arrives
        for raw_line in response.iter_lines(chunk_size=1):
            if self._closed.is_set():
                break
            line = raw_line.decode("utf-8", errors="replace") if isinstance(raw_line, bytes) else raw_line

            event = decode_line(line)
            if event is None:
                continue
            if event.is_deliverable:
                return event
            logger.debug(f"Ignoring '{event.kind}' record")

        return StreamClosed()


def _shutdown_socket(response: requests.Response) -> None:
    """Shut down the socket under a streamed response so a blocked recv returns."""
    connection = getattr(getattr(response, "raw", None), "connection", None)
    sock = getattr(connection, "sock", None)
    if not isinstance(sock, socket.socket):
        return
    try:
        sock.shutdown(socket.SHUT_RDWR)
    except OSError:
        # already disconnected
        return

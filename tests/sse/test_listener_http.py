"""End-to-end listener tests against a local HTTP server streaming events."""

import threading
import time
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer

import pytest

from sse.cancellation import Cancellation
from sse.errors import Cancelled, ListenTimeout, StreamClosed, Unauthorized
from sse.listener import Listener, ListenOptions

CONNECTED = b'event: connected\r\ndata: {"type":"connected","session_id":"afk-e2e"}\r\n\r\n'
REPLY = b'data: {"type":"message","session_id":"afk-e2e","from":"web","content":"yes","timestamp":1700000000}\n\n'


class _EventStreamHandler(BaseHTTPRequestHandler):
    protocol_version = "HTTP/1.0"

    def do_GET(self):
        self.server.seen.append((self.path, dict(self.headers)))
        scenario = self.server.scenario

        if scenario == "unauthorized":
            self.send_response(401)
            self.end_headers()
            return

        self.send_response(200)
        self.send_header("Content-Type", "text/event-stream")
        self.end_headers()
        self.wfile.write(b": hello\n\n")
        self.wfile.write(CONNECTED)
        self.wfile.flush()

        if scenario == "reply":
            self.wfile.write(b"data: {not json}\n\n")
            self.wfile.write(REPLY)
            self.wfile.flush()
        elif scenario == "silent":
            self.server.release.wait(5)

    def log_message(self, format, *args):
        pass


@pytest.fixture
def server():
    httpd = ThreadingHTTPServer(("127.0.0.1", 0), _EventStreamHandler)
    httpd.daemon_threads = True
    httpd.seen = []
    httpd.scenario = "reply"
    httpd.release = threading.Event()
    thread = threading.Thread(target=httpd.serve_forever, daemon=True)
    thread.start()
    yield httpd
    httpd.release.set()
    httpd.shutdown()
    httpd.server_close()


def _listener(httpd) -> Listener:
    host, port = httpd.server_address[:2]
    return Listener(f"http://{host}:{port}", "cb_test_e2e")


def test_reply_is_delivered(server):
    received = []

    event = _listener(server).listen(
        Cancellation(), "afk-e2e", ListenOptions(timeout=5, on_event=received.append)
    )

    assert event.content == "yes"
    assert event.sender == "web"
    assert received == [event]
    path, headers = server.seen[0]
    assert path == "/api/events/afk-e2e"
    assert headers["X-API-Key"] == "cb_test_e2e"
    assert headers["Accept"] == "text/event-stream"


def test_unauthorized(server):
    server.scenario = "unauthorized"

    with pytest.raises(Unauthorized):
        _listener(server).listen(Cancellation(), "afk-e2e", ListenOptions(timeout=30))


def test_hangup_without_reply(server):
    server.scenario = "hangup"

    with pytest.raises(StreamClosed):
        _listener(server).listen(Cancellation(), "afk-e2e", ListenOptions(timeout=5))


def test_silent_server_times_out(server):
    server.scenario = "silent"
    reminders = []
    start = time.monotonic()

    with pytest.raises(ListenTimeout):
        _listener(server).listen(
            Cancellation(),
            "afk-e2e",
            ListenOptions(timeout=0.3, reminder_interval=0.1, on_reminder=lambda e, r: reminders.append(e)),
        )

    assert time.monotonic() - start < 2
    assert len(reminders) >= 2


def _readers():
    return {thread for thread in threading.enumerate() if thread.name == "sse-reader"}


def test_cancel_stops_reader_thread(server):
    server.scenario = "silent"
    cancellation = Cancellation()
    already_running = _readers()
    listening = set()

    def cancel():
        listening.update(_readers() - already_running)
        cancellation.cancel()

    timer = threading.Timer(0.1, cancel)
    timer.start()

    try:
        with pytest.raises(Cancelled):
            _listener(server).listen(cancellation, "afk-e2e", ListenOptions(timeout=30))
    finally:
        timer.cancel()

    assert listening
    for reader in listening:
        reader.join(1)
        assert not reader.is_alive()

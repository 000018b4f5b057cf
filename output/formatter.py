"""
Rendering of everything the CLI tells the agent (or human) at the terminal.

Three formats: "llm" (default, banner blocks with <response>/<instruction>
tags for agents to pick apart), "human", and "json" (one indented object per
event). Quiet mode reduces output to the bare minimum for shell capture.
"""

import json
import sys
from datetime import datetime, timezone

from sse.events import format_timestamp
from util.durations import duration_string, format_duration

FORMAT_LLM = "llm"
FORMAT_HUMAN = "human"
FORMAT_JSON = "json"

RULE = "─" * 40


def _utc_now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


class Formatter:
    def __init__(self, format: str = FORMAT_LLM, quiet: bool = False):
        self.format = format
        self.quiet = quiet

    def message_sent(self, channel: str, session_id: str, message_id: str, msg_len: int, timeout: float, waiting: bool):
        if self.quiet:
            print(f"Session: {session_id}")
            return

        if self.format == FORMAT_JSON:
            self._json({
                "event": "message_sent",
                "status": 200,
                "channel": channel,
                "session": session_id,
                "message_id": message_id,
                "message_length": msg_len,
                "timeout": duration_string(timeout),
                "sent_at": _utc_now(),
                "awaiting_response": waiting,
            })
        elif self.format == FORMAT_HUMAN:
            print(f"200 OK - Message sent via {channel}")
            print(f"Session: {session_id}")
        else:
            print("═══ AFK MESSAGE SENT ═══")
            print("Status: 200 OK")
            print(f"Channel: {channel}")
            print(f"Session: {session_id}")
            print(f"Sent: {_utc_now()}")
            if waiting:
                print(f"Timeout: {format_duration(timeout)}")
            print(f"Message-Length: {msg_len} chars")
            if waiting:
                print()
                print("Awaiting response...")

    def waiting_start(self, timeout: float):
        """Shown before the stream connects. Only the human format says anything here."""
        if self.quiet or self.format != FORMAT_HUMAN:
            return
        print()
        print(f"Waiting for response (timeout: {format_duration(timeout)})...")
        print("Press Ctrl+C to cancel")
        print()

    def waiting(self, session_id: str, elapsed: float, remaining: float):
        """Reminder while no reply has arrived."""
        if self.quiet:
            return

        if self.format == FORMAT_JSON:
            self._json({
                "event": "waiting",
                "session": session_id,
                "elapsed": duration_string(elapsed),
                "remaining": duration_string(remaining),
            })
        elif self.format == FORMAT_HUMAN:
            print(f"\n[{format_duration(elapsed)} elapsed, {format_duration(remaining)} remaining] Still waiting for response...")
        else:
            print()
            print("═══ AFK WAITING ═══")
            print(f"Session: {session_id}")
            print(f"Elapsed: {format_duration(elapsed)} | Remaining: {format_duration(remaining)}")
            print("Status: No response yet")
            print()
            print("<instruction>")
            print("You are waiting for human input. You may continue other work")
            print("if possible, or wait for the response.")
            print("</instruction>")
        sys.stdout.flush()

    def response(self, session_id: str, sender: str, channel: str, content: str, wait_time: float, timestamp: int = 0):
        if self.quiet:
            print(content)
            return

        if self.format == FORMAT_JSON:
            self._json({
                "event": "response",
                "session": session_id,
                "from": sender,
                "channel": channel,
                "content": content,
                "wait_time": duration_string(wait_time),
                "received_at": _utc_now(),
            })
        elif self.format == FORMAT_HUMAN:
            print()
            print(RULE)
            print(f"[{format_timestamp(timestamp)}] Response from {sender}:")
            print()
            print(content)
            print()
            print(RULE)
            print()
            print("Response received. Exiting.")
        else:
            print()
            print("═══ AFK RESPONSE ═══")
            print(f"Session: {session_id}")
            print(f"From: {sender}")
            print(f"Channel: {channel}")
            print(f"Received: {_utc_now()}")
            print(f"Wait-Time: {format_duration(wait_time)}")
            print()
            print("<response>")
            print(content)
            print("</response>")

    def timeout(self, session_id: str, elapsed: float):
        if self.quiet:
            print("TIMEOUT", file=sys.stderr)
            return

        if self.format == FORMAT_JSON:
            self._json({
                "event": "timeout",
                "session": session_id,
                "elapsed": duration_string(elapsed),
            })
        elif self.format == FORMAT_HUMAN:
            print(f"\n408 Timeout: No response within {format_duration(elapsed)}", file=sys.stderr)
        else:
            err = sys.stderr
            print(file=err)
            print("═══ AFK TIMEOUT ═══", file=err)
            print(f"Session: {session_id}", file=err)
            print(f"Elapsed: {format_duration(elapsed)}", file=err)
            print("Status: No response", file=err)
            print(file=err)
            print("<instruction>", file=err)
            print("Developer did not respond. Consider: retry with different", file=err)
            print("wording, proceed with your best judgment, or ask again later.", file=err)
            print("</instruction>", file=err)

    def error(self, status_code: int, message: str, session_id: str = ""):
        if self.quiet:
            print(f"{status_code} {message}", file=sys.stderr)
            return

        if self.format == FORMAT_JSON:
            self._json({
                "event": "error",
                "status": status_code,
                "error": message,
                "session": session_id,
            })
        elif self.format == FORMAT_HUMAN:
            print(f"{status_code} Error: {message}", file=sys.stderr)
        else:
            err = sys.stderr
            print("═══ AFK ERROR ═══", file=err)
            print(f"Status: {status_code}", file=err)
            print(f"Error: {message}", file=err)
            if session_id:
                print(f"Session: {session_id}", file=err)
            print(file=err)
            print("<instruction>", file=err)
            print("Message failed to send. Run 'afk status' to diagnose.", file=err)
            print("</instruction>", file=err)

    def cancelled(self):
        if self.quiet:
            return

        if self.format == FORMAT_JSON:
            self._json({"event": "cancelled"})
        elif self.format == FORMAT_HUMAN:
            print("\nCancelled. Exiting.")
        else:
            print()
            print("═══ AFK CANCELLED ═══")
            print("Status: User cancelled")

    def _json(self, data: dict):
        print(json.dumps(data, indent=2, ensure_ascii=False))
        sys.stdout.flush()

#!/usr/bin/env python3
"""
afk - Away From Keyboard messenger for AI agents.

Sends a message to the developer via SMS or WhatsApp (through ChatBridge)
and waits for their reply on the session's event stream.

Usage:
    afk login                    # Store API credentials (run once)
    afk logout                   # Remove stored credentials
    afk status                   # Check connection and API key
    afk --sms --msg "text"       # Send SMS and wait for response
    afk --whatsapp --msg "text"  # Send WhatsApp and wait for response

Exit Codes:
    0: Success (message sent, response received if waiting, or cancelled)
    1: Invalid arguments or configuration error
    2: API connection failed while waiting
    3: Timeout waiting for response
    4: Message send failed
"""
import argparse
import logging
import signal
import sys
import time
from typing import List, Optional

from chatbridge.client import ChatBridgeClient, ChatBridgeError
from output.formatter import Formatter
from sse.cancellation import Cancellation
from sse.errors import Cancelled, ListenError, ListenTimeout
from sse.events import Event
from sse.listener import Listener, ListenOptions
from util import config as afk_config
from util.constants import (
    API_KEY_PREFIXES,
    DEFAULT_API_URL,
    DEFAULT_SYS_NAME,
    DEFAULT_TIMEOUT,
    EXIT_API_ERROR,
    EXIT_BAD_ARGS,
    EXIT_SEND_FAILED,
    EXIT_SUCCESS,
    EXIT_TIMEOUT,
    VERSION,
)
from util.durations import parse_duration
from util.logging_util import log_reply_received, set_log_level, setup_logger

logger = setup_logger(__name__)

NO_REPLY_HINT = "\n\n[No reply expected]"

# Shell escapes agents tend to add inside double-quoted strings
SHELL_UNESCAPES = [
    ("\\!", "!"),  # history expansion
    ("\\?", "?"),  # glob
    ("\\*", "*"),  # glob
    ("\\[", "["),  # glob
    ("\\]", "]"),  # glob
]

HELP_TEXT = """afk - Away From Keyboard messenger for AI agents

Send messages to developers via WhatsApp or SMS when you need their input,
then wait for their response. Designed for AI coding agents to communicate
with developers who are AFK.

USAGE:
  afk login                    # Store API credentials (run once)
  afk logout                   # Remove stored credentials
  afk status                   # Check connection and API key
  afk --sms --msg "text"       # Send SMS and wait for response
  afk --whatsapp --msg "text"  # Send WhatsApp and wait for response
  afk -v                       # Show version
  afk -h                       # Show this help

MESSAGE FLAGS:
  --sms          Send message via SMS
  --whatsapp     Send message via WhatsApp
  --msg          Message content (required with --sms or --whatsapp)
  --session      Accepted for compatibility; the server assigns session IDs
  --no-wait      Send message and exit without waiting for response
  --no-hint      Don't append '[No reply expected]' (saves chars for SMS)
  --timeout      How long to wait for response (default: 1h, e.g., 30m, 2h)
  --reminder     Reminder interval while waiting (default: 15m, 0 to disable)
  --format       Output format: llm (default), human, json
  --quiet        Minimal output (just response content)
  --debug        Debug logging to stderr

FOR AI AGENTS:
  ═══════════════════════════════════════════════════════════════════════
  USE AFK WHEN YOU NEED DEVELOPER INPUT AND THEY MAY BE AWAY
  ═══════════════════════════════════════════════════════════════════════

  PERMISSIONS:
    If your agent asks before running shell commands, allow-list the
    afk command (e.g. a rule matching "afk" and its arguments) in the
    agent's settings so messages go out without a prompt.

  SHELL QUOTING:

    Use double quotes for all messages:
      afk --whatsapp --msg "Hello! How are you?"
      afk --whatsapp --msg "Don't forget to check the logs!"

    afk unescapes the shell escape sequences agents tend to add
    (\\! → !, \\? → ?, \\* → *, \\[ → [, \\] → ]) so your message
    arrives correctly regardless of which shell you use.

  When to use afk:
    - You need a decision that only the developer can make
    - The task is blocked until you get human input
    - You want to notify the developer of something important

  Workflow:
    1. Send your question via SMS or WhatsApp
    2. afk will wait (up to 1 hour by default) for a response
    3. When the developer replies, you'll see their response
    4. Continue your work based on their answer

  Example - Asking for a decision:
    afk --sms --msg "I found 3 approaches to implement caching:
    1. Redis (fast, needs infrastructure)
    2. In-memory (simple, loses data on restart)
    3. SQLite (persistent, slower)
    Which should I use?"

  Example - Quick notification without waiting:
    afk --whatsapp --msg "Build completed! Tests: 142 passed." --no-wait

  Tips:
    - SMS messages > 255 chars automatically become web links
    - WhatsApp is usually faster and supports richer formatting
    - The developer can reply via the messaging app or web interface
    - Reminders output every 15m by default while waiting

  Output Format (LLM-optimized by default):
    Response content is wrapped in <response>...</response> tags
    Instructions are wrapped in <instruction>...</instruction> tags
    Use --format=json for pure JSON output if preferred

CONFIGURATION:
  Credentials stored in: ~/.afk/config.json (or $AFK_CONFIG_DIR/config.json)
  Run 'afk login' to configure your API key

  Config file options:
    {
      "api_key": "cb_test_...",
      "api_url": "https://chatbridge.net",
      "sys_name": "Claude Code",
      "reminder_interval": "15m",
      "format": "llm"
    }

  sys_name: Identifies the AI agent in WhatsApp messages (e.g., "Claude Code")

EXIT CODES:
  0 - Success (message sent, response received if waiting)
  1 - Invalid arguments or configuration error
  2 - API connection failed
  3 - Timeout waiting for response
  4 - Message send failed

EXAMPLES:
  afk --sms --msg "Should I deploy to staging or production?"
  afk --whatsapp --msg "Need approval to merge PR #123" --timeout 30m
  afk --whatsapp --msg "Build complete! Tests passed." --no-wait
  afk status"""


class UsageError(Exception):
    """Bad command-line arguments."""


class _Parser(argparse.ArgumentParser):
    def error(self, message):
        raise UsageError(message)


def build_parser() -> argparse.ArgumentParser:
    parser = _Parser(prog="afk", add_help=False)
    parser.add_argument("--sms", action="store_true", help="Send message via SMS")
    parser.add_argument("--whatsapp", action="store_true", help="Send message via WhatsApp")
    parser.add_argument("--msg", default="", help="Message content")
    parser.add_argument("--session", default="", help="Ignored, the server generates session IDs")
    parser.add_argument("--no-wait", action="store_true", help="Send message and exit without waiting")
    parser.add_argument("--no-hint", action="store_true", help="Don't append '[No reply expected]'")
    parser.add_argument("--timeout", type=parse_duration, default=parse_duration(DEFAULT_TIMEOUT),
                        help="Timeout for waiting (default: 1h)")
    parser.add_argument("--reminder", default=None, help="Reminder interval (e.g., 15m, 0 to disable)")
    parser.add_argument("--format", choices=afk_config.OUTPUT_FORMATS, default=None,
                        help="Output format: llm, human, json")
    parser.add_argument("--quiet", action="store_true", help="Minimal output (just response content)")
    parser.add_argument("--debug", action="store_true", help="Debug logging to stderr")
    parser.add_argument("-h", "--help", action="store_true", help="Show help")
    parser.add_argument("-v", "--version", action="store_true", help="Show version")
    return parser


def clean_message(message: str, no_wait: bool, no_hint: bool) -> str:
    """Undo shell escaping and add the no-reply hint when we won't wait."""
    for escaped, plain in SHELL_UNESCAPES:
        message = message.replace(escaped, plain)
    if no_wait and not no_hint:
        message += NO_REPLY_HINT
    return message


def parse_reminder(value: str) -> float:
    if value in ("", "0"):
        return 0.0
    return parse_duration(value)


def main(argv: Optional[List[str]] = None) -> int:
    argv = sys.argv[1:] if argv is None else argv
    set_log_level(logging.WARNING)

    if not argv:
        print(HELP_TEXT)
        return EXIT_SUCCESS

    command = argv[0]
    if command == "login":
        return cmd_login()
    if command == "logout":
        return cmd_logout()
    if command == "status":
        return cmd_status()
    if command in ("-h", "--help", "help"):
        print(HELP_TEXT)
        return EXIT_SUCCESS
    if command in ("-v", "--version", "version"):
        print(f"afk version {VERSION}")
        return EXIT_SUCCESS

    return cmd_send(argv)


def cmd_send(argv: List[str]) -> int:
    try:
        args = build_parser().parse_args(argv)
    except UsageError as e:
        print(f"400 Bad Request: {e}", file=sys.stderr)
        print("Run 'afk -h' for usage", file=sys.stderr)
        return EXIT_BAD_ARGS

    if args.help:
        print(HELP_TEXT)
        return EXIT_SUCCESS
    if args.version:
        print(f"afk version {VERSION}")
        return EXIT_SUCCESS
    if args.debug:
        set_log_level(logging.DEBUG)

    if not args.sms and not args.whatsapp:
        print("400 Bad Request: Must specify --sms or --whatsapp", file=sys.stderr)
        print("Run 'afk -h' for usage", file=sys.stderr)
        return EXIT_BAD_ARGS
    if args.sms and args.whatsapp:
        print("400 Bad Request: Cannot use both --sms and --whatsapp", file=sys.stderr)
        return EXIT_BAD_ARGS
    if not args.msg:
        print("400 Bad Request: --msg is required", file=sys.stderr)
        return EXIT_BAD_ARGS

    try:
        cfg = afk_config.load()
    except afk_config.ConfigError as e:
        print(f"401 Unauthorized: {e}", file=sys.stderr)
        return EXIT_BAD_ARGS

    if args.format:
        cfg.format = args.format
    if args.reminder is not None:
        cfg.reminder_interval = args.reminder

    try:
        reminder_interval = parse_reminder(cfg.reminder_interval)
    except ValueError as e:
        print(f"400 Bad Request: Invalid reminder interval: {e}", file=sys.stderr)
        return EXIT_BAD_ARGS

    out = Formatter(cfg.format, args.quiet)

    if args.session:
        logger.debug("--session is ignored, the server assigns session IDs")

    client = ChatBridgeClient(cfg.api_url, cfg.api_key)
    message = clean_message(args.msg, args.no_wait, args.no_hint)

    try:
        if args.sms:
            channel = "SMS"
            result = client.send_sms(message)
        else:
            channel = "WhatsApp"
            result = client.send_whatsapp(message, sys_name=cfg.sys_name)
    except ChatBridgeError as e:
        out.error(500, str(e))
        return EXIT_SEND_FAILED

    session_id = result.session_id
    if not session_id:
        out.error(500, "Server did not return session ID")
        return EXIT_SEND_FAILED

    out.message_sent(channel, session_id, result.message_id, len(args.msg), args.timeout, not args.no_wait)
    if args.no_wait:
        return EXIT_SUCCESS

    out.waiting_start(args.timeout)
    return wait_for_reply(cfg, out, channel, session_id, args.timeout, reminder_interval)


def wait_for_reply(cfg: afk_config.Config, out: Formatter, channel: str, session_id: str,
                   timeout: float, reminder_interval: float) -> int:
    """Listen for the reply, with SIGINT/SIGTERM cancelling the wait."""
    cancellation = Cancellation()
    start_time = time.monotonic()

    def on_event(event: Event):
        log_reply_received(logger, session_id, event.sender, event.content)
        reply_channel = "Web" if event.sender == "web" else channel
        out.response(session_id, event.sender, reply_channel, event.content, time.monotonic() - start_time, event.timestamp)

    def on_reminder(elapsed: float, remaining: float):
        out.waiting(session_id, elapsed, remaining)

    def on_signal(signum, frame):
        cancellation.cancel()

    previous_handlers = {sig: signal.signal(sig, on_signal) for sig in (signal.SIGINT, signal.SIGTERM)}
    listener = Listener(cfg.api_url, cfg.api_key)
    try:
        listener.listen(cancellation, session_id, ListenOptions(
            timeout=timeout,
            reminder_interval=reminder_interval,
            on_event=on_event,
            on_reminder=on_reminder,
        ))
    except ListenTimeout:
        out.timeout(session_id, timeout)
        return EXIT_TIMEOUT
    except Cancelled:
        out.cancelled()
        return EXIT_SUCCESS
    except ListenError as e:
        out.error(503, str(e), session_id)
        return EXIT_API_ERROR
    finally:
        for sig, handler in previous_handlers.items():
            signal.signal(sig, handler)

    # the response was already printed by on_event
    return EXIT_SUCCESS


def cmd_login() -> int:
    print("ChatBridge Login")
    print("================")
    print()

    api_key = _prompt("API Key: ")
    if not api_key:
        print("Error: API key is required", file=sys.stderr)
        return EXIT_BAD_ARGS
    if not api_key.startswith(API_KEY_PREFIXES):
        print("Error: Invalid API key format (should start with cb_live_ or cb_test_)", file=sys.stderr)
        return EXIT_BAD_ARGS

    api_url = _prompt(f"API URL [default: {DEFAULT_API_URL}]: ") or DEFAULT_API_URL
    sys_name = _prompt(f"System Name (for WhatsApp, e.g., 'Claude Code') [default: {DEFAULT_SYS_NAME}]: ") or DEFAULT_SYS_NAME

    client = ChatBridgeClient(api_url, api_key)

    print("\nTesting connection... ", end="")
    try:
        client.health()
    except ChatBridgeError as e:
        print("✗ Failed")
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_API_ERROR
    print("✓ Connected")

    print("Validating API key... ", end="")
    try:
        client.validate_key()
    except ChatBridgeError as e:
        print("✗ Failed")
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_API_ERROR
    print("✓ Valid")

    try:
        path = afk_config.save(afk_config.Config(api_key=api_key, api_url=api_url, sys_name=sys_name))
    except afk_config.ConfigError as e:
        print(f"Error saving config: {e}", file=sys.stderr)
        return EXIT_BAD_ARGS

    print()
    print(f"Credentials saved to {path}")
    print()
    print("You can now use:")
    print('  afk --sms --msg "Your message"')
    print('  afk --whatsapp --msg "Your message"')
    return EXIT_SUCCESS


def cmd_logout() -> int:
    if not afk_config.exists():
        print("Already logged out")
        return EXIT_SUCCESS

    try:
        afk_config.delete()
    except afk_config.ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_BAD_ARGS

    print("Logged out. Credentials removed.")
    return EXIT_SUCCESS


def cmd_status() -> int:
    print("ChatBridge Status")
    print("=================")
    print()

    path = afk_config.config_path()
    try:
        cfg = afk_config.load()
    except afk_config.ConfigError:
        print(f"Credentials: {path} ✗ Not configured")
        print()
        print("Run 'afk login' to configure")
        return EXIT_BAD_ARGS

    print(f"Credentials: {path} ✓")
    print(f"API: {cfg.api_url} ", end="")

    client = ChatBridgeClient(cfg.api_url, cfg.api_key)
    try:
        client.health()
    except ChatBridgeError as e:
        print("✗ Offline")
        print(f"  Error: {e}", file=sys.stderr)
        return EXIT_API_ERROR
    print("✓ Online")

    print("API Key: ", end="")
    try:
        client.validate_key()
    except ChatBridgeError as e:
        print("✗ Invalid")
        print(f"  Error: {e}", file=sys.stderr)
        return EXIT_API_ERROR
    print(f"✓ Valid ({cfg.api_key[:16]}...)")

    print()
    print("Ready to send messages.")
    return EXIT_SUCCESS


def _prompt(text: str) -> str:
    try:
        return input(text).strip()
    except EOFError:
        return ""


if __name__ == "__main__":
    sys.exit(main())

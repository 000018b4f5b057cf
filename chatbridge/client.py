"""Client API for sending SMS and WhatsApp messages through ChatBridge."""

import time
from dataclasses import dataclass
from typing import Optional

import requests

from util.logging_util import log_message_sent, setup_logger

logger = setup_logger(__name__)

REQUEST_TIMEOUT_SECONDS = 30
VALIDATE_TIMEOUT_SECONDS = 5

SMS_ENDPOINT = "/api/sendsms"
WHATSAPP_ENDPOINT = "/api/sendwhatsapp"
HEALTH_ENDPOINT = "/api/health"
EVENTS_ENDPOINT = "/api/events"


class ChatBridgeError(Exception):
    """A request to ChatBridge failed or was refused."""


@dataclass
class SendResult:
    success: bool
    message_id: str = ""
    session_id: str = ""  # assigned by the server, may differ from the one requested
    error: str = ""


@dataclass
class HealthStatus:
    status: str
    service: str


class ChatBridgeClient:
    def __init__(self, base_url: str, api_key: str, session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.session = session or requests.Session()

    def send_sms(self, message: str, session_id: str = "") -> SendResult:
        """Send an SMS to the account's phone.

        Args:
            message: The message content to send
            session_id: Requested session; the server may assign its own

        Returns:
            The SendResult with the session to listen on
        """
        return self._send_message(SMS_ENDPOINT, "SMS", message, session_id)

    def send_whatsapp(self, message: str, session_id: str = "", sys_name: str = "") -> SendResult:
        """Send a WhatsApp message, signed with the agent's name when sys_name is given."""
        return self._send_message(WHATSAPP_ENDPOINT, "WhatsApp", message, session_id, sys_name)

    def _send_message(self, endpoint: str, channel: str, message: str, session_id: str, sys_name: str = "") -> SendResult:
        body = {"message": message, "session_id": session_id}
        if sys_name:
            body["sys_name"] = sys_name

        try:
            resp = self.session.post(
                f"{self.base_url}{endpoint}",
                json=body,
                headers={"Content-Type": "application/json", "X-API-Key": self.api_key},
                timeout=REQUEST_TIMEOUT_SECONDS,
            )
        except requests.RequestException as e:
            raise ChatBridgeError(f"request failed: {e}") from e

        if resp.status_code != 200:
            raise ChatBridgeError(_error_from_body(resp) or f"API error: {resp.status_code} {resp.reason}")

        try:
            data = resp.json()
        except ValueError as e:
            raise ChatBridgeError(f"failed to parse response: {e}") from e
        if not isinstance(data, dict):
            raise ChatBridgeError("failed to parse response: expected a JSON object")

        result = SendResult(
            success=bool(data.get("success")),
            message_id=data.get("message_id") or "",
            session_id=data.get("session_id") or "",
            error=data.get("error") or "",
        )
        if not result.success:
            raise ChatBridgeError(result.error or "message send failed")

        log_message_sent(logger, channel, result.session_id, message)
        return result

    def health(self) -> HealthStatus:
        """Check that the API is reachable."""
        try:
            resp = self.session.get(f"{self.base_url}{HEALTH_ENDPOINT}", timeout=REQUEST_TIMEOUT_SECONDS)
        except requests.RequestException as e:
            raise ChatBridgeError(f"API unreachable: {e}") from e

        if resp.status_code != 200:
            raise ChatBridgeError(f"API returned: {resp.status_code} {resp.reason}")

        try:
            data = resp.json()
        except ValueError as e:
            raise ChatBridgeError(f"failed to parse response: {e}") from e
        if not isinstance(data, dict):
            raise ChatBridgeError("failed to parse response: expected a JSON object")

        return HealthStatus(status=data.get("status", ""), service=data.get("service", ""))

    def validate_key(self) -> None:
        """Check the API key by opening the (authenticated) event stream of a throwaway session.

        Raises ChatBridgeError if the key is rejected or the subscription is inactive.
        """
        # the server only accepts sessions matching "afk*"; a unique id avoids clashing
        # with other validation attempts
        session_id = f"afk-validate-{time.time_ns()}"
        try:
            resp = self.session.get(
                f"{self.base_url}{EVENTS_ENDPOINT}/{session_id}",
                headers={"X-API-Key": self.api_key},
                stream=True,
                timeout=VALIDATE_TIMEOUT_SECONDS,
            )
        except requests.RequestException as e:
            raise ChatBridgeError(f"connection failed: {e}") from e

        try:
            if resp.status_code == 401:
                raise ChatBridgeError("invalid API key")
            if resp.status_code == 403:
                raise ChatBridgeError("subscription not active")
        finally:
            resp.close()


def _error_from_body(resp: requests.Response) -> str:
    try:
        data = resp.json()
    except ValueError:
        return ""
    if isinstance(data, dict):
        return data.get("error") or ""
    return ""

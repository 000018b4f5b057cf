class ListenError(Exception):
    """Base class for every way a listen call can end without a reply."""


class Unauthorized(ListenError):
    def __init__(self, detail: str = "unauthorized: invalid API key"):
        super().__init__(detail)


class TransportError(ListenError):
    """Network or HTTP failure other than bad credentials."""

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class StreamClosed(ListenError):
    def __init__(self, detail: str = "connection closed without response"):
        super().__init__(detail)


class ListenTimeout(ListenError):
    """No reply arrived within the configured timeout (seconds)."""

    def __init__(self, timeout: float):
        super().__init__(f"timeout waiting for response after {timeout:g}s")
        self.timeout = timeout


class Cancelled(ListenError):
    def __init__(self, detail: str = "cancelled"):
        super().__init__(detail)

from __future__ import annotations

from typing import Optional


class RequestError(Exception):
    """Base error for everything a request call can fail with."""
    pass


class RequestTimeoutError(RequestError):
    """The call did not finish within ``timeout`` milliseconds."""
    def __init__(self, timeout: int):
        super().__init__(f"Request timeout after {timeout}ms")
        self.timeout = timeout


class TooManyRedirectsError(RequestError):
    """More redirects than ``max_redirects`` were issued."""
    def __init__(self, max_redirects: int):
        super().__init__(f"Too many redirects (>{max_redirects})")
        self.max_redirects = max_redirects


class ResponseParseError(RequestError):
    """The body could not be decoded as the requested response type."""
    def __init__(self, response_type: str, cause: BaseException):
        super().__init__(f"Failed to parse response: {cause}")
        self.response_type = response_type
        self.cause = cause


class TransportError(RequestError):
    """Connection, stream or protocol failure reported by the network stack."""
    def __init__(self, cause: BaseException):
        super().__init__(str(cause) or cause.__class__.__name__)
        self.cause = cause


class RequestAbortedError(RequestError):
    """The abort signal was set while the request was in flight."""
    def __init__(self, message: str = "Request aborted"):
        super().__init__(message)


class ProxySetupError(RequestError):
    """The isolated proxy context could not be created."""
    def __init__(self, proxy, cause: Optional[BaseException] = None):
        super().__init__(f"Failed to setup proxy: {cause}")
        self.proxy = proxy
        self.cause = cause

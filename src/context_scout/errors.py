"""Exception hierarchy shared by the Slack client, context assembler and LLM gateway.

Platform failures are raised by the Slack client and classified once at that
boundary. The assembler recovers from per-match failures locally and only lets
SearchFailure escape.
"""

from typing import Optional


class ContextScoutError(Exception):
    """Base class for every error raised by this package."""


class PlatformFailure(ContextScoutError):
    """A Slack Web API call did not produce a usable result."""

    def __init__(self, method: str, message: str):
        self.method = method
        super().__init__(f"{method}: {message}")


class TransportFailure(PlatformFailure):
    """Network error or non-2xx HTTP status."""

    def __init__(self, method: str, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(method, message)


class ApiFailure(PlatformFailure):
    """Well-formed response with ok=false. `code` is Slack's own error string."""

    def __init__(self, method: str, code: str):
        self.code = code
        super().__init__(method, f"Slack API error: {code}")


class DecodeFailure(PlatformFailure):
    """Response body did not match the expected schema."""


class TimeoutFailure(ContextScoutError):
    """A bounded sub-step of context assembly ran past its deadline."""

    def __init__(self, step: str, seconds: float):
        self.step = step
        self.seconds = seconds
        super().__init__(f"{step} timed out after {seconds}s")


class SearchFailure(ContextScoutError):
    """One of the ranked searches failed; the whole assembly is abandoned."""


class CompletionFailure(ContextScoutError):
    """The completion model call failed or returned nothing."""


class UnknownCommand(ContextScoutError):
    def __init__(self, command: str):
        self.command = command
        super().__init__(f"Unknown command: {command}")

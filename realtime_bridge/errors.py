"""
Exception hierarchy of the realtime bridge.

Setup errors end a connection attempt and put the session in the ``error``
state. Tool errors never leave the session: they are recorded in the event log
and resolved back to the model as a ``function_call_output``.
"""


class RealtimeBridgeError(Exception):
    """Base class for all bridge errors."""


class SessionSetupError(RealtimeBridgeError):
    """A step of connect() failed."""


class CredentialError(SessionSetupError):
    """The ephemeral credential could not be obtained."""


class MediaError(SessionSetupError):
    """Local audio capture could not be started."""


class NegotiationError(SessionSetupError):
    """The SDP offer/answer exchange was rejected."""


class ToolError(RealtimeBridgeError):
    """A tool call could not be resolved successfully."""


class UnknownToolError(ToolError, LookupError):
    def __init__(self, name: str):
        super().__init__(f"Unknown tool: {name}")
        self.name = name


class ToolExecutionError(ToolError):
    """A tool handler raised; the original exception is kept as ``cause``."""

    def __init__(self, name: str, cause: BaseException):
        super().__init__(f"Tool '{name}' failed: {cause}")
        self.name = name
        self.cause = cause


class ArgumentParseError(ToolError, ValueError):
    """The model supplied arguments that are not a JSON object."""

    def __init__(self, name: str, raw: str, reason: str):
        super().__init__(f"Invalid arguments for tool '{name}': {reason}")
        self.name = name
        self.raw = raw


class SendDroppedWarning(UserWarning):
    """An outbound message was dropped because the data channel was not open."""


class UpstreamError(RealtimeBridgeError):
    """An upstream service answered a proxied request with a failure."""

    def __init__(self, message: str, status_code: int = 500):
        super().__init__(message)
        self.status_code = status_code

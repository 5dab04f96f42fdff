"""
Core data model for the realtime session: events, pending tool calls, tool
specifications, connection states and display turns.

Events are immutable once created. Fields the model does not declare are kept
verbatim as pydantic extras, so nested payloads such as ``response.output[]``
reach downstream consumers untouched.
"""

from enum import Enum
from typing import Any, Dict, Literal

from pydantic import BaseModel, ConfigDict, Field

from realtime_bridge.config.constants import CLIENT_EVENT_PREFIX


class ConnectionState(str, Enum):
    """Coarse session state surfaced to the user interface."""
    IDLE = "idle"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    ERROR = "error"


class Event(BaseModel):
    """A single entry of the session event log."""

    model_config = ConfigDict(extra="allow", frozen=True)

    event_id: str = Field(..., min_length=1, description="Unique id; prefix tells provenance")
    type: str = Field(..., min_length=1, description="Open-ended event type")
    timestamp: str = Field(..., min_length=1, description="ISO-8601 timestamp")

    @property
    def origin(self) -> str:
        """``client`` for locally synthesized events, ``server`` otherwise."""
        return "client" if self.event_id.startswith(CLIENT_EVENT_PREFIX) else "server"

    def get(self, key: str, default: Any = None) -> Any:
        """Look up a declared or carried-through field by name."""
        if key in type(self).model_fields:
            return getattr(self, key)
        return (self.model_extra or {}).get(key, default)

    def to_dict(self) -> Dict[str, Any]:
        """Return the event as a plain dictionary, extras included."""
        return self.model_dump()


class PendingCall(BaseModel):
    """A function call issued by the model that has not been echoed back yet."""
    call_id: str
    name: str
    arguments: str = ""


class ToolSpec(BaseModel):
    """Declarative tool description advertised to the model."""

    model_config = ConfigDict(frozen=True)

    type: Literal["function"] = "function"
    name: str = Field(..., min_length=1)
    description: str
    parameters: Dict[str, Any] = Field(
        default_factory=lambda: {"type": "object", "properties": {}}
    )

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump()


class SpeakerRole(str, Enum):
    """Speaker of a display turn."""
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


class DisplayTurn(BaseModel):
    """One human-readable line of the conversation transcript."""

    model_config = ConfigDict(frozen=True)

    id: str
    role: SpeakerRole
    text: str = Field(..., min_length=1)
    at: str

"""
Pydantic models for OpenAI Realtime API message structures.

This module provides type-safe models for the messages exchanged with the OpenAI Realtime API
over the WebRTC data channel, including both incoming and outgoing message formats, and for
the ephemeral session response returned by the credential endpoint.
"""

from enum import Enum
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from realtime_bridge.config.constants import (
    ITEM_TYPE_FUNCTION_CALL,
    ITEM_TYPE_FUNCTION_CALL_OUTPUT,
    MESSAGE_TYPE_ITEM_CREATE,
    MESSAGE_TYPE_RESPONSE_CREATE,
    MESSAGE_TYPE_SESSION_UPDATE,
)


class MessageRole(str, Enum):
    """Role of a participant in a conversation."""
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


class RealtimeBaseMessage(BaseModel):
    """Base model for Realtime API messages."""
    type: str


# Outbound messages
class SessionToolConfig(BaseModel):
    """Session fields updated when advertising tools."""
    tools: List[Dict[str, Any]] = Field(default_factory=list)
    tool_choice: str = "auto"


class SessionUpdateMessage(RealtimeBaseMessage):
    """session.update message advertising the callable tools."""
    type: Literal["session.update"] = MESSAGE_TYPE_SESSION_UPDATE
    session: SessionToolConfig


class FunctionCallOutputItem(BaseModel):
    """Conversation item carrying a tool result back to the model."""
    type: Literal["function_call_output"] = ITEM_TYPE_FUNCTION_CALL_OUTPUT
    call_id: str = Field(..., min_length=1)
    output: str


class ConversationItemCreateMessage(RealtimeBaseMessage):
    """conversation.item.create message."""
    type: Literal["conversation.item.create"] = MESSAGE_TYPE_ITEM_CREATE
    item: FunctionCallOutputItem


class ResponseCreateMessage(RealtimeBaseMessage):
    """response.create message asking the model to continue."""
    type: Literal["response.create"] = MESSAGE_TYPE_RESPONSE_CREATE


# Inbound structures
class FunctionCallItem(BaseModel):
    """Function call output item inside a response.done event."""

    model_config = ConfigDict(extra="allow")

    type: Literal["function_call"] = ITEM_TYPE_FUNCTION_CALL
    call_id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    arguments: str = ""
    status: Optional[str] = None


class ClientSecret(BaseModel):
    """Ephemeral key minted for a realtime session."""
    value: str = Field(..., min_length=1)
    expires_at: Optional[int] = None


class RealtimeSessionResponse(BaseModel):
    """Response from session creation endpoint."""

    model_config = ConfigDict(extra="allow")

    client_secret: ClientSecret
    id: Optional[str] = None

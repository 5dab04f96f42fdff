"""
Models module for data structures used by the realtime bridge.

Key components:
- events: The immutable ``Event`` record of the session log, ``PendingCall``,
  ``ToolSpec``, ``ConnectionState`` and the display ``DisplayTurn``.
- openai_schemas: Type-safe models for the OpenAI Realtime API messages sent and
  received over the data channel, and for the ephemeral session response.
- proxy_schemas: Request/response bodies of the tool proxy routes.

Usage examples:
```python
from realtime_bridge.models import ConversationItemCreateMessage, FunctionCallOutputItem

message = ConversationItemCreateMessage(
    item=FunctionCallOutputItem(call_id="call_123", output='{"horoscope": "..."}')
)
channel.send(message.model_dump_json())
```
"""

from realtime_bridge.models.events import (
    ConnectionState,
    DisplayTurn,
    Event,
    PendingCall,
    SpeakerRole,
    ToolSpec,
)
from realtime_bridge.models.openai_schemas import (
    ClientSecret,
    ConversationItemCreateMessage,
    FunctionCallItem,
    FunctionCallOutputItem,
    MessageRole,
    RealtimeSessionResponse,
    ResponseCreateMessage,
    SessionToolConfig,
    SessionUpdateMessage,
)

"""
Bot module: the realtime session and its tool-calling bridge.

Key components:
- RealtimeSession: Owns the WebRTC connection to the OpenAI Realtime API, the
  event log, the microphone and the data channel; advertises tools and runs the
  calls the model issues.
- normalize_event / make_client_event: Turn inbound messages and local
  diagnostics into immutable ``Event`` records.
- ToolRegistry: Name-to-handler mapping kept in lock-step with the advertised specs.
- ToolDispatcher: Detects completed function calls in the log, tracks pending
  calls by ``call_id`` and resolves every call back to the model.
- project_conversation: Pure transcript view over the event log.

Usage examples:
```python
import asyncio

from realtime_bridge.bot import RealtimeSession
from realtime_bridge.config.settings import Settings
from realtime_bridge.tools import build_default_registry

async def main():
    settings = Settings.from_env()
    session = RealtimeSession(settings, build_default_registry(settings), language="es")
    await session.connect()
    ...
    await session.disconnect()

asyncio.run(main())
```
"""

from realtime_bridge.bot.dispatcher import ToolDispatcher
from realtime_bridge.bot.normalizer import make_client_event, normalize_event
from realtime_bridge.bot.projector import (
    project_conversation,
    select_latest_analysis,
    select_latest_tool_result,
)
from realtime_bridge.bot.session_controller import RealtimeSession
from realtime_bridge.bot.tool_registry import ToolRegistry

__all__ = [
    "RealtimeSession",
    "ToolDispatcher",
    "ToolRegistry",
    "make_client_event",
    "normalize_event",
    "project_conversation",
    "select_latest_analysis",
    "select_latest_tool_result",
]

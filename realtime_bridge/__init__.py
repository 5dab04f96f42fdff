"""
Realtime voice bridge: a WebRTC client for the OpenAI Realtime API with local
tool calling, plus the FastAPI server that mints ephemeral sessions and proxies
the tool backends.
"""

__version__ = "1.0.0"

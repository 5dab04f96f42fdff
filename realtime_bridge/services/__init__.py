"""
Services module for the HTTP and media integrations of the realtime bridge.

Key components:
- realtime_http: Client-side calls used while connecting (ephemeral credential
  from the bridge server, SDP offer/answer with the Realtime API) and the JSON
  POST helper used by the proxy tools.
- upstream: Server-side calls behind the FastAPI routes (ephemeral session
  minting, webhook proxies, price lookup and the code-interpreter data analyzer).
- audio: Microphone capture as an aiortc track and speaker playback of the
  remote track, with PyAudio and PyAV.

Usage examples:
```python
from realtime_bridge.services.realtime_http import fetch_ephemeral_key, exchange_sdp

async def negotiate(settings, pc):
    key = await fetch_ephemeral_key(settings.token_url, "es")
    answer = await exchange_sdp(
        settings.realtime_base_url, settings.model, key, pc.localDescription.sdp
    )
    return answer
```
"""

# Services module initialization

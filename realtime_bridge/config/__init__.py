"""
Configuration module for the realtime bridge.

This module provides centralized configuration management for the entire application,
including constants, logging setup, and environment-based settings.

Key components:
- constants: Application-wide constants, including event and message type names,
  id namespaces and the default realtime session parameters.
- logging_config: Console and rotating-file logging for the ``realtime_bridge`` logger.
- settings: The ``Settings`` model populated from environment variables (and ``.env``).

Usage examples:
```python
from realtime_bridge.config.constants import LOGGER_NAME, EVENT_TYPE_RESPONSE_DONE
from realtime_bridge.config.logging_config import configure_logging
from realtime_bridge.config.settings import Settings

logger = configure_logging()
settings = Settings.from_env()
logger.info(f"Realtime model: {settings.model}")
```
"""

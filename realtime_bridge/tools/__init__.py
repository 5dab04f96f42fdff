"""
Tools module: the functions the model can call during a conversation.

Key components:
- horoscope: ``generate_horoscope``, answered locally.
- proxy_tools: ``checa_precios``, ``data_analyzer``, ``web_search`` and
  ``business_advice``, answered by the bridge server's ``/api/*`` routes.

``build_default_registry`` pairs every spec with its handler once at startup;
the resulting ``ToolRegistry`` is passed to each ``RealtimeSession``.
"""

from realtime_bridge.bot.tool_registry import ToolRegistry
from realtime_bridge.config.settings import Settings
from realtime_bridge.tools.horoscope import GENERATE_HOROSCOPE_SPEC, generate_horoscope
from realtime_bridge.tools.proxy_tools import (
    BUSINESS_ADVICE_SPEC,
    CHECA_PRECIOS_SPEC,
    DATA_ANALYZER_SPEC,
    WEB_SEARCH_SPEC,
    make_proxy_handler,
)

# Tool name -> bridge server route
PROXY_ROUTES = {
    CHECA_PRECIOS_SPEC.name: "checaprecios",
    DATA_ANALYZER_SPEC.name: "dataanalyzer",
    WEB_SEARCH_SPEC.name: "websearch",
    BUSINESS_ADVICE_SPEC.name: "rag",
}


def build_default_registry(settings: Settings) -> ToolRegistry:
    """Create the registry of every tool the bridge advertises."""
    specs = [
        GENERATE_HOROSCOPE_SPEC,
        CHECA_PRECIOS_SPEC,
        DATA_ANALYZER_SPEC,
        WEB_SEARCH_SPEC,
        BUSINESS_ADVICE_SPEC,
    ]
    handlers = {GENERATE_HOROSCOPE_SPEC.name: generate_horoscope}
    for name, route in PROXY_ROUTES.items():
        handlers[name] = make_proxy_handler(settings, route)
    return ToolRegistry(specs, handlers)

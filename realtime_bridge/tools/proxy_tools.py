"""
Tools answered by the bridge server's ``/api/*`` routes.

Each handler POSTs its arguments as JSON to the matching route and returns the
decoded JSON. A non-success status raises ``requests.HTTPError``, which the
registry reports as a ``ToolExecutionError``.
"""

from typing import Any, Dict

from realtime_bridge.config.settings import Settings
from realtime_bridge.models.events import ToolSpec
from realtime_bridge.services.realtime_http import post_json

CHECA_PRECIOS_SPEC = ToolSpec(
    name="checa_precios",
    description=(
        "Look up current store prices for a product. Use it whenever the user "
        "asks how much something costs or where to buy it."
    ),
    parameters={
        "type": "object",
        "properties": {
            "item": {"type": "string", "description": "The product to price, e.g. 'leche 1L'."},
            "location": {"type": "string", "description": "Optional city or neighbourhood."},
        },
        "required": ["item"],
    },
)

DATA_ANALYZER_SPEC = ToolSpec(
    name="data_analyzer",
    description=(
        "Analyze business data, compute figures and create charts. Use it for "
        "questions about sales, numbers or when the user asks for a graph."
    ),
    parameters={
        "type": "object",
        "properties": {
            "query": {"type": "string", "description": "The analysis request in the user's words."},
        },
        "required": ["query"],
    },
)

WEB_SEARCH_SPEC = ToolSpec(
    name="web_search",
    description="Search the web for recent information the model does not know.",
    parameters={
        "type": "object",
        "properties": {
            "message": {"type": "string", "description": "The search request."},
        },
        "required": ["message"],
    },
)

BUSINESS_ADVICE_SPEC = ToolSpec(
    name="business_advice",
    description="Retrieve practical advice for running a small business from the knowledge base.",
    parameters={
        "type": "object",
        "properties": {
            "message": {"type": "string", "description": "The question to answer."},
        },
        "required": ["message"],
    },
)


def make_proxy_handler(settings: Settings, route: str):
    """Build a handler that forwards its arguments to ``POST /api/{route}``."""
    url = settings.tool_url(route)

    async def handler(args: Dict[str, Any]) -> Any:
        return await post_json(url, args, timeout=settings.tool_timeout)

    handler.__name__ = f"proxy_{route}"
    return handler

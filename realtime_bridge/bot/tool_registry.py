"""
Registry of the tools the model may call during a session.

The registry pairs every advertised ``ToolSpec`` with exactly one asynchronous
handler. It is built once at startup and never mutated afterwards; sessions
receive it by reference.
"""

import logging
from types import MappingProxyType
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Sequence, Tuple

from realtime_bridge.errors import ToolExecutionError, UnknownToolError
from realtime_bridge.config.constants import LOGGER_NAME
from realtime_bridge.models.events import ToolSpec

logger = logging.getLogger(LOGGER_NAME)

ToolHandler = Callable[[Dict[str, Any]], Awaitable[Any]]


def _validate_tool_specs(specs: Sequence[ToolSpec], handlers: Mapping[str, ToolHandler]) -> None:
    spec_names = [spec.name for spec in specs]
    duplicates = sorted({name for name in spec_names if spec_names.count(name) > 1})
    if duplicates:
        raise ValueError(f"Duplicate tool specs: {', '.join(duplicates)}")
    missing_handlers = sorted(set(spec_names) - set(handlers))
    if missing_handlers:
        raise ValueError(f"Tool specs without handler: {', '.join(missing_handlers)}")
    unadvertised = sorted(set(handlers) - set(spec_names))
    if unadvertised:
        raise ValueError(f"Handlers without tool spec: {', '.join(unadvertised)}")


class ToolRegistry:
    """
    Read-only mapping from tool name to handler, plus the specs advertised to the model.

    Handlers take a single arguments dict and return a JSON-serializable value.
    They share no state through the registry, so several calls may be awaited
    concurrently.
    """

    def __init__(self, specs: Sequence[ToolSpec], handlers: Mapping[str, ToolHandler]):
        _validate_tool_specs(specs, handlers)
        self._specs: Tuple[ToolSpec, ...] = tuple(specs)
        self._handlers: Mapping[str, ToolHandler] = MappingProxyType(dict(handlers))
        logger.info(f"Tool registry initialized with tools: {', '.join(self.names)}")

    @property
    def specs(self) -> Tuple[ToolSpec, ...]:
        return self._specs

    @property
    def names(self) -> Tuple[str, ...]:
        return tuple(spec.name for spec in self._specs)

    @property
    def handlers(self) -> Mapping[str, ToolHandler]:
        return self._handlers

    def __contains__(self, name: object) -> bool:
        return name in self._handlers

    def __len__(self) -> int:
        return len(self._specs)

    def tool_payload(self) -> List[Dict[str, Any]]:
        """Tool definitions in the shape expected by ``session.update``."""
        return [spec.to_payload() for spec in self._specs]

    async def dispatch(self, name: str, args: Dict[str, Any]) -> Any:
        """
        Run the handler registered under ``name``.

        Args:
            name: Tool name requested by the model
            args: Parsed call arguments

        Returns:
            The handler result

        Raises:
            UnknownToolError: If no handler is registered under ``name``
            ToolExecutionError: If the handler raised; the original exception is the cause
        """
        handler = self._handlers.get(name)
        if handler is None:
            raise UnknownToolError(name)

        logger.info(f"Running tool {name} with args: {args}")
        try:
            return await handler(args)
        except Exception as e:
            logger.warning(f"Tool {name} failed: {e}")
            raise ToolExecutionError(name, e) from e

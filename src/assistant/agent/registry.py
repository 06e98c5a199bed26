"""
Tool registry for the orchestrator.

Each tool is registered with:
- descriptor: name, description and ordered typed parameters (for the LLM)
- handler: callable(**kwargs) -> result (normally a JSON-serialisable dict)

Invocation validates arguments against the descriptor and can bound the
handler's runtime with a timeout. Timed calls run on their own daemon thread.
"""
import contextvars
import threading
from typing import Any, Callable, Dict, List, Mapping, Optional
from assistant.errors import ExecutionFailure, InvalidArgument, ToolTimeout, UnknownTool
from assistant.models.tool import ToolDescriptor
from assistant.logging import logger

_TYPE_CHECKS: Dict[str, Callable[[Any], bool]] = {
    "string": lambda v: isinstance(v, str),
    "integer": lambda v: isinstance(v, int) and not isinstance(v, bool),
    "number": lambda v: isinstance(v, (int, float)) and not isinstance(v, bool),
    "boolean": lambda v: isinstance(v, bool),
    "array": lambda v: isinstance(v, (list, tuple)),
    "object": lambda v: isinstance(v, dict),
}


class ToolRegistry:
    def __init__(self):
        self._tools: Dict[str, ToolDescriptor] = {}
        self._handlers: Dict[str, Callable[..., Any]] = {}
        self._lock = threading.Lock()

    def register(self, descriptor: ToolDescriptor, handler: Callable[..., Any]) -> None:
        """Register a tool. Names are unique."""
        with self._lock:
            if descriptor.name in self._tools:
                raise ValueError(f"Tool '{descriptor.name}' is already registered")
            self._tools[descriptor.name] = descriptor
            self._handlers[descriptor.name] = handler
        logger.debug(f"Registered tool {descriptor.name}")

    def __contains__(self, name: str) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)

    def get(self, name: str) -> ToolDescriptor:
        try:
            return self._tools[name]
        except KeyError:
            raise UnknownTool(name) from None

    def descriptors(self) -> List[ToolDescriptor]:
        """Registered descriptors in registration order."""
        return list(self._tools.values())

    def openai_tools_schema(self) -> List[Dict[str, Any]]:
        """Return the list of tool definitions in OpenAI function-calling format."""
        return [d.to_openai() for d in self._tools.values()]

    def validate(self, name: str, args: Mapping[str, Any]) -> None:
        descriptor = self.get(name)
        if not isinstance(args, Mapping):
            raise InvalidArgument(name, f"Arguments for {name} must be a mapping")

        known = {p.name: p for p in descriptor.parameters}
        unexpected = sorted(set(args) - set(known))
        if unexpected:
            raise InvalidArgument(name, f"Unexpected argument(s) for {name}: {', '.join(unexpected)}")

        for param in descriptor.parameters:
            if param.name not in args or args[param.name] is None:
                if param.required:
                    raise InvalidArgument(name, f"Missing required argument '{param.name}' for {name}")
                continue
            if not _TYPE_CHECKS[param.type](args[param.name]):
                raise InvalidArgument(
                    name,
                    f"Argument '{param.name}' for {name} must be of type {param.type}, "
                    f"got {type(args[param.name]).__name__}",
                )

    def invoke(self, name: str, args: Optional[Mapping[str, Any]] = None, timeout: Optional[float] = None) -> Any:
        """
        Validate and run a tool.

        Raises UnknownTool, InvalidArgument or ExecutionFailure (ToolTimeout
        when the handler does not finish within ``timeout`` seconds).
        """
        args = {} if args is None else args
        self.validate(name, args)
        handler = self._handlers[name]
        kwargs = {k: v for k, v in args.items() if v is not None}

        if timeout is None:
            try:
                return handler(**kwargs)
            except Exception as e:
                logger.error(f"Tool {name} failed: {e}")
                raise ExecutionFailure(name, f"Tool {name} failed: {e}") from e

        # One thread per call: a hung handler is abandoned without holding up
        # other invocations. The copied context keeps the request id in logs.
        ctx = contextvars.copy_context()
        outcome: Dict[str, Any] = {}

        def target():
            try:
                outcome["value"] = ctx.run(handler, **kwargs)
            except Exception as e:
                outcome["error"] = e

        worker = threading.Thread(target=target, name=f"tool-{name}", daemon=True)
        worker.start()
        worker.join(timeout)
        if worker.is_alive():
            logger.warning(f"Tool {name} timed out after {timeout:g}s")
            raise ToolTimeout(name, timeout)

        if "error" in outcome:
            e = outcome["error"]
            logger.error(f"Tool {name} failed: {e}")
            raise ExecutionFailure(name, f"Tool {name} failed: {e}") from e
        return outcome["value"]

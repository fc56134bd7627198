"""Event bus used to wire FileArchive into a plugin host.

Simple pub/sub: handlers are registered per event name and invoked in
registration order. Handler errors propagate to whoever triggered the
event.

Example:
    bus = EventBus()
    archive = FileArchive()
    archive.on_plugin_load(PluginLoadEvent(bus, {"relative_path": "out"}))

    bus.trigger("filearchive:utils:file:archive:create", "bundle")
    bus.trigger("filearchive:utils:file:archive:write", "hello", "hello.txt")
    done = bus.trigger_sync("filearchive:utils:file:archive:finalize")[0]
    done.result()
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any, Optional


class EventBus:
    def __init__(self) -> None:
        self._handlers: dict[str, list[Callable[..., Any]]] = defaultdict(list)

    def on(self, event: str, callback: Callable[..., Any]) -> None:
        """Register ``callback`` for ``event``."""
        self._handlers[event].append(callback)

    def off(self, event: str, callback: Optional[Callable[..., Any]] = None) -> None:
        """Remove one handler, or every handler for ``event`` when ``callback`` is None."""
        if event not in self._handlers:
            return
        if callback is None:
            del self._handlers[event]
            return
        try:
            self._handlers[event].remove(callback)
        except ValueError:
            return
        if not self._handlers[event]:
            del self._handlers[event]

    def has(self, event: str) -> bool:
        return bool(self._handlers.get(event))

    def trigger(self, event: str, *args: Any, **kwargs: Any) -> None:
        """Invoke every handler for ``event``; results are discarded."""
        self.trigger_sync(event, *args, **kwargs)

    def trigger_sync(self, event: str, *args: Any, **kwargs: Any) -> list[Any]:
        """Invoke every handler for ``event`` and return their results in order."""
        return [cb(*args, **kwargs) for cb in list(self._handlers.get(event, []))]

    def clear(self) -> None:
        self._handlers.clear()


@dataclass
class PluginLoadEvent:
    """What a plugin host passes to ``on_plugin_load``."""

    eventbus: EventBus
    plugin_options: Mapping[str, Any] = field(default_factory=dict)

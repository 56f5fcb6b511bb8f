"""
versionic.events  ──  change notifications emitted by a CatalogService

Handlers are registered on the service's own registry, never globally:

    service = CatalogService(store)

    @service.events.on("update")
    def restock_alert(book): ...
"""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import TYPE_CHECKING, Callable, Dict, List

if TYPE_CHECKING:
    from .core.record import Record

logger = logging.getLogger(__name__)

EVENT_TYPES = ("create", "update", "delete")

Handler = Callable[["Record"], None]


class EventRegistry:
    """Per-service registry of change handlers"""

    def __init__(self):
        # Maps event type -> handlers, in registration order
        self._handlers: Dict[str, List[Handler]] = defaultdict(list)

    def register(self, event_type: str, handler: Handler) -> None:
        if event_type not in EVENT_TYPES:
            raise ValueError(
                f"unknown event type {event_type!r}; expected one of {EVENT_TYPES}"
            )
        self._handlers[event_type].append(handler)

    def on(self, event_type: str) -> Callable[[Handler], Handler]:
        """Decorator form of :meth:`register`."""

        def decorator(func: Handler) -> Handler:
            self.register(event_type, func)
            return func

        return decorator

    def emit(self, event_type: str, record: Record) -> None:
        """Call every handler for ``event_type``.

        The mutation behind ``record`` has already committed when this runs,
        so a failing handler is logged and the remaining handlers still run.
        """
        for handler in self._handlers.get(event_type, ()):
            logger.debug("Dispatching %s of %s %s to %s", event_type, record.entity_name, record.ID, handler)
            try:
                handler(record)
            except Exception:
                logger.exception(
                    "%s handler %r failed for %s %s", event_type, handler, record.entity_name, record.ID
                )

    def handlers(self, event_type: str) -> List[Handler]:
        return list(self._handlers.get(event_type, ()))

"""EntityMutated events: decouple dialogs and bulk actions from cache invalidation."""

import logging
from dataclasses import dataclass
from typing import Callable, List, Optional

from pyqt_entitylist.core.dialog import OperationType

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EntityMutated:
    """Records of ``entity_key`` changed on the backend."""
    entity_key: str
    operation: Optional[OperationType] = None


MutationHandler = Callable[[EntityMutated], None]


class MutationEventBus:
    """Synchronous publish/subscribe for EntityMutated events."""

    def __init__(self):
        self._handlers: List[MutationHandler] = []

    def subscribe(self, handler: MutationHandler) -> Callable[[], None]:
        """Register ``handler``; returns a callable that unsubscribes it."""
        self._handlers.append(handler)

        def unsubscribe() -> None:
            if handler in self._handlers:
                self._handlers.remove(handler)

        return unsubscribe

    def publish(self, event: EntityMutated) -> None:
        op = event.operation.value if event.operation else "unknown"
        logger.debug(f"EntityMutated: {event.entity_key} ({op})")
        for handler in list(self._handlers):
            handler(event)

    @property
    def handler_count(self) -> int:
        return len(self._handlers)

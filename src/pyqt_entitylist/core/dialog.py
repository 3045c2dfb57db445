"""Create/edit dialog lifecycle."""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from pyqt_entitylist.protocols import Entity

logger = logging.getLogger(__name__)


class OperationType(Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    IMPORT = "import"

    @classmethod
    def coerce(cls, value) -> Optional["OperationType"]:
        if value is None or isinstance(value, cls):
            return value
        return cls(value)


@dataclass(frozen=True)
class DialogCloseResult:
    """What the dialog reported when it closed."""
    refresh_needed: bool
    operation: Optional[OperationType] = None
    display_name: Optional[str] = None


CloseHandler = Callable[[DialogCloseResult], None]


class DialogController:
    """
    Closed / Open(current_item) state of one create/edit dialog.

    ``current_item is None`` while open means create mode. The controller
    knows nothing about form fields; what happens after a successful save is
    delegated to ``on_closed``.
    """

    def __init__(self, on_closed: Optional[CloseHandler] = None):
        self._open = False
        self._current_item: Optional[Entity] = None
        self._on_closed = on_closed

    @property
    def is_open(self) -> bool:
        return self._open

    @property
    def current_item(self) -> Optional[Entity]:
        return self._current_item

    @property
    def is_edit_mode(self) -> bool:
        return self._open and self._current_item is not None

    @property
    def is_create_mode(self) -> bool:
        return self._open and self._current_item is None

    def add_new(self) -> None:
        self._current_item = None
        self._open = True
        logger.debug("Dialog opened for create")

    def edit(self, item: Entity) -> None:
        self._current_item = item
        self._open = True
        logger.debug(f"Dialog opened for edit of {item.get('id')!r}")

    def close(self, refresh_needed: bool = False, operation=None,
              display_name: Optional[str] = None) -> DialogCloseResult:
        """Close the dialog; the close handler runs only when a save happened."""
        self._open = False
        self._current_item = None
        result = DialogCloseResult(refresh_needed, OperationType.coerce(operation), display_name)
        if refresh_needed and self._on_closed is not None:
            self._on_closed(result)
        return result

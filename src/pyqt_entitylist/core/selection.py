"""
Selection-mode state machine for bulk actions.

Idle -> Active(mode, selected_ids) -> Idle. The selection is a set of ids;
callers convert to lists only at the UI boundary.
"""

import logging
from enum import Enum
from typing import Any, FrozenSet, Iterable, List, Optional

logger = logging.getLogger(__name__)


class SelectionMode(Enum):
    """Bulk-action intent; used for prompt text, not for gating."""
    EDIT = "edit"
    DELETE = "delete"
    EXPORT = "export"


class BulkActionCheck(Enum):
    """Result of validating the selection against a bulk action."""
    OK = "ok"
    NOTHING_SELECTED = "nothing_selected"
    SELECT_ONLY_ONE = "select_only_one"


class SelectionController:
    """Tracks selection mode, the active intent and the selected ids."""

    def __init__(self):
        self._active = False
        self._mode: Optional[SelectionMode] = None
        self._selected: set = set()
        # (visible ids, ids it added) of the last select_all_visible union
        self._last_union: Optional[tuple] = None

    @property
    def is_active(self) -> bool:
        return self._active

    @property
    def mode(self) -> Optional[SelectionMode]:
        return self._mode

    @property
    def selected_ids(self) -> FrozenSet[Any]:
        return frozenset(self._selected)

    def selected_list(self) -> List[Any]:
        return list(self._selected)

    def is_selected(self, item_id: Any) -> bool:
        return item_id in self._selected

    def start(self, mode: SelectionMode) -> None:
        """Enter selection mode with an empty selection."""
        self._active = True
        self._mode = mode
        self._selected = set()
        self._last_union = None
        logger.debug(f"Selection mode started ({mode.value})")

    def toggle(self, item_id: Any) -> None:
        """Flip membership of ``item_id``; implicitly enters selection mode."""
        if not self._active:
            self._active = True
        self._last_union = None
        if item_id in self._selected:
            self._selected.discard(item_id)
        else:
            self._selected.add(item_id)

    def select_all_visible(self, visible_ids: Iterable[Any]) -> None:
        """
        Deselect ``visible_ids`` if all are selected, otherwise add them.

        Ids selected outside the visible set are always preserved. When the
        page is fully selected only because the immediately preceding call
        added some of its ids, deselecting removes just those ids, so a page
        that was partly selected by hand comes back as it was. In every other
        case (including after any toggle) all visible ids are removed. Two
        calls in a row with the same ids therefore restore the previous
        selection.
        """
        visible = frozenset(item_id for item_id in visible_ids if item_id is not None)
        if not visible:
            return
        if not self._active:
            self._active = True
        if visible <= self._selected:
            if self._last_union is not None and self._last_union[0] == visible:
                self._selected -= self._last_union[1]
            else:
                self._selected -= visible
            self._last_union = None
        else:
            added = visible - self._selected
            self._selected |= visible
            self._last_union = (visible, added)

    def cancel(self) -> None:
        """Leave selection mode and clear the selection."""
        self._active = False
        self._mode = None
        self._selected = set()
        self._last_union = None

    def check(self, mode: Optional[SelectionMode] = None) -> BulkActionCheck:
        """Validate the selection for ``mode`` (edit needs exactly one id)."""
        mode = mode or self._mode
        count = len(self._selected)
        if count == 0:
            return BulkActionCheck.NOTHING_SELECTED
        if mode is SelectionMode.EDIT and count > 1:
            return BulkActionCheck.SELECT_ONLY_ONE
        return BulkActionCheck.OK

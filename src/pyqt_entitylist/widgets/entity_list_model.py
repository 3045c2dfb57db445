"""Qt binding for EntityListEngine: engine state changes as pyqtSignals."""

import logging
from typing import Any, Awaitable, Callable, Iterable, Mapping, Optional

from PyQt6.QtCore import QObject, pyqtSignal

from pyqt_entitylist.protocols import Toast
from pyqt_entitylist.services.entity_list_engine import (
    EngineChange,
    EntityListEngine,
    SelectionResult,
)

logger = logging.getLogger(__name__)

AsyncRunner = Callable[[Awaitable[Any]], Any]


class EntityListModel(QObject):
    """
    Exposes one EntityListEngine to widgets.

    Widgets connect to the signals and call the slot-style methods. Engine
    coroutines are handed to ``run_async``, supplied by the application from
    whatever drives its event loop (e.g. a loop integrated with the Qt event
    loop). The model never schedules work on its own.

    Usage:
        model = EntityListModel(engine, run_async=app_services.run_coroutine)
        model.items_changed.connect(table.set_rows)
        model.toast_requested.connect(toast_overlay.show_toast)
        model.load()
    """

    items_changed = pyqtSignal(object)            # list of current page records
    loading_changed = pyqtSignal(bool)
    bulk_in_progress_changed = pyqtSignal(bool)
    error_changed = pyqtSignal(object)            # error message or None
    pagination_changed = pyqtSignal(object)       # Pagination
    selection_changed = pyqtSignal(list)          # selected ids
    dialog_state_changed = pyqtSignal(bool, object)  # is_open, current_item
    view_mode_changed = pyqtSignal(str)
    toast_requested = pyqtSignal(dict)            # Toast.as_dict()
    status_message = pyqtSignal(str)

    def __init__(self, engine: EntityListEngine, run_async: AsyncRunner, parent=None):
        super().__init__(parent)
        self.engine = engine
        self._run_async = run_async
        self._last_loading = engine.loading
        self._last_error = engine.error
        engine.add_listener(self._on_engine_change)

    # ========== Engine -> signals ==========

    def _on_engine_change(self, change: str, payload: Any) -> None:
        engine = self.engine
        if change == EngineChange.DATA.value:
            if engine.loading != self._last_loading:
                self._last_loading = engine.loading
                self.loading_changed.emit(engine.loading)
            if engine.error != self._last_error:
                self._last_error = engine.error
                self.error_changed.emit(engine.error)
            if not engine.loading:
                self._emit_items()
        elif change in (EngineChange.FILTERS.value, EngineChange.SORT.value, EngineChange.PAGINATION.value):
            self._emit_items()
        elif change == EngineChange.SELECTION.value:
            self.selection_changed.emit(sorted(engine.selected_items, key=str))
        elif change == EngineChange.DIALOG.value:
            self.dialog_state_changed.emit(engine.is_dialog_open, engine.current_item)
        elif change == EngineChange.VIEW.value:
            self.view_mode_changed.emit(engine.view_mode.value)
        elif change == EngineChange.TOAST.value and isinstance(payload, Toast):
            self.toast_requested.emit(payload.as_dict())
        elif change == EngineChange.BULK.value:
            self.bulk_in_progress_changed.emit(bool(payload))

    def _emit_items(self) -> None:
        pagination = self.engine.pagination
        self.items_changed.emit(self.engine.items)
        self.pagination_changed.emit(pagination)
        self.status_message.emit(
            f"{pagination.total_count} {self.engine.entity_config.entity_name_plural} "
            f"(page {pagination.current_page} of {pagination.total_pages})"
        )

    def _spawn(self, coro: Awaitable[Any]) -> Any:
        return self._run_async(coro)

    # ========== Widget -> engine ==========

    def load(self) -> Any:
        return self._spawn(self.engine.load())

    def refresh(self) -> Any:
        """Refresh button: forced fetch with the "refreshing" toast."""
        return self._spawn(self.engine.refresh(force=True, notify=True))

    def set_filter(self, name: str, value: Any) -> None:
        self.engine.set_filter(name, value)

    def set_sort(self, sort_config: Iterable[Any]) -> None:
        self.engine.set_sort(sort_config)

    def go_to_page(self, page: int) -> None:
        self.engine.go_to_page(page)

    def set_page_size(self, page_size: int) -> None:
        self.engine.set_page_size(page_size)

    def set_view_mode(self, mode: str) -> None:
        self.engine.set_view_mode(mode)

    def confirm_selection_action(self) -> SelectionResult:
        return self.engine.confirm_selection_action()

    def close_dialog(self, refresh_needed: bool = False, operation: Any = None,
                     display_name: Optional[str] = None) -> None:
        self.engine.close_dialog(refresh_needed, operation, display_name)
        if refresh_needed:
            # joins the background refresh when one was scheduled
            self._spawn(self.engine.load())

    def bulk_delete(self, ids: Optional[Iterable[Any]] = None) -> Any:
        return self._spawn(self.engine.bulk_delete(ids))

    def bulk_import(self, records: Iterable[Mapping[str, Any]]) -> Any:
        return self._spawn(self.engine.bulk_import(records))

    def cleanup(self) -> None:
        """Disconnect from the engine and dispose it."""
        self.engine.remove_listener(self._on_engine_change)
        self.engine.close()
        logger.debug(f"EntityListModel for '{self.engine.entity_key}' cleaned up")

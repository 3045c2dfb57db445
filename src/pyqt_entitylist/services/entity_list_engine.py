"""
Entity List Engine - the list-management core every entity screen instantiates.

Consolidates the fetch/filter/sort/paginate/select/dialog/bulk pattern that
each screen used to re-implement on its own.

Usage:
    engine = EntityListEngine(EntityConfig(
        entity_sdk=DoctorSDK(),
        entity_name="Doctor",
        entity_name_plural="Doctors",
        storage_key="doctors",
        search_fields=("first_name", "last_name", "license_number"),
        categorical_fields=("status", "city"),
        initial_filters={"searchTerm": "", "status": "all", "city": "all"},
        initial_sort=(SortKey("updated_date", desc=True),),
    ))
    await engine.load()
    engine.set_filter("status", "active")
    engine.items          # current page
    engine.pagination     # Pagination(current_page=1, ...)

    engine.start_selection(SelectionMode.DELETE)
    engine.toggle_selection(42)
    outcome = engine.confirm_selection_action()
    if outcome.delete_request:
        await engine.bulk_delete(outcome.delete_request.ids)

    engine.close()        # on screen teardown
"""

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Mapping, Optional, Tuple

from pyqt_entitylist.protocols import (
    Entity,
    EntityConfig,
    EntityEngineConfig,
    NotifierProtocol,
    SortKey,
    Toast,
    ToastVariant,
    TranslatorProtocol,
    get_engine_config,
    get_notifier,
    has_operation,
    normalize_sort,
)
from pyqt_entitylist.core import (
    BulkMutationExecutor,
    BulkResult,
    CacheEntry,
    CacheStore,
    DialogCloseResult,
    DialogController,
    EntitySource,
    FetchCoordinator,
    InvalidEntitySDKError,
    OperationType,
    Pagination,
    PipelineResult,
    SelectionController,
    SelectionMode,
    BulkActionCheck,
    run_pipeline,
)
from pyqt_entitylist.core.pipeline import clamp_page, total_pages_for
from pyqt_entitylist.services.messages import MESSAGES, build_toast
from pyqt_entitylist.services.mutation_events import EntityMutated, MutationEventBus
from pyqt_entitylist.services.preference_store import PreferenceStore, ViewMode
from pyqt_entitylist.services.search_service import build_filter_function

logger = logging.getLogger(__name__)

DEFAULT_SORT_HINT = "-updated_date"

ChangeListener = Callable[[str, Any], None]


class EngineChange(Enum):
    """Names of the state slices an engine reports as changed."""
    DATA = "data"
    FILTERS = "filters"
    SORT = "sort"
    PAGINATION = "pagination"
    SELECTION = "selection"
    DIALOG = "dialog"
    VIEW = "view"
    TOAST = "toast"
    BULK = "bulk"


class ErrorDisplay(Enum):
    """How the rendering layer should present the current fetch error."""
    NONE = "none"
    BLOCKING = "blocking"   # no data at all: full error view with a retry action
    BANNER = "banner"       # stale data still shown: partial load warning
    RETRYING = "retrying"   # no data yet, transient failure being retried


class SelectionOutcome(Enum):
    PROMPT_SELECT = "prompt_select"
    PROMPT_SELECT_ONE = "prompt_select_one"
    ITEM_NOT_FOUND = "item_not_found"
    EDIT_OPENED = "edit_opened"
    DELETE_REQUESTED = "delete_requested"


@dataclass(frozen=True)
class DeleteRequest:
    """Ids awaiting the external delete-confirmation dialog."""
    ids: Tuple[Any, ...]
    item_name: str


@dataclass(frozen=True)
class SelectionResult:
    outcome: SelectionOutcome
    delete_request: Optional[DeleteRequest] = None


@dataclass(frozen=True)
class DialogProps:
    """What the DialogComponent collaborator is invoked with."""
    is_open: bool
    current_item: Optional[Entity]
    on_close: Callable[..., DialogCloseResult] = field(compare=False)


class EntityListEngine:
    """
    List state for one entity screen.

    Owns (or shares) a FetchCoordinator for its entity key and derives the
    visible page from the cached list on every access, so items, pagination
    and filters can never disagree.
    """

    def __init__(self, entity_config: EntityConfig,
                 config: Optional[EntityEngineConfig] = None,
                 coordinator: Optional[FetchCoordinator] = None,
                 preferences: Optional[PreferenceStore] = None,
                 notifier: Optional[NotifierProtocol] = None,
                 translate: Optional[TranslatorProtocol] = None,
                 event_bus: Optional[MutationEventBus] = None,
                 clock: Optional[Callable[[], float]] = None,
                 sleep: Optional[Callable[[float], Any]] = None):
        if not has_operation(entity_config.entity_sdk, "list"):
            raise InvalidEntitySDKError(
                f"Invalid SDK for {entity_config.entity_name}: list() is required"
            )

        self.entity_config = entity_config
        self._config = config or get_engine_config()
        self._notifier = notifier
        self._translate = translate
        self._listeners: List[ChangeListener] = []
        self._closed = False

        # Persisted preferences
        self.preferences = preferences if preferences is not None else PreferenceStore()
        self._filters: Dict[str, Any] = self._load_filters()
        self._sort: List[SortKey] = self._load_sort()
        self._view_mode = self.preferences.get_view_mode(self.entity_config.storage_key)

        # Cache / fetch
        self._owns_coordinator = coordinator is None
        if coordinator is None:
            store = CacheStore(clock=clock) if clock else CacheStore()
            coordinator = FetchCoordinator(self._config, store, sleep or asyncio.sleep)
        self.coordinator = coordinator
        if not coordinator.is_registered(self.entity_key):
            coordinator.register(EntitySource(
                key=self.entity_key,
                sdk=entity_config.entity_sdk,
                ttl_ms=entity_config.resolve_ttl_ms(self._config.cache_ttl_ms, self._config.high_churn_ttl_ms),
                entity_name_plural=entity_config.entity_name_plural,
                sort_hint=self.sort_hint,
            ))
        coordinator.add_listener(self._on_cache_changed)

        self.events = event_bus or MutationEventBus()
        self._unsubscribe = self.events.subscribe(self._on_entity_mutated)

        # Pagination
        self._page = 1
        self._page_size = self._config.default_page_size

        # Selection / dialog / bulk
        self.selection = SelectionController()
        self.dialog = DialogController(on_closed=self._on_dialog_saved)
        self._executor = BulkMutationExecutor(entity_config.entity_sdk, self.entity_key)

        self._filter_function = entity_config.filter_function
        if self._filter_function is None and (entity_config.search_fields or entity_config.categorical_fields):
            self._filter_function = build_filter_function(
                entity_config.search_fields, entity_config.categorical_fields
            )

        self._pipeline_cache: Optional[Tuple[tuple, PipelineResult]] = None
        self._bulk_in_progress = False

    # ========== Identity ==========

    @property
    def entity_key(self) -> str:
        return self.entity_config.entity_key

    def sort_hint(self) -> str:
        """Primary sort as passed to SDK list(): "-field" for descending."""
        if not self._sort:
            return DEFAULT_SORT_HINT
        primary = self._sort[0]
        return f"-{primary.id}" if primary.desc else primary.id

    # ========== Change notification ==========

    def add_listener(self, listener: ChangeListener) -> None:
        """Register ``listener(change_name, payload)`` for state changes."""
        self._listeners.append(listener)

    def remove_listener(self, listener: ChangeListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _emit(self, change: EngineChange, payload: Any = None) -> None:
        if self._closed:
            return
        for listener in list(self._listeners):
            listener(change.value, payload)

    def _toast(self, toast: Toast) -> None:
        if self._closed:
            return
        (self._notifier or get_notifier()).toast(toast)
        self._emit(EngineChange.TOAST, toast)

    def _message(self, message_id: str, variant: Optional[ToastVariant] = None, **params: Any) -> None:
        params.setdefault("entity", self.entity_config.entity_name)
        params.setdefault("entity_plural", self.entity_config.entity_name_plural)
        self._toast(build_toast(message_id, self._translate, variant=variant, **params))

    def _on_cache_changed(self, key: str, entry: CacheEntry) -> None:
        if key == self.entity_key:
            self._emit(EngineChange.DATA, entry)

    # ========== Cache-backed state ==========

    @property
    def _entry(self) -> CacheEntry:
        return self.coordinator.store.entry(self.entity_key)

    @property
    def raw_items(self) -> List[Entity]:
        return list(self._entry.data or [])

    @property
    def loading(self) -> bool:
        return self._entry.loading

    @property
    def error(self) -> Optional[str]:
        return self._entry.error

    @property
    def retry_pending(self) -> bool:
        return self.coordinator.retry_pending(self.entity_key)

    @property
    def error_display(self) -> ErrorDisplay:
        entry = self._entry
        if entry.error is None:
            return ErrorDisplay.NONE
        if entry.has_data:
            return ErrorDisplay.BANNER
        if entry.error_transient and self.retry_pending:
            return ErrorDisplay.RETRYING
        return ErrorDisplay.BLOCKING

    # ========== Fetching ==========

    async def load(self) -> List[Entity]:
        """Initial load: served from cache when fresh."""
        return await self.coordinator.fetch(self.entity_key)

    async def refresh(self, force: bool = True, notify: bool = False) -> List[Entity]:
        """Manual refresh; ``notify`` shows the "refreshing" toast."""
        if notify:
            self._message("fetch.refreshing")
        return await self.coordinator.fetch(self.entity_key, force_refresh=force)

    async def settle(self) -> None:
        """Wait for pending fetches, retries and background refreshes."""
        await self.coordinator.settle()

    def _on_entity_mutated(self, event: EntityMutated) -> None:
        if event.entity_key == self.entity_key and not self._closed:
            self.coordinator.request_refresh(event.entity_key)

    # ========== Filter / sort / paginate ==========

    def _load_filters(self) -> Dict[str, Any]:
        filters = dict(self.entity_config.initial_filters)
        if self._config.persist_filters:
            saved = self.preferences.get_filters(self.entity_config.storage_key)
            if saved:
                filters.update(saved)
        return filters

    def _load_sort(self) -> List[SortKey]:
        if self._config.persist_filters:
            saved = self.preferences.get_sort(self.entity_config.storage_key)
            if saved:
                return saved
        return list(self.entity_config.initial_sort)

    @property
    def filters(self) -> Dict[str, Any]:
        return dict(self._filters)

    @property
    def sort_config(self) -> List[SortKey]:
        return list(self._sort)

    def _pipeline(self) -> PipelineResult:
        entry = self._entry
        memo_key = (
            id(entry.data), entry.timestamp, repr(sorted(self._filters.items(), key=lambda kv: kv[0])),
            tuple(self._sort), self._page, self._page_size,
        )
        if self._pipeline_cache is not None and self._pipeline_cache[0] == memo_key:
            return self._pipeline_cache[1]
        result = run_pipeline(
            entry.data, self._filters, self._filter_function, self._sort,
            self._page, self._page_size, self.entity_config.field_types,
        )
        self._pipeline_cache = (memo_key, result)
        return result

    @property
    def filtered_items(self) -> List[Entity]:
        """Filtered and sorted set, before pagination."""
        return list(self._pipeline().filtered)

    @property
    def items(self) -> List[Entity]:
        """Records on the current page."""
        return list(self._pipeline().page_items)

    @property
    def pagination(self) -> Pagination:
        return self._pipeline().pagination

    def visible_ids(self) -> List[Any]:
        return [item.get("id") for item in self.items if item.get("id") is not None]

    def _persist_filters(self) -> None:
        if self._config.persist_filters:
            self.preferences.set_filters(self.entity_config.storage_key, self._filters)

    def set_filter(self, name: str, value: Any) -> None:
        """Change one filter; always returns to page 1."""
        self._filters[name] = value
        self._page = 1
        self._persist_filters()
        self._emit(EngineChange.FILTERS, self.filters)

    def set_filters(self, values: Mapping[str, Any]) -> None:
        """Change several filters at once; always returns to page 1."""
        self._filters.update(values)
        self._page = 1
        self._persist_filters()
        self._emit(EngineChange.FILTERS, self.filters)

    def reset_filters(self) -> None:
        self._filters = dict(self.entity_config.initial_filters)
        self._page = 1
        self._persist_filters()
        self._emit(EngineChange.FILTERS, self.filters)

    def set_sort(self, sort_config: Iterable[Any]) -> None:
        """Replace the sort keys (SortKey or {id, desc} mappings)."""
        self._sort = normalize_sort(sort_config)
        self._page = 1
        if self._config.persist_filters:
            self.preferences.set_sort(self.entity_config.storage_key, self._sort)
        self._emit(EngineChange.SORT, self.sort_config)

    def go_to_page(self, page: int) -> None:
        total_pages = total_pages_for(len(self._pipeline().filtered), self._page_size)
        self._page = clamp_page(int(page), total_pages)
        self._emit(EngineChange.PAGINATION, self.pagination)

    def next_page(self) -> None:
        self.go_to_page(self.pagination.current_page + 1)

    def previous_page(self) -> None:
        self.go_to_page(self.pagination.current_page - 1)

    def set_page_size(self, page_size: int) -> None:
        if page_size < 1:
            raise ValueError(f"page_size must be >= 1, got {page_size}")
        self._page_size = int(page_size)
        self._page = 1
        self._emit(EngineChange.PAGINATION, self.pagination)

    # ========== View preference ==========

    @property
    def view_mode(self) -> ViewMode:
        return self._view_mode

    def set_view_mode(self, mode: Any) -> None:
        self._view_mode = mode if isinstance(mode, ViewMode) else ViewMode(mode)
        self.preferences.set_view_mode(self.entity_config.storage_key, self._view_mode)
        self._emit(EngineChange.VIEW, self._view_mode)

    # ========== Selection ==========

    @property
    def is_selection_mode_active(self) -> bool:
        return self.selection.is_active

    @property
    def selected_items(self) -> frozenset:
        return self.selection.selected_ids

    def start_selection(self, mode: Any) -> None:
        self.selection.start(mode if isinstance(mode, SelectionMode) else SelectionMode(mode))
        self._emit(EngineChange.SELECTION, self.selected_items)

    def toggle_selection(self, item_id: Any) -> None:
        self.selection.toggle(item_id)
        self._emit(EngineChange.SELECTION, self.selected_items)

    def select_all_visible(self, visible_ids: Optional[Iterable[Any]] = None) -> None:
        """Select-all toggle over the current page (or the ids given)."""
        ids = self.visible_ids() if visible_ids is None else list(visible_ids)
        self.selection.select_all_visible(ids)
        self._emit(EngineChange.SELECTION, self.selected_items)

    def cancel_selection(self) -> None:
        self.selection.cancel()
        self._emit(EngineChange.SELECTION, self.selected_items)

    def find_item(self, item_id: Any) -> Optional[Entity]:
        for item in self._entry.data or ():
            if item is not None and item.get("id") == item_id:
                return item
        return None

    def confirm_selection_action(self) -> SelectionResult:
        """Validate the selection against the active intent and act on it."""
        mode = self.selection.mode or SelectionMode.DELETE
        check = self.selection.check(mode)
        if check is BulkActionCheck.NOTHING_SELECTED:
            self._message("bulk.no_items_selected", mode=mode.value)
            return SelectionResult(SelectionOutcome.PROMPT_SELECT)
        if check is BulkActionCheck.SELECT_ONLY_ONE:
            self._message("bulk.select_one_to_edit")
            return SelectionResult(SelectionOutcome.PROMPT_SELECT_ONE)

        ids = self.selection.selected_list()
        if mode is SelectionMode.EDIT:
            item = self.find_item(ids[0])
            self.cancel_selection()
            if item is None:
                self._message("bulk.item_not_found")
                return SelectionResult(SelectionOutcome.ITEM_NOT_FOUND)
            self.edit(item)
            return SelectionResult(SelectionOutcome.EDIT_OPENED)

        if len(ids) == 1:
            item_name = self.entity_config.name_of(self.find_item(ids[0]))
        else:
            item_name = f"{len(ids)} {self.entity_config.entity_name_plural}"
        return SelectionResult(SelectionOutcome.DELETE_REQUESTED, DeleteRequest(tuple(ids), item_name))

    # ========== Dialog ==========

    @property
    def is_dialog_open(self) -> bool:
        return self.dialog.is_open

    @property
    def current_item(self) -> Optional[Entity]:
        return self.dialog.current_item

    def add_new(self) -> None:
        self.dialog.add_new()
        self._emit(EngineChange.DIALOG, None)

    def edit(self, item: Entity) -> None:
        self.dialog.edit(item)
        self._emit(EngineChange.DIALOG, item)

    def close_dialog(self, refresh_needed: bool = False, operation: Any = None,
                     display_name: Optional[str] = None) -> DialogCloseResult:
        """on_close callback handed to the DialogComponent."""
        result = self.dialog.close(refresh_needed, operation, display_name)
        if self.selection.is_active:
            self.selection.cancel()
            self._emit(EngineChange.SELECTION, self.selected_items)
        self._emit(EngineChange.DIALOG, None)
        return result

    def dialog_props(self) -> DialogProps:
        return DialogProps(self.dialog.is_open, self.dialog.current_item, self.close_dialog)

    def _on_dialog_saved(self, result: DialogCloseResult) -> None:
        self.events.publish(EntityMutated(self.entity_key, result.operation))
        message_id = f"dialog.{result.operation.value}_success" if result.operation else None
        if message_id in MESSAGES and result.display_name:
            self._message(message_id, name=result.display_name)
        else:
            self._message("dialog.generic_success")

    # ========== Bulk mutations ==========

    @property
    def bulk_in_progress(self) -> bool:
        """True while a bulk delete or import is calling the SDK."""
        return self._bulk_in_progress

    def _set_bulk_in_progress(self, value: bool) -> None:
        if self._bulk_in_progress == value:
            return
        self._bulk_in_progress = value
        self._emit(EngineChange.BULK, value)

    async def _run_bulk(self, operation: Awaitable[BulkResult]) -> BulkResult:
        self._set_bulk_in_progress(True)
        try:
            return await operation
        finally:
            self._set_bulk_in_progress(False)

    async def bulk_delete(self, ids: Optional[Iterable[Any]] = None) -> BulkResult:
        """
        Delete ``ids`` (default: the current selection) sequentially.

        One aggregated toast, one refresh when anything succeeded, and
        selection mode is exited whatever the outcome.
        """
        id_list = list(self.selection.selected_list() if ids is None else ids)
        if not id_list:
            self.cancel_selection()
            return BulkResult(operation="delete")

        known_ids = {item.get("id") for item in self._entry.data or () if item is not None}
        result = await self._run_bulk(self._executor.delete(id_list, known_ids=known_ids))
        self._finish_bulk(result, OperationType.DELETE, "bulk.delete_completed", "bulk.delete_failed")
        return result

    async def bulk_import(self, records: Iterable[Mapping[str, Any]]) -> BulkResult:
        """Create one record per parsed import row, sequentially."""
        rows = list(records or [])
        if not rows:
            self._message("import.no_records")
            return BulkResult(operation="create")

        mapper = self.entity_config.import_mapper
        payloads = []
        for row in rows:
            payload = mapper(dict(row)) if mapper is not None else dict(row)
            if payload:
                payloads.append(payload)
        if not payloads:
            self._message("import.no_valid_records")
            return BulkResult(operation="create")

        result = await self._run_bulk(self._executor.create(payloads))
        self._finish_bulk(result, OperationType.IMPORT, "import.completed", "import.failed")
        return result

    def _finish_bulk(self, result: BulkResult, operation: OperationType,
                     success_message: str, failure_message: str) -> None:
        message_id = success_message if result.any_succeeded else failure_message
        variant = ToastVariant.WARNING if result.any_succeeded and result.fail_count else None
        self._message(
            message_id, variant=variant,
            success_count=result.success_count, fail_count=result.fail_count,
        )
        if result.any_succeeded:
            self.events.publish(EntityMutated(self.entity_key, operation))
        self.cancel_selection()

    # ========== Teardown ==========

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        """Dispose: stop retries and background refreshes, drop listeners."""
        if self._closed:
            return
        self._closed = True
        self._unsubscribe()
        self.coordinator.remove_listener(self._on_cache_changed)
        if self._owns_coordinator:
            self.coordinator.close()
        self._listeners.clear()
        self.selection.cancel()
        logger.debug(f"EntityListEngine for '{self.entity_key}' closed")

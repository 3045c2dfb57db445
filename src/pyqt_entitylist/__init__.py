"""
pyqt-entitylist: reusable entity list management for PyQt6 screens.

Every entity screen (doctors, insured persons, tariffs, ...) gets the same
list core: TTL-cached fetching with request dedup and backoff retries,
filter -> sort -> paginate, selection mode for bulk actions, the create/edit
dialog lifecycle and sequential bulk delete/import.

Architecture:
- Tier 1 (Protocols): Engine config, EntityConfig, SDK/notifier contracts
- Tier 2 (Core): Cache, fetch coordination, pipeline, selection, dialog, bulk
- Tier 3 (Services): EntityListEngine facade, preferences, search, events
- Tier 4 (Widgets): Qt signal binding (the only tier importing PyQt6)
"""

__version__ = "0.1.0"

from pyqt_entitylist.protocols import (
    EntityConfig,
    EntityEngineConfig,
    SortKey,
    FieldType,
    Toast,
    ToastVariant,
    set_engine_config,
    get_engine_config,
    register_notifier,
    register_translator,
)
from pyqt_entitylist.core import (
    FetchCoordinator,
    SelectionMode,
    OperationType,
    FetchError,
    MutationError,
    StaleSelectionError,
    InvalidEntitySDKError,
)
from pyqt_entitylist.services import (
    EntityListEngine,
    ErrorDisplay,
    SelectionOutcome,
    ViewMode,
    build_filter_function,
)

__all__ = [
    "__version__",
    "EntityConfig",
    "EntityEngineConfig",
    "SortKey",
    "FieldType",
    "Toast",
    "ToastVariant",
    "set_engine_config",
    "get_engine_config",
    "register_notifier",
    "register_translator",
    "FetchCoordinator",
    "SelectionMode",
    "OperationType",
    "FetchError",
    "MutationError",
    "StaleSelectionError",
    "InvalidEntitySDKError",
    "EntityListEngine",
    "ErrorDisplay",
    "SelectionOutcome",
    "ViewMode",
    "build_filter_function",
]

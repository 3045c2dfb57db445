"""
Framework-agnostic services.

The EntityListEngine facade plus the services it composes: persisted
preferences, search/filter predicates, mutation events and toast messages.
None of these import Qt.
"""

from .preference_store import (
    PreferenceStore,
    MemoryPreferenceStore,
    PreferenceSuffix,
    ViewMode,
    preference_key,
)
from .search_service import (
    SearchService,
    build_filter_function,
    fields_extractor,
    is_unconstrained,
    matches_categorical,
)
from .mutation_events import EntityMutated, MutationEventBus
from .messages import MESSAGES, build_toast
from .entity_list_engine import (
    EntityListEngine,
    EngineChange,
    ErrorDisplay,
    SelectionOutcome,
    SelectionResult,
    DeleteRequest,
    DialogProps,
)

__all__ = [
    "PreferenceStore",
    "MemoryPreferenceStore",
    "PreferenceSuffix",
    "ViewMode",
    "preference_key",
    "SearchService",
    "build_filter_function",
    "fields_extractor",
    "is_unconstrained",
    "matches_categorical",
    "EntityMutated",
    "MutationEventBus",
    "MESSAGES",
    "build_toast",
    "EntityListEngine",
    "EngineChange",
    "ErrorDisplay",
    "SelectionOutcome",
    "SelectionResult",
    "DeleteRequest",
    "DialogProps",
]

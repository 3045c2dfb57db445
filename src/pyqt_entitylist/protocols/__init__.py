"""
Configuration and collaborator contracts.

Everything the engine consumes from the outside world: the engine-wide
config object, the per-screen EntityConfig, the Entity SDK contract and the
notification/translation hooks.
"""

from .engine_config import EntityEngineConfig, set_engine_config, get_engine_config
from .entity_sdk import Entity, EntitySDKProtocol, has_operation
from .entity_config import (
    EntityConfig,
    FieldType,
    SortKey,
    DEFAULT_SORT,
    FilterFunction,
    ImportMapper,
    normalize_sort,
)
from .notifier import (
    Toast,
    ToastVariant,
    NotifierProtocol,
    TranslatorProtocol,
    LoggingNotifier,
    register_notifier,
    get_notifier,
    register_translator,
    get_translator,
)

__all__ = [
    "EntityEngineConfig",
    "set_engine_config",
    "get_engine_config",
    "Entity",
    "EntitySDKProtocol",
    "has_operation",
    "EntityConfig",
    "FieldType",
    "SortKey",
    "DEFAULT_SORT",
    "FilterFunction",
    "ImportMapper",
    "normalize_sort",
    "Toast",
    "ToastVariant",
    "NotifierProtocol",
    "TranslatorProtocol",
    "LoggingNotifier",
    "register_notifier",
    "get_notifier",
    "register_translator",
    "get_translator",
]

"""Per-screen configuration handed to EntityListEngine."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from .entity_sdk import Entity

FilterFunction = Callable[[Entity, Mapping[str, Any]], bool]
ImportMapper = Callable[[Dict[str, Any]], Optional[Dict[str, Any]]]


class FieldType(Enum):
    """How the sort comparator treats a field's values."""
    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    DATE = "date"


@dataclass(frozen=True)
class SortKey:
    """One entry of a sort configuration; the first entry is the primary key."""
    id: str
    desc: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "desc": self.desc}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "SortKey":
        # Older persisted sort configs used "key" instead of "id"
        field_id = data.get("id") or data.get("key")
        if not isinstance(field_id, str) or not field_id:
            raise ValueError(f"Sort entry has no field id: {data!r}")
        return cls(id=field_id, desc=bool(data.get("desc", False)))


DEFAULT_SORT: Tuple[SortKey, ...] = (SortKey("updated_date", desc=True),)


@dataclass(frozen=True)
class EntityConfig:
    """
    Immutable description of one entity screen.

    Attributes:
        entity_sdk: Async CRUD backend (see EntitySDKProtocol)
        entity_name: Singular display name, e.g. "Doctor"
        entity_name_plural: Plural display name, e.g. "Doctors"
        storage_key: Namespace for cache entry and persisted preferences
        dialog_component: Opaque create/edit dialog collaborator
        initial_filters: Filter values before anything is persisted
        initial_sort: Sort keys before anything is persisted
        filter_function: Predicate (item, filters) -> bool; built from
            search_fields/categorical_fields when omitted
        search_fields: Fields searched by the free-text filter
        categorical_fields: Filter names matched by equality ("all" = any)
        field_types: Sort type per field; missing fields are inferred
        high_churn: Use the shorter cache TTL
        cache_ttl_ms: Explicit TTL, overrides high_churn
        import_mapper: Turns a parsed import row into a create payload
            (or None to drop it)
        display_name: Renders a record's name for notifications
    """
    entity_sdk: Any
    entity_name: str = "Item"
    entity_name_plural: str = "Items"
    storage_key: str = "entityModule"
    dialog_component: Any = None
    initial_filters: Mapping[str, Any] = field(default_factory=dict)
    initial_sort: Tuple[SortKey, ...] = DEFAULT_SORT
    filter_function: Optional[FilterFunction] = None
    search_fields: Tuple[str, ...] = ()
    categorical_fields: Tuple[str, ...] = ()
    field_types: Mapping[str, FieldType] = field(default_factory=dict)
    high_churn: bool = False
    cache_ttl_ms: Optional[int] = None
    import_mapper: Optional[ImportMapper] = None
    display_name: Optional[Callable[[Entity], str]] = None

    @property
    def entity_key(self) -> str:
        """Cache namespace for this entity type."""
        return self.storage_key

    def resolve_ttl_ms(self, default_ttl_ms: int, high_churn_ttl_ms: int) -> int:
        if self.cache_ttl_ms is not None:
            return self.cache_ttl_ms
        return high_churn_ttl_ms if self.high_churn else default_ttl_ms

    def name_of(self, item: Optional[Entity]) -> str:
        """Display name for ``item`` used in notifications."""
        if item is None:
            return self.entity_name
        if self.display_name is not None:
            return self.display_name(item)
        for key in ("name", "name_en", "title", "code"):
            if item.get(key):
                return str(item[key])
        return f"{self.entity_name} {item.get('id', '')}".strip()


def normalize_sort(entries: Any) -> List[SortKey]:
    """Coerce dicts/SortKeys into a list of SortKey, dropping invalid entries."""
    result: List[SortKey] = []
    for entry in entries or ():
        if isinstance(entry, SortKey):
            result.append(entry)
        elif isinstance(entry, Mapping):
            try:
                result.append(SortKey.from_dict(entry))
            except ValueError:
                continue
    return result

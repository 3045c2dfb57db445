"""
Shared search and filter-predicate service.

Builds the filter predicates screens hand to the engine so free-text search
and categorical filters behave the same on every screen.
"""

from typing import Any, Callable, Iterable, Mapping, Optional, Sequence
import logging

from pyqt_entitylist.protocols import Entity, FilterFunction

logger = logging.getLogger(__name__)

ALL = "all"
SEARCH_KEY = "searchTerm"

TextExtractor = Callable[[Entity], str]


def is_unconstrained(value: Any) -> bool:
    """True for filter values meaning "match everything"."""
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == "" or value == ALL
    if isinstance(value, (list, tuple, set, frozenset)):
        return len(value) == 0
    return False


def _value_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (list, tuple, set, frozenset)):
        return " ".join(_value_text(v) for v in value)
    return str(value)


def fields_extractor(search_fields: Sequence[str]) -> TextExtractor:
    """Searchable text of a record: its ``search_fields`` joined together."""
    def extract(item: Entity) -> str:
        return " ".join(_value_text(item.get(field)) for field in search_fields)
    return extract


def matches_categorical(item_value: Any, wanted: Any) -> bool:
    """Equality match; list-valued fields match when any element matches."""
    if isinstance(wanted, (list, tuple, set, frozenset)):
        return any(matches_categorical(item_value, w) for w in wanted)
    if isinstance(item_value, (list, tuple, set, frozenset)):
        return any(matches_categorical(v, wanted) for v in item_value)
    if isinstance(item_value, bool) and isinstance(wanted, str):
        return str(item_value).lower() == wanted.lower()
    if isinstance(item_value, str) and isinstance(wanted, str):
        return item_value.casefold() == wanted.casefold()
    return item_value == wanted


class SearchService:
    """
    Framework-agnostic search over entity records.

    Key features:
    - Case-insensitive substring match
    - Customizable searchable text extraction
    - Minimum character threshold (default: 1)
    """

    MIN_SEARCH_CHARS = 1

    def __init__(self, searchable_text_extractor: TextExtractor, min_chars: int = MIN_SEARCH_CHARS):
        self.searchable_text_extractor = searchable_text_extractor
        self.min_chars = min_chars

    def matches(self, item: Entity, search_term: Optional[str]) -> bool:
        term = (search_term or "").strip()
        if len(term) < self.min_chars:
            return True
        try:
            text = self.searchable_text_extractor(item)
        except (AttributeError, KeyError, TypeError) as e:
            logger.debug(f"Could not extract searchable text from {item.get('id')!r}: {e}")
            return False
        return term.casefold() in text.casefold()

    def filter(self, items: Iterable[Entity], search_term: Optional[str]) -> list:
        return [item for item in items if self.matches(item, search_term)]


def build_filter_function(search_fields: Sequence[str] = (),
                          categorical_fields: Sequence[str] = (),
                          search_key: str = SEARCH_KEY,
                          extractor: Optional[TextExtractor] = None,
                          field_map: Optional[Mapping[str, str]] = None) -> FilterFunction:
    """
    Build an AND-composed predicate (item, filters) -> bool.

    Args:
        search_fields: Record fields searched by ``filters[search_key]``
        categorical_fields: Filter names compared by equality; "all" means any
        search_key: Name of the free-text filter
        extractor: Custom searchable-text extractor (overrides search_fields)
        field_map: Filter name -> record field, when they differ
    """
    search = SearchService(extractor or fields_extractor(search_fields))
    field_map = dict(field_map or {})

    def predicate(item: Entity, filters: Mapping[str, Any]) -> bool:
        if not search.matches(item, filters.get(search_key)):
            return False
        for name in categorical_fields:
            wanted = filters.get(name)
            if is_unconstrained(wanted):
                continue
            if not matches_categorical(item.get(field_map.get(name, name)), wanted):
                return False
        return True

    return predicate

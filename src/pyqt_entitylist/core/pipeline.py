"""
Filter -> sort -> paginate pipeline.

Pure functions over the full cached list; inputs are never mutated and
pagination always slices the already filtered and sorted set.
"""

import logging
import math
from dataclasses import dataclass
from typing import Any, List, Mapping, Optional, Sequence

from pyqt_entitylist.protocols import Entity, FieldType, FilterFunction, SortKey
from pyqt_entitylist.core.sort_utils import sort_records

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Pagination:
    """Page state; total_count is the size of the filtered set."""
    current_page: int
    page_size: int
    total_count: int
    total_pages: int

    @property
    def page_index(self) -> int:
        return self.current_page - 1

    @property
    def has_next(self) -> bool:
        return self.current_page < self.total_pages

    @property
    def has_previous(self) -> bool:
        return self.current_page > 1


@dataclass(frozen=True)
class PipelineResult:
    filtered: List[Entity]
    page_items: List[Entity]
    pagination: Pagination


def total_pages_for(total_count: int, page_size: int) -> int:
    return max(1, math.ceil(total_count / page_size))


def clamp_page(page: int, total_pages: int) -> int:
    return max(1, min(page, total_pages))


def filter_items(items: Optional[Sequence[Entity]], filters: Mapping[str, Any],
                 filter_function: Optional[FilterFunction]) -> List[Entity]:
    """Apply the caller's predicate; a raising predicate keeps the item."""
    records = [item for item in (items or ()) if item is not None]
    if filter_function is None:
        return records

    kept = []
    for item in records:
        try:
            matched = filter_function(item, filters)
        except Exception:
            logger.exception(f"Filter predicate raised for item {item.get('id')!r}; keeping it")
            matched = True
        if matched:
            kept.append(item)
    return kept


def paginate(items: Sequence[Entity], page: int, page_size: int) -> List[Entity]:
    if page_size < 1:
        raise ValueError(f"page_size must be >= 1, got {page_size}")
    start = (page - 1) * page_size
    return list(items[start:start + page_size])


def run_pipeline(items: Optional[Sequence[Entity]], filters: Mapping[str, Any],
                 filter_function: Optional[FilterFunction], sort_config: Sequence[SortKey],
                 page: int, page_size: int,
                 field_types: Optional[Mapping[str, FieldType]] = None) -> PipelineResult:
    """Filter, sort and slice ``items``; ``page`` is clamped to the available pages."""
    filtered = filter_items(items, filters, filter_function)
    ordered = sort_records(filtered, sort_config, field_types)
    total_pages = total_pages_for(len(ordered), page_size)
    current = clamp_page(page, total_pages)
    return PipelineResult(
        filtered=ordered,
        page_items=paginate(ordered, current, page_size),
        pagination=Pagination(
            current_page=current,
            page_size=page_size,
            total_count=len(ordered),
            total_pages=total_pages,
        ),
    )

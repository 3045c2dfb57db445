"""
Core engine pieces.

Pure-Python building blocks with no Qt dependency: cache store, fetch
coordination, the filter/sort/paginate pipeline, selection and dialog state
machines, and the sequential bulk executor.
"""

from .cache_store import CacheEntry, CacheStore, monotonic_ms
from .errors import (
    ErrorKind,
    EntityEngineError,
    InvalidEntitySDKError,
    FetchError,
    MutationError,
    StaleSelectionError,
    classify_error,
    format_error_message,
)
from .retry_timer import RetryTimer
from .fetch_coordinator import EntitySource, FetchCoordinator
from .pipeline import Pagination, PipelineResult, filter_items, paginate, run_pipeline
from .sort_utils import infer_field_type, parse_timestamp, sort_records
from .selection import SelectionController, SelectionMode, BulkActionCheck
from .dialog import DialogController, DialogCloseResult, OperationType
from .bulk import BulkMutationExecutor, BulkResult

__all__ = [
    "CacheEntry",
    "CacheStore",
    "monotonic_ms",
    "ErrorKind",
    "EntityEngineError",
    "InvalidEntitySDKError",
    "FetchError",
    "MutationError",
    "StaleSelectionError",
    "classify_error",
    "format_error_message",
    "RetryTimer",
    "EntitySource",
    "FetchCoordinator",
    "Pagination",
    "PipelineResult",
    "filter_items",
    "paginate",
    "run_pipeline",
    "infer_field_type",
    "parse_timestamp",
    "sort_records",
    "SelectionController",
    "SelectionMode",
    "BulkActionCheck",
    "DialogController",
    "DialogCloseResult",
    "OperationType",
    "BulkMutationExecutor",
    "BulkResult",
]

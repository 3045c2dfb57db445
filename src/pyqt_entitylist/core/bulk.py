"""
Sequential bulk mutations with aggregated outcome.

Items are processed one at a time; each failure is logged with its id,
collected as a MutationError and never aborts the loop.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Collection, Iterable, List, Optional

from pyqt_entitylist.protocols import Entity, has_operation
from pyqt_entitylist.core.errors import MutationError, StaleSelectionError

logger = logging.getLogger(__name__)


@dataclass
class BulkResult:
    """Aggregated outcome of one bulk operation."""
    operation: str
    success_count: int = 0
    fail_count: int = 0
    failures: List[MutationError] = field(default_factory=list)
    created: List[Entity] = field(default_factory=list)

    @property
    def total(self) -> int:
        return self.success_count + self.fail_count

    @property
    def any_succeeded(self) -> bool:
        return self.success_count > 0


class BulkMutationExecutor:
    """Runs delete/create calls against one Entity SDK, strictly in sequence."""

    def __init__(self, sdk: Any, entity_key: str):
        self._sdk = sdk
        self._entity_key = entity_key

    async def _run(self, operation: str, targets: Iterable[Any],
                   call: Callable[[Any], Awaitable[Any]],
                   target_id: Callable[[Any], Any],
                   known_ids: Optional[Collection[Any]] = None) -> BulkResult:
        result = BulkResult(operation=operation)
        for target in targets:
            item_id = target_id(target)
            try:
                outcome = await call(target)
            except Exception as exc:
                logger.error(
                    f"[{self._entity_key}] {operation} failed for {item_id!r}: {exc}",
                    exc_info=True,
                )
                error_cls = MutationError
                if known_ids is not None and item_id not in known_ids:
                    error_cls = StaleSelectionError
                result.failures.append(error_cls(item_id, operation, exc))
                result.fail_count += 1
            else:
                result.success_count += 1
                if operation == "create" and outcome is not None:
                    result.created.append(outcome)
        logger.info(
            f"[{self._entity_key}] bulk {operation}: "
            f"{result.success_count} succeeded, {result.fail_count} failed"
        )
        return result

    async def delete(self, ids: Iterable[Any], known_ids: Optional[Collection[Any]] = None) -> BulkResult:
        """Delete ``ids`` one by one. Failures for ids outside ``known_ids`` are marked stale."""
        if not has_operation(self._sdk, "delete"):
            raise TypeError(f"Entity SDK for '{self._entity_key}' has no delete() operation")
        return await self._run("delete", list(ids), self._sdk.delete, lambda item_id: item_id, known_ids)

    async def create(self, payloads: Iterable[dict]) -> BulkResult:
        """Create one record per payload, in order."""
        if not has_operation(self._sdk, "create"):
            raise TypeError(f"Entity SDK for '{self._entity_key}' has no create() operation")
        return await self._run(
            "create", list(enumerate(payloads, start=1)),
            lambda row: self._sdk.create(row[1]),
            lambda row: row[1].get("id", f"row {row[0]}"),
        )

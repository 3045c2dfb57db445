"""Entity SDK protocol consumed by the fetch coordinator and bulk executor."""

from typing import Protocol, Any, Dict, List, Optional, runtime_checkable

Entity = Dict[str, Any]


@runtime_checkable
class EntitySDKProtocol(Protocol):
    """Async CRUD backend for one entity type.

    Failures are raised as exceptions. An exception exposing
    ``response.status == 429`` is treated as a rate limit.
    """

    async def list(self, sort_hint: Optional[str] = None) -> List[Entity]:
        """Return every record, optionally ordered by ``sort_hint`` ("-field" = desc)."""
        ...

    async def create(self, payload: Dict[str, Any]) -> Entity:
        ...

    async def update(self, item_id: Any, payload: Dict[str, Any]) -> Entity:
        ...

    async def delete(self, item_id: Any) -> None:
        ...


def has_operation(sdk: Any, name: str) -> bool:
    """True when ``sdk`` exposes a callable named ``name``."""
    return sdk is not None and callable(getattr(sdk, name, None))

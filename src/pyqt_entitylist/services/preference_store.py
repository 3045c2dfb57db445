"""
Persisted Screen Preferences

Durable storage for the per-screen state that survives a reload: view
preference (card/table/kanban), filters and sort. Everything else the engine
holds is memory-only.
"""

import json
import logging
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

from pyqt_entitylist.protocols import SortKey, get_engine_config, normalize_sort

logger = logging.getLogger(__name__)


class ViewMode(Enum):
    """How a screen renders its records."""
    CARD = "card"
    TABLE = "table"
    KANBAN = "kanban"


class PreferenceSuffix(Enum):
    """Key suffixes appended to an EntityConfig.storage_key."""
    VIEW_PREFERENCE = "view_preference"
    FILTERS = "filters"
    SORT = "sort"


def preference_key(storage_key: str, suffix: PreferenceSuffix) -> str:
    return f"{storage_key}_{suffix.value}"


class PreferenceStore:
    """
    JSON-file key/value store for screen preferences.

    Read and write failures are logged and fall back to defaults; they never
    propagate into the engine.
    """

    def __init__(self, cache_file: Optional[Path] = None):
        """
        Initialize preference store.

        Args:
            cache_file: Optional custom file location
        """
        if cache_file is None:
            config = get_engine_config()
            if config.preferences_file:
                cache_file = Path(config.preferences_file)
            else:
                cache_file = Path.home() / ".cache" / "pyqt_entitylist" / "preferences.json"

        self.cache_file = Path(cache_file)
        self._cache: Dict[str, Any] = {}
        self._load_cache()
        logger.debug(f"PreferenceStore initialized with file: {self.cache_file}")

    def _load_cache(self) -> None:
        """Load preferences from disk."""
        try:
            if self.cache_file.exists():
                with open(self.cache_file, 'r') as f:
                    loaded = json.load(f)
                self._cache = loaded if isinstance(loaded, dict) else {}
                logger.debug(f"Loaded {len(self._cache)} stored preferences")
            else:
                logger.debug("No stored preferences found, starting fresh")
        except (json.JSONDecodeError, OSError) as e:
            logger.warning(f"Failed to load preferences from {self.cache_file}: {e}")
            self._cache = {}

    def _save_cache(self) -> bool:
        """Save preferences to disk."""
        try:
            self.cache_file.parent.mkdir(parents=True, exist_ok=True)
            with open(self.cache_file, 'w') as f:
                json.dump(self._cache, f, indent=2)
            return True
        except (OSError, TypeError) as e:
            logger.warning(f"Failed to save preferences to {self.cache_file}: {e}")
            return False

    # ========== Raw access ==========

    def load(self, key: str, default: Any = None) -> Any:
        return self._cache.get(key, default)

    def save(self, key: str, value: Any) -> bool:
        self._cache[key] = value
        return self._save_cache()

    def remove(self, key: str) -> bool:
        if key in self._cache:
            del self._cache[key]
            return self._save_cache()
        return True

    def clear(self) -> None:
        """Clear all stored preferences."""
        self._cache.clear()
        self._save_cache()
        logger.info("Cleared all stored preferences")

    # ========== Typed accessors ==========

    def get_view_mode(self, storage_key: str, default: ViewMode = ViewMode.CARD) -> ViewMode:
        stored = self.load(preference_key(storage_key, PreferenceSuffix.VIEW_PREFERENCE))
        try:
            return ViewMode(stored) if stored is not None else default
        except ValueError:
            logger.warning(f"Ignoring unknown view preference {stored!r} for '{storage_key}'")
            return default

    def set_view_mode(self, storage_key: str, mode: ViewMode) -> bool:
        return self.save(preference_key(storage_key, PreferenceSuffix.VIEW_PREFERENCE), mode.value)

    def get_filters(self, storage_key: str) -> Optional[Dict[str, Any]]:
        stored = self.load(preference_key(storage_key, PreferenceSuffix.FILTERS))
        return dict(stored) if isinstance(stored, dict) else None

    def set_filters(self, storage_key: str, filters: Dict[str, Any]) -> bool:
        return self.save(preference_key(storage_key, PreferenceSuffix.FILTERS), dict(filters))

    def get_sort(self, storage_key: str) -> Optional[List[SortKey]]:
        stored = self.load(preference_key(storage_key, PreferenceSuffix.SORT))
        if not isinstance(stored, list):
            return None
        return normalize_sort(stored) or None

    def set_sort(self, storage_key: str, sort_config: List[SortKey]) -> bool:
        return self.save(
            preference_key(storage_key, PreferenceSuffix.SORT),
            [key.to_dict() for key in sort_config],
        )


class MemoryPreferenceStore(PreferenceStore):
    """Preference store that never touches disk (tests, embedded previews)."""

    def __init__(self, initial: Optional[Dict[str, Any]] = None):
        self.cache_file = None
        self._cache = dict(initial or {})

    def _save_cache(self) -> bool:
        return True

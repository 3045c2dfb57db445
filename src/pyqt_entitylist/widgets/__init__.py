"""
PyQt6 binding.

The only tier that imports Qt: adapts EntityListEngine state changes to
signals for list screens.
"""

from .entity_list_model import EntityListModel

__all__ = [
    "EntityListModel",
]

"""Local collaborators: EasyEngine, its site database, and the host."""
from __future__ import annotations

from .easyengine import EasyEngineError, EasyEngineProvider
from .host import HostError, HostProvider, OSRelease
from .inventory import InventoryError, SiteInventory

__all__ = [
    "EasyEngineError",
    "EasyEngineProvider",
    "HostError",
    "HostProvider",
    "InventoryError",
    "OSRelease",
    "SiteInventory",
]

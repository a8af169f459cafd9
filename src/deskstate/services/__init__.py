"""Service layer: request handlers, layouts, and settings."""

from .client_service import ClientService
from .layout import STARTER_LAYOUT, LayoutStep, PortableLayout, validate_layout_order
from .object_service import ObjectService
from .settings import Settings, SettingsStore

__all__ = [
    "ClientService",
    "ObjectService",
    "STARTER_LAYOUT",
    "LayoutStep",
    "PortableLayout",
    "validate_layout_order",
    "Settings",
    "SettingsStore",
]

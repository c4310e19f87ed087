"""
Schema layer for the shop app builder.

Component registry, page composition models and the live configuration
wire format.
"""

from .component_catalog import (
    CATALOG_VERSION,
    KindId,
    PropertyType,
    VisibilityCondition,
    PropertySpec,
    ComponentKind,
    ComponentRegistry,
    component_registry,
    get_available_components,
    export_component_catalog,
    slugify_name,
)

from .page import (
    ComponentInstance,
    Page,
    ThemePreset,
    THEME_PRESETS,
    AppRecord,
)

from .live_config import (
    CatalogItem,
    LiveInstance,
    LiveConfigPayload,
)

__all__ = [
    # Registry
    'CATALOG_VERSION',
    'KindId',
    'PropertyType',
    'VisibilityCondition',
    'PropertySpec',
    'ComponentKind',
    'ComponentRegistry',
    'component_registry',
    'get_available_components',
    'export_component_catalog',
    'slugify_name',

    # Pages
    'ComponentInstance',
    'Page',
    'ThemePreset',
    'THEME_PRESETS',
    'AppRecord',

    # Wire format
    'CatalogItem',
    'LiveInstance',
    'LiveConfigPayload',
]

"""Centralized component registry.

This module is the single source of truth for the component palette used by
the builder, the live configuration server, the preview renderers and the
code generator.
"""

from __future__ import annotations

import re
from copy import deepcopy
from datetime import timedelta
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from shopbuilder.core.errors import UnknownKind
from shopbuilder.utils.datetime_utils import to_iso_string, utc_now

CATALOG_VERSION = 1


class KindId(str, Enum):
    """Closed set of component kinds understood by renderers and templates."""

    MOBILE_HEADER = "mobile-header"
    BANNER = "banner"
    CAROUSEL = "carousel"
    COUNTDOWN = "countdown"
    PRODUCT_GRID = "product-grid"
    TEXT_BLOCK = "text-block"
    IMAGE = "image"
    BUTTON = "button"
    SPACER = "spacer"

    @classmethod
    def parse(cls, value: Optional[str]) -> Optional["KindId"]:
        """Map a stored kind identifier to a known kind, or ``None``."""
        if not value:
            return None
        normalized = value.strip().lower()
        normalized = KIND_ALIASES.get(normalized, normalized)
        try:
            return cls(normalized)
        except ValueError:
            return None


# Historical identifiers still found in saved pages
KIND_ALIASES: Dict[str, str] = {
    "featured-collection": KindId.PRODUCT_GRID.value,
    "header": KindId.MOBILE_HEADER.value,
}


class PropertyType(str, Enum):
    TEXT = "text"
    BOOLEAN = "boolean"
    NUMBER = "number"
    SELECT = "select"
    RICHTEXT = "richtext"
    COLOR = "color"
    IMAGE = "image"
    DATETIME = "datetime"
    PRODUCT = "product"
    COLLECTION = "collection"


class VisibilityCondition(BaseModel):
    """Show a property only when another property holds a given value."""

    model_config = ConfigDict(frozen=True)

    depends_on_property: str
    required_value: Any


class PropertySpec(BaseModel):
    """One editable property of a component kind."""

    model_config = ConfigDict(frozen=True)

    name: str
    type: PropertyType
    label: str
    min: Optional[float] = None
    max: Optional[float] = None
    options: Optional[List[str]] = None
    visible_when: Optional[VisibilityCondition] = None


class ComponentKind(BaseModel):
    """A catalog entry: display metadata, property schema and default parameters."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    type: str = Field(..., description="Upper-case type tag, e.g. BANNER")
    category: str
    description: str = ""
    icon: str = ""
    properties: List[PropertySpec]
    default_params: Dict[str, Any]

    @model_validator(mode='after')
    def validate_defaults_match_schema(self) -> 'ComponentKind':
        schema_names = [prop.name for prop in self.properties]
        if len(schema_names) != len(set(schema_names)):
            raise ValueError(f"Duplicate property names in kind {self.id}")
        if set(schema_names) != set(self.default_params):
            missing = set(schema_names) - set(self.default_params)
            extra = set(self.default_params) - set(schema_names)
            raise ValueError(
                f"Defaults for kind {self.id} do not match its schema "
                f"(missing={sorted(missing)}, extra={sorted(extra)})"
            )
        for prop in self.properties:
            cond = prop.visible_when
            if cond and cond.depends_on_property not in schema_names:
                raise ValueError(
                    f"Property {prop.name} of kind {self.id} depends on unknown "
                    f"property {cond.depends_on_property}"
                )
        return self

    def get_property(self, name: str) -> Optional[PropertySpec]:
        for prop in self.properties:
            if prop.name == name:
                return prop
        return None

    def defaults(self) -> Dict[str, Any]:
        """Fresh copy of the default parameter bag."""
        return deepcopy(self.default_params)


def _default_countdown_end() -> str:
    return to_iso_string(utc_now() + timedelta(days=7))


COMPONENT_DEFINITIONS: List[Dict[str, Any]] = [
    {
        "id": "mobile-header",
        "name": "Mobile Header",
        "type": "MOBILE_HEADER",
        "category": "Layout",
        "icon": "📱",
        "description": "App header with logo text and cart icon",
        "properties": [
            {"name": "logoText", "type": "text", "label": "Logo Text"},
            {"name": "backgroundColor", "type": "color", "label": "Background Color"},
            {"name": "logoColor", "type": "color", "label": "Logo Color"},
            {"name": "showCartIcon", "type": "boolean", "label": "Show Cart Icon"},
            {"name": "iconColor", "type": "color", "label": "Icon Color",
             "visible_when": {"depends_on_property": "showCartIcon", "required_value": True}},
        ],
        "default_params": {
            "logoText": "My Store",
            "backgroundColor": "#007AFF",
            "logoColor": "#FFFFFF",
            "showCartIcon": True,
            "iconColor": "#FFFFFF",
        },
    },
    {
        "id": "banner",
        "name": "Banner",
        "type": "BANNER",
        "category": "Layout",
        "icon": "🎯",
        "description": "Hero banner with image and text overlay",
        "properties": [
            {"name": "imageUrl", "type": "image", "label": "Background Image"},
            {"name": "title", "type": "text", "label": "Title"},
            {"name": "subtitle", "type": "text", "label": "Subtitle"},
            {"name": "buttonText", "type": "text", "label": "Button Text"},
            {"name": "buttonLink", "type": "text", "label": "Button Link"},
            {"name": "overlay", "type": "boolean", "label": "Dark Overlay"},
            {"name": "height", "type": "select", "label": "Height",
             "options": ["150px", "200px", "300px", "400px"]},
        ],
        "default_params": {
            "imageUrl": "https://via.placeholder.com/400x200",
            "title": "Welcome to our store",
            "subtitle": "Discover amazing products",
            "buttonText": "Shop Now",
            "buttonLink": "/products",
            "overlay": True,
            "height": "200px",
        },
    },
    {
        "id": "carousel",
        "name": "Product Carousel",
        "type": "CAROUSEL",
        "category": "Products",
        "icon": "🎠",
        "description": "Horizontal scrolling product showcase",
        "properties": [
            {"name": "title", "type": "text", "label": "Section Title"},
            {"name": "collection", "type": "collection", "label": "Collection"},
            {"name": "showArrows", "type": "boolean", "label": "Show Navigation Arrows"},
            {"name": "autoPlay", "type": "boolean", "label": "Auto Play"},
            {"name": "autoPlayInterval", "type": "number", "label": "Seconds Per Slide",
             "min": 1, "max": 10,
             "visible_when": {"depends_on_property": "autoPlay", "required_value": True}},
            {"name": "itemsPerView", "type": "number", "label": "Items Per View", "min": 1, "max": 4},
            {"name": "spacing", "type": "select", "label": "Item Spacing",
             "options": ["8px", "16px", "24px", "32px"]},
        ],
        "default_params": {
            "title": "Featured Products",
            "collection": "",
            "showArrows": True,
            "autoPlay": False,
            "autoPlayInterval": 3,
            "itemsPerView": 2,
            "spacing": "16px",
        },
    },
    {
        "id": "countdown",
        "name": "Countdown Timer",
        "type": "COUNTDOWN",
        "category": "Marketing",
        "icon": "⏰",
        "description": "Urgency-creating countdown timer",
        "properties": [
            {"name": "title", "type": "text", "label": "Title"},
            {"name": "endDate", "type": "datetime", "label": "End Date"},
            {"name": "showLabels", "type": "boolean", "label": "Show Labels"},
            {"name": "style", "type": "select", "label": "Style",
             "options": ["circular", "rectangular", "minimal"]},
        ],
        "default_params": {
            "title": "Limited Time Offer",
            "endDate": _default_countdown_end(),
            "showLabels": True,
            "style": "circular",
        },
    },
    {
        "id": "product-grid",
        "name": "Product Grid",
        "type": "PRODUCT_GRID",
        "category": "Products",
        "icon": "📦",
        "description": "Grid layout for product display",
        "properties": [
            {"name": "title", "type": "text", "label": "Section Title"},
            {"name": "collection", "type": "collection", "label": "Collection"},
            {"name": "columns", "type": "number", "label": "Columns", "min": 1, "max": 3},
            {"name": "showPrice", "type": "boolean", "label": "Show Price"},
            {"name": "showRating", "type": "boolean", "label": "Show Rating"},
            {"name": "aspectRatio", "type": "select", "label": "Image Aspect Ratio",
             "options": ["1:1", "4:3", "16:9"]},
        ],
        "default_params": {
            "title": "Our Products",
            "collection": "",
            "columns": 2,
            "showPrice": True,
            "showRating": True,
            "aspectRatio": "1:1",
        },
    },
    {
        "id": "text-block",
        "name": "Text Block",
        "type": "TEXT_BLOCK",
        "category": "Content",
        "icon": "📝",
        "description": "Rich text content block",
        "properties": [
            {"name": "content", "type": "richtext", "label": "Content"},
            {"name": "textAlign", "type": "select", "label": "Text Alignment",
             "options": ["left", "center", "right"]},
            {"name": "fontSize", "type": "select", "label": "Font Size",
             "options": ["14px", "16px", "18px", "20px", "24px"]},
            {"name": "lineHeight", "type": "select", "label": "Line Height",
             "options": ["1.2", "1.4", "1.5", "1.6", "1.8"]},
        ],
        "default_params": {
            "content": "<h2>Your Heading Here</h2><p>Add your content here. You can use rich text formatting.</p>",
            "textAlign": "left",
            "fontSize": "16px",
            "lineHeight": "1.5",
        },
    },
    {
        "id": "image",
        "name": "Image",
        "type": "IMAGE",
        "category": "Media",
        "icon": "🖼️",
        "description": "Single image display",
        "properties": [
            {"name": "imageUrl", "type": "image", "label": "Image URL"},
            {"name": "alt", "type": "text", "label": "Alt Text"},
            {"name": "aspectRatio", "type": "select", "label": "Aspect Ratio",
             "options": ["1:1", "4:3", "16:9", "21:9"]},
            {"name": "objectFit", "type": "select", "label": "Object Fit",
             "options": ["cover", "contain", "fill"]},
            {"name": "borderRadius", "type": "select", "label": "Border Radius",
             "options": ["0px", "4px", "8px", "12px", "24px"]},
        ],
        "default_params": {
            "imageUrl": "https://via.placeholder.com/400x300",
            "alt": "Image description",
            "aspectRatio": "16:9",
            "objectFit": "cover",
            "borderRadius": "8px",
        },
    },
    {
        "id": "button",
        "name": "Button",
        "type": "BUTTON",
        "category": "Interactive",
        "icon": "🔘",
        "description": "Call-to-action button",
        "properties": [
            {"name": "text", "type": "text", "label": "Button Text"},
            {"name": "link", "type": "text", "label": "Link URL"},
            {"name": "variant", "type": "select", "label": "Style",
             "options": ["primary", "secondary", "outline", "ghost"]},
            {"name": "size", "type": "select", "label": "Size", "options": ["small", "medium", "large"]},
            {"name": "fullWidth", "type": "boolean", "label": "Full Width"},
            {"name": "icon", "type": "text", "label": "Icon (emoji or name)"},
        ],
        "default_params": {
            "text": "Click Me",
            "link": "/",
            "variant": "primary",
            "size": "medium",
            "fullWidth": False,
            "icon": "",
        },
    },
    {
        "id": "spacer",
        "name": "Spacer",
        "type": "SPACER",
        "category": "Layout",
        "icon": "⬜",
        "description": "Empty space for layout control",
        "properties": [
            {"name": "height", "type": "select", "label": "Height",
             "options": ["8px", "16px", "24px", "32px", "48px", "64px"]},
        ],
        "default_params": {
            "height": "24px",
        },
    },
]


def slugify_name(name: str) -> str:
    """Lower-case a display name and join its words with dashes."""
    return re.sub(r"\s+", "-", name.lower())


class ComponentRegistry:
    """Immutable, ordered catalog of component kinds."""

    def __init__(self, kinds: Iterable[ComponentKind]):
        self._kinds: Dict[str, ComponentKind] = {}
        for kind in kinds:
            if kind.id in self._kinds:
                raise ValueError(f"Duplicate component kind id: {kind.id}")
            self._kinds[kind.id] = kind

    def list_kinds(self) -> List[ComponentKind]:
        return list(self._kinds.values())

    def get_kind(self, kind_id: str) -> ComponentKind:
        kind = self._kinds.get(kind_id)
        if kind is None:
            raise UnknownKind(kind_id)
        return kind

    def has_kind(self, kind_id: str) -> bool:
        return kind_id in self._kinds

    def find_kind(self, kind_type: str, name: str) -> Optional[ComponentKind]:
        """Find a kind by its (type tag, display name) pair."""
        for kind in self._kinds.values():
            if kind.type == kind_type and kind.name == name:
                return kind
        return None

    def resolve_display_id(self, kind_type: str, name: str) -> str:
        """
        Best-effort kind id for a stored (type, name) pair.

        Kinds that were renamed or retyped since the record was written
        resolve to the slug of the stored name instead of failing.
        """
        kind = self.find_kind(kind_type, name)
        if kind:
            return kind.id
        return slugify_name(name)

    def export(self) -> Dict[str, Any]:
        return {
            "version": CATALOG_VERSION,
            "components": [kind.model_dump(mode="json") for kind in self._kinds.values()],
            "aliases": deepcopy(KIND_ALIASES),
        }


def build_default_kinds() -> List[ComponentKind]:
    return [ComponentKind.model_validate(definition) for definition in COMPONENT_DEFINITIONS]


component_registry = ComponentRegistry(build_default_kinds())


def get_available_components() -> List[str]:
    return [kind.id for kind in component_registry.list_kinds()]


def export_component_catalog() -> Dict[str, Any]:
    return component_registry.export()

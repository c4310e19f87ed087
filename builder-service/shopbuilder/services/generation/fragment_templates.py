"""
Per-kind JSX fragment templates.

Each known kind maps to one ``string.Template``; parameter values are
injected as JavaScript literals through JSON serialization, so no value
can break out of its attribute.
"""
import json
from string import Template
from typing import Any, Dict, List

from shopbuilder.models.schemas.component_catalog import KindId

NEUTRAL_FRAGMENT = "<View />"

# Component module exported by the skeleton's src/components
COMPONENT_NAMES: Dict[KindId, str] = {
    KindId.MOBILE_HEADER: "MobileHeader",
    KindId.BANNER: "Banner",
    KindId.CAROUSEL: "Carousel",
    KindId.COUNTDOWN: "Countdown",
    KindId.PRODUCT_GRID: "ProductGrid",
    KindId.TEXT_BLOCK: "TextBlock",
    KindId.IMAGE: "Image",
    KindId.BUTTON: "Button",
    KindId.SPACER: "Spacer",
}

FRAGMENT_TEMPLATES: Dict[KindId, Template] = {
    KindId.MOBILE_HEADER: Template("<MobileHeader props={$props} />"),
    KindId.BANNER: Template("<Banner props={$props} />"),
    KindId.CAROUSEL: Template("<Carousel props={$props} products={products} />"),
    KindId.COUNTDOWN: Template("<Countdown props={$props} />"),
    KindId.PRODUCT_GRID: Template("<ProductGrid props={$props} products={products} />"),
    KindId.TEXT_BLOCK: Template("<TextBlock props={$props} />"),
    KindId.IMAGE: Template("<Image props={$props} />"),
    KindId.BUTTON: Template("<Button props={$props} />"),
    KindId.SPACER: Template("<Spacer props={$props} />"),
}


def js_literal(value: Any) -> str:
    """Serialize a value as a deterministic JavaScript literal."""
    return json.dumps(value, sort_keys=True, ensure_ascii=False)


def render_fragment(kind_id: str, params: Dict[str, Any]) -> str:
    """
    JSX for one instance.

    Unknown kinds produce a neutral ``<View />`` so the screen still builds.
    """
    kind = KindId.parse(kind_id)
    if kind is None:
        return NEUTRAL_FRAGMENT
    return FRAGMENT_TEMPLATES[kind].substitute(props=js_literal(params))


def component_imports(kind_ids: List[str]) -> List[str]:
    """Import lines for the components used, in registry order."""
    used = {KindId.parse(kind_id) for kind_id in kind_ids}
    return [
        f"import {COMPONENT_NAMES[kind]} from './src/components/{COMPONENT_NAMES[kind]}';"
        for kind in KindId
        if kind in used
    ]

"""
Preview renderers - turn live instances into text blocks for a terminal screen.

Dispatch goes through the closed ``KindId`` set; identifiers outside it get
an "Unknown component" placeholder, and a renderer that raises is isolated
to its own instance.
"""
import re
from typing import Any, Callable, Dict, List, Optional

from pydantic import BaseModel, Field

from shopbuilder.core.errors import RenderFailure
from shopbuilder.models.schemas.component_catalog import KindId
from shopbuilder.models.schemas.live_config import CatalogItem, LiveConfigPayload, LiveInstance
from shopbuilder.utils.datetime_utils import from_iso_string, seconds_until
from shopbuilder.utils.logging import get_logger

logger = get_logger(__name__)

Renderer = Callable[[Dict[str, Any], List[CatalogItem]], List[str]]

SCREEN_WIDTH = 48
TAG_PATTERN = re.compile(r"<[^>]+>")


class RenderedBlock(BaseModel):
    instance_id: str
    kind_id: str
    lines: List[str] = Field(default_factory=list)
    placeholder: bool = False


def _rule(char: str = "-") -> str:
    return char * SCREEN_WIDTH


def _center(text: str) -> str:
    return text.center(SCREEN_WIDTH).rstrip()


def _price(item: CatalogItem) -> str:
    if item.compare_at_price:
        return f"${item.price} (was ${item.compare_at_price})"
    return f"${item.price}"


def render_mobile_header(params: Dict[str, Any], catalog: List[CatalogItem]) -> List[str]:
    logo = params.get("logoText") or "My Store"
    cart = "[cart]" if params.get("showCartIcon", True) else ""
    gap = max(1, SCREEN_WIDTH - len(logo) - len(cart))
    return [_rule("="), f"{logo}{' ' * gap}{cart}".rstrip(), _rule("=")]


def render_banner(params: Dict[str, Any], catalog: List[CatalogItem]) -> List[str]:
    lines = [_rule(), _center(str(params.get("title", "")))]
    if params.get("subtitle"):
        lines.append(_center(str(params["subtitle"])))
    if params.get("buttonText"):
        lines.append(_center(f"[ {params['buttonText']} ]"))
    lines.append(_rule())
    return lines


def render_carousel(params: Dict[str, Any], catalog: List[CatalogItem]) -> List[str]:
    per_view = int(params.get("itemsPerView", 2))
    visible = catalog[:max(per_view, 1)]
    arrows = params.get("showArrows", True)

    lines = [str(params.get("title", ""))]
    row = " | ".join(f"{item.title} {_price(item)}" for item in visible)
    lines.append(f"< {row} >" if arrows else row)
    if len(catalog) > len(visible):
        lines.append(f"  +{len(catalog) - len(visible)} more")
    return lines


def render_countdown(params: Dict[str, Any], catalog: List[CatalogItem]) -> List[str]:
    end = from_iso_string(str(params["endDate"]))
    remaining = seconds_until(end)
    days, rest = divmod(remaining, 86400)
    hours, rest = divmod(rest, 3600)
    minutes, seconds = divmod(rest, 60)

    if params.get("showLabels", True):
        clock = f"{days}d {hours:02d}h {minutes:02d}m {seconds:02d}s"
    else:
        clock = f"{days}:{hours:02d}:{minutes:02d}:{seconds:02d}"
    return [_center(str(params.get("title", ""))), _center(clock)]


def render_product_grid(params: Dict[str, Any], catalog: List[CatalogItem]) -> List[str]:
    columns = max(int(params.get("columns", 2)), 1)
    show_price = params.get("showPrice", True)

    lines = [str(params.get("title", ""))]
    for start in range(0, len(catalog), columns):
        cells = []
        for item in catalog[start:start + columns]:
            cells.append(f"{item.title} {_price(item)}" if show_price else item.title)
        lines.append("  " + " | ".join(cells))
    return lines


def render_text_block(params: Dict[str, Any], catalog: List[CatalogItem]) -> List[str]:
    content = TAG_PATTERN.sub("\n", str(params.get("content", "")))
    paragraphs = [part.strip() for part in content.split("\n") if part.strip()]
    align = params.get("textAlign", "left")
    if align == "center":
        return [_center(p) for p in paragraphs]
    if align == "right":
        return [p.rjust(SCREEN_WIDTH) for p in paragraphs]
    return paragraphs


def render_image(params: Dict[str, Any], catalog: List[CatalogItem]) -> List[str]:
    alt = params.get("alt") or "image"
    return [f"[image: {alt}] ({params.get('aspectRatio', '16:9')})"]


def render_button(params: Dict[str, Any], catalog: List[CatalogItem]) -> List[str]:
    label = str(params.get("text", ""))
    if params.get("icon"):
        label = f"{params['icon']} {label}"
    button = f"[ {label} ]"
    return [button.center(SCREEN_WIDTH, "_") if params.get("fullWidth") else _center(button)]


def render_spacer(params: Dict[str, Any], catalog: List[CatalogItem]) -> List[str]:
    height = int(str(params.get("height", "24px")).rstrip("px") or 0)
    return [""] * max(1, height // 16)


RENDERERS: Dict[KindId, Renderer] = {
    KindId.MOBILE_HEADER: render_mobile_header,
    KindId.BANNER: render_banner,
    KindId.CAROUSEL: render_carousel,
    KindId.COUNTDOWN: render_countdown,
    KindId.PRODUCT_GRID: render_product_grid,
    KindId.TEXT_BLOCK: render_text_block,
    KindId.IMAGE: render_image,
    KindId.BUTTON: render_button,
    KindId.SPACER: render_spacer,
}


def unknown_component_block(instance: LiveInstance) -> RenderedBlock:
    return RenderedBlock(
        instance_id=instance.instance_id,
        kind_id=instance.kind_id,
        lines=[f"[!] Unknown component: {instance.kind_id}"],
        placeholder=True,
    )


def render_failure_block(error: RenderFailure) -> RenderedBlock:
    return RenderedBlock(
        instance_id=error.instance_id,
        kind_id=error.kind_id,
        lines=[f"[!] {error}"],
        placeholder=True,
    )


def render_instance(
    instance: LiveInstance,
    catalog: List[CatalogItem],
    renderers: Optional[Dict[KindId, Renderer]] = None
) -> RenderedBlock:
    """Render one instance. Never raises."""
    table = RENDERERS if renderers is None else renderers
    kind = KindId.parse(instance.kind_id)
    renderer = table.get(kind) if kind is not None else None
    if renderer is None:
        return unknown_component_block(instance)

    try:
        lines = renderer(instance.params, catalog)
    except Exception as e:
        error = RenderFailure(instance.instance_id, instance.kind_id, str(e) or type(e).__name__)
        logger.warning(
            "preview.render.failed",
            extra={"instance_id": instance.instance_id, "kind_id": instance.kind_id},
            exc_info=e
        )
        return render_failure_block(error)

    return RenderedBlock(instance_id=instance.instance_id, kind_id=kind.value, lines=lines)


def render_screen(
    payload: LiveConfigPayload,
    renderers: Optional[Dict[KindId, Renderer]] = None
) -> List[RenderedBlock]:
    """Render every instance of a payload in position order."""
    if not payload.has_app:
        return [RenderedBlock(
            instance_id="empty-state",
            kind_id="empty-state",
            lines=["No template found", payload.message or "Save a page in the builder to see it here"],
            placeholder=True,
        )]

    instances = sorted(payload.instances or [], key=lambda inst: inst.position)
    if not instances:
        return [RenderedBlock(
            instance_id="empty-state",
            kind_id="empty-state",
            lines=["No components added yet", "Add components in the builder to see them here"],
            placeholder=True,
        )]

    return [render_instance(inst, payload.catalog_items, renderers) for inst in instances]

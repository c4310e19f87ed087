"""
Builder save/load surface.

The builder UI posts form-encoded actions selected by an ``intent`` field:

- ``save-template``: ``templateName`` plus ``pageComponents`` (JSON list of
  ``{componentId, props}``) saved as a new page
- ``load-template``: ``templateId`` of a saved page

Every action answers ``{success, message, data?}`` with HTTP 200 so the UI
can show a toast either way.
"""
import json
import uuid
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Request

from shopbuilder.api.dependencies import get_catalog_resolver, get_gateway
from shopbuilder.core.errors import PageNotFound, PersistenceFailure, UnknownKind
from shopbuilder.models.schemas.component_catalog import component_registry
from shopbuilder.models.schemas.page import ComponentInstance, Page
from shopbuilder.services.catalog.resolver import CatalogResolver
from shopbuilder.services.param_validator import validate_params
from shopbuilder.services.persistence import PersistenceGateway
from shopbuilder.utils.datetime_utils import to_iso_string
from shopbuilder.utils.logging import get_logger, log_context

router = APIRouter()
logger = get_logger(__name__)


def _result(success: bool, message: str, data: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    body: Dict[str, Any] = {"success": success, "message": message}
    if data is not None:
        body["data"] = data
    return body


def _page_components(page: Page, fresh_ids: bool = False) -> List[Dict[str, Any]]:
    return [
        {
            "id": uuid.uuid4().hex[:12] if fresh_ids else inst.instance_id,
            "componentId": inst.kind_id,
            "type": inst.kind_type,
            "props": inst.params,
            "order": inst.position,
        }
        for inst in page.ordered_instances()
    ]


def _parse_page_components(raw: Optional[str]) -> List[ComponentInstance]:
    """
    Parse the posted component list.

    Raises:
        ValueError: not a JSON list of objects with a componentId
    """
    items = json.loads(raw or "[]")
    if not isinstance(items, list):
        raise ValueError("pageComponents must be a JSON list")

    instances = []
    for index, item in enumerate(items):
        if not isinstance(item, dict) or not item.get("componentId"):
            raise ValueError(f"pageComponents[{index}] has no componentId")
        props = item.get("props") or {}
        if not isinstance(props, dict):
            raise ValueError(f"pageComponents[{index}].props must be an object")
        instances.append(ComponentInstance(
            instance_id=str(item.get("id") or index),
            kind_id=item["componentId"],
            params=props,
            position=index,
        ))
    return instances


def _log_param_warnings(instances: List[ComponentInstance]) -> None:
    for inst in instances:
        if not component_registry.has_kind(inst.kind_id):
            continue
        warnings = validate_params(component_registry.get_kind(inst.kind_id), inst.params)
        flagged = [w.to_dict() for w in warnings if w.level == "warning"]
        if flagged:
            logger.warning(
                "builder.params.out_of_schema",
                extra={"kind_id": inst.kind_id, "warnings": flagged}
            )


async def _save_template(gateway: PersistenceGateway, app_key: str, form) -> Dict[str, Any]:
    name = (form.get("templateName") or "").strip()
    if not name:
        return _result(False, "Template name is required.")

    try:
        instances = _parse_page_components(form.get("pageComponents"))
    except ValueError as e:
        logger.warning("builder.template.invalid", message=str(e))
        return _result(False, "Invalid page components.")

    _log_param_warnings(instances)

    try:
        page_id = await gateway.save_page(app_key, name, instances)
    except UnknownKind as e:
        return _result(False, str(e))
    except PersistenceFailure as e:
        logger.error("builder.template.save_failed", exc_info=e)
        return _result(False, "Failed to save template. Please try again.")

    logger.info("builder.template.saved", extra={"page_id": page_id, "instances": len(instances)})
    return _result(True, "Template saved successfully!", {"templateId": page_id})


async def _load_template(gateway: PersistenceGateway, form) -> Dict[str, Any]:
    template_id = form.get("templateId")
    if not template_id:
        return _result(False, "Template not found")

    try:
        page = await gateway.load_page(template_id)
    except PageNotFound:
        return _result(False, "Template not found")
    except PersistenceFailure as e:
        logger.error("builder.template.load_failed", exc_info=e)
        return _result(False, "Failed to load template. Please try again.")

    return _result(True, "Template loaded successfully!", {
        "template": {
            "id": page.id,
            "name": page.name,
            # Loaded components get new ids so they can be dropped next to existing ones
            "components": _page_components(page, fresh_ids=True),
        }
    })


@router.get(
    "/builder/{app_key}",
    tags=["Builder"],
    summary="Builder palette and saved templates"
)
async def builder_loader(
    app_key: str,
    gateway: PersistenceGateway = Depends(get_gateway),
    resolver: CatalogResolver = Depends(get_catalog_resolver),
) -> Dict[str, Any]:
    with log_context(app_key=app_key, operation="builder.load"):
        await resolver.sync(app_key)
        pages = await gateway.list_pages(app_key)

        # Newest first by creation, as the template library lists them
        pages.sort(key=lambda page: page.created_at, reverse=True)

        return {
            "components": [kind.model_dump(mode="json") for kind in component_registry.list_kinds()],
            "savedTemplates": [
                {
                    "id": page.id,
                    "name": page.name,
                    "slug": page.slug,
                    "createdAt": to_iso_string(page.created_at),
                    "components": _page_components(page),
                }
                for page in pages
            ],
        }


@router.post(
    "/builder/{app_key}",
    tags=["Builder"],
    summary="Save or load a template"
)
async def builder_action(
    app_key: str,
    request: Request,
    gateway: PersistenceGateway = Depends(get_gateway),
) -> Dict[str, Any]:
    form = await request.form()
    intent = form.get("intent")

    with log_context(app_key=app_key, operation=f"builder.{intent}"):
        if intent == "save-template":
            return await _save_template(gateway, app_key, form)

        if intent == "load-template":
            return await _load_template(gateway, form)

        logger.warning("builder.action.invalid", extra={"intent": intent})
        return _result(False, "Invalid action")

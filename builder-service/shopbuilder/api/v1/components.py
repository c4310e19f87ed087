"""Component palette endpoints for the builder UI."""
from typing import Any, Dict

from fastapi import APIRouter, HTTPException, status

from shopbuilder.core.errors import UnknownKind
from shopbuilder.models.schemas.component_catalog import component_registry, export_component_catalog

router = APIRouter()


@router.get(
    "/components",
    tags=["Components"],
    summary="Get the component palette",
    description="Every component kind with its property schema and default parameters."
)
async def get_component_catalog() -> Dict[str, Any]:
    return export_component_catalog()


@router.get(
    "/components/{kind_id}",
    tags=["Components"],
    summary="Get one component kind",
)
async def get_component_kind(kind_id: str) -> Dict[str, Any]:
    try:
        kind = component_registry.get_kind(kind_id)
    except UnknownKind as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    return kind.model_dump(mode="json")

"""
Page Editor - in-memory mutations of a page's component list.

Every mutation keeps instance positions dense (``0..n-1``). Changes are
computed on a working copy of the instance list and swapped in at the end,
so a failed operation never leaves a half-renumbered page behind.
"""
import uuid
from typing import Any, Dict, List, Optional

from shopbuilder.core.errors import InstanceNotFound
from shopbuilder.models.schemas.component_catalog import ComponentRegistry, component_registry
from shopbuilder.models.schemas.page import ComponentInstance, Page
from shopbuilder.utils.datetime_utils import utc_now
from shopbuilder.utils.logging import get_logger

logger = get_logger(__name__)


def _renumber(instances: List[ComponentInstance]) -> List[ComponentInstance]:
    return [
        inst if inst.position == index else inst.model_copy(update={"position": index})
        for index, inst in enumerate(instances)
    ]


def _clamp(value: int, lower: int, upper: int) -> int:
    return max(lower, min(value, upper))


class PageEditor:
    """
    Applies builder edits to a Page.

    Operations:
    - add_instance: place a kind with its default parameters
    - update_instance_params: shallow-merge parameter overrides
    - reorder: move an instance, clamping the target position
    - remove_instance: delete an instance and close the gap
    """

    def __init__(self, registry: Optional[ComponentRegistry] = None):
        self.registry = registry or component_registry

    def _working_copy(self, page: Page) -> List[ComponentInstance]:
        return list(page.ordered_instances())

    def _commit(self, page: Page, instances: List[ComponentInstance]) -> None:
        page.instances = _renumber(instances)
        page.updated_at = utc_now()

    def _index_of(self, instances: List[ComponentInstance], instance_id: str) -> int:
        for index, inst in enumerate(instances):
            if inst.instance_id == instance_id:
                return index
        raise InstanceNotFound(instance_id)

    def _new_instance_id(self, page: Page) -> str:
        existing = {inst.instance_id for inst in page.instances}
        while True:
            candidate = uuid.uuid4().hex[:12]
            if candidate not in existing:
                return candidate

    def add_instance(
        self,
        page: Page,
        kind_id: str,
        at_position: Optional[int] = None
    ) -> ComponentInstance:
        """
        Place a new instance of ``kind_id`` on the page.

        Raises:
            UnknownKind: kind_id is not registered (the page is left untouched)
        """
        kind = self.registry.get_kind(kind_id)

        instances = self._working_copy(page)
        if at_position is None:
            index = len(instances)
        else:
            index = _clamp(at_position, 0, len(instances))

        instance = ComponentInstance(
            instance_id=self._new_instance_id(page),
            kind_id=kind.id,
            params=kind.defaults(),
            position=index,
            kind_type=kind.type,
            kind_name=kind.name,
        )
        instances.insert(index, instance)
        self._commit(page, instances)

        logger.debug(
            "page.instance.added",
            extra={"page": page.slug, "kind_id": kind.id, "position": index}
        )
        return page.find_instance(instance.instance_id)

    def update_instance_params(
        self,
        page: Page,
        instance_id: str,
        partial_params: Dict[str, Any]
    ) -> None:
        """
        Merge ``partial_params`` over the instance's parameters, key by key.

        Values are not checked against the kind's property schema; see
        ``param_validator.validate_params`` for advisory checks.
        """
        instances = self._working_copy(page)
        index = self._index_of(instances, instance_id)

        current = instances[index]
        merged = {**current.params, **partial_params}
        instances[index] = current.model_copy(update={"params": merged})
        self._commit(page, instances)

    def reorder(self, page: Page, instance_id: str, new_position: int) -> None:
        """Move an instance to ``new_position`` (clamped to the page bounds)."""
        instances = self._working_copy(page)
        index = self._index_of(instances, instance_id)

        target = _clamp(new_position, 0, len(instances) - 1)
        if target == index:
            return

        moved = instances.pop(index)
        instances.insert(target, moved)
        self._commit(page, instances)

        logger.debug(
            "page.instance.reordered",
            extra={"page": page.slug, "instance_id": instance_id, "from": index, "to": target}
        )

    def remove_instance(self, page: Page, instance_id: str) -> None:
        instances = self._working_copy(page)
        index = self._index_of(instances, instance_id)

        del instances[index]
        self._commit(page, instances)


# Global editor instance
page_editor = PageEditor()

from __future__ import annotations

from typing import Iterable, List

import structlog

from scorekit.core.errors import MatchError
from scorekit.provisioners.models import Provisioner

logger = structlog.get_logger()


class ProvisionerRegistry:
    """Ordered registry of provisioners, most recently added first."""

    def __init__(self, provisioners: Iterable[Provisioner] = ()) -> None:
        self._provisioners: List[Provisioner] = list(provisioners)

    def add(self, provisioner: Provisioner) -> List[Provisioner]:
        """Prepend a provisioner so it wins over earlier overlapping ones.

        Any existing provisioner with the same id, or with the identical
        type/class/id match pattern, is replaced. Returns the removed ones.
        """
        kept: List[Provisioner] = []
        removed: List[Provisioner] = []
        for existing in self._provisioners:
            if existing.id == provisioner.id or existing.match_key == provisioner.match_key:
                logger.info("provisioner_replaced", id=existing.id, replaced_by=provisioner.id)
                removed.append(existing)
            else:
                kept.append(existing)
        self._provisioners = [provisioner, *kept]
        return removed

    def remove(self, provisioner_id: str) -> bool:
        before = len(self._provisioners)
        self._provisioners = [p for p in self._provisioners if p.id != provisioner_id]
        return len(self._provisioners) != before

    def get(self, provisioner_id: str) -> Provisioner | None:
        for provisioner in self._provisioners:
            if provisioner.id == provisioner_id:
                return provisioner
        return None

    def match(self, resource_type: str, resource_class: str, resource_id: str) -> Provisioner:
        """Return the first provisioner, in registration order, covering the resource."""
        for provisioner in self._provisioners:
            if provisioner.matches(resource_type, resource_class, resource_id):
                return provisioner
        raise MatchError(
            f"failed to find a provisioner for '{resource_type}.{resource_class}#{resource_id}'",
            {"type": resource_type, "class": resource_class, "id": resource_id},
        )

    def list(self) -> List[Provisioner]:
        return list(self._provisioners)

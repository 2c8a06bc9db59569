"""
stateform Diff Engine

Structural comparison of desired attributes against the last applied
configuration, classified into create / update / replace / no-op using
the resource kind's schema.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from .exceptions import unknown_kind_error
from .models import Action, ResourceNode, ResourceState
from .references import UNKNOWN
from .schema import SchemaRegistry, registry as default_registry

logger = logging.getLogger(__name__)


class _Absent:
    def __repr__(self):
        return "(absent)"


ABSENT = _Absent()


@dataclass(frozen=True)
class AttributeChange:
    """One changed attribute path"""
    path: str
    old: Any
    new: Any
    forces_replacement: bool = False

    @property
    def attribute(self) -> str:
        """Top-level attribute the path belongs to"""
        return self.path.split(".", 1)[0].split("[", 1)[0]

    def __str__(self):
        marker = " (forces replacement)" if self.forces_replacement else ""
        return f"{self.path}: {self.old!r} => {self.new!r}{marker}"


@dataclass
class ResourceDiff:
    """Diff result for one resource"""
    name: str
    kind: str
    action: Action
    changes: List[AttributeChange] = field(default_factory=list)
    reason: Optional[str] = None

    @property
    def replacing_attributes(self) -> List[str]:
        return sorted({c.attribute for c in self.changes if c.forces_replacement})


def compare_values(old: Any, new: Any, path: str = "") -> List[Tuple[str, Any, Any]]:
    """
    Attribute-by-attribute comparison of two nested values.

    Mappings are compared over the union of their keys, lists of equal
    length element by element. Anything else is compared as a whole.
    UNKNOWN never equals anything.
    """
    if new is UNKNOWN or old is UNKNOWN:
        return [(path, old, new)]

    if isinstance(old, dict) and isinstance(new, dict):
        differences = []
        for key in sorted(set(old) | set(new), key=str):
            child = f"{path}.{key}" if path else str(key)
            differences.extend(compare_values(old.get(key, ABSENT), new.get(key, ABSENT), child))
        return differences

    if isinstance(old, list) and isinstance(new, list) and len(old) == len(new):
        differences = []
        for index, (old_item, new_item) in enumerate(zip(old, new)):
            differences.extend(compare_values(old_item, new_item, f"{path}[{index}]"))
        return differences

    if type(old) is bool or type(new) is bool:
        equal = type(old) is type(new) and old == new
    else:
        equal = old == new
    return [] if equal else [(path, old, new)]


class DiffEngine:
    """Computes the reconciliation action for a single resource"""

    def __init__(self, schemas: Optional[SchemaRegistry] = None):
        self.schemas = schemas or default_registry

    def diff(
        self,
        node: ResourceNode,
        previous: Optional[ResourceState],
        desired: Optional[Dict[str, Any]] = None
    ) -> ResourceDiff:
        """
        Diff a desired node against its previous applied state.

        Args:
            node: Desired resource
            previous: Last applied state, None if never applied
            desired: Node attributes with references resolved; defaults to
                the raw node attributes

        Returns:
            ResourceDiff with the action and the changed attribute paths
        """
        schema = self.schemas.get(node.kind)
        if schema is None:
            raise unknown_kind_error(node.name, node.kind, self.schemas.kinds)

        desired = node.attributes if desired is None else desired

        if previous is None:
            changes = [
                AttributeChange(path, ABSENT, new)
                for path, _, new in compare_values({}, desired)
            ]
            return ResourceDiff(node.name, node.kind, Action.CREATE, changes, reason="not yet applied")

        if previous.kind != node.kind:
            return ResourceDiff(
                node.name, node.kind, Action.REPLACE,
                reason=f"kind changed from {previous.kind} to {node.kind}"
            )

        changes = []
        for path, old, new in compare_values(previous.config, desired):
            change = AttributeChange(path, old, new)
            changes.append(AttributeChange(
                path, old, new, forces_replacement=schema.forces_replacement(change.attribute)
            ))

        if not changes:
            return ResourceDiff(node.name, node.kind, Action.NOOP)

        if any(change.forces_replacement for change in changes):
            replacing = sorted({c.attribute for c in changes if c.forces_replacement})
            action = Action.REPLACE
            reason = f"immutable attributes changed: {', '.join(replacing)}"
        else:
            action = Action.UPDATE
            reason = None

        logger.debug(f"Diff for '{node.name}': {action.value} ({len(changes)} changes)")
        return ResourceDiff(node.name, node.kind, action, changes, reason=reason)

    def diff_deleted(self, previous: ResourceState) -> ResourceDiff:
        """Diff for state whose resource is no longer declared"""
        return ResourceDiff(
            previous.name, previous.kind, Action.DELETE,
            reason="no longer in desired state"
        )

"""
stateform Core Models

Resource nodes (desired state), applied resource state and the actions
the diff engine can produce.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Set


class Action(Enum):
    """Per-node reconciliation action"""
    CREATE = "create"
    UPDATE = "update"
    REPLACE = "replace"
    DELETE = "delete"
    NOOP = "no-op"

    @property
    def is_change(self) -> bool:
        return self is not Action.NOOP

    @property
    def symbol(self) -> str:
        return _ACTION_SYMBOLS[self]


_ACTION_SYMBOLS = {
    Action.CREATE: "+",
    Action.UPDATE: "~",
    Action.REPLACE: "-/+",
    Action.DELETE: "-",
    Action.NOOP: " ",
}


@dataclass
class ResourceNode:
    """A resource declared in the desired-state document"""
    name: str
    kind: str
    attributes: Dict[str, Any] = field(default_factory=dict)
    dependencies: Set[str] = field(default_factory=set)
    after: Set[str] = field(default_factory=set)

    @property
    def predecessors(self) -> Set[str]:
        """Every node that must finish before this one may start"""
        return self.dependencies | self.after

    def __repr__(self):
        return (
            f"ResourceNode(name='{self.name}', kind='{self.kind}', "
            f"deps={sorted(self.dependencies)}, after={sorted(self.after)})"
        )


def _utcnow() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class ResourceState:
    """
    Last applied state of one resource.

    ``config`` holds the resolved attributes last sent to the provider and
    is what the diff engine compares against. ``attributes`` holds what the
    provider reported back, including computed outputs such as the ARN.
    """
    name: str
    kind: str
    provider_id: str
    attributes: Dict[str, Any] = field(default_factory=dict)
    config: Dict[str, Any] = field(default_factory=dict)
    dependencies: List[str] = field(default_factory=list)
    updated_at: str = field(default_factory=_utcnow)

    def lookup(self, attribute: Optional[str]) -> Any:
        """Value of a referenced attribute, ``id`` being the provider id"""
        if attribute is None or attribute == "id":
            return self.provider_id
        if attribute in self.attributes:
            return self.attributes[attribute]
        if attribute in self.config:
            return self.config[attribute]
        raise KeyError(attribute)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "kind": self.kind,
            "provider_id": self.provider_id,
            "attributes": self.attributes,
            "config": self.config,
            "dependencies": sorted(self.dependencies),
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ResourceState":
        return cls(
            name=data["name"],
            kind=data["kind"],
            provider_id=data["provider_id"],
            attributes=data.get("attributes", {}),
            config=data.get("config", {}),
            dependencies=list(data.get("dependencies", [])),
            updated_at=data.get("updated_at") or _utcnow(),
        )

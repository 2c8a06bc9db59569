"""
stateform Planner

Combines the resource graph, the diff engine and the state store into a
Plan: one action per resource, arranged in dependency-ordered batches.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set

from .diff import AttributeChange, DiffEngine
from .exceptions import ValidationError
from .graph import ResourceGraph
from .models import Action, ResourceNode, ResourceState
from .references import UNKNOWN, Reference, contains_unknown, resolve
from .state import StateStore

logger = logging.getLogger(__name__)


@dataclass
class PlannedChange:
    """The action planned for one resource"""
    name: str
    kind: str
    action: Action
    rank: int = 0
    node: Optional[ResourceNode] = None
    previous: Optional[ResourceState] = None
    changes: List[AttributeChange] = field(default_factory=list)
    reason: Optional[str] = None
    # predecessors whose failure blocks this change
    blocking: Set[str] = field(default_factory=set)
    # predecessors that only order this change
    ordering: Set[str] = field(default_factory=set)

    @property
    def predecessors(self) -> Set[str]:
        return self.blocking | self.ordering

    @property
    def provider_id(self) -> Optional[str]:
        return self.previous.provider_id if self.previous else None

    def __repr__(self):
        return f"PlannedChange(name='{self.name}', action={self.action.value}, rank={self.rank})"


@dataclass
class Plan:
    """Per-resource actions in dependency order"""
    changes: Dict[str, PlannedChange] = field(default_factory=dict)
    batches: List[List[str]] = field(default_factory=list)
    graph: Optional[ResourceGraph] = None

    @property
    def order(self) -> List[str]:
        return [name for batch in self.batches for name in batch]

    @property
    def has_changes(self) -> bool:
        return any(change.action.is_change for change in self.changes.values())

    def pending(self) -> List[PlannedChange]:
        """Changes that will call the provider, in execution order"""
        return [self.changes[name] for name in self.order if self.changes[name].action.is_change]

    def summary(self) -> Dict[str, int]:
        counts = {action.value: 0 for action in Action}
        for change in self.changes.values():
            counts[change.action.value] += 1
        return counts

    def __getitem__(self, name: str) -> PlannedChange:
        return self.changes[name]

    def __contains__(self, name: str) -> bool:
        return name in self.changes

    def __len__(self) -> int:
        return len(self.changes)


def rank_batches(changes: Dict[str, PlannedChange]) -> List[List[str]]:
    """Assign longest-path ranks and group changes into sorted batches"""
    ranks: Dict[str, int] = {}

    def rank_of(name: str, visiting: Set[str]) -> int:
        if name in ranks:
            return ranks[name]
        if name in visiting:
            raise ValidationError(f"Plan contains an ordering cycle through '{name}'")
        visiting.add(name)
        preds = [p for p in changes[name].predecessors if p in changes]
        ranks[name] = max((rank_of(p, visiting) + 1 for p in preds), default=0)
        visiting.discard(name)
        return ranks[name]

    for name in sorted(changes):
        changes[name].rank = rank_of(name, set())

    depth = max(ranks.values()) + 1 if ranks else 0
    batches: List[List[str]] = [[] for _ in range(depth)]
    for name in sorted(changes):
        batches[ranks[name]].append(name)
    return batches


class Planner:
    """Computes plans against the applied state in a StateStore"""

    def __init__(self, state_store: StateStore, diff_engine: Optional[DiffEngine] = None):
        self.state_store = state_store
        self.diff_engine = diff_engine or DiffEngine()

    def plan(self, graph: ResourceGraph) -> Plan:
        """
        Plan the reconciliation of a desired graph.

        Resources are diffed in topological order so references to values
        only known after apply, such as the id of a resource that will be
        created or replaced, resolve to UNKNOWN.
        State entries with no matching resource are planned for deletion.
        """
        applied = self.state_store.all()
        changes: Dict[str, PlannedChange] = {}
        resolved: Dict[str, Dict[str, Any]] = {}

        for node in graph:
            previous = applied.get(node.name)
            desired = resolve(node.attributes, self._plan_lookup(node.name, changes, resolved, applied))
            resolved[node.name] = desired

            result = self.diff_engine.diff(node, previous, desired)
            changes[node.name] = PlannedChange(
                name=node.name,
                kind=node.kind,
                action=result.action,
                node=node,
                previous=previous,
                changes=result.changes,
                reason=result.reason,
                blocking=set(node.dependencies),
                ordering=set(node.after),
            )

        for name, state in applied.items():
            if name not in graph:
                result = self.diff_engine.diff_deleted(state)
                changes[name] = PlannedChange(
                    name=name, kind=state.kind, action=Action.DELETE,
                    previous=state, reason=result.reason,
                )

        self._order_deletes(changes, applied)
        plan = Plan(changes=changes, batches=rank_batches(changes), graph=graph)

        logger.info(f"Plan computed: {self._format_summary(plan)}")
        return plan

    def plan_destroy(self) -> Plan:
        """Plan the deletion of every resource in state"""
        applied = self.state_store.all()
        changes = {
            name: PlannedChange(
                name=name, kind=state.kind, action=Action.DELETE,
                previous=state, reason="destroy requested",
            )
            for name, state in applied.items()
        }
        self._order_deletes(changes, applied)
        plan = Plan(changes=changes, batches=rank_batches(changes))
        logger.info(f"Destroy plan computed: {len(changes)} resources")
        return plan

    @staticmethod
    def _order_deletes(changes: Dict[str, PlannedChange], applied: Dict[str, ResourceState]) -> None:
        """A deleted resource waits for everything that last depended on it"""
        for name, state in applied.items():
            for dependency in state.dependencies:
                target = changes.get(dependency)
                if target is not None and target.action is Action.DELETE and name in changes:
                    target.blocking.add(name)

    def _plan_lookup(self, owner: str, changes: Dict[str, PlannedChange],
                     resolved: Dict[str, Dict[str, Any]], applied: Dict[str, ResourceState]):
        """
        Resolve references for planning.

        Ids and provider outputs of resources about to be created or
        replaced are UNKNOWN, as are outputs an in-place update recomputes.
        Inputs come from the desired attributes whenever they are known.
        """
        def lookup(ref: Reference) -> Any:
            planned = changes[ref.target]
            schema = self.diff_engine.schemas.get(planned.kind)
            outputs = schema.outputs if schema else ()
            recreated = planned.action in (Action.CREATE, Action.REPLACE)

            if ref.attribute is None or ref.attribute == "id":
                return UNKNOWN if recreated else applied[ref.target].provider_id
            if recreated and ref.attribute in outputs:
                return UNKNOWN
            if planned.action is Action.UPDATE and schema and ref.attribute in schema.recomputed:
                return UNKNOWN
            if ref.attribute in resolved[ref.target]:
                value = resolved[ref.target][ref.attribute]
                return UNKNOWN if contains_unknown(value) else value
            if recreated:
                return UNKNOWN

            state = applied[ref.target]
            try:
                return state.lookup(ref.attribute)
            except KeyError:
                raise ValidationError(
                    f"Resource '{owner}' references unknown attribute '{ref.attribute}' of '{ref.target}'",
                    resource_name=owner,
                    error_code="UNKNOWN_ATTRIBUTE",
                    context={"reference": str(ref)}
                )
        return lookup

    @staticmethod
    def _format_summary(plan: Plan) -> str:
        counts = plan.summary()
        return ", ".join(f"{action}={count}" for action, count in counts.items() if count) or "empty"

"""
stateform Resource Graph

Parses a desired-state document into a validated DAG of resource nodes.
Dependency edges are derived from the symbolic references found in each
resource's attributes; ``after`` adds ordering-only edges.
"""

import json
import logging
from collections import deque
from pathlib import Path
from typing import Any, Dict, List, Optional, Set, Union

import yaml

from .exceptions import (
    CycleDetected, UnresolvedReference, ValidationError,
    missing_attributes_error, undefined_variable_error, unknown_kind_error,
)
from .models import ResourceNode
from .references import VALID_NAME, VAR_NAMESPACE, iter_references, substitute_variables
from .schema import SchemaRegistry, registry as default_registry

logger = logging.getLogger(__name__)


class ResourceGraph:
    """
    Validated resource DAG.

    Nodes live in an arena list; edges are lists of arena indices. Edges
    point from a node to the nodes that must finish before it.
    """

    def __init__(self, nodes: List[ResourceNode]):
        self.nodes: List[ResourceNode] = sorted(nodes, key=lambda n: n.name)
        self._index: Dict[str, int] = {}
        for idx, node in enumerate(self.nodes):
            if node.name in self._index:
                raise ValidationError(f"Duplicate resource name '{node.name}'", resource_name=node.name)
            self._index[node.name] = idx

        self._predecessors: List[List[int]] = [[] for _ in self.nodes]
        self._successors: List[List[int]] = [[] for _ in self.nodes]
        self._link()

        self.ranks: Dict[str, int] = {}
        self.execution_order: List[str] = []
        self._sort()

    def _link(self) -> None:
        for idx, node in enumerate(self.nodes):
            for target in sorted(node.dependencies):
                if target not in self._index:
                    raise UnresolvedReference(node.name, target)
            for target in sorted(node.after):
                if target not in self._index:
                    raise UnresolvedReference(node.name, target, attribute="after")
            for target in sorted(node.predecessors):
                pred = self._index[target]
                self._predecessors[idx].append(pred)
                self._successors[pred].append(idx)

    def _sort(self) -> None:
        """Kahn's algorithm; ranks are longest-path depths from the roots"""
        in_degree = [len(preds) for preds in self._predecessors]
        rank = [0] * len(self.nodes)
        queue = deque(idx for idx, degree in enumerate(in_degree) if degree == 0)
        visited = 0

        while queue:
            idx = queue.popleft()
            visited += 1
            for succ in self._successors[idx]:
                rank[succ] = max(rank[succ], rank[idx] + 1)
                in_degree[succ] -= 1
                if in_degree[succ] == 0:
                    queue.append(succ)

        if visited != len(self.nodes):
            raise CycleDetected(self._find_cycle())

        self.ranks = {node.name: rank[idx] for idx, node in enumerate(self.nodes)}
        self.execution_order = sorted(self.ranks, key=lambda name: (self.ranks[name], name))
        logger.debug(f"Resource graph sorted: {len(self.nodes)} nodes, {self.depth} ranks")

    def _find_cycle(self) -> List[str]:
        """One cycle as names, each depending on the next; the first name repeats at the end"""
        WHITE, GREY, BLACK = 0, 1, 2
        color = [WHITE] * len(self.nodes)

        def dfs(idx: int, path: List[int]) -> Optional[List[int]]:
            color[idx] = GREY
            path.append(idx)
            for pred in self._predecessors[idx]:
                if color[pred] == GREY:
                    return path[path.index(pred):] + [pred]
                if color[pred] == WHITE:
                    found = dfs(pred, path)
                    if found:
                        return found
            path.pop()
            color[idx] = BLACK
            return None

        for idx in range(len(self.nodes)):
            if color[idx] == WHITE:
                cycle = dfs(idx, [])
                if cycle:
                    return [self.nodes[i].name for i in cycle]
        return []

    @property
    def depth(self) -> int:
        return max(self.ranks.values()) + 1 if self.ranks else 0

    def node(self, name: str) -> ResourceNode:
        return self.nodes[self._index[name]]

    def __contains__(self, name: str) -> bool:
        return name in self._index

    def __len__(self) -> int:
        return len(self.nodes)

    def __iter__(self):
        return (self.node(name) for name in self.execution_order)

    @property
    def names(self) -> List[str]:
        return list(self.execution_order)

    def get_execution_order(self) -> List[str]:
        """Topological order, sorted by (rank, name)"""
        return list(self.execution_order)

    def get_parallel_groups(self) -> List[List[str]]:
        """Rank batches: every node in a batch only waits on earlier batches"""
        groups: List[List[str]] = [[] for _ in range(self.depth)]
        for name in self.execution_order:
            groups[self.ranks[name]].append(name)
        return groups

    def to_dict(self) -> Dict[str, Any]:
        return {
            name: {
                "kind": self.node(name).kind,
                "rank": self.ranks[name],
                "dependencies": sorted(self.node(name).dependencies),
                "after": sorted(self.node(name).after),
            }
            for name in self.execution_order
        }

    def __repr__(self):
        return f"ResourceGraph(nodes={len(self.nodes)}, ranks={self.depth})"


def load_document(path: Union[str, Path]) -> Dict[str, Any]:
    """Read a desired-state document from a YAML or JSON file"""
    path = Path(path)
    if not path.exists():
        raise ValidationError(
            f"Document not found: {path}",
            error_code="DOCUMENT_NOT_FOUND",
            context={"path": str(path)}
        )

    try:
        with open(path, "r") as f:
            if path.suffix.lower() == ".json":
                data = json.load(f)
            else:
                data = yaml.safe_load(f)
    except (yaml.YAMLError, json.JSONDecodeError) as e:
        raise ValidationError(
            f"Could not parse document {path}: {e}",
            error_code="DOCUMENT_PARSE_ERROR",
            context={"path": str(path)}
        ) from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ValidationError(f"Document {path} must be a mapping", error_code="DOCUMENT_INVALID")
    return data


def _normalize(value: Any) -> Any:
    """Round-trip through JSON so attributes compare equal to persisted state"""
    return json.loads(json.dumps(value, default=str))


def parse_document(document: Dict[str, Any], schemas: Optional[SchemaRegistry] = None) -> List[ResourceNode]:
    """Turn a document mapping into resource nodes with derived dependencies"""
    schemas = schemas or default_registry

    unknown_sections = set(document) - {"resources", "variables"}
    if unknown_sections:
        raise ValidationError(
            f"Unknown top-level sections: {', '.join(sorted(unknown_sections))}",
            error_code="DOCUMENT_INVALID",
            guidance="A document has 'resources' and optional 'variables' only."
        )

    variables = document.get("variables") or {}
    resources = document.get("resources") or {}
    if not isinstance(variables, dict):
        raise ValidationError("'variables' must be a mapping", error_code="DOCUMENT_INVALID")
    if not isinstance(resources, dict):
        raise ValidationError("'resources' must be a mapping", error_code="DOCUMENT_INVALID")

    known = {str(name) for name in resources}
    nodes = []
    for name, definition in resources.items():
        nodes.append(_parse_resource(str(name), definition, variables, schemas, known))
    return nodes


def _parse_resource(name: str, definition: Any, variables: Dict[str, Any], schemas: SchemaRegistry,
                    known: Set[str]) -> ResourceNode:
    if not VALID_NAME.match(name) or name == VAR_NAMESPACE:
        raise ValidationError(
            f"Invalid resource name '{name}'",
            resource_name=name,
            error_code="INVALID_NAME",
            guidance="Names start with a letter or underscore and contain letters, digits, '_' or '-'. 'var' is reserved."
        )
    if not isinstance(definition, dict):
        raise ValidationError(f"Resource '{name}' must be a mapping", resource_name=name)

    unknown_keys = set(definition) - {"kind", "attributes", "after"}
    if unknown_keys:
        raise ValidationError(
            f"Resource '{name}' has unknown keys: {', '.join(sorted(unknown_keys))}",
            resource_name=name,
        )

    kind = definition.get("kind")
    schema = schemas.get(kind) if isinstance(kind, str) else None
    if schema is None:
        raise unknown_kind_error(name, str(kind), schemas.kinds)

    attributes = definition.get("attributes") or {}
    if not isinstance(attributes, dict):
        raise ValidationError(f"Attributes of '{name}' must be a mapping", resource_name=name)

    attributes = substitute_variables(
        _normalize(attributes), variables,
        on_missing=lambda variable: undefined_variable_error(name, variable)
    )

    missing = schema.missing_required(attributes)
    if missing:
        raise missing_attributes_error(name, kind, missing)

    after = definition.get("after") or []
    if isinstance(after, str):
        after = [after]
    if not isinstance(after, list) or not all(isinstance(item, str) for item in after):
        raise ValidationError(f"'after' of '{name}' must be a list of resource names", resource_name=name)

    dependencies: Set[str] = set()
    for path, ref in iter_references(attributes):
        if ref.target == name:
            raise CycleDetected([name, name], context={"attribute": path})
        if ref.target not in known:
            raise UnresolvedReference(name, ref.target, attribute=path)
        dependencies.add(ref.target)

    for target in after:
        if target not in known:
            raise UnresolvedReference(name, target, attribute="after")

    node = ResourceNode(
        name=name,
        kind=kind,
        attributes=attributes,
        dependencies=dependencies,
        after=set(after) - dependencies,
    )
    if name in node.after:
        raise CycleDetected([name, name])

    logger.debug(f"Parsed {node!r}")
    return node


def build_graph(document: Dict[str, Any], schemas: Optional[SchemaRegistry] = None) -> ResourceGraph:
    """Parse and validate a document into a ResourceGraph"""
    nodes = parse_document(document, schemas)
    graph = ResourceGraph(nodes)
    logger.info(f"Built resource graph with {len(graph)} resources")
    return graph


def load_graph(path: Union[str, Path], schemas: Optional[SchemaRegistry] = None) -> ResourceGraph:
    """Load a document from disk and build its graph"""
    return build_graph(load_document(path), schemas)

"""
stateform Core

Graph building, diffing, planning, execution and applied-state storage.
"""

from .exceptions import (
    StateformError,
    ValidationError,
    ConfigurationError,
    GraphError,
    CycleDetected,
    UnresolvedReference,
    ProviderError,
    BlockedByFailure,
    Cancelled,
    StateStoreError,
)
from .models import Action, ResourceNode, ResourceState
from .schema import ResourceSchema, SchemaRegistry, register_kind, get_schema
from .graph import ResourceGraph, build_graph, load_document, load_graph, parse_document
from .diff import AttributeChange, DiffEngine, ResourceDiff
from .state import StateStore, StateBackend, LocalStateBackend, MemoryStateBackend, create_state_store
from .planner import Plan, PlannedChange, Planner
from .executor import ApplyReport, NodeOutcome, NodeStatus, PlanExecutor, apply
from .config import config, config_manager, StateformConfig

__all__ = [
    # Errors
    "StateformError",
    "ValidationError",
    "ConfigurationError",
    "GraphError",
    "CycleDetected",
    "UnresolvedReference",
    "ProviderError",
    "BlockedByFailure",
    "Cancelled",
    "StateStoreError",

    # Model
    "Action",
    "ResourceNode",
    "ResourceState",
    "ResourceSchema",
    "SchemaRegistry",
    "register_kind",
    "get_schema",

    # Graph
    "ResourceGraph",
    "build_graph",
    "load_document",
    "load_graph",
    "parse_document",

    # Diff / plan / apply
    "AttributeChange",
    "DiffEngine",
    "ResourceDiff",
    "Plan",
    "PlannedChange",
    "Planner",
    "ApplyReport",
    "NodeOutcome",
    "NodeStatus",
    "PlanExecutor",
    "apply",

    # State
    "StateStore",
    "StateBackend",
    "LocalStateBackend",
    "MemoryStateBackend",
    "create_state_store",

    # Configuration
    "config",
    "config_manager",
    "StateformConfig",
]

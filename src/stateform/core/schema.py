"""
Resource kind schemas.

Every resource kind declares its required attributes and which attribute
changes force the resource to be replaced rather than updated in place.
"""

import logging
from dataclasses import dataclass
from typing import Dict, FrozenSet, List, Optional, Tuple

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResourceSchema:
    """
    Attribute schema of one resource kind.

    An attribute forces replacement when it is listed in ``immutable``, or
    when ``updatable`` is given and the attribute is not listed there.
    ``outputs`` are attributes the provider computes on create, and
    ``recomputed`` the outputs an in-place update changes as well.
    """
    kind: str
    service: str
    required: Tuple[str, ...] = ()
    immutable: FrozenSet[str] = frozenset()
    updatable: Optional[FrozenSet[str]] = None
    outputs: Tuple[str, ...] = ("arn",)
    recomputed: Tuple[str, ...] = ()
    name_attribute: str = "name"

    def forces_replacement(self, attribute: str) -> bool:
        if attribute in self.immutable:
            return True
        if self.updatable is not None:
            return attribute not in self.updatable
        return False

    def missing_required(self, attributes: Dict) -> List[str]:
        return [name for name in self.required if name not in attributes]


_BUILTIN_SCHEMAS = [
    ResourceSchema(
        kind="ecr_repository",
        service="ecr",
        required=("name",),
        immutable=frozenset({"name"}),
        outputs=("arn", "registry_id", "repository_url"),
    ),
    ResourceSchema(
        kind="iam_role",
        service="iam",
        required=("name", "assume_role_policy"),
        immutable=frozenset({"name", "path"}),
        outputs=("arn", "unique_id"),
    ),
    ResourceSchema(
        kind="security_group",
        service="ec2",
        required=("name",),
        immutable=frozenset({"name", "description", "vpc_id"}),
        outputs=("arn", "owner_id"),
    ),
    ResourceSchema(
        kind="ecs_cluster",
        service="ecs",
        required=("name",),
        immutable=frozenset({"name"}),
    ),
    ResourceSchema(
        kind="cloudwatch_log_group",
        service="logs",
        required=("name",),
        immutable=frozenset({"name", "kms_key_id"}),
    ),
    ResourceSchema(
        kind="ssm_parameter",
        service="ssm",
        required=("name", "type", "value"),
        immutable=frozenset({"name"}),
        outputs=("arn", "version"),
        recomputed=("version",),
    ),
    # Task definition revisions are immutable; only tags change in place.
    ResourceSchema(
        kind="ecs_task_definition",
        service="ecs",
        required=("family", "cpu", "memory", "container_definitions"),
        updatable=frozenset({"tags"}),
        outputs=("arn", "revision"),
        name_attribute="family",
    ),
    ResourceSchema(
        kind="ecs_service",
        service="ecs",
        required=("name", "cluster", "task_definition"),
        immutable=frozenset({"name", "cluster", "launch_type", "scheduling_strategy"}),
    ),
    ResourceSchema(
        kind="appautoscaling_target",
        service="application-autoscaling",
        required=("service_namespace", "resource_id", "scalable_dimension", "min_capacity", "max_capacity"),
        immutable=frozenset({"service_namespace", "resource_id", "scalable_dimension"}),
        name_attribute="resource_id",
    ),
    ResourceSchema(
        kind="appautoscaling_scheduled_action",
        service="application-autoscaling",
        required=("name", "service_namespace", "resource_id", "scalable_dimension",
                  "schedule", "scalable_target_action"),
        immutable=frozenset({"name", "service_namespace", "resource_id", "scalable_dimension"}),
    ),
]


class SchemaRegistry:
    """Lookup table of resource kind schemas"""

    def __init__(self, schemas: Optional[List[ResourceSchema]] = None):
        self._schemas: Dict[str, ResourceSchema] = {}
        for schema in schemas if schemas is not None else _BUILTIN_SCHEMAS:
            self.register(schema)

    def register(self, schema: ResourceSchema) -> None:
        if schema.kind in self._schemas:
            logger.warning(f"Schema for kind '{schema.kind}' already registered, replacing")
        self._schemas[schema.kind] = schema

    def get(self, kind: str) -> Optional[ResourceSchema]:
        return self._schemas.get(kind)

    def __contains__(self, kind: str) -> bool:
        return kind in self._schemas

    @property
    def kinds(self) -> List[str]:
        return sorted(self._schemas)


registry = SchemaRegistry()


def register_kind(schema: ResourceSchema) -> None:
    """Register a custom resource kind with the global registry"""
    registry.register(schema)


def get_schema(kind: str) -> Optional[ResourceSchema]:
    return registry.get(kind)

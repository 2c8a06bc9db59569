"""
stateform Local Provider

Simulates an AWS account on the local filesystem so documents can be
planned and applied without cloud credentials. Resources get ARN-shaped
ids and the computed outputs their kind declares.
"""

import json
import logging
import os
import tempfile
import threading
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from ..core.exceptions import ProviderError
from ..core.schema import SchemaRegistry, registry as default_registry
from .base import CloudProvider

logger = logging.getLogger(__name__)

INVENTORY_FILE = "inventory.json"


class LocalProvider(CloudProvider):
    """Filesystem-backed fake cloud"""

    def _setup(self):
        self.workspace = Path(self.config.get("workspace", ".stateform/provider"))
        self.workspace.mkdir(parents=True, exist_ok=True)
        self.region = self.config.get("region", "us-east-1")
        self.account_id = str(self.config.get("account_id", "000000000000"))
        self.schemas: SchemaRegistry = self.config.get("schemas") or default_registry

        self._inventory_path = self.workspace / INVENTORY_FILE
        self._lock = threading.Lock()

        logger.debug(f"Local provider initialized with workspace: {self.workspace}")

    @property
    def name(self) -> str:
        return "local"

    def _load(self) -> Dict[str, Dict[str, Any]]:
        if not self._inventory_path.exists():
            return {"resources": {}, "revisions": {}}
        try:
            with open(self._inventory_path, "r") as f:
                return json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise ProviderError(
                f"Local inventory is unreadable: {e}",
                retryable=False,
                context={"path": str(self._inventory_path)}
            ) from e

    def _save(self, inventory: Dict[str, Any]) -> None:
        fd, tmp_path = tempfile.mkstemp(dir=self.workspace, prefix=".inventory.", suffix=".tmp")
        with os.fdopen(fd, "w") as f:
            json.dump(inventory, f, indent=2, sort_keys=True)
        os.replace(tmp_path, self._inventory_path)

    def _arn(self, service: str, resource: str, global_service: bool = False) -> str:
        region = "" if global_service else self.region
        return f"arn:aws:{service}:{region}:{self.account_id}:{resource}"

    def _identify(self, kind: str, attributes: Dict[str, Any], inventory: Dict[str, Any]) -> Tuple[str, Dict[str, Any]]:
        """Provider id and computed outputs for a new resource"""
        schema = self.schemas.get(kind)
        if schema is None:
            raise ProviderError(f"Unsupported resource kind '{kind}'", retryable=False, operation="create")

        label = str(attributes.get(schema.name_attribute, uuid.uuid4().hex[:8]))
        outputs: Dict[str, Any] = {}

        if kind == "ecs_task_definition":
            revision = inventory["revisions"].get(label, 0) + 1
            inventory["revisions"][label] = revision
            arn = self._arn("ecs", f"task-definition/{label}:{revision}")
            outputs["revision"] = revision
        elif kind == "ecr_repository":
            arn = self._arn("ecr", f"repository/{label}")
            outputs["registry_id"] = self.account_id
            outputs["repository_url"] = f"{self.account_id}.dkr.ecr.{self.region}.amazonaws.com/{label}"
        elif kind == "iam_role":
            arn = self._arn("iam", f"role/{label}", global_service=True)
            outputs["unique_id"] = "AROA" + uuid.uuid4().hex[:17].upper()
        elif kind == "security_group":
            arn = self._arn("ec2", f"security-group/sg-{uuid.uuid4().hex[:17]}")
            outputs["owner_id"] = self.account_id
        elif kind == "ecs_service":
            cluster = str(attributes.get("cluster", "default")).rsplit("/", 1)[-1]
            arn = self._arn("ecs", f"service/{cluster}/{label}")
        elif kind == "cloudwatch_log_group":
            arn = self._arn("logs", f"log-group:{label}")
        elif kind == "ssm_parameter":
            arn = self._arn("ssm", f"parameter/{label.lstrip('/')}")
            outputs["version"] = 1
        elif kind == "ecs_cluster":
            arn = self._arn("ecs", f"cluster/{label}")
        else:
            arn = self._arn(schema.service, f"{kind}/{label}")

        outputs["arn"] = arn
        return arn, outputs

    def create(self, kind: str, attributes: Dict[str, Any]) -> Tuple[str, Dict[str, Any]]:
        with self._lock:
            inventory = self._load()
            provider_id, outputs = self._identify(kind, attributes, inventory)

            if provider_id in inventory["resources"]:
                raise ProviderError(
                    f"Resource already exists: {provider_id}",
                    retryable=False,
                    provider_id=provider_id,
                    operation="create"
                )

            remote = dict(attributes)
            remote.update(outputs)
            inventory["resources"][provider_id] = {
                "kind": kind,
                "attributes": remote,
                "created_at": datetime.now(timezone.utc).isoformat(),
            }
            self._save(inventory)

        logger.info(f"Created {kind} {provider_id}")
        return provider_id, remote

    def update(self, provider_id: str, attributes: Dict[str, Any]) -> Dict[str, Any]:
        with self._lock:
            inventory = self._load()
            record = inventory["resources"].get(provider_id)
            if record is None:
                raise ProviderError(
                    f"Resource not found: {provider_id}",
                    retryable=False,
                    provider_id=provider_id,
                    operation="update"
                )

            schema = self.schemas.get(record["kind"])
            previous = record["attributes"]
            remote = dict(attributes)
            for output in schema.outputs if schema else ("arn",):
                if output in previous:
                    remote[output] = previous[output]
            if schema and "version" in schema.recomputed:
                remote["version"] = int(previous.get("version", 1)) + 1

            record["attributes"] = remote
            self._save(inventory)

        logger.info(f"Updated {provider_id}")
        return remote

    def delete(self, provider_id: str) -> None:
        with self._lock:
            inventory = self._load()
            if inventory["resources"].pop(provider_id, None) is None:
                logger.warning(f"Delete of unknown resource {provider_id}, treating as already gone")
                return
            self._save(inventory)

        logger.info(f"Deleted {provider_id}")

    def read(self, provider_id: str) -> Dict[str, Any]:
        with self._lock:
            record = self._load()["resources"].get(provider_id)
        if record is None:
            raise ProviderError(
                f"Resource not found: {provider_id}",
                retryable=False,
                provider_id=provider_id,
                operation="read"
            )
        return dict(record["attributes"])

    def inventory(self) -> Dict[str, str]:
        """provider id -> kind of every resource in the account"""
        with self._lock:
            resources = self._load()["resources"]
        return {provider_id: record["kind"] for provider_id, record in sorted(resources.items())}


def create_provider(provider_config, schemas: Optional[SchemaRegistry] = None) -> CloudProvider:
    """Build a provider from a ProviderConfig"""
    return LocalProvider({
        "workspace": provider_config.workspace,
        "region": provider_config.region,
        "account_id": provider_config.account_id,
        "schemas": schemas,
    })

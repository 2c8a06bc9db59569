"""
Tests for the local provider
"""
import json
from pathlib import Path

import pytest

from stateform.core.config import ProviderConfig
from stateform.core.exceptions import ProviderError
from stateform.providers import LocalProvider, create_provider


class TestLocalProvider:
    """Tests for the filesystem-backed provider"""

    @pytest.fixture(autouse=True)
    def setup(self, local_provider, temp_dir):
        self.provider = local_provider
        self.workspace = Path(temp_dir) / "cloud"

    def test_name(self):
        assert self.provider.name == "local"
        assert repr(self.provider) == "LocalProvider(name='local')"

    def test_create_ecr_repository(self):
        provider_id, remote = self.provider.create("ecr_repository", {"name": "web"})

        assert provider_id == "arn:aws:ecr:us-east-1:000000000000:repository/web"
        assert remote["arn"] == provider_id
        assert remote["registry_id"] == "000000000000"
        assert remote["repository_url"] == "000000000000.dkr.ecr.us-east-1.amazonaws.com/web"
        assert remote["name"] == "web"

    def test_iam_role_is_global(self):
        provider_id, remote = self.provider.create(
            "iam_role", {"name": "exec", "assume_role_policy": {}}
        )

        assert provider_id == "arn:aws:iam::000000000000:role/exec"
        assert remote["unique_id"].startswith("AROA")

    def test_task_definition_revisions(self):
        attributes = {"family": "web", "cpu": 256, "memory": 512, "container_definitions": []}

        first, remote = self.provider.create("ecs_task_definition", attributes)
        self.provider.delete(first)
        second, _ = self.provider.create("ecs_task_definition", attributes)

        assert first.endswith("task-definition/web:1")
        assert second.endswith("task-definition/web:2")
        assert remote["revision"] == 1

    def test_ecs_service_arn_uses_cluster_name(self):
        provider_id, _ = self.provider.create("ecs_service", {
            "name": "svc",
            "cluster": "arn:aws:ecs:us-east-1:000000000000:cluster/main",
            "task_definition": "t",
        })

        assert provider_id.endswith(":service/main/svc")

    def test_duplicate_create(self):
        self.provider.create("ecr_repository", {"name": "web"})

        with pytest.raises(ProviderError) as exc_info:
            self.provider.create("ecr_repository", {"name": "web"})
        assert not exc_info.value.retryable
        assert exc_info.value.context["operation"] == "create"

    def test_unsupported_kind(self):
        with pytest.raises(ProviderError, match="Unsupported"):
            self.provider.create("dynamodb_table", {"name": "t"})

    def test_update_keeps_outputs(self):
        provider_id, _ = self.provider.create("ecr_repository", {"name": "web"})

        remote = self.provider.update(provider_id, {"name": "web", "scan_on_push": True})

        assert remote["scan_on_push"] is True
        assert remote["repository_url"].endswith("/web")
        assert self.provider.read(provider_id) == remote

    def test_update_ssm_parameter_bumps_version(self):
        provider_id, remote = self.provider.create(
            "ssm_parameter", {"name": "/app/db", "type": "String", "value": "a"}
        )
        assert remote["version"] == 1
        assert provider_id.endswith(":parameter/app/db")

        remote = self.provider.update(provider_id, {"name": "/app/db", "type": "String", "value": "b"})
        assert remote["version"] == 2

    def test_update_missing(self):
        with pytest.raises(ProviderError, match="not found"):
            self.provider.update("arn:aws:ecr:us-east-1:000000000000:repository/nope", {})

    def test_delete(self):
        provider_id, _ = self.provider.create("ecr_repository", {"name": "web"})

        self.provider.delete(provider_id)

        assert self.provider.inventory() == {}
        with pytest.raises(ProviderError):
            self.provider.read(provider_id)

    def test_delete_missing_is_not_an_error(self):
        self.provider.delete("arn:aws:ecr:us-east-1:000000000000:repository/gone")

    def test_inventory_persists(self):
        provider_id, _ = self.provider.create("cloudwatch_log_group", {"name": "/ecs/web"})

        reopened = LocalProvider({"workspace": str(self.workspace)})
        assert reopened.inventory() == {provider_id: "cloudwatch_log_group"}

        with open(self.workspace / "inventory.json") as f:
            assert provider_id in json.load(f)["resources"]

    def test_corrupt_inventory(self):
        (self.workspace / "inventory.json").write_text("{oops")

        with pytest.raises(ProviderError, match="unreadable"):
            self.provider.inventory()


class TestCreateProvider:

    def test_from_config(self, temp_dir):
        provider = create_provider(ProviderConfig(
            workspace=str(Path(temp_dir) / "ws"), region="eu-west-1", account_id="123456789012"
        ))

        provider_id, _ = provider.create("ecs_cluster", {"name": "main"})
        assert provider_id == "arn:aws:ecs:eu-west-1:123456789012:cluster/main"

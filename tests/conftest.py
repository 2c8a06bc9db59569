"""
Pytest configuration and fixtures for stateform tests
"""
import copy
import os
import shutil
import sys
import tempfile
import threading
import time
from pathlib import Path

import pytest

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '../src'))

from stateform.core.config import config_manager
from stateform.core.exceptions import ProviderError
from stateform.core.state import StateStore, LocalStateBackend
from stateform.providers.base import CloudProvider
from stateform.providers.local import LocalProvider
from stateform.utils.retry import RetryConfig

EXAMPLES_DIR = Path(__file__).parent.parent / "examples"


class FakeProvider(CloudProvider):
    """
    In-memory provider that records every call.

    Resources are addressed by a label taken from their name, family or
    resource_id attribute. Errors queued with ``fail`` are raised on the
    next calls touching that label; ``hooks`` run when a call starts.
    """

    LABEL_ATTRIBUTES = ("name", "family", "resource_id")

    def _setup(self):
        self.delay = self.config.get("delay", 0)
        self.resources = {}
        self.labels = {}
        self.calls = []
        self.events = []
        self.failures = {}
        self.hooks = {}
        self.max_active = 0
        self._active = 0
        self._counter = 0
        self._lock = threading.Lock()

    @property
    def name(self) -> str:
        return "fake"

    def fail(self, label, *errors):
        self.failures.setdefault(label, []).extend(errors)

    def _label(self, attributes):
        for key in self.LABEL_ATTRIBUTES:
            if key in attributes:
                return str(attributes[key])
        return "unnamed"

    def _run(self, operation, label, action):
        with self._lock:
            self.calls.append((operation, label))
            self.events.append(("start", label))
            self._active += 1
            self.max_active = max(self.max_active, self._active)
            pending = self.failures.get(label)
            error = pending.pop(0) if pending else None
        try:
            if label in self.hooks:
                self.hooks[label]()
            if self.delay:
                time.sleep(self.delay)
            if error is not None:
                raise error
            return action()
        finally:
            with self._lock:
                self._active -= 1
                self.events.append(("end", label))

    def create(self, kind, attributes):
        label = self._label(attributes)

        def action():
            with self._lock:
                self._counter += 1
                provider_id = f"fake:{kind}/{label}/{self._counter}"
            remote = dict(attributes)
            remote["arn"] = provider_id
            self.resources[provider_id] = remote
            self.labels[provider_id] = label
            return provider_id, dict(remote)

        return self._run("create", label, action)

    def update(self, provider_id, attributes):
        def action():
            if provider_id not in self.resources:
                raise ProviderError(f"Resource not found: {provider_id}")
            remote = dict(attributes)
            remote["arn"] = provider_id
            self.resources[provider_id] = remote
            return dict(remote)

        return self._run("update", self.labels.get(provider_id, provider_id), action)

    def delete(self, provider_id):
        def action():
            self.resources.pop(provider_id, None)

        return self._run("delete", self.labels.get(provider_id, provider_id), action)

    def read(self, provider_id):
        if provider_id not in self.resources:
            raise ProviderError(f"Resource not found: {provider_id}")
        return dict(self.resources[provider_id])

    def operations(self, operation):
        return [label for op, label in self.calls if op == operation]

    def index(self, event, label):
        return self.events.index((event, label))


SCENARIO = {
    "resources": {
        "ecr_repo": {
            "kind": "ecr_repository",
            "attributes": {"name": "web-repo"},
        },
        "security_group": {
            "kind": "security_group",
            "attributes": {"name": "web-sg", "description": "web service"},
        },
        "task_def": {
            "kind": "ecs_task_definition",
            "attributes": {
                "family": "web-task",
                "cpu": 256,
                "memory": 512,
                "network_mode": "awsvpc",
                "container_definitions": [
                    {"name": "web", "image": "${ecr_repo.arn}:latest", "essential": True},
                ],
            },
        },
        "service": {
            "kind": "ecs_service",
            "attributes": {
                "name": "web-svc",
                "cluster": "default",
                "task_definition": "${task_def.arn}",
                "desired_count": 2,
                "security_groups": ["${security_group.id}"],
            },
        },
    }
}


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests"""
    temp_path = tempfile.mkdtemp()
    yield temp_path
    shutil.rmtree(temp_path)


@pytest.fixture
def scenario():
    """ECR repository, security group, task definition and service"""
    return copy.deepcopy(SCENARIO)


@pytest.fixture
def state_store():
    """In-memory state store"""
    return StateStore()


@pytest.fixture
def local_state_store(temp_dir):
    """State store persisted under a temporary directory"""
    return StateStore(LocalStateBackend(Path(temp_dir) / "state"))


@pytest.fixture
def fake_provider():
    return FakeProvider()


@pytest.fixture
def local_provider(temp_dir):
    """Filesystem-backed provider in a temporary workspace"""
    return LocalProvider({"workspace": str(Path(temp_dir) / "cloud")})


@pytest.fixture
def fast_retry():
    """Retry settings without waiting"""
    return RetryConfig(max_attempts=3, initial_delay=0.0, jitter=False)


@pytest.fixture
def no_sleep():
    return lambda seconds: None


@pytest.fixture
def example_document():
    return EXAMPLES_DIR / "airflow_scheduler.yaml"


@pytest.fixture
def clean_environment(monkeypatch):
    """Remove STATEFORM_* variables and reset the global configuration"""
    for var in [key for key in os.environ if key.startswith("STATEFORM_")]:
        monkeypatch.delenv(var, raising=False)
    config_manager.reset()

    yield

    config_manager.reset()


# Pytest configuration
def pytest_configure(config):
    """Configure pytest with custom markers"""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )

"""
stateform Provider Base Classes

Abstract interface between the executor and a cloud account.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, Tuple


class CloudProvider(ABC):
    """
    Abstract base class for cloud providers.

    Every operation may raise ProviderError; ``retryable=True`` marks
    failures worth attempting again (throttling, concurrent modification).
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        self.config = config or {}
        self._setup()

    def _setup(self):
        """Provider-specific setup"""
        pass

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider name"""
        pass

    @abstractmethod
    def create(self, kind: str, attributes: Dict[str, Any]) -> Tuple[str, Dict[str, Any]]:
        """Create a resource; returns (provider id, remote attributes)"""
        pass

    @abstractmethod
    def update(self, provider_id: str, attributes: Dict[str, Any]) -> Dict[str, Any]:
        """Update a resource in place; returns the new remote attributes"""
        pass

    @abstractmethod
    def delete(self, provider_id: str) -> None:
        """Delete a resource"""
        pass

    @abstractmethod
    def read(self, provider_id: str) -> Dict[str, Any]:
        """Current remote attributes of a resource"""
        pass

    def __repr__(self):
        return f"{self.__class__.__name__}(name='{self.name}')"

"""
stateform Providers

The boundary between the executor and a cloud account.
"""

from .base import CloudProvider
from .local import LocalProvider, create_provider

__all__ = ["CloudProvider", "LocalProvider", "create_provider"]

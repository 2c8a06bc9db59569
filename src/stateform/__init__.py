"""
stateform - declarative infrastructure reconciliation

Plan and apply desired-state documents of cloud resources against the
last applied state.
"""

import logging
import os

from .__about__ import __version__
from .core import (
    Planner,
    PlanExecutor,
    StateStore,
    build_graph,
    load_graph,
    apply,
)
from .providers import CloudProvider, LocalProvider

__all__ = [
    "Planner",
    "PlanExecutor",
    "StateStore",
    "build_graph",
    "load_graph",
    "apply",
    "CloudProvider",
    "LocalProvider",
    "__version__",
]

# Configure logging
log_level = os.getenv("STATEFORM_LOG_LEVEL", "WARNING").upper()
logging.basicConfig(
    level=getattr(logging, log_level, logging.WARNING),
    format="%(asctime)s - stateform - %(levelname)s - %(message)s"
)

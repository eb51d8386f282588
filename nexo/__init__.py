"""Nexo project generation engine.

Runs dependency-ordered configurator steps concurrently against a shared
``package.json`` accumulator, resolving live npm versions with caching,
retry and offline fallbacks.

Key classes:
    Orchestrator       - Runs a whole generation (steps, versions, save)
    StepRegistry       - Step catalog with lazy loading and topological sort
    PackageDescriptor  - In-memory package.json written once per run
    VersionResolver    - npm version lookups with cache and fallbacks
    Selections         - Immutable user choices driving the run

Usage::

    from nexo import Config, Orchestrator, Selections

    result = await Orchestrator(Config.from_env()).run_project_generation(
        Selections(project_name="my-app"), "./projects"
    )
"""

from nexo.config import Config, ConflictPolicy, ExecutionStrategy, RetryPolicy
from nexo.context import ProjectContext, Selections
from nexo.errors import (
    CircularDependencyError,
    ConfiguratorError,
    DependencyGraphError,
    NetworkError,
    NexoError,
    OfflineError,
    PersistenceError,
    RateLimitError,
    UnmetDependencyError,
)
from nexo.network import VersionResolver
from nexo.orchestrator import GenerationResult, Orchestrator
from nexo.package_descriptor import PackageDescriptor
from nexo.registry import StepDescriptor, StepRegistry, default_registry
from nexo.scheduler import Task, TaskStatus, run_pool

__version__ = "0.1.0"

__all__ = [
    # Configuration
    "Config",
    "ConflictPolicy",
    "ExecutionStrategy",
    "RetryPolicy",
    # Run state
    "ProjectContext",
    "Selections",
    "PackageDescriptor",
    "VersionResolver",
    # Engine
    "Orchestrator",
    "GenerationResult",
    "StepDescriptor",
    "StepRegistry",
    "default_registry",
    "Task",
    "TaskStatus",
    "run_pool",
    # Errors
    "NexoError",
    "DependencyGraphError",
    "CircularDependencyError",
    "UnmetDependencyError",
    "ConfiguratorError",
    "PersistenceError",
    "NetworkError",
    "RateLimitError",
    "OfflineError",
]

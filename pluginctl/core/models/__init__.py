"""
Domain models — Pydantic types for pluginctl.

All models are re-exported here for convenient access:

    from pluginctl.core.models import Workspace, Module, BuildArtifact, StepResult
"""

from pluginctl.core.models.link import DirectoryLink, EnvironmentLink
from pluginctl.core.models.module import BuildArtifact, Module
from pluginctl.core.models.step import CommandResult, EnvConfig, StepResult
from pluginctl.core.models.workspace import (
    BuildConfig,
    DeploymentTarget,
    HostRuntimeConfig,
    ScaffoldConfig,
    SetupMarker,
    Workspace,
)

__all__ = [
    # link.py
    "DirectoryLink",
    "EnvironmentLink",
    # module.py
    "BuildArtifact",
    "Module",
    # step.py
    "CommandResult",
    "EnvConfig",
    "StepResult",
    # workspace.py
    "BuildConfig",
    "DeploymentTarget",
    "HostRuntimeConfig",
    "ScaffoldConfig",
    "SetupMarker",
    "Workspace",
]

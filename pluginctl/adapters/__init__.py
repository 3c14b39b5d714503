"""Adapters — bindings for the external tools pluginctl drives.

Public re-exports for convenient access.
"""

from pluginctl.adapters.base import CommandRunner
from pluginctl.adapters.generator import CommandGenerator, GeneratorOutcome, ModuleGenerator
from pluginctl.adapters.mock import MockRunner
from pluginctl.adapters.shell.command import SubprocessRunner

__all__ = [
    "CommandGenerator",
    "CommandRunner",
    "GeneratorOutcome",
    "MockRunner",
    "ModuleGenerator",
    "SubprocessRunner",
]

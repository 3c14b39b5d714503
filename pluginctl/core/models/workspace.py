"""
Workspace model — the root configuration of a plugin workspace.

Loaded from workspace.yml, this is the canonical truth about where
modules live, how they are built, which host-runtime checkout they
are tested against, and where they can be deployed.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, Field, field_validator

DEFAULT_EXCLUDE_DIRS = [
    "dist",
    "build",
    "node_modules",
    ".venv",
    "venv",
    "__pycache__",
    ".git",
    ".hg",
    ".pytest_cache",
    ".mypy_cache",
    ".ruff_cache",
    ".tox",
]


class BuildConfig(BaseModel):
    """How a module is turned into a distributable archive."""

    output_dir: str = "dist"
    ui_dir: str = "ui"
    ui_command: list[str] = Field(default_factory=lambda: ["npm", "run", "build"])
    package_command: list[str] = Field(
        default_factory=lambda: ["{python}", "-m", "build", "--outdir", "{output_dir}"]
    )
    artifact_patterns: list[str] = Field(default_factory=lambda: ["*.whl", "*.tar.gz"])
    source_extensions: list[str] = Field(
        default_factory=lambda: [
            ".py", ".html", ".js", ".ts", ".tsx", ".vue", ".css", ".scss",
            ".json", ".toml", ".cfg", ".txt", ".md", ".yml", ".yaml",
        ]
    )
    exclude_dirs: list[str] = Field(default_factory=lambda: list(DEFAULT_EXCLUDE_DIRS))


class HostRuntimeConfig(BaseModel):
    """A second checkout of the host application used for integration tests."""

    path: str = "../host-runtime"
    marker_file: str = ".pluginctl-setup.json"
    plugins_dir: str = "plugins"          # extension discovery directory
    app_dir: str = "."                    # where the test entry point runs
    venv: str = "venv"
    requirements: list[str] = Field(default_factory=lambda: ["requirements.txt"])
    test_command: list[str] = Field(
        default_factory=lambda: ["manage.py", "test", "--keepdb", "--noinput"]
    )
    settings_env: list[str] = Field(default_factory=lambda: ["DJANGO_SETTINGS_MODULE"])
    test_env: dict[str, str] = Field(
        default_factory=lambda: {
            "PLUGINCTL_PLUGINS_ALL_ENABLED": "1",
            "PLUGINCTL_PLUGINS_REGISTER_URLS": "1",
        }
    )


class DeploymentTarget(BaseModel):
    """A named remote host running the host service in a container."""

    name: str = ""
    host: str
    user: str | None = None
    port: int = 22
    identity_file: str | None = None      # credential reference (ssh key path)
    production: bool = False
    confirm_token: str | None = None      # defaults to the target name

    root_candidates: list[str]
    data_dir: str = "data"                # relative to the deployment root
    container_data_dir: str = "/opt/host/data"
    service: str = "app"
    compose_command: str = "docker compose"

    install_command: str = "pip install --force-reinstall --no-deps"
    static_command: str | None = "python manage.py collectstatic --no-input"
    restart_command: str | None = None    # default: <compose> restart <service>
    connect_timeout: int = 10

    @field_validator("root_candidates")
    @classmethod
    def _require_candidates(cls, value: list[str]) -> list[str]:
        if not value:
            raise ValueError("at least one deployment root candidate is required")
        return value

    @property
    def address(self) -> str:
        return f"{self.user}@{self.host}" if self.user else self.host

    @property
    def expected_confirmation(self) -> str:
        return self.confirm_token or self.name


class ScaffoldConfig(BaseModel):
    """The external interactive generator used to create new modules."""

    generator_command: list[str] = Field(
        default_factory=lambda: ["cookiecutter", "gh:pluginctl/plugin-template"]
    )
    commit_message: str = "Initial commit"
    git_author_name: str = "pluginctl"
    git_author_email: str = "pluginctl@localhost"


class SetupMarker(BaseModel):
    """Completion marker written after the host runtime's one-time setup."""

    completed_at: str
    host_runtime_path: str
    python: str | None = None
    notes: str = ""


class Workspace(BaseModel):
    """Root workspace identity — loaded from workspace.yml."""

    version: int = 1

    name: str = "plugins"
    root: str = "."                       # set by the loader to the workspace.yml directory
    modules_dir: str = "plugins"          # the module collection directory
    build: BuildConfig = Field(default_factory=BuildConfig)
    host_runtime: HostRuntimeConfig = Field(default_factory=HostRuntimeConfig)
    targets: dict[str, DeploymentTarget] = Field(default_factory=dict)
    scaffold: ScaffoldConfig = Field(default_factory=ScaffoldConfig)

    @property
    def root_path(self) -> Path:
        return Path(self.root).resolve()

    @property
    def modules_path(self) -> Path:
        return self.root_path / self.modules_dir

    @property
    def host_runtime_path(self) -> Path:
        return (self.root_path / Path(self.host_runtime.path).expanduser()).resolve()

    @property
    def state_path(self) -> Path:
        """Workspace-local scratch directory (locks)."""
        return self.root_path / ".pluginctl"

    @field_validator("targets")
    @classmethod
    def _name_targets(cls, value: dict[str, DeploymentTarget]) -> dict[str, DeploymentTarget]:
        for name, target in value.items():
            if not target.name:
                target.name = name
        return value

    def get_target(self, name: str) -> DeploymentTarget | None:
        """Look up a deployment target by name."""
        return self.targets.get(name)

    def target_names(self) -> list[str]:
        return sorted(self.targets)

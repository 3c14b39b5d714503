"""
Module model — one plugin in the workspace's module collection.

A module is a directory holding a backend Python package (the first
subdirectory with an ``__init__.py``) and, optionally, a UI source
directory. Its identity is its directory name.
"""

from __future__ import annotations

from datetime import UTC, datetime
from pathlib import Path

from pydantic import BaseModel, ConfigDict


class Module(BaseModel):
    """A resolved module on disk."""

    name: str
    path: Path
    package_dir: Path
    output_dir: Path
    ui_dir: Path | None = None

    @property
    def package_name(self) -> str:
        """Import name of the backend package."""
        return self.package_dir.name

    @property
    def has_ui(self) -> bool:
        return self.ui_dir is not None


class BuildArtifact(BaseModel):
    """A packaged, distributable archive. Never mutated once written."""

    model_config = ConfigDict(frozen=True)

    path: Path
    mtime: float

    @classmethod
    def from_path(cls, path: Path) -> BuildArtifact:
        return cls(path=path, mtime=path.stat().st_mtime)

    @property
    def name(self) -> str:
        return self.path.name

    @property
    def created_at(self) -> str:
        return datetime.fromtimestamp(self.mtime, UTC).isoformat()

    def to_dict(self) -> dict:
        return {"path": str(self.path), "name": self.name, "created_at": self.created_at}

"""
Link models — how a module is made visible to the host runtime.

A ``DirectoryLink`` is either a symbolic link or a Windows junction.
Both behave the same once created, so equality only looks at the
resolved target and callers never branch on ``kind``.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field

LinkKind = Literal["symbolic", "junction"]


def _normalize(path: Path) -> str:
    return os.path.normcase(os.path.abspath(str(path)))


class DirectoryLink(BaseModel):
    """A directory link of either kind pointing at ``target``."""

    kind: LinkKind = "symbolic"
    target: Path

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, DirectoryLink):
            return NotImplemented
        return _normalize(self.target) == _normalize(other.target)

    def __hash__(self) -> int:
        return hash(_normalize(self.target))

    def points_at(self, path: Path) -> bool:
        return _normalize(self.target) == _normalize(path)


class EnvironmentLink(BaseModel):
    """Directory link + editable install of one module in one host runtime."""

    module: str
    link_path: Path
    link: DirectoryLink | None = None
    status: Literal["linked", "already-linked", "relinked", "missing", "mismatch"] = "missing"
    editable_installed: bool = False
    warnings: list[str] = Field(default_factory=list)

    @property
    def established(self) -> bool:
        return self.status in ("linked", "already-linked", "relinked")

    def to_dict(self) -> dict:
        return {
            "module": self.module,
            "link_path": str(self.link_path),
            "target": str(self.link.target) if self.link else None,
            "kind": self.link.kind if self.link else None,
            "status": self.status,
            "editable_installed": self.editable_installed,
            "warnings": self.warnings,
        }

"""
Staleness — is the newest artifact older than the sources?

An artifact is stale when any tracked source file (matched by
extension, outside output/vendor/cache/VCS directories) has an mtime
strictly later than the artifact's.  Nothing here is cached: every
call walks the module tree again.
"""

from __future__ import annotations

import fnmatch
import logging
import os
from dataclasses import dataclass
from pathlib import Path

from pluginctl.core.models.module import BuildArtifact, Module
from pluginctl.core.models.workspace import BuildConfig

logger = logging.getLogger(__name__)


@dataclass
class StalenessReport:
    """Result of one staleness check."""

    artifact: BuildArtifact | None = None
    newest_source: Path | None = None
    newest_source_mtime: float = 0.0
    stale: bool = True
    reason: str = ""

    def to_dict(self) -> dict:
        return {
            "stale": self.stale,
            "reason": self.reason,
            "artifact": self.artifact.to_dict() if self.artifact else None,
            "newest_source": str(self.newest_source) if self.newest_source else None,
        }


def newest_artifact(output_dir: Path, patterns: list[str]) -> BuildArtifact | None:
    """Newest file in ``output_dir`` matching any pattern, by mtime."""
    if not output_dir.is_dir():
        return None

    candidates = [
        p for p in output_dir.iterdir()
        if p.is_file() and any(fnmatch.fnmatch(p.name, pat) for pat in patterns)
    ]
    if not candidates:
        return None

    newest = max(candidates, key=lambda p: p.stat().st_mtime)
    return BuildArtifact.from_path(newest)


def _excluded(name: str, exclude: set[str]) -> bool:
    return name in exclude or name.endswith(".egg-info")


def newest_source(module: Module, config: BuildConfig) -> tuple[Path | None, float]:
    """Newest tracked source file under the module directory."""
    extensions = {e.lower() for e in config.source_extensions}
    exclude = set(config.exclude_dirs) | {module.output_dir.name}

    best: Path | None = None
    best_mtime = 0.0
    for dirpath, dirnames, filenames in os.walk(module.path):
        dirnames[:] = [d for d in dirnames if not _excluded(d, exclude)]
        for filename in filenames:
            if Path(filename).suffix.lower() not in extensions:
                continue
            path = Path(dirpath) / filename
            try:
                mtime = path.stat().st_mtime
            except OSError:
                continue  # vanished mid-walk
            if mtime > best_mtime:
                best, best_mtime = path, mtime

    return best, best_mtime


def check_staleness(module: Module, config: BuildConfig) -> StalenessReport:
    """Decide whether ``module`` needs a rebuild."""
    artifact = newest_artifact(module.output_dir, config.artifact_patterns)
    source, source_mtime = newest_source(module, config)
    report = StalenessReport(
        artifact=artifact,
        newest_source=source,
        newest_source_mtime=source_mtime,
    )

    if artifact is None:
        report.stale = True
        report.reason = "no artifact in " + str(module.output_dir)
    elif source_mtime > artifact.mtime:
        report.stale = True
        rel = source.relative_to(module.path) if source else "?"
        report.reason = f"{rel} is newer than {artifact.name}"
    else:
        report.stale = False
        report.reason = f"{artifact.name} is up to date"

    logger.debug("Staleness of %s: %s", module.name, report.reason)
    return report

"""
Scaffolder — create a new module with the external generator.

The generator prompts the user, writes a module skeleton into the
module collection directory, and is supposed to initialise a git
repository.  It exits non-zero even on a normal run and its git step
is unreliable, so success is judged by the filesystem: a new directory
must appear, and if it has no ``.git`` we init, stage and commit.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from pluginctl.adapters.generator import ModuleGenerator
from pluginctl.adapters.vcs.git import GitClient
from pluginctl.core.errors import ExternalToolError
from pluginctl.core.models.step import StepResult
from pluginctl.core.models.workspace import ScaffoldConfig

logger = logging.getLogger(__name__)


@dataclass
class ScaffoldResult:
    generator_exit_code: int
    module_dir: Path
    git_repaired: bool = False
    steps: list[StepResult] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "generator_exit_code": self.generator_exit_code,
            "module_dir": str(self.module_dir),
            "git_repaired": self.git_repaired,
            "steps": [s.model_dump(mode="json") for s in self.steps],
        }


def scaffold_module(
    output_dir: Path,
    config: ScaffoldConfig,
    generator: ModuleGenerator,
    git: GitClient,
    *,
    extra_args: list[str] | None = None,
) -> ScaffoldResult:
    """Generate a module into ``output_dir`` and make sure it is committed.

    Raises:
        ExternalToolError: No new directory appeared, or a git step failed.
    """
    outcome = generator.invoke(list(extra_args or []), output_dir)

    if outcome.created_dir is None:
        raise ExternalToolError(
            "generate",
            None,
            f"Generator exited with {outcome.exit_code} and created no module directory in {output_dir}",
        )

    if outcome.exit_code != 0:
        logger.info(
            "Generator exited with %d but created %s; continuing",
            outcome.exit_code,
            outcome.created_dir.name,
        )

    result = ScaffoldResult(generator_exit_code=outcome.exit_code, module_dir=outcome.created_dir)
    result.steps.append(
        StepResult.success("generate", message=str(outcome.created_dir), return_code=outcome.exit_code)
    )

    module_dir = outcome.created_dir
    if git.is_repository(module_dir):
        result.steps.append(StepResult.skip("git", "generator already initialised a repository"))
        return result

    logger.info("Initialising git repository in %s", module_dir)
    for step, run in (
        ("git-init", lambda: git.init(module_dir)),
        ("git-add", lambda: git.add_all(module_dir)),
        (
            "git-commit",
            lambda: git.commit(
                module_dir,
                config.commit_message,
                author_name=config.git_author_name,
                author_email=config.git_author_email,
            ),
        ),
    ):
        r = run()
        result.steps.append(StepResult.from_command(step, r))
        if not r.ok:
            raise ExternalToolError(step, r)

    result.git_repaired = True
    return result

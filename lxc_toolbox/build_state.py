from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List

from .build_config import BuildConfig
from .lib.command import SoftFailure


@dataclass
class BuildState:
    """Mutable record threaded through the build steps.

    ``config`` is replaced (never mutated) when the effective variant changes.
    """

    config: BuildConfig
    cache_hit: bool = False
    artifacts: Dict[str, Path] = field(default_factory=dict)
    warnings: List[SoftFailure] = field(default_factory=list)
    ran_steps: List[str] = field(default_factory=list)
    mounts: List[str] = field(default_factory=list)
    current_step: str | None = None

    @property
    def rootfs(self) -> str:
        return str(self.config.rootfs_dir)

    @property
    def work_dir(self) -> Path:
        return Path(self.config.work_dir)

    def warn(self, failure: SoftFailure | None) -> None:
        if failure is not None:
            self.warnings.append(failure)

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Protocol, Sequence

from .build_state import BuildState
from .lib.chroot import umount_chroot_binds
from .lib.command import SoftFailure

logger = logging.getLogger(__name__)


class Step(Protocol):
    """A single build stage."""

    step_id: str
    title: str

    def run(self, state: BuildState) -> BuildState:
        ...


@dataclass(frozen=True)
class PipelineResult:
    state: BuildState
    ran_steps: List[str]
    warnings: List[SoftFailure]


def run_pipeline(*, state: BuildState, steps: Sequence[Step]) -> PipelineResult:
    """Run steps in order; the first exception aborts the build.

    Nothing is rolled back, except that chroot mounts still held when a step
    fails or the build is interrupted are released (best-effort) so the host
    is not left with bind mounts.
    """

    total = len(steps)
    try:
        for n, step in enumerate(steps, start=1):
            state.current_step = step.step_id
            logger.info("[%d/%d] %s...", n, total, step.title)
            state = step.run(state)
            state.ran_steps.append(step.step_id)
    finally:
        # the SSH step releases its own mounts; anything left means we stopped early
        if state.mounts:
            logger.error("Build stopped in %s; releasing chroot mounts", state.current_step)
            state.warnings.extend(
                umount_chroot_binds(state.rootfs, step_id=state.current_step, dry_run=state.config.dry_run)
            )
            state.mounts.clear()

    state.current_step = None
    for w in state.warnings:
        logger.warning("Warning [%s]: %s", w.step_id, w)
    return PipelineResult(state=state, ran_steps=list(state.ran_steps), warnings=list(state.warnings))

from __future__ import annotations

import logging
import shutil
from pathlib import Path

from ..build_state import BuildState
from ..lib.archive import create_tar_xz
from ..metadata import ROOTFS_ARCHIVE

logger = logging.getLogger(__name__)


class ArchiveRootfsStep:
    step_id = "40_archive_rootfs"
    title = f"Creating customized {ROOTFS_ARCHIVE}"

    def run(self, state: BuildState) -> BuildState:
        cfg = state.config
        work = state.work_dir

        if not cfg.dry_run:
            if work.exists():
                shutil.rmtree(work)
            work.mkdir(parents=True, exist_ok=True)
            Path(cfg.output_dir).mkdir(parents=True, exist_ok=True)

        archive = work / ROOTFS_ARCHIVE
        create_tar_xz(cfg.rootfs_dir, archive, exclude=("proc", "sys"), dry_run=cfg.dry_run)
        state.artifacts[ROOTFS_ARCHIVE] = archive
        return state

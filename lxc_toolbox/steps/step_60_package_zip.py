from __future__ import annotations

import logging

from ..build_state import BuildState
from ..lib.archive import write_zip
from ..metadata import BUNDLE_FILES

logger = logging.getLogger(__name__)


class PackageZipStep:
    step_id = "60_package_zip"
    title = "Zipping bundle"

    def run(self, state: BuildState) -> BuildState:
        cfg = state.config
        logger.info("Zipping into %s", str(cfg.zip_path))
        write_zip(cfg.zip_path, state.work_dir, BUNDLE_FILES, dry_run=cfg.dry_run)
        state.artifacts["bundle"] = cfg.zip_path
        return state

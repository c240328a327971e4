from __future__ import annotations

from ..build_state import BuildState
from ..metadata import write_metadata


class WriteMetadataStep:
    step_id = "50_write_metadata"
    title = "Preparing packaging files"

    def run(self, state: BuildState) -> BuildState:
        state.artifacts.update(write_metadata(state.work_dir, state.config, dry_run=state.config.dry_run))
        return state

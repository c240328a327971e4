from __future__ import annotations

import logging

from ..build_state import BuildState
from ..distros import profile_for
from ..lib.chroot import mount_chroot_binds
from ..lib.pkg import enable_ssh_service, install_packages, write_resolv_conf

logger = logging.getLogger(__name__)


class CustomizeRootfsStep:
    """Install ssh, python and sudo inside the image.

    Leaves the chroot mounts in place for the account step; they are recorded
    on the state and released there.
    """

    step_id = "20_customize_rootfs"
    title = "Customizing rootfs (ssh, python, sudo)"

    def run(self, state: BuildState) -> BuildState:
        cfg = state.config
        root = state.rootfs
        profile = profile_for(cfg.distribution)

        mount_chroot_binds(root, mounted=state.mounts, dry_run=cfg.dry_run)

        logger.info("Fixing DNS resolution...")
        write_resolv_conf(root, dry_run=cfg.dry_run)

        install_packages(root, profile, dry_run=cfg.dry_run)
        state.warn(enable_ssh_service(root, profile, step_id=self.step_id, dry_run=cfg.dry_run))
        return state

from __future__ import annotations

import logging

from ..build_state import BuildState
from ..distros import profile_for
from ..lib.accounts import create_user, install_authorized_key, prepare_ssh_dir, set_password
from ..lib.chroot import umount_chroot_binds
from ..lib.command import SoftFailure
from ..lib.pkg import run_post_install
from ..lib.sshd import SSHD_CONFIG, write_sshd_config

logger = logging.getLogger(__name__)


class ConfigureSshStep:
    step_id = "30_configure_ssh"
    title = "Configuring SSH and user accounts"

    def run(self, state: BuildState) -> BuildState:
        cfg = state.config
        root = state.rootfs
        dry_run = cfg.dry_run

        if cfg.root_password:
            logger.info("Setting root password...")
            set_password(root, "root", cfg.root_password, dry_run=dry_run)

        if cfg.ssh_user:
            logger.info("Creating SSH user: %s", cfg.ssh_user)
            state.warnings.extend(create_user(root, cfg.ssh_user, step_id=self.step_id, dry_run=dry_run))
            prepare_ssh_dir(root, cfg.ssh_user, dry_run=dry_run)

            if cfg.ssh_password:
                logger.info("Setting password for user: %s", cfg.ssh_user)
                set_password(root, cfg.ssh_user, cfg.ssh_password, dry_run=dry_run)

            if cfg.ssh_key_file:
                logger.info("Adding SSH key from: %s", cfg.ssh_key_file)
                install_authorized_key(root, cfg.ssh_user, cfg.ssh_key_file, dry_run=dry_run)

        logger.info("Configuring SSH server...")
        if not write_sshd_config(root, key_only=cfg.key_only_ssh, dry_run=dry_run):
            state.warn(
                SoftFailure(
                    step_id=self.step_id,
                    command=f"edit /{SSHD_CONFIG}",
                    message="sshd_config not found; SSH server left unconfigured",
                )
            )

        profile = profile_for(cfg.distribution)
        if profile.post_install_commands:
            logger.info("Configuring %s-specific settings...", cfg.distribution.display_name)
            state.warnings.extend(run_post_install(root, profile, step_id=self.step_id, dry_run=dry_run))

        state.warnings.extend(umount_chroot_binds(root, step_id=self.step_id, dry_run=dry_run))
        state.mounts.clear()
        return state

from __future__ import annotations

import logging
from pathlib import Path
from typing import List

from ..distros import DistroPackageProfile
from .chroot import chroot_cmd, chroot_shell
from .command import SoftFailure, soft_cmd

logger = logging.getLogger(__name__)

NAMESERVERS = ("8.8.8.8", "1.1.1.1")


def write_resolv_conf(target_root: str, *, dry_run: bool = False) -> None:
    """Point the image at fixed public resolvers so package installs can resolve."""
    p = Path(target_root) / "etc/resolv.conf"
    contents = "".join(f"nameserver {ns}\n" for ns in NAMESERVERS)
    if dry_run:
        logger.info("Would write %s", str(p))
        return
    # often a (dangling) symlink to systemd-resolved's stub
    if p.is_symlink() or p.exists():
        p.unlink()
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text(contents, encoding="utf-8")


def install_packages(target_root: str, profile: DistroPackageProfile, *, dry_run: bool = False) -> None:
    logger.info("Installing packages: %s", " ".join(profile.packages))
    chroot_shell(target_root, profile.install_script(), shell=profile.chroot_shell, dry_run=dry_run)


def enable_ssh_service(
    target_root: str,
    profile: DistroPackageProfile,
    *,
    step_id: str | None = None,
    dry_run: bool = False,
) -> SoftFailure | None:
    """Some images already enable sshd, so a failure here is only a warning."""
    if not profile.ssh_enable_command:
        return None
    logger.info("Enabling SSH service...")
    return soft_cmd(
        ["chroot", target_root, *profile.ssh_enable_command],
        message="Could not enable SSH service",
        step_id=step_id,
        dry_run=dry_run,
    )


def run_post_install(
    target_root: str,
    profile: DistroPackageProfile,
    *,
    step_id: str | None = None,
    dry_run: bool = False,
) -> List[SoftFailure]:
    warnings: List[SoftFailure] = []
    for cmd in profile.post_install_commands:
        if not cmd.soft:
            chroot_cmd(target_root, cmd.argv, dry_run=dry_run)
            continue
        failure = soft_cmd(
            ["chroot", target_root, *cmd.argv],
            message=f"Post-install command failed: {' '.join(cmd.argv)}",
            step_id=step_id,
            dry_run=dry_run,
        )
        if failure is not None:
            warnings.append(failure)
    return warnings

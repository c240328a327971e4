from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import List

from .chroot import chroot_cmd
from .command import SoftFailure, soft_cmd

logger = logging.getLogger(__name__)

ADMIN_GROUPS = ("sudo", "wheel")


def set_password(target_root: str, user: str, password: str, *, dry_run: bool = False) -> None:
    # chpasswd reads from stdin so the password never shows up in argv or logs
    chroot_cmd(target_root, ["chpasswd"], input_text=f"{user}:{password}\n", dry_run=dry_run)


def create_user(target_root: str, user: str, *, step_id: str | None = None, dry_run: bool = False) -> List[SoftFailure]:
    """Create user with a home directory and bash login shell, then grant admin rights."""
    warnings: List[SoftFailure] = []

    failure = soft_cmd(
        ["chroot", target_root, "useradd", "-m", "-s", "/bin/bash", user],
        message=f"useradd {user} failed (user may already exist)",
        step_id=step_id,
        dry_run=dry_run,
    )
    if failure is not None:
        warnings.append(failure)

    group = admin_group(target_root, dry_run=dry_run)
    if group:
        chroot_cmd(target_root, ["usermod", "-aG", group, user], dry_run=dry_run)
        logger.info("Added %s to group %s", user, group)
    else:
        logger.warning("No sudo or wheel group in image; %s has no admin group", user)
    return warnings


def admin_group(target_root: str, *, dry_run: bool = False) -> str | None:
    """First of sudo/wheel that exists in the image."""
    if dry_run:
        return ADMIN_GROUPS[0]
    for group in ADMIN_GROUPS:
        r = chroot_cmd(target_root, ["getent", "group", group], check=False)
        if r.returncode == 0:
            return group
    return None


def user_ssh_dir(target_root: str, user: str) -> Path:
    return Path(target_root) / "home" / user / ".ssh"


def prepare_ssh_dir(target_root: str, user: str, *, dry_run: bool = False) -> Path:
    d = user_ssh_dir(target_root, user)
    if dry_run:
        logger.info("Would create %s", str(d))
    else:
        d.mkdir(parents=True, exist_ok=True)
        os.chmod(d, 0o700)
    # ownership is resolved against the image's own passwd database
    chroot_cmd(target_root, ["chown", f"{user}:{user}", f"/home/{user}/.ssh"], dry_run=dry_run)
    return d


def install_authorized_key(target_root: str, user: str, key_file: str, *, dry_run: bool = False) -> Path:
    dst = user_ssh_dir(target_root, user) / "authorized_keys"
    if dry_run:
        logger.info("Would install %s -> %s", key_file, str(dst))
    else:
        content = Path(key_file).read_text(encoding="utf-8").strip() + "\n"
        dst.write_text(content, encoding="utf-8")
        os.chmod(dst, 0o600)
    chroot_cmd(
        target_root,
        ["chown", f"{user}:{user}", f"/home/{user}/.ssh/authorized_keys"],
        dry_run=dry_run,
    )
    return dst

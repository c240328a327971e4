from __future__ import annotations

import logging
from typing import List, Sequence

from .command import CmdResult, SoftFailure, run_cmd, soft_cmd

logger = logging.getLogger(__name__)

# (mount argv prefix, path relative to the rootfs), mounted in this order
CHROOT_MOUNTS: Sequence[tuple[Sequence[str], str]] = (
    (("-t", "proc", "proc"), "proc"),
    (("-t", "sysfs", "sys"), "sys"),
    (("--bind", "/dev"), "dev"),
    (("--bind", "/dev/pts"), "dev/pts"),
    (("--bind", "/run"), "run"),
)

UMOUNT_ORDER: Sequence[str] = ("dev/pts", "dev", "run", "proc", "sys")


def chroot_cmd(
    target_root: str,
    argv: Sequence[str],
    *,
    check: bool = True,
    input_text: str | None = None,
    dry_run: bool = False,
) -> CmdResult:
    """Run a command inside target root."""

    return run_cmd(["chroot", target_root, *argv], check=check, input_text=input_text, dry_run=dry_run)


def chroot_shell(target_root: str, script: str, *, shell: str = "bash", dry_run: bool = False) -> CmdResult:
    """Run a shell snippet inside target root with the image's own shell."""

    return chroot_cmd(target_root, [shell, "-c", script], dry_run=dry_run)


def mount_chroot_binds(
    target_root: str,
    *,
    mounted: List[str] | None = None,
    dry_run: bool = False,
) -> List[str]:
    """Mount the virtual filesystems a chroot needs for package managers.

    Each successfully mounted path is appended to ``mounted`` as it happens, so
    a caller can still release partial mounts when a later mount fails.
    """

    done = mounted if mounted is not None else []
    for spec, rel in CHROOT_MOUNTS:
        dst = f"{target_root}/{rel}"
        run_cmd(["mount", *spec, dst], dry_run=dry_run)
        done.append(dst)
    return done


def umount_chroot_binds(target_root: str, *, step_id: str | None = None, dry_run: bool = False) -> List[SoftFailure]:
    warnings: List[SoftFailure] = []
    for rel in UMOUNT_ORDER:
        failure = soft_cmd(
            ["umount", "-lf", f"{target_root}/{rel}"],
            message=f"Could not unmount {rel}",
            step_id=step_id,
            dry_run=dry_run,
        )
        if failure is not None:
            warnings.append(failure)
    return warnings

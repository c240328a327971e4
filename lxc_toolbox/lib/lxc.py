from __future__ import annotations

import logging

from .command import CmdResult, run_cmd

logger = logging.getLogger(__name__)


def lxc_download(
    name: str,
    *,
    dist: str,
    release: str,
    arch: str,
    variant: str,
    lxc_path: str | None = None,
    dry_run: bool = False,
) -> CmdResult:
    """Create container `name` from the LXC image server via the download template."""
    argv = ["lxc-create", "-n", name]
    if lxc_path:
        argv += ["-P", lxc_path]
    argv += [
        "-t",
        "download",
        "--",
        "--dist",
        dist,
        "--release",
        release,
        "--arch",
        arch,
        "--variant",
        variant,
    ]
    return run_cmd(argv, dry_run=dry_run)

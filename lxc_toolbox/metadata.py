"""LXC metadata files shipped next to rootfs.tar.xz in the bundle.

The file set and names are what `lxc-create -t local` expects; do not rename.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, List

from .build_config import BuildConfig

logger = logging.getLogger(__name__)

ROOTFS_ARCHIVE = "rootfs.tar.xz"
METADATA_FILES = ("config", "templates", "config-user", "excludes-user", "create-message")
BUNDLE_FILES = ("config", "excludes-user", "config-user", ROOTFS_ARCHIVE, "create-message", "templates")

LXC_CONFIG = """\
lxc.include = /usr/share/lxc/config/common.conf
lxc.arch = linux64
lxc.mount.auto = proc:rw sys:rw cgroup:rw
lxc.net.0.type = veth
lxc.net.0.link = lxcbr0
"""

LXC_TEMPLATES = """\
/etc/hostname
/etc/hosts
"""

LXC_CONFIG_USER = """\
lxc.include = /usr/share/lxc/config/common.conf
lxc.include = /usr/share/lxc/config/userns.conf
lxc.arch = linux64
"""


def describe(cfg: BuildConfig) -> str:
    """One-line summary; says whether credentials are set, never what they are."""
    text = f"{cfg.distribution.display_name} {cfg.release} with SSH, Python, and sudo preinstalled"
    if cfg.ssh_user:
        text += f". SSH user: {cfg.ssh_user}"
        if cfg.ssh_password:
            text += " (password set)"
        if cfg.ssh_key_file:
            text += " (SSH key added)"
    return text


def render_create_message(cfg: BuildConfig) -> str:
    lines: List[str] = [
        describe(cfg),
        f"Variant: {cfg.variant} ({cfg.architecture})",
        "",
        "SSH Configuration:",
    ]
    if cfg.ssh_user:
        lines.append(f"- User: {cfg.ssh_user}")
        if cfg.ssh_password:
            lines.append("- Password authentication: enabled")
        if cfg.ssh_key_file:
            lines.append("- SSH key authentication: enabled")
    else:
        lines.append("- No SSH user configured")
    lines.append("- Root password: set" if cfg.root_password else "- Root password: not set")
    lines += ["", "To connect via SSH:"]
    if cfg.ssh_user:
        lines.append(f"ssh {cfg.ssh_user}@<container-ip>")
    else:
        lines.append("Configure SSH user first or use lxc-attach")
    return "\n".join(lines) + "\n"


def render_metadata(cfg: BuildConfig) -> Dict[str, str]:
    return {
        "config": LXC_CONFIG,
        "templates": LXC_TEMPLATES,
        "config-user": LXC_CONFIG_USER,
        "excludes-user": "",
        "create-message": render_create_message(cfg),
    }


def write_metadata(work_dir: Path, cfg: BuildConfig, *, dry_run: bool = False) -> Dict[str, Path]:
    out: Dict[str, Path] = {}
    for name, contents in render_metadata(cfg).items():
        p = work_dir / name
        out[name] = p
        if dry_run:
            logger.info("Would write %s", str(p))
            continue
        p.write_text(contents, encoding="utf-8")
    return out

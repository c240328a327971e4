"""LXC toolbox image builder.

Builds LXC container bundles with SSH, Python and sudo preinstalled:
- Base images cached per (dist, release, arch, variant)
- Rootfs customized in a privileged chroot
- Fail-fast; only documented steps degrade to warnings
- Output is a zip consumable by `lxc-create -t local`
"""

__all__ = []

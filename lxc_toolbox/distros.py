"""Supported distributions and their package-manager profiles."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Mapping, Tuple

from .errors import ValidationError


class Distribution(str, Enum):
    DEBIAN = "debian"
    UBUNTU = "ubuntu"
    FEDORA = "fedora"
    CENTOS = "centos"
    ROCKYLINUX = "rockylinux"
    ALMALINUX = "almalinux"
    ALPINE = "alpine"
    ARCH = "arch"

    def __str__(self) -> str:
        return self.value

    @property
    def display_name(self) -> str:
        return self.value[:1].upper() + self.value[1:]


SUPPORTED = tuple(d.value for d in Distribution)

# Accepted by the Docker wrapper only.
ALIASES: Mapping[str, Distribution] = {"rocky": Distribution.ROCKYLINUX}

DEFAULT_RELEASES: Mapping[Distribution, str] = {
    Distribution.DEBIAN: "trixie",
    Distribution.UBUNTU: "jammy",
    Distribution.FEDORA: "39",
    Distribution.CENTOS: "9",
    Distribution.ROCKYLINUX: "9",
    Distribution.ALMALINUX: "9",
    Distribution.ALPINE: "3.19",
    Distribution.ARCH: "current",
}

KNOWN_RELEASES: Mapping[Distribution, Tuple[str, ...]] = {
    Distribution.DEBIAN: ("bookworm", "trixie", "sid"),
    Distribution.UBUNTU: ("focal", "jammy", "noble", "mantic"),
    Distribution.FEDORA: ("38", "39", "40"),
    Distribution.CENTOS: ("8", "9"),
    Distribution.ROCKYLINUX: ("8", "9"),
    Distribution.ALMALINUX: ("8", "9"),
    Distribution.ALPINE: ("3.17", "3.18", "3.19", "edge"),
    Distribution.ARCH: ("current",),
}


@dataclass(frozen=True)
class PostInstallCommand:
    argv: Tuple[str, ...]
    # failure is a warning, not fatal
    soft: bool = False


@dataclass(frozen=True)
class DistroPackageProfile:
    update_command: Tuple[str, ...]
    install_command: Tuple[str, ...]
    packages: Tuple[str, ...]
    ssh_enable_command: Tuple[str, ...] = ()
    chroot_shell: str = "bash"
    post_install_commands: Tuple[PostInstallCommand, ...] = ()

    def install_script(self) -> str:
        """Shell snippet run inside the chroot: refresh indexes, then install."""
        update = " ".join(self.update_command)
        install = " ".join([*self.install_command, *self.packages])
        return f"{update} && {install}"


_APT = DistroPackageProfile(
    update_command=("apt-get", "update"),
    install_command=("apt-get", "install", "-y"),
    packages=("dhcpcd-base", "ifupdown", "openssh-server", "python3", "sudo"),
    # sshd is enabled by the package itself
)

_DNF = DistroPackageProfile(
    update_command=("dnf", "makecache"),
    install_command=("dnf", "install", "-y"),
    packages=("openssh-server", "python3", "sudo"),
    ssh_enable_command=("systemctl", "enable", "sshd"),
)

_APK = DistroPackageProfile(
    update_command=("apk", "update"),
    install_command=("apk", "add"),
    packages=("openssh", "python3", "sudo"),
    ssh_enable_command=("rc-update", "add", "sshd", "default"),
    chroot_shell="ash",
    post_install_commands=(
        PostInstallCommand(("ssh-keygen", "-A")),
        PostInstallCommand(("rc-update", "add", "sshd", "default"), soft=True),
    ),
)

_PACMAN = DistroPackageProfile(
    update_command=("pacman", "-Sy"),
    install_command=("pacman", "-S", "--noconfirm"),
    packages=("openssh", "python", "sudo"),
    ssh_enable_command=("systemctl", "enable", "sshd"),
    post_install_commands=(
        PostInstallCommand(("pacman-key", "--init"), soft=True),
        PostInstallCommand(("pacman-key", "--populate"), soft=True),
    ),
)

PROFILES: Dict[Distribution, DistroPackageProfile] = {
    Distribution.DEBIAN: _APT,
    Distribution.UBUNTU: _APT,
    Distribution.FEDORA: _DNF,
    Distribution.CENTOS: _DNF,
    Distribution.ROCKYLINUX: _DNF,
    Distribution.ALMALINUX: _DNF,
    Distribution.ALPINE: _APK,
    Distribution.ARCH: _PACMAN,
}


def parse_distribution(name: str, *, allow_aliases: bool = False) -> Distribution:
    key = (name or "").strip().lower()
    if allow_aliases and key in ALIASES:
        return ALIASES[key]
    try:
        return Distribution(key)
    except ValueError:
        supported = list(SUPPORTED) + (sorted(ALIASES) if allow_aliases else [])
        raise ValidationError(
            f"Unsupported distribution '{name}'",
            hint="Supported: " + ", ".join(supported),
        ) from None


def default_release(dist: Distribution) -> str:
    return DEFAULT_RELEASES[dist]


def profile_for(dist: Distribution) -> DistroPackageProfile:
    return PROFILES[dist]

import pytest

from lxc_toolbox.distros import (
    PROFILES,
    Distribution,
    parse_distribution,
    profile_for,
)
from lxc_toolbox.errors import ValidationError


def test_every_distribution_has_exactly_one_profile() -> None:
    assert set(PROFILES) == set(Distribution)


def test_package_manager_families_share_a_profile() -> None:
    assert profile_for(Distribution.DEBIAN) is profile_for(Distribution.UBUNTU)
    assert profile_for(Distribution.CENTOS) is profile_for(Distribution.ROCKYLINUX)
    assert profile_for(Distribution.CENTOS) is profile_for(Distribution.ALMALINUX)
    assert profile_for(Distribution.FEDORA).update_command == ("dnf", "makecache")


def test_apt_profile_needs_no_explicit_ssh_enable() -> None:
    profile = profile_for(Distribution.DEBIAN)

    assert profile.ssh_enable_command == ()
    assert profile.install_script() == (
        "apt-get update && apt-get install -y dhcpcd-base ifupdown openssh-server python3 sudo"
    )


def test_alpine_uses_ash_and_generates_host_keys() -> None:
    profile = profile_for(Distribution.ALPINE)

    assert profile.chroot_shell == "ash"
    keygen, rc_update = profile.post_install_commands
    assert keygen.argv == ("ssh-keygen", "-A") and not keygen.soft
    assert rc_update.argv == ("rc-update", "add", "sshd", "default") and rc_update.soft


def test_arch_keyring_setup_is_best_effort() -> None:
    profile = profile_for(Distribution.ARCH)

    assert [c.argv for c in profile.post_install_commands] == [
        ("pacman-key", "--init"),
        ("pacman-key", "--populate"),
    ]
    assert all(c.soft for c in profile.post_install_commands)


def test_parse_distribution_alias_only_when_allowed() -> None:
    assert parse_distribution("rocky", allow_aliases=True) is Distribution.ROCKYLINUX
    with pytest.raises(ValidationError):
        parse_distribution("rocky")


def test_distribution_formats_as_its_value() -> None:
    assert f"{Distribution.ROCKYLINUX}" == "rockylinux"
    assert Distribution.DEBIAN.display_name == "Debian"

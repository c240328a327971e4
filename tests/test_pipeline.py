import zipfile
from pathlib import Path
from typing import Callable

import pytest

from lxc_toolbox.build_config import BuildConfig
from lxc_toolbox.build_state import BuildState
from lxc_toolbox.distros import Distribution
from lxc_toolbox.errors import CommandError
from lxc_toolbox.main import build_steps, run_build
from lxc_toolbox.metadata import BUNDLE_FILES
from lxc_toolbox.pipeline import run_pipeline

from conftest import FakeSystem


def _message(cfg: BuildConfig) -> str:
    with zipfile.ZipFile(cfg.zip_path) as zf:
        return zf.read("create-message").decode("utf-8")


def test_debian_build_produces_bundle(fake_system: FakeSystem, make_config: Callable[..., BuildConfig]) -> None:
    cfg = make_config(ssh_user="admin", ssh_password="pw1")

    result = run_build(cfg)

    assert result.ran_steps == [
        "10_fetch_base",
        "20_customize_rootfs",
        "30_configure_ssh",
        "40_archive_rootfs",
        "50_write_metadata",
        "60_package_zip",
    ]
    assert cfg.zip_path.name == "LXC_debian_trixie_toolbox_amd64.zip"
    with zipfile.ZipFile(cfg.zip_path) as zf:
        assert sorted(zf.namelist()) == sorted(BUNDLE_FILES)

    message = _message(cfg)
    assert "Password authentication: enabled" in message
    assert "- User: admin" in message
    assert "pw1" not in message


def test_passwords_only_travel_on_stdin(fake_system: FakeSystem, make_config: Callable[..., BuildConfig]) -> None:
    cfg = make_config(ssh_user="admin", ssh_password="pw1", root_password="rootpw")

    run_build(cfg)

    assert "root:rootpw\n" in fake_system.inputs
    assert "admin:pw1\n" in fake_system.inputs
    for argv in fake_system.calls:
        assert not any("pw1" in a or "rootpw" in a for a in argv)


def test_user_is_created_and_made_admin(fake_system: FakeSystem, make_config: Callable[..., BuildConfig], key_file: Path) -> None:
    cfg = make_config(ssh_user="admin", ssh_key_file=str(key_file))

    run_build(cfg)

    chroot = fake_system.chroot_calls()
    assert ["useradd", "-m", "-s", "/bin/bash", "admin"] in chroot
    assert ["usermod", "-aG", "sudo", "admin"] in chroot
    keys = cfg.rootfs_dir / "home/admin/.ssh/authorized_keys"
    assert keys.read_text(encoding="utf-8").startswith("ssh-ed25519 ")
    assert (keys.stat().st_mode & 0o777) == 0o600

    sshd = (cfg.rootfs_dir / "etc/ssh/sshd_config").read_text(encoding="utf-8")
    assert "PasswordAuthentication no" in sshd
    assert "PermitRootLogin no" in sshd


def test_resolv_conf_replaces_dangling_symlink(fake_system: FakeSystem, make_config: Callable[..., BuildConfig]) -> None:
    cfg = make_config()

    run_build(cfg)

    resolv = cfg.rootfs_dir / "etc/resolv.conf"
    assert not resolv.is_symlink()
    assert resolv.read_text(encoding="utf-8") == "nameserver 8.8.8.8\nnameserver 1.1.1.1\n"


def test_second_build_uses_cache(fake_system: FakeSystem, make_config: Callable[..., BuildConfig]) -> None:
    cfg = make_config()

    first = run_build(cfg)
    assert not first.state.cache_hit
    assert len(fake_system.called("lxc-create")) == 1
    assert cfg.cached_base_path.is_file()

    fake_system.calls.clear()
    second = run_build(cfg)

    assert second.state.cache_hit
    assert fake_system.called("lxc-create") == []
    assert ["tar", "-xJf", str(cfg.cached_base_path), "-C", str(cfg.rootfs_dir)] in fake_system.calls
    assert cfg.zip_path.is_file()


def test_unknown_variant_falls_back_to_default(fake_system: FakeSystem, make_config: Callable[..., BuildConfig]) -> None:
    fake_system.fail_when(lambda argv: argv[0] == "lxc-create" and "nonexistent-xyz" in argv)
    cfg = make_config(distribution=Distribution.ALPINE, release="3.19", variant="nonexistent-xyz")

    result = run_build(cfg)

    assert len(fake_system.called("lxc-create")) == 2
    assert result.state.config.variant == "default"
    assert (Path(cfg.cache_dir) / "base-alpine-3.19-amd64-default.tar.xz").is_file()
    assert not (Path(cfg.cache_dir) / "base-alpine-3.19-amd64-nonexistent-xyz.tar.xz").exists()
    assert "Variant: default (amd64)" in _message(cfg)


def test_default_variant_failure_is_fatal(fake_system: FakeSystem, make_config: Callable[..., BuildConfig]) -> None:
    fake_system.fail_when(lambda argv: argv[0] == "lxc-create")
    cfg = make_config(variant="default")

    with pytest.raises(CommandError):
        run_build(cfg)

    assert len(fake_system.called("lxc-create")) == 1
    assert not cfg.zip_path.exists()


def test_alpine_runs_ash_and_host_key_generation(fake_system: FakeSystem, make_config: Callable[..., BuildConfig]) -> None:
    cfg = make_config(distribution=Distribution.ALPINE, release="3.19")

    run_build(cfg)

    chroot = fake_system.chroot_calls()
    assert any(c[:2] == ["ash", "-c"] and c[2].startswith("apk update") for c in chroot)
    assert ["ssh-keygen", "-A"] in chroot
    assert ["rc-update", "add", "sshd", "default"] in chroot


def test_ssh_enable_failure_is_a_warning(fake_system: FakeSystem, make_config: Callable[..., BuildConfig]) -> None:
    fake_system.fail_when(lambda argv: argv[0] == "chroot" and "systemctl" in argv)
    cfg = make_config(distribution=Distribution.FEDORA, release="39")

    result = run_build(cfg)

    assert cfg.zip_path.is_file()
    assert [w.message for w in result.warnings] == ["Could not enable SSH service"]
    assert result.warnings[0].step_id == "20_customize_rootfs"


def test_umount_failures_are_reported(fake_system: FakeSystem, make_config: Callable[..., BuildConfig]) -> None:
    fake_system.fail_when(lambda argv: argv[0] == "umount")
    cfg = make_config()

    result = run_build(cfg)

    assert cfg.zip_path.is_file()
    assert len(result.warnings) == 5
    assert all(w.message.startswith("Could not unmount") for w in result.warnings)


def test_mounts_are_released_when_a_step_fails(fake_system: FakeSystem, make_config: Callable[..., BuildConfig]) -> None:
    fake_system.fail_when(lambda argv: argv[0] == "chroot" and "bash" in argv)
    state = BuildState(config=make_config())

    with pytest.raises(CommandError):
        run_pipeline(state=state, steps=build_steps())

    assert state.ran_steps == ["10_fetch_base"]
    assert state.mounts == []
    assert len(fake_system.called("umount")) == 5
    assert not state.config.zip_path.exists()


def test_fatal_post_install_failure_aborts(fake_system: FakeSystem, make_config: Callable[..., BuildConfig]) -> None:
    fake_system.fail_when(lambda argv: argv[0] == "chroot" and "ssh-keygen" in argv)
    cfg = make_config(distribution=Distribution.ALPINE, release="3.19")

    with pytest.raises(CommandError):
        run_build(cfg)

    assert len(fake_system.called("umount")) == 5
    assert not cfg.zip_path.exists()


def test_dry_run_executes_nothing(fake_system: FakeSystem, make_config: Callable[..., BuildConfig], tmp_path: Path) -> None:
    cfg = make_config(ssh_user="admin", ssh_password="pw1", dry_run=True)

    result = run_build(cfg)

    assert fake_system.calls == []
    assert len(result.ran_steps) == 6
    assert not (tmp_path / "out").exists()
    assert not (tmp_path / "cache").exists()


def test_failed_cache_write_is_not_trusted_later(fake_system: FakeSystem, make_config: Callable[..., BuildConfig]) -> None:
    cfg = make_config()
    cache_dir = Path(cfg.cache_dir)
    attempts: list = []

    def truncated_cache_write(argv) -> bool:
        if argv[0] != "tar" or "-cJf" not in argv or attempts:
            return False
        target = Path(argv[argv.index("-cJf") + 1])
        if target.parent != cache_dir:
            return False
        attempts.append(target)
        target.write_bytes(b"truncated")
        return True

    fake_system.fail_when(truncated_cache_write)

    with pytest.raises(CommandError):
        run_build(cfg)

    assert attempts
    assert list(cache_dir.iterdir()) == []

    second = run_build(cfg)

    assert not second.state.cache_hit
    assert len(fake_system.called("lxc-create")) == 2
    assert cfg.cached_base_path.read_bytes() == b"fake-xz"


def test_interrupt_still_releases_mounts(fake_system: FakeSystem, make_config: Callable[..., BuildConfig]) -> None:
    def interrupt_install(argv) -> bool:
        if argv[0] == "chroot" and "bash" in argv:
            raise KeyboardInterrupt
        return False

    fake_system.fail_when(interrupt_install)
    state = BuildState(config=make_config())

    with pytest.raises(KeyboardInterrupt):
        run_pipeline(state=state, steps=build_steps())

    assert state.mounts == []
    assert len(fake_system.called("umount")) == 5
